"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from gamescan.ai.backend import create_inference_backend
from gamescan.api.errors import register_exception_handlers
from gamescan.api.routes import health, scans
from gamescan.config import settings
from gamescan.db.models import Base
from gamescan.db.session import AsyncSessionLocal, engine
from gamescan.logging_config import setup_logging
from gamescan.pipeline.service import ScanPipeline
from gamescan.storage.file_store import LocalFileStore
from gamescan.worker.scheduler import setup_scheduler
from gamescan.worker.tasks import RecognitionTaskRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()

    # Startup
    logger.info("Starting gamescan...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Backend is selected once; a live backend without key fails here
    backend = create_inference_backend(settings)
    logger.info(f"Inference backend: {backend.name}")

    pipeline = ScanPipeline(
        backend=backend,
        file_store=LocalFileStore(
            settings.upload_dir,
            max_dimension=settings.max_image_dimension,
            jpeg_quality=settings.jpeg_quality,
            max_bytes=settings.max_file_size_bytes,
        ),
        session_factory=AsyncSessionLocal,
        task_runner=RecognitionTaskRunner(),
        inference_timeout_seconds=settings.inference_timeout_seconds,
        pricing_mode=settings.pricing_mode,
    )
    app.state.pipeline = pipeline

    # Start scheduler
    scheduler = setup_scheduler(pipeline)
    scheduler.start()
    logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")

    scheduler.shutdown(wait=False)
    await pipeline.close()
    await engine.dispose()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="gamescan",
    description="Board game photo to marketplace listing pipeline",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origin.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health.*", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

register_exception_handlers(app)

# Include API routes
app.include_router(scans.router)
app.include_router(health.router)


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "gamescan.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
