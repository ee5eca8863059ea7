"""FastAPI dependencies."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from gamescan.db.session import get_db
from gamescan.pipeline.service import ScanPipeline


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


def get_pipeline(request: Request) -> ScanPipeline:
    """The pipeline built at startup and stored on the app state."""
    return request.app.state.pipeline
