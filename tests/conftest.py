"""Shared fixtures.

The environment is pointed at a throwaway SQLite database and the stub
backend before anything from gamescan is imported, because the settings
and the engine are created at import time.
"""

import io
import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="gamescan-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["AI_PROVIDER"] = "mock"
os.environ["MOCK_DELAY_SECONDS"] = "0"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["LOG_DIR"] = _TEST_DIR

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gamescan.ai.stub_backend import StubInferenceBackend
from gamescan.db.models import Base
from gamescan.pipeline.service import ScanPipeline
from gamescan.pipeline.types import ConfirmInput
from gamescan.storage.file_store import LocalFileStore


def make_image_bytes(size=(64, 48), fmt="JPEG", color="red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def file_store(tmp_path) -> LocalFileStore:
    return LocalFileStore(tmp_path / "uploads", max_dimension=2048, jpeg_quality=85)


@pytest.fixture
def backend() -> StubInferenceBackend:
    return StubInferenceBackend(delay=0)


@pytest_asyncio.fixture
async def pipeline(backend, file_store, session_factory):
    pipeline = ScanPipeline(
        backend=backend,
        file_store=file_store,
        session_factory=session_factory,
        inference_timeout_seconds=5.0,
    )
    yield pipeline
    await pipeline.close()


@pytest.fixture
def catan_confirmation() -> ConfirmInput:
    return ConfirmInput(
        title="Die Siedler von Catan",
        language="DE",
        condition="GOOD",
        is_complete=True,
    )


async def create_analyzed_scan(pipeline: ScanPipeline, image: bytes) -> str:
    """Upload an image and wait until recognition has finished."""
    created = await pipeline.create_scan(image, "image/jpeg")
    await pipeline.task_runner.wait_for(created.scan_id, timeout=5)
    return created.scan_id


@pytest_asyncio.fixture
async def analyzed_scan_id(pipeline, jpeg_bytes) -> str:
    return await create_analyzed_scan(pipeline, jpeg_bytes)
