"""Scan pipeline facade used by the HTTP layer and the worker."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gamescan import metrics
from gamescan.ai.backend import InferenceBackend
from gamescan.ai.types import Candidate, Evidence
from gamescan.db.models import Scan
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.pipeline.confirmation import ConfirmationStage
from gamescan.pipeline.draft import DraftStage
from gamescan.pipeline.pricing_stage import PricingStage
from gamescan.pipeline.recognition import RecognitionStage
from gamescan.pipeline.types import (
    ConfirmInput,
    ConfirmScanResult,
    CreateScanResult,
    DraftInput,
    DraftResult,
    PricingInput,
    PricingResult,
    ScanView,
)
from gamescan.storage.file_store import LocalFileStore
from gamescan.worker.tasks import RecognitionTaskRunner

logger = logging.getLogger(__name__)


def scan_view(scan: Scan) -> ScanView:
    return ScanView(
        id=scan.id,
        status=scan.status,
        created_at=scan.created_at,
        updated_at=scan.updated_at,
        candidates=[Candidate.model_validate(c) for c in scan.ai_candidates]
        if scan.ai_candidates is not None
        else None,
        evidence=Evidence.model_validate(scan.ai_evidence) if scan.ai_evidence is not None else None,
        confirmed_title=scan.confirmed_title,
        confirmed_edition=scan.confirmed_edition,
        confirmed_language=scan.confirmed_language,
        confirmed_condition=scan.confirmed_condition,
        is_complete=scan.is_complete,
        normalized_title=scan.normalized_title,
        keywords=scan.keywords,
        error=scan.error_message,
    )


class ScanPipeline:
    """
    Drives scans through recognition, confirmation, pricing and drafting.

    Every operation opens its own session and reads the scan fresh; no
    status is cached between calls.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        file_store: LocalFileStore,
        session_factory: async_sessionmaker[AsyncSession],
        task_runner: Optional[RecognitionTaskRunner] = None,
        inference_timeout_seconds: float = 90.0,
        pricing_mode: str = "engine",
    ):
        self.backend = backend
        self.file_store = file_store
        self.session_factory = session_factory
        self.task_runner = task_runner or RecognitionTaskRunner()

        self.recognition = RecognitionStage(backend, file_store, inference_timeout_seconds)
        self.confirmation = ConfirmationStage(backend, inference_timeout_seconds)
        self.pricing = PricingStage(backend, inference_timeout_seconds, pricing_mode)
        self.drafting = DraftStage(backend, inference_timeout_seconds)

    async def create_scan(
        self,
        data: bytes,
        mime_type: Optional[str],
        session_id: Optional[str] = None,
    ) -> CreateScanResult:
        """
        Store the image, create the scan and schedule recognition.

        Returns as soon as the scan exists; recognition runs detached.
        """
        stored = await self.file_store.save(data, mime_type)
        try:
            async with self.session_factory() as db:
                scan = await ScanRepository(db).create_scan(
                    image_key=stored.ref,
                    image_mime_type=stored.mime_type,
                    image_size=stored.size,
                    session_id=session_id,
                )
        except Exception:
            await self.file_store.delete(stored.ref)
            raise

        metrics.record_scan_created()
        logger.info(f"Created scan {scan.id} ({stored.size} bytes)")
        self.task_runner.schedule(scan.id, self.run_recognition)
        return CreateScanResult(scan_id=scan.id, status=ScanStatus.UPLOADED)

    async def run_recognition(self, scan_id: str) -> Optional[Scan]:
        async with self.session_factory() as db:
            return await self.recognition.run(ScanRepository(db), scan_id)

    async def get_scan(self, scan_id: str) -> ScanView:
        async with self.session_factory() as db:
            scan = await ScanRepository(db).get_scan(scan_id)
            return scan_view(scan)

    async def confirm_scan(self, scan_id: str, data: ConfirmInput) -> ConfirmScanResult:
        async with self.session_factory() as db:
            return await self.confirmation.confirm(ScanRepository(db), scan_id, data)

    async def calculate_pricing(self, scan_id: str, data: PricingInput) -> PricingResult:
        async with self.session_factory() as db:
            return await self.pricing.price(ScanRepository(db), scan_id, data)

    async def generate_draft(self, scan_id: str, data: DraftInput) -> DraftResult:
        async with self.session_factory() as db:
            return await self.drafting.generate(ScanRepository(db), scan_id, data)

    async def close(self) -> None:
        if self.task_runner.pending_count:
            logger.info(f"Closing with {self.task_runner.pending_count} recognition tasks pending")
        await self.task_runner.close()
        await self.backend.close()
