"""Recognition stage: identify the game on a freshly uploaded photo."""

from typing import Optional

from gamescan.ai.backend import InferenceBackend
from gamescan.db.models import Scan
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.logging_config import get_logger
from gamescan.pipeline.stage import PipelineStage
from gamescan.pipeline.state_machine import transition
from gamescan.storage.file_store import LocalFileStore


class RecognitionStage(PipelineStage):
    """
    Runs detached from the upload request.

    UPLOADED -> ANALYZING -> ANALYZED, or ERROR on any failure. Failures are
    recorded on the scan and never re-raised; the uploader already has its
    response.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        file_store: LocalFileStore,
        inference_timeout_seconds: float = 90.0,
    ):
        super().__init__(backend, inference_timeout_seconds)
        self.file_store = file_store

    async def run(self, repo: ScanRepository, scan_id: str) -> Optional[Scan]:
        log = get_logger(__name__, scan_id=scan_id)

        scan = await repo.find_scan(scan_id)
        if scan is None:
            log.warning("Recognition requested for unknown scan")
            return None
        if scan.status != ScanStatus.UPLOADED.value:
            # Already picked up by an earlier run
            log.info(f"Skipping recognition, scan is {scan.status}")
            return scan

        transition(scan, ScanStatus.ANALYZING)
        await repo.save_scan(scan)
        mime_type = scan.image_mime_type

        try:
            image_base64 = await self.file_store.read_as_base64(scan.image_key)
            result = await self._call_backend(
                "recognize",
                lambda: self.backend.recognize(image_base64, mime_type),
                log,
            )
            scan = await self._reload_in(repo, scan_id, ScanStatus.ANALYZING)
            scan.ai_candidates = [candidate.to_wire() for candidate in result.candidates]
            scan.ai_evidence = result.evidence.to_wire()
            transition(scan, ScanStatus.ANALYZED)
            await repo.save_scan(scan)
        except Exception as e:
            return await self._fail(repo, scan_id, e, log)

        log.info(
            f"Recognized '{result.best.title}' ({result.best.confidence}%) "
            f"with {len(result.alternatives)} alternatives"
        )
        return scan
