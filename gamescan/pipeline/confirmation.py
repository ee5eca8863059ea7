"""Confirmation stage: store the user's game attributes with a normalized title."""

from gamescan.db.repository import ScanRepository
from gamescan.errors import ScanNotReady
from gamescan.logging_config import get_logger
from gamescan.pipeline.stage import PipelineStage
from gamescan.pipeline.state_machine import CONFIRMABLE_STATUSES
from gamescan.pipeline.types import ConfirmInput, ConfirmScanResult


def _ensure_confirmable(status: str) -> None:
    if status not in {s.value for s in CONFIRMABLE_STATUSES}:
        raise ScanNotReady(
            "Scan must be analyzed before confirmation",
            details={"status": status},
        )


class ConfirmationStage(PipelineStage):
    """Attribute write only; the scan keeps its status."""

    async def confirm(
        self, repo: ScanRepository, scan_id: str, data: ConfirmInput
    ) -> ConfirmScanResult:
        log = get_logger(__name__, scan_id=scan_id)

        scan = await repo.get_scan(scan_id)
        _ensure_confirmable(scan.status)

        original_suggestion = None
        if scan.ai_candidates:
            original_suggestion = scan.ai_candidates[0].get("title")

        normalized = await self._call_backend(
            "normalize",
            lambda: self.backend.normalize(data.title, original_suggestion),
            log,
        )

        # Status may have moved while the backend was working
        scan = await repo.get_scan(scan_id)
        _ensure_confirmable(scan.status)

        scan.confirmed_title = data.title
        scan.confirmed_edition = data.edition
        scan.confirmed_language = data.language
        scan.confirmed_condition = data.condition
        scan.is_complete = data.is_complete
        scan.normalized_title = normalized.normalized_title
        scan.keywords = list(normalized.keywords)
        await repo.save_scan(scan)

        log.info(f"Confirmed as '{normalized.normalized_title}' ({data.condition}, {data.language})")
        return ConfirmScanResult(
            scan_id=scan.id,
            normalized_title=normalized.normalized_title,
            keywords=list(normalized.keywords),
            status=scan.status,
        )
