"""Common behavior of the pipeline stages."""

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

from gamescan import metrics
from gamescan.ai.backend import InferenceBackend
from gamescan.db.models import Scan
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.errors import AppError, InferenceBackendError, ScanNotReady
from gamescan.logging_config import LoggerAdapter
from gamescan.pipeline.state_machine import can_transition, transition

T = TypeVar("T")


class PipelineStage:
    """
    Base class for stages that call the inference backend.

    The backend is injected at construction; every call to it is bounded
    by ``inference_timeout_seconds``.
    """

    def __init__(self, backend: InferenceBackend, inference_timeout_seconds: float = 90.0):
        self.backend = backend
        self.inference_timeout_seconds = inference_timeout_seconds

    async def _call_backend(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        log: LoggerAdapter,
    ) -> T:
        """
        Await one backend operation under the timeout.

        Timeouts and anything the backend raises are reported as
        InferenceBackendError.
        """
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(call(), timeout=self.inference_timeout_seconds)
        except asyncio.TimeoutError as e:
            metrics.record_inference_call(operation, False, time.monotonic() - started)
            log.warning(f"Inference '{operation}' timed out after {self.inference_timeout_seconds}s")
            raise InferenceBackendError(
                f"AI service timed out after {self.inference_timeout_seconds:g}s",
                details={"operation": operation},
            ) from e
        except InferenceBackendError:
            metrics.record_inference_call(operation, False, time.monotonic() - started)
            raise
        except Exception as e:
            metrics.record_inference_call(operation, False, time.monotonic() - started)
            log.error(f"Inference '{operation}' failed unexpectedly: {e}", exc_info=True)
            raise InferenceBackendError(f"AI service error: {e}", details={"operation": operation}) from e

        metrics.record_inference_call(operation, True, time.monotonic() - started)
        return result

    @staticmethod
    def _require_status(scan: Scan, target: ScanStatus, action: str) -> None:
        if not can_transition(scan.status, target):
            raise ScanNotReady(
                f"Scan cannot be {action} while {scan.status}",
                details={"status": scan.status},
            )

    @staticmethod
    def _require_confirmed(scan: Scan) -> None:
        if not scan.is_confirmed:
            raise ScanNotReady(
                "Scan must be confirmed first",
                details={"status": scan.status},
            )

    async def _fail(
        self,
        repo: ScanRepository,
        scan_id: str,
        error: BaseException,
        log: LoggerAdapter,
    ) -> Optional[Scan]:
        """Move the scan to ERROR if it is still in a state that allows it."""
        message = error.message if isinstance(error, AppError) else str(error) or type(error).__name__
        await repo.rollback()
        scan = await repo.find_scan(scan_id)
        if scan is None:
            return None
        if not can_transition(scan.status, ScanStatus.ERROR):
            log.warning(f"Not failing scan in status {scan.status}: {message}")
            return scan

        transition(scan, ScanStatus.ERROR, error_message=message)
        await repo.save_scan(scan)
        log.warning(f"Scan failed: {message}")
        return scan

    async def _reload_in(
        self,
        repo: ScanRepository,
        scan_id: str,
        expected: ScanStatus,
    ) -> Scan:
        """Re-read the scan after a backend call and check nobody moved it meanwhile."""
        scan = await repo.get_scan(scan_id)
        if scan.status != expected.value:
            raise ScanNotReady(
                f"Scan left {expected.value} while processing",
                details={"status": scan.status},
            )
        return scan
