"""Detached background tasks for scan recognition."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

RecognitionJob = Callable[[str], Awaitable[object]]


class RecognitionTaskRunner:
    """
    Runs one recognition task per scan, detached from the upload request.

    The outcome of a task is recorded on the scan itself; the runner only
    keeps the tasks alive, logs crashes and lets callers wait or drain.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def is_running(self, scan_id: str) -> bool:
        return scan_id in self._tasks

    def schedule(self, scan_id: str, job: RecognitionJob) -> Optional[asyncio.Task]:
        """Start ``job(scan_id)`` unless a task for this scan is still running."""
        if self.is_running(scan_id):
            logger.debug(f"Recognition for scan {scan_id} already scheduled")
            return None

        task = asyncio.create_task(job(scan_id), name=f"recognize-{scan_id}")
        self._tasks[scan_id] = task

        def handle_task_done(t: asyncio.Task):
            self._tasks.pop(scan_id, None)
            if t.cancelled():
                logger.warning(f"Recognition task for scan {scan_id} was cancelled")
                return
            exc = t.exception()
            if exc is not None:
                logger.error(
                    f"Recognition task for scan {scan_id} crashed: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__),
                )

        task.add_done_callback(handle_task_done)
        return task

    async def wait_for(self, scan_id: str, timeout: Optional[float] = None) -> None:
        """Wait until the scan's recognition task (if any) has finished."""
        task = self._tasks.get(scan_id)
        if task is None:
            return
        await asyncio.wait({task}, timeout=timeout)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every outstanding task."""
        tasks = set(self._tasks.values())
        if tasks:
            logger.info(f"Waiting for {len(tasks)} recognition tasks")
            await asyncio.wait(tasks, timeout=timeout)

    async def close(self, timeout: float = 10.0) -> None:
        """Give outstanding tasks ``timeout`` seconds, then cancel the rest."""
        await self.drain(timeout=timeout)
        remaining = list(self._tasks.values())
        for task in remaining:
            task.cancel()
        if remaining:
            await asyncio.gather(*remaining, return_exceptions=True)
        self._tasks.clear()
