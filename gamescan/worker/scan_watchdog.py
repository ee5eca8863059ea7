"""Watchdog task to fail scans stuck in an in-flight status."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gamescan import metrics
from gamescan.config import settings
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.pipeline.state_machine import IN_FLIGHT_STATUSES, can_transition, transition

logger = logging.getLogger(__name__)


async def fail_stale_scans(
    session_factory: async_sessionmaker[AsyncSession],
    stale_seconds: int,
    reason_prefix: str = "Watchdog",
) -> List[str]:
    """
    Move scans stuck in an in-flight status to ERROR.

    Args:
        session_factory: Factory for the session used for the sweep
        stale_seconds: Idle time after which an in-flight scan counts as stuck
        reason_prefix: Prefix of the stored error message

    Returns:
        Ids of the scans that were failed
    """
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=stale_seconds)
    failed: List[str] = []

    async with session_factory() as db:
        repo = ScanRepository(db)
        for scan in await repo.list_stale_scans(IN_FLIGHT_STATUSES, cutoff):
            from_status = scan.status
            if not can_transition(from_status, ScanStatus.ERROR):
                continue
            idle = (now - scan.updated_at).total_seconds()
            transition(
                scan,
                ScanStatus.ERROR,
                error_message=(
                    f"{reason_prefix}: scan stuck in {from_status} for {idle:.0f}s "
                    f"(> {stale_seconds}s)"
                ),
            )
            await repo.save_scan(scan)
            metrics.record_stale_scan_recovered(from_status)
            logger.warning(
                f"{reason_prefix}: failed scan {scan.id} stuck in {from_status} for {idle:.0f}s"
            )
            failed.append(scan.id)

    return failed


async def scan_watchdog_check(
    session_factory: async_sessionmaker[AsyncSession],
    stale_seconds: Optional[int] = None,
    reason_prefix: str = "Watchdog",
) -> int:
    """
    Fail scans whose backend call never came back.

    Logic:
    1. Find scans in ANALYZING, PRICING or DRAFTING not updated for
       ``stale_seconds``
    2. Move each of them to ERROR with a watchdog message

    Per-call timeouts normally resolve these first; the watchdog covers
    workers that died mid-stage.

    Returns:
        Number of scans failed
    """
    threshold = stale_seconds if stale_seconds is not None else settings.stale_scan_seconds
    try:
        failed = await fail_stale_scans(session_factory, threshold, reason_prefix=reason_prefix)
    except Exception as e:
        logger.error(f"Watchdog check failed: {e}", exc_info=True)
        return 0

    if failed:
        logger.warning(f"{reason_prefix}: recovered {len(failed)} stuck scans")
    else:
        logger.debug(f"{reason_prefix}: no stuck scans")
    return len(failed)
