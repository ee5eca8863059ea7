"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gamescan.config import settings
from gamescan.pipeline.service import ScanPipeline
from gamescan.worker.scan_watchdog import scan_watchdog_check

logger = logging.getLogger(__name__)


def setup_scheduler(pipeline: ScanPipeline) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Returns:
        Configured scheduler instance (not started)
    """
    scheduler = AsyncIOScheduler()

    # Scan watchdog - fail scans stuck in ANALYZING/PRICING/DRAFTING
    scheduler.add_job(
        scan_watchdog_check,
        IntervalTrigger(seconds=settings.scan_watchdog_interval_seconds),
        kwargs={
            "session_factory": pipeline.session_factory,
            "stale_seconds": settings.stale_scan_seconds,
        },
        id="scan_watchdog",
        name="Stuck scan watchdog",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured: scan watchdog every %d seconds (stale after %d seconds)",
        settings.scan_watchdog_interval_seconds,
        settings.stale_scan_seconds,
    )

    return scheduler
