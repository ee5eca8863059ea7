#!/usr/bin/env python3
"""
Diagnose scans sitting in an intermediate status and optionally fail them.
"""

import asyncio
from datetime import datetime
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from gamescan.config import settings
from gamescan.db.models import Scan
from gamescan.db.session import AsyncSessionLocal
from gamescan.enums import ScanStatus
from gamescan.pipeline.state_machine import IN_FLIGHT_STATUSES
from gamescan.worker.scan_watchdog import fail_stale_scans

# Statuses that are not final but wait on the client or a stage
INTERMEDIATE_STATUSES = [
    ScanStatus.UPLOADED,
    ScanStatus.ANALYZING,
    ScanStatus.PRICING,
    ScanStatus.DRAFTING,
]


async def diagnose(stale_seconds: int, fail: bool) -> None:
    print("Stuck Scan Diagnosis")
    print("====================")
    print(f"Stale threshold: {stale_seconds}s")
    print("")

    now = datetime.utcnow()
    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(Scan)
            .where(Scan.status.in_([s.value for s in INTERMEDIATE_STATUSES]))
            .order_by(Scan.updated_at)
        )
        scans = result.scalars().all()

    stale = []
    if not scans:
        print("Intermediate scans: none")
    else:
        print(f"Intermediate scans: {len(scans)}")
        for scan in scans:
            age_s = (now - scan.updated_at).total_seconds()
            is_stale = (
                ScanStatus(scan.status) in IN_FLIGHT_STATUSES and age_s > stale_seconds
            )
            if is_stale:
                stale.append(scan)
            print(
                f"  - id={scan.id} status={scan.status} updated_at={scan.updated_at} "
                f"age_s={age_s:.0f}{' STALE' if is_stale else ''}"
            )

    print("")
    print("Recommendations")
    print("----------------")
    if not stale:
        print("- No issues detected.")
        return

    if not fail:
        print(f"- {len(stale)} scans are stuck. Re-run with --fail to move them to ERROR.")
        return

    failed = await fail_stale_scans(AsyncSessionLocal, stale_seconds, reason_prefix="Operator")
    print(f"- Moved {len(failed)} scans to ERROR.")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Diagnose scans stuck in an intermediate status")
    parser.add_argument(
        "--stale-seconds",
        type=int,
        default=settings.stale_scan_seconds,
        help="Idle time after which an in-flight scan counts as stuck",
    )
    parser.add_argument(
        "--fail",
        action="store_true",
        help="Move stuck scans to ERROR",
    )
    args = parser.parse_args()

    asyncio.run(diagnose(args.stale_seconds, args.fail))
