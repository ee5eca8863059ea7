"""Persistence operations the pipeline stages rely on."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gamescan.db.models import ListingDraft, PriceSample, Scan
from gamescan.enums import PriceSource, ScanStatus
from gamescan.errors import NotFound


class ScanRepository:
    """
    Data access for scans and the rows scoped to them.

    Wraps a single AsyncSession; every write commits immediately so that a
    status change is visible to pollers as soon as it happens.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_scan(
        self,
        image_key: str,
        image_mime_type: str,
        image_size: int,
        session_id: Optional[str] = None,
    ) -> Scan:
        scan = Scan(
            image_key=image_key,
            image_mime_type=image_mime_type,
            image_size=image_size,
            status=ScanStatus.UPLOADED.value,
            session_id=session_id,
        )
        self.db.add(scan)
        await self.db.commit()
        await self.db.refresh(scan)
        return scan

    async def find_scan(self, scan_id: str) -> Optional[Scan]:
        """Return the scan as currently stored, or None when the id is unknown."""
        return await self.db.get(Scan, scan_id, populate_existing=True)

    async def get_scan(self, scan_id: str) -> Scan:
        scan = await self.find_scan(scan_id)
        if scan is None:
            raise NotFound("Scan not found", details={"scanId": scan_id})
        return scan

    async def save_scan(self, scan: Scan) -> Scan:
        self.db.add(scan)
        await self.db.commit()
        return scan

    async def add_price_sample(
        self,
        scan_id: str,
        price: float,
        source: PriceSource = PriceSource.MANUAL,
        condition_hint: Optional[str] = None,
        url: Optional[str] = None,
    ) -> PriceSample:
        sample = PriceSample(
            scan_id=scan_id,
            source=source.value,
            price=Decimal(str(price)),
            currency="EUR",
            condition_hint=condition_hint,
            url=url,
        )
        self.db.add(sample)
        await self.db.commit()
        await self.db.refresh(sample)
        return sample

    async def find_draft(self, scan_id: str) -> Optional[ListingDraft]:
        result = await self.db.execute(
            select(ListingDraft).where(ListingDraft.scan_id == scan_id)
        )
        return result.scalar_one_or_none()

    async def upsert_draft(self, scan_id: str, **fields: Any) -> ListingDraft:
        """Create the scan's draft or overwrite the existing row in place."""
        draft = await self.find_draft(scan_id)
        if draft is None:
            draft = ListingDraft(scan_id=scan_id, **fields)
            self.db.add(draft)
        else:
            for name, value in fields.items():
                setattr(draft, name, value)
        await self.db.commit()
        await self.db.refresh(draft)
        return draft

    async def list_stale_scans(
        self, statuses: Iterable[ScanStatus], updated_before: datetime
    ) -> List[Scan]:
        """Scans sitting in one of `statuses` without an update since `updated_before`."""
        result = await self.db.execute(
            select(Scan)
            .where(
                Scan.status.in_([s.value for s in statuses]),
                Scan.updated_at < updated_before,
            )
            .order_by(Scan.updated_at)
        )
        return list(result.scalars().all())

    async def rollback(self) -> None:
        """Discard a failed transaction so the session can be reused."""
        await self.db.rollback()
