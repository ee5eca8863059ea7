"""Draft stage: generate listing texts and store them as the scan's draft."""

from decimal import Decimal

from gamescan import metrics
from gamescan.ai.types import (
    LISTING_BULLET_POINTS,
    LISTING_SEARCH_TAGS,
    LISTING_TITLE_VARIANTS,
    ListingRequest,
    ListingResult,
)
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.errors import InferenceBackendError
from gamescan.logging_config import get_logger
from gamescan.pipeline.pricing import derive_price_figures
from gamescan.pipeline.stage import PipelineStage
from gamescan.pipeline.state_machine import transition
from gamescan.pipeline.types import DraftInput, DraftMetadata, DraftResult

# Confidence stored with a draft priced by the caller
DRAFT_PRICE_CONFIDENCE = 70


def check_listing_contract(listing: ListingResult) -> None:
    """Reject listings that do not have exactly 3 titles, 5 bullets and 5 tags."""
    counts = {
        "titleVariants": (len(listing.title_variants), LISTING_TITLE_VARIANTS),
        "bulletPoints": (len(listing.bullet_points), LISTING_BULLET_POINTS),
        "searchTags": (len(listing.search_tags), LISTING_SEARCH_TAGS),
    }
    violations = {
        name: {"expected": expected, "actual": actual}
        for name, (actual, expected) in counts.items()
        if actual != expected
    }
    if violations:
        metrics.record_listing_contract_violation()
        raise InferenceBackendError(
            "AI listing response violates the required structure",
            details={"violations": violations},
        )


def _money(value: float) -> Decimal:
    return Decimal(str(value))


class DraftStage(PipelineStage):
    """
    DRAFTING -> DRAFTED.

    The price comes from the caller, not from an earlier pricing run, so a
    confirmed scan can be drafted straight from ANALYZED.
    """

    async def generate(
        self, repo: ScanRepository, scan_id: str, data: DraftInput
    ) -> DraftResult:
        log = get_logger(__name__, scan_id=scan_id)

        scan = await repo.get_scan(scan_id)
        self._require_confirmed(scan)
        self._require_status(scan, ScanStatus.DRAFTING, "drafted")

        transition(scan, ScanStatus.DRAFTING)
        await repo.save_scan(scan)

        request = ListingRequest(
            game_title=scan.confirmed_title,
            edition=scan.confirmed_edition,
            condition=scan.confirmed_condition,
            language=scan.confirmed_language,
            is_complete=bool(scan.is_complete),
            price=data.price,
            pickup_location=data.pickup_location,
            shipping_available=data.shipping_available,
            paypal_available=data.paypal_available,
            additional_notes=data.additional_notes,
        )

        try:
            listing = await self._call_backend(
                "generate_listing",
                lambda: self.backend.generate_listing(request),
                log,
            )
            check_listing_contract(listing)

            figures = derive_price_figures(data.price, ndigits=2)
            await repo.upsert_draft(
                scan_id,
                suggested_price=_money(figures.recommended_price),
                quick_sale_price=_money(figures.quick_sale_price),
                negotiation_anchor=_money(figures.negotiation_anchor),
                range_low=_money(figures.range_low),
                range_high=_money(figures.range_high),
                reasoning_bullets=[],
                price_confidence=DRAFT_PRICE_CONFIDENCE,
                title_variants=[variant.to_wire() for variant in listing.title_variants],
                description=listing.description,
                bullet_points=list(listing.bullet_points),
                search_tags=list(listing.search_tags),
                pickup_location=data.pickup_location,
                shipping_available=data.shipping_available,
                paypal_available=data.paypal_available,
            )

            scan = await self._reload_in(repo, scan_id, ScanStatus.DRAFTING)
            transition(scan, ScanStatus.DRAFTED)
            await repo.save_scan(scan)
        except Exception as e:
            await self._fail(repo, scan_id, e, log)
            raise

        log.info(f"Draft generated for '{request.game_title}' at {data.price:g}€")
        return DraftResult(
            scan_id=scan.id,
            title_variants=listing.title_variants,
            description=listing.description,
            bullet_points=listing.bullet_points,
            search_tags=listing.search_tags,
            suggested_price=data.price,
            metadata=DraftMetadata(
                game_title=request.game_title,
                condition=request.condition,
                language=request.language,
                is_complete=request.is_complete,
            ),
        )
