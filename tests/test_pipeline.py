"""Tests for the scan pipeline stages against the stub backend."""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from conftest import create_analyzed_scan
from gamescan.ai.stub_backend import StubInferenceBackend
from gamescan.ai.types import ListingResult, TitleVariant
from gamescan.db.models import ListingDraft, PriceSample, Scan
from gamescan.db.repository import ScanRepository
from gamescan.enums import ScanStatus
from gamescan.errors import InferenceBackendError, InvalidFileType, NotFound, ScanNotReady
from gamescan.pipeline.service import ScanPipeline
from gamescan.pipeline.types import ConfirmInput, DraftInput, ManualPrice, PricingInput
from gamescan.worker.scan_watchdog import fail_stale_scans, scan_watchdog_check


class BlockingRecognitionBackend(StubInferenceBackend):
    """Recognition waits until the test releases it."""

    def __init__(self):
        super().__init__(delay=0)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def recognize(self, image_base64, mime_type):
        self.started.set()
        await self.release.wait()
        return await super().recognize(image_base64, mime_type)


class FailingRecognitionBackend(StubInferenceBackend):
    async def recognize(self, image_base64, mime_type):
        raise RuntimeError("vision model unavailable")


class ShortListingBackend(StubInferenceBackend):
    """Returns four bullet points instead of five."""

    async def generate_listing(self, request):
        listing = await super().generate_listing(request)
        return ListingResult(
            title_variants=listing.title_variants,
            description=listing.description,
            bullet_points=listing.bullet_points[:4],
            search_tags=listing.search_tags,
        )


class ExtraTitleBackend(StubInferenceBackend):
    async def generate_listing(self, request):
        listing = await super().generate_listing(request)
        return ListingResult(
            title_variants=[*listing.title_variants, TitleVariant(title="Extra", style="NEUTRAL")],
            description=listing.description,
            bullet_points=listing.bullet_points,
            search_tags=listing.search_tags,
        )


class HangingListingBackend(StubInferenceBackend):
    async def generate_listing(self, request):
        await asyncio.sleep(30)


class FailingNormalizeBackend(StubInferenceBackend):
    async def normalize(self, user_input, original_suggestion=None):
        raise RuntimeError("normalizer unavailable")


class FailingPricingBackend(StubInferenceBackend):
    async def analyze_pricing(self, request):
        raise RuntimeError("pricing model unavailable")


class HangingPricingBackend(StubInferenceBackend):
    async def analyze_pricing(self, request):
        await asyncio.sleep(30)


async def _scan(pipeline, scan_id):
    return await pipeline.get_scan(scan_id)


async def _price_samples(db, scan_id):
    result = await db.execute(
        select(PriceSample).where(PriceSample.scan_id == scan_id).order_by(PriceSample.id)
    )
    return list(result.scalars().all())


def _pipeline_with(backend, file_store, session_factory, **kwargs) -> ScanPipeline:
    return ScanPipeline(
        backend=backend,
        file_store=file_store,
        session_factory=session_factory,
        **kwargs,
    )


# Recognition


@pytest.mark.asyncio
async def test_create_returns_uploaded_before_recognition(pipeline, jpeg_bytes):
    created = await pipeline.create_scan(jpeg_bytes, "image/jpeg", session_id="sess-1")

    assert created.status == ScanStatus.UPLOADED
    assert created.to_wire() == {"scanId": created.scan_id, "status": "UPLOADED"}

    await pipeline.task_runner.wait_for(created.scan_id, timeout=5)
    scan = await _scan(pipeline, created.scan_id)
    assert scan.status == ScanStatus.ANALYZED


@pytest.mark.asyncio
async def test_recognition_stores_candidates_best_first(pipeline, analyzed_scan_id):
    scan = await _scan(pipeline, analyzed_scan_id)

    titles = [c.title for c in scan.candidates]
    assert titles[0] == "Die Siedler von Catan"
    assert [c.confidence for c in scan.candidates] == [92, 45, 20]
    assert "KOSMOS" in scan.evidence.visible_text
    assert scan.error is None


@pytest.mark.asyncio
async def test_recognition_passes_through_analyzing(file_store, session_factory, jpeg_bytes):
    backend = BlockingRecognitionBackend()
    pipeline = _pipeline_with(backend, file_store, session_factory)
    try:
        created = await pipeline.create_scan(jpeg_bytes, "image/jpeg")
        await asyncio.wait_for(backend.started.wait(), timeout=5)

        scan = await _scan(pipeline, created.scan_id)
        assert scan.status == ScanStatus.ANALYZING
        assert scan.candidates is None
        assert pipeline.task_runner.is_running(created.scan_id)
        assert pipeline.task_runner.pending_count == 1
        # A second schedule for the same scan is ignored
        assert pipeline.task_runner.schedule(created.scan_id, pipeline.run_recognition) is None

        backend.release.set()
        await pipeline.task_runner.wait_for(created.scan_id, timeout=5)
        await asyncio.sleep(0)
        assert not pipeline.task_runner.is_running(created.scan_id)
        assert pipeline.task_runner.pending_count == 0
        assert (await _scan(pipeline, created.scan_id)).status == ScanStatus.ANALYZED
    finally:
        backend.release.set()
        await pipeline.close()


@pytest.mark.asyncio
async def test_recognition_failure_is_absorbed_into_error(file_store, session_factory, jpeg_bytes):
    pipeline = _pipeline_with(FailingRecognitionBackend(delay=0), file_store, session_factory)
    try:
        created = await pipeline.create_scan(jpeg_bytes, "image/jpeg")
        await pipeline.task_runner.wait_for(created.scan_id, timeout=5)

        scan = await _scan(pipeline, created.scan_id)
        assert scan.status == ScanStatus.ERROR
        assert "vision model unavailable" in scan.error
        assert scan.candidates is None
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_recognition_rerun_is_a_no_op(pipeline, analyzed_scan_id):
    scan = await pipeline.run_recognition(analyzed_scan_id)
    assert scan.status == ScanStatus.ANALYZED.value


@pytest.mark.asyncio
async def test_recognition_for_unknown_scan_returns_none(pipeline):
    assert await pipeline.run_recognition("does-not-exist") is None


@pytest.mark.asyncio
async def test_invalid_upload_creates_no_scan(pipeline, session_factory):
    with pytest.raises(InvalidFileType):
        await pipeline.create_scan(b"GIF89a", "image/gif")

    async with session_factory() as db:
        assert await db.scalar(select(func.count(Scan.id))) == 0


# Confirmation


@pytest.mark.asyncio
async def test_confirm_on_analyzed_scan(pipeline, analyzed_scan_id, catan_confirmation):
    result = await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)

    assert result.normalized_title == "Die Siedler von Catan"
    assert "brettspiel" in result.keywords
    assert result.status == ScanStatus.ANALYZED

    scan = await _scan(pipeline, analyzed_scan_id)
    assert scan.status == ScanStatus.ANALYZED
    assert scan.confirmed_title == "Die Siedler von Catan"
    assert scan.confirmed_condition == "GOOD"
    assert scan.confirmed_language == "DE"
    assert scan.is_complete is True
    assert scan.normalized_title == "Die Siedler von Catan"


@pytest.mark.asyncio
async def test_confirm_while_recognition_in_flight_fails_fast(
    file_store, session_factory, jpeg_bytes, catan_confirmation
):
    backend = BlockingRecognitionBackend()
    pipeline = _pipeline_with(backend, file_store, session_factory)
    try:
        created = await pipeline.create_scan(jpeg_bytes, "image/jpeg")
        await asyncio.wait_for(backend.started.wait(), timeout=5)

        with pytest.raises(ScanNotReady):
            await pipeline.confirm_scan(created.scan_id, catan_confirmation)
        with pytest.raises(ScanNotReady):
            await pipeline.calculate_pricing(created.scan_id, PricingInput())
    finally:
        backend.release.set()
        await pipeline.close()


@pytest.mark.asyncio
async def test_confirm_on_uploaded_scan_fails(pipeline, session_factory, catan_confirmation):
    async with session_factory() as db:
        scan = await ScanRepository(db).create_scan("missing.jpg", "image/jpeg", 0)

    with pytest.raises(ScanNotReady):
        await pipeline.confirm_scan(scan.id, catan_confirmation)


@pytest.mark.asyncio
async def test_confirm_passes_top_candidate_as_suggestion(
    file_store, session_factory, jpeg_bytes, catan_confirmation
):
    class RecordingBackend(StubInferenceBackend):
        suggestion = None

        async def normalize(self, user_input, original_suggestion=None):
            RecordingBackend.suggestion = original_suggestion
            return await super().normalize(user_input, original_suggestion)

    pipeline = _pipeline_with(RecordingBackend(delay=0), file_store, session_factory)
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)
        await pipeline.confirm_scan(scan_id, catan_confirmation)
        assert RecordingBackend.suggestion == "Die Siedler von Catan"
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_reconfirm_after_pricing_keeps_status(pipeline, analyzed_scan_id, catan_confirmation):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    await pipeline.calculate_pricing(analyzed_scan_id, PricingInput())

    changed = catan_confirmation.model_copy(update={"condition": "LIKE_NEW"})
    result = await pipeline.confirm_scan(analyzed_scan_id, changed)

    assert result.status == ScanStatus.PRICED
    scan = await _scan(pipeline, analyzed_scan_id)
    assert scan.status == ScanStatus.PRICED
    assert scan.confirmed_condition == "LIKE_NEW"


@pytest.mark.asyncio
async def test_confirm_on_drafted_scan_fails(pipeline, analyzed_scan_id, catan_confirmation):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    await pipeline.generate_draft(analyzed_scan_id, DraftInput(price=25))

    with pytest.raises(ScanNotReady):
        await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)


@pytest.mark.asyncio
async def test_normalize_failure_leaves_scan_unconfirmed(
    file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(FailingNormalizeBackend(delay=0), file_store, session_factory)
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)

        with pytest.raises(InferenceBackendError):
            await pipeline.confirm_scan(scan_id, catan_confirmation)

        scan = await _scan(pipeline, scan_id)
        assert scan.status == ScanStatus.ANALYZED
        assert scan.confirmed_title is None
        assert scan.confirmed_condition is None
        assert scan.normalized_title is None
        assert scan.error is None
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_unknown_scan_is_not_found(pipeline, catan_confirmation):
    with pytest.raises(NotFound):
        await pipeline.get_scan("nope")
    with pytest.raises(NotFound):
        await pipeline.confirm_scan("nope", catan_confirmation)
    with pytest.raises(NotFound):
        await pipeline.calculate_pricing("nope", PricingInput())
    with pytest.raises(NotFound):
        await pipeline.generate_draft("nope", DraftInput(price=10))


# Pricing


@pytest.mark.asyncio
async def test_pricing_requires_confirmation(pipeline, analyzed_scan_id):
    with pytest.raises(ScanNotReady):
        await pipeline.calculate_pricing(analyzed_scan_id, PricingInput())
    assert (await _scan(pipeline, analyzed_scan_id)).status == ScanStatus.ANALYZED


@pytest.mark.asyncio
async def test_pricing_persists_manual_prices(
    pipeline, session_factory, analyzed_scan_id, catan_confirmation
):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    data = PricingInput(
        manual_prices=[
            ManualPrice(price=25, condition_hint="gut", source="KLEINANZEIGEN"),
            ManualPrice(price=30),
            ManualPrice(price=20, url="https://example.org/listing/1"),
        ]
    )

    result = await pipeline.calculate_pricing(analyzed_scan_id, data)

    assert result.recommended_price == 21
    assert result.quick_sale_price == 17
    assert result.negotiation_anchor == 24
    assert result.range_low == 15
    assert result.range_high == 28
    assert result.confidence == 85
    assert [s["price"] for s in result.samples] == [25, 30, 20]
    assert result.samples[0]["source"] == "KLEINANZEIGEN"

    async with session_factory() as db:
        samples = await _price_samples(db, analyzed_scan_id)
    assert [float(s.price) for s in samples] == [25, 30, 20]
    assert all(s.currency == "EUR" for s in samples)
    assert (await _scan(pipeline, analyzed_scan_id)).status == ScanStatus.PRICED


@pytest.mark.asyncio
async def test_pricing_without_samples_uses_estimate_without_storing_it(
    pipeline, session_factory, analyzed_scan_id, catan_confirmation
):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)

    result = await pipeline.calculate_pricing(analyzed_scan_id, PricingInput())

    assert result.recommended_price == 21
    assert result.confidence == 60
    assert len(result.samples) == 1
    assert result.samples[0]["price"] == 25
    assert result.samples[0]["conditionHint"] == "Geschätzter Durchschnittspreis"

    async with session_factory() as db:
        count = await db.scalar(select(func.count(PriceSample.id)))
    assert count == 0


@pytest.mark.asyncio
async def test_repricing_is_allowed(pipeline, analyzed_scan_id, catan_confirmation):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    await pipeline.calculate_pricing(analyzed_scan_id, PricingInput())

    result = await pipeline.calculate_pricing(
        analyzed_scan_id, PricingInput(manual_prices=[ManualPrice(price=40)])
    )
    assert result.recommended_price == 34  # 40 * 0.85
    assert (await _scan(pipeline, analyzed_scan_id)).status == ScanStatus.PRICED


@pytest.mark.asyncio
async def test_backend_pricing_mode_matches_engine(
    backend, file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(backend, file_store, session_factory, pricing_mode="backend")
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)
        await pipeline.confirm_scan(scan_id, catan_confirmation)
        result = await pipeline.calculate_pricing(
            scan_id,
            PricingInput(manual_prices=[ManualPrice(price=p) for p in (25, 30, 20)]),
        )
        assert result.recommended_price == 21
        assert result.range_high == 28
        assert result.confidence == 85
    finally:
        await pipeline.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "backend_cls,message",
    [(FailingPricingBackend, "pricing model unavailable"), (HangingPricingBackend, "timed out")],
)
async def test_backend_pricing_failure_moves_scan_to_error(
    backend_cls, message, file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(
        backend_cls(delay=0),
        file_store,
        session_factory,
        pricing_mode="backend",
        inference_timeout_seconds=0.05,
    )
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)
        await pipeline.confirm_scan(scan_id, catan_confirmation)

        with pytest.raises(InferenceBackendError):
            await pipeline.calculate_pricing(
                scan_id,
                PricingInput(manual_prices=[ManualPrice(price=p) for p in (25, 30)]),
            )

        scan = await _scan(pipeline, scan_id)
        assert scan.status == ScanStatus.ERROR
        assert message in scan.error

        # Samples written before the backend call stay stored
        async with session_factory() as db:
            samples = await _price_samples(db, scan_id)
        assert [float(s.price) for s in samples] == [25, 30]
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_pricing_a_drafted_scan_fails(pipeline, analyzed_scan_id, catan_confirmation):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    await pipeline.generate_draft(analyzed_scan_id, DraftInput(price=25))

    with pytest.raises(ScanNotReady):
        await pipeline.calculate_pricing(analyzed_scan_id, PricingInput())

    assert (await _scan(pipeline, analyzed_scan_id)).status == ScanStatus.DRAFTED
    with pytest.raises(ScanNotReady):
        await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)


# Drafting


@pytest.mark.asyncio
async def test_draft_requires_confirmation(pipeline, analyzed_scan_id):
    with pytest.raises(ScanNotReady):
        await pipeline.generate_draft(analyzed_scan_id, DraftInput(price=25))


@pytest.mark.asyncio
async def test_draft_without_prior_pricing(pipeline, session_factory, analyzed_scan_id, catan_confirmation):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)

    result = await pipeline.generate_draft(
        analyzed_scan_id,
        DraftInput(price=25, pickup_location="Köln", shipping_available=True),
    )

    assert len(result.title_variants) == 3
    assert len(result.bullet_points) == 5
    assert len(result.search_tags) == 5
    assert result.suggested_price == 25
    assert result.metadata.game_title == "Die Siedler von Catan"
    assert result.metadata.condition == "GOOD"
    assert (await _scan(pipeline, analyzed_scan_id)).status == ScanStatus.DRAFTED

    async with session_factory() as db:
        draft = await ScanRepository(db).find_draft(analyzed_scan_id)
    assert float(draft.suggested_price) == 25
    assert float(draft.quick_sale_price) == 20
    assert float(draft.negotiation_anchor) == 28.75
    assert float(draft.range_low) == 17.5
    assert float(draft.range_high) == 32.5
    assert draft.price_confidence == 70
    assert draft.reasoning_bullets == []
    assert draft.pickup_location == "Köln"
    assert draft.shipping_available is True
    assert draft.paypal_available is False


@pytest.mark.asyncio
async def test_regenerating_draft_keeps_row_identity(
    pipeline, session_factory, analyzed_scan_id, catan_confirmation
):
    await pipeline.confirm_scan(analyzed_scan_id, catan_confirmation)
    await pipeline.generate_draft(analyzed_scan_id, DraftInput(price=25, pickup_location="Köln"))
    async with session_factory() as db:
        first = await ScanRepository(db).find_draft(analyzed_scan_id)

    await pipeline.generate_draft(analyzed_scan_id, DraftInput(price=30, pickup_location="Bonn"))

    async with session_factory() as db:
        second = await ScanRepository(db).find_draft(analyzed_scan_id)
        count = await db.scalar(select(func.count(ListingDraft.id)))
    assert count == 1
    assert second.id == first.id
    assert second.pickup_location == "Bonn"
    assert float(second.suggested_price) == 30


@pytest.mark.asyncio
@pytest.mark.parametrize("backend_cls", [ShortListingBackend, ExtraTitleBackend])
async def test_listing_count_violation_is_backend_error(
    backend_cls, file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(backend_cls(delay=0), file_store, session_factory)
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)
        await pipeline.confirm_scan(scan_id, catan_confirmation)

        with pytest.raises(InferenceBackendError):
            await pipeline.generate_draft(scan_id, DraftInput(price=25))

        scan = await _scan(pipeline, scan_id)
        assert scan.status == ScanStatus.ERROR
        assert scan.error
        async with session_factory() as db:
            assert await ScanRepository(db).find_draft(scan_id) is None
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_hanging_backend_times_out_into_error(
    file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(
        HangingListingBackend(delay=0),
        file_store,
        session_factory,
        inference_timeout_seconds=0.05,
    )
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)
        await pipeline.confirm_scan(scan_id, catan_confirmation)

        with pytest.raises(InferenceBackendError):
            await pipeline.generate_draft(scan_id, DraftInput(price=25))

        scan = await _scan(pipeline, scan_id)
        assert scan.status == ScanStatus.ERROR
        assert "timed out" in scan.error
    finally:
        await pipeline.close()


@pytest.mark.asyncio
async def test_error_scan_rejects_every_stage(
    file_store, session_factory, jpeg_bytes, catan_confirmation
):
    pipeline = _pipeline_with(FailingRecognitionBackend(delay=0), file_store, session_factory)
    try:
        scan_id = await create_analyzed_scan(pipeline, jpeg_bytes)

        with pytest.raises(ScanNotReady):
            await pipeline.confirm_scan(scan_id, catan_confirmation)
        with pytest.raises(ScanNotReady):
            await pipeline.calculate_pricing(scan_id, PricingInput())
        with pytest.raises(ScanNotReady):
            await pipeline.generate_draft(scan_id, DraftInput(price=25))
        assert (await _scan(pipeline, scan_id)).status == ScanStatus.ERROR
    finally:
        await pipeline.close()


# End to end


@pytest.mark.asyncio
async def test_full_pipeline(pipeline, jpeg_bytes, catan_confirmation):
    seen = []

    created = await pipeline.create_scan(jpeg_bytes, "image/jpeg")
    seen.append(created.status)
    await pipeline.task_runner.wait_for(created.scan_id, timeout=5)

    scan = await _scan(pipeline, created.scan_id)
    seen.append(scan.status)
    assert scan.candidates[0].title == "Die Siedler von Catan"
    assert scan.candidates[0].confidence == 92

    confirmed = await pipeline.confirm_scan(created.scan_id, catan_confirmation)
    assert confirmed.normalized_title

    priced = await pipeline.calculate_pricing(
        created.scan_id,
        PricingInput(manual_prices=[ManualPrice(price=p) for p in (25, 30, 20)]),
    )
    seen.append((await _scan(pipeline, created.scan_id)).status)
    assert (
        priced.recommended_price,
        priced.quick_sale_price,
        priced.negotiation_anchor,
        priced.range_low,
        priced.range_high,
        priced.confidence,
    ) == (21, 17, 24, 15, 28, 85)

    draft = await pipeline.generate_draft(created.scan_id, DraftInput(price=25))
    seen.append((await _scan(pipeline, created.scan_id)).status)
    assert (len(draft.title_variants), len(draft.bullet_points), len(draft.search_tags)) == (3, 5, 5)

    assert seen == [
        ScanStatus.UPLOADED,
        ScanStatus.ANALYZED,
        ScanStatus.PRICED,
        ScanStatus.DRAFTED,
    ]


# Watchdog


@pytest.mark.asyncio
async def test_watchdog_fails_stuck_scans(session_factory):
    async with session_factory() as db:
        repo = ScanRepository(db)
        stuck = await repo.create_scan("a.jpg", "image/jpeg", 1)
        stuck.status = ScanStatus.PRICING.value
        stuck.updated_at = datetime.utcnow() - timedelta(minutes=30)
        await repo.save_scan(stuck)

        fresh = await repo.create_scan("b.jpg", "image/jpeg", 1)
        fresh.status = ScanStatus.ANALYZING.value
        await repo.save_scan(fresh)

        waiting = await repo.create_scan("c.jpg", "image/jpeg", 1)
        waiting.updated_at = datetime.utcnow() - timedelta(minutes=30)
        await repo.save_scan(waiting)

    failed = await fail_stale_scans(session_factory, stale_seconds=300)
    assert failed == [stuck.id]

    async with session_factory() as db:
        repo = ScanRepository(db)
        assert (await repo.get_scan(stuck.id)).status == ScanStatus.ERROR.value
        assert "Watchdog" in (await repo.get_scan(stuck.id)).error_message
        assert (await repo.get_scan(fresh.id)).status == ScanStatus.ANALYZING.value
        assert (await repo.get_scan(waiting.id)).status == ScanStatus.UPLOADED.value

    assert await scan_watchdog_check(session_factory, stale_seconds=300) == 0
