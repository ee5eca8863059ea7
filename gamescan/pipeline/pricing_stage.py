"""Pricing stage: persist manual prices and compute a recommendation."""

from typing import List

from gamescan.ai.backend import InferenceBackend
from gamescan.ai.types import PricingAnalysisRequest
from gamescan.db.models import PriceSample, Scan
from gamescan.db.repository import ScanRepository
from gamescan.enums import PriceSource, ScanStatus
from gamescan.logging_config import LoggerAdapter, get_logger
from gamescan.pipeline.pricing import PriceObservation, analyze_pricing, default_observation
from gamescan.pipeline.stage import PipelineStage
from gamescan.pipeline.state_machine import transition
from gamescan.pipeline.types import PricingInput, PricingResult


def observation_from_sample(sample: PriceSample) -> PriceObservation:
    return PriceObservation(
        price=float(sample.price),
        source=PriceSource(sample.source),
        currency=sample.currency,
        condition_hint=sample.condition_hint,
        url=sample.url,
        timestamp=sample.created_at,
    )


class PricingStage(PipelineStage):
    """
    PRICING -> PRICED.

    In ``engine`` mode the recommendation comes from the local pricing
    engine; in ``backend`` mode the inference backend is asked instead.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        inference_timeout_seconds: float = 90.0,
        pricing_mode: str = "engine",
    ):
        super().__init__(backend, inference_timeout_seconds)
        self.pricing_mode = pricing_mode

    async def price(
        self, repo: ScanRepository, scan_id: str, data: PricingInput
    ) -> PricingResult:
        log = get_logger(__name__, scan_id=scan_id)

        scan = await repo.get_scan(scan_id)
        self._require_confirmed(scan)
        self._require_status(scan, ScanStatus.PRICING, "priced")

        transition(scan, ScanStatus.PRICING)
        await repo.save_scan(scan)

        try:
            observations: List[PriceObservation] = []
            for manual in data.manual_prices:
                sample = await repo.add_price_sample(
                    scan_id,
                    manual.price,
                    source=PriceSource(manual.source),
                    condition_hint=manual.condition_hint,
                    url=manual.url,
                )
                observations.append(observation_from_sample(sample))

            if not observations:
                # Estimated sample, reported but not stored
                observations.append(default_observation())

            result = await self._recommend(scan, observations, log)

            scan = await self._reload_in(repo, scan_id, ScanStatus.PRICING)
            transition(scan, ScanStatus.PRICED)
            await repo.save_scan(scan)
        except Exception as e:
            await self._fail(repo, scan_id, e, log)
            raise

        log.info(
            f"Priced at {result.recommended_price}€ from {len(observations)} samples "
            f"(confidence {result.confidence})"
        )
        return result

    async def _recommend(
        self,
        scan: Scan,
        observations: List[PriceObservation],
        log: LoggerAdapter,
    ) -> PricingResult:
        if self.pricing_mode == "backend":
            request = PricingAnalysisRequest(
                game_title=scan.confirmed_title,
                edition=scan.confirmed_edition,
                condition=scan.confirmed_condition,
                language=scan.confirmed_language,
                is_complete=bool(scan.is_complete),
                price_samples=observations,
            )
            analysis = await self._call_backend(
                "analyze_pricing",
                lambda: self.backend.analyze_pricing(request),
                log,
            )
            figures = analysis.model_dump()
        else:
            recommendation = analyze_pricing(
                scan.confirmed_condition, bool(scan.is_complete), observations
            )
            figures = {
                "recommended_price": recommendation.recommended_price,
                "quick_sale_price": recommendation.quick_sale_price,
                "negotiation_anchor": recommendation.negotiation_anchor,
                "range_low": recommendation.range_low,
                "range_high": recommendation.range_high,
                "reasoning_bullets": recommendation.reasoning_bullets,
                "confidence": recommendation.confidence,
            }

        return PricingResult(
            scan_id=scan.id,
            samples=[o.to_dict() for o in observations],
            **figures,
        )
