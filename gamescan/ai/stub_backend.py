"""Deterministic inference backend for tests and local development."""

import asyncio
from typing import Optional

from gamescan.ai.backend import InferenceBackend
from gamescan.ai.types import (
    Candidate,
    Evidence,
    ListingRequest,
    ListingResult,
    NormalizationResult,
    PricingAnalysisRequest,
    PricingAnalysisResult,
    RecognitionResult,
    TitleVariant,
)
from gamescan.enums import TitleStyle, condition_label, language_label
from gamescan.pipeline.pricing import analyze_pricing


class StubInferenceBackend(InferenceBackend):
    """
    Returns fixed, realistic responses without calling any provider.

    Pricing delegates to the local pricing engine, so stub pricing results
    are the reference numbers.
    """

    name = "mock"

    def __init__(self, delay: float = 0.1):
        self.delay = delay

    async def _simulate_delay(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    async def recognize(self, image_base64: str, mime_type: str) -> RecognitionResult:
        await self._simulate_delay()
        return RecognitionResult(
            best=Candidate(
                title="Die Siedler von Catan",
                edition="Basisspiel",
                language_guess="DE",
                confidence=92,
            ),
            alternatives=[
                Candidate(title="Catan - Das Spiel", edition="Jubiläumsausgabe", confidence=45),
                Candidate(title="Catan Universe", confidence=20),
            ],
            evidence=Evidence(
                visible_text=["CATAN", "KOSMOS", "Klaus Teuber"],
                visual_cues=["Hexagonal tiles visible", "Resource cards", "Wooden pieces"],
            ),
            needs_confirmation=False,
        )

    async def normalize(
        self, user_input: str, original_suggestion: Optional[str] = None
    ) -> NormalizationResult:
        await self._simulate_delay()
        return NormalizationResult(
            normalized_title=user_input.strip(),
            keywords=[user_input.lower(), "brettspiel", "gesellschaftsspiel"],
        )

    async def analyze_pricing(self, request: PricingAnalysisRequest) -> PricingAnalysisResult:
        await self._simulate_delay()
        recommendation = analyze_pricing(
            request.condition, request.is_complete, request.price_samples
        )
        return PricingAnalysisResult.model_validate(recommendation.to_dict())

    async def generate_listing(self, request: ListingRequest) -> ListingResult:
        await self._simulate_delay()

        title = request.game_title
        condition = condition_label(request.condition)

        logistics = []
        if request.shipping_available:
            logistics.append("📦 Versand möglich")
        if request.pickup_location:
            logistics.append(f"📍 Abholung in {request.pickup_location}")
        if request.paypal_available:
            logistics.append("💳 PayPal akzeptiert")

        paragraphs = [
            f'Verkaufe hier "{title}", Zustand: {condition}.',
            "Das Spiel ist "
            + ("vollständig" if request.is_complete else "möglicherweise unvollständig")
            + " und wurde pfleglich behandelt.",
        ]
        if logistics:
            paragraphs.append("\n".join(logistics))
        if request.additional_notes:
            paragraphs.append(request.additional_notes)
        paragraphs.append("Bei Fragen einfach melden!")

        return ListingResult(
            title_variants=[
                TitleVariant(title=f"{title} - {condition}", style=TitleStyle.NEUTRAL),
                TitleVariant(title=f"{title} ⭐ TOP Zustand!", style=TitleStyle.URGENT),
                TitleVariant(title=f"{title} sucht neues Zuhause 🎲", style=TitleStyle.FRIENDLY),
            ],
            description="\n\n".join(paragraphs),
            bullet_points=[
                f"Zustand: {condition}",
                f"Sprache: {language_label(request.language)}",
                "Vollständig" if request.is_complete else "Vollständigkeit prüfen",
                "Versand möglich" if request.shipping_available else "Nur Abholung",
                "Nichtraucherhaushalt",
            ],
            search_tags=[
                "".join(title.lower().split()),
                "brettspiel",
                "gesellschaftsspiel",
                "spiel",
                "familienspiel",
            ],
        )
