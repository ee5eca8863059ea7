"""Inference backend capability interface and backend selection."""

from abc import ABC, abstractmethod
from typing import Optional

from gamescan.ai.types import (
    ListingRequest,
    ListingResult,
    NormalizationResult,
    PricingAnalysisRequest,
    PricingAnalysisResult,
    RecognitionResult,
)
from gamescan.config import Settings


class InferenceBackend(ABC):
    """
    External capability providing recognition, normalization, pricing
    analysis and listing generation.

    Implementations may be slow and non-deterministic. Failures should be
    raised as ``InferenceBackendError``; callers additionally wrap anything
    else that escapes.
    """

    name: str = "backend"

    @abstractmethod
    async def recognize(self, image_base64: str, mime_type: str) -> RecognitionResult:
        """Identify the game shown in a base64-encoded image."""

    @abstractmethod
    async def normalize(
        self, user_input: str, original_suggestion: Optional[str] = None
    ) -> NormalizationResult:
        """Normalize a user-entered title, optionally against the top candidate."""

    @abstractmethod
    async def analyze_pricing(self, request: PricingAnalysisRequest) -> PricingAnalysisResult:
        """Recommend prices for a confirmed game and its price samples."""

    @abstractmethod
    async def generate_listing(self, request: ListingRequest) -> ListingResult:
        """Write marketplace listing texts."""

    async def close(self) -> None:
        """Release client resources."""
        return None


def create_inference_backend(config: Settings) -> InferenceBackend:
    """
    Build the backend selected by ``config.ai_provider``.

    Called once at startup; the instance is injected into the pipeline.
    """
    if config.ai_provider == "mock":
        from gamescan.ai.stub_backend import StubInferenceBackend

        return StubInferenceBackend(delay=config.mock_delay_seconds)

    from gamescan.ai.openai_backend import OpenAIInferenceBackend

    if not config.openai_api_key:
        raise ValueError("OPENAI_API_KEY is required when AI_PROVIDER=openai")

    return OpenAIInferenceBackend(
        api_key=config.openai_api_key,
        model=config.ai_model,
        vision_model=config.ai_vision_model,
        max_retries=config.ai_max_retries,
        timeout=config.ai_timeout_seconds,
    )
