"""Inference backend backed by the OpenAI chat completions API."""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from gamescan.ai import prompts
from gamescan.ai.backend import InferenceBackend
from gamescan.ai.types import (
    ListingRequest,
    ListingResult,
    NormalizationResult,
    PricingAnalysisRequest,
    PricingAnalysisResult,
    RecognitionResult,
)
from gamescan.errors import InferenceBackendError

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


class OpenAIInferenceBackend(InferenceBackend):
    """
    Live backend using OpenAI structured outputs.

    Features:
    - Vision recognition from a base64 data URL
    - Strict JSON schema response formats
    - Lazily created client, closed on shutdown
    - Every failure surfaced as InferenceBackendError
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        vision_model: str = "gpt-4o",
        max_retries: int = 3,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.vision_model = vision_model
        self.max_retries = max_retries
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                max_retries=self.max_retries,
                timeout=self.timeout,
            )
        return self._client

    async def _complete(
        self,
        *,
        model: str,
        messages: List[Dict[str, Any]],
        schema_name: str,
        schema: Dict[str, Any],
        result_type: Type[ResultT],
        max_tokens: int,
    ) -> ResultT:
        """Run one structured completion and validate it into ``result_type``."""
        try:
            response = await self._get_client().chat.completions.create(
                model=model,
                messages=messages,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "strict": True, "schema": schema},
                },
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"OpenAI call '{schema_name}' failed: {e}")
            raise InferenceBackendError(f"AI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise InferenceBackendError("No response content from AI")

        try:
            payload = json.loads(content)
            return result_type.model_validate(payload)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse '{schema_name}' response as JSON: {e}")
            logger.debug(f"Raw response text: {content[:300]}")
            raise InferenceBackendError(f"Invalid JSON response from AI: {e}") from e
        except ValidationError as e:
            logger.error(f"Malformed '{schema_name}' response: {e}")
            raise InferenceBackendError(
                "AI response does not match the expected structure",
                details={"issues": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

    async def recognize(self, image_base64: str, mime_type: str) -> RecognitionResult:
        messages = [
            {"role": "system", "content": prompts.RECOGNITION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompts.RECOGNITION_USER_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:{mime_type};base64,{image_base64}",
                            "detail": "high",
                        },
                    },
                ],
            },
        ]
        return await self._complete(
            model=self.vision_model,
            messages=messages,
            schema_name="game_recognition",
            schema=prompts.RECOGNITION_SCHEMA,
            result_type=RecognitionResult,
            max_tokens=1000,
        )

    async def normalize(
        self, user_input: str, original_suggestion: Optional[str] = None
    ) -> NormalizationResult:
        messages = [
            {"role": "system", "content": prompts.NORMALIZATION_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.normalization_prompt(user_input, original_suggestion)},
        ]
        return await self._complete(
            model=self.model,
            messages=messages,
            schema_name="title_normalization",
            schema=prompts.NORMALIZATION_SCHEMA,
            result_type=NormalizationResult,
            max_tokens=500,
        )

    async def analyze_pricing(self, request: PricingAnalysisRequest) -> PricingAnalysisResult:
        messages = [
            {"role": "system", "content": prompts.PRICING_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.pricing_prompt(request)},
        ]
        return await self._complete(
            model=self.model,
            messages=messages,
            schema_name="pricing_analysis",
            schema=prompts.PRICING_SCHEMA,
            result_type=PricingAnalysisResult,
            max_tokens=800,
        )

    async def generate_listing(self, request: ListingRequest) -> ListingResult:
        messages = [
            {"role": "system", "content": prompts.LISTING_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.listing_prompt(request)},
        ]
        return await self._complete(
            model=self.model,
            messages=messages,
            schema_name="listing_generation",
            schema=prompts.LISTING_SCHEMA,
            result_type=ListingResult,
            max_tokens=1500,
        )

    async def close(self):
        """Close connections."""
        if self._client:
            await self._client.close()
            self._client = None
