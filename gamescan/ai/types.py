"""Request and response types of the inference backend contract."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gamescan.enums import GameCondition, GameLanguage, TitleStyle
from gamescan.pipeline.pricing import PriceObservation

# Number of entries a listing must carry in each list
LISTING_TITLE_VARIANTS = 3
LISTING_BULLET_POINTS = 5
LISTING_SEARCH_TAGS = 5


class ContractModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Candidate(ContractModel):
    """A titled recognition guess."""

    title: str = Field(min_length=1)
    edition: Optional[str] = None
    language_guess: Optional[GameLanguage] = None
    confidence: int = Field(ge=0, le=100)


class Evidence(ContractModel):
    visible_text: List[str] = Field(default_factory=list)
    visual_cues: List[str] = Field(default_factory=list)


class RecognitionResult(ContractModel):
    best: Candidate
    alternatives: List[Candidate] = Field(default_factory=list)
    evidence: Evidence
    needs_confirmation: bool

    @property
    def candidates(self) -> List[Candidate]:
        """Best candidate first, then the alternatives in backend order."""
        return [self.best, *self.alternatives]


class NormalizationResult(ContractModel):
    normalized_title: str = Field(min_length=1)
    keywords: List[str] = Field(default_factory=list)
    edition_hints: Optional[str] = None


class PricingAnalysisRequest(ContractModel):
    game_title: str
    edition: Optional[str] = None
    condition: GameCondition
    language: GameLanguage
    is_complete: bool
    price_samples: List[PriceObservation]


class PricingAnalysisResult(ContractModel):
    recommended_price: float = Field(ge=0)
    quick_sale_price: float = Field(ge=0)
    negotiation_anchor: float = Field(ge=0)
    range_low: float = Field(ge=0)
    range_high: float = Field(ge=0)
    reasoning_bullets: List[str] = Field(default_factory=list)
    confidence: int = Field(ge=0, le=100)


class ListingRequest(ContractModel):
    game_title: str
    edition: Optional[str] = None
    condition: GameCondition
    language: GameLanguage
    is_complete: bool
    price: float
    pickup_location: Optional[str] = None
    shipping_available: bool = False
    paypal_available: bool = False
    additional_notes: Optional[str] = None


class TitleVariant(ContractModel):
    title: str
    style: TitleStyle


class ListingResult(ContractModel):
    """Listing text bundle; the 3/5/5 counts are checked by the draft stage."""

    title_variants: List[TitleVariant]
    description: str
    bullet_points: List[str]
    search_tags: List[str]
