"""Inputs and results of the pipeline operations.

The input models carry the boundary validation rules and are used directly
as HTTP request bodies.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from gamescan.ai.types import Candidate, ContractModel, Evidence, TitleVariant
from gamescan.enums import GameCondition, GameLanguage, PriceSource, ScanStatus

MAX_MANUAL_PRICES = 5


class ConfirmInput(ContractModel):
    title: str = Field(min_length=1, max_length=200)
    edition: Optional[str] = Field(default=None, max_length=100)
    language: GameLanguage
    condition: GameCondition
    is_complete: bool


class ManualPrice(ContractModel):
    price: float = Field(gt=0)
    condition_hint: Optional[str] = Field(default=None, max_length=200)
    source: PriceSource = PriceSource.MANUAL
    url: Optional[str] = Field(default=None, max_length=2000)


class PricingInput(ContractModel):
    manual_prices: List[ManualPrice] = Field(default_factory=list, max_length=MAX_MANUAL_PRICES)


class DraftInput(ContractModel):
    price: float = Field(gt=0)
    pickup_location: Optional[str] = Field(default=None, max_length=100)
    shipping_available: bool = False
    paypal_available: bool = False
    additional_notes: Optional[str] = Field(default=None, max_length=500)


class CreateScanResult(ContractModel):
    scan_id: str
    status: ScanStatus


class ScanView(ContractModel):
    """Everything a polling client may see about a scan."""

    id: str
    status: ScanStatus
    created_at: datetime
    updated_at: datetime
    candidates: Optional[List[Candidate]] = None
    evidence: Optional[Evidence] = None
    confirmed_title: Optional[str] = None
    confirmed_edition: Optional[str] = None
    confirmed_language: Optional[GameLanguage] = None
    confirmed_condition: Optional[GameCondition] = None
    is_complete: Optional[bool] = None
    normalized_title: Optional[str] = None
    keywords: Optional[List[str]] = None
    error: Optional[str] = None


class ConfirmScanResult(ContractModel):
    scan_id: str
    normalized_title: str
    keywords: List[str]
    status: ScanStatus


class PricingResult(ContractModel):
    scan_id: str
    recommended_price: float
    quick_sale_price: float
    negotiation_anchor: float
    range_low: float
    range_high: float
    samples: List[Dict[str, Any]]
    reasoning_bullets: List[str]
    confidence: int


class DraftMetadata(ContractModel):
    game_title: str
    condition: GameCondition
    language: GameLanguage
    is_complete: bool


class DraftResult(ContractModel):
    scan_id: str
    title_variants: List[TitleVariant]
    description: str
    bullet_points: List[str]
    search_tags: List[str]
    suggested_price: float
    metadata: DraftMetadata
