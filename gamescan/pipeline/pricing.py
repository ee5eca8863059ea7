"""Deterministic price recommendation from condition and price observations.

Pure functions, no I/O. The stub inference backend delegates here, so the
numbers below are the reference any backend result is compared against.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from gamescan.enums import GameCondition, PriceSource

# Average used when no observation is available, in EUR
DEFAULT_AVERAGE_PRICE = 25.0
DEFAULT_SAMPLE_HINT = "Geschätzter Durchschnittspreis"

CONDITION_MULTIPLIERS: Dict[str, float] = {
    GameCondition.NEW.value: 1.2,
    GameCondition.LIKE_NEW.value: 1.1,
    GameCondition.VERY_GOOD.value: 1.0,
    GameCondition.GOOD.value: 0.85,
    GameCondition.ACCEPTABLE.value: 0.7,
}

QUICK_SALE_FACTOR = 0.8
NEGOTIATION_ANCHOR_FACTOR = 1.15
RANGE_LOW_FACTOR = 0.7
RANGE_HIGH_FACTOR = 1.3

HIGH_CONFIDENCE = 85
LOW_CONFIDENCE = 60
HIGH_CONFIDENCE_MIN_SAMPLES = 3


@dataclass
class PriceObservation:
    """A single price point fed into the engine."""

    price: float
    source: PriceSource = PriceSource.MANUAL
    currency: str = "EUR"
    condition_hint: Optional[str] = None
    url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        data = {
            "source": PriceSource(self.source).value,
            "price": self.price,
            "currency": self.currency,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
        if self.condition_hint:
            data["conditionHint"] = self.condition_hint
        if self.url:
            data["url"] = self.url
        return data


@dataclass
class PriceFigures:
    """The price and the four figures derived from it."""

    recommended_price: float
    quick_sale_price: float
    negotiation_anchor: float
    range_low: float
    range_high: float


@dataclass
class PricingRecommendation:
    recommended_price: int
    quick_sale_price: int
    negotiation_anchor: int
    range_low: int
    range_high: int
    reasoning_bullets: List[str]
    confidence: int

    def to_dict(self) -> dict:
        return {
            "recommendedPrice": self.recommended_price,
            "quickSalePrice": self.quick_sale_price,
            "negotiationAnchor": self.negotiation_anchor,
            "rangeLow": self.range_low,
            "rangeHigh": self.range_high,
            "reasoningBullets": list(self.reasoning_bullets),
            "confidence": self.confidence,
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero for positive values.

    Python's ``round`` rounds ties to even, which would change results such
    as 22.5.
    """
    return int(math.floor(value + 0.5))


def condition_multiplier(condition: GameCondition | str) -> float:
    """Multiplier for ``condition``; unknown conditions count as 1.0."""
    key = condition.value if isinstance(condition, GameCondition) else str(condition)
    return CONDITION_MULTIPLIERS.get(key, 1.0)


def average_price(prices: Sequence[float]) -> float:
    """Arithmetic mean of ``prices``, or the default average when empty."""
    if not prices:
        return DEFAULT_AVERAGE_PRICE
    # Plain left-to-right addition; sum() compensates and can differ in the last bit
    total = 0.0
    for price in prices:
        total += price
    return total / len(prices)


def default_observation() -> PriceObservation:
    """Synthetic sample standing in for missing observations."""
    return PriceObservation(
        price=DEFAULT_AVERAGE_PRICE,
        source=PriceSource.MANUAL,
        condition_hint=DEFAULT_SAMPLE_HINT,
    )


def derive_price_figures(base_price: float, ndigits: Optional[int] = None) -> PriceFigures:
    """
    Derive quick-sale, anchor and range figures from a base price.

    Args:
        base_price: Price the factors are applied to
        ndigits: None rounds each figure to a whole euro (half up),
                 otherwise to this many decimals

    Returns:
        PriceFigures with the base price as recommended price
    """
    raw = (
        base_price,
        base_price * QUICK_SALE_FACTOR,
        base_price * NEGOTIATION_ANCHOR_FACTOR,
        base_price * RANGE_LOW_FACTOR,
        base_price * RANGE_HIGH_FACTOR,
    )
    if ndigits is None:
        values = [round_half_up(v) for v in raw]
    else:
        values = [round(v, ndigits) for v in raw]
    return PriceFigures(*values)


def build_reasoning(sample_count: int, condition: str, is_complete: bool) -> List[str]:
    return [
        f"Durchschnittspreis basierend auf {sample_count} Vergleichsangeboten",
        f'Zustand "{condition}" berücksichtigt',
        "Vollständiges Spiel - kein Abzug"
        if is_complete
        else "Möglicherweise unvollständig - Preisabzug empfohlen",
    ]


def analyze_pricing(
    condition: GameCondition | str,
    is_complete: bool,
    samples: Sequence[PriceObservation],
) -> PricingRecommendation:
    """
    Compute a price recommendation.

    Args:
        condition: Physical condition of the game
        is_complete: Whether all components are present
        samples: Price observations (may be empty)

    Returns:
        PricingRecommendation with whole-euro figures
    """
    prices = [float(s.price) for s in samples]
    base_price = average_price(prices) * condition_multiplier(condition)
    figures = derive_price_figures(base_price)

    condition_value = condition.value if isinstance(condition, GameCondition) else str(condition)
    confidence = HIGH_CONFIDENCE if len(prices) >= HIGH_CONFIDENCE_MIN_SAMPLES else LOW_CONFIDENCE

    return PricingRecommendation(
        recommended_price=figures.recommended_price,
        quick_sale_price=figures.quick_sale_price,
        negotiation_anchor=figures.negotiation_anchor,
        range_low=figures.range_low,
        range_high=figures.range_high,
        reasoning_bullets=build_reasoning(len(prices), condition_value, is_complete),
        confidence=confidence,
    )
