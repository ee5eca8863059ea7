"""Enumerations shared across the pipeline, persistence and API."""

from enum import Enum


class ScanStatus(str, Enum):
    """Pipeline position of a scan."""

    UPLOADED = "UPLOADED"
    ANALYZING = "ANALYZING"
    ANALYZED = "ANALYZED"
    PRICING = "PRICING"
    PRICED = "PRICED"
    DRAFTING = "DRAFTING"
    DRAFTED = "DRAFTED"
    ERROR = "ERROR"


class GameCondition(str, Enum):
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    VERY_GOOD = "VERY_GOOD"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"


class GameLanguage(str, Enum):
    DE = "DE"
    EN = "EN"
    FR = "FR"
    ES = "ES"
    IT = "IT"
    NL = "NL"
    OTHER = "OTHER"


class PriceSource(str, Enum):
    """Origin of a price observation."""

    MANUAL = "MANUAL"
    KLEINANZEIGEN = "KLEINANZEIGEN"
    BGG = "BGG"
    OTHER = "OTHER"


class TitleStyle(str, Enum):
    NEUTRAL = "NEUTRAL"
    URGENT = "URGENT"
    FRIENDLY = "FRIENDLY"


# German display labels used in prompts and generated texts
CONDITION_LABELS: dict[str, str] = {
    GameCondition.NEW.value: "Neu (originalverpackt)",
    GameCondition.LIKE_NEW.value: "Wie neu",
    GameCondition.VERY_GOOD.value: "Sehr gut",
    GameCondition.GOOD.value: "Gut",
    GameCondition.ACCEPTABLE.value: "Akzeptabel",
}

LANGUAGE_LABELS: dict[str, str] = {
    GameLanguage.DE.value: "Deutsch",
    GameLanguage.EN.value: "Englisch",
    GameLanguage.FR.value: "Französisch",
    GameLanguage.ES.value: "Spanisch",
    GameLanguage.IT.value: "Italienisch",
    GameLanguage.NL.value: "Niederländisch",
    GameLanguage.OTHER.value: "Andere",
}


def condition_label(condition: str) -> str:
    return CONDITION_LABELS.get(condition, condition)


def language_label(language: str) -> str:
    return LANGUAGE_LABELS.get(language, language)
