"""Prompt templates and structured-output schemas for the live backend."""

from typing import Any, Dict, Optional

from gamescan.ai.types import ListingRequest, PricingAnalysisRequest
from gamescan.enums import GameLanguage, PriceSource, condition_label, language_label

RECOGNITION_SYSTEM_PROMPT = """Du bist ein präziser Assistent zur Identifikation von Brettspielen.
Antworte ausschließlich im vorgegebenen JSON-Schema.
Bist du dir unsicher, gib mehrere Kandidaten zurück und senke die Confidence.
Erfinde keine Editionen oder Verlage, die nicht aus dem Bild hervorgehen."""

RECOGNITION_USER_PROMPT = """Analysiere das Foto. Bestimme den Titel und, wenn möglich, Edition und Sprache.
Liefere eine Kandidatenliste mit Confidence (0-100), den besten Kandidaten zuerst.
Übernimm sichtbaren Text (Titel, Verlag, Untertitel) als Evidence."""

NORMALIZATION_SYSTEM_PROMPT = """Du normalisierst Brettspiel-Titel für die Datenhaltung.
Keine erfundenen Zusätze. Gib Schlüsselwörter und Varianten zurück.
Antworte ausschließlich im JSON-Format."""

PRICING_SYSTEM_PROMPT = """Du bist Pricing-Analyst für gebrauchte Brettspiele in Deutschland.
Verwende nur die übergebenen Preis-Samples und den Zustand.
Gib eine Empfehlung für Schnellverkauf und Verhandlung mit kurzer Begründung.
Antworte ausschließlich im JSON-Format. Alle Preise in EUR."""

LISTING_SYSTEM_PROMPT = """Du schreibst überzeugende Kleinanzeigen-Texte auf Deutsch.
Klar, freundlich und ehrlich, ohne unseriöse Versprechen.
Kurze Absätze mit Hinweisen zu Zustand, Umfang, Abholung, Versand und PayPal.
Antworte ausschließlich im JSON-Format."""


def normalization_prompt(user_input: str, original_suggestion: Optional[str] = None) -> str:
    parts = [
        "Normalisiere den folgenden Brettspiel-Titel:",
        f'Eingabe: "{user_input}"',
    ]
    if original_suggestion:
        parts.append(f'Ursprünglicher Vorschlag: "{original_suggestion}"')
    parts.append("")
    parts.append("Gib zurück:")
    parts.append("- normalizedTitle: korrekter, vollständiger Titel")
    parts.append("- keywords: Suchbegriffe")
    parts.append("- editionHints: Hinweise auf die Edition, falls erkennbar")
    return "\n".join(parts)


def pricing_prompt(request: PricingAnalysisRequest) -> str:
    lines = [
        f"Spiel: {request.game_title}",
        f"Zustand: {condition_label(request.condition)}",
        f"Vollständig: {'Ja' if request.is_complete else 'Nein'}",
        "",
        "Preis-Samples:",
    ]
    for sample in request.price_samples:
        hint = f" ({sample.condition_hint})" if sample.condition_hint else ""
        source = PriceSource(sample.source).value
        lines.append(f"- {source}: {sample.price}€{hint}")
    lines.extend([
        "",
        "Berechne:",
        "- recommendedPrice: empfohlener Verkaufspreis",
        "- quickSalePrice: Preis für einen schnellen Verkauf",
        "- negotiationAnchor: Startpreis für Verhandlungen",
        "- rangeLow/rangeHigh: realistische Preisspanne",
        "- reasoningBullets: kurze Begründungspunkte",
        "- confidence: Sicherheit der Einschätzung (0-100)",
    ])
    return "\n".join(lines)


def listing_prompt(request: ListingRequest) -> str:
    title = request.game_title
    if request.edition:
        title = f"{title} ({request.edition})"

    lines = [
        f"Spiel: {title}",
        f"Zustand: {condition_label(request.condition)}",
        f"Vollständig: {'Ja' if request.is_complete else 'Nein/Unsicher'}",
        f"Sprache: {language_label(request.language)}",
        f"Abholung: {request.pickup_location}" if request.pickup_location else "Nur Versand",
        f"Versand möglich: {'Ja' if request.shipping_available else 'Nein'}",
        f"PayPal: {'Ja' if request.paypal_available else 'Nein'}",
        f"Preis: {request.price:g}€",
    ]
    if request.additional_notes:
        lines.append(f"Zusätzliche Hinweise: {request.additional_notes}")
    lines.extend([
        "",
        "Erstelle:",
        "1) titleVariants: genau 3 Titel (max. 65 Zeichen) mit style NEUTRAL, URGENT, FRIENDLY",
        "2) description: Beschreibung (max. 1.200 Zeichen)",
        "3) bulletPoints: genau 5 Stichpunkte",
        "4) searchTags: genau 5 Such-Tags",
    ])
    return "\n".join(lines)


def _nullable(schema_type: str) -> Dict[str, Any]:
    return {"type": [schema_type, "null"]}


_LANGUAGE_VALUES = [lang.value for lang in GameLanguage]

# Strict structured outputs require additionalProperties=false and every key required
RECOGNITION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["best", "alternatives", "evidence", "needsConfirmation"],
    "additionalProperties": False,
    "properties": {
        "best": {
            "type": "object",
            "required": ["title", "edition", "languageGuess", "confidence"],
            "additionalProperties": False,
            "properties": {
                "title": {"type": "string"},
                "edition": _nullable("string"),
                "languageGuess": {
                    "type": ["string", "null"],
                    "enum": [*_LANGUAGE_VALUES, None],
                },
                "confidence": {"type": "integer"},
            },
        },
        "alternatives": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["title", "edition", "confidence"],
                "additionalProperties": False,
                "properties": {
                    "title": {"type": "string"},
                    "edition": _nullable("string"),
                    "confidence": {"type": "integer"},
                },
            },
        },
        "evidence": {
            "type": "object",
            "required": ["visibleText", "visualCues"],
            "additionalProperties": False,
            "properties": {
                "visibleText": {"type": "array", "items": {"type": "string"}},
                "visualCues": {"type": "array", "items": {"type": "string"}},
            },
        },
        "needsConfirmation": {"type": "boolean"},
    },
}

NORMALIZATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["normalizedTitle", "keywords", "editionHints"],
    "additionalProperties": False,
    "properties": {
        "normalizedTitle": {"type": "string"},
        "keywords": {"type": "array", "items": {"type": "string"}},
        "editionHints": _nullable("string"),
    },
}

PRICING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": [
        "recommendedPrice",
        "quickSalePrice",
        "negotiationAnchor",
        "rangeLow",
        "rangeHigh",
        "reasoningBullets",
        "confidence",
    ],
    "additionalProperties": False,
    "properties": {
        "recommendedPrice": {"type": "number"},
        "quickSalePrice": {"type": "number"},
        "negotiationAnchor": {"type": "number"},
        "rangeLow": {"type": "number"},
        "rangeHigh": {"type": "number"},
        "reasoningBullets": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "integer"},
    },
}

LISTING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["titleVariants", "description", "bulletPoints", "searchTags"],
    "additionalProperties": False,
    "properties": {
        "titleVariants": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["title", "style"],
                "additionalProperties": False,
                "properties": {
                    "title": {"type": "string"},
                    "style": {"type": "string", "enum": ["NEUTRAL", "URGENT", "FRIENDLY"]},
                },
            },
        },
        "description": {"type": "string"},
        "bulletPoints": {"type": "array", "items": {"type": "string"}},
        "searchTags": {"type": "array", "items": {"type": "string"}},
    },
}
