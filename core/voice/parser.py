"""
Voice Command Parser

Maps a speech transcript to a partial filter state. Each filter category
has its own extractor; the extractors run in order and their results are
merged, so one transcript can set several categories at once.

Property type and listing type are first-match-wins. Amenities collect
every match. An empty result means the transcript is not a filter command
and should be used as plain search text.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Final, Optional

from ..models import ListingType, PropertyType


PartialFilters = dict[str, Any]
Extractor = Callable[[str], PartialFilters]


# =============================================================================
# Keyword Tables
# =============================================================================

WORD_NUMBERS: Final[dict[str, int]] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
}

# Checked in order; the first family that matches wins
PROPERTY_TYPE_KEYWORDS: Final[list[tuple[re.Pattern, PropertyType]]] = [
    (re.compile(r"\b(?:apartments?|condos?)\b"), PropertyType.APARTMENT),
    (re.compile(r"\b(?:houses?|homes?)\b"), PropertyType.HOUSE),
    (re.compile(r"\bvillas?\b"), PropertyType.VILLA),
    (re.compile(r"\b(?:commercial|offices?)\b"), PropertyType.COMMERCIAL),
    (re.compile(r"\bland\b"), PropertyType.LAND),
]

# Rent is checked before sale
LISTING_TYPE_KEYWORDS: Final[list[tuple[re.Pattern, ListingType]]] = [
    (re.compile(r"\b(?:for rent|rental|to rent)\b"), ListingType.RENT),
    (re.compile(r"\b(?:for sale|buy|purchase)\b"), ListingType.SALE),
]

AMENITY_KEYWORDS: Final[list[tuple[re.Pattern, str]]] = [
    (re.compile(r"\b(?:pools?|swimming)\b"), "Pool"),
    (re.compile(r"\b(?:gym|fitness)\b"), "Gym"),
    (re.compile(r"\b(?:parking|garages?)\b"), "Parking"),
    (re.compile(r"\b(?:security|guards?)\b"), "Security"),
    (re.compile(r"\b(?:gardens?|yard|backyard)\b"), "Garden"),
    (re.compile(r"\b(?:balcony|balconies|terraces?)\b"), "Balcony"),
    (re.compile(r"\b(?:air conditioning|air conditioner|aircon|ac)\b"), "Air Conditioning"),
    (re.compile(r"\b(?:elevators?|lifts?)\b"), "Elevator"),
]

BEDROOM_PATTERN: Final = re.compile(
    r"\b(\d+|one|two|three|four|five|six)[\s-]*(?:bedrooms?|beds?)\b"
)
BATHROOM_PATTERN: Final = re.compile(
    r"\b(\d+|one|two|three|four)[\s-]*(?:bathrooms?|baths?)\b"
)

_AMOUNT = r"(?:\$|rp\.?)?\s*(\d[\d,]*(?:\.\d+)?)\s*(million|thousand|k|m)?\b"
MAX_PRICE_PATTERN: Final = re.compile(r"\b(?:under|below|less than|max)\s*" + _AMOUNT)
MIN_PRICE_PATTERN: Final = re.compile(r"\b(?:over|above|more than|min)\s*" + _AMOUNT)

UNIT_MULTIPLIERS: Final[dict[str, int]] = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "million": 1_000_000,
}


# =============================================================================
# Extractors
# =============================================================================


def _to_count(token: str) -> int:
    if token.isdigit():
        return int(token)
    return WORD_NUMBERS[token]


def _to_amount(literal: str, unit: Optional[str]) -> int:
    value = float(literal.replace(",", ""))
    if unit:
        value *= UNIT_MULTIPLIERS[unit]
    return int(round(value))


def extract_property_type(text: str) -> PartialFilters:
    for pattern, property_type in PROPERTY_TYPE_KEYWORDS:
        if pattern.search(text):
            return {"property_type": property_type}
    return {}


def extract_listing_type(text: str) -> PartialFilters:
    for pattern, listing_type in LISTING_TYPE_KEYWORDS:
        if pattern.search(text):
            return {"listing_type": listing_type}
    return {}


def extract_rooms(text: str) -> PartialFilters:
    """Bedroom and bathroom counts are minimums."""
    result: PartialFilters = {}
    bedrooms = BEDROOM_PATTERN.search(text)
    if bedrooms:
        result["min_bedrooms"] = _to_count(bedrooms.group(1))
    bathrooms = BATHROOM_PATTERN.search(text)
    if bathrooms:
        result["min_bathrooms"] = _to_count(bathrooms.group(1))
    return result


def extract_price(text: str) -> PartialFilters:
    """Upper and lower bounds are set independently."""
    result: PartialFilters = {}
    upper = MAX_PRICE_PATTERN.search(text)
    if upper:
        result["max_price"] = _to_amount(upper.group(1), upper.group(2))
    lower = MIN_PRICE_PATTERN.search(text)
    if lower:
        result["min_price"] = _to_amount(lower.group(1), lower.group(2))
    return result


def extract_amenities(text: str) -> PartialFilters:
    amenities = [name for pattern, name in AMENITY_KEYWORDS if pattern.search(text)]
    return {"amenities": amenities} if amenities else {}


EXTRACTORS: Final[list[Extractor]] = [
    extract_property_type,
    extract_listing_type,
    extract_rooms,
    extract_price,
    extract_amenities,
]


def parse_voice_command(transcript: str) -> PartialFilters:
    """
    Parse a transcript into filter fields.

    Args:
        transcript: Recognised speech, any case

    Returns:
        Partial filter fields (FilterState attribute names), or {} when
        nothing matched.
    """
    text = (transcript or "").lower()
    if not text.strip():
        return {}

    result: PartialFilters = {}
    for extractor in EXTRACTORS:
        result.update(extractor(text))
    return result


def describe_filters(parsed: PartialFilters) -> list[str]:
    """Human-readable summary of a parsed command, for history and prompts."""
    parts = []
    if "property_type" in parsed:
        parts.append(parsed["property_type"].value)
    if "listing_type" in parsed:
        parts.append(f"for {parsed['listing_type'].value}")
    if "min_bedrooms" in parsed:
        parts.append(f"{parsed['min_bedrooms']}+ bedrooms")
    if "min_bathrooms" in parsed:
        parts.append(f"{parsed['min_bathrooms']}+ bathrooms")
    if "min_price" in parsed:
        parts.append(f"over {parsed['min_price']:,}")
    if "max_price" in parsed:
        parts.append(f"under {parsed['max_price']:,}")
    for amenity in parsed.get("amenities", []):
        parts.append(amenity)
    return parts
