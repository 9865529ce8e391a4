"""
Data models for the property search core.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from .errors import CanonicalKeyError


class PropertyType(Enum):
    """Property type classification used by filters and voice commands."""
    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    COMMERCIAL = "commercial"
    LAND = "land"

    @classmethod
    def from_string(cls, value: str) -> Optional["PropertyType"]:
        """Convert string to PropertyType, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class ListingType(Enum):
    """Listing type: sale, rent or lease."""
    SALE = "sale"
    RENT = "rent"
    LEASE = "lease"

    @classmethod
    def from_string(cls, value: str) -> Optional["ListingType"]:
        """Convert string to ListingType, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class SortOrder(Enum):
    """Server-side sort orders."""
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NEWEST = "newest"
    OLDEST = "oldest"
    AREA_ASC = "area_asc"
    AREA_DESC = "area_desc"
    POPULAR = "popular"


# Input aliases accepted by FilterState.from_dict
_FILTER_ALIASES = {
    "searchText": "search_text",
    "propertyType": "property_type",
    "listingType": "listing_type",
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "minArea": "min_area",
    "maxArea": "max_area",
    "minBedrooms": "min_bedrooms",
    "minBathrooms": "min_bathrooms",
    "sortBy": "sort_by",
}


def _check_non_negative(name: str, value) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} must be non-negative")


@dataclass(frozen=True)
class FilterState:
    """
    What the user is currently searching for.

    Immutable. Two states are cache-equivalent iff their canonical keys
    are equal. Inverted ranges (min > max) are accepted and treated as
    unbounded on the max side by the query layer.
    """

    search_text: Optional[str] = None
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None
    min_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    amenities: frozenset = field(default_factory=frozenset)
    sort_by: Optional[SortOrder] = None
    page: int = 1

    def __post_init__(self):
        """Validate and normalise after initialization."""
        for name in ("min_price", "max_price", "min_area", "max_area",
                     "min_bedrooms", "min_bathrooms"):
            _check_non_negative(name, getattr(self, name))
        # 500000 and 500000.0 must produce the same cache key
        for name in ("min_price", "max_price", "min_area", "max_area"):
            value = getattr(self, name)
            if isinstance(value, float) and value.is_integer():
                object.__setattr__(self, name, int(value))
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not isinstance(self.amenities, frozenset):
            object.__setattr__(self, "amenities", frozenset(self.amenities or ()))
        if isinstance(self.property_type, str):
            object.__setattr__(self, "property_type", PropertyType(self.property_type))
        if isinstance(self.listing_type, str):
            object.__setattr__(self, "listing_type", ListingType(self.listing_type))
        if isinstance(self.sort_by, str):
            object.__setattr__(self, "sort_by", SortOrder(self.sort_by))

    # =========================================================================
    # Derived bounds
    # =========================================================================

    def price_bounds(self) -> tuple[Optional[float], Optional[float]]:
        """Effective (min, max) price; an inverted pair drops the max bound."""
        return _effective_bounds(self.min_price, self.max_price)

    def area_bounds(self) -> tuple[Optional[float], Optional[float]]:
        """Effective (min, max) area; an inverted pair drops the max bound."""
        return _effective_bounds(self.min_area, self.max_area)

    @property
    def text(self) -> str:
        """Search text stripped, empty string when unset."""
        return (self.search_text or "").strip()

    # =========================================================================
    # Derivation
    # =========================================================================

    def with_page(self, page: int) -> "FilterState":
        """Same filters, different page."""
        return replace(self, page=page)

    def merge(self, partial: dict[str, Any]) -> "FilterState":
        """
        Apply a partial filter set (e.g. a parsed voice command).

        Returns a new state with the page reset to 1.
        """
        changes = dict(partial)
        if "amenities" in changes:
            changes["amenities"] = frozenset(changes["amenities"] or ())
        changes["page"] = 1
        return replace(self, **changes)

    # =========================================================================
    # Serialisation
    # =========================================================================

    def to_dict(self) -> dict:
        """Convert to dictionary, omitting unset and empty fields."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, frozenset):
                if not value:
                    continue
                value = sorted(value)
            elif isinstance(value, Enum):
                value = value.value
            result[f.name] = value
        return result

    def canonical_key(self) -> str:
        """
        Stable cache key: sorted keys, no whitespace, unset fields omitted.

        Raises:
            CanonicalKeyError: If the state holds a non-serialisable value.
        """
        try:
            return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise CanonicalKeyError(f"Cannot serialise filter state: {e}") from e

    @classmethod
    def from_dict(cls, data: dict) -> "FilterState":
        """Create from a dictionary with snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _FILTER_ALIASES.get(key, key)
            if name not in known or value is None or value == "":
                continue
            kwargs[name] = value
        if "amenities" in kwargs:
            kwargs["amenities"] = frozenset(kwargs["amenities"])
        return cls(**kwargs)


def _effective_bounds(low, high):
    if low is not None and high is not None and low > high:
        return low, None
    return low, high


# =============================================================================
# Property Records
# =============================================================================


def _as_number(record: dict, key: str) -> Optional[float]:
    value = record.get(key)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Property field {key!r} is not numeric: {value!r}")
    if math.isnan(number):
        return None
    return number


def _as_int(record: dict, key: str) -> Optional[int]:
    number = _as_number(record, key)
    return None if number is None else int(number)


@dataclass(frozen=True)
class Property:
    """
    A property record returned by the remote query API.

    Validated at the collaborator boundary so ranking and filtering code
    operates on a closed shape.
    """

    id: str
    title: str = ""
    price: Optional[float] = None
    property_type: str = ""
    listing_type: str = ""
    city: str = ""
    location: str = ""
    description: str = ""
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area_sqm: Optional[float] = None
    amenities: tuple[str, ...] = ()
    thumbnail_url: Optional[str] = None
    images: tuple[str, ...] = ()
    created_at: str = ""
    views_count: int = 0

    @property
    def image_url(self) -> Optional[str]:
        """Image used for feature extraction: thumbnail, else first image."""
        if self.thumbnail_url:
            return self.thumbnail_url
        return self.images[0] if self.images else None

    @classmethod
    def from_dict(cls, record: dict) -> "Property":
        """
        Validate a raw record.

        Raises:
            ValueError: If the id is missing or a numeric field is malformed.
        """
        if not isinstance(record, dict):
            raise ValueError("Property record must be an object")
        property_id = record.get("id")
        if property_id is None or str(property_id).strip() == "":
            raise ValueError("Property record is missing an id")

        amenities = record.get("amenities") or ()
        if isinstance(amenities, str):
            amenities = (amenities,)
        images = record.get("images") or ()
        if isinstance(images, str):
            images = (images,)

        return cls(
            id=str(property_id),
            title=record.get("title") or "",
            price=_as_number(record, "price"),
            property_type=(record.get("property_type") or "").lower(),
            listing_type=(record.get("listing_type") or "").lower(),
            city=record.get("city") or "",
            location=record.get("location") or "",
            description=record.get("description") or "",
            bedrooms=_as_int(record, "bedrooms"),
            bathrooms=_as_int(record, "bathrooms"),
            area_sqm=_as_number(record, "area_sqm"),
            amenities=tuple(str(a) for a in amenities),
            thumbnail_url=record.get("thumbnail_url") or None,
            images=tuple(str(i) for i in images),
            created_at=str(record.get("created_at") or ""),
            views_count=_as_int(record, "views_count") or 0,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "property_type": self.property_type,
            "listing_type": self.listing_type,
            "city": self.city,
            "location": self.location,
            "description": self.description,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "area_sqm": self.area_sqm,
            "amenities": list(self.amenities),
            "thumbnail_url": self.thumbnail_url,
            "images": list(self.images),
            "created_at": self.created_at,
            "views_count": self.views_count,
        }


@dataclass(frozen=True)
class ResultPage:
    """One page of results from the property query API."""

    records: tuple[Property, ...]
    total_count: int
    total_pages: int
    page: int = 1
