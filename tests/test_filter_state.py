"""
Tests for FilterState

Tests covering:
1. Canonical key determinism
2. Validation and normalisation
3. Merge and page reset
4. Inverted range handling
"""

import pytest

from core.errors import CanonicalKeyError
from core.models import FilterState, ListingType, Property, PropertyType, SortOrder


# =============================================================================
# Canonical Key Tests
# =============================================================================


class TestCanonicalKey:
    """Cache-key equivalence of filter states."""

    def test_equal_states_share_key(self):
        a = FilterState(search_text="bali", property_type=PropertyType.VILLA, amenities={"Pool", "Gym"})
        b = FilterState(amenities=["Gym", "Pool"], property_type="villa", search_text="bali")
        assert a.canonical_key() == b.canonical_key()

    def test_any_field_difference_changes_key(self):
        base = FilterState(search_text="bali", min_price=100)
        assert base.canonical_key() != FilterState(search_text="bali", min_price=101).canonical_key()
        assert base.canonical_key() != base.with_page(2).canonical_key()
        assert base.canonical_key() != FilterState(search_text="Bali", min_price=100).canonical_key()

    def test_unset_fields_are_omitted(self):
        key = FilterState().canonical_key()
        assert key == '{"page":1}'

    def test_key_has_sorted_keys_and_no_whitespace(self):
        key = FilterState(sort_by=SortOrder.PRICE_ASC, min_bedrooms=2).canonical_key()
        assert key == '{"min_bedrooms":2,"page":1,"sort_by":"price_asc"}'

    def test_integral_float_bounds_share_key_with_ints(self):
        from_voice = FilterState(max_price=500000, min_area=120)
        from_form = FilterState(max_price=500000.0, min_area=120.0)
        assert from_voice == from_form
        assert from_voice.canonical_key() == from_form.canonical_key()
        assert from_form.canonical_key() == '{"max_price":500000,"min_area":120,"page":1}'

    def test_fractional_bounds_kept(self):
        assert FilterState(max_price=1.5).canonical_key() == '{"max_price":1.5,"page":1}'

    def test_empty_amenities_same_as_unset(self):
        assert FilterState(amenities=[]).canonical_key() == FilterState().canonical_key()

    def test_unserialisable_value_is_invariant_violation(self):
        state = FilterState()
        object.__setattr__(state, "search_text", object())
        with pytest.raises(CanonicalKeyError):
            state.canonical_key()


# =============================================================================
# Validation Tests
# =============================================================================


class TestValidation:
    """Constructor validation and coercion."""

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            FilterState(min_price=-1)

    def test_page_below_one_rejected(self):
        with pytest.raises(ValueError):
            FilterState(page=0)

    def test_unknown_enum_value_rejected(self):
        with pytest.raises(ValueError):
            FilterState(property_type="castle")

    def test_strings_coerced_to_enums(self):
        state = FilterState(property_type="house", listing_type="rent", sort_by="popular")
        assert state.property_type is PropertyType.HOUSE
        assert state.listing_type is ListingType.RENT
        assert state.sort_by is SortOrder.POPULAR

    def test_from_dict_accepts_camel_case(self):
        state = FilterState.from_dict({
            "searchText": "canggu",
            "propertyType": "villa",
            "minBedrooms": 3,
            "amenities": ["Pool"],
            "unknown": "ignored",
            "maxPrice": "",
        })
        assert state.search_text == "canggu"
        assert state.property_type is PropertyType.VILLA
        assert state.min_bedrooms == 3
        assert state.amenities == frozenset({"Pool"})
        assert state.max_price is None


# =============================================================================
# Derivation Tests
# =============================================================================


class TestDerivation:
    """merge, with_page and derived bounds."""

    def test_merge_resets_page(self):
        state = FilterState(search_text="jakarta", page=4)
        merged = state.merge({"min_bedrooms": 2, "amenities": ["Pool"]})
        assert merged.page == 1
        assert merged.search_text == "jakarta"
        assert merged.min_bedrooms == 2
        assert merged.amenities == frozenset({"Pool"})

    def test_with_page_keeps_filters(self):
        state = FilterState(search_text="ubud").with_page(3)
        assert state.page == 3
        assert state.search_text == "ubud"

    def test_inverted_price_range_drops_max(self):
        state = FilterState(min_price=500, max_price=100)
        assert state.price_bounds() == (500, None)

    def test_ordinary_range_kept(self):
        state = FilterState(min_area=50, max_area=120)
        assert state.area_bounds() == (50, 120)

    def test_text_strips_whitespace(self):
        assert FilterState(search_text="  bali ").text == "bali"
        assert FilterState().text == ""


# =============================================================================
# Property Tests
# =============================================================================


class TestProperty:
    """Boundary validation of remote records."""

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            Property.from_dict({"title": "No id"})

    def test_numeric_fields_coerced(self):
        prop = Property.from_dict({"id": 7, "price": "1500000000", "bedrooms": "3"})
        assert prop.id == "7"
        assert prop.price == 1_500_000_000
        assert prop.bedrooms == 3

    def test_image_url_prefers_thumbnail(self):
        prop = Property.from_dict({"id": "a", "thumbnail_url": "t.jpg", "images": ["i.jpg"]})
        assert prop.image_url == "t.jpg"
        assert Property.from_dict({"id": "b", "images": ["i.jpg"]}).image_url == "i.jpg"
        assert Property.from_dict({"id": "c"}).image_url is None
