"""
Similarity weight presets.

Quick presets are fixed constants substituted wholesale. Named presets are
saved per user through the preference store and must sum to exactly 100
with a name unique among that user's presets (case-insensitive).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Final, Optional

from ..errors import PresetValidationError
from ..preferences import PreferenceStore
from .models import SimilarityWeights


DEFAULT_WEIGHTS: Final = SimilarityWeights(
    property_type=30, style=20, architecture=20, bedrooms=15, amenities=15,
)

QUICK_PRESETS: Final[dict[str, SimilarityWeights]] = {
    "balanced": SimilarityWeights(
        property_type=20, style=20, architecture=20, bedrooms=20, amenities=20,
    ),
    "style": SimilarityWeights(
        property_type=10, style=40, architecture=30, bedrooms=10, amenities=10,
    ),
    "size": SimilarityWeights(
        property_type=15, style=10, architecture=10, bedrooms=50, amenities=15,
    ),
    "amenities": SimilarityWeights(
        property_type=10, style=15, architecture=15, bedrooms=10, amenities=50,
    ),
    "type": SimilarityWeights(
        property_type=50, style=15, architecture=15, bedrooms=10, amenities=10,
    ),
}

REQUIRED_WEIGHT_TOTAL: Final[int] = 100
MAX_PRESET_NAME_LENGTH: Final[int] = 50


def get_quick_preset(name: str) -> SimilarityWeights:
    """
    Look up a quick preset.

    Raises:
        KeyError: If no preset has that name.
    """
    return QUICK_PRESETS[name.lower().strip()]


@dataclass(frozen=True)
class WeightPreset:
    """A named, user-saved weight configuration."""
    name: str
    weights: SimilarityWeights
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "weights": self.weights.to_dict(),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WeightPreset":
        return cls(
            name=data["name"],
            weights=SimilarityWeights.from_dict(data["weights"]),
            created_at=data.get("created_at", ""),
        )


def validate_preset(
    name: str,
    weights: SimilarityWeights,
    existing: list[WeightPreset],
) -> list[str]:
    """
    Validate a preset before saving.

    Returns:
        List of error messages; empty when the preset may be saved.
    """
    errors: list[str] = []
    clean_name = (name or "").strip()
    if not clean_name:
        errors.append("Please give the preset a name")
    elif len(clean_name) > MAX_PRESET_NAME_LENGTH:
        errors.append(f"Preset name must be at most {MAX_PRESET_NAME_LENGTH} characters")
    elif any(p.name.lower() == clean_name.lower() for p in existing):
        errors.append(f"A preset named '{clean_name}' already exists")

    if weights.total != REQUIRED_WEIGHT_TOTAL:
        errors.append(
            f"Weights must add up to {REQUIRED_WEIGHT_TOTAL} (currently {weights.total})"
        )
    return errors


class WeightPresetStore:
    """Named weight presets per user, persisted through a preference store."""

    KEY_PREFIX = "weight_presets"

    def __init__(self, preferences: PreferenceStore):
        self._preferences = preferences

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}"

    def list(self, user_id: str) -> list[WeightPreset]:
        raw = self._preferences.get(self._key(user_id), [])
        return [WeightPreset.from_dict(item) for item in raw]

    def get(self, user_id: str, name: str) -> Optional[WeightPreset]:
        wanted = name.strip().lower()
        for preset in self.list(user_id):
            if preset.name.lower() == wanted:
                return preset
        return None

    def save(self, user_id: str, name: str, weights: SimilarityWeights) -> WeightPreset:
        """
        Save a named preset.

        Validation runs inside the read-modify-write so nothing is written
        when it fails.

        Raises:
            PresetValidationError: If the name is taken or weights do not sum to 100.
        """
        preset = WeightPreset(
            name=(name or "").strip(),
            weights=weights,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        def append(raw: list) -> list:
            existing = [WeightPreset.from_dict(item) for item in raw]
            errors = validate_preset(name, weights, existing)
            if errors:
                raise PresetValidationError("; ".join(errors))
            return raw + [preset.to_dict()]

        self._preferences.update(self._key(user_id), append, default=[])
        return preset

    def delete(self, user_id: str, name: str) -> bool:
        """Delete a preset by name (case-insensitive). Returns True if removed."""
        wanted = name.strip().lower()
        removed = False

        def remove(raw: list) -> list:
            nonlocal removed
            kept = [item for item in raw if item["name"].lower() != wanted]
            removed = len(kept) != len(raw)
            return kept

        self._preferences.update(self._key(user_id), remove, default=[])
        return removed
