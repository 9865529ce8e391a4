"""
Saved searches: named filter-state snapshots per user.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .errors import PresetValidationError
from .models import FilterState
from .preferences import PreferenceStore


@dataclass(frozen=True)
class SavedSearch:
    name: str
    filters: FilterState
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "filters": self.filters.to_dict(),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SavedSearch":
        return cls(
            name=data["name"],
            filters=FilterState.from_dict(data.get("filters", {})),
            created_at=data.get("created_at", ""),
        )


class SavedSearchStore:
    """Saved searches persisted through a preference store."""

    KEY_PREFIX = "saved_searches"

    def __init__(self, preferences: PreferenceStore):
        self._preferences = preferences

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}"

    def list(self, user_id: str) -> list[SavedSearch]:
        return [SavedSearch.from_dict(d) for d in self._preferences.get(self._key(user_id), [])]

    def get(self, user_id: str, name: str) -> Optional[SavedSearch]:
        wanted = name.strip().lower()
        return next((s for s in self.list(user_id) if s.name.lower() == wanted), None)

    def save(self, user_id: str, name: str, filters: FilterState) -> SavedSearch:
        """
        Save the filters under ``name`` (page reset to 1).

        Raises:
            PresetValidationError: If the name is empty or already used.
        """
        clean_name = (name or "").strip()
        if not clean_name:
            raise PresetValidationError("Please give the search a name")

        saved = SavedSearch(
            name=clean_name,
            filters=filters.with_page(1),
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        def append(raw: list) -> list:
            if any(item["name"].lower() == clean_name.lower() for item in raw):
                raise PresetValidationError(f"A saved search named '{clean_name}' already exists")
            return raw + [saved.to_dict()]

        self._preferences.update(self._key(user_id), append, default=[])
        return saved

    def delete(self, user_id: str, name: str) -> bool:
        wanted = name.strip().lower()
        before = self._preferences.get(self._key(user_id), [])
        kept = [item for item in before if item["name"].lower() != wanted]
        if len(kept) == len(before):
            return False
        self._preferences.set(self._key(user_id), kept)
        return True
