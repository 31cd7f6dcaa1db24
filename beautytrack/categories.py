"""Curated and user-defined product categories."""

from __future__ import annotations

from typing import Any, Protocol

CURATED_CATEGORIES: list[str] = [
    "Color Supplies",
    "Wash House",
    "Styling Products",
    "Treatments & Masks",
    "Nail Care",
    "Skin & Body",
    "Waxing",
    "Lash & Brow",
    "Tools & Equipment",
    "Sanitation & PPE",
    "Retail Boutique",
    "Other",
]

FALLBACK_CATEGORY = "General"

CUSTOM_CATEGORIES_KEY = "salon.customCategories"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class CategoryRegistry:
    """Ordered category names with case-insensitive uniqueness.

    Curated names always come first, followed by custom names in the
    order they were added. Custom names live in the injected store.
    """

    def __init__(
        self,
        store: KeyValueStore,
        curated: list[str] | None = None,
    ) -> None:
        self._store = store
        self._curated = list(CURATED_CATEGORIES if curated is None else curated)

    @property
    def names(self) -> list[str]:
        seen: set[str] = set()
        ordered: list[str] = []
        for name in [*self._curated, *self.custom_categories()]:
            trimmed = name.strip()
            if not trimmed:
                continue
            key = trimmed.casefold()
            if key in seen:
                continue
            seen.add(key)
            ordered.append(trimmed)
        return ordered

    @property
    def default_name(self) -> str:
        names = self.names
        return names[0] if names else FALLBACK_CATEGORY

    def is_known(self, name: str) -> bool:
        key = name.strip().casefold()
        return any(n.casefold() == key for n in self.names)

    def custom_categories(self) -> list[str]:
        value = self._store.get(CUSTOM_CATEGORIES_KEY, [])
        if not isinstance(value, list):
            return []
        return [str(v) for v in value]

    def add_custom(self, name: str) -> bool:
        """Add a custom category.

        Returns:
            False when the name is empty or already known.
        """
        trimmed = name.strip()
        if not trimmed or self.is_known(trimmed):
            return False
        self._save([*self.custom_categories(), trimmed])
        return True

    def remove_custom(self, name: str) -> bool:
        key = name.strip().casefold()
        custom = self.custom_categories()
        remaining = [c for c in custom if c.strip().casefold() != key]
        if len(remaining) == len(custom):
            return False
        self._save(remaining)
        return True

    def replace_custom(self, names: list[str]) -> None:
        self._save(list(names))

    def _save(self, names: list[str]) -> None:
        self._store.set(CUSTOM_CATEGORIES_KEY, names)
