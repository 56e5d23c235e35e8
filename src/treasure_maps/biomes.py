"""Keyword-based classification of biome ids into map terrain categories."""

from __future__ import annotations

from collections.abc import Iterable

from .models import BiomeCategory

WATER_KEYWORDS = ("ocean", "river", "swamp", "beach")
SNOWY_KEYWORDS = ("snowy", "frozen", "ice", "cold")
FOREST_KEYWORDS = ("forest", "taiga", "jungle", "grove", "cherry")
PLAINS_KEYWORDS = ("plains", "savanna", "desert", "badlands", "meadow")

# Snowy is tested before forest so that snowy_taiga stays snowy.
_RULES = (
    (BiomeCategory.SNOWY, SNOWY_KEYWORDS),
    (BiomeCategory.FOREST, FOREST_KEYWORDS),
    (BiomeCategory.PLAINS, PLAINS_KEYWORDS),
)


def _contains_any(name: str, keywords: Iterable[str]) -> bool:
    return any(keyword in name for keyword in keywords)


def classify_biome(biome_id: str) -> BiomeCategory:
    """Map a biome id such as ``minecraft:snowy_taiga`` to a terrain category."""
    name = biome_id.lower()
    if _contains_any(name, WATER_KEYWORDS):
        return BiomeCategory.WATER
    for category, keywords in _RULES:
        if _contains_any(name, keywords):
            return category
    return BiomeCategory.OTHER


class BiomeClassifier:
    """Classifier with configurable water rules.

    ``water_exact`` ids always classify as water; they match either the full id
    or its path without the namespace (``minecraft:mangrove_swamp`` matches
    ``mangrove_swamp``). A non-empty ``water_keywords`` replaces the default
    water keyword group. All other rule groups keep their fixed order.
    """

    def __init__(
        self,
        water_keywords: Iterable[str] | None = None,
        water_exact: Iterable[str] | None = None,
    ) -> None:
        keywords = tuple(keyword.strip().lower() for keyword in water_keywords or () if keyword.strip())
        self._water_keywords = keywords or WATER_KEYWORDS
        self._water_exact = frozenset(name.strip().lower() for name in water_exact or () if name.strip())

    @classmethod
    def from_settings(cls, settings) -> BiomeClassifier:
        return cls(water_keywords=settings.water_biome_keywords, water_exact=settings.water_biome_exact)

    @property
    def water_keywords(self) -> tuple[str, ...]:
        return self._water_keywords

    def __call__(self, biome_id: str) -> BiomeCategory:
        return self.classify(biome_id)

    def classify(self, biome_id: str) -> BiomeCategory:
        name = biome_id.lower()
        if self._is_exact_water(name) or _contains_any(name, self._water_keywords):
            return BiomeCategory.WATER
        for category, keywords in _RULES:
            if _contains_any(name, keywords):
                return category
        return BiomeCategory.OTHER

    def _is_exact_water(self, name: str) -> bool:
        if not self._water_exact:
            return False
        return name in self._water_exact or name.partition(":")[2] in self._water_exact
