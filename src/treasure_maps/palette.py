"""Host map palette indexes used for treasure map terrain.

Values are indexes into the host's 1-byte map color table, not RGB colors.
"""

from __future__ import annotations

from collections import Counter

from .models import BiomeCategory

WATER_LIGHT = 48
WATER_DARK = 50
FOREST_COLOR = 28
PLAINS_COLOR = 4
SNOWY_COLOR = 34
DEFAULT_COLOR = 0

PALETTE_RANGE = frozenset({WATER_LIGHT, WATER_DARK, FOREST_COLOR, PLAINS_COLOR, SNOWY_COLOR, DEFAULT_COLOR})

_SOLID_COLORS = {
    BiomeCategory.FOREST: FOREST_COLOR,
    BiomeCategory.PLAINS: PLAINS_COLOR,
    BiomeCategory.SNOWY: SNOWY_COLOR,
    BiomeCategory.OTHER: DEFAULT_COLOR,
}

_CATEGORY_BY_COLOR = {
    WATER_LIGHT: BiomeCategory.WATER,
    WATER_DARK: BiomeCategory.WATER,
    FOREST_COLOR: BiomeCategory.FOREST,
    PLAINS_COLOR: BiomeCategory.PLAINS,
    SNOWY_COLOR: BiomeCategory.SNOWY,
    DEFAULT_COLOR: BiomeCategory.OTHER,
}


def encode(category: BiomeCategory, px: int, pz: int) -> int:
    """Return the palette index for one pixel; water is drawn as diagonal stripes."""
    if category is BiomeCategory.WATER:
        return WATER_LIGHT if (px + pz) % 4 < 2 else WATER_DARK
    return _SOLID_COLORS.get(category, DEFAULT_COLOR)


def category_histogram(terrain: bytes) -> dict[BiomeCategory, int]:
    """Count pixels per category in an encoded terrain buffer."""
    counts = Counter(decode(value) for value in terrain)
    return {category: counts.get(category, 0) for category in BiomeCategory}


def decode(color: int) -> BiomeCategory:
    """Category painted with ``color``; unknown indexes read as OTHER."""
    return _CATEGORY_BY_COLOR.get(color, BiomeCategory.OTHER)
