from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MAP_SIZE = 128
TERRAIN_BYTES = MAP_SIZE * MAP_SIZE
SAMPLE_Y = 63
MAX_CENTER_OFFSET_PIXELS = 60


def parse_flag(value: object, default: bool = False) -> bool:
    """Read a YAML boolean; only real booleans and "true"/"false" strings count."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


class BiomeCategory(str, Enum):
    """Coarse terrain classes painted onto a treasure map."""

    WATER = "water"
    FOREST = "forest"
    PLAINS = "plains"
    SNOWY = "snowy"
    OTHER = "other"


class MapScale(Enum):
    """Host map zoom levels and the number of blocks covered by one pixel."""

    CLOSEST = 1
    CLOSE = 2
    NORMAL = 4
    FAR = 8
    FARTHEST = 16

    @property
    def blocks_per_pixel(self) -> int:
        return self.value

    @property
    def level(self) -> int:
        return list(MapScale).index(self)

    @classmethod
    def from_level(cls, level: int) -> MapScale:
        """Resolve a 0-4 zoom level (0=closest, 4=farthest)."""
        scales = list(cls)
        if not 0 <= level < len(scales):
            raise ValueError(f"Invalid map scale level: {level} (expected 0-{len(scales) - 1})")
        return scales[level]


CACHE_SCALE = MapScale.FAR
SCALE = CACHE_SCALE.blocks_per_pixel


@dataclass(frozen=True, slots=True)
class POI:
    """A structure location used as a treasure map target."""

    world_name: str
    x: int
    y: int
    z: int
    schematic_name: str
    type: str
    cleared: bool = False

    @property
    def formatted_coordinates(self) -> str:
        return f"{self.x}, {self.y}, {self.z}"

    @property
    def key(self) -> CacheKey:
        return CacheKey(self.world_name, self.type)


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Cache slot for one structure type in one world; types compare case-insensitively."""

    world_name: str
    type: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", self.type.upper())

    @property
    def file_stem(self) -> str:
        return f"{self.world_name}_{self.type}"


@dataclass(frozen=True, slots=True)
class CachedMap:
    """A pre-rendered map snapshot: target, map center and palette bytes."""

    poi: POI
    center_x: int
    center_z: int
    terrain: bytes

    def __post_init__(self) -> None:
        if len(self.terrain) != TERRAIN_BYTES:
            raise ValueError(f"terrain must be {TERRAIN_BYTES} bytes, got {len(self.terrain)}")
        if isinstance(self.terrain, bytearray):
            object.__setattr__(self, "terrain", bytes(self.terrain))

    @property
    def key(self) -> CacheKey:
        return self.poi.key
