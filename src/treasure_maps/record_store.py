"""YAML-backed persistence for cached treasure map renders."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

import yaml

from .errors import InvalidCacheRecordError
from .models import MAX_CENTER_OFFSET_PIXELS, POI, SCALE, CachedMap, CacheKey, parse_flag

RECORD_SUFFIX = ".yml"

logger = logging.getLogger("treasure_maps.record_store")


def record_to_mapping(entry: CachedMap) -> dict:
    poi = entry.poi
    return {
        "worldName": poi.world_name,
        "structureType": poi.type,
        "schematicName": poi.schematic_name,
        "x": poi.x,
        "y": poi.y,
        "z": poi.z,
        "cleared": poi.cleared,
        "centerX": entry.center_x,
        "centerZ": entry.center_z,
        "terrainData": base64.b64encode(entry.terrain).decode("ascii"),
    }


def record_from_mapping(payload: object) -> CachedMap:
    """Rebuild a cache entry from a parsed record; unknown keys are ignored."""
    if not isinstance(payload, dict):
        raise InvalidCacheRecordError("record is not a mapping")

    world_name = payload.get("worldName")
    structure_type = payload.get("structureType")
    terrain_b64 = payload.get("terrainData")
    if not world_name:
        raise InvalidCacheRecordError("missing worldName")
    if not structure_type:
        raise InvalidCacheRecordError("missing structureType")
    if not terrain_b64:
        raise InvalidCacheRecordError("missing terrainData")

    try:
        terrain = base64.b64decode(str(terrain_b64), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidCacheRecordError(f"terrainData is not valid base64: {exc}") from exc

    try:
        poi = POI(
            world_name=str(world_name),
            x=int(payload.get("x", 0)),
            y=int(payload.get("y", 0)),
            z=int(payload.get("z", 0)),
            schematic_name=str(payload.get("schematicName") or "unknown"),
            type=str(structure_type),
            cleared=parse_flag(payload.get("cleared", False)),
        )
        entry = CachedMap(
            poi=poi,
            center_x=int(payload.get("centerX", 0)),
            center_z=int(payload.get("centerZ", 0)),
            terrain=terrain,
        )
    except (TypeError, ValueError) as exc:
        raise InvalidCacheRecordError(str(exc)) from exc

    max_offset = MAX_CENTER_OFFSET_PIXELS * SCALE
    if abs(entry.center_x - poi.x) > max_offset or abs(entry.center_z - poi.z) > max_offset:
        raise InvalidCacheRecordError(
            f"map center ({entry.center_x}, {entry.center_z}) is more than {max_offset} blocks from the target"
        )
    return entry


class MapRecordStore:
    """One record file per (world, type) key inside the cache directory."""

    def __init__(self, cache_dir: str | Path) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def cache_dir(self) -> Path:
        return self._dir

    def path_for(self, key: CacheKey) -> Path:
        return self._dir / f"{key.file_stem}{RECORD_SUFFIX}"

    def save(self, entry: CachedMap) -> Path:
        """Write the record atomically: temp file in the same folder, then rename."""
        target = self.path_for(entry.key)
        text = yaml.safe_dump(record_to_mapping(entry), sort_keys=False)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.stem}.", suffix=".tmp", dir=self._dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target

    def load(self, path: Path) -> CachedMap:
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle)
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            raise InvalidCacheRecordError(f"unparseable record: {exc}") from exc
        return record_from_mapping(payload)

    def load_all(self) -> Iterator[CachedMap]:
        """Yield every valid record; invalid ones are logged and skipped."""
        for path in sorted(self._dir.glob(f"*{RECORD_SUFFIX}")):
            try:
                yield self.load(path)
            except (InvalidCacheRecordError, OSError) as exc:
                logger.warning("cache_record_invalid", extra={"path": str(path), "error": str(exc)})
