from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import yaml

from .errors import PoiSourceError
from .models import POI, parse_flag

logger = logging.getLogger("treasure_maps.poi_index")

POI_FILE_SUFFIX = ".yml"


class PoiSource(Protocol):
    def worlds(self) -> list[str]:
        ...

    def types(self, world: str) -> set[str]:
        ...

    def random_by_type(self, world: str, structure_type: str, require_not_cleared: bool = False) -> POI | None:
        ...

    def random(self, world: str, require_not_cleared: bool = False) -> POI | None:
        ...


class _RandomSelectionMixin:
    """Uniform selection shared by the index backends."""

    _rng: random.Random

    def load(self, world: str) -> list[POI]:
        raise NotImplementedError

    def load_by_type(self, world: str, structure_type: str) -> list[POI]:
        wanted = structure_type.upper()
        return [poi for poi in self.load(world) if poi.type.upper() == wanted]

    def types(self, world: str) -> set[str]:
        return {poi.type for poi in self.load(world)}

    def random_by_type(self, world: str, structure_type: str, require_not_cleared: bool = False) -> POI | None:
        return self._choose(self.load_by_type(world, structure_type), require_not_cleared)

    def random(self, world: str, require_not_cleared: bool = False) -> POI | None:
        return self._choose(self.load(world), require_not_cleared)

    def _choose(self, candidates: list[POI], require_not_cleared: bool) -> POI | None:
        if require_not_cleared:
            candidates = [poi for poi in candidates if not poi.cleared]
        if not candidates:
            return None
        return candidates[self._rng.randrange(len(candidates))]


class YamlPoiIndex(_RandomSelectionMixin):
    """Structure locations read from one YAML file per world.

    Each ``<world>.yml`` file holds a ``structures`` mapping whose entries carry
    ``x``, ``y``, ``z``, ``schematic``, ``type`` and ``cleared``. Files are
    re-read on every query so that structures cleared since startup are seen.
    """

    def __init__(self, data_dir: str | Path, rng: random.Random | None = None) -> None:
        self.data_dir = Path(data_dir)
        self._rng = rng or random.Random()

    def worlds(self) -> list[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(path.stem for path in self.data_dir.glob(f"*{POI_FILE_SUFFIX}") if path.is_file())

    def load(self, world: str) -> list[POI]:
        path = self.data_dir / f"{world}{POI_FILE_SUFFIX}"
        if not path.exists():
            return []
        try:
            return list(self._parse(world, self._read(path)))
        except PoiSourceError as exc:
            logger.warning("poi_file_unreadable", extra={"world": world, "path": str(path), "error": str(exc)})
            return []

    @staticmethod
    def _read(path: Path) -> dict:
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise PoiSourceError(f"{type(exc).__name__}: {exc}") from exc
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise PoiSourceError(f"expected a mapping at the top of {path.name}")
        return payload

    @staticmethod
    def _parse(world: str, payload: dict) -> Iterable[POI]:
        structures = payload.get("structures")
        if not isinstance(structures, dict):
            return
        for entry in structures.values():
            if not isinstance(entry, dict):
                continue
            try:
                yield POI(
                    world_name=world,
                    x=int(entry.get("x", 0)),
                    y=int(entry.get("y", 0)),
                    z=int(entry.get("z", 0)),
                    schematic_name=str(entry.get("schematic", "unknown")),
                    type=str(entry.get("type", "UNDEFINED")),
                    cleared=parse_flag(entry.get("cleared", False)),
                )
            except (TypeError, ValueError):
                logger.warning("poi_entry_invalid", extra={"world": world, "entry": repr(entry)})


class InMemoryPoiIndex(_RandomSelectionMixin):
    """Fixed POI list, used by the demo host and tests."""

    def __init__(self, pois: Iterable[POI] = (), rng: random.Random | None = None) -> None:
        self._pois = list(pois)
        self._rng = rng or random.Random()

    def add(self, poi: POI) -> None:
        self._pois.append(poi)

    def worlds(self) -> list[str]:
        return sorted({poi.world_name for poi in self._pois})

    def load(self, world: str) -> list[POI]:
        return [poi for poi in self._pois if poi.world_name == world]
