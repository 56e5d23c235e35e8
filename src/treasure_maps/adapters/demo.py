"""In-process host used for local CLI runs and tests.

Not a model of real world generation: biomes come from a coarse hash grid so
renders are deterministic for a given seed.
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from treasure_maps.models import TERRAIN_BYTES, MapScale

DEMO_BIOMES = (
    "minecraft:ocean",
    "minecraft:river",
    "minecraft:plains",
    "minecraft:forest",
    "minecraft:dark_forest",
    "minecraft:snowy_taiga",
    "minecraft:desert",
    "minecraft:stony_peaks",
)


class DemoWorldHost:
    """Deterministic biome layout built from ``cell_size`` block cells."""

    def __init__(self, seed: int = 0, worlds: Iterable[str] = ("world",), cell_size: int = 256) -> None:
        self.seed = seed
        self.worlds = set(worlds)
        self.cell_size = cell_size

    def is_loaded(self, world: str) -> bool:
        return world in self.worlds

    def biome_at(self, world: str, x: int, y: int, z: int) -> str:
        cell = f"{self.seed}:{world}:{x // self.cell_size}:{z // self.cell_size}".encode("utf-8")
        digest = hashlib.blake2b(cell, digest_size=2).digest()
        return DEMO_BIOMES[int.from_bytes(digest, "big") % len(DEMO_BIOMES)]


@dataclass(slots=True)
class RecordingMapView:
    world: str
    center_x: int = 0
    center_z: int = 0
    scale: MapScale = MapScale.NORMAL
    tracking_position: bool = False
    unlimited_tracking: bool = False
    colors: bytearray = field(default_factory=lambda: bytearray(TERRAIN_BYTES))
    cursors: list = field(default_factory=list)
    renderers: list = field(default_factory=list)

    def rerender(self) -> None:
        for renderer in self.renderers:
            renderer.render(self)


class RecordingMapHost:
    """Keeps every created view so callers can inspect what was drawn."""

    def __init__(self) -> None:
        self.views: list[RecordingMapView] = []

    def create_map_view(self, world: str) -> RecordingMapView:
        view = RecordingMapView(world=world)
        self.views.append(view)
        return view

    def set_color_buffer(self, view: RecordingMapView, data: bytes) -> None:
        view.colors[:] = data


@dataclass(slots=True)
class DemoRecipient:
    name: str = "demo"
    location: tuple[str, float, float, float] = ("world", 0.0, 64.0, 0.0)
    inventory_slots: int = 36
    inventory: list[Any] = field(default_factory=list)
    dropped: list[Any] = field(default_factory=list)

    def has_inventory_space(self) -> bool:
        return len(self.inventory) < self.inventory_slots

    def add_item(self, item: Any) -> None:
        self.inventory.append(item)

    def drop_item(self, item: Any) -> None:
        self.dropped.append(item)


class ImmediateScheduler:
    """Runs main-thread callbacks inline on whichever thread schedules them."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        callback()


class QueuedScheduler:
    """Collects callbacks until the owning thread calls :meth:`run_pending`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: list[Callable[[], None]] = []

    def call_soon(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._pending.append(callback)

    def run_pending(self) -> int:
        with self._lock:
            pending, self._pending = self._pending, []
        for callback in pending:
            callback()
        return len(pending)
