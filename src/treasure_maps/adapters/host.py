"""Boundary for the host game server the engine renders for."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol


class WorldHost(Protocol):
    """Read-only access to loaded worlds. ``biome_at`` must be thread-safe."""

    def is_loaded(self, world: str) -> bool:
        """Return whether the world can currently be sampled."""

    def biome_at(self, world: str, x: int, y: int, z: int) -> str:
        """Return the namespaced biome id at a block position."""


class MapView(Protocol):
    """Host map state that a treasure map artifact is drawn into."""

    center_x: int
    center_z: int
    scale: Any
    tracking_position: bool
    unlimited_tracking: bool
    cursors: list
    renderers: list


class MapHost(Protocol):
    """Creates map views and writes their color buffers."""

    def create_map_view(self, world: str) -> MapView:
        """Allocate a new map view bound to ``world``."""

    def set_color_buffer(self, view: MapView, data: bytes) -> None:
        """Replace the view's 128x128 palette buffer."""


class Recipient(Protocol):
    """A player (or other holder) receiving map artifacts."""

    name: str
    location: tuple[str, float, float, float]

    def has_inventory_space(self) -> bool:
        """Return whether ``add_item`` would succeed."""

    def add_item(self, item: Any) -> None:
        """Place the item in the recipient's inventory."""

    def drop_item(self, item: Any) -> None:
        """Drop the item at the recipient's location."""


class MainThreadScheduler(Protocol):
    """Runs callbacks on the host's consumer thread."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Queue ``callback`` for the next main-thread tick."""
