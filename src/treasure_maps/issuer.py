"""Turns cached renders into host map artifacts and hands them to recipients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .adapters.host import MapHost, MapView, Recipient
from .models import CACHE_SCALE, MAP_SIZE, POI, TERRAIN_BYTES, CachedMap, MapScale
from .telemetry import timed

logger = logging.getLogger("treasure_maps.issuer")

CURSOR_MIN = -MAP_SIZE
CURSOR_MAX = MAP_SIZE - 1


class CursorType(str, Enum):
    RED_X = "red_x"


@dataclass(frozen=True, slots=True)
class MapCursor:
    x: int
    z: int
    direction: int
    type: CursorType
    visible: bool = True


def _truncating_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def marker_offset(target: int, center: int, scale: int) -> int:
    """Cursor coordinate for a world position; cursors use half-pixel steps."""
    pixel_offset = _truncating_div(target - center, scale)
    return max(CURSOR_MIN, min(CURSOR_MAX, pixel_offset * 2))


class MarkerRenderer:
    """Adds one RED_X cursor at the target; later renders leave it alone."""

    def __init__(self, poi: POI) -> None:
        self.poi = poi

    def render(self, view: MapView) -> None:
        if any(cursor.type is CursorType.RED_X for cursor in view.cursors):
            return
        scale = view.scale.blocks_per_pixel
        view.cursors.append(
            MapCursor(
                x=marker_offset(self.poi.x, view.center_x, scale),
                z=marker_offset(self.poi.z, view.center_z, scale),
                direction=0,
                type=CursorType.RED_X,
            )
        )


def format_structure_type(structure_type: str | None) -> str:
    """``ANCIENT_CITY`` -> ``Ancient City``."""
    if not structure_type:
        return "Unknown"
    return " ".join(part.capitalize() for part in structure_type.lower().split("_") if part)


@dataclass(slots=True)
class MapArtifact:
    """A map item ready to be placed in an inventory."""

    view: MapView
    poi: POI
    display_name: str
    lore: list[str] = field(default_factory=list)


class MapIssuer:
    """Builds map artifacts on the consumer thread. Never samples the world."""

    def __init__(self, host: MapHost) -> None:
        self._host = host

    def issue(self, recipient: Recipient, entry: CachedMap) -> MapArtifact:
        """Give ``recipient`` a far-scale map built from a cached render."""
        return self.issue_render(
            recipient,
            entry.poi,
            scale=CACHE_SCALE,
            center=(entry.center_x, entry.center_z),
            terrain=entry.terrain,
        )

    def issue_render(
        self,
        recipient: Recipient,
        poi: POI,
        *,
        scale: MapScale,
        center: tuple[int, int],
        terrain: bytes | None,
    ) -> MapArtifact:
        """Give ``recipient`` a map at any scale; ``terrain=None`` leaves the map blank."""
        with timed(logger, "issue_map", recipient=recipient.name, schematic=poi.schematic_name):
            view = self._host.create_map_view(poi.world_name)
            view.center_x, view.center_z = center
            view.scale = scale
            view.tracking_position = True
            view.unlimited_tracking = True

            if terrain is not None:
                if len(terrain) != TERRAIN_BYTES:
                    raise ValueError(f"terrain must be {TERRAIN_BYTES} bytes, got {len(terrain)}")
                self._host.set_color_buffer(view, bytes(terrain))

            marker = MarkerRenderer(poi)
            view.renderers.append(marker)
            marker.render(view)

            artifact = MapArtifact(
                view=view,
                poi=poi,
                display_name=f"{format_structure_type(poi.type)} Map",
                lore=[f"World: {poi.world_name}", f"Structure: {poi.schematic_name}"],
            )
            self._deliver(recipient, artifact)
        return artifact

    @staticmethod
    def _deliver(recipient: Recipient, artifact: MapArtifact) -> None:
        if recipient.has_inventory_space():
            recipient.add_item(artifact)
            logger.info("map_delivered", extra={"recipient": recipient.name, "delivery": "inventory"})
        else:
            recipient.drop_item(artifact)
            logger.info("map_delivered", extra={"recipient": recipient.name, "delivery": "dropped"})
