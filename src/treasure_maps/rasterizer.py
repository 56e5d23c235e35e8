"""Biome-sampled terrain rasterization for 128x128 treasure maps."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from .biomes import classify_biome
from .config import MAX_SAMPLE_RESOLUTION, MIN_SAMPLE_RESOLUTION
from .models import MAP_SIZE, SAMPLE_Y, TERRAIN_BYTES, BiomeCategory
from .palette import DEFAULT_COLOR, encode
from .telemetry import timed

BiomeSampler = Callable[[int, int, int], str]
Classifier = Callable[[str], BiomeCategory]

logger = logging.getLogger("treasure_maps.rasterizer")

_HALF = MAP_SIZE // 2


def clamp_resolution(resolution: int) -> int:
    return max(MIN_SAMPLE_RESOLUTION, min(MAX_SAMPLE_RESOLUTION, int(resolution)))


def probe_coordinates(cx: int, cz: int, scale: int, sample_x: int, sample_z: int) -> tuple[int, int, int]:
    """World coordinates probed for the pixel block starting at ``(sample_x, sample_z)``."""
    return cx + (sample_x - _HALF) * scale, SAMPLE_Y, cz + (sample_z - _HALF) * scale


def _probe(sampler: BiomeSampler, classifier: Classifier, x: int, y: int, z: int) -> BiomeCategory:
    try:
        biome_id = sampler(x, y, z)
    except Exception:  # noqa: BLE001 - a failed probe is painted as unknown terrain.
        return BiomeCategory.OTHER
    if not isinstance(biome_id, str):
        return BiomeCategory.OTHER
    return classifier(biome_id)


def _scan_row(
    terrain: bytearray,
    row_index: int,
    *,
    sampler: BiomeSampler,
    classifier: Classifier,
    cx: int,
    cz: int,
    scale: int,
    resolution: int,
) -> Counter[BiomeCategory]:
    counts: Counter[BiomeCategory] = Counter()
    sample_x = row_index * resolution
    x_end = min(sample_x + resolution, MAP_SIZE)

    for sample_z in range(0, MAP_SIZE, resolution):
        category = _probe(sampler, classifier, *probe_coordinates(cx, cz, scale, sample_x, sample_z))
        counts[category] += 1

        z_end = min(sample_z + resolution, MAP_SIZE)
        for pixel_z in range(sample_z, z_end):
            row_offset = pixel_z * MAP_SIZE
            for pixel_x in range(sample_x, x_end):
                terrain[row_offset + pixel_x] = encode(category, pixel_x, pixel_z)
    return counts


def rasterize(
    sampler: BiomeSampler,
    cx: int,
    cz: int,
    scale: int,
    resolution: int,
    *,
    classifier: Classifier = classify_biome,
    workers: int = 1,
) -> bytes:
    """Render a 16384-byte palette buffer centered on ``(cx, cz)``.

    One biome probe is taken at sea level for every ``resolution`` x
    ``resolution`` pixel block, and every pixel of the block is painted from
    that probe. Pixels are stored row-major with ``index = pz * 128 + px``.
    Rows are independent, so with ``workers > 1`` they are scanned on a thread
    pool; the result is byte-identical to the serial scan.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    resolution = clamp_resolution(resolution)
    row_count = MAP_SIZE // resolution
    terrain = bytearray([DEFAULT_COLOR]) * TERRAIN_BYTES

    def scan(row_index: int) -> Counter[BiomeCategory]:
        return _scan_row(
            terrain,
            row_index,
            sampler=sampler,
            classifier=classifier,
            cx=cx,
            cz=cz,
            scale=scale,
            resolution=resolution,
        )

    totals: Counter[BiomeCategory] = Counter()
    with timed(logger, "rasterize", center_x=cx, center_z=cz, resolution=resolution):
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="raster-row") as executor:
                for counts in executor.map(scan, range(row_count)):
                    totals.update(counts)
        else:
            for row_index in range(row_count):
                totals.update(scan(row_index))

    logger.debug(
        "rasterize_samples",
        extra={
            "samples": sum(totals.values()),
            **{f"samples_{category.value}": totals.get(category, 0) for category in BiomeCategory},
        },
    )
    return bytes(terrain)
