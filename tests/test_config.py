from __future__ import annotations

from pathlib import Path

import pytest

from treasure_maps.config import MAX_SAMPLE_RESOLUTION, MIN_SAMPLE_RESOLUTION, Settings
from treasure_maps.models import MapScale


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0, MIN_SAMPLE_RESOLUTION), (-3, MIN_SAMPLE_RESOLUTION), (4, 4), (40, MAX_SAMPLE_RESOLUTION)],
)
def test_sample_resolution_is_clamped(raw: int, expected: int) -> None:
    assert Settings(sample_resolution=raw).sample_resolution == expected


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TREASURE_MAPS_SAMPLE_RESOLUTION", "99")
    monkeypatch.setenv("TREASURE_MAPS_EXPLORER_STYLE_ENABLED", "false")
    monkeypatch.setenv("TREASURE_MAPS_WATER_BIOME_KEYWORDS", '["swamp"]')

    settings = Settings()

    assert settings.sample_resolution == MAX_SAMPLE_RESOLUTION
    assert settings.explorer_style_enabled is False
    assert settings.water_biome_keywords == ["swamp"]


def test_cache_dir_lives_under_data_dir(tmp_path: Path) -> None:
    assert Settings(data_dir=str(tmp_path)).cache_dir == tmp_path / "cache"


def test_map_scale_levels() -> None:
    assert MapScale.from_level(3) is MapScale.FAR
    assert [scale.blocks_per_pixel for scale in MapScale] == [1, 2, 4, 8, 16]
    with pytest.raises(ValueError):
        MapScale.from_level(7)
