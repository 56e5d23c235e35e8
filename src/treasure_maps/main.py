"""CLI entrypoint for Treasure Maps."""

from __future__ import annotations

import time

import typer
from rich import print
from rich.console import Console
from rich.table import Table
from rich.text import Text

from treasure_maps.adapters import DemoWorldHost, ImmediateScheduler, RecordingMapHost
from treasure_maps.cache import RenderJobStatus
from treasure_maps.config import settings
from treasure_maps.issuer import marker_offset
from treasure_maps.models import CACHE_SCALE, MAP_SIZE, BiomeCategory, CachedMap
from treasure_maps.palette import category_histogram, decode
from treasure_maps.poi_index import YamlPoiIndex
from treasure_maps.service import AppContext
from treasure_maps.telemetry import configure_logging

app = typer.Typer(help="Treasure map cache service entrypoint")

_PREVIEW_STYLES = {
    BiomeCategory.WATER: ("~", "blue"),
    BiomeCategory.FOREST: ("♣", "green"),
    BiomeCategory.PLAINS: (".", "yellow"),
    BiomeCategory.SNOWY: ("*", "white"),
    BiomeCategory.OTHER: ("#", "grey50"),
}


def _build_context(seed: int = 0) -> AppContext:
    configure_logging(settings.log_level, settings.debug_log_path)
    poi_source = YamlPoiIndex(settings.poi_data_dir)
    return AppContext.build(
        settings,
        world_host=DemoWorldHost(seed=seed, worlds=poi_source.worlds()),
        map_host=RecordingMapHost(),
        scheduler=ImmediateScheduler(),
        poi_source=poi_source,
    )


def _histogram_text(entry: CachedMap) -> str:
    histogram = category_histogram(entry.terrain)
    return ", ".join(f"{category.value}={count}" for category, count in histogram.items() if count)


@app.command("show-config")
def show_config() -> None:
    """Show resolved runtime configuration."""
    print(settings.model_dump())


@app.command()
def worlds() -> None:
    """List worlds with structure data and their structure types."""
    index = YamlPoiIndex(settings.poi_data_dir)
    print({world: sorted(index.types(world)) for world in index.worlds()})


@app.command()
def warm(
    seed: int = typer.Option(0, help="Seed for the demo world host"),
    timeout: float = typer.Option(300.0, help="Seconds to wait for background renders"),
) -> None:
    """Load cached renders and render every missing (world, type) pair."""
    context = _build_context(seed)
    cache = context.cache
    loaded = cache.load_from_disk()
    if settings.startup_delay_seconds:
        time.sleep(settings.startup_delay_seconds)
    scheduled = cache.initialize_all()
    finished = cache.wait_idle(timeout=timeout)
    cache.shutdown(wait=finished)

    jobs = cache.list_recent_jobs(limit=max(scheduled, 1))
    print(
        {
            "loaded": loaded,
            "scheduled": scheduled,
            "finished": finished,
            "succeeded": sum(job.status is RenderJobStatus.SUCCEEDED for job in jobs),
            "skipped": [job.key.file_stem for job in jobs if job.status is RenderJobStatus.SKIPPED],
            "failed": {job.key.file_stem: job.error for job in jobs if job.status is RenderJobStatus.FAILED},
        }
    )
    if not finished:
        raise typer.Exit(code=1)


@app.command("cache-status")
def cache_status() -> None:
    """List cached renders found on disk."""
    context = _build_context()
    context.cache.load_from_disk()
    context.cache.shutdown()

    table = Table(title=f"Cached maps ({context.store.cache_dir})")
    for column in ("world", "type", "schematic", "target", "center", "terrain"):
        table.add_column(column)
    for entry in sorted(context.cache.entries(), key=lambda item: item.key.file_stem):
        table.add_row(
            entry.poi.world_name,
            entry.poi.type,
            entry.poi.schematic_name,
            entry.poi.formatted_coordinates,
            f"{entry.center_x}, {entry.center_z}",
            _histogram_text(entry),
        )
    Console().print(table)


@app.command()
def preview(
    world: str = typer.Option(..., help="World name"),
    structure_type: str = typer.Option(..., "--type", help="Structure type, e.g. VILLAGE"),
    step: int = typer.Option(4, min=1, max=16, help="Pixels per preview glyph"),
) -> None:
    """Print a downsampled view of one cached map with its RED_X marker."""
    context = _build_context()
    context.cache.load_from_disk()
    context.cache.shutdown()
    entry = context.cache.get(world, structure_type.upper())
    if entry is None:
        print({"preview": None, "reason": f"No cached map for {world}/{structure_type.upper()}"})
        raise typer.Exit(code=1)

    scale = CACHE_SCALE.blocks_per_pixel
    marker_px = (marker_offset(entry.poi.x, entry.center_x, scale) + MAP_SIZE) // 2
    marker_pz = (marker_offset(entry.poi.z, entry.center_z, scale) + MAP_SIZE) // 2

    text = Text()
    for pz in range(0, MAP_SIZE, step):
        for px in range(0, MAP_SIZE, step):
            if px <= marker_px < px + step and pz <= marker_pz < pz + step:
                text.append("X", style="bold red")
                continue
            category = decode(entry.terrain[pz * MAP_SIZE + px])
            glyph, style = _PREVIEW_STYLES[category]
            text.append(glyph, style=style)
        text.append("\n")

    console = Console()
    console.print(text)
    print({"target": entry.poi.formatted_coordinates, "schematic": entry.poi.schematic_name})


if __name__ == "__main__":
    app()
