from __future__ import annotations

import logging
import random
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial

from .adapters.host import MainThreadScheduler, MapHost, Recipient, WorldHost
from .biomes import BiomeClassifier
from .cache import MapCache, random_center
from .config import Settings
from .issuer import MapArtifact, MapIssuer
from .models import POI, CachedMap, MapScale
from .poi_index import PoiSource, YamlPoiIndex
from .rasterizer import rasterize
from .record_store import MapRecordStore

logger = logging.getLogger("treasure_maps.service")


@dataclass(slots=True)
class AppContext:
    """Everything a consumer entry point needs, passed explicitly."""

    settings: Settings
    poi_source: PoiSource
    store: MapRecordStore
    world_host: WorldHost
    cache: MapCache
    issuer: MapIssuer
    scheduler: MainThreadScheduler
    classifier: BiomeClassifier

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        world_host: WorldHost,
        map_host: MapHost,
        scheduler: MainThreadScheduler,
        poi_source: PoiSource | None = None,
        rng: random.Random | None = None,
    ) -> AppContext:
        poi_source = poi_source or YamlPoiIndex(settings.poi_data_dir, rng=rng)
        store = MapRecordStore(settings.cache_dir)
        classifier = BiomeClassifier.from_settings(settings)
        cache = MapCache(
            poi_source,
            store,
            world_host,
            resolution=settings.sample_resolution,
            workers=settings.render_workers,
            raster_workers=settings.raster_workers,
            classifier=classifier,
            rng=rng,
        )
        return cls(
            settings=settings,
            poi_source=poi_source,
            store=store,
            world_host=world_host,
            cache=cache,
            issuer=MapIssuer(map_host),
            scheduler=scheduler,
            classifier=classifier,
        )


class TreasureMapService:
    """Consumer-facing operations: hand out cached maps or render one on demand."""

    def __init__(self, context: AppContext, rng: random.Random | None = None) -> None:
        self.context = context
        self._rng = rng or random.Random()
        self._live_executor = ThreadPoolExecutor(
            max_workers=context.settings.render_workers,
            thread_name_prefix="map-live",
        )

    def startup(self) -> int:
        """Load persisted renders, then queue renders for every missing key."""
        self.context.cache.load_from_disk()
        return self.context.cache.initialize_all()

    def shutdown(self, wait: bool = True) -> None:
        self._live_executor.shutdown(wait=wait)
        self.context.cache.shutdown(wait=wait)

    def issue_cached(self, recipient: Recipient, world: str, structure_type: str | None = None) -> CachedMap | None:
        """Give ``recipient`` a cached map; returns ``None`` when nothing is cached yet.

        The issued key is re-rendered in the background so the next request
        points at a freshly chosen structure.
        """
        cache = self.context.cache
        if structure_type:
            entry = cache.get(world, structure_type.upper())
        else:
            entry = cache.get_random_cached(world)
        if entry is None:
            return None

        self.context.issuer.issue(recipient, entry)
        cache.regenerate_async(entry.poi.world_name, entry.poi.type)
        return entry

    def pick_target(self, world: str, structure_type: str | None = None) -> POI | None:
        require_not_cleared = self.context.settings.skip_cleared_targets
        source = self.context.poi_source
        if structure_type:
            return source.random_by_type(world, structure_type.upper(), require_not_cleared)
        return source.random(world, require_not_cleared)

    def issue_live(
        self,
        recipient: Recipient,
        world: str,
        structure_type: str | None = None,
        scale: MapScale = MapScale.NORMAL,
    ) -> Future[MapArtifact] | None:
        """Render a fresh map off-thread, then deliver it on the main thread.

        Returns ``None`` when there is no target or the world is not loaded.
        """
        poi = self.pick_target(world, structure_type)
        if poi is None:
            logger.info("live_no_target", extra={"world": world, "structure_type": structure_type})
            return None
        if not self.context.world_host.is_loaded(world):
            logger.warning("live_world_unavailable", extra={"world": world})
            return None

        center = random_center(poi, self._rng, scale.blocks_per_pixel)
        result: Future[MapArtifact] = Future()

        if not self.context.settings.explorer_style_enabled:
            self._deliver_on_main(result, recipient, poi, scale, center, None)
            return result

        self._live_executor.submit(self._render_live, result, recipient, poi, scale, center)
        return result

    def _render_live(
        self,
        result: Future[MapArtifact],
        recipient: Recipient,
        poi: POI,
        scale: MapScale,
        center: tuple[int, int],
    ) -> None:
        settings = self.context.settings
        try:
            terrain = rasterize(
                partial(self.context.world_host.biome_at, poi.world_name),
                center[0],
                center[1],
                scale.blocks_per_pixel,
                settings.sample_resolution,
                classifier=self.context.classifier,
                workers=settings.raster_workers,
            )
        except Exception as exc:  # noqa: BLE001 - failures are reported through logs and the future.
            logger.exception("live_render_failed", extra={"schematic": poi.schematic_name})
            result.set_exception(exc)
            return
        self._deliver_on_main(result, recipient, poi, scale, center, terrain)

    def _deliver_on_main(
        self,
        result: Future[MapArtifact],
        recipient: Recipient,
        poi: POI,
        scale: MapScale,
        center: tuple[int, int],
        terrain: bytes | None,
    ) -> None:
        def deliver() -> None:
            try:
                artifact = self.context.issuer.issue_render(
                    recipient, poi, scale=scale, center=center, terrain=terrain
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception("live_issue_failed", extra={"recipient": recipient.name})
                result.set_exception(exc)
                return
            result.set_result(artifact)

        self.context.scheduler.call_soon(deliver)
