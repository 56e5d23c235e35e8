"""In-memory map cache with single-flight background regeneration."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from uuid import uuid4

from .adapters.host import WorldHost
from .biomes import classify_biome
from .models import MAX_CENTER_OFFSET_PIXELS, SCALE, POI, BiomeCategory, CachedMap, CacheKey
from .poi_index import PoiSource
from .rasterizer import rasterize
from .record_store import MapRecordStore


class RenderJobStatus(str, Enum):
    """Lifecycle states for cache regeneration jobs."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class RenderJob:
    """Execution record of one regeneration of a cache key."""

    id: str
    key: CacheKey
    submitted_at: datetime
    status: RenderJobStatus
    started_at: datetime | None = None
    finished_at: datetime | None = None
    poi: POI | None = None
    error: str | None = None

    @property
    def done(self) -> bool:
        return self.status in (RenderJobStatus.SUCCEEDED, RenderJobStatus.SKIPPED, RenderJobStatus.FAILED)


def random_center(poi: POI, rng: random.Random, scale: int = SCALE) -> tuple[int, int]:
    """Pick a map center that keeps ``poi`` inside the inner 120x120 pixels."""
    max_offset = MAX_CENTER_OFFSET_PIXELS * scale
    offset_x = rng.randint(-max_offset, max_offset)
    offset_z = rng.randint(-max_offset, max_offset)
    return poi.x - offset_x, poi.z - offset_z


class MapCache:
    """Cache of pre-rendered maps keyed by (world, structure type).

    Consumers read with :meth:`get` and :meth:`get_random_cached`; neither call
    blocks on rendering. Missing or stale entries are rebuilt on a background
    thread pool through :meth:`regenerate_async`, with at most one job per key.
    Entries are swapped whole, so readers see either the old or the new map.
    """

    def __init__(
        self,
        poi_source: PoiSource,
        store: MapRecordStore,
        world_host: WorldHost,
        *,
        resolution: int = 4,
        workers: int = 2,
        raster_workers: int = 1,
        classifier: Callable[[str], BiomeCategory] = classify_biome,
        rng: random.Random | None = None,
        max_jobs: int = 1_000,
        logger: logging.Logger | None = None,
    ) -> None:
        self._poi_source = poi_source
        self._store = store
        self._world_host = world_host
        self._resolution = resolution
        self._raster_workers = raster_workers
        self._classifier = classifier
        self._rng = rng or random.Random()
        self._max_jobs = max_jobs
        self._logger = logger or logging.getLogger("treasure_maps.cache")

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._entries: dict[CacheKey, CachedMap] = {}
        self._in_flight: set[CacheKey] = set()
        self._jobs: OrderedDict[str, RenderJob] = OrderedDict()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="map-render")

    def __len__(self) -> int:
        return len(self._entries)

    def load_from_disk(self) -> int:
        """Fill the table from persisted records. Call before serving consumers."""
        loaded = 0
        for entry in self._store.load_all():
            with self._lock:
                self._entries[entry.key] = entry
            loaded += 1
            self._logger.info(
                "cache_loaded",
                extra={
                    "key": entry.key.file_stem,
                    "schematic": entry.poi.schematic_name,
                    "poi_x": entry.poi.x,
                    "poi_z": entry.poi.z,
                },
            )
        self._logger.info("cache_load_finished", extra={"loaded": loaded, "cache_dir": str(self._store.cache_dir)})
        return loaded

    def get(self, world: str, structure_type: str) -> CachedMap | None:
        key = CacheKey(world, structure_type)
        entry = self._entries.get(key)
        if entry is None:
            self._logger.info("cache_miss", extra={"key": key.file_stem})
        else:
            self._logger.debug("cache_hit", extra={"key": key.file_stem, "schematic": entry.poi.schematic_name})
        return entry

    def has(self, world: str, structure_type: str) -> bool:
        return CacheKey(world, structure_type) in self._entries

    def entries(self) -> list[CachedMap]:
        with self._lock:
            return list(self._entries.values())

    def cached_types(self, world: str) -> list[str]:
        with self._lock:
            return sorted(key.type for key in self._entries if key.world_name == world)

    def get_random_cached(self, world: str) -> CachedMap | None:
        with self._lock:
            candidates = [entry for key, entry in self._entries.items() if key.world_name == world]
        if not candidates:
            self._logger.warning("cache_empty_for_world", extra={"world": world})
            return None
        return candidates[self._rng.randrange(len(candidates))]

    def in_flight(self) -> frozenset[CacheKey]:
        with self._lock:
            return frozenset(self._in_flight)

    def regenerate_async(self, world: str, structure_type: str) -> str | None:
        """Schedule a rebuild of ``(world, structure_type)``.

        Returns the new job id, or ``None`` when a job for the key is already
        queued or running (that job will satisfy the request).
        """
        key = CacheKey(world, structure_type)
        with self._lock:
            if key in self._in_flight:
                self._logger.info("render_deduplicated", extra={"key": key.file_stem})
                return None
            self._in_flight.add(key)
            job = RenderJob(
                id=uuid4().hex,
                key=key,
                submitted_at=datetime.now(timezone.utc),
                status=RenderJobStatus.QUEUED,
            )
            self._remember(job)

        try:
            self._executor.submit(self._run_job, job)
        except RuntimeError as exc:
            self._finish(job, RenderJobStatus.FAILED, f"{type(exc).__name__}: {exc}")
            self._logger.error("render_not_scheduled", extra={"key": key.file_stem, "error": str(exc)})
            return None

        self._logger.info("render_queued", extra={"job_id": job.id, "key": key.file_stem})
        return job.id

    def initialize_all(self) -> int:
        """Queue a render for every (world, type) pair that has no cache entry."""
        worlds = self._poi_source.worlds()
        self._logger.info("cache_initialize_started", extra={"worlds": worlds, "cached": len(self)})

        scheduled = 0
        for world in worlds:
            for structure_type in sorted(self._poi_source.types(world)):
                if self.has(world, structure_type):
                    self._logger.debug("cache_present", extra={"key": CacheKey(world, structure_type).file_stem})
                    continue
                if self.regenerate_async(world, structure_type) is not None:
                    scheduled += 1

        self._logger.info("cache_initialize_finished", extra={"scheduled": scheduled})
        return scheduled

    def get_job(self, job_id: str) -> RenderJob:
        """Return job state for the given id."""
        with self._lock:
            if job_id not in self._jobs:
                raise KeyError(f"Unknown render job id: {job_id}")
            return self._jobs[job_id]

    def list_recent_jobs(self, limit: int = 20) -> list[RenderJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        jobs.reverse()
        return jobs[:limit]

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no render job is queued or running. Not for the consumer thread."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _remember(self, job: RenderJob) -> None:
        self._jobs[job.id] = job
        while len(self._jobs) > self._max_jobs:
            self._jobs.popitem(last=False)

    def _finish(self, job: RenderJob, status: RenderJobStatus, error: str | None = None) -> None:
        with self._idle:
            job.status = status
            job.error = error
            job.finished_at = datetime.now(timezone.utc)
            self._in_flight.discard(job.key)
            self._idle.notify_all()

    def _run_job(self, job: RenderJob) -> None:
        status, error = RenderJobStatus.FAILED, "Unknown render failure"
        try:
            status, error = self._render(job)
        except Exception as exc:  # noqa: BLE001 - worker failures are only reported through logs.
            error = f"{type(exc).__name__}: {exc}"
            self._logger.exception("render_failed", extra={"job_id": job.id, "key": job.key.file_stem})
        finally:
            self._finish(job, status, error)

    def _render(self, job: RenderJob) -> tuple[RenderJobStatus, str | None]:
        key = job.key
        job.status = RenderJobStatus.RUNNING
        job.started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        self._logger.info("render_started", extra={"job_id": job.id, "key": key.file_stem})

        poi = self._poi_source.random_by_type(key.world_name, key.type, require_not_cleared=False)
        if poi is None:
            self._logger.info("render_no_target", extra={"job_id": job.id, "key": key.file_stem})
            return RenderJobStatus.SKIPPED, "No structure of this type"
        job.poi = poi

        if not self._world_host.is_loaded(key.world_name):
            self._logger.warning("render_world_unavailable", extra={"job_id": job.id, "world": key.world_name})
            return RenderJobStatus.SKIPPED, f"World not loaded: {key.world_name}"

        center_x, center_z = random_center(poi, self._rng)
        self._logger.info(
            "render_target_selected",
            extra={
                "job_id": job.id,
                "schematic": poi.schematic_name,
                "poi_x": poi.x,
                "poi_z": poi.z,
                "center_x": center_x,
                "center_z": center_z,
            },
        )

        try:
            terrain = rasterize(
                partial(self._world_host.biome_at, key.world_name),
                center_x,
                center_z,
                SCALE,
                self._resolution,
                classifier=self._classifier,
                workers=self._raster_workers,
            )
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "render_raster_failed",
                extra={"job_id": job.id, "key": key.file_stem, "error": f"{type(exc).__name__}: {exc}"},
            )
            return RenderJobStatus.FAILED, f"{type(exc).__name__}: {exc}"

        entry = CachedMap(poi=poi, center_x=center_x, center_z=center_z, terrain=terrain)
        with self._lock:
            self._entries[key] = entry

        try:
            self._store.save(entry)
        except OSError:
            self._logger.exception("cache_persist_failed", extra={"job_id": job.id, "key": key.file_stem})

        self._logger.info(
            "render_succeeded",
            extra={"job_id": job.id, "key": key.file_stem, "elapsed_ms": round((time.perf_counter() - start) * 1000)},
        )
        return RenderJobStatus.SUCCEEDED, None
