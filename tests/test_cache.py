from __future__ import annotations

import random
import threading
from pathlib import Path

from treasure_maps.cache import MapCache, RenderJobStatus, random_center
from treasure_maps.models import POI, SCALE, TERRAIN_BYTES, CachedMap, CacheKey
from treasure_maps.poi_index import InMemoryPoiIndex
from treasure_maps.record_store import MapRecordStore


class StubWorldHost:
    def __init__(self, loaded: bool = True, biome: str = "minecraft:forest", gate: threading.Event | None = None) -> None:
        self.loaded = loaded
        self.biome = biome
        self.gate = gate

    def is_loaded(self, world: str) -> bool:
        return self.loaded

    def biome_at(self, world: str, x: int, y: int, z: int) -> str:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.biome


class CountingPoiIndex(InMemoryPoiIndex):
    def __init__(self, pois, rng=None) -> None:
        super().__init__(pois, rng=rng)
        self.picks = 0
        self._count_lock = threading.Lock()

    def random_by_type(self, world, structure_type, require_not_cleared=False):
        with self._count_lock:
            self.picks += 1
        return super().random_by_type(world, structure_type, require_not_cleared)


class ExplodingPoiIndex(InMemoryPoiIndex):
    def random_by_type(self, world, structure_type, require_not_cleared=False):
        raise RuntimeError("poi store offline")


class ReadOnlyStore(MapRecordStore):
    def save(self, entry):
        raise PermissionError("read-only cache dir")


def _poi(world: str = "W", structure_type: str = "T", x: int = 1_000, z: int = -2_000) -> POI:
    return POI(world, x, 64, z, f"{structure_type.lower()}.schem", structure_type)


def _cache(tmp_path: Path, pois, host=None, store=None, **kwargs) -> MapCache:
    return MapCache(
        pois,
        store or MapRecordStore(tmp_path / "cache"),
        host or StubWorldHost(),
        resolution=16,
        rng=random.Random(3),
        **kwargs,
    )


def test_regenerate_renders_persists_and_bounds_center(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi()]))

    job_id = cache.regenerate_async("W", "T")
    assert cache.wait_idle(timeout=5)

    entry = cache.get("W", "T")
    assert entry is not None
    assert entry.terrain == bytes([28]) * TERRAIN_BYTES
    assert abs(entry.center_x - entry.poi.x) <= 60 * SCALE
    assert abs(entry.center_z - entry.poi.z) <= 60 * SCALE
    assert cache.get_job(job_id).status == RenderJobStatus.SUCCEEDED
    assert list(MapRecordStore(tmp_path / "cache").load_all()) == [entry]
    cache.shutdown()


def test_concurrent_regenerations_run_one_job(tmp_path: Path) -> None:
    gate = threading.Event()
    pois = CountingPoiIndex([_poi()])
    cache = _cache(tmp_path, pois, host=StubWorldHost(gate=gate), workers=4)
    barrier = threading.Barrier(100)
    job_ids: list[str | None] = []
    results_lock = threading.Lock()

    def request() -> None:
        barrier.wait()
        job_id = cache.regenerate_async("W", "T")
        with results_lock:
            job_ids.append(job_id)

    threads = [threading.Thread(target=request) for _ in range(100)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len([job_id for job_id in job_ids if job_id is not None]) == 1
    assert cache.in_flight() == {CacheKey("W", "T")}

    gate.set()
    assert cache.wait_idle(timeout=5)
    assert pois.picks == 1
    assert len(cache) == 1
    assert cache.in_flight() == frozenset()
    cache.shutdown()


def test_startup_loads_persisted_and_schedules_missing(tmp_path: Path) -> None:
    store = MapRecordStore(tmp_path / "cache")
    persisted = [
        CachedMap(poi=_poi("W", t), center_x=1_000, center_z=-2_000, terrain=bytes([4]) * TERRAIN_BYTES)
        for t in ("A", "B", "C")
    ]
    for entry in persisted:
        store.save(entry)

    pois = CountingPoiIndex([_poi("W", t) for t in ("A", "B", "C", "D")] + [_poi("V", "A")])
    gate = threading.Event()
    cache = _cache(tmp_path, pois, host=StubWorldHost(gate=gate), store=store)

    assert cache.load_from_disk() == 3
    for entry in persisted:
        assert cache.get("W", entry.poi.type) == entry

    assert cache.initialize_all() == 2
    assert cache.in_flight() == {CacheKey("W", "D"), CacheKey("V", "A")}

    gate.set()
    assert cache.wait_idle(timeout=5)
    assert pois.picks == 2
    assert len(cache) == 5
    assert cache.get("W", "A") == persisted[0]
    cache.shutdown()


def test_missing_target_leaves_entry_absent(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi("W", "T")]))

    job_id = cache.regenerate_async("W", "NOPE")
    assert cache.wait_idle(timeout=5)

    assert cache.get("W", "NOPE") is None
    assert cache.get_job(job_id).status == RenderJobStatus.SKIPPED
    assert cache.in_flight() == frozenset()
    cache.shutdown()


def test_unloaded_world_is_skipped(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi()]), host=StubWorldHost(loaded=False))

    job_id = cache.regenerate_async("W", "T")
    assert cache.wait_idle(timeout=5)

    assert cache.get("W", "T") is None
    job = cache.get_job(job_id)
    assert job.status == RenderJobStatus.SKIPPED
    assert "not loaded" in (job.error or "")
    cache.shutdown()


def test_failed_regeneration_keeps_previous_entry(tmp_path: Path) -> None:
    store = MapRecordStore(tmp_path / "cache")
    previous = CachedMap(poi=_poi(), center_x=1_005, center_z=-1_995, terrain=bytes(TERRAIN_BYTES))
    store.save(previous)
    cache = _cache(tmp_path, ExplodingPoiIndex([_poi()]), store=store)
    cache.load_from_disk()

    job_id = cache.regenerate_async("W", "T")
    assert cache.wait_idle(timeout=5)

    job = cache.get_job(job_id)
    assert job.status == RenderJobStatus.FAILED
    assert "poi store offline" in (job.error or "")
    assert cache.get("W", "T") == previous
    assert cache.in_flight() == frozenset()

    # a later request tries again
    assert cache.regenerate_async("W", "T") is not None
    assert cache.wait_idle(timeout=5)
    cache.shutdown()


def test_persist_failure_keeps_entry_in_memory(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi()]), store=ReadOnlyStore(tmp_path / "cache"))

    job_id = cache.regenerate_async("W", "T")
    assert cache.wait_idle(timeout=5)

    assert cache.get_job(job_id).status == RenderJobStatus.SUCCEEDED
    assert cache.get("W", "T") is not None
    assert list((tmp_path / "cache").glob("*.yml")) == []
    cache.shutdown()


def test_random_cached_is_scoped_to_world(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi("W", "A"), _poi("W", "B"), _poi("V", "A")]))
    assert cache.get_random_cached("W") is None

    cache.initialize_all()
    assert cache.wait_idle(timeout=5)

    assert cache.cached_types("W") == ["A", "B"]
    picks = {cache.get_random_cached("W").poi.type for _ in range(40)}
    assert picks == {"A", "B"}
    assert cache.get_random_cached("V").poi.world_name == "V"
    assert cache.get_random_cached("Z") is None
    cache.shutdown()


def test_recent_jobs_newest_first(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi("W", "A"), _poi("W", "B")]))
    first = cache.regenerate_async("W", "A")
    second = cache.regenerate_async("W", "B")
    assert cache.wait_idle(timeout=5)

    assert [job.id for job in cache.list_recent_jobs(limit=5)] == [second, first]
    assert all(job.done for job in cache.list_recent_jobs())
    cache.shutdown()


def test_regenerate_after_shutdown_releases_key(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi()]))
    cache.shutdown()

    assert cache.regenerate_async("W", "T") is None
    assert cache.in_flight() == frozenset()


def test_random_center_stays_within_offset() -> None:
    rng = random.Random(11)
    poi = _poi(x=-37, z=12_345)
    for _ in range(500):
        center_x, center_z = random_center(poi, rng)
        assert abs(center_x - poi.x) <= 60 * SCALE
        assert abs(center_z - poi.z) <= 60 * SCALE


def test_structure_type_case_maps_to_one_entry(tmp_path: Path) -> None:
    cache = _cache(tmp_path, InMemoryPoiIndex([_poi("W", "VILLAGE")]))

    cache.regenerate_async("W", "village")
    assert cache.wait_idle(timeout=5)
    cache.regenerate_async("W", "VILLAGE")
    assert cache.wait_idle(timeout=5)

    assert len(cache) == 1
    assert cache.cached_types("W") == ["VILLAGE"]
    assert cache.get("W", "Village") is cache.get("W", "VILLAGE")
    assert [p.name for p in (tmp_path / "cache").glob("*.yml")] == ["W_VILLAGE.yml"]

    reloaded = _cache(tmp_path, InMemoryPoiIndex([]))
    assert reloaded.load_from_disk() == 1
    assert reloaded.has("W", "village")
    cache.shutdown()
    reloaded.shutdown()
