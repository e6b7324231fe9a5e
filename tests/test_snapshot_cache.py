from __future__ import annotations

from conftest import FakeRenderer

from core.models import HuntLocation
from infrastructure.snapshot_cache import MapSnapshotCache, snapshot_filename

LOC_A = HuntLocation("Best Bakery", "Best Bakery, 1 King St, Toronto", 43.65, -79.38)
LOC_B = HuntLocation("Corner Cafe", "Corner Cafe, 5 Bay St, Ottawa", 45.42, -75.69)
LOC_C = HuntLocation("Empty Deli", "Empty Deli, 7 Main St, Kingston", 44.23, -76.48)


def test_second_get_hits_cache(settings):
    renderer = FakeRenderer()
    cache = MapSnapshotCache(renderer, settings)
    first = cache.get(LOC_A.id, LOC_A.coordinates)
    second = cache.get(LOC_A.id, LOC_A.coordinates)
    assert first is not None and first == second
    assert len(renderer.calls) == 1
    lat, lon, span, size = renderer.calls[0]
    assert (lat, lon) == (43.65, -79.38)
    assert span == 4000.0 and size == (520, 320)


def test_cache_file_survives_restart(settings):
    renderer = FakeRenderer()
    cache = MapSnapshotCache(renderer, settings)
    data = cache.get(LOC_A.id, LOC_A.coordinates)
    assert cache.cache_path(LOC_A.id).name == snapshot_filename(LOC_A.id)
    assert cache.cache_path(LOC_A.id).read_bytes() == data

    fresh_renderer = FakeRenderer()
    again = MapSnapshotCache(fresh_renderer, settings).get(LOC_A.id, LOC_A.coordinates)
    assert again == data
    assert fresh_renderer.calls == []


def test_render_failure_is_not_cached(settings):
    renderer = FakeRenderer()
    renderer.fail = True
    cache = MapSnapshotCache(renderer, settings)
    assert cache.get(LOC_A.id, LOC_A.coordinates) is None
    assert not cache.cache_path(LOC_A.id).exists()
    renderer.fail = False
    assert cache.get(LOC_A.id, LOC_A.coordinates) is not None
    assert len(renderer.calls) == 2


def test_degenerate_coordinates_use_fallback(settings):
    renderer = FakeRenderer()
    cache = MapSnapshotCache(renderer, settings)
    cache.get("origin", (0.0, 0.0))
    assert renderer.calls[0][:2] == cache.fallback_coordinate


def test_preload_is_sequential_without_trailing_pause(settings):
    pauses: list[float] = []
    renderer = FakeRenderer()
    cache = MapSnapshotCache(renderer, settings, sleep=pauses.append)
    cache.get(LOC_A.id, LOC_A.coordinates)

    result = cache.preload([LOC_A, LOC_B])
    assert set(result) == {LOC_A.id, LOC_B.id}
    # B rendered last, so nothing is left to wait for
    assert pauses == []
    assert [c[:2] for c in renderer.calls] == [LOC_A.coordinates, LOC_B.coordinates]
    assert set(cache.snapshots) == {LOC_A.id, LOC_B.id}


def test_preload_pauses_only_between_renders(settings):
    pauses: list[float] = []
    renderer = FakeRenderer()
    cache = MapSnapshotCache(renderer, settings, sleep=pauses.append)
    cache.get(LOC_B.id, LOC_B.coordinates)

    result = cache.preload([LOC_A, LOC_B, LOC_C])
    assert set(result) == {LOC_A.id, LOC_B.id, LOC_C.id}
    assert len(renderer.calls) == 3
    # A rendered and more locations followed; B was cached; C was last
    assert pauses == [0.25]


def test_preload_skips_failures(settings):
    renderer = FakeRenderer()
    renderer.fail = True
    cache = MapSnapshotCache(renderer, settings, sleep=lambda _s: None)
    assert cache.preload([LOC_A, LOC_B], pause_seconds=0) == {}
    assert len(renderer.calls) == 2
