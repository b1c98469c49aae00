"""Tests for the snapshot/projection context cache."""

import gc
import threading
import weakref

import pytest

from galaxyai.backend.context_cache import ContextCache, context_key, projection_key
from galaxyai.backend.scene_model import SceneSnapshot, make_object


def _snapshot(galaxy="G", zone=None, n=3):
    return SceneSnapshot(galaxy, zone, [make_object(i, f"Obj{i}") for i in range(1, n + 1)])


@pytest.fixture
def cache(fake_clock):
    return ContextCache(max_contexts=3, max_projections=3, ttl_seconds=60, clock=fake_clock)


class TestKeys:
    def test_context_key_defaults_to_full(self):
        assert context_key("G") == "G:full"
        assert context_key("G", "Zone1") == "G:Zone1"

    def test_projection_key(self):
        assert projection_key("standard", "G", None, 3) == "standard:G:full:3"
        assert projection_key("standard", "G", "Z", 3, revision=7) == "standard:G:Z:3:r7"


class TestSnapshotEntries:
    def test_hit_returns_same_object(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        assert cache.get("G", None, expected_count=3) is snap

    def test_missing_entry_is_a_miss(self, cache):
        assert cache.get("Nope", None, expected_count=0) is None

    def test_count_mismatch_purges(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        assert cache.get("G", None, expected_count=4) is None
        # purged: even the right count misses now
        assert cache.get("G", None, expected_count=3) is None
        assert cache.context_count == 0

    def test_ttl_expiry(self, cache, fake_clock):
        snap = _snapshot()
        cache.put("G", None, snap)
        fake_clock.advance(59)
        assert cache.get("G", None, expected_count=3) is snap
        fake_clock.advance(2)
        assert cache.get("G", None, expected_count=3) is None

    def test_collected_snapshot_is_a_miss(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        del snap
        gc.collect()
        assert cache.get("G", None, expected_count=3) is None

    def test_cache_does_not_keep_snapshot_alive(self, cache):
        snap = _snapshot()
        ref = weakref.ref(snap)
        cache.put("G", None, snap)
        del snap
        gc.collect()
        assert ref() is None

    def test_revision_mismatch_purges(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap, revision=4)
        assert cache.get("G", None, expected_count=3, revision=4) is snap
        assert cache.get("G", None, expected_count=3, revision=5) is None

    def test_revision_ignored_when_one_side_lacks_it(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        assert cache.get("G", None, expected_count=3, revision=9) is snap

    def test_zones_are_separate_entries(self, cache):
        whole, zone = _snapshot(), _snapshot(zone="Z", n=1)
        cache.put("G", None, whole)
        cache.put("G", "Z", zone)
        assert cache.get("G", "Z", expected_count=1) is zone
        assert cache.get("G", None, expected_count=3) is whole


class TestEviction:
    def test_size_never_exceeds_bound(self, cache):
        snaps = [_snapshot(f"G{i}") for i in range(10)]
        for snap in snaps:
            cache.put(snap.galaxy_name, None, snap)
            assert cache.context_count <= 3
        assert cache.context_count == 3

    def test_least_recently_used_is_evicted(self, cache):
        snaps = {name: _snapshot(name) for name in ("A", "B", "C", "D")}
        for name in ("A", "B", "C"):
            cache.put(name, None, snaps[name])
        cache.get("A", None, expected_count=3)

        stamps = {name: cache.last_access_of(name) for name in ("A", "B", "C")}
        victim = min(stamps, key=stamps.get)
        assert victim == "B"

        cache.put("D", None, snaps["D"])
        assert cache.get("B", None, expected_count=3) is None
        assert cache.get("A", None, expected_count=3) is snaps["A"]
        assert cache.get("D", None, expected_count=3) is snaps["D"]

    def test_overwrite_does_not_evict(self, cache):
        snaps = [_snapshot(n) for n in ("A", "B", "C")]
        for snap in snaps:
            cache.put(snap.galaxy_name, None, snap)
        replacement = _snapshot("A", n=2)
        cache.put("A", None, replacement)
        assert cache.context_count == 3
        assert cache.get("A", None, expected_count=2) is replacement

    def test_projection_bound(self, cache):
        for count in range(6):
            cache.put_projection("standard", "G", None, count, {"n": count})
        assert cache.projection_count == 3
        assert cache.get_projection("standard", "G", None, 5) == {"n": 5}
        assert cache.get_projection("standard", "G", None, 0) is None

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ContextCache(max_contexts=0)


class TestProjections:
    def test_round_trip(self, cache):
        tree = {"objects": []}
        cache.put_projection("minimal", "G", None, 0, tree)
        assert cache.get_projection("minimal", "G", None, 0) is tree

    def test_keyed_by_level_and_count(self, cache):
        cache.put_projection("minimal", "G", None, 3, {"level": "minimal"})
        assert cache.get_projection("standard", "G", None, 3) is None
        assert cache.get_projection("minimal", "G", None, 4) is None

    def test_keyed_by_revision(self, cache):
        cache.put_projection("standard", "G", None, 3, {"rev": 1}, revision=1)
        assert cache.get_projection("standard", "G", None, 3, revision=2) is None
        assert cache.get_projection("standard", "G", None, 3) is None
        assert cache.get_projection("standard", "G", None, 3, revision=1) == {"rev": 1}

    def test_revisioned_projection_is_invalidated_with_scope(self, cache):
        cache.put_projection("standard", "G", None, 3, {}, revision=4)
        assert cache.invalidate_scope("G") == 1
        assert cache.projection_count == 0

    def test_expiry(self, cache, fake_clock):
        cache.put_projection("minimal", "G", None, 3, {})
        fake_clock.advance(61)
        assert cache.get_projection("minimal", "G", None, 3) is None
        assert cache.projection_count == 0


class TestInvalidation:
    def test_invalidate_scope(self, cache):
        a, a_zone, b = _snapshot("A"), _snapshot("A", "Z1", 1), _snapshot("B")
        cache.put("A", None, a)
        cache.put("A", "Z1", a_zone)
        cache.put("B", None, b)
        cache.put_projection("standard", "A", None, 3, {})
        cache.put_projection("standard", "B", None, 3, {})

        assert cache.invalidate_scope("A") == 3
        assert cache.get("A", None, expected_count=3) is None
        assert cache.get("A", "Z1", expected_count=1) is None
        assert cache.get("B", None, expected_count=3) is b
        assert cache.get_projection("standard", "B", None, 3) == {}

    def test_scope_prefix_does_not_leak(self, cache):
        ab = _snapshot("AB")
        cache.put("AB", None, ab)
        cache.invalidate_scope("A")
        assert cache.get("AB", None, expected_count=3) is ab

    def test_invalidate_sub_scope(self, cache):
        whole, z1, z2 = _snapshot("A"), _snapshot("A", "Z1", 1), _snapshot("A", "Z2", 2)
        cache.put("A", None, whole)
        cache.put("A", "Z1", z1)
        cache.put("A", "Z2", z2)

        assert cache.invalidate_sub_scope("A", "Z1") == 2
        assert cache.get("A", "Z1", expected_count=1) is None
        assert cache.get("A", None, expected_count=3) is None
        assert cache.get("A", "Z2", expected_count=2) is z2

    def test_clear(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        cache.put_projection("minimal", "G", None, 3, {})
        cache.clear()
        assert cache.context_count == 0
        assert cache.projection_count == 0


class TestStatistics:
    def test_counts_and_memory_estimate(self, cache):
        snap = _snapshot()
        cache.put("G", None, snap)
        cache.put_projection("minimal", "G", None, 3, {})
        cache.get("G", None, expected_count=3)
        cache.get("X", None, expected_count=0)

        stats = cache.statistics()
        assert stats["context_cache_size"] == 1
        assert stats["projection_cache_size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["total_accesses"] == 2
        assert stats["estimated_memory_bytes"] == 3 * 100 + 1000 + 500
        assert stats["max_context_cache_size"] == 3


class TestConcurrency:
    def test_parallel_put_and_get(self):
        cache = ContextCache(max_contexts=5)
        snaps = [_snapshot(f"G{i}") for i in range(20)]
        errors = []

        def worker(offset):
            try:
                for i in range(200):
                    snap = snaps[(i + offset) % len(snaps)]
                    cache.put(snap.galaxy_name, None, snap)
                    cache.get(snap.galaxy_name, None, expected_count=3)
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert cache.context_count <= 5
