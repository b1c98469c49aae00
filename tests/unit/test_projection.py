"""Tests for the serialization projector."""

import random

import pytest

from galaxyai.backend.context_cache import ContextCache
from galaxyai.backend.projection import ProjectionLevel, Projector, project_object
from galaxyai.backend.scene_model import SceneSnapshot, make_object


@pytest.fixture
def rich_object():
    return make_object(
        7, "Kuribo01",
        display_name="Goomba",
        object_type="enemy",
        position=(1, 2, 3),
        layer="Common",
        zone="MainZone",
        properties={"category": "Enemy", "Obj_arg0": 5, "SW_APPEAR": -1},
        tags=["enemy", "goomba"],
    )


class TestProjectObject:
    def test_minimal(self, rich_object):
        data = project_object(rich_object, ProjectionLevel.MINIMAL)
        assert set(data) == {"uniqueId", "name", "type", "position"}
        assert data["position"] == {"x": 1.0, "y": 2.0, "z": 3.0}

    def test_standard_keeps_essential_properties(self, rich_object):
        data = project_object(rich_object, ProjectionLevel.STANDARD)
        assert data["displayName"] == "Goomba"
        assert data["layer"] == "Common"
        assert data["tags"] == ["enemy", "goomba"]
        assert data["properties"] == {"category": "Enemy", "Obj_arg0": 5}

    def test_standard_omits_empty_properties(self):
        data = project_object(make_object(1, "Plain"), ProjectionLevel.STANDARD)
        assert "properties" not in data

    def test_full_keeps_all_properties(self, rich_object):
        data = project_object(rich_object, ProjectionLevel.FULL)
        assert data["properties"]["SW_APPEAR"] == -1


class TestProject:
    def test_standard_tree(self, goomba_snapshot):
        tree = Projector().project(goomba_snapshot, ProjectionLevel.STANDARD)
        assert tree["galaxyName"] == "TestGalaxy"
        assert tree["currentZone"] is None
        assert tree["objectCount"] == 3
        assert [o["uniqueId"] for o in tree["objects"]] == [1, 2, 3]
        assert tree["objectsByType"] == {"enemy": [1, 2], "collectible": [3]}
        assert "spatialRelationships" not in tree

    def test_minimal_has_no_type_index(self, goomba_snapshot):
        tree = Projector().project(goomba_snapshot, "minimal")
        assert "objectsByType" not in tree

    def test_spatial_proximity(self, goomba_snapshot):
        tree = Projector().project(goomba_snapshot, ProjectionLevel.SPATIAL)
        proximity = tree["spatialRelationships"]["proximity"]
        assert proximity == {"1": [2], "2": [1]}

    def test_proximity_across_grid_cells(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "A", position=(990, 0, 0)),
            make_object(2, "B", position=(1010, 0, 0)),
            make_object(3, "C", position=(5, 0, 0)),
            make_object(4, "D", position=(5000, 0, 0)),
            make_object(5, "E", position=(-400, 0, 0)),
        ])
        proximity = Projector().project(snap, ProjectionLevel.SPATIAL)["spatialRelationships"]["proximity"]
        assert proximity == {"1": [2], "2": [1], "3": [5], "5": [3]}

    def test_proximity_agrees_with_pairwise_distances(self):
        rng = random.Random(7)
        objects = [
            make_object(i, f"Obj{i}", position=(rng.uniform(-3000, 3000),
                                                rng.uniform(-3000, 3000),
                                                rng.uniform(-3000, 3000)))
            for i in range(1, 301)
        ]
        expected = {}
        for obj in objects:
            near = [o.unique_id for o in objects
                    if o is not obj and obj.position.distance_to(o.position) <= 500.0]
            if near:
                expected[str(obj.unique_id)] = near
        tree = Projector().project(SceneSnapshot("G", None, objects), ProjectionLevel.SPATIAL)
        assert tree["spatialRelationships"]["proximity"] == expected

    def test_cached_projection_is_reused(self, goomba_snapshot):
        cache = ContextCache()
        projector = Projector(cache)
        first = projector.project(goomba_snapshot)
        assert projector.project(goomba_snapshot) is first
        assert cache.projection_count == 1

    def test_new_revision_misses_cached_projection(self):
        cache = ContextCache()
        projector = Projector(cache)
        before = SceneSnapshot("G", None, [make_object(1, "Kuribo01")], revision=1)
        after = SceneSnapshot("G", None, [make_object(1, "Kuribo02")], revision=2)
        projector.project(before)
        tree = projector.project(after)
        assert tree["objects"][0]["name"] == "Kuribo02"
        assert cache.projection_count == 2

    def test_parallel_matches_sequential(self):
        snap = SceneSnapshot("Big", None, [
            make_object(i, f"Obj{i}", object_type="enemy" if i % 2 else "platform",
                        position=(i, 0, 0), tags=[f"t{i % 7}"])
            for i in range(1, 1201)
        ])
        parallel = Projector(parallel_threshold=1000).project(snap, ProjectionLevel.FULL)
        sequential = Projector(parallel_threshold=10 ** 9).project(snap, ProjectionLevel.FULL)
        assert parallel == sequential
        assert [o["uniqueId"] for o in parallel["objects"]] == list(range(1, 1201))

    def test_filtered(self, goomba_snapshot):
        tree = Projector().project_filtered(goomba_snapshot, lambda o: o.object_type == "enemy")
        assert tree["objectCount"] == 2
        assert tree["totalObjectCount"] == 3
        assert tree["objectsByType"] == {"enemy": [1, 2]}


class TestProjectForAI:
    def test_orders_by_distance_and_truncates(self, goomba_snapshot):
        tree = Projector().project_for_ai(goomba_snapshot, max_objects=2)
        assert [o["id"] for o in tree["objects"]] == [1, 2]
        assert tree["count"] == 2
        assert tree["truncated"] is True
        assert tree["totalCount"] == 3

    def test_no_truncation_flag_when_everything_fits(self, goomba_snapshot):
        tree = Projector().project_for_ai(goomba_snapshot, max_objects=10)
        assert "truncated" not in tree
        assert tree["count"] == 3

    def test_type_relevance_breaks_distance_ties(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "Start", object_type="start", position=(100, 0, 0)),
            make_object(2, "Enemy", object_type="enemy", position=(0, 100, 0)),
        ])
        tree = Projector().project_for_ai(snap, 10)
        assert [o["id"] for o in tree["objects"]] == [2, 1]

    def test_compact_fields(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "A", position=(1.26, -3.04, 0), scale=(2, 2, 2),
                        tags=["unknown", "layer_Common", "enemy", "x", "goomba",
                              "debug", "coin", "extra"]),
            make_object(2, "B"),
        ])
        first, second = Projector().project_for_ai(snap, 10)["objects"][::-1]
        assert first["pos"] == [1.3, -3.0, 0.0]
        assert first["scale"] == [2.0, 2.0, 2.0]
        assert first["tags"] == ["enemy", "goomba", "coin"]
        assert "scale" not in second
        assert "tags" not in second

    def test_type_relevance_ignores_case(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "Start", object_type="start", position=(100, 0, 0)),
            make_object(2, "Enemy", object_type="Enemy", position=(0, 100, 0)),
        ])
        tree = Projector().project_for_ai(snap, 10)
        assert [o["id"] for o in tree["objects"]] == [2, 1]

    def test_halves_round_up(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "A", position=(0.25, -0.25, 0), scale=(0.125, 1, 1)),
        ])
        (obj,) = Projector().project_for_ai(snap, 10)["objects"]
        assert obj["pos"] == [0.3, -0.2, 0.0]
        assert obj["scale"] == [0.13, 1.0, 1.0]
