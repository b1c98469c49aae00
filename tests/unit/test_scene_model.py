"""Tests for the immutable scene snapshot model."""

import dataclasses
import weakref

import pytest

from galaxyai.backend.scene_model import ObjectClass, SceneSnapshot, Vec3, make_object, to_vec3


@pytest.fixture
def mixed_snapshot():
    return SceneSnapshot("G", "Zone1", [
        make_object(1, "Kuribo", object_type="enemy"),
        make_object(2, "Kuribo", object_type="enemy"),
        make_object(3, "", object_type="area"),
        make_object(4, "CoinA", object_type=ObjectClass.POSITION),
    ])


class TestMakeObject:
    @pytest.mark.parametrize("bad_id", [True, "1", 1.0, None])
    def test_rejects_non_int_ids(self, bad_id):
        with pytest.raises(ValueError):
            make_object(bad_id, "Obj")

    @pytest.mark.parametrize("bad_vector", [(1, 2), (1, 2, 3, 4), ("a", 0, 0), {"x": "wide"}])
    def test_rejects_malformed_vectors(self, bad_vector):
        with pytest.raises(ValueError):
            make_object(1, "Obj", position=bad_vector)

    def test_vector_forms(self):
        obj = make_object(1, "Obj", position={"x": 1, "z": 3}, rotation=[0, 90, 0])
        assert obj.position == Vec3(1.0, 0.0, 3.0)
        assert obj.rotation == Vec3(0.0, 90.0, 0.0)
        assert obj.scale == Vec3(1.0, 1.0, 1.0)

    def test_object_class_is_stored_as_string(self):
        assert make_object(1, object_type=ObjectClass.GRAVITY).object_type == "gravity"
        assert make_object(1).object_type == "unknown"

    def test_properties_are_read_only_copies(self):
        source = {"l_id": 4}
        obj = make_object(1, "Obj", properties=source)
        source["l_id"] = 99
        assert obj.properties["l_id"] == 4
        with pytest.raises(TypeError):
            obj.properties["l_id"] = 5

    def test_tags_keep_order_and_duplicates(self):
        obj = make_object(1, "Obj", tags=["enemy", "goomba", "enemy"])
        assert obj.tags == ("enemy", "goomba", "enemy")
        assert obj.has_tag("goomba")

    def test_record_is_frozen(self):
        obj = make_object(1, "Obj")
        with pytest.raises(dataclasses.FrozenInstanceError):
            obj.name = "Other"


class TestVec3:
    def test_distance_and_length(self):
        assert Vec3(3, 4, 0).length() == 5.0
        assert Vec3(1, 1, 1).distance_to(Vec3(1, 1, 4)) == 3.0

    def test_non_finite(self):
        assert not Vec3(float("nan"), 0, 0).is_finite()
        assert to_vec3(None) == Vec3()


class TestSceneSnapshot:
    def test_indices_agree_with_objects(self, mixed_snapshot):
        by_type = mixed_snapshot.objects_by_type
        assert sum(len(v) for v in by_type.values()) == len(mixed_snapshot.objects)
        for object_type, records in by_type.items():
            assert all(r.object_type == object_type for r in records)
        assert [r.unique_id for r in by_type["enemy"]] == [1, 2]

        by_name = mixed_snapshot.objects_by_name
        assert [r.unique_id for r in by_name["Kuribo"]] == [1, 2]
        assert [r.unique_id for r in by_name["CoinA"]] == [4]
        assert "" not in by_name

    def test_indices_are_read_only(self, mixed_snapshot):
        with pytest.raises(TypeError):
            mixed_snapshot.objects_by_type["new"] = ()
        with pytest.raises(TypeError):
            mixed_snapshot.objects_by_name["new"] = ()

    def test_get_and_contains(self, mixed_snapshot):
        assert mixed_snapshot.get(4).name == "CoinA"
        assert mixed_snapshot.get(99) is None
        assert 3 in mixed_snapshot
        assert 99 not in mixed_snapshot
        assert "3" not in mixed_snapshot

    def test_counts_and_iteration(self, mixed_snapshot):
        assert mixed_snapshot.object_count == len(mixed_snapshot) == 4
        assert [o.unique_id for o in mixed_snapshot] == [1, 2, 3, 4]
        assert mixed_snapshot.galaxy_name == "G"
        assert mixed_snapshot.zone_name == "Zone1"
        assert mixed_snapshot.revision is None

    def test_duplicate_ids_resolve_to_first(self):
        snap = SceneSnapshot("G", None, [make_object(1, "First"), make_object(1, "Second")])
        assert snap.get(1).name == "First"
        assert snap.object_count == 2

    def test_objects_are_an_immutable_tuple(self, mixed_snapshot):
        assert isinstance(mixed_snapshot.objects, tuple)
        with pytest.raises(AttributeError):
            mixed_snapshot.extra = 1

    def test_weak_referenceable(self, mixed_snapshot):
        assert weakref.ref(mixed_snapshot)() is mixed_snapshot

    def test_spatial_queries(self):
        snap = SceneSnapshot("G", None, [
            make_object(1, "A", position=(0, 0, 0)),
            make_object(2, "B", position=(0, 80, 0)),
            make_object(3, "C", position=(0, 0, 400)),
        ])
        assert [o.unique_id for o in snap.objects_near(Vec3(), 100)] == [1, 2]
        assert [o.unique_id for o in snap.objects_in_bounds(Vec3(-1, -1, -1), Vec3(1, 100, 1))] == [1, 2]
        assert snap.closest_object(Vec3(0, 0, 350)).unique_id == 3
        assert snap.closest_object(Vec3(0, 0, 350), max_distance=10) is None
