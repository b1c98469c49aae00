"""Tests for transformation constraint validation."""

import pytest

from galaxyai.backend.constraint_validator import (
    ConstraintValidator,
    validate_position,
    validate_property_changes,
    validate_rotation,
    validate_scale,
)
from galaxyai.backend.scene_model import Vec3, make_object
from galaxyai.backend.transformations import ObjectTransformation, TransformKind

INF = float("inf")
NAN = float("nan")


@pytest.fixture
def validator():
    return ConstraintValidator()


class TestPosition:
    def test_ordinary_position(self):
        result = validate_position(Vec3(100, 200, 300))
        assert result.is_valid
        assert result.warnings == []

    def test_non_finite(self):
        assert not validate_position(Vec3(NAN, 0, 0)).is_valid
        assert not validate_position(Vec3(0, INF, 0)).is_valid

    def test_limits(self):
        assert not validate_position(Vec3(2_000_000, 0, 0)).is_valid
        far = validate_position(Vec3(200_000, 0, 0))
        assert far.is_valid and far.warnings

    def test_vertical_warnings(self):
        assert validate_position(Vec3(0, -20_000, 0)).warnings
        assert validate_position(Vec3(0, 60_000, 0)).warnings

    def test_start_below_ground(self):
        start = make_object(1, "Start", object_type="start")
        result = validate_position(Vec3(0, -10, 0), start)
        assert "Start position is below ground level" in result.warnings


class TestRotationAndScale:
    def test_rotation(self):
        assert validate_rotation(Vec3(0, 90, 0)).warnings == []
        assert validate_rotation(Vec3(0, 720, 0)).warnings
        assert not validate_rotation(Vec3(NAN, 0, 0)).is_valid

    @pytest.mark.parametrize("vec", [Vec3(0, 1, 1), Vec3(-1, 1, 1)])
    def test_non_positive_scale(self, vec):
        assert validate_scale(vec).errors == ["Scale must be positive"]

    def test_extreme_scale_warns(self):
        assert validate_scale(Vec3(0.0001, 1, 1)).warnings
        assert validate_scale(Vec3(5000, 1, 1)).warnings
        assert validate_scale(Vec3(2, 2, 2)).warnings == []


class TestProperties:
    def test_empty(self):
        assert not validate_property_changes({}).is_valid

    def test_known_ranges(self):
        result = validate_property_changes({"l_id": -1, "SW_APPEAR": 5000, "GroupId": -3})
        assert result.is_valid
        assert len(result.warnings) == 3

    def test_invalid_values(self):
        result = validate_property_changes({"": 1, "Obj_arg0": NAN, "note": None})
        assert len(result.errors) == 2
        assert result.warnings == ["Property 'note' is set to null"]


class TestConstraintValidator:
    def test_translate_checks_resulting_position(self, validator):
        obj = make_object(1, "Far", position=(999_990, 0, 0))
        tf = ObjectTransformation.translate(1, Vec3(100, 0, 0))
        assert not validator.validate(tf, obj).is_valid
        assert validator.validate(tf, make_object(2, "Near")).is_valid

    def test_vector_kind_without_vector(self, validator):
        tf = ObjectTransformation(TransformKind.ROTATE, 1)
        assert not validator.validate(tf).is_valid

    def test_validate_all_combines(self, validator):
        items = [
            (ObjectTransformation.scale(1, Vec3(0, 1, 1)), None),
            (ObjectTransformation.rotate(1, Vec3(0, 400, 0)), None),
            (ObjectTransformation.set_position(1, Vec3(1, 2, 3)), None),
        ]
        result = validator.validate_all(items)
        assert result.errors == ["Scale must be positive"]
        assert len(result.warnings) == 1
