"""Tests for the built-in template command parser."""

import pytest

from galaxyai.backend.command_templates import (
    _is_multi_reference,
    parse_command,
    pre_validate,
    split_multi_command,
)
from galaxyai.backend.transformations import TransformKind


def _vec(tf):
    return tf.vector.to_list()


class TestPreValidate:
    def test_empty(self):
        assert pre_validate("   ") == (["Command is empty"], [])

    def test_no_action_keyword(self):
        errors, warnings = pre_validate("hello there")
        assert errors == []
        assert len(warnings) == 1

    def test_long_command(self):
        errors, warnings = pre_validate("move " + "x" * 600)
        assert errors == []
        assert any("longer than" in w for w in warnings)

    def test_ordinary_command(self):
        assert pre_validate("rotate the platform 90 degrees") == ([], [])


class TestHelpers:
    def test_split(self):
        assert split_multi_command("move a up 5 units; rotate b 90 degrees") == [
            "move a up 5 units", "rotate b 90 degrees"]
        assert split_multi_command("scale c by 2x then move c up 1 unit") == [
            "scale c by 2x", "move c up 1 unit"]

    @pytest.mark.parametrize("ref,expected", [
        ("all goombas", True), ("coins", True), ("a, b", True),
        ("goomba1", False), ("glass", False),
    ])
    def test_multi_reference(self, ref, expected):
        assert _is_multi_reference(ref) is expected


class TestParse:
    def test_move_amount_first(self, goomba_snapshot):
        result = parse_command("move the goomba1 100 units up", goomba_snapshot)
        assert result.success
        (tf,) = result.transformations
        assert tf.kind == TransformKind.TRANSLATE
        assert tf.object_id == 1
        assert _vec(tf) == [0.0, 100.0, 0.0]
        assert result.warnings == []

    def test_move_direction_first(self, goomba_snapshot):
        (tf,) = parse_command("move coin1 to the left 25 units", goomba_snapshot).transformations
        assert tf.object_id == 3
        assert _vec(tf) == [-25.0, 0.0, 0.0]

    def test_move_to_position(self, goomba_snapshot):
        (tf,) = parse_command("move coin1 to position 0, 200, -50", goomba_snapshot).transformations
        assert tf.kind == TransformKind.SET_POSITION
        assert _vec(tf) == [0.0, 200.0, -50.0]

    def test_rotate_all(self, goomba_snapshot):
        result = parse_command("rotate all goombas 90 degrees", goomba_snapshot)
        assert [t.object_id for t in result.transformations] == [1, 2]
        assert all(_vec(t) == [0.0, 90.0, 0.0] for t in result.transformations)

    def test_scale(self, goomba_snapshot):
        (tf,) = parse_command("scale the coin1 by 2x", goomba_snapshot).transformations
        assert tf.kind == TransformKind.SCALE
        assert _vec(tf) == [2.0, 2.0, 2.0]

    def test_add_at(self, goomba_snapshot):
        (tf,) = parse_command("add a coin at 0, 100, 0", goomba_snapshot).transformations
        assert tf.kind == TransformKind.ADD
        assert tf.add_object_type == "coin"
        assert _vec(tf) == [0.0, 100.0, 0.0]

    def test_add_relative(self, goomba_snapshot):
        (tf,) = parse_command("add coins above the coin1", goomba_snapshot).transformations
        assert tf.add_object_type == "coin"
        assert _vec(tf) == [0.0, 100.0, 500.0]

    def test_ambiguous_reference_uses_best_and_warns(self, goomba_snapshot):
        result = parse_command("move the goomba 100 units up", goomba_snapshot)
        assert [t.object_id for t in result.transformations] == [1]
        assert result.warnings == ["'goomba' is ambiguous (also matches Goomba2); using Goomba1"]

    def test_repeated_reference_moves_each_object_once(self, goomba_snapshot):
        result = parse_command("move goomba1, goomba 100 units up", goomba_snapshot)
        assert [t.object_id for t in result.transformations] == [1, 2]
        assert all(_vec(t) == [0.0, 100.0, 0.0] for t in result.transformations)

    def test_multiple_commands(self, goomba_snapshot):
        result = parse_command("move goomba1 up 50 units; rotate coin1 45 degrees", goomba_snapshot)
        kinds = [t.kind for t in result.transformations]
        assert kinds == [TransformKind.TRANSLATE, TransformKind.ROTATE]

    def test_unknown_object(self, goomba_snapshot):
        result = parse_command("move the dragon 10 units up", goomba_snapshot)
        assert not result.success
        assert result.errors == ["No objects found matching: dragon"]

    def test_unrecognized_command(self, goomba_snapshot):
        result = parse_command("dance wildly", goomba_snapshot)
        assert not result.success
        assert result.errors == ["Could not understand command: dance wildly"]
