"""Tests for the named-bone skeleton."""

import numpy as np
import pytest

from avatarpose.core.math_utils import quat_from_axis_angle, quat_identity, vec3
from avatarpose.core.skeleton import Bone, Skeleton


def _arm() -> Skeleton:
    return Skeleton([
        Bone("root", rest_position=vec3(0, 1, 0)),
        Bone("upper", parent="root", rest_position=vec3(1, 0, 0)),
        Bone("lower", parent="upper", rest_position=vec3(1, 0, 0)),
    ])


def test_find_present_and_absent():
    skel = _arm()
    assert skel.find("upper").name == "upper"
    assert skel.find("missing") is None
    assert "lower" in skel
    assert "missing" not in skel
    assert len(skel) == 3


def test_chain_is_root_first():
    assert [b.name for b in _arm().chain("lower")] == ["root", "upper", "lower"]


def test_world_position_rest():
    np.testing.assert_array_almost_equal(_arm().world_position("lower"), [2, 1, 0])


def test_world_transform_follows_parent_write():
    skel = _arm()
    skel.set_rotation("upper", quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2))
    # Never stale: child world position reflects the new parent rotation
    np.testing.assert_array_almost_equal(skel.world_position("lower"), [1, 2, 0])
    np.testing.assert_array_almost_equal(skel.rest_world_position("lower"), [2, 1, 0])


def test_world_matrix_translation():
    m = _arm().world_matrix("lower")
    np.testing.assert_array_almost_equal(m[:3, 3], [2, 1, 0])


def test_set_rotation_normalizes():
    skel = _arm()
    skel.set_rotation("upper", np.array([0.0, 0.0, 0.0, 5.0]))
    np.testing.assert_array_almost_equal(skel.find("upper").rotation, quat_identity())


def test_set_on_absent_bone_returns_false():
    skel = _arm()
    assert skel.set_rotation("nope", quat_identity()) is False
    assert skel.set_position("nope", vec3()) is False


def test_reset_pose():
    skel = _arm()
    skel.set_rotation("upper", quat_from_axis_angle(vec3(0, 0, 1), 0.5))
    skel.set_position("root", vec3(5, 5, 5))
    skel.reset_pose()
    np.testing.assert_array_almost_equal(skel.find("upper").rotation, quat_identity())
    np.testing.assert_array_almost_equal(skel.find("root").position, [0, 1, 0])


class TestValidation:
    def test_duplicate_names(self):
        with pytest.raises(ValueError):
            Skeleton([Bone("a"), Bone("a")])

    def test_unknown_parent(self):
        with pytest.raises(ValueError):
            Skeleton([Bone("a", parent="ghost")])

    def test_cycle(self):
        with pytest.raises(ValueError):
            Skeleton([Bone("a", parent="b"), Bone("b", parent="a")])


def test_dict_roundtrip_keeps_format_version():
    skel = Skeleton.from_dict({
        "format_version": "0",
        "bones": [
            {"name": "hips", "position": [0, 1, 0]},
            {"name": "spine", "parent": "hips", "rotation": [0, 0, 0, 1]},
        ],
    })
    assert skel.is_legacy
    again = Skeleton.from_dict(skel.to_dict())
    assert again.format_version == "0"
    assert again.bone_names == ["hips", "spine"]


def test_pose_snapshot_fields():
    snap = _arm().pose_snapshot()
    assert set(snap) == {"root", "upper", "lower"}
    assert set(snap["lower"]) == {"rotation", "position", "world_matrix"}
    assert snap["lower"]["world_matrix"].shape == (4, 4)
