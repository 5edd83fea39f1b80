"""Tests for the gaze-aiming overlay."""

import math

import numpy as np
import pytest

from avatarpose.body.gaze import GazeConfig, GazeOverlay, aim_angles, aim_rotation
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import quat_angle, quat_rotate_vec3, vec3
from avatarpose.core.skeleton import Bone, Skeleton
from avatarpose.scene.builtin_rigs import humanoid_target_skeleton

DT = 1 / 60


def _gaze(head_intensity=0.3, **config):
    skel = humanoid_target_skeleton()
    bus = EventBus()
    overlay = GazeOverlay(skel, GazeConfig(head_intensity=head_intensity, **config), bus)
    return overlay, skel, bus


def _head(skel):
    return skel.rest_world_position("head")


def _frames(overlay, skel, n, dt=DT):
    """Run ``n`` frames, resetting to rest first as the session does."""
    for _ in range(n):
        skel.reset_pose()
        overlay.update(dt)


class TestAimMath:
    def test_angles(self):
        pitch, yaw = aim_angles(vec3(0, 0, 0), vec3(1, 0, 1))
        assert yaw == pytest.approx(math.pi / 4)
        assert pitch == pytest.approx(0.0)
        pitch, _ = aim_angles(vec3(0, 0, 0), vec3(0, 1, 1))
        assert pitch == pytest.approx(math.pi / 4)

    def test_zero_length_direction(self):
        assert aim_angles(vec3(1, 2, 3), vec3(1, 2, 3)) == (0.0, 0.0)

    def test_rotation_points_forward_axis_at_target(self):
        target = vec3(1, 1, 1)
        pitch, yaw = aim_angles(vec3(), target)
        forward = quat_rotate_vec3(aim_rotation(pitch, yaw), vec3(0, 0, 1))
        np.testing.assert_allclose(forward, target / np.linalg.norm(target), atol=1e-12)


class TestTracking:
    def test_head_converges_monotonically_without_overshoot(self):
        overlay, skel, _ = _gaze(head_intensity=0.3)
        overlay.set_target(_head(skel) + vec3(1, 0, 1))
        expected = math.pi / 4 * 0.3 * 2.0

        previous = 0.0
        for _ in range(600):
            _frames(overlay, skel, 1)
            yaw = overlay.state.smoothed_head_yaw
            assert yaw >= previous
            assert yaw <= expected + 1e-12
            previous = yaw
        assert previous == pytest.approx(expected, abs=1e-4)
        assert quat_angle(skel.find("head").rotation) == pytest.approx(expected, abs=1e-4)

    def test_neck_inactive_below_threshold(self):
        overlay, skel, _ = _gaze(head_intensity=0.3)
        overlay.set_target(_head(skel) + vec3(1, 0, 1))
        _frames(overlay, skel, 120)
        assert overlay.state.smoothed_neck_yaw == 0.0
        np.testing.assert_allclose(skel.find("neck").rotation, [0, 0, 0, 1])

    def test_neck_joins_above_threshold(self):
        overlay, skel, _ = _gaze(head_intensity=0.9)
        overlay.set_target(_head(skel) + vec3(1, 0, 1))
        _frames(overlay, skel, 600)
        st = overlay.state
        assert 0.0 < st.smoothed_neck_yaw < st.smoothed_head_yaw
        assert st.smoothed_neck_yaw == pytest.approx(st.target_head_yaw * 0.2 * 0.3, rel=1e-3)
        assert quat_angle(skel.find("neck").rotation) > 0.0

    def test_head_angle_clamped(self):
        overlay, skel, _ = _gaze(head_intensity=1.0)
        overlay.set_target(_head(skel) + vec3(1, 0, -1))
        _frames(overlay, skel, 5)
        assert overlay.state.target_head_yaw == pytest.approx(math.pi / 2)

    def test_eye_target_bound_and_smoothed(self):
        overlay, skel, _ = _gaze()
        target = _head(skel) + vec3(0, 0, 2)
        overlay.set_target(target)
        _frames(overlay, skel, 1)
        assert skel.look_at_target is not None
        _frames(overlay, skel, 600)
        np.testing.assert_allclose(skel.look_at_target, target, atol=1e-6)

    def test_vertical_offset_raises_aim(self):
        overlay, skel, _ = _gaze()
        overlay.set_target(_head(skel) + vec3(0, 0, 2))
        overlay.set_vertical_offset(0.5)
        _frames(overlay, skel, 1)
        assert overlay.state.current_target[1] == pytest.approx(_head(skel)[1] + 0.5)
        assert overlay.state.target_head_pitch > 0.0

    def test_zero_eye_intensity_unbinds(self):
        overlay, skel, _ = _gaze()
        overlay.set_target(_head(skel) + vec3(0, 0, 2))
        _frames(overlay, skel, 10)
        overlay.set_intensities(eye=0.0)
        _frames(overlay, skel, 1)
        assert skel.look_at_target is None

    def test_intensities_and_smoothing_clamped(self):
        overlay, _, _ = _gaze()
        overlay.set_intensities(eye=2.0, head=-1.0)
        overlay.set_smoothing(3.0)
        assert overlay.state.eye_intensity == 1.0
        assert overlay.state.head_intensity == 0.0
        assert overlay.state.smoothing == 1.0


class TestRelease:
    def test_disable_eases_out_then_releases(self):
        overlay, skel, bus = _gaze(head_intensity=0.9)
        released = []
        bus.subscribe(EventType.GAZE_RELEASED, lambda: released.append(True))
        overlay.set_target(_head(skel) + vec3(1, 0.3, 1))
        _frames(overlay, skel, 300)
        engaged = quat_angle(skel.find("head").rotation)

        overlay.set_enabled(False)
        assert overlay.state.releasing
        _frames(overlay, skel, 1)
        assert skel.look_at_target is not None
        assert 0.0 < quat_angle(skel.find("head").rotation) < engaged

        for _ in range(3000):
            if released:
                break
            _frames(overlay, skel, 1)

        assert released == [True]
        assert skel.look_at_target is None
        assert not overlay.state.releasing
        assert overlay.state.residual_angle() == 0.0
        _frames(overlay, skel, 10)
        assert released == [True]
        np.testing.assert_allclose(skel.find("head").rotation, [0, 0, 0, 1])

    def test_reenable_during_release(self):
        overlay, skel, _ = _gaze()
        overlay.set_target(_head(skel) + vec3(1, 0, 1))
        _frames(overlay, skel, 60)
        overlay.set_enabled(False)
        _frames(overlay, skel, 5)
        overlay.set_enabled(True)
        assert overlay.enabled
        assert not overlay.state.releasing
        _frames(overlay, skel, 1)
        assert skel.look_at_target is not None


class TestImmediate:
    def test_look_at_point(self):
        overlay, skel, _ = _gaze(head_intensity=0.3)
        point = _head(skel) + vec3(1, 0, 1)
        overlay.look_at_point(point)
        np.testing.assert_allclose(skel.look_at_target, point)
        expected = math.pi / 4 * 0.3 * 2.0
        assert overlay.state.smoothed_head_yaw == pytest.approx(expected)
        assert quat_angle(skel.find("head").rotation) == pytest.approx(expected)

    def test_look_at_point_ignored_when_disabled(self):
        overlay, skel, _ = _gaze()
        overlay.set_enabled(False)
        overlay.look_at_point(vec3(1, 1, 1))
        assert skel.look_at_target is None

    def test_reset(self):
        overlay, skel, _ = _gaze()
        overlay.set_target(_head(skel) + vec3(1, 0, 1))
        _frames(overlay, skel, 30)
        overlay.reset()
        assert skel.look_at_target is None
        assert overlay.state.smoothed_head_yaw == 0.0
        np.testing.assert_allclose(skel.find("head").rotation, [0, 0, 0, 1])

    def test_debug_info_in_degrees(self):
        overlay, skel, _ = _gaze(head_intensity=0.5)
        overlay.look_at_point(_head(skel) + vec3(1, 0, 1))
        info = overlay.debug_info()
        assert info["smoothed_head_rotation"]["y"] == pytest.approx(45.0)
        assert info["bound"] is True


def test_missing_head_bone_skips_aim():
    skel = Skeleton([Bone("hips", rest_position=vec3(0, 1, 0))])
    overlay = GazeOverlay(skel, GazeConfig())
    overlay.set_target(vec3(1, 1, 1))
    overlay.update(DT)
    assert overlay.state.target_head_yaw == 0.0
    assert skel.look_at_target is not None


def test_config_from_packaged_file():
    config = GazeConfig.from_config()
    assert config.head_intensity == 0.3
    assert config.neck_bone == "neck"
