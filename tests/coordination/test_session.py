"""Tests for the per-character session."""

import random

import numpy as np
import pytest

from avatarpose.animation.playback import PlaybackConfig
from avatarpose.coordination.session import CharacterSession, SessionConfig
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import quat_angle, vec3
from avatarpose.core.state import PlaybackMode
from avatarpose.scene.builtin_rigs import demo_motion_assets, humanoid_target_skeleton


def _session(**config):
    bus = EventBus()
    session = CharacterSession(
        humanoid_target_skeleton(),
        config=SessionConfig(**config),
        event_bus=bus,
        rng=random.Random(0),
    )
    return session, bus


def _loaded(**config):
    session, bus = _session(**config)
    session.load_clips(demo_motion_assets())
    return session, bus


def test_load_clips_autoplays_idle():
    session, _ = _loaded()
    assert session.clips.names == ["idle", "idle2", "looking", "wave"]
    assert session.playback.current_clip_name == "idle"
    assert session.playback.state.active.loop
    assert session.playback.mode is PlaybackMode.PLAYING


def test_autoplay_can_be_skipped():
    session, _ = _session()
    session.load_clips(demo_motion_assets(), autoplay=False)
    assert session.playback.current_clip_name is None


def test_autoplay_skipped_when_already_playing():
    session, _ = _session()
    assets = demo_motion_assets()
    session.load_clip("wave", assets["wave"])
    session.play("wave")
    session.load_clips({"idle": assets["idle"]})
    assert session.playback.current_clip_name == "wave"


def test_idle_to_wave_weights():
    session, _ = _loaded()
    session.advance(0.1)
    assert session.play("wave", fade=0.5)
    session.advance(0.1)
    weights = session.playback.weights()
    assert weights["idle"] == pytest.approx(0.8)
    assert weights["wave"] == pytest.approx(0.2)
    for _ in range(5):
        session.advance(0.1)
    assert session.playback.weights() == {"wave": 1.0}


def test_wave_pose_written_to_skeleton():
    session, _ = _loaded()
    session.play("wave", fade=0.0)
    for _ in range(4):
        session.advance(0.1)
    arm = session.get_bone_transforms()["rightUpperArm"]["rotation"]
    assert quat_angle(arm) == pytest.approx(1.2 - session.limb_spacing.angle, abs=0.05)


def test_limb_spacing_enables_after_first_animated_frame():
    session, _ = _loaded()
    assert not session.limb_spacing.enabled
    session.advance(1 / 60)
    assert session.limb_spacing.enabled
    session.advance(1 / 60)
    left = session.skeleton.find("leftUpperArm").rotation
    assert quat_angle(left) == pytest.approx(session.limb_spacing.angle)


def test_explicit_limb_choice_prevents_auto_enable():
    session, _ = _loaded()
    session.set_limb_overlay_enabled(False)
    for _ in range(3):
        session.advance(1 / 60)
    assert not session.limb_spacing.enabled


def test_limb_spacing_offset():
    session, _ = _loaded()
    session.set_limb_spacing(2.0, immediate=True)
    session.advance(1 / 60)
    session.advance(1 / 60)
    right = session.skeleton.find("rightUpperArm").rotation
    assert quat_angle(right) == pytest.approx(0.30)
    assert right[2] > 0


def test_no_clip_leaves_rest_pose():
    session, _ = _session()
    session.set_gaze_enabled(False)
    for _ in range(5):
        session.advance(1 / 60)
    for name, t in session.get_bone_transforms().items():
        bone = session.skeleton.find(name)
        np.testing.assert_allclose(t["rotation"], bone.rest_rotation)
        np.testing.assert_allclose(t["position"], bone.rest_position)


def test_gaze_overrides_animated_head():
    session, _ = _loaded()
    head = session.skeleton.rest_world_position("head")
    session.set_gaze_intensities(head=0.5)
    session.set_gaze_target(head + vec3(1, 0, 1))
    for _ in range(300):
        session.advance(1 / 60)
    st = session.gaze.state
    assert st.smoothed_head_yaw == pytest.approx(np.pi / 4, abs=0.02)
    assert session.skeleton.look_at_target is not None


def test_advance_order_publishes_frame_update():
    session, bus = _loaded()
    frames = []
    bus.subscribe(EventType.FRAME_UPDATE, lambda dt, time: frames.append((dt, time)))
    session.advance(0.05)
    session.advance(0.05)
    assert frames == [(0.05, pytest.approx(0.05)), (0.05, pytest.approx(0.1))]
    assert session.frame == 2


def test_large_steps_advance_in_full():
    session, _ = _loaded()
    session.play("wave", fade=0.0)
    for _ in range(4):
        session.advance(0.25)
    assert session.time == pytest.approx(1.0)
    assert session.playback.state.active.time == pytest.approx(1.0)


def test_negative_dt_counts_as_zero():
    session, _ = _loaded()
    session.advance(0.5)
    session.advance(-1.0)
    assert session.time == pytest.approx(0.5)


def test_expression_weights_include_emotion_and_scripted():
    session, _ = _loaded()
    session.set_emotion("happy", immediate=True)
    session.trigger_scripted_expression("surprise")
    session.set_expression("ee", 0.4)
    weights = {}
    for _ in range(30):
        weights = session.advance(1 / 60)
    assert weights["happy"] == 1.0
    assert weights["surprised"] == pytest.approx(1.0)
    assert weights["ee"] == 0.4
    assert "blink" in weights
    assert session.get_expression_weights() == weights


def test_trigger_params_forwarded():
    session, _ = _loaded()
    assert session.trigger_scripted_expression("talking", {"duration": 0.5})
    assert not session.trigger_scripted_expression("yawn")
    for _ in range(40):
        session.advance(1 / 60)
    assert "aa" not in session.expressions.active_entries


def test_idle_cycle_through_session():
    session, bus = _loaded(playback=PlaybackConfig(
        idle_pool=["idle", "idle2", "looking"], dwell_min=0.5, dwell_max=0.5, idle_fade=0.2,
    ))
    advanced = []
    bus.subscribe(EventType.IDLE_CYCLE_ADVANCED, lambda name, dwell: advanced.append(name))
    assert session.start_idle_cycle()
    for _ in range(30):
        session.advance(0.1)
    assert len(advanced) >= 4
    assert all(a != b for a, b in zip(advanced, advanced[1:]))
    session.play("wave")
    assert not session.playback.idle_cycling


def test_set_blink_config_forwarded():
    session, _ = _session()
    session.set_blink_config(min_interval=1.0, max_interval=2.0)
    assert session.expressions.blink.config.max_interval == 2.0


def test_stop_returns_to_rest():
    session, _ = _loaded()
    session.set_gaze_enabled(False)
    session.set_limb_overlay_enabled(False)
    session.play("wave", fade=0.0)
    session.advance(0.5)
    session.stop()
    session.advance(1 / 60)
    np.testing.assert_allclose(session.skeleton.find("rightUpperArm").rotation, [0, 0, 0, 1])


def test_unknown_easing_leaves_expression_unchanged():
    session, _ = _loaded()
    assert not session.set_expression("oh", 1.0, duration=0.5, easing="wobble")
    weights = session.advance(1 / 60)
    assert "oh" not in weights
