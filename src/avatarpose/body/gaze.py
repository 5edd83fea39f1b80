"""Gaze-aiming overlay: layered eye, head and neck tracking of an aim point.

Every frame the aim point (viewer position plus a vertical offset) is
smoothed with a frame-rate independent factor and bound to the skeleton's
gaze target for the eyes. Head yaw/pitch toward the unsmoothed aim point is
scaled by the head intensity, clamped, smoothed at a slower rate and written
over the head bone's local rotation. Past half head intensity the neck joins
in with a fraction of the head angle, smoothed slower again.

Disabling never snaps: angles, overwrite weights and the eye target ease
back to neutral, and the gaze-target binding is released only once every
residual is below threshold.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from avatarpose.animation.interpolation import frame_independent_factor, smooth, smooth_vec3
from avatarpose.constants import FORWARD, GAZE_PITCH_MAX, GAZE_YAW_MAX
from avatarpose.core.config_loader import load_config_section
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import (
    Quat, Vec3, clamp, normalize, quat_from_euler, quat_slerp, rad_to_deg,
)
from avatarpose.core.skeleton import Skeleton
from avatarpose.core.state import GazeState

logger = logging.getLogger(__name__)


@dataclass
class GazeConfig:
    eye_intensity: float = 1.0
    head_intensity: float = 0.3
    smoothing: float = 0.1
    head_smoothing_multiplier: float = 0.8
    neck_smoothing_multiplier: float = 0.7
    head_gain: float = 2.0
    neck_threshold: float = 0.5
    neck_share: float = 0.3
    vertical_offset: float = 0.0
    angle_epsilon: float = 0.001
    position_epsilon: float = 0.01
    head_bone: str = "head"
    neck_bone: str = "neck"

    @classmethod
    def from_config(cls, name: str = "overlays.json") -> "GazeConfig":
        section = load_config_section(name, "gaze")
        d = cls()
        kwargs = {}
        for key, default in vars(d).items():
            if key in section:
                kwargs[key] = type(default)(section[key])
        return cls(**kwargs)


def aim_angles(origin: Vec3, target: Vec3) -> tuple[float, float]:
    """(pitch, yaw) in radians from ``origin`` toward ``target``.

    Yaw is about +Y measured from +Z; pitch is positive looking up. A
    zero-length direction yields (0, 0).
    """
    d = normalize(np.asarray(target, dtype=np.float64) - origin)
    yaw = math.atan2(d[0], d[2])
    pitch = math.asin(clamp(float(d[1]), -1.0, 1.0))
    return pitch, yaw


def aim_rotation(pitch: float, yaw: float) -> Quat:
    """Local rotation turning the +Z forward axis by (pitch up, yaw)."""
    return quat_from_euler(-pitch, yaw, 0.0, "YXZ")


class GazeOverlay:
    """Eye/head/neck gaze tracking with smooth engage and release."""

    def __init__(
        self,
        skeleton: Skeleton,
        config: Optional[GazeConfig] = None,
        bus: Optional[EventBus] = None,
        aim_source: Optional[Vec3] = None,
    ):
        self.skeleton = skeleton
        self.config = config or GazeConfig()
        self.bus = bus or EventBus()
        cfg = self.config
        self.state = GazeState(
            eye_intensity=clamp(cfg.eye_intensity, 0.0, 1.0),
            head_intensity=clamp(cfg.head_intensity, 0.0, 1.0),
            smoothing=clamp(cfg.smoothing, 0.0, 1.0),
            vertical_offset=cfg.vertical_offset,
        )
        if aim_source is None:
            aim_source = self._neutral_target(1.0)
        self.state.aim_source = np.array(aim_source, dtype=np.float64)
        self.state.current_target = self.state.aim_source.copy()
        self.state.smoothed_eye_target = self.state.aim_source.copy()
        self._warned_missing = False

    # ── Settings ──────────────────────────────────────────────────

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    def set_target(self, position: Vec3) -> None:
        """Set the aim source (usually the viewer/camera position)."""
        self.state.aim_source = np.array(position, dtype=np.float64)

    def set_enabled(self, enabled: bool) -> None:
        st = self.state
        if enabled:
            st.enabled = True
            st.releasing = False
        elif st.enabled:
            st.enabled = False
            st.releasing = True

    def set_intensities(self, eye: Optional[float] = None, head: Optional[float] = None) -> None:
        if eye is not None:
            self.state.eye_intensity = clamp(float(eye), 0.0, 1.0)
        if head is not None:
            self.state.head_intensity = clamp(float(head), 0.0, 1.0)

    def set_smoothing(self, value: float) -> None:
        self.state.smoothing = clamp(float(value), 0.0, 1.0)

    def set_vertical_offset(self, value: float) -> None:
        self.state.vertical_offset = float(value)

    # ── Per-frame update ──────────────────────────────────────────

    def update(self, dt: float) -> None:
        st = self.state
        if not st.enabled and not st.releasing:
            return
        cfg = self.config

        eye_f = frame_independent_factor(st.smoothing, dt)
        head_f = eye_f * cfg.head_smoothing_multiplier
        neck_f = head_f * cfg.neck_smoothing_multiplier

        if st.enabled:
            st.current_target = st.aim_source + np.array([0.0, st.vertical_offset, 0.0])
        else:
            distance = float(np.linalg.norm(st.smoothed_eye_target - self._head_position()))
            st.current_target = self._neutral_target(distance if distance > 1e-6 else 1.0)

        st.smoothed_eye_target = smooth_vec3(st.smoothed_eye_target, st.current_target, eye_f)
        self._update_eye_binding()

        head_active = st.enabled and st.head_intensity > 0.0
        neck_active = head_active and st.head_intensity > cfg.neck_threshold
        self._update_head_targets(head_active, neck_active)

        st.smoothed_head_pitch = smooth(st.smoothed_head_pitch, st.target_head_pitch, head_f)
        st.smoothed_head_yaw = smooth(st.smoothed_head_yaw, st.target_head_yaw, head_f)
        st.head_weight = smooth(st.head_weight, 1.0 if head_active else 0.0, head_f)
        st.smoothed_neck_pitch = smooth(st.smoothed_neck_pitch, st.target_neck_pitch, neck_f)
        st.smoothed_neck_yaw = smooth(st.smoothed_neck_yaw, st.target_neck_yaw, neck_f)
        st.neck_weight = smooth(st.neck_weight, 1.0 if neck_active else 0.0, neck_f)

        self._write_bone(cfg.neck_bone, st.smoothed_neck_pitch, st.smoothed_neck_yaw, st.neck_weight)
        self._write_bone(cfg.head_bone, st.smoothed_head_pitch, st.smoothed_head_yaw, st.head_weight)

        if st.releasing:
            self._maybe_release()

    def _update_eye_binding(self) -> None:
        st = self.state
        if (st.releasing and st.bound) or (st.enabled and st.eye_intensity > 0.0):
            self.skeleton.look_at_target = st.smoothed_eye_target.copy()
            st.bound = True
        else:
            self.skeleton.look_at_target = None
            st.bound = False

    def _update_head_targets(self, head_active: bool, neck_active: bool) -> None:
        st = self.state
        cfg = self.config
        if head_active and self.skeleton.find(cfg.head_bone) is not None:
            pitch, yaw = aim_angles(self._head_position(), st.current_target)
            st.target_head_yaw = clamp(yaw * st.head_intensity * cfg.head_gain,
                                       -GAZE_YAW_MAX, GAZE_YAW_MAX)
            st.target_head_pitch = clamp(pitch * st.head_intensity * cfg.head_gain,
                                         -GAZE_PITCH_MAX, GAZE_PITCH_MAX)
        else:
            st.target_head_yaw = 0.0
            st.target_head_pitch = 0.0

        if neck_active:
            neck_intensity = (st.head_intensity - cfg.neck_threshold) * 0.5
            st.target_neck_pitch = st.target_head_pitch * neck_intensity * cfg.neck_share
            st.target_neck_yaw = st.target_head_yaw * neck_intensity * cfg.neck_share
        else:
            st.target_neck_pitch = 0.0
            st.target_neck_yaw = 0.0

    def _write_bone(self, name: str, pitch: float, yaw: float, weight: float) -> None:
        if weight <= 0.0:
            return
        bone = self.skeleton.find(name)
        if bone is None:
            if not self._warned_missing:
                logger.warning("Gaze: skeleton has no %s bone, skipping head/neck aim", name)
                self._warned_missing = True
            return
        bone.set_rotation(quat_slerp(bone.rotation, aim_rotation(pitch, yaw), min(weight, 1.0)))

    def _maybe_release(self) -> None:
        st = self.state
        cfg = self.config
        offset = float(np.linalg.norm(st.smoothed_eye_target - st.current_target))
        if st.residual_angle() >= cfg.angle_epsilon or offset >= cfg.position_epsilon:
            return
        st.releasing = False
        st.bound = False
        self.skeleton.look_at_target = None
        self._zero_angles()
        st.head_weight = 0.0
        st.neck_weight = 0.0
        logger.info("Gaze released")
        self.bus.publish(EventType.GAZE_RELEASED)

    # ── Immediate operations ──────────────────────────────────────

    def look_at_point(self, point: Vec3) -> None:
        """Aim eyes and head at ``point`` immediately, skipping smoothing."""
        st = self.state
        if not st.enabled:
            return
        point = np.array(point, dtype=np.float64)
        st.current_target = point.copy()
        st.smoothed_eye_target = point.copy()
        self.skeleton.look_at_target = point.copy()
        st.bound = True

        if st.head_intensity > 0.0 and self.skeleton.find(self.config.head_bone) is not None:
            pitch, yaw = aim_angles(self._head_position(), point)
            gain = st.head_intensity * self.config.head_gain
            st.target_head_yaw = clamp(yaw * gain, -GAZE_YAW_MAX, GAZE_YAW_MAX)
            st.target_head_pitch = clamp(pitch * gain, -GAZE_PITCH_MAX, GAZE_PITCH_MAX)
            st.smoothed_head_yaw = st.target_head_yaw
            st.smoothed_head_pitch = st.target_head_pitch
            st.head_weight = 1.0
            self._write_bone(self.config.head_bone, st.smoothed_head_pitch,
                             st.smoothed_head_yaw, st.head_weight)

    def reset(self) -> None:
        """Drop the binding and return head and neck to rest immediately."""
        st = self.state
        self.skeleton.look_at_target = None
        st.bound = False
        st.releasing = False
        self._zero_angles()
        for name in (self.config.head_bone, self.config.neck_bone):
            bone = self.skeleton.find(name)
            if bone is not None:
                bone.set_rotation(bone.rest_rotation)

    def _zero_angles(self) -> None:
        st = self.state
        st.target_head_pitch = st.target_head_yaw = 0.0
        st.smoothed_head_pitch = st.smoothed_head_yaw = 0.0
        st.target_neck_pitch = st.target_neck_yaw = 0.0
        st.smoothed_neck_pitch = st.smoothed_neck_yaw = 0.0

    def debug_info(self) -> dict:
        """Aim points and head/neck angles (degrees) for diagnostics."""
        st = self.state
        return {
            "current_target": st.current_target.copy(),
            "smoothed_eye_target": st.smoothed_eye_target.copy(),
            "target_head_rotation": {
                "x": rad_to_deg(st.target_head_pitch), "y": rad_to_deg(st.target_head_yaw),
            },
            "smoothed_head_rotation": {
                "x": rad_to_deg(st.smoothed_head_pitch), "y": rad_to_deg(st.smoothed_head_yaw),
            },
            "smoothed_neck_rotation": {
                "x": rad_to_deg(st.smoothed_neck_pitch), "y": rad_to_deg(st.smoothed_neck_yaw),
            },
            "head_weight": st.head_weight,
            "bound": st.bound,
            "releasing": st.releasing,
        }

    # ── Helpers ───────────────────────────────────────────────────

    def _head_position(self) -> Vec3:
        if self.skeleton.find(self.config.head_bone) is None:
            return np.zeros(3)
        return self.skeleton.world_position(self.config.head_bone)

    def _neutral_target(self, distance: float) -> Vec3:
        """Point straight ahead of the head at ``distance``."""
        return self._head_position() + np.array(FORWARD, dtype=np.float64) * distance
