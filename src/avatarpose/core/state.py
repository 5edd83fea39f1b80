"""Per-component runtime state for playback, overlays and expressions.

Each state object is owned by exactly one component; the rendering consumer
may read it but never writes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

import numpy as np

from avatarpose.core.math_utils import Vec3, vec3

if TYPE_CHECKING:
    from avatarpose.animation.clip import AnimationClip


class PlaybackMode(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    CROSSFADING = "crossfading"


@dataclass
class ClipAction:
    """One clip being evaluated: local time, loop policy and blend weight."""
    clip: AnimationClip
    time: float = 0.0
    loop: bool = False
    weight: float = 1.0
    # Weight when the current cross-fade began; outgoing clips ramp from it to 0
    fade_from: float = 1.0
    finished: bool = False

    @property
    def name(self) -> str:
        return self.clip.name


@dataclass
class PlaybackState:
    """Playback/blending state.

    ``active`` is the clip that owns the pose once any fade completes;
    ``fading_out`` holds every clip still fading out, oldest first. A play
    request during a fade adds the previous active clip to it, so an
    interrupted fade keeps blending from the pose it had reached.
    """
    active: Optional[ClipAction] = None
    fading_out: list[ClipAction] = field(default_factory=list)
    fade_elapsed: float = 0.0
    fade_duration: float = 0.0
    time_scale: float = 1.0

    @property
    def mode(self) -> PlaybackMode:
        if self.active is None:
            return PlaybackMode.IDLE
        if self.fading_out:
            return PlaybackMode.CROSSFADING
        return PlaybackMode.PLAYING


@dataclass
class LimbSpacingState:
    """Limb-spacing overlay: target offset and its smoothed value."""
    enabled: bool = False
    target_offset: float = 0.0
    smoothed_offset: float = 0.0
    smoothing: float = 1.0


@dataclass
class GazeState:
    """Gaze overlay: aim point, intensities and smoothed angles (radians)."""
    enabled: bool = True
    releasing: bool = False
    bound: bool = False
    eye_intensity: float = 1.0
    head_intensity: float = 0.3
    smoothing: float = 0.1
    vertical_offset: float = 0.0

    aim_source: Vec3 = field(default_factory=vec3)
    current_target: Vec3 = field(default_factory=vec3)
    smoothed_eye_target: Vec3 = field(default_factory=vec3)

    target_head_pitch: float = 0.0
    target_head_yaw: float = 0.0
    smoothed_head_pitch: float = 0.0
    smoothed_head_yaw: float = 0.0
    target_neck_pitch: float = 0.0
    target_neck_yaw: float = 0.0
    smoothed_neck_pitch: float = 0.0
    smoothed_neck_yaw: float = 0.0

    # Influence of the head/neck overwrite over the animated pose (0-1)
    head_weight: float = 1.0
    neck_weight: float = 0.0

    def residual_angle(self) -> float:
        return float(np.max(np.abs([
            self.smoothed_head_pitch, self.smoothed_head_yaw,
            self.smoothed_neck_pitch, self.smoothed_neck_yaw,
            self.head_weight, self.neck_weight,
        ])))


@dataclass
class BlinkState:
    """Blink scheduler state (times in session seconds)."""
    next_trigger_time: float = 0.0
    in_progress: bool = False
    start_time: float = -1.0
    scheduled_start: float = 0.0
    speed: float = 1.0
    double_pending: bool = False
    double_count: int = 0
    is_double: bool = False
    value: float = 0.0


@dataclass
class EmotionState:
    """Single active emotion with a weight ramping toward a target."""
    current: Optional[str] = None
    weight: float = 0.0
    target_weight: float = 0.0
    pending: Optional[str] = None
    pending_weight: float = 0.0
