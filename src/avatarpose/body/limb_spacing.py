"""Limb-spacing overlay: corrective upper-arm roll on top of the animated pose.

The offset parameter is scaled by a fixed attenuation and applied as a
rotation about the forward axis, post-multiplied onto each upper-arm bone
(left negative, right positive). The animated pose underneath is kept.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from avatarpose.animation.interpolation import frame_independent_factor, smooth
from avatarpose.constants import FORWARD
from avatarpose.core.config_loader import load_config_section
from avatarpose.core.math_utils import quat_from_axis_angle, quat_multiply
from avatarpose.core.skeleton import Skeleton
from avatarpose.core.state import LimbSpacingState

logger = logging.getLogger(__name__)


@dataclass
class LimbSpacingConfig:
    attenuation: float = 0.15
    default_offset: float = 1.5
    smoothing: float = 1.0
    left_bone: str = "leftUpperArm"
    right_bone: str = "rightUpperArm"

    @classmethod
    def from_config(cls, name: str = "overlays.json") -> "LimbSpacingConfig":
        section = load_config_section(name, "limb_spacing")
        d = cls()
        return cls(
            attenuation=float(section.get("attenuation", d.attenuation)),
            default_offset=float(section.get("default_offset", d.default_offset)),
            smoothing=float(section.get("smoothing", d.smoothing)),
            left_bone=section.get("left_bone", d.left_bone),
            right_bone=section.get("right_bone", d.right_bone),
        )


class LimbSpacingOverlay:
    """Rolls both upper arms toward or away from the torso.

    Starts disabled; the session enables it once the first animated pose
    has been written.
    """

    def __init__(self, skeleton: Skeleton, config: Optional[LimbSpacingConfig] = None):
        self.skeleton = skeleton
        self.config = config or LimbSpacingConfig()
        self.state = LimbSpacingState(
            enabled=False,
            target_offset=self.config.default_offset,
            smoothed_offset=self.config.default_offset,
            smoothing=self.config.smoothing,
        )
        self._warned_missing = False

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.state.enabled = bool(enabled)

    def set_offset(self, value: float, immediate: bool = False) -> None:
        self.state.target_offset = float(value)
        if immediate:
            self.state.smoothed_offset = self.state.target_offset

    @property
    def angle(self) -> float:
        """Current corrective angle in radians (right side; left is negated)."""
        return self.state.smoothed_offset * self.config.attenuation

    def update(self, dt: float) -> bool:
        """Apply the correction to the current pose. Returns True if applied."""
        st = self.state
        if not st.enabled:
            return False

        factor = frame_independent_factor(st.smoothing, dt)
        st.smoothed_offset = smooth(st.smoothed_offset, st.target_offset, factor)

        left = self.skeleton.find(self.config.left_bone)
        right = self.skeleton.find(self.config.right_bone)
        if left is None or right is None:
            if not self._warned_missing:
                logger.warning(
                    "Limb spacing disabled for this rig: missing %s",
                    self.config.left_bone if left is None else self.config.right_bone,
                )
                self._warned_missing = True
            return False

        axis = np.array(FORWARD, dtype=np.float64)
        angle = self.angle
        left.set_rotation(quat_multiply(left.rotation, quat_from_axis_angle(axis, -angle)))
        right.set_rotation(quat_multiply(right.rotation, quat_from_axis_angle(axis, angle)))
        return True
