"""Single-emotion controller with rate-limited weight ramps."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from avatarpose.animation.interpolation import approach
from avatarpose.core.config_loader import load_config_section
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import clamp
from avatarpose.core.state import EmotionState

logger = logging.getLogger(__name__)


@dataclass
class EmotionConfig:
    transition_speed: float = 2.0  # weight units per second
    emotions: list[str] = field(default_factory=lambda: [
        "happy", "angry", "sad", "relaxed", "surprised", "neutral",
    ])

    @classmethod
    def from_config(cls, name: str = "expressions.json") -> "EmotionConfig":
        section = load_config_section(name, "emotion")
        d = cls()
        return cls(
            transition_speed=float(section.get("transition_speed", d.transition_speed)),
            emotions=list(section.get("emotions", d.emotions)),
        )


class EmotionController:
    """One active emotion at a time.

    Switching to a different emotion first ramps the current one down to
    zero, then swaps identity and ramps the new one up. Two emotions are
    never weighted at the same time.
    """

    def __init__(self, config: Optional[EmotionConfig] = None,
                 bus: Optional[EventBus] = None):
        self.config = config or EmotionConfig()
        self.bus = bus or EventBus()
        self.state = EmotionState()

    def set_emotion(self, name: str, weight: float = 1.0, immediate: bool = False) -> bool:
        """Ramp toward ``name`` at ``weight``. Unknown emotions are logged and ignored."""
        if name not in self.config.emotions:
            logger.warning("Unknown emotion %s", name)
            return False
        st = self.state
        weight = clamp(float(weight), 0.0, 1.0)
        if st.current is not None and st.current != name:
            st.target_weight = 0.0
            st.pending = name
            st.pending_weight = weight
            return True

        changed = st.current != name
        st.current = name
        st.target_weight = weight
        st.pending = None
        if immediate:
            st.weight = weight
        if changed:
            self.bus.publish(EventType.EMOTION_CHANGED, name=name)
        return True

    def clear_emotion(self) -> None:
        """Ramp the current emotion down to zero and drop anything queued."""
        self.state.target_weight = 0.0
        self.state.pending = None

    def update(self, dt: float) -> None:
        st = self.state
        if st.current is None:
            return
        st.weight = approach(st.weight, st.target_weight, self.config.transition_speed * dt)

        if st.weight <= 0.0 and st.target_weight <= 0.0:
            if st.pending is not None:
                st.current = st.pending
                st.target_weight = st.pending_weight
                st.pending = None
                logger.debug("Emotion switched to %s", st.current)
                self.bus.publish(EventType.EMOTION_CHANGED, name=st.current)

    def active_weights(self) -> dict[str, float]:
        """The current emotion and its weight, if any weight is applied."""
        st = self.state
        if st.current is not None and st.weight > 0.0:
            return {st.current: st.weight}
        return {}
