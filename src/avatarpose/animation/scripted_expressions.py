"""Time-bounded procedural expression entries.

Each entry drives one expression shape from its own progress function and
reports when it is done, at which point the scheduler drops it (or, for a
timed transition that ends on a non-zero value, keeps that value).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Callable, Optional

from avatarpose.animation.interpolation import ease_linear, ease_out
from avatarpose.core.config_loader import load_config_section


class ExpressionEntry:
    """Base class: one shape name driven over time."""

    shape: str

    def value(self, now: float) -> float:
        raise NotImplementedError

    def finished(self, now: float) -> bool:
        return False

    def final_value(self) -> Optional[float]:
        """Value to hold once finished, or None to remove the entry."""
        return None


@dataclass
class StaticExpression(ExpressionEntry):
    shape: str
    weight: float

    def value(self, now: float) -> float:
        return self.weight


@dataclass
class TimedTransition(ExpressionEntry):
    """Eased move from ``start_value`` to ``end_value`` over ``duration``."""
    shape: str
    start_value: float
    end_value: float
    start_time: float
    duration: float
    easing: Callable[[float], float] = ease_linear

    def value(self, now: float) -> float:
        if self.duration <= 0:
            return self.end_value
        progress = min(max((now - self.start_time) / self.duration, 0.0), 1.0)
        return self.start_value + (self.end_value - self.start_value) * self.easing(progress)

    def finished(self, now: float) -> bool:
        return now - self.start_time >= self.duration

    def final_value(self) -> Optional[float]:
        return self.end_value if self.end_value != 0.0 else None


@dataclass
class TalkingConfig:
    shape: str = "aa"
    duration: float = 2.0
    frequency: float = 8.0
    amplitude: float = 0.3


@dataclass
class SurpriseConfig:
    shape: str = "surprised"
    rise: float = 0.2
    hold_until: float = 1.0
    fall: float = 0.5
    peak: float = 1.0


def _from_section(cls, section: dict):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in section.items() if k in known})


@dataclass
class Talking(ExpressionEntry):
    """Mouth-open oscillation |sin(frequency * t)| * amplitude."""
    start_time: float
    shape: str = "aa"
    duration: float = 2.0
    frequency: float = 8.0
    amplitude: float = 0.3

    def value(self, now: float) -> float:
        elapsed = now - self.start_time
        if elapsed > self.duration:
            return 0.0
        return abs(math.sin(elapsed * self.frequency)) * self.amplitude

    def finished(self, now: float) -> bool:
        return now - self.start_time > self.duration


@dataclass
class Surprise(ExpressionEntry):
    """Ease out to the peak, hold, then fade back to zero."""
    start_time: float
    start_value: float = 0.0
    shape: str = "surprised"
    rise: float = 0.2
    hold_until: float = 1.0
    fall: float = 0.5
    peak: float = 1.0

    def value(self, now: float) -> float:
        elapsed = now - self.start_time
        if elapsed < self.rise:
            return self.start_value + (self.peak - self.start_value) * ease_out(elapsed / self.rise)
        if elapsed < self.hold_until:
            return self.peak
        if elapsed < self.hold_until + self.fall:
            return self.peak * (1.0 - (elapsed - self.hold_until) / self.fall)
        return 0.0

    def finished(self, now: float) -> bool:
        return now - self.start_time >= self.hold_until + self.fall


@dataclass
class ScriptedConfig:
    talking: TalkingConfig
    surprise: SurpriseConfig

    @classmethod
    def defaults(cls) -> "ScriptedConfig":
        return cls(talking=TalkingConfig(), surprise=SurpriseConfig())

    @classmethod
    def from_config(cls, name: str = "expressions.json") -> "ScriptedConfig":
        section = load_config_section(name, "scripted")
        return cls(
            talking=_from_section(TalkingConfig, section.get("talking", {})),
            surprise=_from_section(SurpriseConfig, section.get("surprise", {})),
        )


def make_talking(config: ScriptedConfig, now: float, current: Callable[[str], float], **params) -> Talking:
    base = config.talking
    return Talking(
        start_time=now,
        shape=params.get("shape", base.shape),
        duration=float(params.get("duration", base.duration)),
        frequency=float(params.get("frequency", base.frequency)),
        amplitude=float(params.get("amplitude", base.amplitude)),
    )


def make_surprise(config: ScriptedConfig, now: float, current: Callable[[str], float], **params) -> Surprise:
    base = config.surprise
    shape = params.get("shape", base.shape)
    return Surprise(
        start_time=now,
        start_value=current(shape),
        shape=shape,
        rise=float(params.get("rise", base.rise)),
        hold_until=float(params.get("hold_until", base.hold_until)),
        fall=float(params.get("fall", base.fall)),
        peak=float(params.get("peak", base.peak)),
    )


# name → factory(config, now, current-weight lookup, **params)
SCRIPTED_PRESETS: dict[str, Callable[..., ExpressionEntry]] = {
    "talking": make_talking,
    "surprise": make_surprise,
}
