"""Automatic blinking system."""

import math
import random
from dataclasses import dataclass, fields
from typing import Optional

from avatarpose.core.config_loader import load_config_section
from avatarpose.core.state import BlinkState


@dataclass
class BlinkConfig:
    duration: float = 0.1
    min_interval: float = 5.0
    max_interval: float = 15.0
    double_blink_chance: float = 0.1
    double_blink_delay: float = 0.1
    speed_variation: float = 0.4

    @classmethod
    def from_config(cls, name: str = "expressions.json") -> "BlinkConfig":
        section = load_config_section(name, "blink")
        known = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in section.items() if k in known})


class BlinkController:
    """Generates natural-looking blink patterns.

    Blink cycle: wait → blink → wait.
    Each blink follows sin(progress * pi) over ``duration / speed`` where the
    speed is jittered per blink. The next blink is scheduled
    U(min_interval, max_interval) after the previous one was due; with
    ``double_blink_chance`` a finished blink is followed by one extra blink
    ``double_blink_delay`` seconds later.
    """

    def __init__(self, config: Optional[BlinkConfig] = None,
                 rng: Optional[random.Random] = None):
        self.config = config or BlinkConfig()
        self.rng = rng or random.Random()
        self.state = BlinkState()
        self.enabled = True
        self._started = False

    def set_config(self, **kwargs: float) -> None:
        """Update config values at runtime; takes effect from the next blink."""
        for key, value in kwargs.items():
            if not hasattr(self.config, key):
                raise ValueError(f"Unknown blink setting {key!r}")
            setattr(self.config, key, float(value))

    def reset(self, now: float = 0.0) -> None:
        self.state = BlinkState()
        self._schedule(now)
        self._started = True

    def trigger(self, now: float) -> None:
        """Blink right away (unless a blink is already running)."""
        if not self.state.in_progress:
            self.state.next_trigger_time = now

    def update(self, now: float) -> float:
        """Advance to session time ``now`` and return the blink weight (0-1)."""
        st = self.state
        if not self._started:
            self.reset(now)
        if not self.enabled:
            st.value = 0.0
            return 0.0

        if not st.in_progress and now >= st.next_trigger_time:
            self._start_blink(now)

        if st.in_progress:
            adjusted = self.config.duration / st.speed
            progress = (now - st.start_time) / adjusted if adjusted > 0 else 1.0
            if progress >= 1.0:
                self._end_blink(now)
                st.value = 0.0
            else:
                st.value = math.sin(progress * math.pi)
        else:
            st.value = 0.0
        return st.value

    def _start_blink(self, now: float) -> None:
        st = self.state
        v = self.config.speed_variation
        st.in_progress = True
        st.start_time = now
        st.scheduled_start = st.next_trigger_time
        st.speed = self.rng.uniform(1.0 - v / 2, 1.0 + v / 2)
        st.is_double = st.double_pending
        if st.double_pending:
            st.double_pending = False
            st.double_count += 1

    def _end_blink(self, now: float) -> None:
        st = self.state
        st.in_progress = False
        if not st.is_double and self.rng.random() < self.config.double_blink_chance:
            st.double_pending = True
            st.next_trigger_time = now + self.config.double_blink_delay
        else:
            self._schedule(st.scheduled_start)

    def _schedule(self, base: float) -> None:
        self.state.next_trigger_time = base + self.rng.uniform(
            self.config.min_interval, self.config.max_interval,
        )
