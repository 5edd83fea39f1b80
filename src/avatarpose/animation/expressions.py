"""Expression scheduler: blink + emotion + scripted entries → weight map."""

from __future__ import annotations

import logging
import random
from typing import Optional

from avatarpose.animation.auto_blink import BlinkConfig, BlinkController
from avatarpose.animation.emotions import EmotionConfig, EmotionController
from avatarpose.animation.interpolation import EASING_MAP, get_easing
from avatarpose.animation.scripted_expressions import (
    SCRIPTED_PRESETS, ExpressionEntry, ScriptedConfig, StaticExpression, TimedTransition,
)
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import clamp

logger = logging.getLogger(__name__)

BLINK_SHAPE = "blink"


class ExpressionScheduler:
    """Recomputes the full name → weight map every frame.

    Write order is blink, then the active emotion, then static and scripted
    entries; a later write to the same name wins. Names written in earlier
    frames stay in the map at 0 so the renderer can clear them.
    """

    def __init__(
        self,
        blink_config: Optional[BlinkConfig] = None,
        emotion_config: Optional[EmotionConfig] = None,
        scripted_config: Optional[ScriptedConfig] = None,
        bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self.bus = bus or EventBus()
        self.blink = BlinkController(blink_config, rng)
        self.emotions = EmotionController(emotion_config, self.bus)
        self.scripted_config = scripted_config or ScriptedConfig.defaults()
        self.time = 0.0
        self._entries: dict[str, ExpressionEntry] = {}
        self._weights: dict[str, float] = {}

    # ── Requests ──────────────────────────────────────────────────

    def set_expression(
        self,
        name: str,
        value: float,
        duration: Optional[float] = None,
        easing: Optional[str] = None,
    ) -> bool:
        """Hold ``name`` at ``value``, or move there over ``duration`` seconds.

        An unknown easing name is logged and the call is ignored.
        """
        if easing is not None and easing not in EASING_MAP:
            logger.warning("Unknown easing %s for expression %s", easing, name)
            return False
        value = clamp(float(value), 0.0, 1.0)
        if duration:
            self._entries[name] = TimedTransition(
                shape=name,
                start_value=self.get_value(name),
                end_value=value,
                start_time=self.time,
                duration=float(duration),
                easing=get_easing(easing),
            )
        else:
            self._entries[name] = StaticExpression(shape=name, weight=value)
        return True

    def clear_expression(self, name: str) -> None:
        self._entries.pop(name, None)

    def trigger(self, name: str, **params) -> bool:
        """Start a scripted preset (``talking``, ``surprise``). Unknown names are ignored."""
        factory = SCRIPTED_PRESETS.get(name)
        if factory is None:
            logger.warning("Unknown scripted expression %s", name)
            return False
        entry = factory(self.scripted_config, self.time, self.get_value, **params)
        self._entries[entry.shape] = entry
        self.bus.publish(EventType.EXPRESSION_TRIGGERED, name=name)
        return True

    def set_emotion(self, name: str, weight: float = 1.0, immediate: bool = False) -> bool:
        return self.emotions.set_emotion(name, weight, immediate)

    def clear_emotion(self) -> None:
        self.emotions.clear_emotion()

    def set_blink_config(self, **kwargs: float) -> None:
        self.blink.set_config(**kwargs)

    # ── Per-frame update ──────────────────────────────────────────

    def update(self, now: float, dt: float) -> dict[str, float]:
        """Advance to session time ``now`` and rebuild the weight map."""
        self.time = now
        weights = dict.fromkeys(self._weights, 0.0)

        weights[BLINK_SHAPE] = self.blink.update(now)

        self.emotions.update(dt)
        weights.update(self.emotions.active_weights())

        for shape, entry in list(self._entries.items()):
            weights[shape] = clamp(entry.value(now), 0.0, 1.0)
            if entry.finished(now):
                final = entry.final_value()
                if final is None:
                    del self._entries[shape]
                else:
                    self._entries[shape] = StaticExpression(shape=shape, weight=final)

        self._weights = weights
        return dict(weights)

    def get_weights(self) -> dict[str, float]:
        return dict(self._weights)

    def get_value(self, name: str) -> float:
        return self._weights.get(name, 0.0)

    @property
    def active_entries(self) -> list[str]:
        return list(self._entries)
