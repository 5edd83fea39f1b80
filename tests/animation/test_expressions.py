"""Tests for the expression scheduler."""

import random

import pytest

from avatarpose.animation.auto_blink import BlinkConfig
from avatarpose.animation.emotions import EmotionConfig
from avatarpose.animation.expressions import BLINK_SHAPE, ExpressionScheduler
from avatarpose.core.events import EventBus, EventType


def _scheduler(**kw):
    kw.setdefault("rng", random.Random(0))
    return ExpressionScheduler(**kw)


def _step(scheduler, start, end, dt=0.05):
    """Update from ``start`` to ``end`` inclusive; return the last weight map."""
    n = int(round((end - start) / dt))
    weights = {}
    for i in range(n + 1):
        weights = scheduler.update(start + i * dt, dt)
    return weights


def test_blink_always_reported():
    s = _scheduler()
    weights = s.update(0.0, 0.0)
    assert weights == {BLINK_SHAPE: 0.0}


def test_static_expression_clamped():
    s = _scheduler()
    s.set_expression("oh", 1.7)
    assert s.update(0.0, 0.0)["oh"] == 1.0
    s.set_expression("oh", -0.2)
    assert s.update(0.1, 0.1)["oh"] == 0.0


def test_timed_transition_becomes_static():
    s = _scheduler()
    s.update(0.0, 0.0)
    s.set_expression("ee", 0.8, duration=1.0)
    assert s.update(0.5, 0.5)["ee"] == pytest.approx(0.4)
    assert s.update(1.0, 0.5)["ee"] == pytest.approx(0.8)
    assert s.update(2.0, 1.0)["ee"] == pytest.approx(0.8)
    assert "ee" in s.active_entries


def test_transition_to_zero_removes_entry_but_keeps_name():
    s = _scheduler()
    s.set_expression("ee", 0.6)
    s.update(0.0, 0.0)
    s.set_expression("ee", 0.0, duration=0.5)
    s.update(0.25, 0.25)
    assert s.get_value("ee") == pytest.approx(0.3)
    s.update(0.5, 0.25)
    assert "ee" not in s.active_entries
    assert s.update(0.75, 0.25)["ee"] == 0.0


def test_cleared_expression_reported_at_zero():
    s = _scheduler()
    s.set_expression("happy", 0.5)
    s.update(0.0, 0.0)
    s.clear_expression("happy")
    assert s.update(0.1, 0.1)["happy"] == 0.0


def test_later_writes_win_over_emotion():
    s = _scheduler()
    s.set_emotion("happy", immediate=True)
    s.set_expression("happy", 0.2)
    assert s.update(0.0, 0.0)["happy"] == 0.2


def test_emotion_ramps_through_scheduler():
    s = _scheduler(emotion_config=EmotionConfig(transition_speed=2.0))
    s.set_emotion("sad")
    s.update(0.0, 0.0)
    assert s.update(0.25, 0.25)["sad"] == pytest.approx(0.5)


def test_trigger_surprise_lifecycle():
    bus = EventBus()
    triggered = []
    bus.subscribe(EventType.EXPRESSION_TRIGGERED, lambda name: triggered.append(name))
    s = _scheduler(bus=bus)
    s.update(0.0, 0.0)
    assert s.trigger("surprise")
    assert triggered == ["surprise"]
    assert s.update(0.6, 0.6)["surprised"] == 1.0
    s.update(1.6, 1.0)
    assert "surprised" not in s.active_entries
    assert s.get_value("surprised") == 0.0


def test_trigger_talking_params():
    s = _scheduler()
    s.update(0.0, 0.0)
    assert s.trigger("talking", duration=1.0, amplitude=0.5)
    peak = max(w["aa"] for w in (s.update(i * 0.01, 0.01) for i in range(1, 100)))
    assert 0.45 < peak <= 0.5
    s.update(1.1, 0.1)
    assert "aa" not in s.active_entries


def test_unknown_trigger_ignored():
    s = _scheduler()
    assert s.trigger("sneeze") is False
    assert s.active_entries == []


def test_blink_written_first_and_overridable():
    s = _scheduler(blink_config=BlinkConfig(speed_variation=0.0))
    s.update(0.0, 0.0)
    s.blink.trigger(0.0)
    weights = _step(s, 0.0, 0.05, dt=0.05)
    assert weights[BLINK_SHAPE] == pytest.approx(1.0)
    s.set_expression(BLINK_SHAPE, 0.0)
    assert s.update(0.06, 0.01)[BLINK_SHAPE] == 0.0


def test_set_blink_config_forwarded():
    s = _scheduler()
    s.set_blink_config(duration=0.3)
    assert s.blink.config.duration == 0.3


def test_returned_map_is_copy():
    s = _scheduler()
    weights = s.update(0.0, 0.0)
    weights["junk"] = 1.0
    assert "junk" not in s.get_weights()


def test_unknown_easing_ignored():
    s = _scheduler()
    s.set_expression("oh", 0.3)
    assert s.set_expression("oh", 0.9, duration=1.0, easing="bounce") is False
    assert s.update(0.5, 0.5)["oh"] == pytest.approx(0.3)


def test_known_easing_accepted():
    s = _scheduler()
    assert s.set_expression("oh", 1.0, duration=1.0, easing="ease_in")
    assert s.update(0.5, 0.5)["oh"] == pytest.approx(0.25)
