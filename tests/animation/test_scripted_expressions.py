"""Tests for scripted expression entries."""

import math

import pytest

from avatarpose.animation.interpolation import ease_in
from avatarpose.animation.scripted_expressions import (
    SCRIPTED_PRESETS, ScriptedConfig, StaticExpression, Surprise, Talking, TimedTransition,
    make_surprise, make_talking,
)


def test_static():
    e = StaticExpression("happy", 0.4)
    assert e.value(123.0) == 0.4
    assert not e.finished(1e9)


class TestTimedTransition:
    def test_linear_progress(self):
        e = TimedTransition("oh", 0.2, 1.0, start_time=1.0, duration=2.0)
        assert e.value(1.0) == pytest.approx(0.2)
        assert e.value(2.0) == pytest.approx(0.6)
        assert e.value(5.0) == pytest.approx(1.0)
        assert not e.finished(2.9)
        assert e.finished(3.0)

    def test_easing_applied(self):
        e = TimedTransition("oh", 0.0, 1.0, start_time=0.0, duration=1.0, easing=ease_in)
        assert e.value(0.5) == pytest.approx(0.25)

    def test_final_value(self):
        assert TimedTransition("a", 0, 0.7, 0, 1).final_value() == 0.7
        assert TimedTransition("a", 1, 0.0, 0, 1).final_value() is None


class TestTalking:
    def test_oscillation(self):
        e = Talking(start_time=10.0)
        assert e.value(10.0) == pytest.approx(0.0)
        t = math.pi / 16
        assert e.value(10.0 + t) == pytest.approx(0.3)
        assert 0.0 <= e.value(11.3) <= 0.3

    def test_ends_after_duration(self):
        e = Talking(start_time=0.0)
        assert not e.finished(2.0)
        assert e.finished(2.01)
        assert e.value(2.5) == 0.0


class TestSurprise:
    def test_envelope(self):
        e = Surprise(start_time=0.0, start_value=0.0)
        assert e.value(0.0) == pytest.approx(0.0)
        assert e.value(0.1) == pytest.approx(0.75)
        assert e.value(0.2) == pytest.approx(1.0)
        assert e.value(0.6) == 1.0
        assert e.value(1.25) == pytest.approx(0.5)
        assert e.value(1.5) == 0.0
        assert e.finished(1.5)
        assert not e.finished(1.49)

    def test_rises_from_current_value(self):
        e = Surprise(start_time=0.0, start_value=0.4)
        assert e.value(0.0) == pytest.approx(0.4)
        assert e.value(0.2) == pytest.approx(1.0)

    def test_monotonic_phases(self):
        e = Surprise(start_time=0.0)
        rise = [e.value(i * 0.01) for i in range(21)]
        fall = [e.value(1.0 + i * 0.01) for i in range(51)]
        assert rise == sorted(rise)
        assert fall == sorted(fall, reverse=True)


def test_factories_use_config_and_overrides():
    config = ScriptedConfig.defaults()
    talk = make_talking(config, 3.0, lambda shape: 0.0, duration=4.0)
    assert talk.start_time == 3.0
    assert talk.duration == 4.0
    assert talk.shape == "aa"

    surprise = make_surprise(config, 1.0, {"surprised": 0.3}.get, peak=0.8)
    assert surprise.start_value == 0.3
    assert surprise.peak == 0.8


def test_presets_registered():
    assert set(SCRIPTED_PRESETS) == {"talking", "surprise"}


def test_config_from_packaged_file():
    config = ScriptedConfig.from_config()
    assert config.talking.frequency == 8.0
    assert config.surprise.hold_until == 1.0
