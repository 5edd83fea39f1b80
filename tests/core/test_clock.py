"""Tests for frame timing helpers."""

from avatarpose.constants import MAX_DELTA_TIME
from avatarpose.core.clock import DeltaClock, FrameTimer


def test_delta_clock_clamped():
    clock = DeltaClock()
    dt = clock.get_delta()
    assert 0.0 <= dt <= MAX_DELTA_TIME
    assert clock.elapsed == dt


def test_timer_fires_once_when_due():
    fired = []
    timer = FrameTimer()
    timer.schedule(0.25, lambda: fired.append(1))
    assert timer.pending
    assert timer.tick(0.1) is False
    assert timer.tick(0.1) is False
    assert timer.tick(0.1) is True
    assert fired == [1]
    assert not timer.pending
    assert timer.tick(1.0) is False
    assert fired == [1]


def test_cancelled_timer_never_fires():
    fired = []
    timer = FrameTimer()
    timer.schedule(0.1, lambda: fired.append(1))
    timer.cancel()
    timer.tick(1.0)
    assert fired == []
    assert timer.remaining == 0.0


def test_reschedule_replaces_callback():
    fired = []
    timer = FrameTimer()
    timer.schedule(0.1, lambda: fired.append("a"))
    timer.schedule(0.1, lambda: fired.append("b"))
    timer.tick(0.2)
    assert fired == ["b"]


def test_callback_may_reschedule():
    timer = FrameTimer()
    count = []

    def again():
        count.append(1)
        timer.schedule(0.1, again)

    timer.schedule(0.1, again)
    for _ in range(5):
        timer.tick(0.1)
    assert len(count) == 5
    assert timer.pending
