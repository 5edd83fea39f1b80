"""Frame timing: wall-clock delta clock and frame-driven one-shot timers."""

import time
from typing import Callable, Optional

from avatarpose.constants import MAX_DELTA_TIME


class DeltaClock:
    """Tracks elapsed time between frames."""

    def __init__(self):
        self._last_time = time.perf_counter()
        self.elapsed = 0.0

    def get_delta(self) -> float:
        """Return seconds elapsed since last call, clamped to MAX_DELTA_TIME."""
        now = time.perf_counter()
        dt = min(now - self._last_time, MAX_DELTA_TIME)
        self._last_time = now
        self.elapsed += dt
        return dt

    def reset(self) -> None:
        self._last_time = time.perf_counter()
        self.elapsed = 0.0


class FrameTimer:
    """A single cancellable one-shot callback advanced by frame deltas.

    Scheduling replaces any pending callback. A cancelled timer never fires,
    even if it was due within the same ``tick``.
    """

    def __init__(self):
        self._remaining = 0.0
        self._callback: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    @property
    def remaining(self) -> float:
        return self._remaining if self._callback is not None else 0.0

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self._remaining = max(0.0, delay)
        self._callback = callback

    def cancel(self) -> None:
        self._callback = None
        self._remaining = 0.0

    def tick(self, dt: float) -> bool:
        """Advance by ``dt``; fire the callback if due. Returns True if fired."""
        if self._callback is None:
            return False
        self._remaining -= dt
        if self._remaining > 0.0:
            return False
        callback = self._callback
        self._callback = None
        self._remaining = 0.0
        callback()
        return True
