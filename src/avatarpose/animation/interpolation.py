"""Smoothing and easing helpers shared by overlays and expressions."""

from typing import Callable, Optional

from avatarpose.constants import TARGET_FPS
from avatarpose.core.math_utils import Vec3


# ── Frame-rate independent smoothing ─────────────────────────────────

def frame_independent_factor(smoothing: float, dt: float) -> float:
    """Per-frame blend factor ``1 - (1 - smoothing)^(dt * 60)``.

    The same ``smoothing`` converges at the same rate regardless of frame
    duration. ``smoothing >= 1`` snaps immediately; ``smoothing <= 0`` never
    moves.
    """
    if smoothing >= 1.0:
        return 1.0
    if smoothing <= 0.0 or dt <= 0.0:
        return 0.0
    return 1.0 - (1.0 - smoothing) ** (dt * TARGET_FPS)


def smooth(current: float, target: float, factor: float) -> float:
    """Move ``current`` toward ``target`` by ``factor`` (0-1) of the gap."""
    return current + (target - current) * factor


def smooth_vec3(current: Vec3, target: Vec3, factor: float) -> Vec3:
    return current + (target - current) * factor


def approach(current: float, target: float, max_step: float) -> float:
    """Move ``current`` toward ``target`` by at most ``max_step``, never past it."""
    if current < target:
        return min(target, current + max_step)
    return max(target, current - max_step)


# ── Easing functions ─────────────────────────────────────────────────

def ease_linear(t: float) -> float:
    return t


def ease_in(t: float) -> float:
    return t * t


def ease_out(t: float) -> float:
    return t * (2.0 - t)


def ease_in_out(t: float) -> float:
    if t < 0.5:
        return 2.0 * t * t
    return -1.0 + (4.0 - 2.0 * t) * t


EASING_MAP: dict[str, Callable[[float], float]] = {
    "linear": ease_linear,
    "ease_in": ease_in,
    "ease_out": ease_out,
    "ease_in_out": ease_in_out,
}


def get_easing(name: Optional[str]) -> Callable[[float], float]:
    """Look up an easing by name; None means linear. Unknown names raise ValueError."""
    if name is None:
        return ease_linear
    try:
        return EASING_MAP[name]
    except KeyError:
        raise ValueError(f"Unknown easing {name!r} (expected one of {sorted(EASING_MAP)})") from None
