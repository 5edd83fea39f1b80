"""Keyframe tracks and animation clips targeting skeleton bones.

A Track animates one property (rotation or position) of one bone with
parallel arrays of sample times and values. Sample arrays are read-only once
the track is built, so a clip can be restarted and replayed any number of
times without being mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from avatarpose.core.math_utils import lerp_vec3, quat_slerp


class TrackProperty(Enum):
    ROTATION = "quaternion"
    POSITION = "position"

    @property
    def width(self) -> int:
        return 4 if self is TrackProperty.ROTATION else 3

    @classmethod
    def parse(cls, name: str) -> Optional["TrackProperty"]:
        """Map a track property name to a TrackProperty, or None if unsupported."""
        return _PROPERTY_ALIASES.get(name)


_PROPERTY_ALIASES = {
    "quaternion": TrackProperty.ROTATION,
    "rotation": TrackProperty.ROTATION,
    "position": TrackProperty.POSITION,
}


def _readonly(a: NDArray) -> NDArray:
    a = np.array(a, dtype=np.float64)
    a.setflags(write=False)
    return a


@dataclass(eq=False)
class Track:
    """Samples for one bone property."""

    bone: str
    property: TrackProperty
    times: NDArray
    values: NDArray

    def __post_init__(self):
        times = np.asarray(self.times, dtype=np.float64).reshape(-1)
        width = self.property.width
        values = np.asarray(self.values, dtype=np.float64)
        if values.ndim == 1:
            if values.size % width:
                raise ValueError(
                    f"Track {self.name}: {values.size} values is not a multiple of {width}"
                )
            values = values.reshape(-1, width)
        if len(times) == 0:
            raise ValueError(f"Track {self.name} has no samples")
        if values.shape != (len(times), width):
            raise ValueError(
                f"Track {self.name}: expected {len(times)}x{width} values, got {values.shape}"
            )
        if np.any(np.diff(times) <= 0):
            raise ValueError(f"Track {self.name}: sample times must be strictly increasing")
        self.times = _readonly(times)
        self.values = _readonly(values)

    @property
    def name(self) -> str:
        return f"{self.bone}.{self.property.value}"

    def __len__(self) -> int:
        return len(self.times)

    def sample(self, t: float) -> NDArray:
        """Value at time ``t``; holds the first/last sample outside the range."""
        times = self.times
        if t <= times[0]:
            return self.values[0].copy()
        if t >= times[-1]:
            return self.values[-1].copy()

        hi = int(np.searchsorted(times, t, side="right"))
        lo = hi - 1
        u = (t - times[lo]) / (times[hi] - times[lo])
        if self.property is TrackProperty.ROTATION:
            return quat_slerp(self.values[lo], self.values[hi], u)
        return lerp_vec3(self.values[lo], self.values[hi], u)


@dataclass(eq=False)
class AnimationClip:
    """A named, timed set of per-bone tracks."""

    name: str = ""
    duration: float = 0.0
    tracks: list[Track] = field(default_factory=list)

    def __post_init__(self):
        self._index: dict[tuple[str, TrackProperty], Track] = {
            (t.bone, t.property): t for t in self.tracks
        }

    @property
    def bones(self) -> list[str]:
        seen: dict[str, None] = {}
        for t in self.tracks:
            seen.setdefault(t.bone, None)
        return list(seen)

    def track_for(self, bone: str, prop: TrackProperty) -> Optional[Track]:
        return self._index.get((bone, prop))

    def sample_pose(self, t: float) -> tuple[dict[str, NDArray], dict[str, NDArray]]:
        """Sample every track at ``t``; returns (rotations, positions) by bone."""
        rotations: dict[str, NDArray] = {}
        positions: dict[str, NDArray] = {}
        for track in self.tracks:
            if track.property is TrackProperty.ROTATION:
                rotations[track.bone] = track.sample(t)
            else:
                positions[track.bone] = track.sample(t)
        return rotations, positions


# ── Serialization ─────────────────────────────────────────────────

def clip_to_dict(clip: AnimationClip) -> dict:
    """Serialize an AnimationClip to a JSON-compatible dict."""
    return {
        "name": clip.name,
        "duration": clip.duration,
        "tracks": [
            {
                "bone": t.bone,
                "property": t.property.value,
                "times": t.times.tolist(),
                "values": t.values.reshape(-1).tolist(),
            }
            for t in clip.tracks
        ],
    }
