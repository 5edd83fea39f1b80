"""Parsed motion-capture assets: source rest skeleton plus raw named clips.

The asset transport (FBX decoding, file or network fetch) happens outside
this package; what arrives here is the JSON-compatible dict form::

    {
      "skeleton": {"bones": [{"name": "mixamorigHips", "parent": null,
                              "position": [0, 104, 0], "rotation": [0, 0, 0, 1]}, ...]},
      "clips": [{"name": "mixamo.com", "duration": 2.0,
                 "tracks": [{"name": "mixamorigHips.quaternion",
                             "times": [...], "values": [...]}]}]
    }

Track values are flat lists (4 per sample for quaternions, 3 for vectors).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from avatarpose.core.config_loader import load_json
from avatarpose.core.skeleton import Skeleton


@dataclass(eq=False)
class SourceTrack:
    """A raw source track named ``<sourceBoneName>.<property>``."""
    name: str
    times: NDArray
    values: NDArray

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=np.float64).reshape(-1)
        self.values = np.asarray(self.values, dtype=np.float64).reshape(-1)

    @property
    def bone_name(self) -> str:
        return self.name.rsplit(".", 1)[0]

    @property
    def property_name(self) -> str:
        parts = self.name.rsplit(".", 1)
        return parts[1] if len(parts) == 2 else ""


@dataclass(eq=False)
class SourceClip:
    name: str
    duration: float
    tracks: list[SourceTrack] = field(default_factory=list)


@dataclass(eq=False)
class MotionAsset:
    """A source skeleton rest hierarchy plus the clips authored on it."""
    skeleton: Skeleton
    clips: dict[str, SourceClip] = field(default_factory=dict)
    name: str = ""

    def find_clip(self, name: Optional[str] = None) -> Optional[SourceClip]:
        """Return the named clip, or the first clip if ``name`` is None."""
        if name is None:
            return next(iter(self.clips.values()), None)
        return self.clips.get(name)


def motion_asset_from_dict(d: dict, name: str = "") -> MotionAsset:
    """Build a MotionAsset from its JSON-compatible dict form."""
    if "skeleton" not in d:
        raise ValueError("Motion asset has no skeleton")
    skeleton = Skeleton.from_dict(d["skeleton"])
    clips: dict[str, SourceClip] = {}
    for cd in d.get("clips", []):
        tracks = [
            SourceTrack(name=td["name"], times=td["times"], values=td["values"])
            for td in cd.get("tracks", [])
        ]
        clip = SourceClip(
            name=cd.get("name", ""),
            duration=float(cd.get("duration", 0.0)),
            tracks=tracks,
        )
        clips[clip.name] = clip
    return MotionAsset(skeleton=skeleton, clips=clips, name=name or d.get("name", ""))


def motion_asset_to_dict(asset: MotionAsset) -> dict:
    return {
        "name": asset.name,
        "skeleton": asset.skeleton.to_dict(),
        "clips": [
            {
                "name": c.name,
                "duration": c.duration,
                "tracks": [
                    {"name": t.name, "times": t.times.tolist(), "values": t.values.tolist()}
                    for t in c.tracks
                ],
            }
            for c in asset.clips.values()
        ],
    }


def load_motion_asset(path: Path) -> MotionAsset:
    """Load a motion asset JSON file."""
    path = Path(path)
    return motion_asset_from_dict(load_json(path), name=path.stem)


def load_skeleton(path: Path) -> Skeleton:
    """Load a target skeleton JSON file."""
    return Skeleton.from_dict(load_json(Path(path)))
