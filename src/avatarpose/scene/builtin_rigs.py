"""Built-in demo rigs and motion assets.

Provides a Mixamo-style source skeleton (centimetres, arms in an A-pose
rest) and a normalized humanoid target skeleton (metres, identity rest
rotations), plus a handful of demo clips authored on the source rig.

Coordinate system (both rigs, Y-up):
  +Y = up, +Z = character forward, +X = character left.
  Source hips at Y=100 cm, target hips at Y=0.95 m.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from avatarpose.constants import CURRENT_FORMAT_VERSION, DEFAULT_SOURCE_CLIP
from avatarpose.core.math_utils import (
    Quat, quat_from_euler, quat_identity, quat_inverse,
    quat_multiply, vec3,
)
from avatarpose.core.skeleton import Bone, Skeleton
from avatarpose.retarget.motion_asset import MotionAsset, SourceClip, SourceTrack

SOURCE_HIP_HEIGHT = 100.0
TARGET_HIP_HEIGHT = 0.95

# Source arm rest: rotated 45° down from T-pose about the forward axis
_A_POSE = math.pi / 4

# (name, parent, rest position, rest rotation)
_SOURCE_BONES = [
    ("mixamorigHips", None, (0, SOURCE_HIP_HEIGHT, 0), None),
    ("mixamorigSpine", "mixamorigHips", (0, 10, 0), None),
    ("mixamorigSpine1", "mixamorigSpine", (0, 12, 0), None),
    ("mixamorigSpine2", "mixamorigSpine1", (0, 13, 0), None),
    ("mixamorigNeck", "mixamorigSpine2", (0, 15, 0), None),
    ("mixamorigHead", "mixamorigNeck", (0, 9, 0), None),
    ("mixamorigLeftShoulder", "mixamorigSpine2", (6, 11, 0), None),
    ("mixamorigLeftArm", "mixamorigLeftShoulder", (12, 0, 0), (0, 0, -_A_POSE)),
    ("mixamorigLeftForeArm", "mixamorigLeftArm", (27, 0, 0), None),
    ("mixamorigLeftHand", "mixamorigLeftForeArm", (25, 0, 0), None),
    ("mixamorigRightShoulder", "mixamorigSpine2", (-6, 11, 0), None),
    ("mixamorigRightArm", "mixamorigRightShoulder", (-12, 0, 0), (0, 0, _A_POSE)),
    ("mixamorigRightForeArm", "mixamorigRightArm", (-27, 0, 0), None),
    ("mixamorigRightHand", "mixamorigRightForeArm", (-25, 0, 0), None),
    ("mixamorigLeftUpLeg", "mixamorigHips", (9, -6, 0), None),
    ("mixamorigLeftLeg", "mixamorigLeftUpLeg", (0, -44, 0), None),
    ("mixamorigLeftFoot", "mixamorigLeftLeg", (0, -42, 0), None),
    ("mixamorigRightUpLeg", "mixamorigHips", (-9, -6, 0), None),
    ("mixamorigRightLeg", "mixamorigRightUpLeg", (0, -44, 0), None),
    ("mixamorigRightFoot", "mixamorigRightLeg", (0, -42, 0), None),
]

_TARGET_BONES = [
    ("hips", None, (0, TARGET_HIP_HEIGHT, 0)),
    ("spine", "hips", (0, 0.095, 0)),
    ("chest", "spine", (0, 0.115, 0)),
    ("upperChest", "chest", (0, 0.12, 0)),
    ("neck", "upperChest", (0, 0.14, 0)),
    ("head", "neck", (0, 0.085, 0)),
    ("leftShoulder", "upperChest", (0.055, 0.10, 0)),
    ("leftUpperArm", "leftShoulder", (0.11, 0, 0)),
    ("leftLowerArm", "leftUpperArm", (0.26, 0, 0)),
    ("leftHand", "leftLowerArm", (0.24, 0, 0)),
    ("rightShoulder", "upperChest", (-0.055, 0.10, 0)),
    ("rightUpperArm", "rightShoulder", (-0.11, 0, 0)),
    ("rightLowerArm", "rightUpperArm", (-0.26, 0, 0)),
    ("rightHand", "rightLowerArm", (-0.24, 0, 0)),
    ("leftUpperLeg", "hips", (0.085, -0.055, 0)),
    ("leftLowerLeg", "leftUpperLeg", (0, -0.42, 0)),
    ("leftFoot", "leftLowerLeg", (0, -0.40, 0)),
    ("rightUpperLeg", "hips", (-0.085, -0.055, 0)),
    ("rightLowerLeg", "rightUpperLeg", (0, -0.42, 0)),
    ("rightFoot", "rightLowerLeg", (0, -0.40, 0)),
]


def mixamo_source_skeleton() -> Skeleton:
    """Mixamo-named source rig in centimetres with an A-pose arm rest."""
    bones = []
    for name, parent, pos, euler in _SOURCE_BONES:
        rot = quat_from_euler(*euler) if euler is not None else quat_identity()
        bones.append(Bone(name=name, parent=parent,
                          rest_position=vec3(*pos), rest_rotation=rot))
    return Skeleton(bones, name="mixamo")


def humanoid_target_skeleton(format_version: str = CURRENT_FORMAT_VERSION) -> Skeleton:
    """Normalized humanoid target rig (identity rest rotations, metres)."""
    bones = [Bone(name=name, parent=parent, rest_position=vec3(*pos))
             for name, parent, pos in _TARGET_BONES]
    return Skeleton(bones, format_version=format_version, name="humanoid")


def source_local_rotation(source: Skeleton, bone: str, target_rotation: Quat) -> Quat:
    """Source-rig local rotation that retargets to ``target_rotation``.

    Inverse of ``parentRestWorld * R * inverse(restWorld)``; lets demo clips
    be authored in target terms.
    """
    node = source.find(bone)
    if node is None:
        raise ValueError(f"Source skeleton has no bone {bone!r}")
    parent_world = (source.rest_world_rotation(node.parent)
                    if node.parent is not None else quat_identity())
    rest_world = source.rest_world_rotation(bone)
    return quat_multiply(quat_multiply(quat_inverse(parent_world), target_rotation), rest_world)


def make_motion_asset(
    skeleton: Skeleton,
    tracks: dict[str, tuple[list[float], list]],
    duration: float,
    clip_name: str = DEFAULT_SOURCE_CLIP,
    name: str = "",
) -> MotionAsset:
    """Wrap ``{"<bone>.<property>": (times, values)}`` into a one-clip asset."""
    source_tracks = [
        SourceTrack(name=track_name, times=times, values=np.asarray(values, dtype=np.float64))
        for track_name, (times, values) in tracks.items()
    ]
    clip = SourceClip(name=clip_name, duration=duration, tracks=source_tracks)
    return MotionAsset(skeleton=skeleton, clips={clip_name: clip}, name=name)


# ── Demo clips ───────────────────────────────────────────────────────

def _keyed_rotations(source: Skeleton, bone: str, times: list[float],
                     eulers: list[tuple[float, float, float]]) -> tuple[list[float], list]:
    values = [source_local_rotation(source, bone, quat_from_euler(*e)) for e in eulers]
    return times, values


def _idle(source: Skeleton) -> dict:
    times = [0.0, 1.0, 2.0]
    return {
        "mixamorigSpine.quaternion": _keyed_rotations(
            source, "mixamorigSpine", times, [(0, 0, 0), (0.03, 0, 0.01), (0, 0, 0)]),
        "mixamorigHips.position": (times, [
            (0, SOURCE_HIP_HEIGHT, 0), (0, SOURCE_HIP_HEIGHT - 0.8, 0), (0, SOURCE_HIP_HEIGHT, 0),
        ]),
    }


def _idle2(source: Skeleton) -> dict:
    times = [0.0, 1.5, 3.0]
    return {
        "mixamorigSpine1.quaternion": _keyed_rotations(
            source, "mixamorigSpine1", times, [(0, 0, 0), (0, 0.06, 0), (0, 0, 0)]),
        "mixamorigNeck.quaternion": _keyed_rotations(
            source, "mixamorigNeck", times, [(0, 0, 0), (0.04, -0.05, 0), (0, 0, 0)]),
    }


def _looking(source: Skeleton) -> dict:
    times = [0.0, 1.0, 2.0, 3.0, 4.0]
    yaws = [0.0, 0.5, 0.5, -0.4, 0.0]
    return {
        "mixamorigHead.quaternion": _keyed_rotations(
            source, "mixamorigHead", times, [(0, y, 0) for y in yaws]),
    }


def _wave(source: Skeleton) -> dict:
    times = [0.0, 0.4, 0.7, 1.0, 1.5]
    # Right arm raised (negative roll lifts the right arm), forearm swinging
    arm = [(0, 0, 0), (0, 0, -1.2), (0, 0, -1.2), (0, 0, -1.2), (0, 0, -1.0)]
    fore = [(0, 0, 0), (0, 0.3, -0.6), (0, -0.3, -0.6), (0, 0.3, -0.6), (0, 0, -0.4)]
    return {
        "mixamorigRightArm.quaternion": _keyed_rotations(
            source, "mixamorigRightArm", times, arm),
        "mixamorigRightForeArm.quaternion": _keyed_rotations(
            source, "mixamorigRightForeArm", times, fore),
    }


_DEMO_CLIPS = {
    "idle": (_idle, 2.0),
    "idle2": (_idle2, 3.0),
    "looking": (_looking, 4.0),
    "wave": (_wave, 1.5),
}


def demo_clip_names() -> list[str]:
    return list(_DEMO_CLIPS)


def demo_motion_asset(name: str, source: Optional[Skeleton] = None) -> MotionAsset:
    """One built-in demo clip as a source motion asset."""
    if name not in _DEMO_CLIPS:
        raise ValueError(f"Unknown demo clip {name!r} (available: {demo_clip_names()})")
    source = source or mixamo_source_skeleton()
    build, duration = _DEMO_CLIPS[name]
    return make_motion_asset(source, build(source), duration, name=name)


def demo_motion_assets() -> dict[str, MotionAsset]:
    source = mixamo_source_skeleton()
    return {name: demo_motion_asset(name, source) for name in _DEMO_CLIPS}
