"""Retarget source-rig clips onto a normalized target skeleton.

Rotations are re-expressed in the target's frame as
``parentRestWorld * R * inverse(restWorld)`` using the source rig's rest
pose, which removes the source's rest-pose bias (T-pose vs A-pose, bone
local axes). Position samples are scaled by the ratio of target to source
hip height. Targets declaring the legacy format generation are mirrored
along X and Z.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from avatarpose.animation.clip import AnimationClip, Track, TrackProperty
from avatarpose.constants import (
    DEFAULT_SOURCE_CLIP, SOURCE_HIPS_BONE, TARGET_HIPS_BONE, UP_AXIS,
)
from avatarpose.core.math_utils import (
    batch_quat_multiply, batch_quat_normalize, quat_identity, quat_inverse,
)
from avatarpose.core.skeleton import Skeleton
from avatarpose.retarget.motion_asset import MotionAsset, SourceTrack
from avatarpose.retarget.rig_map import RigMap

logger = logging.getLogger(__name__)

# Components negated for the legacy convention (X and Z; Y and W untouched)
_LEGACY_QUAT_SIGN = np.array([-1.0, 1.0, -1.0, 1.0])
_LEGACY_VEC_SIGN = np.array([-1.0, 1.0, -1.0])


class ClipLoadError(ValueError):
    """A single clip could not be retargeted (missing clip or rig bone)."""


def apply_legacy_convention(values: np.ndarray, prop: TrackProperty) -> np.ndarray:
    """Mirror (N, 4) quaternion or (N, 3) position samples along X and Z."""
    sign = _LEGACY_QUAT_SIGN if prop is TrackProperty.ROTATION else _LEGACY_VEC_SIGN
    return np.asarray(values, dtype=np.float64) * sign


def hip_height_scale(
    source: Skeleton,
    target: Skeleton,
    source_hips: str = SOURCE_HIPS_BONE,
    target_hips: str = TARGET_HIPS_BONE,
) -> float:
    """targetRestHipHeight / sourceRestHipHeight along the up axis."""
    if source.find(source_hips) is None:
        raise ClipLoadError(f"Source skeleton has no hip bone {source_hips!r}")
    if target.find(target_hips) is None:
        raise ClipLoadError(f"Target skeleton has no hip bone {target_hips!r}")
    source_height = float(source.rest_world_position(source_hips)[UP_AXIS])
    target_height = float(target.rest_world_position(target_hips)[UP_AXIS])
    if source_height <= 0.0:
        raise ClipLoadError(
            f"Source hip bone {source_hips!r} has non-positive rest height {source_height}"
        )
    return target_height / source_height


class Retargeter:
    """Converts source clips to AnimationClips for one target skeleton.

    The target skeleton and rig map are only read, so one retargeter can
    serve any number of independent clip loads.
    """

    def __init__(
        self,
        target: Skeleton,
        rig_map: RigMap,
        source_hips: str = SOURCE_HIPS_BONE,
        target_hips: str = TARGET_HIPS_BONE,
    ):
        self.target = target
        self.rig_map = rig_map
        self.source_hips = source_hips
        self.target_hips = target_hips

    def retarget(
        self,
        asset: MotionAsset,
        name: str,
        clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
    ) -> AnimationClip:
        """Retarget ``clip_name`` from ``asset`` into a clip called ``name``.

        Raises ClipLoadError if the clip or a hip bone is missing. A result
        with zero tracks is valid.
        """
        source_clip = asset.find_clip(clip_name)
        if source_clip is None:
            raise ClipLoadError(
                f"Clip {clip_name!r} not found in asset {asset.name!r} "
                f"(available: {list(asset.clips)})"
            )

        scale = hip_height_scale(asset.skeleton, self.target,
                                 self.source_hips, self.target_hips)
        legacy = self.target.is_legacy

        tracks: list[Track] = []
        for src in source_clip.tracks:
            track = self._convert_track(src, asset.skeleton, scale, legacy)
            if track is not None:
                tracks.append(track)

        logger.debug(
            "Retargeted %s: %d/%d tracks, hip scale %.4f%s",
            name, len(tracks), len(source_clip.tracks), scale,
            " (legacy)" if legacy else "",
        )
        return AnimationClip(name=name, duration=source_clip.duration, tracks=tracks)

    def _convert_track(
        self, src: SourceTrack, source: Skeleton, scale: float, legacy: bool,
    ) -> Optional[Track]:
        prop = TrackProperty.parse(src.property_name)
        if prop is None:
            logger.debug("Dropping %s: unsupported property", src.name)
            return None

        target_bone = self.rig_map.get(src.bone_name)
        if target_bone is None:
            logger.debug("Dropping %s: bone not in rig map", src.name)
            return None
        if self.target.find(target_bone) is None:
            logger.debug("Dropping %s: target has no bone %r", src.name, target_bone)
            return None
        source_bone = source.find(src.bone_name)
        if source_bone is None:
            logger.debug("Dropping %s: source skeleton has no such bone", src.name)
            return None

        values = np.asarray(src.values, dtype=np.float64).reshape(-1, prop.width)

        if prop is TrackProperty.ROTATION:
            rest_inverse = quat_inverse(source.rest_world_rotation(source_bone.name))
            if source_bone.parent is not None:
                parent_rest_world = source.rest_world_rotation(source_bone.parent)
            else:
                parent_rest_world = quat_identity()
            values = batch_quat_multiply(
                batch_quat_multiply(parent_rest_world, values), rest_inverse,
            )
            values = batch_quat_normalize(values)
        else:
            values = values * scale

        if legacy:
            values = apply_legacy_convention(values, prop)

        return Track(bone=target_bone, property=prop, times=src.times, values=values)


def retarget_clip(
    asset: MotionAsset,
    target: Skeleton,
    rig_map: RigMap,
    name: str,
    clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
) -> AnimationClip:
    """Convenience wrapper around Retargeter for a single clip."""
    return Retargeter(target, rig_map).retarget(asset, name, clip_name)
