"""Retargeting subsystem -- source-rig clips onto a normalized humanoid skeleton."""

from avatarpose.retarget.motion_asset import (
    MotionAsset, SourceClip, SourceTrack, load_motion_asset, motion_asset_from_dict,
)
from avatarpose.retarget.retargeter import ClipLoadError, Retargeter, retarget_clip
from avatarpose.retarget.rig_map import RigMap

__all__ = [
    "ClipLoadError",
    "MotionAsset",
    "Retargeter",
    "RigMap",
    "SourceClip",
    "SourceTrack",
    "load_motion_asset",
    "motion_asset_from_dict",
    "retarget_clip",
]
