"""Named-bone skeleton hierarchy with rest pose and live pose.

Bones reference their parent by name only; the skeleton owns every bone.
World transforms are always recomputed from the parent chain on request,
so they can never go stale after a local write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import numpy as np

from avatarpose.core.math_utils import (
    Mat4, Quat, Vec3,
    mat4_compose, quat_identity, quat_multiply, quat_normalize,
    quat_rotate_vec3, vec3,
)
from avatarpose.constants import CURRENT_FORMAT_VERSION, LEGACY_FORMAT_VERSION


@dataclass(eq=False)
class Bone:
    """A single skeleton bone.

    ``rest_*`` hold the unanimated baseline; ``rotation``/``position`` hold
    the live pose written by playback and overlays.
    """
    name: str
    parent: Optional[str] = None
    rest_rotation: Quat = field(default_factory=quat_identity)
    rest_position: Vec3 = field(default_factory=vec3)
    rotation: Quat = field(init=False)
    position: Vec3 = field(init=False)

    def __post_init__(self):
        self.rest_rotation = quat_normalize(np.asarray(self.rest_rotation, dtype=np.float64))
        self.rest_position = np.asarray(self.rest_position, dtype=np.float64)
        self.reset()

    def reset(self) -> None:
        """Return the live pose to the rest pose."""
        self.rotation = self.rest_rotation.copy()
        self.position = self.rest_position.copy()

    def set_rotation(self, q: Quat) -> None:
        self.rotation = quat_normalize(np.asarray(q, dtype=np.float64))

    def set_position(self, p: Vec3) -> None:
        self.position = np.array(p, dtype=np.float64)


class Skeleton:
    """A named-bone hierarchy.

    ``format_version`` declares the target convention generation;
    ``look_at_target`` is the gaze-target binding read by the consumer
    (``None`` when no gaze target is bound).
    """

    def __init__(
        self,
        bones: list[Bone],
        format_version: str = CURRENT_FORMAT_VERSION,
        name: str = "",
    ):
        self.name = name
        self.format_version = str(format_version)
        self.look_at_target: Optional[Vec3] = None
        self._bones: dict[str, Bone] = {}
        for bone in bones:
            if bone.name in self._bones:
                raise ValueError(f"Duplicate bone name: {bone.name}")
            self._bones[bone.name] = bone
        for bone in self._bones.values():
            if bone.parent is not None and bone.parent not in self._bones:
                raise ValueError(f"Bone {bone.name!r} has unknown parent {bone.parent!r}")
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        for bone in self._bones.values():
            seen = {bone.name}
            parent = bone.parent
            while parent is not None:
                if parent in seen:
                    raise ValueError(f"Cycle in bone hierarchy at {bone.name!r}")
                seen.add(parent)
                parent = self._bones[parent].parent

    # ── Queries ────────────────────────────────────────────────────

    @property
    def is_legacy(self) -> bool:
        return self.format_version == LEGACY_FORMAT_VERSION

    @property
    def bone_names(self) -> list[str]:
        return list(self._bones)

    def __contains__(self, name: str) -> bool:
        return name in self._bones

    def __iter__(self) -> Iterator[Bone]:
        return iter(self._bones.values())

    def __len__(self) -> int:
        return len(self._bones)

    def find(self, name: str) -> Optional[Bone]:
        """Return the named bone, or None if the skeleton has no such bone."""
        return self._bones.get(name)

    def parent_of(self, name: str) -> Optional[Bone]:
        bone = self._bones.get(name)
        if bone is None or bone.parent is None:
            return None
        return self._bones[bone.parent]

    def chain(self, name: str) -> list[Bone]:
        """Bones from the root down to (and including) ``name``."""
        result = []
        bone = self._bones.get(name)
        while bone is not None:
            result.append(bone)
            bone = self._bones[bone.parent] if bone.parent is not None else None
        result.reverse()
        return result

    # ── World transforms ───────────────────────────────────────────

    def _accumulate(self, name: str, rest: bool) -> tuple[Quat, Vec3]:
        rot = quat_identity()
        pos = vec3()
        for bone in self.chain(name):
            local_rot = bone.rest_rotation if rest else bone.rotation
            local_pos = bone.rest_position if rest else bone.position
            pos = pos + quat_rotate_vec3(rot, local_pos)
            rot = quat_normalize(quat_multiply(rot, local_rot))
        return rot, pos

    def world_rotation(self, name: str) -> Quat:
        return self._accumulate(name, rest=False)[0]

    def world_position(self, name: str) -> Vec3:
        return self._accumulate(name, rest=False)[1]

    def world_matrix(self, name: str) -> Mat4:
        rot, pos = self._accumulate(name, rest=False)
        return mat4_compose(pos, rot)

    def rest_world_rotation(self, name: str) -> Quat:
        return self._accumulate(name, rest=True)[0]

    def rest_world_position(self, name: str) -> Vec3:
        return self._accumulate(name, rest=True)[1]

    # ── Pose writes ────────────────────────────────────────────────

    def set_rotation(self, name: str, q: Quat) -> bool:
        """Write a bone's local rotation. Returns False if the bone is absent."""
        bone = self._bones.get(name)
        if bone is None:
            return False
        bone.set_rotation(q)
        return True

    def set_position(self, name: str, p: Vec3) -> bool:
        bone = self._bones.get(name)
        if bone is None:
            return False
        bone.set_position(p)
        return True

    def reset_pose(self) -> None:
        """Return every bone to its rest pose."""
        for bone in self._bones.values():
            bone.reset()

    def pose_snapshot(self) -> dict[str, dict[str, Any]]:
        """Per-bone local rotation, local position and world matrix."""
        return {
            name: {
                "rotation": bone.rotation.copy(),
                "position": bone.position.copy(),
                "world_matrix": self.world_matrix(name),
            }
            for name, bone in self._bones.items()
        }

    # ── Serialization ──────────────────────────────────────────────

    @classmethod
    def from_dict(cls, d: dict) -> "Skeleton":
        """Build a skeleton from ``{"bones": [...], "format_version": ...}``.

        Each bone dict has ``name``, optional ``parent``, ``position`` [x,y,z]
        and ``rotation`` [x,y,z,w] describing its rest pose.
        """
        bones = []
        for bd in d.get("bones", []):
            if "name" not in bd:
                raise ValueError("Bone entry without a name")
            bones.append(Bone(
                name=bd["name"],
                parent=bd.get("parent"),
                rest_rotation=np.array(bd.get("rotation", (0.0, 0.0, 0.0, 1.0)), dtype=np.float64),
                rest_position=np.array(bd.get("position", (0.0, 0.0, 0.0)), dtype=np.float64),
            ))
        return cls(
            bones,
            format_version=str(d.get("format_version", CURRENT_FORMAT_VERSION)),
            name=d.get("name", ""),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "format_version": self.format_version,
            "bones": [
                {
                    "name": b.name,
                    "parent": b.parent,
                    "position": b.rest_position.tolist(),
                    "rotation": b.rest_rotation.tolist(),
                }
                for b in self._bones.values()
            ],
        }
