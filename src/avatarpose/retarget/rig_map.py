"""Immutable source-bone → target-bone name tables."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from avatarpose.core.config_loader import load_rig_map_config
from avatarpose.constants import DEFAULT_RIG_MAP


class RigMap(Mapping):
    """Fixed mapping from source rig bone names to target bone names.

    Read-only after construction. Lookups of unmapped bones return None
    through ``get`` so callers can drop those tracks.
    """

    def __init__(self, mapping: Mapping[str, str], name: str = ""):
        for src, dst in mapping.items():
            if not isinstance(src, str) or not isinstance(dst, str):
                raise ValueError(f"Rig map entries must be strings: {src!r} -> {dst!r}")
        self.name = name
        self._map = MappingProxyType(dict(mapping))

    @classmethod
    def from_config(cls, name: str = DEFAULT_RIG_MAP) -> "RigMap":
        """Load a rig map from config/rig_maps/<name>."""
        return cls(load_rig_map_config(name), name=name)

    @classmethod
    def identity(cls, bone_names: Iterable[str]) -> "RigMap":
        """Map every bone to itself (same naming on both rigs)."""
        return cls({n: n for n in bone_names}, name="identity")

    def __getitem__(self, source_bone: str) -> str:
        return self._map[source_bone]

    def __iter__(self) -> Iterator[str]:
        return iter(self._map)

    def __len__(self) -> int:
        return len(self._map)

    def __repr__(self) -> str:
        return f"RigMap({self.name!r}, {len(self)} bones)"
