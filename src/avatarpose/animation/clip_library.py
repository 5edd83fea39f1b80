"""Clip cache: clip name to retargeted AnimationClip."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from avatarpose.animation.clip import AnimationClip

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of loading one clip: ``ok`` with the clip, or the error text."""
    name: str
    ok: bool
    clip: Optional[AnimationClip] = None
    error: str = ""


class ClipCache:
    """Name → AnimationClip mapping shared read-only by playback.

    ``put`` is the commit point for a load; a second load under the same
    name replaces the first.
    """

    def __init__(self):
        self._clips: dict[str, AnimationClip] = {}

    def put(self, name: str, clip: AnimationClip) -> None:
        if name in self._clips:
            logger.info("Replacing cached clip %s", name)
        self._clips[name] = clip

    def get(self, name: str) -> Optional[AnimationClip]:
        """Return the cached clip, or None if nothing is loaded under ``name``."""
        return self._clips.get(name)

    def remove(self, name: str) -> bool:
        return self._clips.pop(name, None) is not None

    @property
    def names(self) -> list[str]:
        return list(self._clips)

    def __contains__(self, name: str) -> bool:
        return name in self._clips

    def __iter__(self) -> Iterator[str]:
        return iter(self._clips)

    def __len__(self) -> int:
        return len(self._clips)
