"""Per-clip retarget-and-cache loading with progress reporting."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Optional, Union

from avatarpose.animation.clip_library import ClipCache, LoadResult
from avatarpose.constants import DEFAULT_SOURCE_CLIP
from avatarpose.core.events import EventBus, EventType
from avatarpose.retarget.motion_asset import MotionAsset, load_motion_asset
from avatarpose.retarget.retargeter import ClipLoadError, Retargeter

logger = logging.getLogger(__name__)

AssetSource = Union[MotionAsset, Path, str]


class ClipLoadingPipeline:
    """Retargets motion assets into the clip cache, one clip at a time.

    Every clip is loaded independently: a failure is logged, published and
    returned as a failed LoadResult, and the remaining clips still load.
    The cache write is the commit point for each name.
    """

    def __init__(self, retargeter: Retargeter, cache: ClipCache, event_bus: EventBus):
        self.retargeter = retargeter
        self.cache = cache
        self.event_bus = event_bus
        self.failures: dict[str, str] = {}

    def load_clip(
        self,
        name: str,
        source: AssetSource,
        clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
    ) -> LoadResult:
        """Retarget ``clip_name`` from ``source`` and cache it as ``name``."""
        try:
            asset = source if isinstance(source, MotionAsset) else load_motion_asset(Path(source))
            clip = self.retargeter.retarget(asset, name, clip_name)
        except (ClipLoadError, ValueError, KeyError, OSError) as e:
            return self._fail(name, e)

        self.cache.put(name, clip)
        self.failures.pop(name, None)
        logger.info("Loaded clip %s: %d tracks, %.2fs", name, len(clip.tracks), clip.duration)
        self.event_bus.publish(
            EventType.CLIP_LOADED,
            name=name, track_count=len(clip.tracks), duration=clip.duration,
        )
        return LoadResult(name=name, ok=True, clip=clip)

    def load_all(
        self,
        sources: Mapping[str, AssetSource],
        clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
    ) -> list[LoadResult]:
        """Load every ``name → source`` entry, reporting progress after each."""
        results = []
        total = len(sources)
        for i, (name, source) in enumerate(sources.items(), start=1):
            results.append(self.load_clip(name, source, clip_name))
            self.event_bus.publish(EventType.LOADING_PROGRESS, progress=i / total, name=name)
        ok = sum(1 for r in results if r.ok)
        logger.info("Loaded %d/%d clips", ok, total)
        return results

    def _fail(self, name: str, error: Exception) -> LoadResult:
        message = str(error) if not isinstance(error, KeyError) else f"missing field {error}"
        logger.warning("Failed to load clip %s: %s", name, message)
        self.failures[name] = message
        self.event_bus.publish(EventType.CLIP_LOAD_FAILED, name=name, error=message)
        return LoadResult(name=name, ok=False, error=message)
