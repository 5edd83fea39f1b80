"""Character session: one skeleton, its clip cache and every per-frame system.

``advance(dt)`` is the single per-frame entry point. Call order:
  1. Reset the skeleton's live pose to rest
  2. Playback (clip sampling and cross-fade) writes the animated pose
  3. Limb-spacing overlay (multiplies onto the upper arms)
  4. Gaze overlay (eye target, head/neck overwrite)
  5. Expression scheduler (blink, emotion, scripted) rebuilds the weight map

The consumer then finalizes the skeleton and reads back bone transforms and
expression weights.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from avatarpose.animation.auto_blink import BlinkConfig
from avatarpose.animation.clip_library import ClipCache, LoadResult
from avatarpose.animation.emotions import EmotionConfig
from avatarpose.animation.expressions import ExpressionScheduler
from avatarpose.animation.playback import PlaybackConfig, PlaybackStateMachine
from avatarpose.animation.scripted_expressions import ScriptedConfig
from avatarpose.body.gaze import GazeConfig, GazeOverlay
from avatarpose.body.limb_spacing import LimbSpacingConfig, LimbSpacingOverlay
from avatarpose.constants import DEFAULT_SOURCE_CLIP
from avatarpose.coordination.loading_pipeline import AssetSource, ClipLoadingPipeline
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import Vec3
from avatarpose.core.skeleton import Skeleton
from avatarpose.retarget.retargeter import Retargeter
from avatarpose.retarget.rig_map import RigMap

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """Bundle of every component config; defaults need no config files."""
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    limb_spacing: LimbSpacingConfig = field(default_factory=LimbSpacingConfig)
    gaze: GazeConfig = field(default_factory=GazeConfig)
    blink: BlinkConfig = field(default_factory=BlinkConfig)
    emotion: EmotionConfig = field(default_factory=EmotionConfig)
    scripted: ScriptedConfig = field(default_factory=ScriptedConfig.defaults)

    @classmethod
    def from_config(cls) -> "SessionConfig":
        """Load every section from the packaged JSON config files."""
        return cls(
            playback=PlaybackConfig.from_config(),
            limb_spacing=LimbSpacingConfig.from_config(),
            gaze=GazeConfig.from_config(),
            blink=BlinkConfig.from_config(),
            emotion=EmotionConfig.from_config(),
            scripted=ScriptedConfig.from_config(),
        )


class CharacterSession:
    """Explicit per-character context owning the whole pose pipeline."""

    def __init__(
        self,
        skeleton: Skeleton,
        rig_map: Optional[RigMap] = None,
        config: Optional[SessionConfig] = None,
        event_bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self.skeleton = skeleton
        self.config = config or SessionConfig()
        self.event_bus = event_bus or EventBus()
        self.rng = rng or random.Random()
        self.time = 0.0
        self.frame = 0

        self.clips = ClipCache()
        self.retargeter = Retargeter(skeleton, rig_map if rig_map is not None else RigMap.from_config())
        self.loader = ClipLoadingPipeline(self.retargeter, self.clips, self.event_bus)

        self.playback = PlaybackStateMachine(
            skeleton, self.clips, self.event_bus, self.config.playback, self.rng,
        )
        self.limb_spacing = LimbSpacingOverlay(skeleton, self.config.limb_spacing)
        self.gaze = GazeOverlay(skeleton, self.config.gaze, self.event_bus)
        self.expressions = ExpressionScheduler(
            self.config.blink, self.config.emotion, self.config.scripted,
            self.event_bus, self.rng,
        )

        # Limb spacing switches itself on once after the first animated pose,
        # unless the caller has already chosen explicitly.
        self._limb_auto_enable = True

    # ── Loading ───────────────────────────────────────────────────

    def load_clip(
        self, name: str, source: AssetSource, clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
    ) -> LoadResult:
        return self.loader.load_clip(name, source, clip_name)

    def load_clips(
        self,
        sources: Mapping[str, AssetSource],
        clip_name: Optional[str] = DEFAULT_SOURCE_CLIP,
        autoplay: bool = True,
    ) -> list[LoadResult]:
        """Load a batch, then start the autoplay clip if nothing is playing."""
        results = self.loader.load_all(sources, clip_name)
        auto = self.config.playback.autoplay_clip
        if autoplay and auto and self.playback.current_clip_name is None and auto in self.clips:
            self.play(auto, loop=True, fade=0.0)
        return results

    # ── Playback ──────────────────────────────────────────────────

    def play(self, name: str, loop: bool = False, fade: Optional[float] = None) -> bool:
        return self.playback.play(name, loop, fade)

    def stop(self) -> None:
        self.playback.stop()

    def set_time_scale(self, scale: float) -> None:
        self.playback.set_time_scale(scale)

    def start_idle_cycle(self, pool: Optional[list[str]] = None, fade: Optional[float] = None) -> bool:
        return self.playback.start_idle_cycle(pool, fade)

    def stop_idle_cycle(self) -> None:
        self.playback.stop_idle_cycle()

    # ── Overlays ──────────────────────────────────────────────────

    def set_limb_spacing(self, value: float, immediate: bool = False) -> None:
        self.limb_spacing.set_offset(value, immediate)

    def set_limb_overlay_enabled(self, enabled: bool) -> None:
        self._limb_auto_enable = False
        self.limb_spacing.set_enabled(enabled)

    def set_gaze_target(self, position: Vec3) -> None:
        self.gaze.set_target(position)

    def set_gaze_enabled(self, enabled: bool) -> None:
        self.gaze.set_enabled(enabled)

    def set_gaze_intensities(self, eye: Optional[float] = None, head: Optional[float] = None) -> None:
        self.gaze.set_intensities(eye, head)

    def set_gaze_smoothing(self, value: float) -> None:
        self.gaze.set_smoothing(value)

    def set_gaze_vertical_offset(self, value: float) -> None:
        self.gaze.set_vertical_offset(value)

    def look_at_point(self, point: Vec3) -> None:
        self.gaze.look_at_point(point)

    # ── Expressions ───────────────────────────────────────────────

    def set_emotion(self, name: str, weight: float = 1.0, immediate: bool = False) -> bool:
        return self.expressions.set_emotion(name, weight, immediate)

    def clear_emotion(self) -> None:
        self.expressions.clear_emotion()

    def set_expression(
        self, name: str, value: float,
        duration: Optional[float] = None, easing: Optional[str] = None,
    ) -> bool:
        return self.expressions.set_expression(name, value, duration, easing)

    def trigger_scripted_expression(self, name: str, params: Optional[dict[str, Any]] = None) -> bool:
        return self.expressions.trigger(name, **(params or {}))

    def set_blink_config(self, **kwargs: float) -> None:
        self.expressions.set_blink_config(**kwargs)

    # ── Per-frame ─────────────────────────────────────────────────

    def advance(self, dt: float) -> dict[str, float]:
        """Run one frame and return the expression weight map."""
        dt = max(float(dt), 0.0)
        self.time += dt
        self.frame += 1

        self.skeleton.reset_pose()
        self.playback.update(dt)
        self.limb_spacing.update(dt)
        self.gaze.update(dt)
        weights = self.expressions.update(self.time, dt)

        if self._limb_auto_enable and self.playback.current_clip_name is not None:
            self._limb_auto_enable = False
            self.limb_spacing.set_enabled(True)
            logger.debug("Limb spacing enabled after first animated frame")

        self.event_bus.publish(EventType.FRAME_UPDATE, dt=dt, time=self.time)
        return weights

    # ── Read-back ─────────────────────────────────────────────────

    def get_expression_weights(self) -> dict[str, float]:
        return self.expressions.get_weights()

    def get_bone_transforms(self) -> dict[str, dict[str, Any]]:
        return self.skeleton.pose_snapshot()
