"""Playback/blending state machine driving the skeletal pose.

States: Idle (no clip), Playing (one clip owns the pose) and CrossFading
(outgoing clips and the incoming clip blended per bone by weight).
Optional idle cycling picks a new clip from a pool after a random dwell
and cross-fades to it.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from avatarpose.animation.clip import AnimationClip
from avatarpose.animation.clip_library import ClipCache
from avatarpose.constants import (
    DEFAULT_FADE_DURATION, IDLE_DWELL_MAX, IDLE_DWELL_MIN, TIME_SCALE_MAX,
)
from avatarpose.core.clock import FrameTimer
from avatarpose.core.config_loader import load_config_section
from avatarpose.core.events import EventBus, EventType
from avatarpose.core.math_utils import clamp, lerp_vec3, quat_slerp
from avatarpose.core.skeleton import Skeleton
from avatarpose.core.state import ClipAction, PlaybackMode, PlaybackState

logger = logging.getLogger(__name__)

DEFAULT_IDLE_POOL = ["idle", "idle2", "idle_happy", "idle_happy2", "looking"]

# Accumulated frame deltas may land a hair short of the fade duration
_FADE_EPSILON = 1e-9


@dataclass
class PlaybackConfig:
    default_fade: float = DEFAULT_FADE_DURATION
    time_scale: float = 1.0
    autoplay_clip: Optional[str] = "idle"
    idle_pool: list[str] = field(default_factory=lambda: list(DEFAULT_IDLE_POOL))
    dwell_min: float = IDLE_DWELL_MIN
    dwell_max: float = IDLE_DWELL_MAX
    idle_fade: float = DEFAULT_FADE_DURATION

    @classmethod
    def from_config(cls, name: str = "playback.json") -> "PlaybackConfig":
        """Load playback defaults; missing keys keep the built-in values."""
        playback = load_config_section(name, "playback")
        idle = load_config_section(name, "idle_cycle")
        d = cls()
        return cls(
            default_fade=float(playback.get("default_fade", d.default_fade)),
            time_scale=float(playback.get("time_scale", d.time_scale)),
            autoplay_clip=playback.get("autoplay_clip", d.autoplay_clip),
            idle_pool=list(idle.get("pool", d.idle_pool)),
            dwell_min=float(idle.get("dwell_min", d.dwell_min)),
            dwell_max=float(idle.get("dwell_max", d.dwell_max)),
            idle_fade=float(idle.get("fade", d.idle_fade)),
        )


class PlaybackStateMachine:
    """Owns the single evaluated skeletal pose per frame.

    Reads clips from a ClipCache and writes local rotations (and positions
    where a clip has position tracks) into the target skeleton.
    """

    def __init__(
        self,
        skeleton: Skeleton,
        clips: ClipCache,
        bus: Optional[EventBus] = None,
        config: Optional[PlaybackConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.skeleton = skeleton
        self.clips = clips
        self.bus = bus or EventBus()
        self.config = config or PlaybackConfig()
        self.rng = rng or random.Random()
        self.state = PlaybackState(time_scale=self.config.time_scale)

        self._idle_timer = FrameTimer()
        self._idle_pool: Optional[list[str]] = None
        self._idle_fade = self.config.idle_fade

    # ── Queries ───────────────────────────────────────────────────

    @property
    def mode(self) -> PlaybackMode:
        return self.state.mode

    @property
    def current_clip_name(self) -> Optional[str]:
        return self.state.active.name if self.state.active is not None else None

    @property
    def idle_cycling(self) -> bool:
        return self._idle_pool is not None

    @property
    def idle_timer(self) -> FrameTimer:
        return self._idle_timer

    def weights(self) -> dict[str, float]:
        """Blend weight per clip currently being evaluated."""
        st = self.state
        result: dict[str, float] = {}
        for action in st.fading_out:
            result[action.name] = result.get(action.name, 0.0) + action.weight
        if st.active is not None:
            result[st.active.name] = result.get(st.active.name, 0.0) + st.active.weight
        return result

    # ── Control ───────────────────────────────────────────────────

    def play(self, name: str, loop: bool = False, fade: Optional[float] = None) -> bool:
        """Start ``name``; cross-fade over ``fade`` seconds if a clip is playing.

        Unknown names are logged and ignored. Playing a clip outside the idle
        pool cancels idle cycling.
        """
        clip = self.clips.get(name)
        if clip is None:
            logger.warning("Cannot play %s: clip not loaded", name)
            return False
        if self._idle_pool is not None and name not in self._idle_pool:
            self.stop_idle_cycle()
        self._start(clip, loop, self.config.default_fade if fade is None else fade)
        return True

    def stop(self) -> None:
        """Drop all clips and cancel any idle-cycle dwell timer."""
        self.stop_idle_cycle()
        had_clip = self.state.active is not None
        self.state.active = None
        self.state.fading_out = []
        self.state.fade_elapsed = 0.0
        self.state.fade_duration = 0.0
        if had_clip:
            logger.info("Playback stopped")
            self.bus.publish(EventType.ANIM_STOPPED)

    def set_time_scale(self, scale: float) -> None:
        self.state.time_scale = clamp(float(scale), 0.0, TIME_SCALE_MAX)

    def _start(self, clip: AnimationClip, loop: bool, fade: float) -> None:
        st = self.state
        if st.active is not None and st.active.clip is clip:
            st.active.loop = loop
            if loop:
                st.active.finished = False
            return

        incoming = ClipAction(clip=clip, loop=loop)
        if st.active is None or fade <= 0.0:
            incoming.weight = 1.0
            st.active = incoming
            st.fading_out = []
            st.fade_elapsed = 0.0
            st.fade_duration = 0.0
        else:
            # Outgoing clips restart their ramps from the weights they had reached
            outgoing = [a for a in (*st.fading_out, st.active) if a.weight > 0.0]
            for action in outgoing:
                action.fade_from = action.weight
            incoming.weight = 0.0
            st.fading_out = outgoing
            st.active = incoming
            st.fade_elapsed = 0.0
            st.fade_duration = float(fade)

        logger.info("Playing %s (loop=%s, fade=%.2fs)", clip.name, loop, max(fade, 0.0))
        self.bus.publish(EventType.ANIM_PLAY, name=clip.name, loop=loop, fade=max(fade, 0.0))

    # ── Idle cycling ──────────────────────────────────────────────

    def start_idle_cycle(
        self, pool: Optional[list[str]] = None, fade: Optional[float] = None,
    ) -> bool:
        """Begin cycling through the loaded members of ``pool``."""
        requested = list(pool) if pool is not None else list(self.config.idle_pool)
        available = [n for n in requested if n in self.clips]
        missing = [n for n in requested if n not in self.clips]
        if missing:
            logger.warning("Idle pool clips not loaded: %s", ", ".join(missing))
        if not available:
            logger.warning("Cannot start idle cycle: no pool clips loaded")
            return False

        self._idle_pool = available
        self._idle_fade = self.config.idle_fade if fade is None else fade
        self.bus.publish(EventType.IDLE_CYCLE_STARTED, pool=list(available))

        if self.current_clip_name in available:
            self.state.active.loop = True
            self._schedule_dwell()
        else:
            self._advance_idle()
        return True

    def stop_idle_cycle(self) -> None:
        self._idle_timer.cancel()
        if self._idle_pool is not None:
            self._idle_pool = None
            logger.info("Idle cycle stopped")
            self.bus.publish(EventType.IDLE_CYCLE_STOPPED)

    def _schedule_dwell(self) -> float:
        dwell = self.rng.uniform(self.config.dwell_min, self.config.dwell_max)
        self._idle_timer.schedule(dwell, self._advance_idle)
        return dwell

    def _advance_idle(self) -> None:
        pool = self._idle_pool
        if pool is None:
            return
        current = self.current_clip_name
        choices = [n for n in pool if n != current] if len(pool) > 1 else pool
        name = self.rng.choice(choices)
        clip = self.clips.get(name)
        if clip is None:
            logger.warning("Idle clip %s disappeared from cache", name)
            self.stop_idle_cycle()
            return
        fade = self._idle_fade if self.state.active is not None else 0.0
        self._start(clip, loop=True, fade=fade)
        dwell = self._schedule_dwell()
        logger.info("Idle cycle -> %s for %.1fs", name, dwell)
        self.bus.publish(EventType.IDLE_CYCLE_ADVANCED, name=name, dwell=dwell)

    # ── Per-frame update ──────────────────────────────────────────

    def update(self, dt: float) -> None:
        """Advance clip times and fade weights, then write the pose."""
        st = self.state
        if st.active is not None:
            scaled = dt * st.time_scale
            for action in st.fading_out:
                self._advance_action(action, scaled, notify=False)
            self._advance_action(st.active, scaled, notify=True)
            self._advance_fade(scaled)
            self._write_pose()

        self._idle_timer.tick(dt)

    def _advance_action(self, action: ClipAction, dt: float, notify: bool) -> None:
        if action.finished:
            return
        duration = action.clip.duration
        action.time += dt
        if action.loop:
            action.time = action.time % duration if duration > 0 else 0.0
        elif action.time >= duration:
            action.time = duration
            action.finished = True
            if notify:
                logger.debug("Clip %s finished", action.name)
                self.bus.publish(EventType.ANIM_FINISHED, name=action.name)

    def _advance_fade(self, dt: float) -> None:
        st = self.state
        if not st.fading_out:
            return
        st.fade_elapsed += dt
        if st.fade_elapsed >= st.fade_duration - _FADE_EPSILON:
            st.fading_out = []
            st.active.weight = 1.0
            st.fade_elapsed = st.fade_duration
            self.bus.publish(EventType.ANIM_CROSSFADE_COMPLETE, name=st.active.name)
            return
        w = st.fade_elapsed / st.fade_duration
        st.active.weight = w
        for action in st.fading_out:
            action.weight = action.fade_from * (1.0 - w)

    def _write_pose(self) -> None:
        st = self.state
        active = st.active
        rotations, positions = active.clip.sample_pose(active.time)

        if st.fading_out:
            layers = [
                (*action.clip.sample_pose(action.time), action.weight)
                for action in st.fading_out
            ]
            layers.append((rotations, positions, active.weight))
            rotations, positions = self._blend(layers)

        for bone, q in rotations.items():
            self.skeleton.set_rotation(bone, q)
        for bone, p in positions.items():
            self.skeleton.set_position(bone, p)

    def _blend(self, layers):
        """Weighted per-bone blend of sampled poses.

        Each layer is accumulated against the running weight total, so two
        layers reduce to a plain slerp. A bone missing from a layer
        contributes its rest pose.
        """
        rot_bones = dict.fromkeys(b for rot, _, _ in layers for b in rot)
        pos_bones = dict.fromkeys(b for _, pos, _ in layers for b in pos)

        rotations = {}
        for bone in rot_bones:
            node = self.skeleton.find(bone)
            if node is None:
                continue
            result, total = None, 0.0
            for rot, _, w in layers:
                q = np.asarray(rot.get(bone, node.rest_rotation))
                total += w
                if result is None:
                    result = q
                elif total > 0.0:
                    result = quat_slerp(result, q, w / total)
            rotations[bone] = result

        positions = {}
        for bone in pos_bones:
            node = self.skeleton.find(bone)
            if node is None:
                continue
            result, total = None, 0.0
            for _, pos, w in layers:
                p = np.asarray(pos.get(bone, node.rest_position))
                total += w
                if result is None:
                    result = p
                elif total > 0.0:
                    result = lerp_vec3(result, p, w / total)
            positions[bone] = result
        return rotations, positions
