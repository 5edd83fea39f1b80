"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Clip loading
    CLIP_LOADED = auto()          # data: name (str), track_count (int), duration (float)
    CLIP_LOAD_FAILED = auto()     # data: name (str), error (str)
    LOADING_PROGRESS = auto()     # data: progress (0-1), name (str)

    # Playback
    ANIM_PLAY = auto()                 # data: name (str), loop (bool), fade (float)
    ANIM_CROSSFADE_COMPLETE = auto()   # data: name (str)
    ANIM_FINISHED = auto()             # data: name (str); non-looping clip reached its end
    ANIM_STOPPED = auto()

    # Idle cycling
    IDLE_CYCLE_STARTED = auto()   # data: pool (list[str])
    IDLE_CYCLE_ADVANCED = auto()  # data: name (str), dwell (float)
    IDLE_CYCLE_STOPPED = auto()

    # Expressions
    EMOTION_CHANGED = auto()        # data: name (str | None)
    EXPRESSION_TRIGGERED = auto()   # data: name (str)

    # Gaze
    GAZE_RELEASED = auto()

    # Frame events
    FRAME_UPDATE = auto()         # data: dt (float), time (float)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        for handler in list(self._handlers[event_type]):
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
