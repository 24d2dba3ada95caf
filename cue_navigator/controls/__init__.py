"""Playback controls: loops, session persistence, events, and the façade.

WHY: The core package answers "where should playback go"; this package
acts on the answer against a real player and cache.

HOW: base.py defines the collaborator ABCs, events.py the typed event
channel, loop.py the IN/OUT loop machine, session.py snapshot
persistence, and controller.py the PlaybackControls façade.
"""

from cue_navigator.controls.base import CacheResult, CacheStore, PlayerControl
from cue_navigator.controls.controller import PlaybackControls
from cue_navigator.controls.events import EventChannel
from cue_navigator.controls.loop import LoopController, LoopResult, LoopState
from cue_navigator.controls.session import SessionStateStore

__all__ = [
    "CacheResult",
    "CacheStore",
    "EventChannel",
    "LoopController",
    "LoopResult",
    "LoopState",
    "PlaybackControls",
    "PlayerControl",
    "SessionStateStore",
]
