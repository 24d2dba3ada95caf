"""Abstract collaborator interfaces: the player and the cache.

WHY: The controls never own playback or storage. Seeking, looping, and
rate changes belong to whatever player hosts the video; snapshots go to
whatever key-value cache the host provides. Abstract bases pin down the
exact surface the controls rely on, so the HTTP service, the tests, and
any real host can plug in their own implementations.

HOW: PlayerControl is a synchronous ABC (the player answers immediately).
CacheStore is an async ABC (storage round-trips are awaited). CacheResult
is the plain result envelope returned by both cache calls.

RULES:
- Implementations may raise; the controls catch and log every failure
- get_duration() returns <= 0 when the duration is not yet known
- get_cache() returns success=True with data=None for a missing key
- set_cache() with ttl_seconds=0 removes the key
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from cue_navigator.core.ir import SubtitleTrack


@dataclass
class CacheResult:
    """Outcome of one cache call.

    Attributes:
        success: False when the backend reported or raised an error.
        data: The stored value for reads (None when missing or on writes).
        error: Optional human-readable failure reason.
    """

    success: bool
    data: Any = None
    error: str | None = None


class PlayerControl(ABC):
    """The playback surface the controls drive.

    To plug in a player:
    1. Subclass PlayerControl
    2. Implement every abstract method against the host player
    3. Pass the instance to PlaybackControls (or the individual components)
    """

    @abstractmethod
    def get_current_time(self) -> float:
        """Playback cursor in seconds."""

    @abstractmethod
    def get_duration(self) -> float:
        """Video duration in seconds, or <= 0 when unknown."""

    @abstractmethod
    def seek(self, seconds: float) -> None:
        """Move the playback cursor."""

    @abstractmethod
    def create_segment_loop(self, start: float, end: float) -> None:
        """Start enforcing a loop over [start, end], replacing any existing loop."""

    @abstractmethod
    def stop_segment_loop(self) -> None:
        """Stop loop enforcement (no-op when no loop is active)."""

    @abstractmethod
    def get_playback_rate(self) -> float:
        """Current playback rate (1.0 is normal speed)."""

    @abstractmethod
    def set_playback_rate(self, rate: float) -> None:
        """Change the playback rate."""

    @abstractmethod
    def get_current_subtitle_track(self) -> SubtitleTrack | None:
        """The selected caption track, or None when captions are off or missing."""


class CacheStore(ABC):
    """Async key-value cache used for session snapshots."""

    @abstractmethod
    async def get_cache(self, key: str) -> CacheResult:
        """Read a key. Missing or expired keys yield success=True, data=None."""

    @abstractmethod
    async def set_cache(self, key: str, value: Any, ttl_seconds: int) -> CacheResult:
        """Write a key with a time-to-live in seconds (0 deletes)."""
