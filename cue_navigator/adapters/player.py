"""Headless PlayerControl: a cursor, a rate, a loop window, and a caption track.

WHY: The practice-session service has no real video element, and tests
need a player whose behaviour is fully predictable. VirtualPlayer keeps
the same state a real player would and enforces segment loops when time
is advanced.

HOW: Plain attributes for cursor, duration, rate, and the active loop.
advance(seconds) moves the cursor by seconds * rate; when a loop is
active and the cursor crosses its end, it wraps back to the loop start.

RULES:
- seek() clamps to [0, duration] (duration <= 0 means unknown, no upper bound)
- create_segment_loop() replaces any existing loop and does not seek
- set_playback_rate() rejects non-positive rates with ValueError
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from cue_navigator.controls.base import PlayerControl
from cue_navigator.core.ir import SubtitleTrack

logger = logging.getLogger(__name__)


class VirtualPlayer(PlayerControl):
    def __init__(
        self,
        duration: float = 0.0,
        track: Optional[SubtitleTrack] = None,
        current_time: float = 0.0,
        rate: float = 1.0,
    ) -> None:
        self.duration = duration
        self.track = track
        self.current_time = current_time
        self.rate = rate
        self.loop: Optional[Tuple[float, float]] = None
        self.loop_wraps = 0

    def get_current_time(self) -> float:
        return self.current_time

    def get_duration(self) -> float:
        return self.duration

    def seek(self, seconds: float) -> None:
        seconds = max(0.0, seconds)
        if self.duration > 0:
            seconds = min(seconds, self.duration)
        self.current_time = seconds

    def create_segment_loop(self, start: float, end: float) -> None:
        if end <= start:
            raise ValueError("Loop end must be after start")
        self.loop = (start, end)

    def stop_segment_loop(self) -> None:
        self.loop = None

    def get_playback_rate(self) -> float:
        return self.rate

    def set_playback_rate(self, rate: float) -> None:
        if rate <= 0:
            raise ValueError("Playback rate must be positive")
        self.rate = rate

    def get_current_subtitle_track(self) -> Optional[SubtitleTrack]:
        return self.track

    def advance(self, seconds: float) -> float:
        """Play forward for `seconds` of wall time; returns the new cursor."""
        target = self.current_time + seconds * self.rate
        if self.loop is not None:
            start, end = self.loop
            if self.current_time <= end:
                length = end - start
                while target > end:
                    target -= length
                    self.loop_wraps += 1
        self.seek(target)
        return self.current_time
