"""IN/OUT marker loop state machine with quick ±N second loops.

WHY: Practising a phrase means hearing it again and again. Learners mark
an IN point and an OUT point while the video plays, then loop between
them, or hit one key for a quick loop around "right here". The player
enforces the loop during playback, but it only does so from inside the
window, so the cursor has to be put there the moment a loop starts.

HOW: LoopController tracks four states:
  IDLE → MARKED_IN → MARKED_OUT → LOOPING → IDLE
set_mark_in / set_mark_out capture the cursor; apply_marker_loop orders
the pair, validates the length, asks the player to loop, and seeks to the
loop start when the cursor sits outside the window. toggle_loop and
click_marker_indicator drive the same machine from single controls.

RULES:
- IN can be set from any state (re-arms, clears OUT); OUT requires IN
- While a loop is active the state stays LOOPING; new markers only take
  effect on the next apply
- Applying the window that is already looping is a no-op (no event)
- Loop bounds are min/max of the markers, clamped to [0, duration]
- Loops shorter than the minimum (0.1s) are rejected; state is unchanged
- Immediately after a loop is applied, the cursor is inside it
- Player failures and invalid markers come back as LoopResult(ok=False);
  nothing here raises
- loop_toggle events fire on every applied or removed loop
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from cue_navigator.config import DEFAULT_THRESHOLDS, Thresholds
from cue_navigator.controls.base import PlayerControl
from cue_navigator.controls.events import EventChannel, LoopToggleEvent, LoopValue
from cue_navigator.core.ir import LoopMarkers, LoopSegment
from cue_navigator.core.navigation import clamp_time

logger = logging.getLogger(__name__)


class LoopState(str, enum.Enum):
    IDLE = "idle"
    MARKED_IN = "marked_in"
    MARKED_OUT = "marked_out"
    LOOPING = "looping"


@dataclass
class LoopResult:
    """Outcome of one loop operation.

    Attributes:
        ok: False for rejections and player failures.
        message: Short user-facing notice ("Loop too short", "IN set at 0:10").
        loop: The active loop after the operation, if any.
        state: Controller state after the operation.
    """

    ok: bool
    message: str
    loop: Optional[LoopSegment] = None
    state: LoopState = LoopState.IDLE


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    total = int(max(0.0, seconds))
    return "{}:{:02d}".format(total // 60, total % 60)


class LoopController:
    """Marker-based loop state machine over a PlayerControl.

    WHY: The marker workflow, the quick loop, and the click cycle all share
    one invariant (the cursor is inside an applied loop) and one failure
    policy (reject, never throw), so they live in one place.

    HOW: Holds the markers, the active LoopSegment, and the state. Every
    player call is wrapped; a failing call leaves markers and loop as they
    were.

    RULES:
    - markers returns a copy; mutate only through the public operations
    - clock is injectable for deterministic loop ids in tests
    """

    def __init__(
        self,
        player: PlayerControl,
        events: EventChannel | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._player = player
        self._events = events
        self._thresholds = thresholds
        self._clock = clock
        self._state = LoopState.IDLE
        self._markers = LoopMarkers()
        self._loop: LoopSegment | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def markers(self) -> LoopMarkers:
        return LoopMarkers(self._markers.in_time, self._markers.out_time)

    @property
    def current_loop(self) -> LoopSegment | None:
        return self._loop

    @property
    def is_looping(self) -> bool:
        return self._loop is not None

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------

    def set_mark_in(self) -> LoopResult:
        position = self._read_position()
        if position is None:
            return self._reject("Could not read playback position")
        current, duration = position

        self._markers.in_time = clamp_time(current, duration)
        self._markers.out_time = None
        self._state = self._marker_state(LoopState.MARKED_IN)
        logger.info("Loop IN marker set at %.2fs", self._markers.in_time)
        return self._accept("IN set at {}".format(format_time(self._markers.in_time)))

    def set_mark_out(self) -> LoopResult:
        if self._markers.in_time is None:
            return self._reject("Set the IN marker first")
        position = self._read_position()
        if position is None:
            return self._reject("Could not read playback position")
        current, duration = position

        self._markers.out_time = clamp_time(current, duration)
        self._state = self._marker_state(LoopState.MARKED_OUT)
        logger.info("Loop OUT marker set at %.2fs", self._markers.out_time)
        return self._accept("OUT set at {}".format(format_time(self._markers.out_time)))

    def apply_marker_loop(self) -> LoopResult:
        """Turn the IN/OUT pair into an active loop."""
        if not self._markers.is_complete:
            return self._reject("Set both IN and OUT markers first")
        start = min(self._markers.in_time, self._markers.out_time)
        end = max(self._markers.in_time, self._markers.out_time)
        return self._apply(start, end)

    def click_marker_indicator(self) -> LoopResult:
        """Single-control cycle: IN, then OUT, then clear everything."""
        if self._state is LoopState.IDLE:
            return self.set_mark_in()
        if self._state is LoopState.MARKED_IN:
            return self.set_mark_out()
        return self.clear_loop()

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def toggle_loop(self) -> LoopResult:
        """Clear an active loop, apply complete markers, or start a quick loop."""
        if self._loop is not None:
            return self.clear_loop()
        if self._markers.is_complete:
            return self.apply_marker_loop()
        if self._markers.in_time is not None:
            return self._reject("Set the OUT marker first")
        return self.create_custom_loop()

    def create_custom_loop(
        self,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> LoopResult:
        """Loop an explicit window; missing bounds default to ±N seconds around the cursor."""
        position = self._read_position()
        if position is None:
            return self._reject("Could not read playback position")
        current, duration = position

        half = self._thresholds.quick_loop_half_s
        start = clamp_time(current - half if start_time is None else start_time, duration)
        end = clamp_time(current + half if end_time is None else end_time, duration)
        if end <= start:
            logger.warning("Invalid loop window [%.2f, %.2f]", start, end)
            return self._reject("Invalid loop window")
        return self._apply(start, end)

    def clear_loop(self) -> LoopResult:
        """Stop enforcement, drop the loop and the markers, return to IDLE."""
        had_loop = self._loop is not None
        try:
            self._player.stop_segment_loop()
        except Exception as exc:
            logger.error("Failed to stop segment loop: %s", exc)
            return self._reject("Failed to remove loop")

        self._loop = None
        self._markers.clear()
        self._state = LoopState.IDLE
        if had_loop:
            self._publish(None)
            logger.info("Loop removed")
            return self._accept("Loop removed")
        return self._accept("Markers cleared")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, start: float, end: float) -> LoopResult:
        if self._loop is not None and (self._loop.start_time, self._loop.end_time) == (start, end):
            return self._accept("Loop already active: {}".format(self._loop.title))

        if end - start < self._thresholds.min_loop_s:
            logger.info("Rejected loop [%.3f, %.3f]: shorter than %.2fs", start, end, self._thresholds.min_loop_s)
            return self._reject("Loop too short")

        try:
            self._player.create_segment_loop(start, end)
        except Exception as exc:
            logger.error("Failed to create segment loop [%.2f, %.2f]: %s", start, end, exc)
            return self._reject("Failed to create loop")

        segment = LoopSegment(
            id="loop_{}".format(int(self._clock() * 1000)),
            start_time=start,
            end_time=end,
            is_active=True,
            title="Loop {} - {}".format(format_time(start), format_time(end)),
        )

        try:
            if not segment.contains(self._player.get_current_time()):
                self._player.seek(start)
        except Exception as exc:
            logger.error("Failed to move cursor into loop [%.2f, %.2f]: %s", start, end, exc)
            try:
                self._player.stop_segment_loop()
            except Exception as stop_exc:
                logger.error("Failed to roll back segment loop: %s", stop_exc)
            return self._reject("Failed to create loop")

        self._loop = segment
        self._state = LoopState.LOOPING
        self._publish(segment)
        logger.info("Loop applied: [%.2f, %.2f]", start, end)
        return self._accept("Loop created: {}".format(segment.title))

    def _marker_state(self, marked: LoopState) -> LoopState:
        return LoopState.LOOPING if self._loop is not None else marked

    def _read_position(self) -> Optional[Tuple[float, float]]:
        try:
            return self._player.get_current_time(), self._player.get_duration()
        except Exception as exc:
            logger.error("Failed to read player position: %s", exc)
            return None

    def _publish(self, segment: LoopSegment | None) -> None:
        if self._events is None:
            return
        value = LoopValue.from_segment(segment) if segment is not None else None
        self._events.publish(LoopToggleEvent(value=value))

    def _accept(self, message: str) -> LoopResult:
        return LoopResult(ok=True, message=message, loop=self._loop, state=self._state)

    def _reject(self, message: str) -> LoopResult:
        return LoopResult(ok=False, message=message, loop=self._loop, state=self._state)
