"""PlaybackControls: one façade over navigation, loops, speed, and session state.

WHY: A host (the HTTP service, a test, a real player integration) wants a
single object to call "next sentence", "toggle loop", or "slower" on. The
individual components stay small and pure; this class wires them to one
player, one cache, and one event channel, and turns their results into
seeks, events, and notices.

HOW: PlaybackControls owns a SentenceSegmenter, a CueGroupCollapser, a
NavigationResolver, a LoopController, and a SessionStateStore. The track
is read from the player on initialize()/refresh_track(); navigation
results are applied with player.seek() and published as sentence_nav
events; speed and vocabulary changes are mirrored into the session state.

RULES:
- No public operation raises; failures return None / False and notify
- Every successful navigation seeks and emits exactly one sentence_nav
- Speed is clamped to [0.25, 2.0]; every accepted change is counted
- A restored session reapplies speed and vocabulary mode, never a loop
- notify(message, level) receives transient notices (info/warning/error)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from cue_navigator.config import (
    AUTO_RESUME,
    AVAILABLE_SPEEDS,
    DEFAULT_THRESHOLDS,
    MAX_SPEED,
    MIN_SPEED,
    Thresholds,
)
from cue_navigator.controls.base import CacheStore, PlayerControl
from cue_navigator.controls.events import (
    EventChannel,
    LoopToggleEvent,
    SentenceNavEvent,
    SentenceNavValue,
    SpeedChangeEvent,
    VocabularyModeEvent,
)
from cue_navigator.controls.loop import LoopController, LoopResult
from cue_navigator.controls.session import SessionStateStore
from cue_navigator.core.collapser import CueGroupCollapser
from cue_navigator.core.ir import ControlsState, SentenceGroup, SubtitleTrack
from cue_navigator.core.navigation import Direction, NavigationResolver, NavigationResult
from cue_navigator.core.segmenter import SentenceSegmenter

logger = logging.getLogger(__name__)

NotifyCallback = Callable[[str, str], None]


def clamp_speed(speed: float) -> float:
    return min(MAX_SPEED, max(MIN_SPEED, float(speed)))


class PlaybackControls:
    """Learner-facing playback controls over a PlayerControl and a CacheStore.

    To embed the controls:
    1. Implement PlayerControl and CacheStore for the host
    2. Build PlaybackControls(player, cache, video_id=...)
    3. await initialize(), call the operations, await destroy() at teardown

    RULES:
    - initialize() is idempotent until destroy()
    - refresh_track() must be called when the player switches caption tracks
    """

    def __init__(
        self,
        player: PlayerControl,
        cache: CacheStore,
        video_id: Optional[str] = None,
        events: Optional[EventChannel] = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        notify: Optional[NotifyCallback] = None,
        auto_resume: bool = AUTO_RESUME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._player = player
        self.events = events if events is not None else EventChannel()
        self._notify = notify

        self.segmenter = SentenceSegmenter(thresholds=thresholds)
        self.collapser = CueGroupCollapser(thresholds)
        self.resolver = NavigationResolver(self.segmenter, thresholds=thresholds)
        self.loops = LoopController(player, self.events, thresholds, clock)
        self.store = SessionStateStore(cache, video_id, thresholds, auto_resume, clock)

        self._track: Optional[SubtitleTrack] = None
        self._vocabulary_mode = False
        self._subtitles_visible = True
        self._ready = False
        self._unsubscribe_loops = self.events.subscribe(self._on_loop_toggle, "loop_toggle")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self, track_state: bool = True) -> bool:
        """Load the caption track, restore the saved session, start the periodic flush.

        Args:
            track_state: Start the periodic flush task on the running loop.
                Hosts that flush from their own scheduler pass False.
        """
        if self._ready:
            return True
        if self.store.is_destroyed:
            logger.warning("initialize() called on destroyed controls")
            return False

        self.refresh_track()
        await self._restore_session()
        if track_state:
            self.store.start_tracking(self.sync_state)
        self._ready = True
        logger.info("Playback controls ready for video %s", self.store.video_id)
        return True

    async def destroy(self) -> None:
        """Stop the flush task, save once more, and detach from the event channel."""
        if self.store.is_destroyed:
            return
        self.sync_state()
        await self.store.close()
        self._unsubscribe_loops()
        self._ready = False
        logger.info("Playback controls destroyed for video %s", self.store.video_id)

    async def switch_video(self, video_id: Optional[str]) -> None:
        """Save the outgoing video, drop its loop, and load the new video's track and state."""
        if video_id == self.store.video_id:
            return
        self.sync_state()
        self.loops.clear_loop()
        await self.store.switch_video(video_id)
        self._vocabulary_mode = False
        self._subtitles_visible = True
        self.refresh_track()
        await self._restore_session()

    def refresh_track(self) -> Optional[SubtitleTrack]:
        """Re-read the player's caption track and rebuild sentences and cue groups."""
        try:
            track = self._player.get_current_subtitle_track()
        except Exception as exc:
            logger.error("Failed to read subtitle track: %s", exc)
            track = None

        self._track = track
        if track is None:
            logger.debug("No subtitle track; navigation uses fixed steps")
            self.segmenter.clear()
        else:
            self.segmenter.load_cues(track.cues)
        self.resolver.set_groups(self.collapser.groups_for_track(track))
        return track

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(self, direction: Direction | str) -> Optional[NavigationResult]:
        position = self._read_position()
        if position is None:
            return None
        current, duration = position
        return self._seek_to(self.resolver.resolve(direction, current, duration))

    def navigate_previous(self) -> Optional[NavigationResult]:
        return self.navigate(Direction.PREVIOUS)

    def navigate_next(self) -> Optional[NavigationResult]:
        return self.navigate(Direction.NEXT)

    def replay_sentence(self) -> Optional[NavigationResult]:
        return self.navigate(Direction.REPLAY)

    def skip(self, seconds: float) -> Optional[NavigationResult]:
        position = self._read_position()
        if position is None:
            return None
        current, duration = position
        return self._seek_to(self.resolver.skip_target(current, seconds, duration))

    def jump_to_percentage(self, percentage: float) -> Optional[NavigationResult]:
        position = self._read_position()
        if position is None:
            return None
        current, duration = position
        if duration <= 0:
            self._emit_notice("Video duration unknown", "warning")
            return None
        return self._seek_to(self.resolver.percentage_target(current, percentage, duration))

    def jump_to_cue(self, cue_id: str) -> Optional[NavigationResult]:
        position = self._read_position()
        if position is None:
            return None
        current, duration = position
        result = self.resolver.cue_target(current, cue_id, duration)
        if result is None:
            self._emit_notice("Caption not found", "warning")
            return None
        return self._seek_to(result)

    def get_current_sentence(self) -> Optional[SentenceGroup]:
        position = self._read_position()
        if position is None:
            return None
        return self.segmenter.get_sentence_at_time(position[0])

    # ------------------------------------------------------------------
    # Speed
    # ------------------------------------------------------------------

    def set_speed(self, speed: float) -> Optional[float]:
        """Clamp and apply a playback rate; returns the applied rate or None on failure."""
        speed = clamp_speed(speed)
        if not self._apply_rate(speed):
            return None
        self.store.record_speed_change(speed)
        self.events.publish(SpeedChangeEvent(value=speed))
        self._emit_notice("Speed: {}x".format(speed), "info")
        return speed

    def adjust_speed(self, delta: float) -> Optional[float]:
        return self.set_speed(round(self.current_speed + delta, 2))

    def reset_speed(self) -> Optional[float]:
        return self.set_speed(1.0)

    @staticmethod
    def available_speeds() -> List[float]:
        return list(AVAILABLE_SPEEDS)

    @property
    def current_speed(self) -> float:
        try:
            return float(self._player.get_playback_rate())
        except Exception as exc:
            logger.error("Failed to read playback rate: %s", exc)
            return self.store.state.speed

    # ------------------------------------------------------------------
    # Vocabulary mode and subtitle visibility
    # ------------------------------------------------------------------

    @property
    def vocabulary_mode(self) -> bool:
        return self._vocabulary_mode

    @property
    def subtitles_visible(self) -> bool:
        return self._subtitles_visible

    def set_vocabulary_mode(self, enabled: bool) -> bool:
        enabled = bool(enabled)
        if enabled != self._vocabulary_mode:
            self._vocabulary_mode = enabled
            self.store.update(vocabulary_mode=enabled)
            self.events.publish(VocabularyModeEvent(value=enabled))
        return self._vocabulary_mode

    def toggle_vocabulary_mode(self) -> bool:
        return self.set_vocabulary_mode(not self._vocabulary_mode)

    def set_subtitles_visible(self, visible: bool) -> bool:
        self._subtitles_visible = bool(visible)
        self.store.update(subtitles_visible=self._subtitles_visible)
        return self._subtitles_visible

    def toggle_subtitles(self) -> bool:
        return self.set_subtitles_visible(not self._subtitles_visible)

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def set_mark_in(self) -> LoopResult:
        return self._loop_notice(self.loops.set_mark_in())

    def set_mark_out(self) -> LoopResult:
        return self._loop_notice(self.loops.set_mark_out())

    def apply_marker_loop(self) -> LoopResult:
        return self._loop_notice(self.loops.apply_marker_loop())

    def toggle_loop(self) -> LoopResult:
        return self._loop_notice(self.loops.toggle_loop())

    def click_marker_indicator(self) -> LoopResult:
        return self._loop_notice(self.loops.click_marker_indicator())

    def clear_loop(self) -> LoopResult:
        return self._loop_notice(self.loops.clear_loop())

    def create_custom_loop(
        self,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> LoopResult:
        return self._loop_notice(self.loops.create_custom_loop(start_time, end_time))

    # ------------------------------------------------------------------
    # State and statistics
    # ------------------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        loop = self.loops.current_loop
        markers = self.loops.markers
        return {
            "is_ready": self._ready,
            "video_id": self.store.video_id,
            "current_speed": self.current_speed,
            "current_loop": loop.to_dict() if loop else None,
            "loop_state": self.loops.state.value,
            "mark_in": markers.in_time,
            "mark_out": markers.out_time,
            "vocabulary_mode": self._vocabulary_mode,
            "subtitles_visible": self._subtitles_visible,
            "auto_resume": self.store.auto_resume,
        }

    def session_stats(self) -> Dict[str, float]:
        stats = self.store.session_stats()
        stats["average_speed"] = self.current_speed
        return stats

    def set_auto_resume(self, enabled: bool) -> None:
        self.store.auto_resume = bool(enabled)

    def sync_state(self) -> ControlsState:
        """Push the live position, speed, toggles, and loop into the session state."""
        changes: Dict[str, Any] = {
            "speed": self.current_speed,
            "vocabulary_mode": self._vocabulary_mode,
            "subtitles_visible": self._subtitles_visible,
            "loop": self.loops.current_loop,
        }
        position = self._read_position()
        if position is not None:
            changes["last_position"] = position[0]
        return self.store.update(**changes)

    async def save_state(self) -> bool:
        self.sync_state()
        return await self.store.save_state()

    async def clear_state(self) -> bool:
        """Forget the saved snapshot and return speed and vocabulary mode to defaults."""
        cleared = await self.store.clear_state()
        self._vocabulary_mode = False
        self._subtitles_visible = True
        self._apply_rate(1.0)
        return cleared

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _restore_session(self) -> None:
        await self.store.load_state()
        restored = self.store.state
        self._subtitles_visible = True
        self._vocabulary_mode = restored.vocabulary_mode
        if abs(restored.speed - self.current_speed) > 1e-9:
            self._apply_rate(clamp_speed(restored.speed))

    def _read_position(self) -> Optional[Tuple[float, float]]:
        try:
            return self._player.get_current_time(), self._player.get_duration()
        except Exception as exc:
            logger.error("Failed to read player position: %s", exc)
            self._emit_notice("Player unavailable", "error")
            return None

    def _seek_to(self, result: NavigationResult) -> Optional[NavigationResult]:
        try:
            self._player.seek(result.to_time)
        except Exception as exc:
            logger.error("Seek to %.2fs failed: %s", result.to_time, exc)
            self._emit_notice("Seek failed", "error")
            return None
        self.events.publish(SentenceNavEvent(value=SentenceNavValue.from_result(result)))
        return result

    def _apply_rate(self, speed: float) -> bool:
        try:
            self._player.set_playback_rate(speed)
        except Exception as exc:
            logger.error("Failed to set playback rate %.2f: %s", speed, exc)
            self._emit_notice("Speed change failed", "error")
            return False
        return True

    def _loop_notice(self, result: LoopResult) -> LoopResult:
        self._emit_notice(result.message, "info" if result.ok else "warning")
        return result

    def _on_loop_toggle(self, event: LoopToggleEvent) -> None:
        self.store.record_loop(self.loops.current_loop if event.value is not None else None)

    def _emit_notice(self, message: str, level: str) -> None:
        if self._notify is None:
            return
        try:
            self._notify(message, level)
        except Exception:
            logger.exception("Notice callback failed")
