"""Per-video session snapshots: restore on load, flush periodically, save on close.

WHY: A learner who reloads a video wants their practice speed and
vocabulary mode back, and session statistics (watch time, loops, speed
changes) should survive a reload. The cache is a shared, fallible
collaborator, so persistence must never break playback.

HOW: SessionStateStore keeps one ControlsState in memory. The controls
push changes through update()/record_*(); save_state() folds elapsed watch
time into the snapshot and writes it under enhanced-controls-state-<id>.
start_tracking() runs one asyncio task that saves every flush interval.

RULES:
- Restore is asymmetric: speed and vocabulary mode (when auto-resume is
  on) plus the counters come back; the loop never does and subtitles are
  always visible again
- Snapshots are written with loop=None
- Cached snapshots are validated with jsonschema before use; invalid data
  counts as "no saved state"
- Cache failures are logged as warnings and reported as False; nothing
  here raises
- After close(), late cache completions are ignored
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import jsonschema

from cue_navigator.config import AUTO_RESUME, DEFAULT_THRESHOLDS, Thresholds, state_key
from cue_navigator.controls.base import CacheStore
from cue_navigator.core.ir import ControlsState, LoopSegment

logger = logging.getLogger(__name__)


_NUMBER = {"type": "number"}
_COUNT = {"type": "integer", "minimum": 0}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "speed": {"type": "number", "exclusiveMinimum": 0},
        "loop": {"type": ["object", "null"]},
        "vocabularyMode": {"type": "boolean"},
        "subtitlesVisible": {"type": "boolean"},
        "lastVideoId": {"type": ["string", "null"]},
        "lastPosition": _NUMBER,
        "sessionStartTime": _NUMBER,
        "totalWatchTime": {"type": "number", "minimum": 0},
        "loopCount": _COUNT,
        "speedChanges": _COUNT,
    },
    "required": ["speed", "vocabularyMode"],
}
"""Shape a cached snapshot must have before it is restored."""


class SessionStateStore:
    """In-memory ControlsState with cache-backed persistence for one video at a time.

    WHY: Keeps snapshot bookkeeping (keys, TTL, watch-time accounting, the
    restore policy) out of the controls façade.

    HOW: Watch time accumulates from a moving anchor: each save adds the
    time since the previous save (or since load/reset) and moves the
    anchor forward, so repeated saves never double count.

    RULES:
    - video_id None disables persistence (load/save/clear return False)
    - state returns a copy; mutate through update() and record_*()
    - clock is injectable so tests control elapsed time
    """

    def __init__(
        self,
        cache: CacheStore,
        video_id: Optional[str] = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        auto_resume: bool = AUTO_RESUME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._video_id = video_id
        self._thresholds = thresholds
        self._clock = clock
        self.auto_resume = auto_resume

        now = clock()
        self._state = ControlsState.defaults(video_id, now)
        self._watch_anchor = now
        self._task: Optional[asyncio.Task] = None
        self._destroyed = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControlsState:
        return replace(self._state)

    @property
    def video_id(self) -> Optional[str]:
        return self._video_id

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def is_tracking(self) -> bool:
        return self._task is not None and not self._task.done()

    def session_stats(self) -> Dict[str, float]:
        """Session duration, watch time, and counters for display."""
        now = self._clock()
        return {
            "session_duration": max(0.0, now - self._state.session_start_time),
            "total_watch_time": self._state.total_watch_time + max(0.0, now - self._watch_anchor),
            "loop_count": self._state.loop_count,
            "speed_changes": self._state.speed_changes,
            "average_speed": self._state.speed,
        }

    # ------------------------------------------------------------------
    # In-memory updates
    # ------------------------------------------------------------------

    def update(self, **changes: Any) -> ControlsState:
        """Replace fields of the in-memory state (field names of ControlsState)."""
        self._state = replace(self._state, **changes)
        return self.state

    def record_speed_change(self, speed: float) -> None:
        self._state.speed = speed
        self._state.speed_changes += 1

    def record_loop(self, loop: Optional[LoopSegment]) -> None:
        """Track the active loop; a new loop bumps the loop counter."""
        if loop is not None:
            self._state.loop_count += 1
        self._state.loop = loop

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load_state(self) -> bool:
        """Read and restore the saved snapshot for the current video.

        Returns:
            True when a valid snapshot was found (whether or not auto-resume
            applied it), False when there was none or the read failed.
        """
        if self._destroyed or self._video_id is None:
            return False

        key = state_key(self._video_id)
        try:
            result = await self._cache.get_cache(key)
        except Exception as exc:
            logger.warning("Failed to load session state %s: %s", key, exc)
            return False

        if self._destroyed:
            logger.debug("Ignoring session state %s loaded after close", key)
            return False
        if not result.success:
            logger.warning("Failed to load session state %s: %s", key, result.error)
            return False
        if result.data is None:
            logger.debug("No saved session state for %s", key)
            return False

        try:
            jsonschema.validate(result.data, SNAPSHOT_SCHEMA)
            saved = ControlsState.from_dict(result.data)
        except (jsonschema.ValidationError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid session state %s: %s", key, exc)
            return False

        if self.auto_resume:
            self._restore(saved)
            logger.info(
                "Restored session state for %s (speed %.2f, vocabulary mode %s)",
                self._video_id,
                saved.speed,
                saved.vocabulary_mode,
            )
        return True

    async def save_state(self) -> bool:
        """Fold elapsed watch time into the snapshot and persist it without the loop."""
        if self._destroyed or self._video_id is None:
            return False
        return await self._write(self._video_id)

    async def clear_state(self) -> bool:
        """Reset to defaults and remove the saved snapshot."""
        if self._video_id is None:
            return False
        self._reset(self._video_id)

        key = state_key(self._video_id)
        try:
            result = await self._cache.set_cache(key, None, 0)
        except Exception as exc:
            logger.warning("Failed to clear session state %s: %s", key, exc)
            return False
        if not result.success:
            logger.warning("Failed to clear session state %s: %s", key, result.error)
        return result.success

    async def switch_video(self, video_id: Optional[str]) -> None:
        """Save the outgoing video's snapshot (best effort) and start fresh for the new one."""
        if video_id == self._video_id:
            return
        if self._video_id is not None and not self._destroyed:
            await self._write(self._video_id)
        logger.info("Switching session from %s to %s", self._video_id, video_id)
        self._video_id = video_id
        self._reset(video_id)

    # ------------------------------------------------------------------
    # Periodic flush
    # ------------------------------------------------------------------

    def start_tracking(self, refresh: Optional[Callable[[], None]] = None) -> None:
        """Start the periodic flush task on the running event loop.

        Args:
            refresh: Optional callback run before each flush so the caller
                can push the latest position and settings into the state.
        """
        self.stop_tracking()
        if self._destroyed:
            return
        self._task = asyncio.get_running_loop().create_task(self._flush_loop(refresh))

    def stop_tracking(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def close(self) -> None:
        """Stop the flush task, attempt a final save, and mark the store destroyed."""
        if self._destroyed:
            return
        task = self._task
        self.stop_tracking()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self.save_state()
        self._destroyed = True
        logger.info("Session state store for %s closed", self._video_id)

    async def _flush_loop(self, refresh: Optional[Callable[[], None]]) -> None:
        while not self._destroyed:
            await asyncio.sleep(self._thresholds.flush_interval_s)
            if refresh is not None:
                try:
                    refresh()
                except Exception:
                    logger.exception("Session state refresh failed")
            await self.save_state()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _write(self, video_id: str) -> bool:
        now = self._clock()
        self._state.total_watch_time += max(0.0, now - self._watch_anchor)
        self._watch_anchor = now
        self._state.last_video_id = video_id

        key = state_key(video_id)
        payload = self._state.persisted().to_dict()
        try:
            result = await self._cache.set_cache(key, payload, self._thresholds.state_ttl_s)
        except Exception as exc:
            logger.warning("Failed to save session state %s: %s", key, exc)
            return False
        if not result.success:
            logger.warning("Failed to save session state %s: %s", key, result.error)
            return False
        logger.debug("Saved session state %s", key)
        return True

    def _restore(self, saved: ControlsState) -> None:
        now = self._clock()
        self._state = replace(
            saved,
            loop=None,
            subtitles_visible=True,
            last_video_id=self._video_id,
            session_start_time=now,
        )
        self._watch_anchor = now

    def _reset(self, video_id: Optional[str]) -> None:
        now = self._clock()
        self._state = ControlsState.defaults(video_id, now)
        self._watch_anchor = now
