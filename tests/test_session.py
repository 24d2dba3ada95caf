"""Tests for session snapshot persistence and the periodic flush.

WHY: The restore policy is deliberately asymmetric (speed and vocabulary
mode come back, loops never do, subtitles are always visible again) and
the cache is fallible. Both are easy to break silently.

HOW: Each test drives SessionStateStore with asyncio.run() over an
InMemoryCacheStore, with a hand-advanced clock for watch-time checks.
Cache failures are injected with AsyncMock.

RULES:
- No real sleeping except in the flush-task test (10ms interval)
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from cue_navigator.adapters.cache import InMemoryCacheStore
from cue_navigator.config import Thresholds, state_key
from cue_navigator.controls.base import CacheResult
from cue_navigator.controls.session import SessionStateStore
from cue_navigator.core.ir import LoopSegment

VIDEO = "abc123"
KEY = state_key(VIDEO)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _store(cache, clock, video_id=VIDEO, **kwargs) -> SessionStateStore:
    return SessionStateStore(cache, video_id, clock=clock, **kwargs)


class TestSaveAndRestore:
    def test_loop_is_never_persisted_and_settings_restore(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=1.5, vocabulary_mode=True, loop=LoopSegment("loop_1", 8.0, 10.0))
        assert asyncio.run(store.save_state()) is True

        saved = cache.peek(KEY)
        assert saved["loop"] is None
        assert saved["speed"] == 1.5
        assert saved["vocabularyMode"] is True

        restored = _store(cache, clock)
        assert asyncio.run(restored.load_state()) is True
        state = restored.state
        assert state.speed == 1.5
        assert state.vocabulary_mode is True
        assert state.loop is None
        assert state.subtitles_visible is True

    def test_hidden_subtitles_come_back_visible(self, cache, clock):
        store = _store(cache, clock)
        store.update(subtitles_visible=False)
        asyncio.run(store.save_state())
        assert cache.peek(KEY)["subtitlesVisible"] is False

        restored = _store(cache, clock)
        asyncio.run(restored.load_state())
        assert restored.state.subtitles_visible is True

    def test_counters_carry_over(self, cache, clock):
        store = _store(cache, clock)
        store.record_loop(LoopSegment("loop_1", 1.0, 2.0))
        store.record_speed_change(1.25)
        asyncio.run(store.save_state())

        restored = _store(cache, clock)
        asyncio.run(restored.load_state())
        assert restored.state.loop_count == 1
        assert restored.state.speed_changes == 1

    def test_auto_resume_off_finds_but_does_not_apply(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=0.5)
        asyncio.run(store.save_state())

        restored = _store(cache, clock, auto_resume=False)
        assert asyncio.run(restored.load_state()) is True
        assert restored.state.speed == 1.0

    def test_missing_snapshot(self, cache, clock):
        assert asyncio.run(_store(cache, clock).load_state()) is False

    def test_snapshot_is_keyed_by_video(self, cache, clock):
        store = _store(cache, clock)
        asyncio.run(store.save_state())
        assert cache.peek("enhanced-controls-state-abc123") is not None

    def test_no_video_id_disables_persistence(self, cache, clock):
        store = _store(cache, clock, video_id=None)
        assert asyncio.run(store.save_state()) is False
        assert asyncio.run(store.load_state()) is False
        assert len(cache) == 0

    def test_snapshot_ttl(self, clock):
        cache = InMemoryCacheStore(clock=clock)
        asyncio.run(_store(cache, clock, thresholds=Thresholds(state_ttl_s=60)).save_state())
        clock.now += 61
        assert asyncio.run(_store(cache, clock).load_state()) is False


class TestWatchTime:
    def test_saves_accumulate_without_double_counting(self, cache, clock):
        store = _store(cache, clock)
        clock.now += 10
        asyncio.run(store.save_state())
        assert store.state.total_watch_time == pytest.approx(10.0)

        clock.now += 5
        asyncio.run(store.save_state())
        assert store.state.total_watch_time == pytest.approx(15.0)
        assert cache.peek(KEY)["totalWatchTime"] == pytest.approx(15.0)

    def test_session_stats(self, cache, clock):
        store = _store(cache, clock)
        store.record_speed_change(1.5)
        clock.now += 30
        stats = store.session_stats()
        assert stats["session_duration"] == pytest.approx(30.0)
        assert stats["total_watch_time"] == pytest.approx(30.0)
        assert stats["speed_changes"] == 1
        assert stats["average_speed"] == 1.5


class TestInvalidAndFailingCache:
    def test_invalid_snapshot_is_ignored(self, cache, clock, caplog):
        asyncio.run(cache.set_cache(KEY, {"speed": "fast", "vocabularyMode": True}, 60))
        store = _store(cache, clock)
        with caplog.at_level(logging.WARNING, logger="cue_navigator.controls.session"):
            assert asyncio.run(store.load_state()) is False
        assert store.state.speed == 1.0
        assert "invalid session state" in caplog.text

    def test_read_exception_is_not_fatal(self, clock, caplog):
        cache = AsyncMock()
        cache.get_cache.side_effect = RuntimeError("storage offline")
        with caplog.at_level(logging.WARNING, logger="cue_navigator.controls.session"):
            assert asyncio.run(_store(cache, clock).load_state()) is False
        assert "storage offline" in caplog.text

    def test_write_exception_is_not_fatal(self, clock):
        cache = AsyncMock()
        cache.set_cache.side_effect = RuntimeError("quota")
        assert asyncio.run(_store(cache, clock).save_state()) is False

    def test_unsuccessful_results(self, clock):
        cache = AsyncMock()
        cache.get_cache.return_value = CacheResult(success=False, error="denied")
        cache.set_cache.return_value = CacheResult(success=False, error="denied")
        store = _store(cache, clock)
        assert asyncio.run(store.load_state()) is False
        assert asyncio.run(store.save_state()) is False


class TestClearAndSwitch:
    def test_clear_removes_snapshot_and_resets(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=1.75, vocabulary_mode=True)
        asyncio.run(store.save_state())

        assert asyncio.run(store.clear_state()) is True
        assert cache.peek(KEY) is None
        assert store.state.speed == 1.0
        assert store.state.vocabulary_mode is False
        assert store.state.last_video_id == VIDEO

    def test_switch_video_saves_old_and_resets(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=1.25)
        asyncio.run(store.switch_video("next-video"))

        assert cache.peek(KEY)["speed"] == 1.25
        assert store.video_id == "next-video"
        assert store.state.speed == 1.0
        assert store.state.last_video_id == "next-video"

    def test_switch_to_same_video_is_noop(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=1.25)
        asyncio.run(store.switch_video(VIDEO))
        assert store.state.speed == 1.25
        assert cache.peek(KEY) is None


class ClosingCache(InMemoryCacheStore):
    """Closes the store while a read is in flight."""

    store = None

    async def get_cache(self, key):
        result = await super().get_cache(key)
        await self.store.close()
        return result


class TestLifecycle:
    def test_close_saves_and_blocks_further_writes(self, cache, clock):
        store = _store(cache, clock)
        store.update(speed=0.75)
        asyncio.run(store.close())

        assert store.is_destroyed
        assert cache.peek(KEY)["speed"] == 0.75
        store.update(speed=2.0)
        assert asyncio.run(store.save_state()) is False
        assert cache.peek(KEY)["speed"] == 0.75

    def test_late_load_after_close_is_ignored(self, clock):
        cache = ClosingCache()
        asyncio.run(cache.set_cache(KEY, {"speed": 1.5, "vocabularyMode": True}, 60))
        store = _store(cache, clock)
        cache.store = store

        assert asyncio.run(store.load_state()) is False
        assert store.state.speed == 1.0

    def test_periodic_flush_runs_and_stops(self, cache):
        refreshed = []
        store = SessionStateStore(cache, VIDEO, thresholds=Thresholds(flush_interval_s=0.01))

        async def scenario():
            store.start_tracking(lambda: refreshed.append(1))
            assert store.is_tracking
            await asyncio.sleep(0.1)
            await store.close()

        asyncio.run(scenario())
        assert refreshed
        assert not store.is_tracking
        assert cache.peek(KEY) is not None

    def test_failing_refresh_does_not_stop_flush(self, cache, caplog):
        store = SessionStateStore(cache, VIDEO, thresholds=Thresholds(flush_interval_s=0.01))

        def broken():
            raise RuntimeError("player gone")

        async def scenario():
            store.start_tracking(broken)
            await asyncio.sleep(0.05)
            assert store.is_tracking
            await store.close()

        asyncio.run(scenario())
        assert "refresh failed" in caplog.text
