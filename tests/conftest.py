"""Shared test fixtures for the cue_navigator test suite.

WHY: Segmenter, navigation, loop, session, controls, and API tests all
need the same small caption tracks and in-process collaborators.
Centralizing them keeps the expected sentence boundaries in one place.

HOW: Module-level cue lists plus fixtures that build tracks, a
VirtualPlayer, an InMemoryCacheStore, and a recording event subscriber.

RULES:
- MANUAL_CUES segment into exactly three sentences (listed above the constant)
- AUTO_CUES are the cumulative "A", "A B", "A B C" frames of one plateau
- Fixtures return fresh objects per test (no shared mutable state)
"""

from __future__ import annotations

from typing import Any, List

import pytest

from cue_navigator.adapters.cache import InMemoryCacheStore
from cue_navigator.adapters.player import VirtualPlayer
from cue_navigator.controls.events import EventChannel
from cue_navigator.core.ir import Cue, SubtitleTrack


def make_cues(*rows) -> List[Cue]:
    """Build cues from (start, end, text) rows with ids c1, c2, ..."""
    return [Cue(id="c{}".format(i + 1), start_time=s, end_time=e, text=t) for i, (s, e, t) in enumerate(rows)]


# Sentences: [0.0, 4.0] "Hello there, my friend.", [4.5, 8.0] "How are you today?",
# [8.2, 11.0] "I am fine thanks."
MANUAL_CUES: List[Cue] = make_cues(
    (0.0, 2.0, "Hello there,"),
    (2.0, 4.0, "my friend."),
    (4.5, 6.0, "How are you"),
    (6.0, 8.0, "today?"),
    (8.2, 9.5, "I am"),
    (9.5, 11.0, "fine thanks."),
)

AUTO_CUES: List[Cue] = make_cues(
    (10.0, 10.3, "A"),
    (10.3, 10.6, "A B"),
    (10.6, 11.5, "A B C"),
)


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[Any]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def manual_cues() -> List[Cue]:
    return list(MANUAL_CUES)


@pytest.fixture
def manual_track() -> SubtitleTrack:
    return SubtitleTrack(cues=list(MANUAL_CUES), is_auto_generated=False, language="en", label="English")


@pytest.fixture
def auto_track() -> SubtitleTrack:
    return SubtitleTrack(cues=list(AUTO_CUES), is_auto_generated=True, language="en", label="English (auto)")


@pytest.fixture
def player(manual_track) -> VirtualPlayer:
    return VirtualPlayer(duration=60.0, track=manual_track)


@pytest.fixture
def cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def recorder(channel) -> EventRecorder:
    rec = EventRecorder()
    channel.subscribe(rec)
    return rec
