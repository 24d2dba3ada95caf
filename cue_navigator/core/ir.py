"""Intermediate representation dataclasses for cues, sentences, and loops.

WHY: Caption cues arrive from the host player as loose, time-indexed
records. The grouping, navigation, loop, and persistence code each need
the same vocabulary of shapes: a cue, a sentence made of cues, a
collapsed plateau, an applied loop, the persisted session snapshot. The
IR gives every component one well-typed set of structures.

HOW: Plain dataclasses:
  Cue            one timed text entry from a caption track
  SentenceGroup  contiguous cues merged into one navigable unit
  CueGroup       a collapsed plateau of stable auto-caption text
  SubtitleTrack  the current track as reported by the player
  LoopSegment    an applied, enforced playback loop
  LoopMarkers    transient IN/OUT marker pair
  ControlsState  the persisted per-video session snapshot

RULES:
- All times are float seconds
- Cue, CueGroup, and LoopSegment are frozen (hashable, safe to share)
- ControlsState serializes with camelCase keys (the snapshot contract)
- A persisted ControlsState never carries an active loop
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class Cue:
    """A single timed text entry from a caption track.

    RULES:
    - start_time <= end_time is expected but not enforced (tracks are noisy)
    - Auto-generated tracks may hold overlapping or cumulative cues
    """

    id: str
    start_time: float
    end_time: float
    text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cue:
        """Parse a cue from a dict using either camelCase or snake_case keys."""
        start = data.get("start_time", data.get("startTime", 0.0))
        end = data.get("end_time", data.get("endTime", start))
        return cls(
            id=str(data.get("id", "")),
            start_time=float(start),
            end_time=float(end),
            text=str(data.get("text", "")),
        )


@dataclass
class SentenceGroup:
    """Contiguous cues merged into one navigable sentence.

    WHY: Caption cues break mid-sentence at display-width boundaries. A
    learner navigates by sentence, so adjacent cues are grouped.

    RULES:
    - start_index / end_index are positions in the segmenter's sorted cue list
    - segments are time-ordered and never empty
    - combined_text joins segment texts with single spaces
    """

    start_index: int
    end_index: int
    combined_text: str
    segments: list[Cue] = field(default_factory=list)

    @property
    def start_time(self) -> float:
        return self.segments[0].start_time

    @property
    def end_time(self) -> float:
        return max(cue.end_time for cue in self.segments)

    @property
    def total_duration(self) -> float:
        return self.end_time - self.start_time

    def contains(self, time_s: float) -> bool:
        return self.start_time <= time_s <= self.end_time


@dataclass(frozen=True)
class CueGroup:
    """A collapsed plateau of stable text from an auto-generated track."""

    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, time_s: float) -> bool:
        return self.start <= time_s <= self.end


@dataclass
class SubtitleTrack:
    """The caption track currently selected in the player.

    RULES:
    - groups is only set when the host already precomputed cue groups
    - is_auto_generated selects the cue-collapsing path
    """

    cues: list[Cue] = field(default_factory=list)
    is_auto_generated: bool = False
    groups: list[CueGroup] | None = None
    language: str = ""
    label: str = ""
    id: str = ""


@dataclass(frozen=True)
class LoopSegment:
    """An applied playback loop.

    RULES:
    - start_time < end_time, both within [0, duration] of the video
    - id is unique per created loop ("loop_<ms>")
    """

    id: str
    start_time: float
    end_time: float
    is_active: bool = True
    title: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def contains(self, time_s: float) -> bool:
        return self.start_time <= time_s <= self.end_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "isActive": self.is_active,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoopSegment:
        return cls(
            id=str(data["id"]),
            start_time=float(data["startTime"]),
            end_time=float(data["endTime"]),
            is_active=bool(data.get("isActive", True)),
            title=data.get("title"),
        )


@dataclass
class LoopMarkers:
    """Transient IN/OUT markers set before a loop is applied."""

    in_time: float | None = None
    out_time: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.in_time is None and self.out_time is None

    @property
    def is_complete(self) -> bool:
        return self.in_time is not None and self.out_time is not None

    def clear(self) -> None:
        self.in_time = None
        self.out_time = None


@dataclass
class ControlsState:
    """Per-video session snapshot persisted to the cache.

    WHY: A learner reloading a video expects their practice speed and
    vocabulary mode back. Counters (watch time, loops, speed changes) feed
    session statistics.

    HOW: Kept in memory by SessionStateStore, updated on every state change
    and by the periodic flush, serialized with to_dict().

    RULES:
    - session_start_time and total_watch_time are in seconds
    - to_dict() keys follow the camelCase snapshot contract
    - persisted() returns a copy with loop forced to None
    """

    speed: float = 1.0
    loop: LoopSegment | None = None
    vocabulary_mode: bool = False
    subtitles_visible: bool = True
    last_video_id: str | None = None
    last_position: float = 0.0
    session_start_time: float = 0.0
    total_watch_time: float = 0.0
    loop_count: int = 0
    speed_changes: int = 0

    @classmethod
    def defaults(cls, video_id: str | None, now: float) -> ControlsState:
        return cls(last_video_id=video_id, session_start_time=now)

    def persisted(self) -> ControlsState:
        return replace(self, loop=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "speed": self.speed,
            "loop": self.loop.to_dict() if self.loop else None,
            "vocabularyMode": self.vocabulary_mode,
            "subtitlesVisible": self.subtitles_visible,
            "lastVideoId": self.last_video_id,
            "lastPosition": self.last_position,
            "sessionStartTime": self.session_start_time,
            "totalWatchTime": self.total_watch_time,
            "loopCount": self.loop_count,
            "speedChanges": self.speed_changes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ControlsState:
        loop_data = data.get("loop")
        return cls(
            speed=float(data.get("speed", 1.0)),
            loop=LoopSegment.from_dict(loop_data) if loop_data else None,
            vocabulary_mode=bool(data.get("vocabularyMode", False)),
            subtitles_visible=bool(data.get("subtitlesVisible", True)),
            last_video_id=data.get("lastVideoId"),
            last_position=float(data.get("lastPosition", 0.0)),
            session_start_time=float(data.get("sessionStartTime", 0.0)),
            total_watch_time=float(data.get("totalWatchTime", 0.0)),
            loop_count=int(data.get("loopCount", 0)),
            speed_changes=int(data.get("speedChanges", 0)),
        )
