"""Pydantic request/response models for the practice-session API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and the generated OpenAPI docs. Keeping them
apart from the controls keeps the wire format independent of the
internal dataclasses.

HOW: One model per request body and per response shape. Closed sets
(navigation direction, marker and loop actions) are str enums so invalid
path or body values are rejected with 422 before any handler runs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Times are float seconds on the wire
- Response models never expose internal objects (players, stores)
- Optional/List/Dict from typing, no PEP 604 unions (pydantic evaluates them)
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class NavigationDirection(str, Enum):
    previous = "previous"
    next = "next"
    replay = "replay"


class MarkerAction(str, Enum):
    """Marker endpoints: set IN, set OUT, or the single-button click cycle."""

    mark_in = "in"
    mark_out = "out"
    click = "click"


class LoopAction(str, Enum):
    apply = "apply"
    toggle = "toggle"
    clear = "clear"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CueIn(BaseModel):
    id: str = Field(description="Cue identifier, unique within the track.")
    start_time: float = Field(description="Cue start in seconds.")
    end_time: float = Field(description="Cue end in seconds.")
    text: str = Field(default="", description="Caption text.")


class TrackIn(BaseModel):
    """Caption track attached to a new session.

    RULES:
    - is_auto_generated selects the cumulative-cue collapsing path
    """

    cues: List[CueIn] = Field(default_factory=list, description="Caption cues in any order.")
    is_auto_generated: bool = Field(default=False, description="True for ASR (auto-generated) tracks.")
    language: str = Field(default="", description="Track language code.")
    label: str = Field(default="", description="Human-readable track label.")


class SessionCreateRequest(BaseModel):
    video_id: str = Field(min_length=1, description="Video identifier; keys the saved session state.")
    duration: float = Field(default=0.0, ge=0, description="Video duration in seconds (0 when unknown).")
    current_time: float = Field(default=0.0, ge=0, description="Initial playback position in seconds.")
    track: Optional[TrackIn] = Field(default=None, description="Caption track, if the video has one.")
    auto_resume: Optional[bool] = Field(
        default=None,
        description="Restore the saved speed and vocabulary mode. Defaults to CUENAV_AUTO_RESUME.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "video_id": "dQw4w9WgXcQ",
                "duration": 212.0,
                "track": {
                    "is_auto_generated": False,
                    "language": "en",
                    "cues": [
                        {"id": "c1", "start_time": 0.0, "end_time": 2.0, "text": "Hello there."},
                        {"id": "c2", "start_time": 2.5, "end_time": 4.0, "text": "How are you?"},
                    ],
                },
            }
        ]
    }}


class SeekRequest(BaseModel):
    time: float = Field(ge=0, description="Target position in seconds (clamped to the duration).")


class NavigateRequest(BaseModel):
    direction: NavigationDirection = Field(description="previous, next, or replay.")


class SpeedRequest(BaseModel):
    """Set an absolute rate or adjust the current one; an empty body resets to 1.0."""

    speed: Optional[float] = Field(default=None, description="Absolute rate, clamped to [0.25, 2.0].")
    delta: Optional[float] = Field(default=None, description="Relative change applied to the current rate.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoopInfo(BaseModel):
    id: str = Field(description="Loop identifier (loop_<ms>).")
    start_time: float = Field(description="Loop start in seconds.")
    end_time: float = Field(description="Loop end in seconds.")
    title: Optional[str] = Field(default=None, description="Display title, e.g. 'Loop 0:10 - 0:15'.")


class SessionStats(BaseModel):
    session_duration: float = Field(description="Seconds since the session started.")
    total_watch_time: float = Field(description="Accumulated watch time in seconds.")
    loop_count: int = Field(description="Loops applied for this video.")
    speed_changes: int = Field(description="Accepted speed changes for this video.")
    average_speed: float = Field(description="Current playback rate.")


class SessionResponse(BaseModel):
    """Live state of one practice session."""

    id: str = Field(description="Session identifier.")
    video_id: str = Field(description="Video identifier.")
    current_time: float = Field(description="Playback position in seconds.")
    duration: float = Field(description="Video duration in seconds (0 when unknown).")
    speed: float = Field(description="Playback rate.")
    vocabulary_mode: bool = Field(description="Vocabulary mode flag.")
    subtitles_visible: bool = Field(description="Subtitle visibility flag.")
    loop_state: str = Field(description="idle, marked_in, marked_out, or looping.")
    mark_in: Optional[float] = Field(default=None, description="IN marker in seconds.")
    mark_out: Optional[float] = Field(default=None, description="OUT marker in seconds.")
    loop: Optional[LoopInfo] = Field(default=None, description="Active loop, if any.")
    sentence_count: int = Field(description="Sentences detected on the track.")
    group_count: int = Field(description="Collapsed cue groups (auto-generated tracks only).")
    stats: SessionStats = Field(description="Session statistics.")


class SentenceInfo(BaseModel):
    index: int = Field(description="Position in the sentence list.")
    start_time: float = Field(description="Sentence start in seconds.")
    end_time: float = Field(description="Sentence end in seconds.")
    text: str = Field(description="Combined sentence text.")
    cue_ids: List[str] = Field(description="Ids of the cues merged into this sentence.")


class SentenceListResponse(BaseModel):
    session_id: str = Field(description="The session these sentences belong to.")
    sentences: List[SentenceInfo] = Field(description="Sentences in time order.")


class NavigationResponse(BaseModel):
    direction: str = Field(description="Resolved direction.")
    from_time: float = Field(description="Position before the seek.")
    to_time: float = Field(description="Position after the seek.")
    source: str = Field(description="Which fallback tier produced the target.")
    matched_text: Optional[str] = Field(default=None, description="Text of the unit landed on.")
    sentence_index: Optional[int] = Field(default=None, description="Sentence index for sentence targets.")


class LoopActionResponse(BaseModel):
    ok: bool = Field(description="False when the action was rejected or the player failed.")
    message: str = Field(description="Short notice for the learner.")
    loop_state: str = Field(description="Loop state after the action.")
    loop: Optional[LoopInfo] = Field(default=None, description="Active loop after the action.")


class SpeedResponse(BaseModel):
    speed: float = Field(description="Applied playback rate.")
    available_speeds: List[float] = Field(description="Preset rates offered to learners.")


class SaveResponse(BaseModel):
    saved: bool = Field(description="True when the snapshot reached the cache.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    sessions: int = Field(description="Number of live practice sessions.")
