"""Typed control events and the publish/subscribe channel that carries them.

WHY: UI surfaces, analytics, and tests all want to know when the learner
navigated, toggled a loop, or changed speed. A closed set of typed event
models makes every payload explicit and lets subscribers filter by type
instead of poking at loosely-shaped dicts.

HOW: Each event is a Pydantic model with a literal ``type`` tag; the
ControlsEvent union discriminates on that tag, so parse_event() turns a
plain dict back into the right model. EventChannel keeps an explicit
subscriber list and delivers each published event synchronously.

RULES:
- Event types: sentence_nav, loop_toggle, speed_change, vocabulary_mode
- Every event carries type, value, timestamp (epoch seconds), metadata
- Payload fields serialize as camelCase with model_dump(by_alias=True)
- A failing subscriber is logged and skipped; delivery continues
"""

from __future__ import annotations

import logging
import time
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from cue_navigator.core.ir import LoopSegment
from cue_navigator.core.navigation import NavigationResult

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class SentenceNavValue(_Payload):
    """Where a navigation came from and where it landed."""

    direction: str = Field(description="previous, next, or replay.")
    from_time: float = Field(description="Cursor before the seek, in seconds.")
    to_time: float = Field(description="Seek target, in seconds.")
    matched_text: Optional[str] = Field(default=None, description="Text of the unit landed on.")
    sentence_index: Optional[int] = Field(default=None, description="Index of the sentence landed on.")
    source: str = Field(default="fixed_step", description="Ladder rung that produced the target.")
    fallback: bool = Field(default=False, description="True when no caption unit was used.")

    @classmethod
    def from_result(cls, result: NavigationResult) -> SentenceNavValue:
        return cls(
            direction=result.direction.value,
            from_time=result.from_time,
            to_time=result.to_time,
            matched_text=result.matched_text,
            sentence_index=result.sentence_index,
            source=result.source.value,
            fallback=result.is_fallback,
        )


class LoopValue(_Payload):
    """An applied loop as seen by subscribers."""

    id: str
    start_time: float
    end_time: float
    is_active: bool = True
    title: Optional[str] = None

    @classmethod
    def from_segment(cls, segment: LoopSegment) -> LoopValue:
        return cls(
            id=segment.id,
            start_time=segment.start_time,
            end_time=segment.end_time,
            is_active=segment.is_active,
            title=segment.title,
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class _Event(BaseModel):
    timestamp: float = Field(default_factory=time.time)
    metadata: Optional[Dict[str, Any]] = None


class SentenceNavEvent(_Event):
    type: Literal["sentence_nav"] = "sentence_nav"
    value: SentenceNavValue


class LoopToggleEvent(_Event):
    """value is the new loop, or None when the loop was cleared."""

    type: Literal["loop_toggle"] = "loop_toggle"
    value: Optional[LoopValue] = None


class SpeedChangeEvent(_Event):
    type: Literal["speed_change"] = "speed_change"
    value: float


class VocabularyModeEvent(_Event):
    type: Literal["vocabulary_mode"] = "vocabulary_mode"
    value: bool


ControlsEvent = Annotated[
    Union[SentenceNavEvent, LoopToggleEvent, SpeedChangeEvent, VocabularyModeEvent],
    Field(discriminator="type"),
]

EVENT_TYPES: Tuple[str, ...] = ("sentence_nav", "loop_toggle", "speed_change", "vocabulary_mode")

_event_adapter: TypeAdapter = TypeAdapter(ControlsEvent)


def parse_event(data: Dict[str, Any]) -> Any:
    """Validate a plain dict into the matching event model.

    Raises:
        pydantic.ValidationError: If the type tag is unknown or the payload
            does not match its model.
    """
    return _event_adapter.validate_python(data)


EventCallback = Callable[[Any], None]


class EventChannel:
    """Explicit publish/subscribe channel for control events.

    WHY: Components publish without knowing who listens; listeners
    subscribe to everything or to one event type.

    RULES:
    - subscribe() returns an unsubscribe callable
    - Delivery is synchronous, in subscription order
    - Subscriber exceptions are logged, never propagated to the publisher
    """

    def __init__(self) -> None:
        self._subscribers: List[Tuple[Optional[str], EventCallback]] = []

    def subscribe(self, callback: EventCallback, event_type: Optional[str] = None) -> Callable[[], None]:
        if event_type is not None and event_type not in EVENT_TYPES:
            raise ValueError("Unknown event type '{}'".format(event_type))
        entry = (event_type, callback)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    def unsubscribe(self, callback: EventCallback) -> bool:
        before = len(self._subscribers)
        self._subscribers = [s for s in self._subscribers if s[1] is not callback]
        return len(self._subscribers) != before

    def publish(self, event: Any) -> None:
        for event_type, callback in list(self._subscribers):
            if event_type is not None and event_type != event.type:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed for %s", event.type)

    def clear(self) -> None:
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
