"""Sentence detection over an ordered caption cue list.

WHY: Caption cues break wherever the display line fills up, not where a
sentence ends. Navigating cue by cue lands mid-phrase, so adjacent cues
are grouped into sentences that a learner can step through and replay.

HOW: Cues are sorted by start time and walked once. A cue closes the
running sentence when a boundary heuristic fires:
  1. its text ends with sentence punctuation (".", "!", "?")
  2. the silence before the next cue exceeds the sentence gap (1.0s)
  3. the next cue starts with an uppercase letter
A boundary is suppressed while the next cue starts before the running
sentence has ended, so sentences never overlap each other. Blank cues
never decide a boundary; they belong to the sentence running around them.

RULES:
- Deterministic and idempotent for a fixed cue list
- Every cue lands in exactly one sentence (no loss, no duplication)
- Sentences are time-ordered; neighbouring sentences may share an
  endpoint but never overlap
- Empty cue list, or one with only blank cues → no sentences (callers
  fall back to fixed time steps)
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from cue_navigator.config import DEFAULT_THRESHOLDS, Thresholds
from cue_navigator.core.ir import Cue, SentenceGroup

logger = logging.getLogger(__name__)

_SENTENCE_END_RE = re.compile(r"[.!?]+\s*$")
_SENTENCE_START_RE = re.compile(r"^[A-Z]")


def sort_cues(cues: Iterable[Cue]) -> list[Cue]:
    """Return cues ordered by start time (ties broken by end time)."""
    return sorted(cues, key=lambda c: (c.start_time, c.end_time))


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace (including caption line breaks) to single spaces."""
    return " ".join(text.split())


def deduplicate_cues(cues: Iterable[Cue]) -> list[Cue]:
    """Drop empty cues and exact repeats of (start time, text).

    WHY: Auto-generated tracks repeat the same frame several times. The
    raw-cue navigation tier needs one entry per distinct frame.

    RULES:
    - Output is sorted by start time
    - Start times are compared at millisecond resolution
    - Text is compared after whitespace normalization
    """
    seen: set[tuple[int, str]] = set()
    result: list[Cue] = []
    for cue in sort_cues(cues):
        text = normalize_text(cue.text)
        if not text:
            continue
        key = (round(cue.start_time * 1000), text)
        if key in seen:
            continue
        seen.add(key)
        result.append(cue)
    return result


def _ends_sentence(cue: Cue, next_cue: Cue, running_end: float, gap_s: float) -> bool:
    if next_cue.start_time < running_end:
        return False
    if _SENTENCE_END_RE.search(cue.text.strip()):
        return True
    if next_cue.start_time - cue.end_time > gap_s:
        return True
    return bool(_SENTENCE_START_RE.match(next_cue.text.strip()))


def _build_sentence(start_index: int, end_index: int, segments: list[Cue]) -> SentenceGroup:
    parts = [normalize_text(c.text) for c in segments]
    return SentenceGroup(
        start_index=start_index,
        end_index=end_index,
        combined_text=" ".join(p for p in parts if p),
        segments=list(segments),
    )


def detect_sentences(cues: list[Cue], sentence_gap_s: float = 1.0) -> list[SentenceGroup]:
    """Group time-sorted cues into sentences.

    Args:
        cues: Cues already sorted by start time (see sort_cues).
        sentence_gap_s: Silence longer than this ends a sentence.

    Returns:
        Time-ordered SentenceGroup list covering every cue exactly once.
    """
    sentences: list[SentenceGroup] = []
    current: list[Cue] = []
    start_index = 0
    running_end = 0.0

    i = 0
    while i < len(cues):
        cue = cues[i]
        running_end = cue.end_time if not current else max(running_end, cue.end_time)
        current.append(cue)
        i += 1
        if not normalize_text(cue.text):
            continue

        # Blank cues up to the next spoken cue stay with this sentence
        j = i
        blank_end = running_end
        while j < len(cues) and not normalize_text(cues[j].text):
            blank_end = max(blank_end, cues[j].end_time)
            j += 1
        if j < len(cues) and _ends_sentence(cue, cues[j], blank_end, sentence_gap_s):
            current.extend(cues[i:j])
            sentences.append(_build_sentence(start_index, j - 1, current))
            current = []
            start_index = j
            i = j

    if any(normalize_text(c.text) for c in current):
        sentences.append(_build_sentence(start_index, len(cues) - 1, current))
    return sentences


class SentenceSegmenter:
    """Sentence index over the current track's cues.

    WHY: Navigation, replay, and the controls need "which sentence is
    playing" and "which sentence comes next" answered repeatedly while
    the cue list only changes on a track switch.

    HOW: load_cues() sorts and groups once; queries scan the cached list.
    Reloading an identical cue list is a no-op.

    RULES:
    - get_available_sentences() returns a fresh list (callers may mutate it)
    - get_sentence_at_time() prefers the later sentence on a shared endpoint
    - Gap queries are strict: "after" means start > t, "before" means end < t
    """

    def __init__(
        self,
        cues: Iterable[Cue] | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self._thresholds = thresholds
        self._cues: list[Cue] = []
        self._sentences: list[SentenceGroup] = []
        self._signature: tuple[Cue, ...] | None = None
        if cues is not None:
            self.load_cues(cues)

    def load_cues(self, cues: Iterable[Cue]) -> list[SentenceGroup]:
        ordered = sort_cues(cues)
        signature = tuple(ordered)
        if signature == self._signature:
            return self.get_available_sentences()

        self._cues = ordered
        self._signature = signature
        self._sentences = detect_sentences(ordered, self._thresholds.sentence_gap_s)
        logger.debug(
            "Segmented %d cues into %d sentences", len(ordered), len(self._sentences)
        )
        return self.get_available_sentences()

    def clear(self) -> None:
        self._cues = []
        self._sentences = []
        self._signature = None

    @property
    def cues(self) -> list[Cue]:
        return list(self._cues)

    @property
    def has_data(self) -> bool:
        return bool(self._sentences)

    def get_available_sentences(self) -> list[SentenceGroup]:
        return list(self._sentences)

    def get_sentence_at_time(self, time_s: float) -> SentenceGroup | None:
        for sentence in reversed(self._sentences):
            if sentence.contains(time_s):
                return sentence
        return None

    def sentence_index(self, sentence: SentenceGroup | None) -> int:
        """Position of a sentence in the available list, or -1."""
        if sentence is None:
            return -1
        for i, candidate in enumerate(self._sentences):
            if candidate.start_index == sentence.start_index:
                return i
        return -1

    def find_by_cue_id(self, cue_id: str) -> SentenceGroup | None:
        for sentence in self._sentences:
            if any(cue.id == cue_id for cue in sentence.segments):
                return sentence
        return None

    def first_starting_after(self, time_s: float) -> SentenceGroup | None:
        for sentence in self._sentences:
            if sentence.start_time > time_s:
                return sentence
        return None

    def last_ending_before(self, time_s: float) -> SentenceGroup | None:
        for sentence in reversed(self._sentences):
            if sentence.end_time < time_s:
                return sentence
        return None

    def last_starting_at_or_before(self, time_s: float) -> SentenceGroup | None:
        for sentence in reversed(self._sentences):
            if sentence.start_time <= time_s:
                return sentence
        return None

    def deduplicated_cues(self) -> list[Cue]:
        return deduplicate_cues(self._cues)
