"""Previous / next / replay target resolution through a fallback ladder.

WHY: Caption data is often incomplete or misleading: no track at all,
manual tracks with long unpunctuated runs, auto-generated tracks full of
cumulative frames. A navigation keypress must still land somewhere
sensible every time: it must never fail, never stall on "next", and never
leap half a minute because one "sentence" swallowed a whole paragraph.

HOW: resolve() walks a ladder from the most to the least precise source:
  1. precomputed cue groups (auto-generated tracks)
  2. sentences from the SentenceSegmenter (containment, index ±1, gap search)
  3. minimum forward progress for "next" (targets within 0.5s are pushed
     to the first sentence starting more than 0.5s ahead, then to the raw
     cues, then to a flat +1.0s)
  4. raw-cue override when the sentence jump exceeds 20s
  5. fixed ±5s step when no caption data exists
"replay" targets the start of the unit containing (or just before) the
current time, else the preceding five seconds.

RULES:
- Returns exactly one NavigationResult; never raises
- Every to_time is clamped to [0, duration] (upper bound only when known)
- Pure with respect to playback: the caller seeks and emits the event
- Missing data is logged at debug level only
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace

from cue_navigator.config import DEFAULT_THRESHOLDS, Thresholds
from cue_navigator.core.ir import CueGroup, SentenceGroup
from cue_navigator.core.segmenter import SentenceSegmenter

logger = logging.getLogger(__name__)


class Direction(str, enum.Enum):
    PREVIOUS = "previous"
    NEXT = "next"
    REPLAY = "replay"


class NavigationSource(str, enum.Enum):
    """Which rung of the ladder produced a target."""

    CUE_GROUP = "cue_group"
    SENTENCE = "sentence"
    RAW_CUE = "raw_cue"
    FLAT_PROGRESS = "flat_progress"
    FIXED_STEP = "fixed_step"
    SKIP = "skip"
    PERCENTAGE = "percentage"
    CUE = "cue"


@dataclass
class NavigationResult:
    """One resolved navigation target.

    RULES:
    - to_time is already clamped when returned by NavigationResolver
    - matched_text is the text of the unit landed on, or None for time steps
    - sentence_index is set only for sentence-tier results
    """

    direction: Direction
    from_time: float
    to_time: float
    source: NavigationSource
    matched_text: str | None = None
    sentence_index: int | None = None

    @property
    def is_fallback(self) -> bool:
        return self.source in (NavigationSource.FIXED_STEP, NavigationSource.FLAT_PROGRESS)


def clamp_time(time_s: float, duration: float) -> float:
    """Clamp to [0, duration]; a non-positive duration means "unknown"."""
    time_s = max(0.0, time_s)
    if duration > 0:
        time_s = min(time_s, duration)
    return time_s


class NavigationResolver:
    """Resolve navigation targets over sentences and cue groups.

    WHY: The controls need a single call that answers "where does
    previous/next/replay go from here" regardless of what caption data is
    available.

    HOW: Holds a SentenceSegmenter and the current track's cue groups
    (empty for manual tracks). Each resolve() call is independent.

    RULES:
    - set_groups() must be called on a track switch (with [] for manual tracks)
    - Unknown directions resolve to the clamped current time
    """

    def __init__(
        self,
        segmenter: SentenceSegmenter,
        groups: list[CueGroup] | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self._segmenter = segmenter
        self._groups: list[CueGroup] = list(groups or [])
        self._thresholds = thresholds

    def set_groups(self, groups: list[CueGroup] | None) -> None:
        self._groups = sorted(groups or [], key=lambda g: (g.start, g.end))

    @property
    def groups(self) -> list[CueGroup]:
        return list(self._groups)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def resolve(self, direction: Direction | str, current_time: float, duration: float) -> NavigationResult:
        """Resolve one navigation target.

        Args:
            direction: "previous", "next", or "replay".
            current_time: Playback cursor in seconds.
            duration: Video duration in seconds (<= 0 when unknown).

        Returns:
            NavigationResult with to_time clamped to [0, duration].
        """
        try:
            direction = Direction(direction)
        except ValueError:
            logger.warning("Unknown navigation direction %r; staying put", direction)
            return NavigationResult(
                direction=Direction.REPLAY,
                from_time=current_time,
                to_time=clamp_time(current_time, duration),
                source=NavigationSource.FIXED_STEP,
            )

        try:
            if direction is Direction.REPLAY:
                result = self._replay(current_time)
            else:
                result = self._step(direction, current_time)
        except Exception:
            logger.exception("Navigation ladder failed; using fixed step")
            result = self._fixed_step(direction, current_time)

        return replace(result, to_time=clamp_time(result.to_time, duration))

    def skip_target(self, current_time: float, seconds: float, duration: float) -> NavigationResult:
        """Relative jump by a fixed number of seconds."""
        direction = Direction.NEXT if seconds > 0 else Direction.PREVIOUS
        return NavigationResult(
            direction=direction,
            from_time=current_time,
            to_time=clamp_time(current_time + seconds, duration),
            source=NavigationSource.SKIP,
        )

    def percentage_target(self, current_time: float, percentage: float, duration: float) -> NavigationResult:
        """Absolute jump to a percentage of the video duration."""
        target = clamp_time(duration * (percentage / 100.0), duration)
        direction = Direction.NEXT if target > current_time else Direction.PREVIOUS
        return NavigationResult(
            direction=direction,
            from_time=current_time,
            to_time=target,
            source=NavigationSource.PERCENTAGE,
        )

    def cue_target(self, current_time: float, cue_id: str, duration: float) -> NavigationResult | None:
        """Jump to the start of the sentence holding a cue; None if the cue is unknown."""
        sentence = self._segmenter.find_by_cue_id(cue_id)
        if sentence is None:
            logger.debug("No sentence holds cue %s", cue_id)
            return None
        target = clamp_time(sentence.start_time, duration)
        direction = Direction.NEXT if target > current_time else Direction.PREVIOUS
        return NavigationResult(
            direction=direction,
            from_time=current_time,
            to_time=target,
            source=NavigationSource.CUE,
            matched_text=sentence.combined_text,
            sentence_index=self._segmenter.sentence_index(sentence),
        )

    # ------------------------------------------------------------------
    # Ladder
    # ------------------------------------------------------------------

    def _step(self, direction: Direction, t: float) -> NavigationResult:
        if self._groups:
            group = self._group_step(direction, t)
            if group is not None:
                return NavigationResult(direction, t, group.start, NavigationSource.CUE_GROUP, group.text)
            logger.debug("No cue group %s %.2fs; at track boundary", direction.value, t)
            return self._boundary(
                direction, t, self._groups[0].start, self._groups[0].text, NavigationSource.CUE_GROUP
            )

        sentences = self._segmenter.get_available_sentences()
        if not sentences:
            logger.debug("No caption data; fixed %.1fs step", self._thresholds.fallback_step_s)
            return self._fixed_step(direction, t)

        result = self._sentence_step(direction, t, sentences)
        if result is None:
            logger.debug("No sentence %s %.2fs; at track boundary", direction.value, t)
            first = sentences[0]
            return self._boundary(direction, t, first.start_time, first.combined_text, NavigationSource.SENTENCE)

        if direction is Direction.NEXT:
            result = self._ensure_progress(t, result)
        if result.source is NavigationSource.SENTENCE:
            result = self._check_plausible(direction, t, result)
        return result

    def _group_step(self, direction: Direction, t: float) -> CueGroup | None:
        eps = self._thresholds.boundary_epsilon_s
        if direction is Direction.NEXT:
            for group in self._groups:
                if group.start > t + eps:
                    return group
            return None
        for group in reversed(self._groups):
            if group.end < t - eps:
                return group
        return None

    def _sentence_step(
        self,
        direction: Direction,
        t: float,
        sentences: list[SentenceGroup],
    ) -> NavigationResult | None:
        current = self._segmenter.get_sentence_at_time(t)
        target: SentenceGroup | None = None

        if current is not None:
            index = self._segmenter.sentence_index(current)
            target_index = index + 1 if direction is Direction.NEXT else index - 1
            if 0 <= target_index < len(sentences):
                target = sentences[target_index]
        elif direction is Direction.NEXT:
            target = self._segmenter.first_starting_after(t)
        else:
            target = self._segmenter.last_ending_before(t)

        if target is None:
            return None
        return self._sentence_result(direction, t, target)

    def _sentence_result(self, direction: Direction, t: float, sentence: SentenceGroup) -> NavigationResult:
        return NavigationResult(
            direction=direction,
            from_time=t,
            to_time=sentence.start_time,
            source=NavigationSource.SENTENCE,
            matched_text=sentence.combined_text,
            sentence_index=self._segmenter.sentence_index(sentence),
        )

    def _ensure_progress(self, t: float, result: NavigationResult) -> NavigationResult:
        min_progress = self._thresholds.min_progress_s
        if result.to_time - t >= min_progress:
            return result

        further = self._segmenter.first_starting_after(t + min_progress)
        if further is not None:
            return self._sentence_result(Direction.NEXT, t, further)

        raw = self._raw_cue_step(Direction.NEXT, t, min_gap=min_progress)
        if raw is not None:
            return raw

        return NavigationResult(
            Direction.NEXT, t, t + self._thresholds.flat_progress_s, NavigationSource.FLAT_PROGRESS
        )

    def _check_plausible(self, direction: Direction, t: float, result: NavigationResult) -> NavigationResult:
        if abs(result.to_time - t) <= self._thresholds.implausible_jump_s:
            return result
        raw = self._raw_cue_step(direction, t, min_gap=self._thresholds.boundary_epsilon_s)
        if raw is None:
            return result
        logger.debug(
            "Sentence jump %.1fs -> %.1fs is implausible; using raw cue at %.1fs",
            t,
            result.to_time,
            raw.to_time,
        )
        return raw

    def _raw_cue_step(self, direction: Direction, t: float, min_gap: float) -> NavigationResult | None:
        cues = self._segmenter.deduplicated_cues()
        if direction is Direction.NEXT:
            for cue in cues:
                if cue.start_time > t + min_gap:
                    return NavigationResult(direction, t, cue.start_time, NavigationSource.RAW_CUE, cue.text)
            return None
        for cue in reversed(cues):
            if cue.end_time < t - min_gap:
                return NavigationResult(direction, t, cue.start_time, NavigationSource.RAW_CUE, cue.text)
        return None

    def _boundary(
        self,
        direction: Direction,
        t: float,
        first_start: float,
        first_text: str,
        source: NavigationSource,
    ) -> NavigationResult:
        if direction is Direction.NEXT:
            return NavigationResult(
                direction, t, t + self._thresholds.flat_progress_s, NavigationSource.FLAT_PROGRESS
            )
        if first_start < t:
            return NavigationResult(direction, t, first_start, source, first_text)
        return NavigationResult(direction, t, 0.0, NavigationSource.FIXED_STEP)

    def _replay(self, t: float) -> NavigationResult:
        if self._groups:
            for group in reversed(self._groups):
                if group.start <= t:
                    return NavigationResult(Direction.REPLAY, t, group.start, NavigationSource.CUE_GROUP, group.text)

        sentence = self._segmenter.get_sentence_at_time(t) or self._segmenter.last_starting_at_or_before(t)
        if sentence is not None:
            return self._sentence_result(Direction.REPLAY, t, sentence)

        logger.debug("Nothing to replay at %.2fs; replaying preceding %.1fs", t, self._thresholds.fallback_step_s)
        return self._fixed_step(Direction.REPLAY, t)

    def _fixed_step(self, direction: Direction, t: float) -> NavigationResult:
        step = self._thresholds.fallback_step_s
        offset = step if direction is Direction.NEXT else -step
        return NavigationResult(direction, t, t + offset, NavigationSource.FIXED_STEP)
