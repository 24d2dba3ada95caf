"""Collapse cumulative auto-generated caption frames into stable plateaus.

WHY: Auto-generated (ASR) tracks reveal text word by word. The player
reports every reveal step as its own cue ("A", "A B", "A B C"), so a
naive "next cue" jump advances a fraction of a second and lands on the
same words again. Collapsing the frames yields one navigation target per
stable stretch of text.

HOW: Sort cues by start, then walk them once:
  - a cue continues the active group when its text equals or cumulatively
    extends the active text (word-level prefix, either direction) and the
    gap since the active group's end is within the grouping gap (0.4s);
    the group end grows and the longer text wins
  - anything else starts a new group
A post-pass merges every group shorter than the minimum plateau (0.8s)
into its predecessor, which absorbs the end time and the text.

RULES:
- Only auto-generated tracks are collapsed; manual tracks return []
- Host-precomputed groups on the track are used as-is
- Empty-text frames are skipped
- Single cue → one group; empty input → empty list
- Pure for a fixed cue list; CueGroupCollapser memoizes the last result
"""

from __future__ import annotations

import logging
from typing import Iterable

from cue_navigator.config import DEFAULT_THRESHOLDS, Thresholds
from cue_navigator.core.ir import Cue, CueGroup, SubtitleTrack
from cue_navigator.core.segmenter import normalize_text, sort_cues

logger = logging.getLogger(__name__)


def _extends(longer: str, shorter: str) -> bool:
    """True if `longer` starts with every word of `shorter`, in order."""
    short_words = shorter.split()
    return longer.split()[: len(short_words)] == short_words


def _same_plateau(active_text: str, text: str) -> bool:
    return _extends(text, active_text) or _extends(active_text, text)


def _absorb_text(previous: str, following: str) -> str:
    if _extends(following, previous):
        return following
    if _extends(previous, following):
        return previous
    return f"{previous} {following}"


def collapse_cues(
    cues: Iterable[Cue],
    gap_s: float = 0.4,
    min_group_s: float = 0.8,
) -> list[CueGroup]:
    """Collapse cumulative cue frames into CueGroup plateaus.

    Args:
        cues: Raw cues from an auto-generated track (any order).
        gap_s: Maximum silence between frames of one plateau.
        min_group_s: Plateaus shorter than this merge into their predecessor.

    Returns:
        Time-ordered CueGroup list.
    """
    # Accumulators: [start, end, text]
    groups: list[list] = []

    for cue in sort_cues(cues):
        text = normalize_text(cue.text)
        if not text:
            continue

        if groups:
            active = groups[-1]
            gap = cue.start_time - active[1]
            if gap <= gap_s and _same_plateau(active[2], text):
                active[1] = max(active[1], cue.end_time)
                if len(text.split()) > len(active[2].split()):
                    active[2] = text
                continue

        groups.append([cue.start_time, cue.end_time, text])

    merged: list[list] = []
    for group in groups:
        if merged and group[1] - group[0] < min_group_s:
            previous = merged[-1]
            previous[1] = max(previous[1], group[1])
            previous[2] = _absorb_text(previous[2], group[2])
        else:
            merged.append(list(group))

    return [CueGroup(start=s, end=e, text=t) for s, e, t in merged]


class CueGroupCollapser:
    """Memoizing wrapper around collapse_cues for the active track.

    WHY: Navigation asks for groups on every keypress, but the cue list
    only changes on a track switch.

    RULES:
    - The cache key is the sorted cue tuple; any cue change recomputes
    - Returned lists are copies; the frozen CueGroup items are shared
    """

    def __init__(self, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds
        self._signature: tuple[Cue, ...] | None = None
        self._groups: list[CueGroup] = []

    def collapse(self, cues: Iterable[Cue]) -> list[CueGroup]:
        signature = tuple(sort_cues(cues))
        if signature != self._signature:
            self._groups = collapse_cues(
                signature,
                gap_s=self._thresholds.group_gap_s,
                min_group_s=self._thresholds.min_group_s,
            )
            self._signature = signature
            logger.debug(
                "Collapsed %d auto-generated cues into %d groups",
                len(signature),
                len(self._groups),
            )
        return list(self._groups)

    def groups_for_track(self, track: SubtitleTrack | None) -> list[CueGroup]:
        """Return navigation groups for a track, or [] when it is not auto-generated."""
        if track is None or not track.is_auto_generated:
            return []
        if track.groups is not None:
            return sorted(track.groups, key=lambda g: (g.start, g.end))
        return self.collapse(track.cues)
