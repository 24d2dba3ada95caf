"""Tests for the previous / next / replay fallback ladder.

WHY: Navigation must always land somewhere sensible: never raise, never
stall on "next", never leave [0, duration], and never leap half a minute
because one sentence swallowed a paragraph.

HOW: One class per ladder rung, plus property checks that sweep the
cursor across the shared MANUAL_CUES track.
"""

from __future__ import annotations

import pytest

from cue_navigator.core.ir import CueGroup
from cue_navigator.core.navigation import (
    Direction,
    NavigationResolver,
    NavigationSource,
    clamp_time,
)
from cue_navigator.core.segmenter import SentenceSegmenter

from tests.conftest import MANUAL_CUES, make_cues


def _resolver(cues=(), groups=None) -> NavigationResolver:
    return NavigationResolver(SentenceSegmenter(list(cues)), groups=groups)


GROUPS = [CueGroup(0.0, 2.0, "a"), CueGroup(3.0, 5.0, "b"), CueGroup(6.0, 8.0, "c")]


class TestClampTime:
    def test_lower_bound(self):
        assert clamp_time(-3.0, 10.0) == 0.0

    def test_upper_bound(self):
        assert clamp_time(12.0, 10.0) == 10.0

    def test_unknown_duration_has_no_upper_bound(self):
        assert clamp_time(120.0, 0.0) == 120.0


class TestSentenceTier:
    def test_previous_from_inside_second_sentence(self):
        resolver = _resolver(make_cues((0.0, 3.0, "Hello"), (4.0, 7.0, "World")))
        result = resolver.resolve("previous", 5.0, 60.0)
        assert result.to_time == 0.0
        assert result.source is NavigationSource.SENTENCE
        assert result.sentence_index == 0
        assert result.matched_text == "Hello"

    def test_next_from_inside_first_sentence(self):
        resolver = _resolver(make_cues((0.0, 3.0, "Hello"), (4.0, 7.0, "World")))
        result = resolver.resolve(Direction.NEXT, 1.0, 60.0)
        assert result.to_time == 4.0
        assert result.sentence_index == 1

    def test_next_from_gap_uses_first_sentence_after(self):
        resolver = _resolver(make_cues((0.0, 1.0, "One."), (3.0, 4.0, "Two.")))
        assert resolver.resolve("next", 1.5, 60.0).to_time == 3.0

    def test_previous_from_gap_uses_last_sentence_before(self):
        result = _resolver(MANUAL_CUES).resolve("previous", 8.1, 60.0)
        assert result.to_time == 4.5

    def test_previous_in_first_sentence_goes_to_its_start(self):
        result = _resolver(MANUAL_CUES).resolve("previous", 1.5, 60.0)
        assert result.to_time == 0.0

    def test_contiguous_sentences_step_one_at_a_time(self):
        resolver = _resolver(make_cues((0.0, 2.0, "One."), (2.0, 4.0, "Two."), (4.0, 6.0, "Three.")))
        landed = resolver.resolve("next", 1.0, 60.0).to_time
        assert landed == 2.0

        replay = resolver.resolve("replay", landed, 60.0)
        assert (replay.to_time, replay.matched_text) == (2.0, "Two.")

        previous = resolver.resolve("previous", 4.0, 60.0)
        assert (previous.to_time, previous.matched_text) == (2.0, "Two.")
        assert resolver.resolve("next", 2.0, 60.0).to_time == 4.0

    def test_next_after_last_sentence_makes_flat_progress(self):
        result = _resolver(MANUAL_CUES).resolve("next", 10.0, 60.0)
        assert result.to_time == pytest.approx(11.0)
        assert result.source is NavigationSource.FLAT_PROGRESS


class TestMinimumProgress:
    def test_too_close_target_skips_to_further_sentence(self):
        resolver = _resolver(make_cues((0.0, 1.0, "One."), (1.2, 2.0, "Two."), (3.0, 4.0, "Three.")))
        result = resolver.resolve("next", 1.0, 60.0)
        assert result.to_time == 3.0
        assert result.source is NavigationSource.SENTENCE

    def test_falls_back_to_raw_cue(self):
        resolver = _resolver(make_cues((0.0, 1.0, "One."), (1.2, 2.0, "two"), (2.0, 3.0, "three")))
        result = resolver.resolve("next", 1.0, 60.0)
        assert result.to_time == 2.0
        assert result.source is NavigationSource.RAW_CUE

    def test_falls_back_to_flat_step(self):
        resolver = _resolver(make_cues((0.0, 1.0, "One."), (1.2, 2.0, "Two.")))
        result = resolver.resolve("next", 1.0, 60.0)
        assert result.to_time == pytest.approx(2.0)
        assert result.source is NavigationSource.FLAT_PROGRESS
        assert result.is_fallback


class TestImplausibleJump:
    CUES = make_cues(
        (0.0, 2.0, "we talk"),
        (2.0, 25.0, "and talk"),
        (25.0, 27.0, "Done."),
    )

    def test_long_next_jump_uses_raw_cue(self):
        result = _resolver(self.CUES).resolve("next", 1.0, 60.0)
        assert result.to_time == 2.0
        assert result.source is NavigationSource.RAW_CUE

    def test_long_previous_jump_uses_raw_cue(self):
        result = _resolver(self.CUES).resolve("previous", 26.0, 60.0)
        assert result.to_time == 2.0
        assert result.source is NavigationSource.RAW_CUE


class TestGroupTier:
    def test_next_group(self):
        result = _resolver(MANUAL_CUES, GROUPS).resolve("next", 3.0, 60.0)
        assert result.to_time == 6.0
        assert result.source is NavigationSource.CUE_GROUP
        assert result.matched_text == "c"

    def test_previous_group(self):
        result = _resolver(MANUAL_CUES, GROUPS).resolve("previous", 5.5, 60.0)
        assert result.to_time == 3.0

    def test_next_past_last_group(self):
        result = _resolver(MANUAL_CUES, GROUPS).resolve("next", 7.0, 60.0)
        assert result.to_time == pytest.approx(8.0)
        assert result.source is NavigationSource.FLAT_PROGRESS

    def test_previous_inside_first_group(self):
        result = _resolver(MANUAL_CUES, GROUPS).resolve("previous", 1.0, 60.0)
        assert result.to_time == 0.0
        assert result.source is NavigationSource.CUE_GROUP

    def test_set_groups_sorts(self):
        resolver = _resolver()
        resolver.set_groups(list(reversed(GROUPS)))
        assert [g.text for g in resolver.groups] == ["a", "b", "c"]


class TestFixedStep:
    def test_next_without_data(self):
        result = _resolver().resolve("next", 10.0, 60.0)
        assert result.to_time == 15.0
        assert result.source is NavigationSource.FIXED_STEP

    def test_previous_without_data_clamps_to_zero(self):
        assert _resolver().resolve("previous", 3.0, 60.0).to_time == 0.0

    def test_next_without_data_clamps_to_duration(self):
        assert _resolver().resolve("next", 58.0, 60.0).to_time == 60.0

    def test_unknown_duration(self):
        assert _resolver().resolve("next", 100.0, 0.0).to_time == 105.0

    def test_ladder_failure_becomes_fixed_step(self, monkeypatch):
        resolver = _resolver(MANUAL_CUES)

        def boom():
            raise RuntimeError("broken")

        monkeypatch.setattr(resolver._segmenter, "get_available_sentences", boom)
        result = resolver.resolve("next", 10.0, 60.0)
        assert result.to_time == 15.0
        assert result.source is NavigationSource.FIXED_STEP

    def test_unknown_direction_stays_put(self):
        result = _resolver(MANUAL_CUES).resolve("sideways", 5.0, 60.0)
        assert result.to_time == 5.0
        assert result.direction is Direction.REPLAY


class TestReplay:
    def test_replay_inside_sentence(self):
        result = _resolver(MANUAL_CUES).resolve("replay", 5.0, 60.0)
        assert result.to_time == 4.5
        assert result.source is NavigationSource.SENTENCE

    def test_replay_in_gap_uses_preceding_sentence(self):
        assert _resolver(MANUAL_CUES).resolve("replay", 4.2, 60.0).to_time == 0.0

    def test_replay_with_groups(self):
        result = _resolver(MANUAL_CUES, GROUPS).resolve("replay", 5.5, 60.0)
        assert result.to_time == 3.0
        assert result.source is NavigationSource.CUE_GROUP

    def test_replay_without_data(self):
        assert _resolver().resolve("replay", 10.0, 60.0).to_time == 5.0


class TestDirectTargets:
    def test_skip_target(self):
        result = _resolver().skip_target(10.0, -15.0, 60.0)
        assert result.to_time == 0.0
        assert result.direction is Direction.PREVIOUS
        assert result.source is NavigationSource.SKIP

    def test_percentage_target(self):
        result = _resolver().percentage_target(10.0, 50.0, 60.0)
        assert result.to_time == 30.0
        assert result.direction is Direction.NEXT

    def test_cue_target(self):
        result = _resolver(MANUAL_CUES).cue_target(0.0, "c4", 60.0)
        assert result.to_time == 4.5
        assert result.sentence_index == 1

    def test_unknown_cue_target(self):
        assert _resolver(MANUAL_CUES).cue_target(0.0, "nope", 60.0) is None


class TestProperties:
    SWEEP = [i * 0.25 for i in range(0, 52)]

    @pytest.mark.parametrize("groups", [None, GROUPS])
    def test_next_always_moves_forward(self, groups):
        resolver = _resolver(MANUAL_CUES, groups)
        for t in self.SWEEP:
            assert resolver.resolve("next", t, 0.0).to_time > t

    @pytest.mark.parametrize("groups", [None, GROUPS])
    def test_previous_never_moves_forward(self, groups):
        resolver = _resolver(MANUAL_CUES, groups)
        for t in self.SWEEP:
            assert resolver.resolve("previous", t, 0.0).to_time <= t

    @pytest.mark.parametrize("direction", ["previous", "next", "replay"])
    def test_targets_stay_within_duration(self, direction):
        resolver = _resolver(MANUAL_CUES, GROUPS)
        for t in self.SWEEP:
            to_time = resolver.resolve(direction, t, 10.0).to_time
            assert 0.0 <= to_time <= 10.0
