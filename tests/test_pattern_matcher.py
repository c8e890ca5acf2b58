"""Tests for tolerance based pattern matching."""

import pytest

from common.pattern_matcher import matches
from common.pattern_matcher import sides_match
from common.tap_pattern import Side
from common.tap_pattern import TapPattern

from conftest import make_pattern


REFERENCE_PAUSES = [225158691, 222741885, 769665620, 695953369, 673431397, 1052740898, 206970215, 251190185]
MATCHING_PAUSES = [223968506, 229278565, 882171631, 716393942, 770782471, 1162902832, 244018555, 254455566]
FAILING_PAUSES = [
    [161102294, 151153565, 654687604, 433697574, 458740234, 1007165550, 165161133, 166961670],
    [176220766, 161132813, 558929443, 166168213, 171203613, 584375129, 40283203, 125885010],
    [161132813, 558929443, 166168213, 171203613, 584375129, 40283203, 125885010, 171325683],
    [558929443, 166168213, 171203613, 584375129, 40283203, 125885010, 171325683, 281860352],
    [166168213, 171203613, 584375129, 40283203, 125885010, 171325683, 281860352, 45349121],
    [171203613, 584375129, 40283203, 125885010, 171325683, 281860352, 45349121, 171277161],
    [166266085, 146026611, 699932969, 171234131, 171173096, 704925537, 156097412, 161132813],
]


def from_pauses(pauses: list[int], first_side: Side = Side.BACK) -> TapPattern:
    """First tap on ``first_side``, then one BACK tap after each pause."""
    pattern = TapPattern().append(first_side, 0)
    for pause in pauses:
        pattern.append(Side.BACK, pause)
    return pattern


def two_pauses(a: int, b: int) -> TapPattern:
    return make_pattern((0, Side.BACK), (a, Side.BACK), (b, Side.BACK))


class TestSides:
    """Side comparison including the ANY wildcard."""

    def test_any_matches_every_side_both_ways(self):
        for side in Side:
            assert sides_match(Side.ANY, side)
            assert sides_match(side, Side.ANY)

    def test_distinct_sides(self):
        assert not sides_match(Side.BACK, Side.FRONT)


class TestTrivialPatterns:
    """Empty and single-tap patterns."""

    def test_empty_patterns_match(self):
        assert matches(TapPattern(), TapPattern())

    def test_none_never_matches(self):
        assert not matches(TapPattern(), None)

    def test_single_tap(self):
        back = TapPattern().append(Side.BACK, 0)
        assert not matches(back, TapPattern())
        assert matches(back, TapPattern().append(Side.BACK, 0))
        assert matches(back, TapPattern().append(Side.ANY, 0))
        assert not matches(back, TapPattern().append(Side.FRONT, 0))


class TestReferenceScenario:
    """An eight-pause reference gesture against recorded repetitions."""

    @pytest.fixture
    def reference(self):
        return from_pauses(REFERENCE_PAUSES)

    def test_repetition_matches(self, reference):
        assert matches(reference, from_pauses(MATCHING_PAUSES))

    def test_any_first_side_matches(self, reference):
        assert matches(reference, from_pauses(MATCHING_PAUSES, Side.ANY))

    def test_wrong_first_side(self, reference):
        assert not matches(reference, from_pauses(MATCHING_PAUSES, Side.BOTTOM))

    def test_missing_tap(self, reference):
        assert not matches(reference, from_pauses(MATCHING_PAUSES[:-1]))

    @pytest.mark.parametrize('pauses', FAILING_PAUSES)
    def test_distorted_repetitions_fail(self, reference, pauses):
        assert not matches(reference, from_pauses(pauses))


class TestTolerances:
    """Duration and per-pause tolerance bounds."""

    def test_uniformly_slower_repetition_matches(self):
        ref = make_pattern((0, Side.BACK), (100, Side.LEFT), (200, Side.BACK), (300, Side.TOP))
        cand = make_pattern((0, Side.BACK), (125, Side.LEFT), (250, Side.BACK), (375, Side.TOP))
        assert matches(ref, cand)

    def test_duration_on_the_bound_is_accepted(self):
        assert matches(two_pauses(100, 100), two_pauses(130, 130))
        assert matches(two_pauses(100, 100), two_pauses(70, 70))

    def test_duration_beyond_the_bound_is_rejected(self):
        assert not matches(two_pauses(100, 100), two_pauses(131, 131))
        assert not matches(two_pauses(100, 100), two_pauses(69, 69))

    def test_pause_on_the_bound_is_accepted(self):
        assert matches(two_pauses(100, 100), two_pauses(120, 80))

    def test_pause_beyond_the_bound_is_rejected(self):
        assert not matches(two_pauses(100, 100), two_pauses(121, 79))

    def test_non_uniform_distortion_is_rejected(self):
        assert not matches(two_pauses(100, 100), two_pauses(150, 50))

    def test_any_in_candidate_is_accepted(self):
        ref = make_pattern((0, Side.BACK), (100, Side.FRONT))
        cand = make_pattern((0, Side.BACK), (100, Side.ANY))
        assert matches(ref, cand)
