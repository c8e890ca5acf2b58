"""Tests for the TapPattern data model and its wire form."""

import pytest

from common.tap_pattern import MalformedWireDataError
from common.tap_pattern import Side
from common.tap_pattern import TapPattern

from conftest import make_pattern


def complex_pattern() -> TapPattern:
    return TapPattern().append(Side.FRONT, 10).append(Side.TOP, 10).append(Side.BOTTOM, 10)


class TestAppend:
    """Size, duration and append rules."""

    def test_empty_pattern(self):
        p = TapPattern()
        assert p.size() == 0
        assert p.duration() == 0
        assert len(p) == 0

    def test_single_tap_has_zero_duration(self):
        p = TapPattern()
        assert p.append(Side.BACK, 10) is p
        assert p.size() == 1
        assert p.duration() == 0

    def test_first_pause_is_ignored_whatever_its_sign(self):
        assert TapPattern().append(Side.LEFT, 0) is not None
        assert TapPattern().append(Side.LEFT, -20) is not None
        assert TapPattern().append(Side.LEFT, -20).pauses == ()

    def test_negative_pause_rejected(self):
        p = TapPattern().append(Side.TOP, 10)
        assert p.append(Side.FRONT, -1) is None

    def test_zero_pause_rejected_and_pattern_unchanged(self):
        p = TapPattern().append(Side.LEFT, 10)
        assert p.append(Side.FRONT, 0) is None
        assert p.size() == 1
        assert p.sides == (Side.LEFT,)

    def test_fractional_pause_truncating_to_zero_rejected(self):
        p = TapPattern().append(Side.BACK, 0).append(Side.BACK, 5)
        assert p.append(Side.BACK, 0.5) is None
        assert p.pauses == (5,)
        assert p.size() == 2

    def test_size_and_duration_of_longer_pattern(self):
        p = complex_pattern()
        assert p.size() == 3
        assert p.duration() == 20


class TestAccessors:
    """Index based access to sides and pauses."""

    def test_get_side_and_pause(self):
        p = make_pattern((0, Side.BACK), (250, Side.FRONT), (400, Side.LEFT))
        assert p.get_side(2) == Side.LEFT
        assert p.get_pause(0) == 0
        assert p.get_pause(1) == 250
        assert p.get_pause(2) == 400

    @pytest.mark.parametrize('index', [-1, 3])
    def test_out_of_range_index(self, index):
        p = complex_pattern()
        with pytest.raises(IndexError):
            p.get_side(index)
        with pytest.raises(IndexError):
            p.get_pause(index)

    def test_copy_is_independent(self):
        p = complex_pattern()
        clone = p.copy()
        clone.append(Side.BACK, 5)
        assert p.size() == 3
        assert clone.size() == 4

    def test_repr_lists_taps(self):
        p = TapPattern().append(Side.BACK, 0).append(Side.FRONT, 7)
        assert repr(p) == 'TapPattern{ 0:BACK 7:FRONT }'
        assert repr(TapPattern()) == 'TapPattern{ }'


class TestEquality:
    """Structural equality."""

    def test_empty_differs_from_single(self):
        assert TapPattern() != TapPattern().append(Side.LEFT, 10)

    def test_different_sides(self):
        assert TapPattern().append(Side.RIGHT, 1) != TapPattern().append(Side.LEFT, 1)

    def test_same_taps_are_equal_and_hash_alike(self):
        assert complex_pattern() == complex_pattern()
        assert hash(complex_pattern()) == hash(complex_pattern())

    def test_any_is_not_equal_to_a_concrete_side(self):
        assert TapPattern().append(Side.ANY, 0) != TapPattern().append(Side.BACK, 0)


class TestWireForm:
    """Serialization to and from the two-array wire form."""

    def test_wire_layout(self):
        assert complex_pattern().to_wire() == {'sides': [0, 4, 5], 'pauses': [10, 10]}
        assert TapPattern().append(Side.ANY, 0).to_wire() == {'sides': [6], 'pauses': []}

    @pytest.mark.parametrize('pattern', [
        TapPattern(),
        TapPattern().append(Side.BACK, 10),
        complex_pattern(),
    ], ids=['empty', 'single', 'three-taps'])
    def test_round_trip(self, pattern):
        assert TapPattern.from_wire(pattern.to_wire()) == pattern

    @pytest.mark.parametrize('data', [
        None,
        [],
        {'sides': [0, 1]},
        {'sides': [0, 1], 'pauses': []},
        {'sides': [0], 'pauses': [5]},
        {'sides': [0, 9], 'pauses': [5]},
        {'sides': [0, 1], 'pauses': [0]},
        {'sides': [0, 1], 'pauses': [-3]},
        {'sides': [0, 1], 'pauses': [1.5]},
        {'sides': [True], 'pauses': []},
        {'sides': ['BACK'], 'pauses': []},
    ])
    def test_malformed_wire_data(self, data):
        with pytest.raises(MalformedWireDataError):
            TapPattern.from_wire(data)

    def test_malformed_wire_data_is_a_value_error(self):
        assert issubclass(MalformedWireDataError, ValueError)


class TestFromTaps:
    """Building patterns from timestamped taps."""

    def test_pauses_are_timestamp_differences(self):
        p = TapPattern.from_taps([(1000, Side.BACK), (1250, Side.BACK), (1750, Side.FRONT)])
        assert p.sides == (Side.BACK, Side.BACK, Side.FRONT)
        assert p.pauses == (250, 500)

    def test_simultaneous_tap_is_skipped(self):
        p = TapPattern.from_taps([(1000, Side.BACK), (1000, Side.LEFT), (1300, Side.FRONT)])
        assert p.sides == (Side.BACK, Side.FRONT)
        assert p.pauses == (300,)

    def test_no_taps(self):
        assert TapPattern.from_taps([]) == TapPattern()
