"""Tolerance based comparison of tap patterns.

Two patterns match when they tap the same sides in the same order and
their timing agrees within two levels of tolerance:

1. The whole-pattern duration may differ by ``MAX_DURATION_TOLERANCE``.
2. Each pause is compared against the reference pause scaled by the global
   duration ratio and may differ by ``MAX_TAP_POSITION_TOLERANCE``.

A uniformly slower or faster repetition of a gesture therefore still
matches, while non-uniform timing distortions are rejected.
"""

from __future__ import annotations

from fractions import Fraction

from .tap_pattern import Side
from .tap_pattern import TapPattern


MAX_DURATION_TOLERANCE = 0.30
MAX_TAP_POSITION_TOLERANCE = 0.20

# Exact bounds: a deviation equal to the tolerance is still accepted
_DURATION_BOUND = Fraction(str(MAX_DURATION_TOLERANCE))
_TAP_POSITION_BOUND = Fraction(str(MAX_TAP_POSITION_TOLERANCE))


def sides_match(reference: Side, candidate: Side) -> bool:
    """Return True if two sides are equal or either one is ``Side.ANY``."""
    return reference == candidate or Side.ANY in (reference, candidate)


def matches(reference: TapPattern, candidate: TapPattern | None) -> bool:
    """Compare a candidate pattern against a reference pattern.

    This is more relaxed than equality: timings may lie within the
    tolerances above and ``Side.ANY`` matches any side at the same index.

    Args:
        reference: The stored pattern
        candidate: The pattern to check against it (None never matches)

    Returns:
        bool: True if the candidate is similar enough to the reference

    Example:
        >>> ref = TapPattern().append(Side.BACK, 0).append(Side.BACK, 100)
        >>> matches(ref, TapPattern().append(Side.BACK, 0).append(Side.BACK, 125))
        True
    """
    if candidate is None:
        return False
    if reference == candidate:
        return True
    if reference.size() != candidate.size():
        return False

    for ref_side, cand_side in zip(reference.sides, candidate.sides):
        if not sides_match(ref_side, cand_side):
            return False

    # Zero duration on both sides, nothing left to compare
    if reference.size() <= 1:
        return True

    time_scale = Fraction(candidate.duration(), reference.duration())
    if abs(time_scale - 1) > _DURATION_BOUND:
        return False

    for ref_pause, cand_pause in zip(reference.pauses, candidate.pauses):
        scaled_pause = ref_pause * time_scale
        tap_scale = cand_pause / scaled_pause
        if abs(tap_scale - 1) > _TAP_POSITION_BOUND:
            return False
    return True
