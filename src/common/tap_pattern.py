"""Tap pattern data model.

A tap pattern is described by the side of the device that has been tapped
and the pause between two consecutive taps. The force of a tap and its
exact position on the side are not part of the model.

Patterns cross the process boundary in a flat wire form made of two
parallel integer arrays (see ``TapPattern.to_wire``).
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


KEY_SIDES = 'sides'
KEY_PAUSES = 'pauses'


class Side(IntEnum):
    """Physical side of the device a tap is attributed to.

    ``ANY`` is a wildcard for reference patterns only. Live recordings
    never produce it.
    """
    FRONT = 0
    BACK = 1
    LEFT = 2
    RIGHT = 3
    TOP = 4
    BOTTOM = 5
    ANY = 6


class MalformedWireDataError(ValueError):
    """Raised when a serialized pattern cannot be turned back into a TapPattern."""


class TapPattern:
    """Ordered sequence of taps with the pauses between them.

    Pauses are integer nanoseconds. ``pauses[i]`` is the time elapsing
    between tap ``i`` and tap ``i + 1``, so a pattern of N taps stores
    ``max(N - 1, 0)`` pauses, all strictly positive.

    Appending is the only mutation. Equality is structural and exact;
    tolerance based comparison lives in ``common.pattern_matcher``.

    Example:
        >>> p = TapPattern().append(Side.BACK, 0).append(Side.BACK, 250_000_000)
        >>> p.size(), p.duration()
        (2, 250000000)
    """

    __slots__ = ('_sides', '_pauses')

    def __init__(self) -> None:
        self._sides: list[Side] = []
        self._pauses: list[int] = []

    def append(self, side: Side, pause_before_tap: int) -> TapPattern | None:
        """Append a tap to the end of the pattern.

        The pause is ignored for the first tap of the pattern, whatever its
        sign.

        Args:
            side: Where the device has been tapped
            pause_before_tap: Pause since the previous tap in nanoseconds

        Returns:
            The same pattern for call chaining, or None when the pause is not
            strictly positive on a non-empty pattern. The pattern is left
            unchanged in that case.
        """
        if self._sides:
            pause = int(pause_before_tap)
            if pause <= 0:
                return None
            self._pauses.append(pause)
        self._sides.append(Side(side))
        return self

    def size(self) -> int:
        """Number of taps in the pattern."""
        return len(self._sides)

    def __len__(self) -> int:
        return len(self._sides)

    def duration(self) -> int:
        """Sum of all pauses in nanoseconds, 0 for patterns of one tap or less."""
        return sum(self._pauses)

    def get_side(self, i: int) -> Side:
        """Return the side of the tap at index ``i``.

        Raises:
            IndexError: If ``i`` is not a valid tap index
        """
        if not 0 <= i < len(self._sides):
            raise IndexError(f'Tap index out of range: {i} (size {len(self._sides)})')
        return self._sides[i]

    def get_pause(self, i: int) -> int:
        """Return the pause between tap ``i`` and the previous tap.

        The first tap has no predecessor, so ``get_pause(0)`` is 0.

        Raises:
            IndexError: If ``i`` is not a valid tap index
        """
        self.get_side(i)
        if i == 0:
            return 0
        return self._pauses[i - 1]

    @property
    def sides(self) -> tuple[Side, ...]:
        return tuple(self._sides)

    @property
    def pauses(self) -> tuple[int, ...]:
        return tuple(self._pauses)

    def copy(self) -> TapPattern:
        """Return an independent copy of this pattern."""
        clone = TapPattern()
        clone._sides = list(self._sides)
        clone._pauses = list(self._pauses)
        return clone

    def to_wire(self) -> dict[str, list[int]]:
        """Serialize to the flat two-array wire form.

        Returns:
            dict with ``sides`` (side ordinals, N entries) and ``pauses``
            (nanoseconds, N - 1 entries or none for N <= 1)
        """
        return {
            KEY_SIDES: [int(side) for side in self._sides],
            KEY_PAUSES: list(self._pauses),
        }

    @classmethod
    def from_wire(cls, data: Any) -> TapPattern:
        """Rebuild a pattern from its wire form.

        Args:
            data: Mapping with ``sides`` and ``pauses`` arrays

        Returns:
            TapPattern equal to the serialized one

        Raises:
            MalformedWireDataError: On missing keys, wrong types, unknown side
                values, inconsistent array lengths or non-positive pauses
        """
        if not isinstance(data, dict):
            raise MalformedWireDataError(f'Pattern must be an object, got {type(data).__name__}')
        sides = data.get(KEY_SIDES)
        pauses = data.get(KEY_PAUSES)
        if not isinstance(sides, list) or not isinstance(pauses, list):
            raise MalformedWireDataError("Pattern needs 'sides' and 'pauses' arrays")
        if len(pauses) != max(len(sides) - 1, 0):
            raise MalformedWireDataError(
                f'Inconsistent pattern arrays: {len(sides)} sides, {len(pauses)} pauses'
            )

        pattern = cls()
        for idx, raw_side in enumerate(sides):
            # bool is an int subclass but never a valid side
            if not isinstance(raw_side, int) or isinstance(raw_side, bool):
                raise MalformedWireDataError(f'Side #{idx} is not an integer: {raw_side!r}')
            try:
                side = Side(raw_side)
            except ValueError as e:
                raise MalformedWireDataError(f'Unknown side value: {raw_side}') from e

            pause = pauses[idx - 1] if idx > 0 else 0
            if not isinstance(pause, int) or isinstance(pause, bool):
                raise MalformedWireDataError(f'Pause #{idx - 1} is not an integer: {pause!r}')
            if pattern.append(side, pause) is None:
                raise MalformedWireDataError(f'Pause #{idx - 1} must be positive, got {pause}')
        return pattern

    @classmethod
    def from_taps(cls, taps: list[tuple[int, Side]]) -> TapPattern:
        """Build a pattern from ``(timestamp, side)`` pairs in timestamp order.

        Taps whose pause to the previously kept tap is not positive are
        skipped.
        """
        pattern = cls()
        last_timestamp: int | None = None
        for timestamp, side in taps:
            pause = 0 if last_timestamp is None else timestamp - last_timestamp
            if pattern.append(side, pause) is None:
                continue
            last_timestamp = timestamp
        return pattern

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, TapPattern):
            return NotImplemented
        return self._sides == other._sides and self._pauses == other._pauses

    def __hash__(self) -> int:
        return hash((tuple(self._sides), tuple(self._pauses)))

    def __repr__(self) -> str:
        taps = ' '.join(f'{self.get_pause(i)}:{side.name}' for i, side in enumerate(self._sides))
        return f'TapPattern{{ {taps} }}' if taps else 'TapPattern{ }'
