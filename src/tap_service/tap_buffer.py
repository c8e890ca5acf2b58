"""Rolling buffer of recently detected taps.

The buffer has a single writer (the detector callback) and any number of
readers (request handlers); every access goes through one lock and readers
only ever get copies.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from common.tap_pattern import Side
from common.tap_pattern import TapPattern


@dataclass(frozen=True, slots=True)
class Tap:
    """One detected tap.

    Attributes:
        timestamp: Monotonic nanoseconds at which the tap occurred
        side: Side of the device that has been tapped
    """
    timestamp: int
    side: Side


class TapBuffer:
    """Bounded, time-limited buffer of taps in timestamp order.

    Taps older than ``max_age_ns`` (relative to the newest tap) are dropped
    unless they are at or after a pinned timestamp; ``max_taps`` is a hard
    cap that applies regardless of pins.

    Args:
        max_taps: Hard cap on the number of stored taps
        max_age_ns: Age after which unpinned taps are dropped
    """

    def __init__(self, max_taps: int = 256, max_age_ns: int = 30_000_000_000) -> None:
        self.max_age_ns = max_age_ns
        self._taps: deque[Tap] = deque(maxlen=max_taps)
        self._pins: dict[object, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._taps)

    def append(self, tap: Tap) -> bool:
        """Store a tap.

        Returns:
            bool: False if the tap is older than the newest stored tap and was
                therefore dropped
        """
        with self._lock:
            if self._taps and tap.timestamp < self._taps[-1].timestamp:
                return False
            self._taps.append(tap)
            self._prune(tap.timestamp)
            return True

    def pin(self, owner: object, since: int) -> None:
        """Keep every tap at or after ``since`` until ``unpin(owner)``."""
        with self._lock:
            self._pins[owner] = since

    def unpin(self, owner: object) -> None:
        with self._lock:
            self._pins.pop(owner, None)

    def between(self, since: int, cutoff: int) -> list[Tap]:
        """Return a snapshot of the taps with ``since <= timestamp <= cutoff``."""
        with self._lock:
            return [tap for tap in self._taps if since <= tap.timestamp <= cutoff]

    def latest(self, count: int, after: int | None = None) -> list[Tap]:
        """Return up to ``count`` newest taps, only those strictly after ``after``."""
        if count <= 0:
            return []
        with self._lock:
            taps = list(self._taps)[-count:]
        if after is not None:
            taps = [tap for tap in taps if tap.timestamp > after]
        return taps

    def pattern_between(self, since: int, cutoff: int) -> TapPattern:
        """Build a pattern from the taps in ``[since, cutoff]``."""
        return TapPattern.from_taps([(tap.timestamp, tap.side) for tap in self.between(since, cutoff)])

    def _prune(self, newest: int) -> None:
        horizon = newest - self.max_age_ns
        if self._pins:
            horizon = min(horizon, min(self._pins.values()))
        while self._taps and self._taps[0].timestamp < horizon:
            self._taps.popleft()
