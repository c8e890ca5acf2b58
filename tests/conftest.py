"""Shared fixtures for the tap-unlock test suite."""

import shutil
import tempfile
from pathlib import Path

import pytest

from common.tap_pattern import Side
from common.tap_pattern import TapPattern


MS = 1_000_000


def make_pattern(*taps: tuple[int, Side]) -> TapPattern:
    """Build a pattern from (pause_ns, side) pairs; the first pause is ignored."""
    pattern = TapPattern()
    for pause, side in taps:
        assert pattern.append(side, pause) is not None
    return pattern


class FakeClock:
    """Manually advanced monotonic nanosecond clock."""

    def __init__(self, now: int = 1_000 * MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ns: int) -> int:
        self.now += ns
        return self.now


class FakeDetector:
    """TapDetector stand-in that lets a test fire taps directly."""

    def __init__(self) -> None:
        self.observers = []

    def notify(self, timestamp, sensor_type, accuracy, values) -> None:
        pass

    def on_accuracy_changed(self, sensor_type, accuracy) -> None:
        pass

    def register_observer(self, observer) -> None:
        self.observers.append(observer)

    def remove_observer(self, observer) -> None:
        self.observers.remove(observer)

    def tap(self, timestamp: int, side: Side) -> None:
        for observer in list(self.observers):
            observer.on_tap(timestamp, timestamp, side)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def back_back_front() -> TapPattern:
    """BACK, BACK after 250ms, FRONT after 500ms."""
    return make_pattern((0, Side.BACK), (250 * MS, Side.BACK), (500 * MS, Side.FRONT))


@pytest.fixture
def short_socket_dir():
    """Directory with a short path, Unix socket paths are limited to ~100 bytes."""
    path = Path(tempfile.mkdtemp(prefix='tap'))
    yield path
    shutil.rmtree(path, ignore_errors=True)
