"""Tap detector capability, defined with Protocol.

Detectors turn raw motion samples into discrete tap events and notify
observers. Sensor sources read samples from somewhere (an evdev input
device, the keyboard) and feed them into a detector. Both are structural
protocols: no inheritance is required, which keeps fakes in tests simple.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Protocol, Sequence

from common.tap_pattern import Side


class SensorType(IntEnum):
    """Kind of sensor a sample comes from."""
    ACCELEROMETER = 1
    GYROSCOPE = 4
    KEYBOARD = 100


class Accuracy(IntEnum):
    """Reported sensor accuracy."""
    UNRELIABLE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class TapObserver(Protocol):
    """Anything that wants to hear about detected taps."""

    def on_tap(self, timestamp: int, now: int, side: Side) -> None:
        """Called once per detected tap, in non-decreasing timestamp order.

        Args:
            timestamp: When the tap occurred (monotonic nanoseconds)
            now: Current time when the notification is sent
            side: Side of the device that has been tapped
        """
        ...


class TapDetector(Protocol):
    """Protocol for tap detection algorithms.

    Example:
        class MyDetector:  # No inheritance needed
            def notify(self, timestamp, sensor_type, accuracy, values) -> None: ...
            def on_accuracy_changed(self, sensor_type, accuracy) -> None: ...
            def register_observer(self, observer) -> None: ...
            def remove_observer(self, observer) -> None: ...
    """

    def notify(
        self,
        timestamp: int,
        sensor_type: int,
        accuracy: int,
        values: Sequence[float],
    ) -> None:
        """Feed one raw sensor sample into the detector."""
        ...

    def on_accuracy_changed(self, sensor_type: int, accuracy: int) -> None:
        """Tell the detector the accuracy of a sensor changed."""
        ...

    def register_observer(self, observer: TapObserver) -> None:
        ...

    def remove_observer(self, observer: TapObserver) -> None:
        ...


class SensorSource(Protocol):
    """Protocol for sample producers feeding a detector."""

    def start(self, detector: TapDetector) -> None:
        """Read samples and feed them to ``detector`` (blocking call).

        Blocks until ``stop()`` is called from another thread or a signal
        handler.
        """
        ...

    def stop(self) -> None:
        """Make ``start()`` return and release devices/listeners."""
        ...

    def get_source_name(self) -> str:
        """Human-readable source name for logs."""
        ...


class DetectorNotAvailableError(Exception):
    """Raised when a detector or its sensor source cannot be initialized.

    Typical reasons: library not installed (evdev, pynput), no suitable
    input device, permission denied on /dev/input/. The message should
    tell the user what to do about it.
    """


class ObserverRegistry:
    """Small helper shared by detectors to keep and notify observers."""

    def __init__(self) -> None:
        self._observers: list[TapObserver] = []

    def register(self, observer: TapObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove(self, observer: TapObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def notify(self, timestamp: int, now: int, side: Side) -> None:
        for observer in list(self._observers):
            observer.on_tap(timestamp, now, side)
