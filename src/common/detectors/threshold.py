"""Threshold based tap detection on accelerometer samples."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from common.logging_utils import get_logger
from common.tap_pattern import Side

from .base import Accuracy
from .base import ObserverRegistry
from .base import SensorType
from .base import TapObserver


# Side hit for a positive / negative impulse along each axis.
# Tapping the front pushes the device backwards, so the impulse is -z.
AXIS_SIDES: tuple[tuple[Side, Side], ...] = (
    (Side.LEFT, Side.RIGHT),
    (Side.BOTTOM, Side.TOP),
    (Side.BACK, Side.FRONT),
)


class ThresholdTapDetector:
    """Detect taps as short impulses above a fixed threshold.

    Gravity is tracked with a low-pass filter and removed from each sample.
    The axis with the largest remaining impulse decides the side when it
    exceeds ``threshold``. A refractory gap after each tap keeps the ringing
    of one physical tap from being reported twice.

    Args:
        threshold: Minimum impulse in m/s^2
        refractory_ns: Minimum gap between two reported taps
        gravity_alpha: Low-pass factor of the gravity estimate (0..1)
        clock: Source of the ``now`` value passed to observers
    """

    def __init__(
        self,
        threshold: float = 3.0,
        refractory_ns: int = 120_000_000,
        gravity_alpha: float = 0.8,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self.threshold = threshold
        self.refractory_ns = refractory_ns
        self.gravity_alpha = gravity_alpha
        self.clock = clock
        self.logger = get_logger('common.detectors.threshold')
        self._observers = ObserverRegistry()
        self._gravity: list[float] | None = None
        self._last_tap: int | None = None
        self._accuracy = Accuracy.HIGH

    def register_observer(self, observer: TapObserver) -> None:
        self._observers.register(observer)

    def remove_observer(self, observer: TapObserver) -> None:
        self._observers.remove(observer)

    def on_accuracy_changed(self, sensor_type: int, accuracy: int) -> None:
        if sensor_type != SensorType.ACCELEROMETER:
            return
        self._accuracy = Accuracy(accuracy)
        self.logger.debug(f'Accelerometer accuracy changed to {self._accuracy.name}')

    def notify(
        self,
        timestamp: int,
        sensor_type: int,
        accuracy: int,
        values: Sequence[float],
    ) -> None:
        if sensor_type != SensorType.ACCELEROMETER or len(values) < 3:
            return
        if accuracy == Accuracy.UNRELIABLE or self._accuracy == Accuracy.UNRELIABLE:
            return

        sample = [float(v) for v in values[:3]]
        if self._gravity is None:
            # First sample seeds the gravity estimate
            self._gravity = sample
            return

        alpha = self.gravity_alpha
        self._gravity = [alpha * g + (1 - alpha) * v for g, v in zip(self._gravity, sample)]
        impulse = [v - g for v, g in zip(sample, self._gravity)]

        axis = max(range(3), key=lambda i: abs(impulse[i]))
        magnitude = impulse[axis]
        if abs(magnitude) < self.threshold:
            return
        if self._last_tap is not None and timestamp - self._last_tap < self.refractory_ns:
            return

        positive, negative = AXIS_SIDES[axis]
        side = positive if magnitude > 0 else negative
        self._last_tap = timestamp
        self.logger.debug(f'Tap on {side.name} (axis {axis}, impulse {magnitude:.2f})')
        self._observers.notify(timestamp, self.clock(), side)
