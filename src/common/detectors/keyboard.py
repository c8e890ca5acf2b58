"""Keyboard driven tap detection for desktops without an accelerometer.

``KeyboardSource`` (pynput) turns key presses into KEYBOARD samples whose
single value is the ordinal of the tapped side; ``KeyboardTapDetector``
reports each such sample as a tap.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

from common.logging_utils import get_logger
from common.tap_pattern import Side

from .base import Accuracy
from .base import DetectorNotAvailableError
from .base import ObserverRegistry
from .base import SensorType
from .base import TapDetector
from .base import TapObserver


KEY_SIDES: dict[str, Side] = {
    'f': Side.FRONT,
    'b': Side.BACK,
    'l': Side.LEFT,
    'r': Side.RIGHT,
    't': Side.TOP,
    'd': Side.BOTTOM,
}


class KeyboardTapDetector:
    """Report every KEYBOARD sample as a tap on the encoded side."""

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns) -> None:
        self.clock = clock
        self.logger = get_logger('common.detectors.keyboard')
        self._observers = ObserverRegistry()
        self._last_timestamp: int | None = None

    def register_observer(self, observer: TapObserver) -> None:
        self._observers.register(observer)

    def remove_observer(self, observer: TapObserver) -> None:
        self._observers.remove(observer)

    def on_accuracy_changed(self, sensor_type: int, accuracy: int) -> None:
        pass  # key presses are always accurate

    def notify(
        self,
        timestamp: int,
        sensor_type: int,
        accuracy: int,
        values: Sequence[float],
    ) -> None:
        if sensor_type != SensorType.KEYBOARD or not values:
            return
        try:
            side = Side(int(values[0]))
        except ValueError:
            self.logger.debug(f'Ignoring keyboard sample with unknown side {values[0]!r}')
            return
        if side == Side.ANY:
            return
        # Observers rely on non-decreasing timestamps
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            return
        self._last_timestamp = timestamp
        self._observers.notify(timestamp, self.clock(), side)


class KeyboardSource:
    """Sensor source reading key presses with pynput.

    Only the keys in ``KEY_SIDES`` produce samples; everything else is
    ignored. Events are not suppressed.

    Raises:
        DetectorNotAvailableError: If pynput is not installed
    """

    def __init__(self) -> None:
        self.logger = get_logger('common.detectors.keyboard')
        self.listener: Any = None

        try:
            import pynput  # noqa: F401
        except ImportError as e:
            raise DetectorNotAvailableError(
                'pynput library is not installed. '
                'Install it with: pip install pynput'
            ) from e

    def start(self, detector: TapDetector) -> None:
        from pynput import keyboard

        def on_press(key: Any) -> None:
            char = getattr(key, 'char', None)
            side = KEY_SIDES.get(str(char).lower()) if char else None
            if side is None:
                return
            detector.notify(time.monotonic_ns(), SensorType.KEYBOARD, Accuracy.HIGH, [float(side)])

        self.logger.info('Starting keyboard tap source (keys: f b l r t d)')
        self.listener = keyboard.Listener(on_press=on_press)
        self.listener.start()
        self.listener.join()

    def stop(self) -> None:
        if self.listener:
            self.logger.info('Stopping keyboard tap source')
            self.listener.stop()
            self.listener = None

    def get_source_name(self) -> str:
        return 'keyboard (pynput)'
