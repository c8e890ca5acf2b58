"""Accelerometer samples from evdev input devices.

Linux exposes most accelerometers (laptops, tablets, phones running a
mainline kernel) as input devices reporting ABS_X/ABS_Y/ABS_Z. One sample
is assembled per SYN_REPORT and scaled to m/s^2 using the axis resolution
(units per g).
"""

from __future__ import annotations

import threading
import time
from contextlib import suppress
from typing import Any

from common.logging_utils import get_logger

from .base import Accuracy
from .base import DetectorNotAvailableError
from .base import SensorType
from .base import TapDetector


STANDARD_GRAVITY = 9.80665


def _abs_axes(device: Any) -> dict[int, Any]:
    from evdev import ecodes

    caps = device.capabilities(absinfo=True)
    return {code: info for code, info in caps.get(ecodes.EV_ABS, [])}


def device_has_accelerometer_caps(device: Any) -> bool:
    """Return True if the evdev device reports three acceleration axes."""
    from evdev import ecodes

    axes = _abs_axes(device)
    if not all(code in axes for code in (ecodes.ABS_X, ecodes.ABS_Y, ecodes.ABS_Z)):
        return False
    prop = getattr(ecodes, 'INPUT_PROP_ACCELEROMETER', None)
    if prop is not None:
        with suppress(OSError):
            return prop in device.input_props()
    # Without the property flag, joysticks also qualify: accept by name
    return 'accel' in device.name.lower()


def list_accelerometer_devices() -> list[dict[str, str]]:
    """List accelerometer input devices.

    Returns:
        list[dict[str, str]]: One dict per device with 'name' and 'path'

    Raises:
        PermissionError: If access to /dev/input/ is denied
    """
    import evdev

    try:
        device_paths = evdev.list_devices()
    except PermissionError as e:
        raise PermissionError(
            'Permission denied accessing /dev/input/. '
            'Add user to "input" group:\n'
            '  sudo usermod -a -G input $USER\n'
            'Then log out and back in for changes to take effect.'
        ) from e

    devices = []
    for path in device_paths:
        try:
            device = evdev.InputDevice(path)
        except (OSError, PermissionError):
            continue
        try:
            if device_has_accelerometer_caps(device):
                devices.append({'name': device.name, 'path': device.path})
        except OSError:
            continue
        finally:
            device.close()
    return devices


class EvdevAccelerometerSource:
    """Sensor source reading an accelerometer through evdev.

    Args:
        device_path: Explicit /dev/input/eventN path
        device_name: Case-insensitive partial name match
    """

    def __init__(self, device_path: str | None = None, device_name: str | None = None) -> None:
        self.logger = get_logger('common.detectors.evdev')
        self.device_path = device_path
        self.device_name = device_name
        self.device: Any = None
        self._stop_event = threading.Event()

        try:
            import evdev  # noqa: F401
        except ImportError as e:
            raise DetectorNotAvailableError(
                'evdev library is not installed. '
                'Install it with: pip install evdev'
            ) from e

    def _open_device(self) -> Any:
        import evdev

        if self.device_path:
            try:
                return evdev.InputDevice(self.device_path)
            except (OSError, PermissionError) as e:
                raise DetectorNotAvailableError(
                    f'Cannot access device {self.device_path}: {e}'
                ) from e

        try:
            candidates = list_accelerometer_devices()
        except PermissionError as e:
            raise DetectorNotAvailableError(str(e)) from e
        if self.device_name:
            wanted = self.device_name.lower()
            candidates = [d for d in candidates if wanted in d['name'].lower()]
        if not candidates:
            hint = f' matching name "{self.device_name}"' if self.device_name else ''
            raise DetectorNotAvailableError(f'No accelerometer device found{hint}')
        return evdev.InputDevice(candidates[0]['path'])

    def start(self, detector: TapDetector) -> None:
        from evdev import ecodes

        self.device = self._open_device()
        device_name = self.device.name
        self.logger.info(f'Using accelerometer device: {device_name} ({self.device.path})')

        axes = _abs_axes(self.device)
        order = (ecodes.ABS_X, ecodes.ABS_Y, ecodes.ABS_Z)
        scale = {
            code: (STANDARD_GRAVITY / axes[code].resolution) if axes[code].resolution else 1.0
            for code in order
        }
        current = {code: float(axes[code].value) * scale[code] for code in order}
        self._stop_event.clear()

        try:
            for event in self.device.read_loop():
                if self._stop_event.is_set():
                    break
                if event.type == ecodes.EV_ABS and event.code in current:
                    current[event.code] = event.value * scale[event.code]
                elif event.type == ecodes.EV_SYN and event.code == ecodes.SYN_REPORT:
                    values = [current[code] for code in order]
                    detector.notify(time.monotonic_ns(), SensorType.ACCELEROMETER, Accuracy.HIGH, values)
                elif event.type == ecodes.EV_SYN and event.code == ecodes.SYN_DROPPED:
                    self.logger.warning('Accelerometer events dropped by the kernel')
                    detector.on_accuracy_changed(SensorType.ACCELEROMETER, Accuracy.LOW)
        except OSError as e:
            if not self._stop_event.is_set():
                self.logger.error(f'Error reading from device {device_name}: {e}')
                raise DetectorNotAvailableError(f'Accelerometer read failed: {e}') from e
        finally:
            self._close_device()

    def stop(self) -> None:
        self.logger.info('Stopping accelerometer source')
        self._stop_event.set()
        self._close_device()

    def _close_device(self) -> None:
        if self.device is not None:
            with suppress(Exception):
                self.device.close()
            self.device = None

    def get_source_name(self) -> str:
        return 'accelerometer (evdev)'
