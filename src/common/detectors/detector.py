"""Detector factory.

Picks the detector algorithm and the sensor source feeding it from the
configured detector name.
"""

import logging

from .base import DetectorNotAvailableError, SensorSource, TapDetector
from .keyboard import KeyboardSource, KeyboardTapDetector
from .threshold import ThresholdTapDetector


logger = logging.getLogger('common.detectors')

DETECTOR_NAMES = ('accelerometer', 'keyboard')


def create_detector(
    detector_name: str = 'accelerometer',
    device_path: str | None = None,
    device_name: str | None = None,
    threshold: float = 3.0,
    refractory_ns: int = 120_000_000,
) -> tuple[TapDetector, SensorSource]:
    """Create a detector and the sensor source that feeds it.

    Args:
        detector_name: 'accelerometer' (evdev + threshold detection) or
            'keyboard' (pynput, keys f/b/l/r/t/d)
        device_path: Explicit evdev device path (accelerometer only)
        device_name: Partial evdev device name (accelerometer only)
        threshold: Impulse threshold in m/s^2 (accelerometer only)
        refractory_ns: Minimum gap between two taps (accelerometer only)

    Returns:
        tuple[TapDetector, SensorSource]: Unstarted detector and source

    Raises:
        ValueError: If the detector name is unknown
        DetectorNotAvailableError: If the sensor source cannot be initialized
    """
    if detector_name == 'keyboard':
        detector: TapDetector = KeyboardTapDetector()
        source: SensorSource = KeyboardSource()
    elif detector_name == 'accelerometer':
        detector = ThresholdTapDetector(threshold=threshold, refractory_ns=refractory_ns)
        try:
            from .evdev_source import EvdevAccelerometerSource
            source = EvdevAccelerometerSource(device_path=device_path, device_name=device_name)
        except DetectorNotAvailableError as e:
            raise DetectorNotAvailableError(
                f'Accelerometer source is not available: {e}\n\n'
                f'Troubleshooting:\n'
                f'1. Install evdev library: pip install evdev\n'
                f'2. Add user to input group:\n'
                f'   sudo usermod -a -G input $USER\n'
                f'   Then log out and back in.\n'
                f'3. No accelerometer? Use detector = "keyboard" in the [service] section.'
            ) from e
    else:
        raise ValueError(f'Unknown detector: {detector_name} (expected one of {", ".join(DETECTOR_NAMES)})')  # noqa: TRY003

    logger.info(f'Created detector {type(detector).__name__} fed by {source.get_source_name()}')
    return detector, source
