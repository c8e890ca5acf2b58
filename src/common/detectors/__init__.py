"""Tap detector plug-ins.

Detection algorithms and sensor sources live behind the TapDetector and
SensorSource protocols; the detection service only sees those.
"""

from .base import (
    Accuracy,
    DetectorNotAvailableError,
    SensorSource,
    SensorType,
    TapDetector,
    TapObserver,
)
from .detector import DETECTOR_NAMES, create_detector
from .keyboard import KeyboardTapDetector
from .threshold import ThresholdTapDetector

__all__ = [
    'Accuracy',
    'DETECTOR_NAMES',
    'DetectorNotAvailableError',
    'KeyboardTapDetector',
    'SensorSource',
    'SensorType',
    'TapDetector',
    'TapObserver',
    'ThresholdTapDetector',
    'create_detector',
]
