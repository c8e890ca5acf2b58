"""Data models for tap-unlock configuration."""

from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from common.detectors.detector import DETECTOR_NAMES


DATA_DIR = Path.home() / '.local/share/tap-unlock'


@dataclass
class ServiceConfig:
    """Configuration of the detection service.

    Attributes:
        socket_path: Unix socket the service listens on
        detector: Detector variant ('accelerometer' or 'keyboard')
        device_name: Partial name of the evdev accelerometer to use
        device_path: Explicit evdev device path (wins over device_name)
        buffer_seconds: Maximum age of buffered taps
        buffer_size: Maximum number of buffered taps
        threshold: Accelerometer impulse threshold in m/s^2
        refractory_ms: Minimum gap between two detected taps
    """
    socket_path: Path = DATA_DIR / 'tap-service.sock'
    detector: str = 'accelerometer'
    device_name: str | None = None
    device_path: str | None = None
    buffer_seconds: float = 30.0
    buffer_size: int = 256
    threshold: float = 3.0
    refractory_ms: int = 120

    def __post_init__(self) -> None:
        if self.detector not in DETECTOR_NAMES:
            raise ValueError(f'Unknown detector: {self.detector} (expected one of {", ".join(DETECTOR_NAMES)})')  # noqa: TRY003
        if self.buffer_seconds <= 0:
            raise ValueError(f'buffer_seconds must be positive, got {self.buffer_seconds}')  # noqa: TRY003
        if self.buffer_size < 2:
            raise ValueError(f'buffer_size must be at least 2, got {self.buffer_size}')  # noqa: TRY003
        if self.threshold <= 0:
            raise ValueError(f'threshold must be positive, got {self.threshold}')  # noqa: TRY003
        if self.refractory_ms <= 0:
            raise ValueError(f'refractory_ms must be positive, got {self.refractory_ms}')  # noqa: TRY003

    @property
    def buffer_ns(self) -> int:
        return int(self.buffer_seconds * 1_000_000_000)

    @property
    def refractory_ns(self) -> int:
        return self.refractory_ms * 1_000_000


@dataclass
class RecordingConfig:
    """Configuration of a recording session.

    Attributes:
        cutoff_ms: Trailing time excluded from a recording when it is
            stopped, so the stop gesture itself is not recorded
    """
    cutoff_ms: int = 150

    def __post_init__(self) -> None:
        if self.cutoff_ms < 0:
            raise ValueError(f'cutoff_ms must not be negative, got {self.cutoff_ms}')  # noqa: TRY003

    @property
    def cutoff_ns(self) -> int:
        return self.cutoff_ms * 1_000_000


@dataclass
class AppConfig:
    """Application configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (None for no file logging)
        debug_mode: Enable debug mode with additional logging
        verbose_logging: Enable per-tap debug traces
        service: Detection service settings
        recording: Recording session settings
    """
    log_level: str = 'INFO'
    log_file: Path | None = None
    debug_mode: bool = False
    verbose_logging: bool = False
    service: ServiceConfig = field(default_factory=ServiceConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)

    def __post_init__(self) -> None:
        if self.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR'):
            raise ValueError(f'Invalid log_level: {self.log_level}')  # noqa: TRY003

    def enable_debug(self) -> None:
        """Force debug logging settings (``--debug`` flag)."""
        self.log_level = 'DEBUG'
        self.debug_mode = True
        self.verbose_logging = True
