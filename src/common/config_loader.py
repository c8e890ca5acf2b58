"""Configuration loader for tap-unlock.

This module handles loading and validating the TOML configuration file
shared by tap-service and tap-unlock.
"""

import tomllib
from pathlib import Path
from typing import Any, ClassVar

from .models import AppConfig
from .models import RecordingConfig
from .models import ServiceConfig


class ConfigLoader:
    """Load and validate TOML configuration files."""

    DEFAULT_PATHS: ClassVar[list[Path]] = [
        Path.home() / '.config/tap-unlock/config.toml',
        Path('/etc/tap-unlock/config.toml'),
    ]

    @staticmethod
    def load(config_path: Path | None = None) -> tuple[AppConfig, Path | None]:
        """Load configuration from a TOML file.

        Args:
            config_path: Path to config file. If None, tries default paths and
                falls back to built-in defaults when none exists.

        Returns:
            tuple[AppConfig, Path | None]: Parsed configuration and path to the
                loaded file (None when defaults are used)

        Raises:
            FileNotFoundError: If an explicit config file does not exist
            ValueError: If configuration is invalid
            tomllib.TOMLDecodeError: If TOML syntax is invalid
        """
        if config_path:
            if not config_path.exists():
                raise FileNotFoundError(f'Config file not found: {config_path}')  # noqa: TRY003
            return (ConfigLoader._load_from_path(config_path), config_path.resolve())

        for path in ConfigLoader.DEFAULT_PATHS:
            if path.exists():
                return (ConfigLoader._load_from_path(path), path.resolve())

        return (AppConfig(), None)

    @staticmethod
    def _load_from_path(path: Path) -> AppConfig:
        try:
            with path.open('rb') as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise tomllib.TOMLDecodeError(  # noqa: TRY003
                f'Invalid TOML syntax in {path}: {e}'
            ) from e

        return ConfigLoader.parse_config(data)

    @staticmethod
    def parse_config(data: dict) -> AppConfig:
        """Parse TOML data into AppConfig.

        Raises:
            ValueError: If configuration is invalid
        """
        app_data = _section(data, 'app')

        log_level = _typed(app_data, 'log_level', str, 'INFO').upper()
        log_file_str = _typed(app_data, 'log_file', str, '')
        debug_mode = _typed(app_data, 'debug_mode', bool, False)
        verbose_logging = _typed(app_data, 'verbose_logging', bool, False)

        try:
            service = ConfigLoader._parse_service(_section(data, 'service'))
        except (ValueError, TypeError) as e:
            raise ValueError(f'Error in [service]: {e}') from e  # noqa: TRY003

        try:
            recording = RecordingConfig(
                cutoff_ms=_typed(_section(data, 'recording'), 'cutoff_ms', int, 150),
            )
        except (ValueError, TypeError) as e:
            raise ValueError(f'Error in [recording]: {e}') from e  # noqa: TRY003

        try:
            return AppConfig(
                log_level=log_level,
                log_file=Path(log_file_str).expanduser() if log_file_str else None,
                debug_mode=debug_mode,
                verbose_logging=verbose_logging,
                service=service,
                recording=recording,
            )
        except ValueError as e:
            raise ValueError(f'Invalid configuration: {e}') from e  # noqa: TRY003

    @staticmethod
    def _parse_service(data: dict) -> ServiceConfig:
        defaults = ServiceConfig()
        socket_path = _typed(data, 'socket_path', str, '')
        return ServiceConfig(
            socket_path=Path(socket_path).expanduser() if socket_path else defaults.socket_path,
            detector=_typed(data, 'detector', str, defaults.detector),
            device_name=_typed(data, 'device_name', str, '') or None,
            device_path=_typed(data, 'device_path', str, '') or None,
            buffer_seconds=float(_typed(data, 'buffer_seconds', (int, float), defaults.buffer_seconds)),
            buffer_size=_typed(data, 'buffer_size', int, defaults.buffer_size),
            threshold=float(_typed(data, 'threshold', (int, float), defaults.threshold)),
            refractory_ms=_typed(data, 'refractory_ms', int, defaults.refractory_ms),
        )


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise TypeError(f'[{name}] must be a table')  # noqa: TRY003
    return section


def _typed(data: dict, key: str, expected: type | tuple[type, ...], default: Any) -> Any:
    value = data.get(key, default)
    # bool is an int subclass; only accept it where a bool is expected
    if isinstance(value, bool) and expected is not bool:
        raise TypeError(f"'{key}' has the wrong type")  # noqa: TRY003
    if not isinstance(value, expected):
        raise TypeError(f"'{key}' has the wrong type")  # noqa: TRY003
    return value
