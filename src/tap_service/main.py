"""Main entry point for the tap-service CLI application."""

import logging
import signal
import sys
from pathlib import Path
from typing import Any

import typer

from common.config_loader import ConfigLoader
from common.detectors import DetectorNotAvailableError
from common.detectors import SensorSource
from common.detectors import create_detector
from common.logging_utils import setup_logging
from common.models import AppConfig

from .constants import __version__
from .daemon_manager import DaemonManager
from .daemon_manager import daemonize
from .server import ServiceServer
from .service import DetectionService
from .tap_buffer import TapBuffer

app = typer.Typer(
    help=f'📳 Tap Service v{__version__} - Detect device taps and serve them to tap-unlock',
    no_args_is_help=True,
)


def _load_config(config: Path | None, debug: bool) -> AppConfig:
    try:
        app_config, _config_path = ConfigLoader.load(config)
    except FileNotFoundError as e:
        typer.echo(f'❌ Config file not found: {e}', err=True)
        raise typer.Exit(1) from e
    except Exception as e:
        typer.echo(f'❌ Failed to load config: {e}', err=True)
        raise typer.Exit(1) from e

    if debug:
        app_config.enable_debug()
    return app_config


def setup_signal_handlers(source: SensorSource) -> None:
    """Stop the sensor source on SIGINT (Ctrl-C) and SIGTERM.

    Only the source is stopped here. The handler may interrupt the main
    thread while it holds a service or buffer lock, so the rest of the
    teardown runs once ``source.start()`` returns.
    """
    def signal_handler(signum: int, _frame: Any) -> None:
        logging.getLogger('tap_service').info(f'Received signal {signum}, shutting down...')
        source.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def _run_service(daemon: DaemonManager, app_config: AppConfig, foreground: bool) -> None:
    settings = app_config.service

    try:
        detector, source = create_detector(
            settings.detector,
            device_path=settings.device_path,
            device_name=settings.device_name,
            threshold=settings.threshold,
            refractory_ns=settings.refractory_ns,
        )
    except DetectorNotAvailableError as e:
        typer.echo(f'❌ {e}', err=True)
        daemon.cleanup()
        raise typer.Exit(1) from e

    service = DetectionService(
        detector,
        TapBuffer(max_taps=settings.buffer_size, max_age_ns=settings.buffer_ns),
        verbose=app_config.verbose_logging,
    )
    server = ServiceServer(settings.socket_path, service)
    try:
        server.bind()
    except OSError as e:
        typer.echo(f'❌ Cannot listen on {settings.socket_path}: {e}', err=True)
        daemon.cleanup()
        raise typer.Exit(1) from e

    if foreground:
        typer.echo('✓ Starting tap service in foreground...')
        typer.echo(f'   Socket: {settings.socket_path}')
        typer.echo('   Press Ctrl+C to stop')
    else:
        typer.echo('✓ Starting tap service in background...')
        daemonize()
        daemon.update_pid()

    setup_logging('tap_service', app_config.log_level, foreground, app_config.log_file)
    logger = logging.getLogger('tap_service')
    logger.info(f'Tap service v{__version__} using {source.get_source_name()}')

    service.start()
    server.start_in_background()
    setup_signal_handlers(source)

    # Blocks until the source is stopped
    try:
        source.start(detector)
    except DetectorNotAvailableError as e:
        logger.error(f'Sensor source failed: {e}')
        exit_code = 1
    except KeyboardInterrupt:
        exit_code = 0
    else:
        exit_code = 0
    server.stop()
    service.stop()
    daemon.cleanup()
    sys.exit(exit_code)


@app.command()
def start(
    config: Path | None = typer.Option(None, help='Path to config file'),
    foreground: bool = typer.Option(False, '--foreground', help='Run in foreground'),
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
) -> None:
    """Start the tap detection service.

    By default the service runs as a background daemon. Use --foreground
    to run in the current terminal (useful for testing).

    Examples:
        tap-service start
        tap-service start --foreground --debug
    """
    daemon = DaemonManager()

    if not daemon.acquire_lock():
        typer.echo('❌ Another instance of tap-service is already running', err=True)
        pid = daemon.get_pid()
        if pid:
            typer.echo(f'   PID: {pid}', err=True)
        typer.echo("   Use 'tap-service stop' to stop it first", err=True)
        raise typer.Exit(1)

    app_config = _load_config(config, debug)
    _run_service(daemon, app_config, foreground)


@app.command()
def stop() -> None:
    """Stop the tap detection service."""
    daemon = DaemonManager()

    if not daemon.is_running():
        typer.echo('❌ Tap service is not running', err=True)
        raise typer.Exit(1)

    pid = daemon.get_pid()
    typer.echo(f'Stopping tap service (PID: {pid})...')
    if daemon.stop():
        typer.echo('✓ Tap service stopped')
    else:
        typer.echo('❌ Failed to stop tap service', err=True)
        raise typer.Exit(1)


@app.command()
def status(
    config: Path | None = typer.Option(None, help='Path to config file'),
) -> None:
    """Show whether the tap service is running and where it listens."""
    daemon = DaemonManager()

    if not daemon.is_running():
        typer.echo('❌ Tap service is not running')
        raise typer.Exit(1)

    typer.echo('✓ Tap service is running')
    pid = daemon.get_pid()
    if pid:
        typer.echo(f'   PID: {pid}')
    app_config = _load_config(config, debug=False)
    typer.echo(f'   Socket: {app_config.service.socket_path}')
    typer.echo(f'   Detector: {app_config.service.detector}')


@app.command(name='device-list')
def device_list() -> None:
    """List accelerometer input devices usable by the 'accelerometer' detector.

    Example:
        $ tap-service device-list
    """
    try:
        from common.detectors.evdev_source import list_accelerometer_devices
        devices = list_accelerometer_devices()
    except ImportError as e:
        typer.echo('❌ evdev library is not installed (pip install evdev)', err=True)
        raise typer.Exit(1) from e
    except PermissionError as e:
        typer.echo(f'❌ {e}', err=True)
        raise typer.Exit(1) from e

    if not devices:
        typer.echo('❌ No accelerometer devices found')
        typer.echo('💡 Use detector = "keyboard" in the [service] section to tap with keys instead')
        raise typer.Exit(1)

    typer.echo('📱 Available accelerometer devices:\n')
    for idx, device in enumerate(devices, 1):
        typer.echo(f'  {idx}. {device["name"]}')
        typer.echo(f'     Path: {device["path"]}')


if __name__ == '__main__':
    app()
