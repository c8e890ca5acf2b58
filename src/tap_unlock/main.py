"""Main entry point for the tap-unlock CLI application."""

from pathlib import Path

import typer

from common.config_loader import ConfigLoader
from common.logging_utils import setup_logging
from common.models import AppConfig
from common.tap_pattern import TapPattern

from .constants import __version__
from .formatter import format_header
from .formatter import format_pattern_saved
from .formatter import format_pattern_toml
from .formatter import format_rejected
from .formatter import format_state
from .recorder import RecordingController
from .session import SessionSnapshot
from .session import SessionState
from .session import Transition

app = typer.Typer(
    help=f'📳 Tap Unlock v{__version__} - Record and confirm a tap pattern',
    no_args_is_help=True,
)


def _load_config(config: Path | None, debug: bool) -> tuple[AppConfig, Path | None]:
    try:
        app_config, config_path = ConfigLoader.load(config)
    except FileNotFoundError as e:
        typer.echo(f'❌ Config file not found: {e}', err=True)
        raise typer.Exit(1) from e
    except Exception as e:
        typer.echo(f'❌ Configuration error: {e}', err=True)
        raise typer.Exit(1) from e

    if debug:
        app_config.enable_debug()
    return app_config, config_path


def write_pattern(pattern: TapPattern, output: Path) -> None:
    """Write the confirmed pattern as a TOML fragment to ``output``."""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(format_pattern_toml(pattern), encoding='utf-8')


def press_enter(controller: RecordingController) -> None:
    """Advance the session the way Enter does in the current state."""
    state = controller.state
    if state == SessionState.INIT:
        controller.start()
    elif state == SessionState.RECORDING:
        controller.stop()
    elif state == SessionState.PATTERN_RECORDED:
        controller.confirm()
    elif state == SessionState.FINAL:
        controller.finish()
    else:
        typer.echo(format_state(controller.snapshot))


@app.command()
def record(
    config: Path | None = typer.Option(None, help='Path to config file'),
    output: Path | None = typer.Option(None, '--output', '-o', help='Write the confirmed pattern to this file'),
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
) -> None:
    """Record a tap pattern and confirm it by tapping it again.

    Requires a running tap-service. Press Enter to start recording, tap
    the pattern, press Enter to stop. Press Enter again and repeat the
    pattern to confirm it. Once confirmed, Enter saves it.

    Examples:
        tap-unlock record
        tap-unlock record --output ~/.config/tap-unlock/pattern.toml
    """
    app_config, _config_path = _load_config(config, debug)
    # Keep the console for the session unless debugging or logging to a file
    log_level = app_config.log_level if app_config.debug_mode else 'WARNING'
    setup_logging('tap_unlock', log_level, app_config.log_file is None, app_config.log_file)

    saved: list[TapPattern] = []

    def install(pattern: TapPattern) -> None:
        if output is not None:
            write_pattern(pattern, output)
        saved.append(pattern)
        typer.echo(format_pattern_saved(pattern, str(output) if output else None))

    def on_change(snapshot: SessionSnapshot, transition: Transition) -> None:
        if transition.ignored:
            return
        if transition.rejected:
            typer.echo(format_rejected(transition.rejected))
            return
        typer.echo(format_state(snapshot))

    controller = RecordingController(
        app_config.service.socket_path,
        install,
        cutoff_ns=app_config.recording.cutoff_ns,
    )
    controller.add_listener(on_change)

    typer.echo(format_header(str(app_config.service.socket_path)))
    controller.connect()

    try:
        while not saved:
            command = input().strip().lower()
            if command == 'q':
                break
            if command == 'r':
                controller.retry()
            elif command:
                typer.echo(format_rejected(f'Unknown command: {command}'))
            else:
                press_enter(controller)
    except (EOFError, KeyboardInterrupt):
        typer.echo('')
    finally:
        controller.close()

    if not saved:
        typer.echo('👋 No pattern saved')
        raise typer.Exit(1)


@app.command(name='check-config')
def check_config(
    config: Path | None = typer.Option(None, help='Path to config file'),
) -> None:
    """Validate configuration file.

    Examples:
        tap-unlock check-config
        tap-unlock check-config --config /path/to/config.toml
    """
    app_config, config_path = _load_config(config, debug=False)

    typer.echo('✓ Configuration is valid\n')
    typer.echo(f'Config file: {config_path or "(built-in defaults)"}')
    typer.echo(f'Log level: {app_config.log_level}')
    if app_config.log_file:
        typer.echo(f'Log file: {app_config.log_file}')
    typer.echo(f'Debug mode: {app_config.debug_mode}')
    typer.echo(f'Verbose logging: {app_config.verbose_logging}')

    service = app_config.service
    typer.echo('\nService:')
    typer.echo(f'   Socket: {service.socket_path}')
    typer.echo(f'   Detector: {service.detector}')
    if service.device_path:
        typer.echo(f'   Device path: {service.device_path}')
    elif service.device_name:
        typer.echo(f'   Device name: {service.device_name}')
    typer.echo(f'   Buffer: {service.buffer_size} taps / {service.buffer_seconds}s')
    if service.detector == 'accelerometer':
        typer.echo(f'   Threshold: {service.threshold} m/s²')
        typer.echo(f'   Refractory: {service.refractory_ms}ms')

    typer.echo('\nRecording:')
    typer.echo(f'   Cutoff: {app_config.recording.cutoff_ms}ms')


if __name__ == '__main__':
    app()
