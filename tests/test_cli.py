"""Tests for console output and the tap-unlock command line."""

import logging
import tomllib

import pytest
from typer.testing import CliRunner

from common.tap_pattern import Side
from common.tap_pattern import TapPattern
from tap_unlock.formatter import format_pattern
from tap_unlock.formatter import format_pattern_toml
from tap_unlock.formatter import format_state
from tap_unlock.main import app
from tap_unlock.main import write_pattern
from tap_unlock.session import SessionSnapshot
from tap_unlock.session import SessionState


runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_loggers():
    """`record` points log handlers at the runner's stderr; drop them afterwards."""
    yield
    for name in ('tap_unlock', 'common'):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)


class TestFormatter:
    """Console text."""

    def test_pattern_toml_fragment_parses(self, back_back_front):
        data = tomllib.loads(format_pattern_toml(back_back_front))
        assert data == {'pattern': {'sides': ['BACK', 'BACK', 'FRONT'], 'pauses': [250_000_000, 500_000_000]}}

    def test_pattern_display(self, back_back_front):
        assert format_pattern(back_back_front) == 'BACK +250ms BACK +500ms FRONT'
        assert format_pattern(TapPattern()) == '(no taps)'

    def test_state_shows_candidate_and_error(self, back_back_front):
        snapshot = SessionSnapshot(
            state=SessionState.PATTERN_RECORDED,
            candidate=back_back_front,
            error='service unavailable',
        )
        text = format_state(snapshot)
        assert '[pattern_recorded]' in text
        assert 'Recorded 3 taps' in text
        assert 'service unavailable' in text

    def test_write_pattern_creates_parent_dirs(self, tmp_path):
        output = tmp_path / 'nested' / 'pattern.toml'
        write_pattern(TapPattern().append(Side.LEFT, 0), output)
        assert tomllib.loads(output.read_text())['pattern']['sides'] == ['LEFT']


class TestCommands:
    """tap-unlock subcommands."""

    def test_check_config(self, tmp_path):
        path = tmp_path / 'config.toml'
        path.write_text('[service]\ndetector = "keyboard"\n')
        result = runner.invoke(app, ['check-config', '--config', str(path)])
        assert result.exit_code == 0
        assert 'Configuration is valid' in result.output
        assert 'Detector: keyboard' in result.output

    def test_check_config_invalid(self, tmp_path):
        path = tmp_path / 'config.toml'
        path.write_text('[service]\nbuffer_size = 0\n')
        result = runner.invoke(app, ['check-config', '--config', str(path)])
        assert result.exit_code == 1

    def test_record_without_service(self, tmp_path):
        path = tmp_path / 'config.toml'
        path.write_text(f'[service]\nsocket_path = "{tmp_path / "none.sock"}"\n')
        result = runner.invoke(app, ['record', '--config', str(path)], input='\nq\n')
        assert result.exit_code == 1
        assert 'service unavailable' in result.output
