"""Output formatting utilities for tap-unlock.

This module provides functions to format recording session output for the
console, including the TOML fragment of a confirmed pattern.
"""

from common.tap_pattern import TapPattern

from .constants import __version__
from .session import SessionSnapshot
from .session import SessionState


_STATE_HINTS = {
    SessionState.INIT: 'Press Enter to start recording',
    SessionState.RECORDING: 'Tap your pattern, then press Enter to stop',
    SessionState.PATTERN_RECORDED: 'Press Enter to confirm, r to record again',
    SessionState.CONFIRMING: 'Tap the same pattern again to confirm (r to go back)',
    SessionState.FINAL: 'Pattern confirmed! Press Enter to save it, r to start over',
}


def format_header(socket_path: str) -> str:
    """Format the application header.

    Args:
        socket_path: Socket of the tap service

    Returns:
        str: Formatted header string
    """
    return f"""📳 Tap Unlock v{__version__}
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Tap service: {socket_path}
Enter advances, r retries, q quits
"""


def format_pattern(pattern: TapPattern) -> str:
    """Format a pattern as 'SIDE (+pause ms) SIDE ...' for display."""
    if pattern.size() == 0:
        return '(no taps)'
    parts = [pattern.get_side(0).name]
    for i in range(1, pattern.size()):
        parts.append(f'+{pattern.get_pause(i) / 1_000_000:.0f}ms {pattern.get_side(i).name}')
    return ' '.join(parts)


def format_state(snapshot: SessionSnapshot) -> str:
    """Format the current session state with the matching operator hint.

    Args:
        snapshot: Current session snapshot

    Returns:
        str: One or more lines describing the state
    """
    lines = [f'[{snapshot.state.value}] {_STATE_HINTS[snapshot.state]}']
    if snapshot.state == SessionState.PATTERN_RECORDED:
        if snapshot.candidate is None:
            lines.append('  Waiting for the recorded taps...')
        else:
            lines.append(f'  Recorded {snapshot.candidate.size()} taps: {format_pattern(snapshot.candidate)}')
    if snapshot.error:
        lines.append(f'  ⚠️  {snapshot.error}')
    return '\n'.join(lines)


def format_rejected(reason: str) -> str:
    return f'✗ {reason}'


def format_pattern_toml(pattern: TapPattern) -> str:
    """Format a confirmed pattern as a TOML config fragment.

    Args:
        pattern: Confirmed pattern

    Returns:
        str: ``[pattern]`` table with side names and pauses in nanoseconds
    """
    sides = ', '.join(f'"{side.name}"' for side in pattern.sides)
    pauses = ', '.join(str(pause) for pause in pattern.pauses)
    return f"""[pattern]
sides = [{sides}]
pauses = [{pauses}]
"""


def format_pattern_saved(pattern: TapPattern, output: str | None) -> str:
    """Format the message shown once the confirmed pattern is handed over."""
    fragment = format_pattern_toml(pattern)
    if output:
        return f'\n✓ Pattern saved to {output}\n'
    return f"""
✓ Pattern confirmed!

  📋 TOML config fragment:
  ────────────────────────────────────────────
{fragment}  ────────────────────────────────────────────
"""
