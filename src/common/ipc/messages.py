"""Typed messages exchanged between a recording session and the detection service.

Every message is a small frozen dataclass. On the wire a message is one
JSON object per line with a ``type`` discriminator; patterns use the
two-array form from ``TapPattern.to_wire``.

Timestamps are integer nanoseconds of the host monotonic clock.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar

from common.tap_pattern import MalformedWireDataError
from common.tap_pattern import TapPattern


class MalformedMessageError(ValueError):
    """Raised when a line received from the peer is not a valid message."""


# ---------------------------------------------------------------- requests


@dataclass(frozen=True)
class BeginRecording:
    """Start retaining taps from ``since`` on, for the given subscription."""
    TYPE: ClassVar[str] = 'begin_recording'
    subscription_id: int
    since: int


@dataclass(frozen=True)
class RequestTaps:
    """Ask for the taps observed between ``since`` and ``cutoff`` (inclusive)."""
    TYPE: ClassVar[str] = 'request_taps'
    request_id: int
    since: int
    cutoff: int


@dataclass(frozen=True)
class WatchForMatch:
    """Push a ``MatchNotification`` whenever recent taps match ``pattern``."""
    TYPE: ClassVar[str] = 'watch_for_match'
    subscription_id: int
    pattern: TapPattern


@dataclass(frozen=True)
class Unsubscribe:
    """Drop whatever subscription the connection currently holds."""
    TYPE: ClassVar[str] = 'unsubscribe'


# ----------------------------------------------------- responses and pushes


@dataclass(frozen=True)
class TapsResponse:
    TYPE: ClassVar[str] = 'taps'
    request_id: int
    pattern: TapPattern


@dataclass(frozen=True)
class MatchNotification:
    TYPE: ClassVar[str] = 'match'
    subscription_id: int
    pattern: TapPattern


@dataclass(frozen=True)
class ErrorResponse:
    """The service refused a request or a subscription."""
    TYPE: ClassVar[str] = 'error'
    message: str
    request_id: int | None = None
    subscription_id: int | None = None


Message = (
    BeginRecording | RequestTaps | WatchForMatch | Unsubscribe
    | TapsResponse | MatchNotification | ErrorResponse
)

_MESSAGE_TYPES: dict[str, type] = {
    cls.TYPE: cls
    for cls in (
        BeginRecording, RequestTaps, WatchForMatch, Unsubscribe,
        TapsResponse, MatchNotification, ErrorResponse,
    )
}

_INT_FIELDS = ('subscription_id', 'request_id', 'since', 'cutoff')


def encode_message(message: Message) -> bytes:
    """Encode a message as a single newline-terminated JSON line."""
    payload: dict[str, Any] = {'type': message.TYPE}
    for name, value in vars(message).items():
        payload[name] = value.to_wire() if isinstance(value, TapPattern) else value
    return json.dumps(payload, separators=(',', ':')).encode('utf-8') + b'\n'


def decode_message(line: bytes | str) -> Message:
    """Decode one JSON line into a typed message.

    Raises:
        MalformedMessageError: If the line is not JSON, has an unknown type,
            misses fields or carries a malformed pattern
    """
    try:
        payload = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessageError(f'Invalid JSON: {e}') from e
    if not isinstance(payload, dict):
        raise MalformedMessageError('Message must be a JSON object')

    msg_type = payload.pop('type', None)
    cls = _MESSAGE_TYPES.get(msg_type) if isinstance(msg_type, str) else None
    if cls is None:
        raise MalformedMessageError(f'Unknown message type: {msg_type!r}')

    if 'pattern' in payload:
        try:
            payload['pattern'] = TapPattern.from_wire(payload['pattern'])
        except MalformedWireDataError as e:
            raise MalformedMessageError(f'Malformed pattern in {msg_type}: {e}') from e

    for name in _INT_FIELDS:
        value = payload.get(name)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise MalformedMessageError(f"'{name}' must be an integer in {msg_type}")

    try:
        return cls(**payload)
    except TypeError as e:
        raise MalformedMessageError(f'Bad fields for {msg_type}: {e}') from e
