"""Message-passing contract between recording sessions and the detection service.

Typed requests, responses and pushes travel as JSON lines over a Unix
stream socket.
"""

from .channel import SocketChannel, TransportError, connect
from .messages import (
    BeginRecording,
    ErrorResponse,
    MalformedMessageError,
    MatchNotification,
    Message,
    RequestTaps,
    TapsResponse,
    Unsubscribe,
    WatchForMatch,
    decode_message,
    encode_message,
)

__all__ = [
    'BeginRecording',
    'ErrorResponse',
    'MalformedMessageError',
    'MatchNotification',
    'Message',
    'RequestTaps',
    'SocketChannel',
    'TapsResponse',
    'TransportError',
    'Unsubscribe',
    'WatchForMatch',
    'connect',
    'decode_message',
    'encode_message',
]
