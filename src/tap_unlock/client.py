"""Client side of the detection service channel.

Requests are fire-and-forget: ``execute`` only sends. Answers and pushes
arrive on the channel's reader thread and are turned into session events
passed to ``on_event``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from common.ipc import BeginRecording
from common.ipc import ErrorResponse
from common.ipc import MatchNotification
from common.ipc import Message
from common.ipc import RequestTaps
from common.ipc import SocketChannel
from common.ipc import TapsResponse
from common.ipc import TransportError
from common.ipc import Unsubscribe
from common.ipc import WatchForMatch
from common.ipc import connect
from common.logging_utils import get_logger

from .session import Event
from .session import MatchReceived
from .session import ServiceRejected
from .session import TapsReceived
from .session import TransportLost


ChannelFactory = Callable[
    [Path, Callable[[Message], None], Callable[[], None]],
    SocketChannel,
]

Request = BeginRecording | RequestTaps | WatchForMatch | Unsubscribe


class ServiceClient:
    """Talk to tap-service on behalf of one recording session.

    Args:
        socket_path: Unix socket of the service
        on_event: Receives session events (called on the reader thread)
        channel_factory: Opens the channel; ``common.ipc.connect`` by default
    """

    def __init__(
        self,
        socket_path: Path,
        on_event: Callable[[Event], None],
        channel_factory: ChannelFactory = connect,
    ) -> None:
        self.socket_path = socket_path
        self.on_event = on_event
        self.channel_factory = channel_factory
        self.logger = get_logger('tap_unlock.client')
        self._channel: SocketChannel | None = None
        self._closing = False
        self._generation = 0

    @property
    def is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_open

    def connect(self) -> None:
        """Open the channel to the service.

        Raises:
            TransportError: If the service cannot be reached
        """
        if self.is_connected:
            return
        self._closing = False
        self._generation += 1
        generation = self._generation
        self._channel = self.channel_factory(
            self.socket_path,
            self._on_message,
            lambda: self._on_closed(generation),
        )
        self.logger.info(f'Connected to tap service at {self.socket_path}')

    def execute(self, request: Request) -> None:
        """Send one request without waiting for an answer.

        Raises:
            TransportError: If there is no channel or the send fails
        """
        channel = self._channel
        if channel is None:
            raise TransportError('Not connected to tap service')
        self.logger.debug(f'Sending {request.TYPE}')
        channel.send(request)

    def close(self) -> None:
        """Close the channel without reporting a transport loss."""
        self._closing = True
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

    def _on_message(self, message: Message) -> None:
        if isinstance(message, TapsResponse):
            self.on_event(TapsReceived(message.request_id, message.pattern))
        elif isinstance(message, MatchNotification):
            self.on_event(MatchReceived(message.subscription_id, message.pattern))
        elif isinstance(message, ErrorResponse):
            self.logger.warning(f'Tap service error: {message.message}')
            self.on_event(ServiceRejected(message.message, message.request_id, message.subscription_id))
        else:
            self.logger.warning(f'Unexpected message from tap service: {message.TYPE}')

    def _on_closed(self, generation: int) -> None:
        # A channel replaced by a reconnect may report its close late
        if generation != self._generation:
            return
        self._channel = None
        if self._closing:
            return
        self.logger.warning('Lost connection to tap service')
        self.on_event(TransportLost())
