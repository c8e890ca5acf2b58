"""Line-oriented message channel over a Unix stream socket.

A ``SocketChannel`` owns one connected socket. Sends are serialized by a
lock and may be called from any thread; incoming lines are decoded on a
dedicated reader thread and handed to ``on_message``. When the peer goes
away (EOF or socket error) ``on_closed`` is called exactly once.

A malformed line only costs that single message: it is logged and
dropped, and the reader keeps going.
"""

from __future__ import annotations

import socket
import threading
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from common.logging_utils import get_logger

from .messages import MalformedMessageError
from .messages import Message
from .messages import decode_message
from .messages import encode_message


class TransportError(Exception):
    """Raised when the channel is unavailable or the peer died."""


class SocketChannel:
    """Bidirectional message channel on top of a connected socket.

    Args:
        sock: Connected stream socket (AF_UNIX in production, socketpair in tests)
        on_message: Called on the reader thread for every decoded message
        on_closed: Called once when the connection is lost or closed
        name: Name used in logs and for the reader thread
    """

    def __init__(
        self,
        sock: socket.socket,
        on_message: Callable[[Message], None],
        on_closed: Callable[[], None] | None = None,
        name: str = 'channel',
    ) -> None:
        self.name = name
        self.logger = get_logger('common.ipc')
        self._sock = sock
        self._on_message = on_message
        self._on_closed = on_closed
        self._send_lock = threading.Lock()
        self._closed = threading.Event()
        self._close_notified = False
        self._close_lock = threading.Lock()
        self._reader: threading.Thread | None = None

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set()

    def start(self) -> None:
        """Start the reader thread."""
        self._reader = threading.Thread(
            target=self._read_loop,
            daemon=True,
            name=f'ipc-read-{self.name}',
        )
        self._reader.start()

    def send(self, message: Message) -> None:
        """Send one message to the peer.

        Raises:
            TransportError: If the channel is closed or the write fails
        """
        if self._closed.is_set():
            raise TransportError(f'{self.name}: channel is closed')
        data = encode_message(message)
        try:
            with self._send_lock:
                self._sock.sendall(data)
        except OSError as e:
            self.logger.warning(f'{self.name}: send failed: {e}')
            self._shutdown()
            raise TransportError(f'{self.name}: send failed: {e}') from e

    def close(self) -> None:
        """Close the connection; ``on_closed`` fires if it has not yet."""
        self._shutdown()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the reader thread to finish."""
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=timeout)

    def _read_loop(self) -> None:
        try:
            with self._sock.makefile('rb') as stream:
                for line in stream:
                    if not line.strip():
                        continue
                    try:
                        message = decode_message(line)
                    except MalformedMessageError as e:
                        self.logger.warning(f'{self.name}: dropping malformed message: {e}')
                        continue
                    try:
                        self._on_message(message)
                    except Exception as e:  # noqa: BLE001
                        self.logger.error(f'{self.name}: error handling {message.TYPE}: {e}', exc_info=True)
        except (OSError, ValueError) as e:
            # ValueError: the socket was closed under the reader
            if self.is_open:
                self.logger.debug(f'{self.name}: read failed: {e}')
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        self._closed.set()
        with suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        with suppress(OSError):
            self._sock.close()

        with self._close_lock:
            if self._close_notified:
                return
            self._close_notified = True
        self.logger.debug(f'{self.name}: connection closed')
        if self._on_closed is not None:
            self._on_closed()


def connect(
    socket_path: Path,
    on_message: Callable[[Message], None],
    on_closed: Callable[[], None] | None = None,
    timeout: float = 2.0,
) -> SocketChannel:
    """Connect to the detection service socket and start reading.

    Raises:
        TransportError: If the service is not reachable
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(str(socket_path))
    except OSError as e:
        sock.close()
        raise TransportError(f'Cannot connect to {socket_path}: {e}') from e
    sock.settimeout(None)

    channel = SocketChannel(sock, on_message, on_closed, name='client')
    channel.start()
    return channel
