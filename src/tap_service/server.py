"""Unix socket server exposing the detection service to recording sessions."""

from __future__ import annotations

import itertools
import os
import socket
import threading
from contextlib import suppress
from pathlib import Path

from common.ipc import SocketChannel
from common.logging_utils import get_logger

from .service import DetectionService


class ServiceServer:
    """Accept session connections and wire each one to the service.

    Every accepted connection gets its own ``SocketChannel``; its messages
    are passed to ``DetectionService.handle`` and its disconnection to
    ``DetectionService.detach``.

    Args:
        socket_path: Filesystem path of the Unix socket
        service: Detection service to expose
    """

    def __init__(self, socket_path: Path, service: DetectionService) -> None:
        self.socket_path = socket_path
        self.service = service
        self.logger = get_logger('tap_service.server')
        self._sock: socket.socket | None = None
        self._stop_event = threading.Event()
        self._channels: dict[int, SocketChannel] = {}
        self._channels_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._thread: threading.Thread | None = None

    def bind(self) -> None:
        """Create the listening socket, replacing a stale socket file.

        Raises:
            OSError: If the socket cannot be created
        """
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        self.socket_path.unlink(missing_ok=True)

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self.socket_path))
            os.chmod(self.socket_path, 0o600)
            sock.listen(8)
        except OSError:
            sock.close()
            raise
        # Periodic timeout so the accept loop notices stop()
        sock.settimeout(0.5)
        self._sock = sock
        self.logger.info(f'Listening on {self.socket_path}')

    def serve_forever(self) -> None:
        """Accept connections until ``stop()`` is called (blocking call)."""
        if self._sock is None:
            self.bind()
        self._accept_loop(self._sock)

    def _accept_loop(self, sock: socket.socket) -> None:
        while not self._stop_event.is_set():
            try:
                conn, _addr = sock.accept()
            except TimeoutError:
                continue
            except OSError as e:
                if not self._stop_event.is_set():
                    self.logger.error(f'Accept failed: {e}')
                break
            conn.settimeout(None)
            self._register(conn)

    def start_in_background(self) -> threading.Thread:
        """Run ``serve_forever`` on a daemon thread."""
        if self._sock is None:
            self.bind()
        self._thread = threading.Thread(
            target=self._accept_loop,
            args=(self._sock,),
            daemon=True,
            name='tap-service-accept',
        )
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop accepting, close every session and remove the socket file."""
        self._stop_event.set()
        with self._channels_lock:
            channels = list(self._channels.values())
        for channel in channels:
            channel.close()
        if self._sock is not None:
            with suppress(OSError):
                self._sock.close()
            self._sock = None
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self.socket_path.unlink(missing_ok=True)
        self.logger.info('Server stopped')

    def _register(self, conn: socket.socket) -> None:
        client_id = next(self._ids)

        def on_closed() -> None:
            with self._channels_lock:
                self._channels.pop(client_id, None)
            self.service.detach(client_id)
            self.logger.info(f'Session {client_id} disconnected')

        channel = SocketChannel(
            conn,
            on_message=lambda message: self.service.handle(client_id, message),
            on_closed=on_closed,
            name=f'session-{client_id}',
        )
        with self._channels_lock:
            self._channels[client_id] = channel
        self.service.attach(client_id, channel.send)
        channel.start()
        self.logger.info(f'Session {client_id} connected')
