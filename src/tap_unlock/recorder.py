"""Recording controller: drives a session against the detection service.

This module integrates:
- the pure session state machine (``tap_unlock.session``)
- the ServiceClient (sends requests, turns answers into events)
- an installer callable that receives the confirmed pattern exactly once

Operator actions and service events may come from different threads; all
of them go through ``dispatch`` under one lock. Nothing here blocks on the
service: waiting for confirmation is a state, left when the match event
arrives.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from common.ipc import TransportError
from common.ipc import connect
from common.logging_utils import get_logger
from common.tap_pattern import TapPattern

from .client import ChannelFactory
from .client import ServiceClient
from .session import SERVICE_UNAVAILABLE
from .session import ConfirmPressed
from .session import Connected
from .session import Event
from .session import FinishPressed
from .session import InstallPattern
from .session import RetryPressed
from .session import SessionSnapshot
from .session import SessionState
from .session import StartPressed
from .session import StopPressed
from .session import Transition
from .session import TransportLost
from .session import advance


Installer = Callable[[TapPattern], None]
Listener = Callable[[SessionSnapshot, Transition], None]


class RecordingController:
    """Run one recording session against tap-service.

    Args:
        socket_path: Unix socket of the service
        installer: Receives the confirmed pattern when the operator finishes
        cutoff_ns: Trailing time excluded from a recording when it stops
        clock: Monotonic nanosecond clock shared with the service
        channel_factory: Opens the channel (``common.ipc.connect`` by default)
    """

    def __init__(
        self,
        socket_path: Path,
        installer: Installer,
        cutoff_ns: int = 150_000_000,
        clock: Callable[[], int] = time.monotonic_ns,
        channel_factory: ChannelFactory = connect,
    ) -> None:
        self.installer = installer
        self.cutoff_ns = cutoff_ns
        self.clock = clock
        self.logger = get_logger('tap_unlock.recorder')
        self.client = ServiceClient(socket_path, self.dispatch, channel_factory)
        self._snapshot = SessionSnapshot()
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def state(self) -> SessionState:
        return self.snapshot.state

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener`` after every accepted, rejected or stale event."""
        self._listeners.append(listener)

    # ------------------------------------------------------------ operator

    def connect(self) -> bool:
        """Connect to the service.

        Returns:
            bool: True if the channel is up
        """
        with self._lock:
            try:
                self.client.connect()
            except TransportError as e:
                self.logger.warning(f'Tap service unavailable: {e}')
                self.dispatch(TransportLost(SERVICE_UNAVAILABLE))
                return False
            self.dispatch(Connected())
            return True

    def start(self) -> Transition:
        self._reconnect_if_needed()
        return self.dispatch(StartPressed(self.clock()))

    def stop(self) -> Transition:
        self._reconnect_if_needed()
        return self.dispatch(StopPressed(self.clock()))

    def confirm(self) -> Transition:
        self._reconnect_if_needed()
        return self.dispatch(ConfirmPressed())

    def retry(self) -> Transition:
        return self.dispatch(RetryPressed())

    def finish(self) -> Transition:
        return self.dispatch(FinishPressed())

    def close(self) -> None:
        """Drop any subscription and close the channel."""
        with self._lock:
            if self._snapshot.subscription_id is not None and self.client.is_connected:
                self.dispatch(RetryPressed())
            self.client.close()

    def _reconnect_if_needed(self) -> None:
        if not self.client.is_connected:
            self.connect()

    # ------------------------------------------------------------ events

    def dispatch(self, event: Event) -> Transition:
        """Apply one event and execute the resulting commands.

        A failed send is turned into a ``TransportLost`` event, whose
        transition is returned instead. A failing installer leaves the
        session in FINAL with the error set and the event rejected.
        """
        with self._lock:
            previous = self._snapshot
            transition = advance(previous, event, self.cutoff_ns)
            self._snapshot = transition.snapshot

            if transition.ignored:
                self.logger.debug(f'Ignoring stale {type(event).__name__} in {previous.state.value}')
            elif transition.rejected:
                self.logger.info(f'{type(event).__name__} rejected: {transition.rejected}')
            elif previous.state != transition.snapshot.state:
                self.logger.info(f'Session {previous.state.value} -> {transition.snapshot.state.value}')

            for command in transition.commands:
                if isinstance(command, InstallPattern):
                    self.logger.info(f'Installing confirmed pattern ({command.pattern.size()} taps)')
                    try:
                        self.installer(command.pattern)
                    except Exception as e:
                        # Stay in FINAL so finishing again retries the install
                        self.logger.error(f'Installing pattern failed: {e}')
                        reason = f'install failed: {e}'
                        self._snapshot = replace(previous, error=reason)
                        transition = Transition(self._snapshot, rejected=reason)
                        break
                    continue
                try:
                    self.client.execute(command)
                except TransportError as e:
                    self.logger.warning(f'Request {command.TYPE} failed: {e}')
                    return self.dispatch(TransportLost(SERVICE_UNAVAILABLE))

            for listener in list(self._listeners):
                listener(self._snapshot, transition)
            return transition
