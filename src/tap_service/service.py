"""Detection service: tap buffer plus recording and match subscriptions.

The service observes one TapDetector, keeps recently detected taps in a
``TapBuffer`` and serves connected sessions. Each session (connection)
holds at most one subscription at a time:

- a *recording* subscription pins the buffer from its start time so the
  taps of a long recording are not pruned before they are requested;
- a *watch* subscription compares the latest taps against a reference
  pattern after every tap and pushes a match notification.

Installing a subscription replaces the previous one of the same session,
and every push is tagged with the subscription id so the session can
recognise notifications that were already in flight when it moved on.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from common.ipc import BeginRecording
from common.ipc import ErrorResponse
from common.ipc import MatchNotification
from common.ipc import Message
from common.ipc import RequestTaps
from common.ipc import TapsResponse
from common.ipc import TransportError
from common.ipc import Unsubscribe
from common.ipc import WatchForMatch
from common.logging_utils import get_logger
from common.pattern_matcher import matches
from common.tap_pattern import Side
from common.tap_pattern import TapPattern
from common.detectors import TapDetector

from .tap_buffer import Tap
from .tap_buffer import TapBuffer


ClientId = int
Sink = Callable[[Message], None]


@dataclass
class Subscription:
    """The single subscription a session holds with the service.

    Attributes:
        subscription_id: Id chosen by the session, echoed in pushes
        since: Recording start, or the time a watch was installed
        pattern: Reference pattern of a watch (None for a recording)
        armed_at: Only taps strictly after this timestamp can match
    """
    subscription_id: int
    since: int
    pattern: TapPattern | None = None
    armed_at: int = 0

    @property
    def is_watch(self) -> bool:
        return self.pattern is not None


class DetectionService:
    """Serve tap windows and match notifications to connected sessions.

    Args:
        detector: Detector to observe (registered on ``start()``)
        buffer: Tap buffer filled by the detector callback
        clock: Monotonic nanosecond clock, shared with the sessions
        verbose: Log every tap at debug level
    """

    def __init__(
        self,
        detector: TapDetector,
        buffer: TapBuffer,
        clock: Callable[[], int] = time.monotonic_ns,
        verbose: bool = False,
    ) -> None:
        self.detector = detector
        self.buffer = buffer
        self.clock = clock
        self.verbose = verbose
        self.logger = get_logger('tap_service.service')
        self._sinks: dict[ClientId, Sink] = {}
        self._subscriptions: dict[ClientId, Subscription] = {}
        # Reentrant: a failed send closes the channel, which detaches the client
        self._lock = threading.RLock()

    def start(self) -> None:
        self.detector.register_observer(self)
        self.logger.info('Detection service observing detector')

    def stop(self) -> None:
        self.detector.remove_observer(self)
        with self._lock:
            for client_id in list(self._sinks):
                self.detach(client_id)
        self.logger.info('Detection service stopped')

    # ------------------------------------------------------------ sessions

    def attach(self, client_id: ClientId, sink: Sink) -> None:
        """Register a connected session and the function used to reach it."""
        with self._lock:
            self._sinks[client_id] = sink
        self.logger.debug(f'Session {client_id} attached')

    def detach(self, client_id: ClientId) -> None:
        """Forget a session and drop its subscription."""
        with self._lock:
            self._sinks.pop(client_id, None)
            self._drop_subscription(client_id)
        self.logger.debug(f'Session {client_id} detached')

    def subscription_of(self, client_id: ClientId) -> Subscription | None:
        with self._lock:
            return self._subscriptions.get(client_id)

    def handle(self, client_id: ClientId, message: Message) -> None:
        """Handle one request from a session, replying through its sink."""
        with self._lock:
            if isinstance(message, BeginRecording):
                self._install(client_id, Subscription(message.subscription_id, message.since))
                self.buffer.pin(client_id, message.since)
                self.logger.info(f'Session {client_id}: recording from {message.since}')

            elif isinstance(message, RequestTaps):
                pattern = self.buffer.pattern_between(message.since, message.cutoff)
                self.logger.info(f'Session {client_id}: sending {pattern.size()} tap(s) recorded')
                self._send(client_id, TapsResponse(message.request_id, pattern))

            elif isinstance(message, WatchForMatch):
                if message.pattern.size() == 0:
                    self._send(client_id, ErrorResponse(
                        'Cannot watch for an empty pattern',
                        subscription_id=message.subscription_id,
                    ))
                    return
                now = self.clock()
                self._install(client_id, Subscription(
                    message.subscription_id, now, pattern=message.pattern, armed_at=now,
                ))
                self.logger.info(
                    f'Session {client_id}: watching for {message.pattern.size()}-tap pattern '
                    f'(subscription {message.subscription_id})'
                )

            elif isinstance(message, Unsubscribe):
                self._drop_subscription(client_id)
                self.logger.debug(f'Session {client_id}: unsubscribed')

            else:
                self.logger.warning(f'Session {client_id}: unexpected message {message.TYPE}')
                self._send(client_id, ErrorResponse(f'Unexpected message: {message.TYPE}'))

    # ------------------------------------------------------------ detector

    def on_tap(self, timestamp: int, now: int, side: Side) -> None:
        """TapObserver callback, invoked on the sensor thread."""
        if not self.buffer.append(Tap(timestamp, side)):
            self.logger.debug(f'Dropping out-of-order tap at {timestamp}')
            return
        if self.verbose:
            self.logger.debug(f'Tap on {side.name} at {timestamp} (latency {now - timestamp}ns)')

        with self._lock:
            for client_id, sub in list(self._subscriptions.items()):
                if sub.is_watch:
                    self._check_watch(client_id, sub)

    def _check_watch(self, client_id: ClientId, sub: Subscription) -> None:
        reference = sub.pattern
        taps = self.buffer.latest(reference.size(), after=sub.armed_at)
        if len(taps) < reference.size():
            return
        candidate = TapPattern.from_taps([(tap.timestamp, tap.side) for tap in taps])
        if not matches(reference, candidate):
            return

        # Re-arm so the same taps never produce a second notification
        sub.armed_at = taps[-1].timestamp
        self.logger.info(f'Session {client_id}: pattern matched (subscription {sub.subscription_id})')
        self._send(client_id, MatchNotification(sub.subscription_id, candidate))

    # ------------------------------------------------------------ helpers

    def _install(self, client_id: ClientId, sub: Subscription) -> None:
        self._drop_subscription(client_id)
        self._subscriptions[client_id] = sub

    def _drop_subscription(self, client_id: ClientId) -> None:
        self._subscriptions.pop(client_id, None)
        self.buffer.unpin(client_id)

    def _send(self, client_id: ClientId, message: Message) -> None:
        sink = self._sinks.get(client_id)
        if sink is None:
            return
        try:
            sink(message)
        except TransportError as e:
            self.logger.warning(f'Session {client_id}: cannot deliver {message.TYPE}: {e}')
            self.detach(client_id)
