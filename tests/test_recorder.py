"""Tests for the recording controller and service client."""

from pathlib import Path

import pytest

from common.ipc import BeginRecording
from common.ipc import ErrorResponse
from common.ipc import MatchNotification
from common.ipc import RequestTaps
from common.ipc import TapsResponse
from common.ipc import TransportError
from common.ipc import Unsubscribe
from common.ipc import WatchForMatch
from tap_unlock.recorder import RecordingController
from tap_unlock.session import SERVICE_UNAVAILABLE
from tap_unlock.session import SessionState

from conftest import MS


class FakeChannel:
    """In-memory stand-in for SocketChannel."""

    def __init__(self, on_message, on_closed) -> None:
        self.sent = []
        self.fail_sends = False
        self._on_message = on_message
        self._on_closed = on_closed
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, message) -> None:
        if not self._open or self.fail_sends:
            self.close()
            raise TransportError('broken pipe')
        self.sent.append(message)

    def close(self) -> None:
        if self._open:
            self._open = False
            self._on_closed()

    def deliver(self, message) -> None:
        self._on_message(message)


class FakeService:
    """Channel factory that records every channel it opens."""

    def __init__(self) -> None:
        self.channels = []
        self.available = True

    def __call__(self, socket_path, on_message, on_closed):
        if not self.available:
            raise TransportError(f'Cannot connect to {socket_path}')
        channel = FakeChannel(on_message, on_closed)
        self.channels.append(channel)
        return channel

    @property
    def channel(self) -> FakeChannel:
        return self.channels[-1]


@pytest.fixture
def fake_service():
    return FakeService()


@pytest.fixture
def installed():
    return []


@pytest.fixture
def controller(fake_service, installed, clock):
    ctrl = RecordingController(
        Path('/tmp/unused.sock'),
        installed.append,
        cutoff_ns=150 * MS,
        clock=clock,
        channel_factory=fake_service,
    )
    assert ctrl.connect()
    return ctrl


def record_and_confirm_start(controller, fake_service, clock, pattern):
    """Drive the controller up to CONFIRMING."""
    controller.start()
    clock.advance(4_000 * MS)
    controller.stop()
    fake_service.channel.deliver(TapsResponse(2, pattern))
    controller.confirm()


class TestConnection:
    """Connecting and reconnecting."""

    def test_connect_marks_session_connected(self, controller):
        assert controller.snapshot.connected
        assert controller.state == SessionState.INIT

    def test_service_down(self, fake_service, installed, clock):
        fake_service.available = False
        ctrl = RecordingController(Path('/tmp/x.sock'), installed.append, clock=clock, channel_factory=fake_service)
        assert not ctrl.connect()
        assert ctrl.snapshot.error == SERVICE_UNAVAILABLE

        transition = ctrl.start()
        assert transition.rejected == SERVICE_UNAVAILABLE
        assert ctrl.state == SessionState.INIT

    def test_start_reconnects_lazily(self, fake_service, installed, clock):
        fake_service.available = False
        ctrl = RecordingController(Path('/tmp/x.sock'), installed.append, clock=clock, channel_factory=fake_service)
        ctrl.connect()

        fake_service.available = True
        ctrl.start()
        assert ctrl.state == SessionState.RECORDING
        assert fake_service.channel.sent == [BeginRecording(1, clock.now)]


class TestSession:
    """A full recording session over the fake channel."""

    def test_record_confirm_and_install(self, controller, fake_service, clock, installed, back_back_front):
        controller.start()
        start = clock.now
        clock.advance(4_000 * MS)
        controller.stop()
        assert fake_service.channel.sent == [
            BeginRecording(1, start),
            RequestTaps(2, start, clock.now - 150 * MS),
            Unsubscribe(),
        ]

        fake_service.channel.deliver(TapsResponse(2, back_back_front))
        assert controller.snapshot.candidate == back_back_front

        controller.confirm()
        assert fake_service.channel.sent[-1] == WatchForMatch(3, back_back_front)

        fake_service.channel.deliver(MatchNotification(3, back_back_front))
        assert controller.state == SessionState.FINAL
        assert fake_service.channel.sent[-1] == Unsubscribe()
        assert installed == []

        controller.finish()
        assert installed == [back_back_front]
        assert controller.state == SessionState.INIT

        controller.finish()
        assert installed == [back_back_front]

    def test_failed_install_keeps_confirmed_pattern(self, fake_service, clock, back_back_front):
        attempts = []

        def flaky_installer(pattern):
            attempts.append(pattern)
            if len(attempts) == 1:
                raise OSError('disk full')

        ctrl = RecordingController(
            Path('/tmp/unused.sock'), flaky_installer, cutoff_ns=150 * MS, clock=clock, channel_factory=fake_service,
        )
        seen = []
        ctrl.add_listener(lambda snapshot, transition: seen.append(transition.rejected))
        ctrl.connect()
        record_and_confirm_start(ctrl, fake_service, clock, back_back_front)
        fake_service.channel.deliver(MatchNotification(3, back_back_front))

        transition = ctrl.finish()
        assert transition.rejected == 'install failed: disk full'
        assert seen[-1] == 'install failed: disk full'
        assert ctrl.state == SessionState.FINAL
        assert ctrl.snapshot.confirmed == back_back_front

        ctrl.finish()
        assert attempts == [back_back_front, back_back_front]
        assert ctrl.state == SessionState.INIT
        assert ctrl.snapshot.confirmed is None

    def test_late_match_after_retry_is_ignored(self, controller, fake_service, clock, installed, back_back_front):
        record_and_confirm_start(controller, fake_service, clock, back_back_front)
        controller.retry()
        fake_service.channel.deliver(MatchNotification(3, back_back_front))
        assert controller.state == SessionState.PATTERN_RECORDED

    def test_service_error_reverts_confirmation(self, controller, fake_service, clock, back_back_front):
        record_and_confirm_start(controller, fake_service, clock, back_back_front)
        fake_service.channel.deliver(ErrorResponse('Cannot watch', subscription_id=3))
        assert controller.state == SessionState.PATTERN_RECORDED
        assert controller.snapshot.error == 'Cannot watch'

    def test_listener_sees_every_transition(self, controller, fake_service, clock):
        seen = []
        controller.add_listener(lambda snapshot, transition: seen.append(snapshot.state))
        controller.start()
        controller.stop()
        controller.confirm()
        assert seen == [SessionState.RECORDING, SessionState.PATTERN_RECORDED, SessionState.PATTERN_RECORDED]


class TestTransportLoss:
    """Losing the service never leaves the session waiting forever."""

    def test_failed_send_becomes_transport_lost(self, controller, fake_service, clock, back_back_front):
        controller.start()
        clock.advance(4_000 * MS)
        controller.stop()
        fake_service.channel.deliver(TapsResponse(2, back_back_front))
        fake_service.channel.fail_sends = True

        transition = controller.confirm()

        assert transition.snapshot.state == SessionState.PATTERN_RECORDED
        assert not controller.snapshot.connected
        assert controller.snapshot.subscription_id is None
        assert controller.snapshot.candidate == back_back_front

    def test_confirm_again_after_reconnect(self, controller, fake_service, clock, back_back_front):
        controller.start()
        controller.stop()
        fake_service.channel.deliver(TapsResponse(2, back_back_front))
        fake_service.channel.fail_sends = True
        controller.confirm()

        controller.confirm()

        assert len(fake_service.channels) == 2
        assert controller.state == SessionState.CONFIRMING
        assert fake_service.channel.sent == [WatchForMatch(4, back_back_front)]

    def test_peer_disconnect_while_confirming(self, controller, fake_service, clock, back_back_front):
        record_and_confirm_start(controller, fake_service, clock, back_back_front)
        fake_service.channel.close()
        assert controller.state == SessionState.PATTERN_RECORDED
        assert controller.snapshot.error == SERVICE_UNAVAILABLE

    def test_peer_disconnect_while_recording(self, controller, fake_service):
        controller.start()
        fake_service.channel.close()
        assert controller.state == SessionState.INIT


def test_close_drops_subscription_quietly(controller, fake_service, clock, back_back_front):
    record_and_confirm_start(controller, fake_service, clock, back_back_front)
    channel = fake_service.channel
    controller.close()
    assert channel.sent[-1] == Unsubscribe()
    assert not channel.is_open
    assert controller.snapshot.error is None
