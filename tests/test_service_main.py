"""Tests for the tap-service command line wiring."""

import signal

from tap_service.main import setup_signal_handlers


class FakeSource:
    """SensorSource that only records stop requests."""

    def __init__(self) -> None:
        self.stopped = 0

    def start(self, detector) -> None:
        pass

    def stop(self) -> None:
        self.stopped += 1

    def get_source_name(self) -> str:
        return 'fake'


def test_signal_only_stops_the_source(monkeypatch):
    handlers = {}
    monkeypatch.setattr(signal, 'signal', lambda signum, handler: handlers.setdefault(signum, handler))
    source = FakeSource()

    setup_signal_handlers(source)
    assert set(handlers) == {signal.SIGINT, signal.SIGTERM}

    # Returns normally so teardown happens after source.start() returns
    handlers[signal.SIGTERM](signal.SIGTERM, None)
    assert source.stopped == 1
