"""Recording session state machine.

The operator records a pattern, then confirms it by tapping it again:

    INIT --start--> RECORDING --stop--> PATTERN_RECORDED --confirm--> CONFIRMING
    CONFIRMING --match--> FINAL --finish--> INIT (pattern handed to the installer)

    retry: RECORDING -> INIT, PATTERN_RECORDED -> INIT,
           CONFIRMING -> PATTERN_RECORDED, FINAL -> INIT

``advance`` is a pure function of (snapshot, event). It never talks to the
service itself; it returns the commands to send, which keeps every
transition testable without a channel. ``RecordingController`` in
``tap_unlock.recorder`` executes the commands.

Losing the service is an event like any other and every state has a
defined answer to it, so the snapshot never claims a subscription the
service no longer holds.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from enum import Enum

from common.ipc import BeginRecording
from common.ipc import RequestTaps
from common.ipc import Unsubscribe
from common.ipc import WatchForMatch
from common.tap_pattern import TapPattern


SERVICE_UNAVAILABLE = 'service unavailable'


class SessionState(Enum):
    INIT = 'init'
    RECORDING = 'recording'
    PATTERN_RECORDED = 'pattern_recorded'
    CONFIRMING = 'confirming'
    FINAL = 'final'


# ---------------------------------------------------------------- events


@dataclass(frozen=True)
class Connected:
    """The channel to the detection service is up."""


@dataclass(frozen=True)
class TransportLost:
    """The channel dropped or a send failed; in-flight requests are gone."""
    reason: str = SERVICE_UNAVAILABLE


@dataclass(frozen=True)
class StartPressed:
    now: int


@dataclass(frozen=True)
class StopPressed:
    now: int


@dataclass(frozen=True)
class ConfirmPressed:
    pass


@dataclass(frozen=True)
class RetryPressed:
    pass


@dataclass(frozen=True)
class FinishPressed:
    pass


@dataclass(frozen=True)
class TapsReceived:
    request_id: int
    pattern: TapPattern


@dataclass(frozen=True)
class MatchReceived:
    subscription_id: int
    pattern: TapPattern


@dataclass(frozen=True)
class ServiceRejected:
    """The service answered a request or subscription with an error."""
    message: str
    request_id: int | None = None
    subscription_id: int | None = None


Event = (
    Connected | TransportLost | StartPressed | StopPressed | ConfirmPressed
    | RetryPressed | FinishPressed | TapsReceived | MatchReceived | ServiceRejected
)


@dataclass(frozen=True)
class InstallPattern:
    """Hand the confirmed pattern over to the installer, exactly once."""
    pattern: TapPattern


Command = BeginRecording | RequestTaps | WatchForMatch | Unsubscribe | InstallPattern


# ---------------------------------------------------------------- snapshot


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable state of one recording session.

    Attributes:
        state: Current state
        connected: Whether a channel to the service is up
        started_at: Recording start (monotonic ns), set while recording
        pending_request: Id of the taps request awaiting its answer
        candidate: Recorded pattern, once the service delivered it
        subscription_id: Id of the subscription the service holds for us
        confirmed: Pattern confirmed in FINAL, until handed to the installer
        next_id: Next request/subscription id (strictly increasing)
        error: Last problem to show to the operator
    """
    state: SessionState = SessionState.INIT
    connected: bool = False
    started_at: int | None = None
    pending_request: int | None = None
    candidate: TapPattern | None = None
    subscription_id: int | None = None
    confirmed: TapPattern | None = None
    next_id: int = 1
    error: str | None = None


@dataclass(frozen=True)
class Transition:
    """Result of applying one event.

    Attributes:
        snapshot: The new snapshot (the old one when the event was rejected)
        commands: Commands to execute, in order
        rejected: Why the event was refused, None if it was accepted
        ignored: True when the event was stale and dropped silently
    """
    snapshot: SessionSnapshot
    commands: list[Command] = field(default_factory=list)
    rejected: str | None = None
    ignored: bool = False


def _reject(snapshot: SessionSnapshot, reason: str) -> Transition:
    return Transition(replace(snapshot, error=reason), rejected=reason)


def _ignore(snapshot: SessionSnapshot) -> Transition:
    return Transition(snapshot, ignored=True)


def _reset(snapshot: SessionSnapshot, **changes: object) -> SessionSnapshot:
    """Back to INIT, keeping only connection status and the id counter."""
    fresh = SessionSnapshot(connected=snapshot.connected, next_id=snapshot.next_id)
    return replace(fresh, **changes)


def _after_transport_lost(snapshot: SessionSnapshot, reason: str) -> SessionSnapshot:
    state = snapshot.state
    lost = replace(snapshot, connected=False, subscription_id=None, error=reason)
    if state == SessionState.RECORDING:
        return _reset(lost, connected=False, error=reason)
    if state == SessionState.PATTERN_RECORDED:
        if snapshot.candidate is None:
            return _reset(lost, connected=False, error=reason)
        return replace(lost, pending_request=None)
    if state == SessionState.CONFIRMING:
        return replace(lost, state=SessionState.PATTERN_RECORDED)
    # INIT and FINAL hold nothing remote
    return lost


def advance(snapshot: SessionSnapshot, event: Event, cutoff_ns: int = 150_000_000) -> Transition:
    """Apply one event to a session snapshot.

    Args:
        snapshot: Current session snapshot
        event: What happened
        cutoff_ns: Trailing time excluded from a recording when it stops

    Returns:
        Transition: New snapshot and the commands to execute
    """
    state = snapshot.state

    if isinstance(event, Connected):
        return Transition(replace(snapshot, connected=True, error=None))

    if isinstance(event, TransportLost):
        return Transition(_after_transport_lost(snapshot, event.reason))

    if isinstance(event, StartPressed):
        if state != SessionState.INIT:
            return _reject(snapshot, f'cannot start recording while {state.value}')
        if not snapshot.connected:
            return _reject(snapshot, SERVICE_UNAVAILABLE)
        sub_id = snapshot.next_id
        new = _reset(
            snapshot,
            state=SessionState.RECORDING,
            started_at=event.now,
            subscription_id=sub_id,
            next_id=sub_id + 1,
        )
        return Transition(new, [BeginRecording(sub_id, event.now)])

    if isinstance(event, StopPressed):
        if state != SessionState.RECORDING:
            return _reject(snapshot, f'cannot stop recording while {state.value}')
        if not snapshot.connected:
            return _reject(snapshot, SERVICE_UNAVAILABLE)
        request_id = snapshot.next_id
        cutoff = max(event.now - cutoff_ns, snapshot.started_at)
        new = replace(
            snapshot,
            state=SessionState.PATTERN_RECORDED,
            pending_request=request_id,
            candidate=None,
            subscription_id=None,
            next_id=request_id + 1,
            error=None,
        )
        return Transition(new, [RequestTaps(request_id, snapshot.started_at, cutoff), Unsubscribe()])

    if isinstance(event, TapsReceived):
        if state != SessionState.PATTERN_RECORDED or event.request_id != snapshot.pending_request:
            return _ignore(snapshot)
        return Transition(replace(snapshot, pending_request=None, candidate=event.pattern))

    if isinstance(event, ConfirmPressed):
        if state != SessionState.PATTERN_RECORDED:
            return _reject(snapshot, f'nothing to confirm while {state.value}')
        if snapshot.candidate is None:
            return _reject(snapshot, 'recorded pattern not received yet')
        if snapshot.candidate.size() == 0:
            return _reject(snapshot, 'no taps recorded')
        if not snapshot.connected:
            return _reject(snapshot, SERVICE_UNAVAILABLE)
        sub_id = snapshot.next_id
        new = replace(
            snapshot,
            state=SessionState.CONFIRMING,
            subscription_id=sub_id,
            next_id=sub_id + 1,
            error=None,
        )
        return Transition(new, [WatchForMatch(sub_id, snapshot.candidate)])

    if isinstance(event, MatchReceived):
        if state != SessionState.CONFIRMING or event.subscription_id != snapshot.subscription_id:
            return _ignore(snapshot)
        new = replace(
            snapshot,
            state=SessionState.FINAL,
            subscription_id=None,
            confirmed=snapshot.candidate,
            error=None,
        )
        return Transition(new, [Unsubscribe()])

    if isinstance(event, ServiceRejected):
        return _on_service_rejected(snapshot, event)

    if isinstance(event, RetryPressed):
        return _on_retry(snapshot)

    if isinstance(event, FinishPressed):
        if state != SessionState.FINAL or snapshot.confirmed is None:
            return _reject(snapshot, 'no confirmed pattern to install')
        return Transition(_reset(snapshot), [InstallPattern(snapshot.confirmed)])

    raise TypeError(f'Unknown session event: {event!r}')  # noqa: TRY003


def _on_retry(snapshot: SessionSnapshot) -> Transition:
    state = snapshot.state
    # Only unsubscribe through a live channel; a lost channel took the subscription along
    unsubscribe: list[Command] = [Unsubscribe()] if snapshot.connected and snapshot.subscription_id else []

    if state == SessionState.CONFIRMING:
        new = replace(snapshot, state=SessionState.PATTERN_RECORDED, subscription_id=None, error=None)
        return Transition(new, unsubscribe)
    if state in (SessionState.RECORDING, SessionState.PATTERN_RECORDED, SessionState.FINAL):
        return Transition(_reset(snapshot), unsubscribe)
    return _reject(snapshot, 'nothing to retry')


def _on_service_rejected(snapshot: SessionSnapshot, event: ServiceRejected) -> Transition:
    state = snapshot.state
    if event.request_id is not None and event.request_id == snapshot.pending_request:
        return Transition(_reset(snapshot, error=event.message))
    if event.subscription_id is not None and event.subscription_id == snapshot.subscription_id:
        if state == SessionState.CONFIRMING:
            new = replace(snapshot, state=SessionState.PATTERN_RECORDED, subscription_id=None, error=event.message)
            return Transition(new)
        if state == SessionState.RECORDING:
            return Transition(_reset(snapshot, error=event.message))
    return _ignore(snapshot)
