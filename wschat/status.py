# =============================================================================
# wschat -- Connection Status
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from .types import ConnectionState


@dataclass(frozen=True, slots=True)
class StatusInfo:
    """What a status indicator should show.

    Attributes:
        text: Short label, e.g. ``"Connected"``.
        pulse: True while something is in progress.
        can_retry: True when only a manual retry will reconnect.
    """

    text: str
    pulse: bool = False
    can_retry: bool = False


_STATUS = {
    ConnectionState.IDLE: StatusInfo("Idle"),
    ConnectionState.CONNECTING: StatusInfo("Connecting", pulse=True),
    ConnectionState.CONNECTED: StatusInfo("Connected"),
    ConnectionState.DISCONNECTED: StatusInfo("Disconnected"),
    ConnectionState.FAILED: StatusInfo("Error"),
}

_RECONNECTING = StatusInfo("Reconnecting", pulse=True)
_OFFLINE = StatusInfo("Offline", can_retry=True)


def describe(
    state: ConnectionState,
    retries_exhausted: bool = False,
    retry_pending: bool = False,
) -> StatusInfo:
    if state in (ConnectionState.DISCONNECTED, ConnectionState.FAILED):
        if retries_exhausted:
            return _OFFLINE
        if retry_pending:
            return _RECONNECTING
    return _STATUS[state]
