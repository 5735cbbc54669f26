"""Error types raised by the spotictl controllers."""

from __future__ import annotations

from typing import Any, Optional


class SpotictlError(RuntimeError):
    """Base class for every error surfaced to the CLI."""


class AlreadyRunning(SpotictlError):
    """Raised by ``start`` when a matching process is already alive."""

    def __init__(self, name: str, pid: int) -> None:
        super().__init__(f"{name} is already running (PID {pid})")
        self.name = name
        self.pid = pid


class NotRunning(SpotictlError):
    """Raised when no process matching the target name can be found."""


class AttachFailed(SpotictlError):
    """Raised by ``kill`` when there is no process to attach to."""


class StartFailed(SpotictlError):
    """Raised when the application executable cannot be spawned."""


class KillFailed(SpotictlError):
    """Raised when the OS rejects a termination request."""


class TransportCallFailed(SpotictlError):
    """Raised when a D-Bus call or property read returns an error."""


class InvalidResponse(SpotictlError):
    """Raised when a remote response does not have the expected types."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.value = value


class InvalidResponseShape(InvalidResponse):
    """Raised when a search envelope does not have the expected layout."""


class UnsupportedStatus(SpotictlError):
    """Raised when the player reports a playback status other than Playing/Paused."""

    def __init__(self, status: str) -> None:
        super().__init__(f"unsupported playback status: {status!r}")
        self.status = status


class RemoteAPIError(SpotictlError):
    """Raised when the Web API explicitly reports a failure."""

    def __init__(self, status: Optional[int], message: str) -> None:
        super().__init__(f"Spotify API error ({status}): {message}")
        self.status = status
        self.message = message


class EndOfResults(SpotictlError):
    """Terminal marker of a search stream that completed normally.

    It travels on the same path as real errors, so callers must test for it
    with :func:`is_end_of_results` rather than treating every terminal value
    as a failure.
    """

    def __init__(self) -> None:
        super().__init__("end of results")


def is_end_of_results(error: Optional[BaseException]) -> bool:
    """Return ``True`` when ``error`` marks the normal end of a search."""

    return isinstance(error, EndOfResults)
