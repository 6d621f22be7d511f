from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


TEMPORARY_REDIRECT = 307


class RunnerState(Enum):
    SEEKING = "seeking"            # initial and post-seek
    OPEN = "open"
    DISCONNECTED = "disconnected"  # torn down after an error, next read reconnects
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class HttpOp:
    name: str
    method: str = "GET"
    expected_status: int = 200
    redirect: bool = False         # first hop goes through the namenode
    require_auth: bool = False
    do_output: bool = False


OPEN = HttpOp("OPEN", "GET", 200, redirect=True)


@dataclass(slots=True)
class ReadCursor:
    position: int = 0
    known_length: int = -1         # -1 until a connection reports Content-Length


@dataclass(slots=True)
class ReadStatistics:
    bytes_read: int = 0
    read_ops: int = 0

    def increment_bytes_read(self, n: int) -> None:
        self.bytes_read += n

    def increment_read_ops(self, n: int) -> None:
        self.read_ops += n


class HopReadError(IOError):
    """Base class for every error raised by hopread."""


class AccessDeniedError(HopReadError):
    """Raised when the filesystem refuses access. Never retried."""


class CredentialExpiredError(HopReadError):
    """Raised when the token or ticket sent with a request is no longer valid."""


class TransportError(HopReadError):
    """Raised when a connection cannot be made or its body cannot be read."""


class RemoteError(HopReadError):
    """Raised for a non-success status that is neither an auth nor access failure."""

    def __init__(self, status: int, exception: str | None = None, message: str | None = None):
        self.status = status
        self.exception = exception
        self.message = message
        detail = f"{exception}: {message}" if exception else (message or "no detail")
        super().__init__(f"HTTP {status} ({detail})")


class StreamClosedError(HopReadError):
    """Raised when a closed stream is read or seeked."""


class RetriesExhaustedError(HopReadError):
    """Raised when a request still fails after the configured number of attempts."""


_ACCESS_EXCEPTIONS = ("AccessControlException", "SecurityException")


def error_from_response(status: int, payload: Dict[str, Any] | None) -> HopReadError:
    """Map an error status and an optional WebHDFS ``RemoteException`` body to an error."""
    remote = (payload or {}).get("RemoteException") or {}
    exception = remote.get("exception")
    message = remote.get("message")

    if exception == "InvalidToken" or (exception is None and status == 401):
        return CredentialExpiredError(message or f"HTTP {status}: credentials rejected")
    if exception in _ACCESS_EXCEPTIONS or (exception is None and status == 403):
        return AccessDeniedError(message or f"HTTP {status}: access denied")
    return RemoteError(status, exception, message)
