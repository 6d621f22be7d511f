"""Protocols for the collaborators the request and stream runners depend on."""

from typing import Any, BinaryIO, Mapping, Optional, Protocol, TypeVar, runtime_checkable

from ..core.model import HttpOp

T = TypeVar("T", covariant=True)


@runtime_checkable
class HttpConnection(Protocol):
    """One HTTP exchange whose headers have arrived and whose body is unread."""

    status: int
    headers: Mapping[str, str]
    url: str                       # the URL the request was sent to

    def body(self) -> BinaryIO:
        """Return the raw response body stream."""
        ...

    def json(self) -> Any:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class ConnectionFactory(Protocol):

    def open_connection(self, method: str, url: str, headers: Mapping[str, str]) -> HttpConnection:
        """Send the request and return once the status line and headers are in.
        Connection-level failures → raise TransportError.
        """
        ...


@runtime_checkable
class StatisticsSink(Protocol):

    def increment_bytes_read(self, n: int) -> None:
        ...

    def increment_read_ops(self, n: int) -> None:
        ...


@runtime_checkable
class Runner(Protocol[T]):
    """A request the retry loop can (re)issue: build a URL, connect, produce a result."""

    op: HttpOp

    def build_url(self) -> str:
        ...

    def connect(self, url: str) -> HttpConnection:
        ...

    def get_response(self, conn: HttpConnection) -> T:
        ...


def header(conn: HttpConnection, name: str) -> Optional[str]:
    """Case-insensitive header lookup that works for plain dict headers too."""
    value = conn.headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in conn.headers.items():
        if key.lower() == lowered:
            return val
    return None
