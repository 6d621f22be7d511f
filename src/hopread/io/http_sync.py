"""Synchronous HTTP transport using requests."""

import io
from typing import Any, BinaryIO, Mapping, Optional

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from ..core.model import TransportError


# Module-level session for connection pooling
_session = None


def _get_session():
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


class RequestsConnection:
    """HttpConnection over a streamed ``requests.Response``."""

    def __init__(self, response: requests.Response):
        self._response = response
        self.status = response.status_code
        self.headers = response.headers
        self.url = response.url

    def body(self) -> BinaryIO:
        return self._response.raw

    def json(self) -> Any:
        try:
            return self._response.json()
        except (ValueError, requests.RequestException):
            return None

    def close(self) -> None:
        self._response.close()


class RequestsConnectionFactory:
    """Opens connections with redirects left to the caller."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: tuple[float, float] = (30.0, 60.0)):
        self._session = session if session is not None else _get_session()
        self.timeout = timeout

    def open_connection(self, method: str, url: str, headers: Mapping[str, str]) -> RequestsConnection:
        try:
            response = self._session.request(
                method, url, headers=dict(headers), stream=True,
                allow_redirects=False, timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        return RequestsConnection(response)


class BoundedReader(io.RawIOBase):
    """Raw reader that stops after ``limit`` bytes (no limit when ``None``).

    Reading a socket past the advertised Content-Length can block until the
    server times out, so the limit is enforced here rather than trusted to the
    transport. Source failures surface as TransportError.
    """

    def __init__(self, source: BinaryIO, limit: Optional[int] = None):
        self._source = source
        self.remaining = limit

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        want = len(b)
        if self.remaining is not None:
            want = min(want, self.remaining)
        if want <= 0:
            return 0
        try:
            data = self._source.read(want)
        except (OSError, Urllib3HTTPError) as e:
            raise TransportError(f"Read failed: {e}") from e
        n = len(data)
        b[:n] = data
        if self.remaining is not None:
            self.remaining -= n
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                self._source.close()
            finally:
                super().close()


def open_connection_factory(session: Optional[requests.Session] = None,
                            timeout: tuple[float, float] = (30.0, 60.0)) -> RequestsConnectionFactory:
    """Create the default synchronous transport."""
    return RequestsConnectionFactory(session, timeout)
