"""Seekable read stream that reconnects at the right offset after seeks and failures."""

from __future__ import annotations
import io
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..core.credentials import Credentials
from ..core.exclusion import ExclusionSet
from ..core.log import get_logger
from ..core.model import (
    OPEN,
    HopReadError,
    ReadCursor,
    ReadStatistics,
    RemoteError,
    RetriesExhaustedError,
    RunnerState,
    StreamClosedError,
    TransportError,
)
from ..core.urls import BUFFER_SIZE, OFFSET, RequestDescriptor, authority, remove_offset_param, with_offset
from .base import ConnectionFactory, HttpConnection, StatisticsSink, header
from .client import UrlRunner, WebClient
from .http_sync import BoundedReader, open_connection_factory

logger = get_logger(__name__)


@dataclass
class ActiveConnection:
    conn: HttpConnection
    reader: io.BufferedReader      # BufferedReader(BoundedReader(body))
    url: str                       # resolved backend URL, offset stripped

    def close(self) -> None:
        try:
            self.reader.close()
        finally:
            self.conn.close()


class ReadRunner:
    """Read state machine for one open file.

    ``SEEKING`` → ``OPEN`` → ``DISCONNECTED`` (after an error) → ``CLOSED``.
    Each instance owns its cursor, its exclusion set and at most one live
    connection; none of them are shared with other streams.
    """

    op = OPEN

    def __init__(self, client: WebClient, path: str, buffer_size: int,
                 read_param: Optional[str] = None,
                 statistics: Optional[StatisticsSink] = None):
        self.client = client
        self.path = path
        self.buffer_size = buffer_size
        self.read_param = read_param
        self.statistics = statistics if statistics is not None else client.statistics
        self.exclusions = ExclusionSet()
        self.cursor = ReadCursor()
        self.state = RunnerState.SEEKING
        self.resolved_url: Optional[str] = None
        self._descriptor = RequestDescriptor(OPEN, path, ((BUFFER_SIZE, buffer_size),))
        self._conn: Optional[HttpConnection] = None
        self._active: Optional[ActiveConnection] = None
        self._target: Optional[memoryview] = None

        self._resolve_base()

    def _resolve_base(self) -> None:
        """Ask the namenode once where the file is served from."""
        conn = UrlRunner(
            self.client, OPEN,
            lambda: self.client.to_url(OPEN, self.path, self._descriptor.params, self.exclusions),
            redirected=False, follow_redirect=False,
            exclusions=self.exclusions, read_param=self.read_param,
        ).run()
        location = header(conn, "Location")
        if location is not None:
            self.resolved_url = remove_offset_param(location)
        else:
            # served directly; keep the live connection for the first read
            self.resolved_url = remove_offset_param(conn.url)
            self._conn = conn
        logger.debug(f"{self.path} resolved to {self.resolved_url}")

    @property
    def pos(self) -> int:
        return self.cursor.position

    @property
    def file_length(self) -> int:
        return self.cursor.known_length

    @file_length.setter
    def file_length(self, length: int) -> None:
        self.cursor.known_length = length

    @property
    def connection(self) -> Optional[HttpConnection]:
        return self._conn

    def read(self, buffer, offset: int, length: int) -> int:
        """Copy up to ``length`` bytes into ``buffer[offset:]``; -1 at end of stream."""
        if self.state is RunnerState.CLOSED:
            raise StreamClosedError("Stream closed")
        if length == 0:
            return 0
        if offset < 0 or length < 0 or offset + length > len(buffer):
            raise ValueError(f"Bad window offset={offset} length={length} for buffer of {len(buffer)}")

        if self.state is RunnerState.SEEKING and self._conn is None:
            self._reconnect_direct()

        self._target = memoryview(buffer)[offset:offset + length]
        try:
            count = self.client.run(self)
        finally:
            self._target = None
        if count >= 0:
            self.statistics.increment_bytes_read(count)
            self.cursor.position += count
        return count

    def read_byte(self) -> int:
        b = bytearray(1)
        return -1 if self.read(b, 0, 1) == -1 else b[0]

    def _reconnect_direct(self) -> None:
        url = with_offset(self.resolved_url, self.cursor.position)
        try:
            self._conn = UrlRunner(
                self.client, OPEN, url, redirected=True, follow_redirect=False,
                exclusions=self.exclusions, read_param=self.read_param,
            ).run()
        except (TransportError, RemoteError, RetriesExhaustedError) as e:
            # fall back to a fresh redirect from the namenode on this same call
            backend = authority(self.resolved_url)
            self.exclusions.add(backend)
            logger.warning(f"Direct reconnect to {backend} at {self.cursor.position} failed: {e}")
            self._teardown(RunnerState.DISCONNECTED)

    def seek(self, new_pos: int) -> None:
        if self.state is RunnerState.CLOSED:
            raise StreamClosedError("Stream closed")
        if new_pos < 0:
            raise ValueError(f"Negative seek position {new_pos}")
        if new_pos != self.cursor.position:
            self.cursor.position = new_pos
            self._teardown(RunnerState.SEEKING)

    def close(self) -> None:
        self._teardown(RunnerState.CLOSED)

    # Runner protocol, driven by WebClient.run

    def build_url(self) -> str:
        if self._conn is not None:
            return self._conn.url
        self._descriptor = self._descriptor.with_params(**{OFFSET: self.cursor.position})
        return self.client.to_url(OPEN, self.path, self._descriptor.params, self.exclusions)

    def connect(self, url: str) -> HttpConnection:
        if self._conn is not None:
            return self._conn
        try:
            return self.client.connect(
                OPEN, url, redirected=False, follow_redirect=True,
                exclusions=self.exclusions, read_param=self.read_param,
            )
        except HopReadError:
            self._teardown(RunnerState.DISCONNECTED)
            raise

    def get_response(self, conn: HttpConnection) -> int:
        self._conn = conn
        try:
            if self._active is None:
                self._active = self._open_body(conn)
            count = self._active.reader.readinto(self._target)
        except TransportError as e:
            backend = authority(self.resolved_url)
            self.exclusions.add(backend)
            logger.warning(f"Read from {backend} at {self.cursor.position} failed: {e}")
            self._teardown(RunnerState.DISCONNECTED)
            raise
        return count if count else -1

    def _open_body(self, conn: HttpConnection) -> ActiveConnection:
        self.resolved_url = remove_offset_param(conn.url)
        body = conn.body()
        content_length = header(conn, "Content-Length")
        if content_length is not None:
            try:
                stream_length = int(content_length)
                if stream_length < 0:
                    raise ValueError(content_length)
            except ValueError:
                self._teardown(RunnerState.DISCONNECTED)
                raise RemoteError(conn.status, message=f"malformed Content-Length {content_length!r}") from None
            self.cursor.known_length = self.cursor.position + stream_length
            raw = BoundedReader(body, stream_length)
        else:
            self.cursor.known_length = -1
            raw = BoundedReader(body)
        self.state = RunnerState.OPEN
        logger.debug(f"Opened {self.resolved_url} at {self.cursor.position}, length {self.cursor.known_length}")
        return ActiveConnection(conn, io.BufferedReader(raw, self.buffer_size), self.resolved_url)

    def _teardown(self, state: RunnerState) -> None:
        active, conn = self._active, self._conn
        self._active = None
        self._conn = None
        self.state = state
        if active is not None:
            active.close()
        elif conn is not None:
            conn.close()


class HopInputStream(io.RawIOBase):
    """File-like, seekable view of a :class:`ReadRunner`."""

    def __init__(self, runner: ReadRunner):
        self._runner = runner

    @property
    def runner(self) -> ReadRunner:
        return self._runner

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    @property
    def closed(self) -> bool:
        return self._runner.state is RunnerState.CLOSED

    def readinto(self, b) -> int:
        n = self._runner.read(b, 0, len(b))
        return 0 if n == -1 else n

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        buf = bytearray(size)
        n = self.readinto(buf)
        return bytes(buf[:n])

    def readall(self) -> bytes:
        chunks = []
        buf = bytearray(self._runner.buffer_size)
        while True:
            n = self._runner.read(buf, 0, len(buf))
            if n == -1:
                break
            chunks.append(bytes(buf[:n]))
        return b"".join(chunks)

    def read_byte(self) -> int:
        return self._runner.read_byte()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._runner.pos + offset
        elif whence == io.SEEK_END:
            if self._runner.file_length < 0:
                raise io.UnsupportedOperation("Length unknown, cannot seek from end")
            target = self._runner.file_length + offset
        else:
            raise ValueError(f"Invalid whence {whence}")
        self._runner.seek(target)
        return self._runner.pos

    def tell(self) -> int:
        return self._runner.pos

    @property
    def file_length(self) -> int:
        return self._runner.file_length

    @file_length.setter
    def file_length(self, length: int) -> None:
        self._runner.file_length = length

    def close(self) -> None:
        self._runner.close()
        super().close()


def open_runner(base_url: str, path: str, *, buffer_size: Optional[int] = None,
                read_param: Optional[str] = None, credentials: Optional[Credentials] = None,
                settings: Optional[Settings] = None,
                connection_factory: Optional[ConnectionFactory] = None,
                statistics: Optional[StatisticsSink] = None) -> ReadRunner:
    """Create a :class:`ReadRunner` for ``path``; the caller must close it."""
    settings = settings if settings is not None else Settings()
    if connection_factory is None:
        connection_factory = open_connection_factory(timeout=settings.timeout)
    statistics = statistics if statistics is not None else ReadStatistics()
    client = WebClient(base_url, connection_factory, credentials, settings, statistics)
    statistics.increment_read_ops(1)
    return ReadRunner(client, path, buffer_size or settings.buffer_size, read_param, statistics)


def open_stream(base_url: str, path: str, **options) -> HopInputStream:
    """Open ``path`` on the filesystem at ``base_url`` for streaming reads.

    Takes the keyword options of :func:`open_runner`. Dropping the returned
    stream closes it, and its runner with it.
    """
    return HopInputStream(open_runner(base_url, path, **options))
