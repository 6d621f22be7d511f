"""hopread - resumable, redirect-aware streaming reads from WebHDFS-style filesystems."""

from .config import RetryPolicy, Settings
from .core.credentials import Credentials
from .core.exclusion import ExclusionSet
from .core.log import configure_logging, disable_logging
from .core.model import (                                             # re-export
    AccessDeniedError,
    CredentialExpiredError,
    HopReadError,
    ReadStatistics,
    RemoteError,
    RetriesExhaustedError,
    RunnerState,
    StreamClosedError,
    TransportError,
)
from .io import HopInputStream, ReadRunner, WebClient, open_runner, open_stream

# Library code stays quiet until an application calls configure_logging()
disable_logging()


def read_range(base_url: str, path: str, offset: int = 0, length: int | None = None, **open_options) -> bytes:
    """Read ``length`` bytes (or everything) of ``path`` starting at ``offset``."""
    with open_stream(base_url, path, **open_options) as stream:
        if offset:
            stream.seek(offset)
        if length is None:
            return stream.readall()
        chunks = []
        remaining = length
        while remaining > 0:
            chunk = stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)
