"""URL building for WebHDFS-style requests.

Everything here is a pure function of its inputs; callers own their parameter
sequences and nothing in this module mutates or retains them.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .model import HttpOp

PATH_PREFIX = "/webhdfs/v1"

OP = "op"
OFFSET = "offset"
BUFFER_SIZE = "buffersize"
EXCLUDE_DATANODES = "excludedatanodes"
USER_NAME = "user.name"
DO_AS = "doas"
DELEGATION = "delegation"

Param = Tuple[str, Any]

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _encode(params: Iterable[Param]) -> str:
    pairs = [(name, str(value)) for name, value in params if value is not None]
    # keep "dn1:9864,dn2:9864" readable on the wire
    return urlencode(pairs, safe=",:")


def to_url(base_url: str, op: HttpOp, path: str, params: Iterable[Param] = ()) -> str:
    """Return ``{base}/webhdfs/v1{path}?op=NAME&...`` for ``op`` on ``path``."""
    if not path.startswith("/"):
        path = "/" + path
    query = _encode([(OP, op.name), *params])
    return f"{base_url.rstrip('/')}{PATH_PREFIX}{quote(path)}?{query}"


def remove_offset_param(url: str) -> str:
    """Drop every ``offset`` parameter so a fresh one can be appended."""
    parts = urlsplit(url)
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != OFFSET]
    return urlunsplit(parts._replace(query=_encode(kept)))


def with_offset(url: str, position: int) -> str:
    sep = "&" if urlsplit(url).query else ("" if url.endswith("?") else "?")
    return f"{url}{sep}{OFFSET}={position}"


def authority(url: str) -> str:
    """Return ``host:port`` for ``url``, filling in the scheme's default port."""
    parts = urlsplit(url)
    port = parts.port or _DEFAULT_PORTS.get(parts.scheme, 80)
    return f"{parts.hostname}:{port}"


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    op: HttpOp
    path: str
    params: Tuple[Param, ...] = ()

    def with_params(self, **updates: Any) -> "RequestDescriptor":
        """Return a copy with the named parameters replaced (or appended)."""
        params = [(k, updates.pop(k) if k in updates else v) for k, v in self.params]
        params.extend(updates.items())
        return RequestDescriptor(self.op, self.path, tuple(params))
