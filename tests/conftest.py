"""In-memory namenode/datanode cluster used to inject failures."""

from urllib.parse import parse_qsl, urlsplit

import pytest

from hopread.core.model import TransportError


class FakeBody:
    """Response body that raises once ``fail_after`` bytes have been read."""

    def __init__(self, data: bytes, fail_after=None):
        self._data = data
        self._pos = 0
        self._fail_after = fail_after
        self.closed = False

    def read(self, n=-1):
        if self._fail_after is not None and self._pos >= self._fail_after:
            raise ConnectionResetError("connection reset by peer")
        end = len(self._data) if n < 0 else self._pos + n
        if self._fail_after is not None:
            end = min(end, self._fail_after)
        chunk = self._data[self._pos:end]
        self._pos += len(chunk)
        return chunk

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, status, url, headers=None, data=b"", fail_after=None, payload=None):
        self.status = status
        self.url = url
        self.headers = headers or {}
        self._body = FakeBody(data, fail_after)
        self._payload = payload
        self.closed = False

    def body(self):
        return self._body

    def json(self):
        return self._payload

    def close(self):
        self.closed = True
        self._body.close()


class FakeCluster:
    """ConnectionFactory playing both the namenode and the datanodes.

    The namenode redirects OPEN to the first datanode not listed in
    ``excludedatanodes`` (or the first datanode if all are excluded).
    """

    NAMENODE = "nn.example:9870"
    base_url = f"http://{NAMENODE}"

    def __init__(self, data: bytes, datanodes=("dn1.example:9864", "dn2.example:9864"),
                 send_length=True, serve_direct=False):
        self.data = data
        self.datanodes = list(datanodes)
        self.send_length = send_length
        self.serve_direct = serve_direct
        self.requests = []            # (method, url, headers)
        self.connections = []         # every FakeConnection handed out
        self.failures = {}            # authority -> bytes served before the body breaks
        self.down = set()             # authorities refusing connections
        self.namenode_errors = []     # (status, payload) answered before redirecting

    @property
    def urls(self):
        return [url for _, url, _ in self.requests]

    def open_connection(self, method, url, headers):
        self.requests.append((method, url, dict(headers)))
        parts = urlsplit(url)
        query = dict(parse_qsl(parts.query))
        host = parts.netloc
        if host in self.down:
            raise TransportError(f"connection refused: {host}")

        if host == self.NAMENODE:
            if self.namenode_errors:
                status, payload = self.namenode_errors.pop(0)
                return self._hand_out(FakeConnection(status, url, payload=payload))
            if self.serve_direct:
                return self._serve(url, query, host)
            excluded = set((query.get("excludedatanodes") or "").split(","))
            target = next((dn for dn in self.datanodes if dn not in excluded), self.datanodes[0])
            location = (f"http://{target}{parts.path}?op=OPEN&namenoderpcaddress=nn.example:8020"
                        f"&offset={query.get('offset', 0)}")
            return self._hand_out(FakeConnection(307, url, headers={"Location": location}))

        return self._serve(url, query, host)

    def _serve(self, url, query, host):
        data = self.data[int(query.get("offset", 0)):]
        headers = {"Content-Length": str(len(data))} if self.send_length else {}
        return self._hand_out(FakeConnection(200, url, headers, data, self.failures.get(host)))

    def _hand_out(self, conn):
        self.connections.append(conn)
        return conn


@pytest.fixture
def payload():
    return bytes(range(256)) * 8  # 2048 bytes


@pytest.fixture
def cluster(payload):
    return FakeCluster(payload)


@pytest.fixture
def make_cluster(payload):
    """Build a FakeCluster over the default payload with custom options."""
    def _make(**options):
        return FakeCluster(options.pop("data", payload), **options)
    return _make
