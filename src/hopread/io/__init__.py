"""I/O layer for hopread - transport, request runner and read stream."""

# Re-export these for import convenience
from .base import ConnectionFactory, HttpConnection, Runner, StatisticsSink
from .http_sync import BoundedReader, RequestsConnectionFactory, open_connection_factory
from .client import UrlRunner, WebClient
from .stream import HopInputStream, ReadRunner, open_runner, open_stream
