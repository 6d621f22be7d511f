"""Redirect-aware request runner with bounded retries."""

from __future__ import annotations
import time
from typing import Callable, Iterable, Optional, TypeVar, Union

from ..config import Settings
from ..core.credentials import Credentials
from ..core.exclusion import ExclusionSet
from ..core.log import get_logger
from ..core.model import (
    AccessDeniedError,
    CredentialExpiredError,
    HopReadError,
    HttpOp,
    ReadStatistics,
    RemoteError,
    RetriesExhaustedError,
    TEMPORARY_REDIRECT,
    TransportError,
    error_from_response,
)
from ..core.urls import EXCLUDE_DATANODES, Param, authority, to_url
from .base import ConnectionFactory, HttpConnection, Runner, StatisticsSink, header

logger = get_logger(__name__)

T = TypeVar("T")

EZ_HEADER = "X-Hadoop-Accept-EZ"
READ_PARAM_HEADER = "ReadParam"


class WebClient:
    """Issues requests against one filesystem endpoint on behalf of one identity."""

    def __init__(self, base_url: str, connection_factory: ConnectionFactory,
                 credentials: Optional[Credentials] = None,
                 settings: Optional[Settings] = None,
                 statistics: Optional[StatisticsSink] = None):
        self.base_url = base_url
        self.connection_factory = connection_factory
        self.credentials = credentials if credentials is not None else Credentials()
        self.settings = settings if settings is not None else Settings()
        self.statistics = statistics if statistics is not None else ReadStatistics()

    def to_url(self, op: HttpOp, path: str, params: Iterable[Param] = (),
               exclusions: Optional[ExclusionSet] = None) -> str:
        extra = list(self.credentials.query_params())
        if exclusions:
            extra.append((EXCLUDE_DATANODES, exclusions.value))
        return to_url(self.base_url, op, path, [*params, *extra])

    def open(self, op: HttpOp, url: str, read_param: Optional[str] = None) -> HttpConnection:
        """Single hop: send ``op`` to ``url`` exactly as given."""
        headers = {EZ_HEADER: "true"}
        if read_param is not None:
            headers[READ_PARAM_HEADER] = read_param
        return self.connection_factory.open_connection(op.method, url, headers)

    def validate(self, conn: HttpConnection, expected: int) -> None:
        if conn.status == expected:
            return
        try:
            payload = conn.json()
        finally:
            conn.close()
        raise error_from_response(conn.status, payload if isinstance(payload, dict) else None)

    def connect(self, op: HttpOp, url: str, *, redirected: bool = False,
                follow_redirect: bool = True, exclusions: Optional[ExclusionSet] = None,
                read_param: Optional[str] = None) -> HttpConnection:
        """Resolve the redirect hop (unless ``redirected``) and connect.

        With ``follow_redirect=False`` the closed redirect response is returned
        so the caller can inspect its ``Location``.
        """
        redirect_host = None
        if op.redirect and not redirected:
            conn = self.open(op, url, read_param)
            if conn.status == op.expected_status:
                # served without a redirect
                return conn
            self.validate(conn, TEMPORARY_REDIRECT)
            try:
                location = header(conn, "Location")
                if not location:
                    raise RemoteError(conn.status, message="redirect without a Location header")
                url = location
                redirect_host = authority(url)
            finally:
                conn.close()
            logger.debug(f"{op.name} redirected to {redirect_host}")
            if not follow_redirect:
                return conn

        try:
            conn = self.open(op, url, read_param)
            if not op.do_output:
                self.validate(conn, op.expected_status)
            return conn
        except (TransportError, RemoteError) as e:
            if redirect_host is not None and exclusions is not None:
                exclusions.add(redirect_host)
                logger.warning(f"Excluding {redirect_host} after failure: {e}")
            raise

    def run(self, runner: Runner[T]) -> T:
        principal = self.credentials.principal
        if runner.op.require_auth:
            self.credentials.check_and_refresh()
        logger.debug(f"Running {runner.op.name} as {principal or 'anonymous'}")
        return self._run_with_retry(runner)

    def _run_with_retry(self, runner: Runner[T]) -> T:
        policy = self.settings.retry
        last_error: Optional[HopReadError] = None
        for attempt in range(policy.max_attempts):
            if attempt:
                pause = policy.delay(attempt - 1)
                if pause:
                    time.sleep(pause)
            url = runner.build_url()
            try:
                conn = runner.connect(url)
                return runner.get_response(conn)
            except AccessDeniedError:
                raise
            except CredentialExpiredError as e:
                if runner.op.require_auth or not self.credentials.replace_expired_token():
                    raise
                logger.info(f"Credentials for {runner.op.name} expired, retrying with a fresh token")
                last_error = e
            except TransportError as e:
                if not policy.retry_transport:
                    raise
                logger.warning(f"{runner.op.name} attempt {attempt + 1}/{policy.max_attempts} failed: {e}")
                last_error = e
        raise RetriesExhaustedError(
            f"{runner.op.name} failed after {policy.max_attempts} attempts: {last_error}"
        ) from last_error


class UrlRunner:
    """Runner whose result is the connection itself."""

    def __init__(self, client: WebClient, op: HttpOp, url: Union[str, Callable[[], str]], *,
                 redirected: bool = False, follow_redirect: bool = True,
                 exclusions: Optional[ExclusionSet] = None, read_param: Optional[str] = None):
        self.client = client
        self.op = op
        self._url = url
        self.redirected = redirected
        self.follow_redirect = follow_redirect
        self.exclusions = exclusions if exclusions is not None else ExclusionSet()
        self.read_param = read_param

    def build_url(self) -> str:
        return self._url() if callable(self._url) else self._url

    def connect(self, url: str) -> HttpConnection:
        return self.client.connect(
            self.op, url, redirected=self.redirected, follow_redirect=self.follow_redirect,
            exclusions=self.exclusions, read_param=self.read_param,
        )

    def get_response(self, conn: HttpConnection) -> HttpConnection:
        return conn

    def run(self) -> HttpConnection:
        return self.client.run(self)
