"""Runtime settings for hopread."""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

ENV_PREFIX = "HOPREAD_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds the request retry loop.

    Access failures are never retried and expired credentials are retried
    after a refresh. Transport failures propagate to the stream (which
    reconnects on the next read) unless ``retry_transport`` is set.
    """

    max_attempts: int = 4
    retry_transport: bool = False
    base_delay: float = 0.0     # seconds before the second attempt, doubled after
    max_delay: float = 5.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        if self.base_delay <= 0:
            return 0.0
        return min(self.base_delay * (2 ** attempt), self.max_delay)


@dataclass(frozen=True)
class Settings:
    buffer_size: int = 4096
    connect_timeout: float = 30.0
    read_timeout: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: str = "WARNING"

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``HOPREAD_*`` variables, defaults for anything unset."""
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        defaults = cls()
        retry_defaults = defaults.retry
        retry = RetryPolicy(
            max_attempts=_int(get("MAX_ATTEMPTS"), retry_defaults.max_attempts),
            retry_transport=_bool(get("RETRY_TRANSPORT"), retry_defaults.retry_transport),
            base_delay=_float(get("BASE_DELAY"), retry_defaults.base_delay),
            max_delay=retry_defaults.max_delay,
        )
        return cls(
            buffer_size=_int(get("BUFFER_SIZE"), defaults.buffer_size),
            connect_timeout=_float(get("CONNECT_TIMEOUT"), defaults.connect_timeout),
            read_timeout=_float(get("READ_TIMEOUT"), defaults.read_timeout),
            retry=retry,
            log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
        )


def _int(raw: Optional[str], default: int) -> int:
    return default if raw is None else int(raw)


def _float(raw: Optional[str], default: float) -> float:
    return default if raw is None else float(raw)


def _bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {raw!r}")
