from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .urls import DELEGATION, DO_AS, USER_NAME, Param


@dataclass
class Credentials:
    """Identity sent with every request.

    ``user`` is the acting identity. When ``real_user`` is set the requests are
    made as ``real_user`` on behalf of ``user`` (proxy access). A delegation
    ``token`` takes precedence over both.
    """

    user: Optional[str] = None
    real_user: Optional[str] = None
    token: Optional[str] = None
    renew_token: Optional[Callable[[], Optional[str]]] = None
    relogin: Optional[Callable[[], None]] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def principal(self) -> Optional[str]:
        return self.real_user or self.user

    def query_params(self) -> List[Param]:
        if self.token:
            return [(DELEGATION, self.token)]
        params: List[Param] = []
        if self.principal:
            params.append((USER_NAME, self.principal))
        if self.real_user and self.user and self.user != self.real_user:
            params.append((DO_AS, self.user))
        return params

    def check_and_refresh(self) -> None:
        """Re-authenticate if a relogin hook was supplied (may block)."""
        if self.relogin is None:
            return
        with self._lock:
            self.relogin()

    def replace_expired_token(self) -> bool:
        """Fetch a fresh token; True only if a new, different token was obtained."""
        if self.renew_token is None:
            return False
        with self._lock:
            fresh = self.renew_token()
            if not fresh or fresh == self.token:
                return False
            self.token = fresh
            return True
