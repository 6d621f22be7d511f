from __future__ import annotations
from typing import Iterator, List


class ExclusionSet:
    """Backends (``host:port``) that failed during the lifetime of one stream.

    Append-only: repeats are kept and nothing is ever removed. The joined value
    travels as the ``excludedatanodes`` query parameter of every later request.
    """

    def __init__(self) -> None:
        self._hosts: List[str] = []

    def add(self, host: str | None) -> None:
        if host:
            self._hosts.append(host)

    @property
    def value(self) -> str | None:
        return ",".join(self._hosts) if self._hosts else None

    def __len__(self) -> int:
        return len(self._hosts)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._hosts))

    def __bool__(self) -> bool:
        return bool(self._hosts)

    def __repr__(self) -> str:
        return f"ExclusionSet({self.value!r})"
