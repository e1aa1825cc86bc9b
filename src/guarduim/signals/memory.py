"""
guarduim.signals.memory

In-memory failure signal source for tests and local runs.
"""

from __future__ import annotations

from guarduim.errors import SignalSourceUnavailableError
from guarduim.signals.base import checked_count


class StaticFailureSignalSource:
    def __init__(self, counts: dict[str, int] | None = None) -> None:
        self._counts: dict[str, int] = dict(counts or {})
        self._failures: dict[str, str] = {}
        self.queries: list[str] = []

    def set_count(self, username: str, count: int) -> None:
        self._counts[username] = checked_count(username, count)

    def fail(self, username: str, reason: str = "source offline") -> None:
        self._failures[username] = reason

    def recover(self, username: str) -> None:
        self._failures.pop(username, None)

    async def query(self, username: str) -> int:
        self.queries.append(username)
        if username in self._failures:
            raise SignalSourceUnavailableError(username, self._failures[username])
        return self._counts.get(username, 0)
