"""
guarduim.signals.base

Failure signal source boundary.

Responsibilities:
- Define the single capability the reconciler needs: `query(username) -> count`.
"""

from __future__ import annotations

from typing import Protocol

from guarduim.errors import SignalSourceUnavailableError


class FailureSignalSource(Protocol):
    async def query(self, username: str) -> int:
        """
        Return the current (absolute, non-negative) count of denied authentication
        events for `username`. Raise SignalSourceUnavailableError on failure; never
        return a guessed value.
        """


def checked_count(username: str, value: object) -> int:
    # bool is an int subclass; a True/False "count" is a broken source, not 1/0.
    if isinstance(value, bool) or not isinstance(value, int):
        raise SignalSourceUnavailableError(username, f"non-integer count {value!r}")
    if value < 0:
        raise SignalSourceUnavailableError(username, f"negative count {value}")
    return value
