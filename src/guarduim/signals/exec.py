"""
guarduim.signals.exec

Failure signal source backed by an audit-log command.

Responsibilities:
- Run the configured command (argv, no shell) and read its stdout.
- Count OAuth audit lines recording a denied authentication for the username.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Sequence
from typing import Any

from guarduim.errors import SignalSourceUnavailableError
from guarduim.observability.logging import get_logger

log = get_logger(__name__)

DECISION_ANNOTATION = "authentication.openshift.io/decision"
USERNAME_ANNOTATION = "authentication.openshift.io/username"


class AuditLogCommandSource:
    """
    Each query re-reads the whole log window the command returns, so the count is
    absolute (never a delta since the previous call).
    """

    def __init__(self, *, command: Sequence[str], timeout: float = 30.0) -> None:
        if not command:
            raise ValueError("audit log command must not be empty")
        self._command = tuple(command)
        self._timeout = timeout

    async def query(self, username: str) -> int:
        output = await self._run(username)
        count = count_denied(output.splitlines(), username)
        log.debug("audit_log_counted", username=username, count=count)
        return count

    async def _run(self, username: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SignalSourceUnavailableError(
                username, f"cannot start {self._command[0]}: {e}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise SignalSourceUnavailableError(
                username, f"{self._command[0]} timed out after {self._timeout:g}s"
            ) from e

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:500]
            raise SignalSourceUnavailableError(
                username, f"{self._command[0]} exited with {proc.returncode}: {detail}"
            )
        return stdout.decode(errors="replace")


def count_denied(lines: Iterable[str], username: str) -> int:
    return sum(1 for line in lines if _is_denied_for(line, username))


def _is_denied_for(line: str, username: str) -> bool:
    line = line.strip()
    if not line:
        return False
    event = _parse(line)
    if event is None:
        # Not JSON: match the raw annotation text the way a grep over the log would.
        return (
            f'{DECISION_ANNOTATION}":"deny' in line
            and f'{USERNAME_ANNOTATION}":"{username}"' in line
        )
    annotations = event.get("annotations")
    if not isinstance(annotations, dict):
        return False
    return (
        annotations.get(DECISION_ANNOTATION) == "deny"
        and annotations.get(USERNAME_ANNOTATION) == username
    )


def _parse(line: str) -> dict[str, Any] | None:
    # node-logs may prefix each line with the node name ("master-0 {...}").
    start = line.find("{")
    if start < 0:
        return None
    try:
        event = json.loads(line[start:])
    except ValueError:
        return None
    return event if isinstance(event, dict) else None
