"""
guarduim.controller.namespace

Operating namespace resolution.

Responsibilities:
- Prefer an explicitly configured namespace.
- Otherwise read the service-account namespace file, caching the first successful read.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from guarduim.errors import NamespaceUnavailableError


class NamespaceResolver:
    def __init__(self, *, explicit: str | None = None, path: str | Path | None = None) -> None:
        self._resolved = explicit or None
        self._path = Path(path) if path is not None else None

    async def resolve(self) -> str:
        if self._resolved is not None:
            return self._resolved
        if self._path is None:
            raise NamespaceUnavailableError("no namespace configured and no namespace file set")
        namespace = await asyncio.to_thread(_read_namespace_file, self._path)
        self._resolved = namespace
        return namespace


def _read_namespace_file(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise NamespaceUnavailableError(f"could not read {path}: {e}") from e
    lines = text.splitlines()
    namespace = lines[0].strip() if lines else ""
    if not namespace:
        raise NamespaceUnavailableError(f"namespace file {path} is empty")
    return namespace
