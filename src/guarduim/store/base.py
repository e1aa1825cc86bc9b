"""
guarduim.store.base

Storage boundary used by the reconciler and the access enforcer.

Responsibilities:
- Define the watched MonitoredIdentity store (get / conditional update / watch).
- Define the access-object store (deny role + per-user bindings).
- Keep callers independent of the backing implementation (memory, SQL).
"""

from __future__ import annotations

import enum
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from guarduim.domain.models import (
    DenyRole,
    IdentityBinding,
    IdentitySpec,
    IdentityStatus,
    MonitoredIdentity,
    ObjectKey,
)


class WatchEventKind(enum.StrEnum):
    added = "ADDED"
    modified = "MODIFIED"
    deleted = "DELETED"


@dataclass(frozen=True, slots=True)
class WatchEvent:
    kind: WatchEventKind
    key: ObjectKey
    # Last known state; for DELETED this is the record as it was removed.
    identity: MonitoredIdentity


class IdentityStore(Protocol):
    async def get(self, key: ObjectKey) -> MonitoredIdentity:
        """Raises NotFoundError."""

    async def list_identities(self, namespace: str | None = None) -> list[MonitoredIdentity]: ...

    async def create(self, identity: MonitoredIdentity) -> MonitoredIdentity:
        """Raises AlreadyExistsError."""

    async def update_spec(
        self, key: ObjectKey, spec: IdentitySpec, *, expected_version: int
    ) -> MonitoredIdentity:
        """Raises NotFoundError / ConflictError."""

    async def update_status(
        self, key: ObjectKey, status: IdentityStatus, *, expected_version: int
    ) -> MonitoredIdentity:
        """Raises NotFoundError / ConflictError. Writing an identical status is a no-op."""

    async def delete(self, key: ObjectKey) -> MonitoredIdentity:
        """Raises NotFoundError."""

    def watch(self) -> AsyncIterator[WatchEvent]: ...


class AccessObjectStore(Protocol):
    async def create_role(self, role: DenyRole) -> DenyRole:
        """Raises AlreadyExistsError."""

    async def get_role(self, name: str) -> DenyRole:
        """Raises NotFoundError."""

    async def create_binding(self, binding: IdentityBinding) -> IdentityBinding:
        """Raises AlreadyExistsError."""

    async def get_binding(self, name: str) -> IdentityBinding:
        """Raises NotFoundError."""

    async def delete_binding(self, name: str) -> None:
        """Raises NotFoundError."""

    async def list_bindings(self) -> list[IdentityBinding]: ...


# --- Module Notes -----------------------------------------------------------
# Both protocols are satisfied by `MemoryStore` and `SqlStore`; the reconciler only
# ever sees these method signatures.
