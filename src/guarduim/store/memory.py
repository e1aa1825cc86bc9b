"""
guarduim.store.memory

In-memory implementation of both store protocols.

Responsibilities:
- Hold MonitoredIdentity records with a monotonically increasing resource version.
- Enforce conditional updates (ConflictError) and create-if-absent (AlreadyExistsError).
- Emit watch events for every effective write.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from guarduim.domain.models import (
    DenyRole,
    IdentityBinding,
    IdentitySpec,
    IdentityStatus,
    MonitoredIdentity,
    ObjectKey,
)
from guarduim.errors import AlreadyExistsError, ConflictError, NotFoundError
from guarduim.store.base import WatchEvent, WatchEventKind
from guarduim.store.events import EventBroadcaster


class MemoryStore:
    """
    Used by tests and single-process dev runs. All mutations take one asyncio lock,
    so each call is atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._version = 0
        self._identities: dict[ObjectKey, MonitoredIdentity] = {}
        self._roles: dict[str, DenyRole] = {}
        self._bindings: dict[str, IdentityBinding] = {}
        self._events = EventBroadcaster()

    def _next_version(self) -> int:
        self._version += 1
        return self._version

    # -- identities ----------------------------------------------------------

    async def get(self, key: ObjectKey) -> MonitoredIdentity:
        identity = self._identities.get(key)
        if identity is None:
            raise NotFoundError("MonitoredIdentity", str(key))
        return identity

    async def list_identities(self, namespace: str | None = None) -> list[MonitoredIdentity]:
        items = sorted(self._identities.values(), key=lambda i: i.key)
        if namespace is None:
            return items
        return [i for i in items if i.namespace == namespace]

    async def create(self, identity: MonitoredIdentity) -> MonitoredIdentity:
        async with self._lock:
            if identity.key in self._identities:
                raise AlreadyExistsError("MonitoredIdentity", str(identity.key))
            stored = identity.model_copy(update={"resource_version": self._next_version()})
            self._identities[stored.key] = stored
        self._events.publish(WatchEvent(WatchEventKind.added, stored.key, stored))
        return stored

    async def update_spec(
        self, key: ObjectKey, spec: IdentitySpec, *, expected_version: int
    ) -> MonitoredIdentity:
        async with self._lock:
            current = self._checked(key, expected_version)
            if current.spec == spec:
                return current
            stored = current.model_copy(
                update={"spec": spec, "resource_version": self._next_version()}
            )
            self._identities[key] = stored
        self._events.publish(WatchEvent(WatchEventKind.modified, key, stored))
        return stored

    async def update_status(
        self, key: ObjectKey, status: IdentityStatus, *, expected_version: int
    ) -> MonitoredIdentity:
        async with self._lock:
            current = self._checked(key, expected_version)
            if current.status == status:
                return current
            stored = current.model_copy(
                update={"status": status, "resource_version": self._next_version()}
            )
            self._identities[key] = stored
        self._events.publish(WatchEvent(WatchEventKind.modified, key, stored))
        return stored

    async def delete(self, key: ObjectKey) -> MonitoredIdentity:
        async with self._lock:
            removed = self._identities.pop(key, None)
            if removed is None:
                raise NotFoundError("MonitoredIdentity", str(key))
        self._events.publish(WatchEvent(WatchEventKind.deleted, key, removed))
        return removed

    def watch(self) -> AsyncIterator[WatchEvent]:
        return self._events.subscribe()

    def _checked(self, key: ObjectKey, expected_version: int) -> MonitoredIdentity:
        current = self._identities.get(key)
        if current is None:
            raise NotFoundError("MonitoredIdentity", str(key))
        if current.resource_version != expected_version:
            raise ConflictError(
                str(key),
                expected_version=expected_version,
                actual_version=current.resource_version,
            )
        return current

    # -- access objects ------------------------------------------------------

    async def create_role(self, role: DenyRole) -> DenyRole:
        async with self._lock:
            if role.name in self._roles:
                raise AlreadyExistsError("DenyRole", role.name)
            self._roles[role.name] = role
        return role

    async def get_role(self, name: str) -> DenyRole:
        role = self._roles.get(name)
        if role is None:
            raise NotFoundError("DenyRole", name)
        return role

    async def create_binding(self, binding: IdentityBinding) -> IdentityBinding:
        async with self._lock:
            if binding.name in self._bindings:
                raise AlreadyExistsError("IdentityBinding", binding.name)
            self._bindings[binding.name] = binding
        return binding

    async def get_binding(self, name: str) -> IdentityBinding:
        binding = self._bindings.get(name)
        if binding is None:
            raise NotFoundError("IdentityBinding", name)
        return binding

    async def delete_binding(self, name: str) -> None:
        async with self._lock:
            if self._bindings.pop(name, None) is None:
                raise NotFoundError("IdentityBinding", name)

    async def list_bindings(self) -> list[IdentityBinding]:
        return sorted(self._bindings.values(), key=lambda b: b.name)
