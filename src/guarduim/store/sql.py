"""
guarduim.store.sql

SQLAlchemy-backed implementation of both store protocols.

Responsibilities:
- Persist identities, the deny role and bindings via async sessions.
- Implement conditional updates as compare-and-swap on `resource_version`.
- Map integrity violations to AlreadyExistsError; publish watch events after commit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guarduim.db.models import DenyRoleRow, IdentityBindingRow, MonitoredIdentityRow
from guarduim.domain.models import (
    DenyRole,
    IdentityBinding,
    IdentitySpec,
    IdentityStatus,
    MonitoredIdentity,
    ObjectKey,
)
from guarduim.errors import (
    AlreadyExistsError,
    ConflictError,
    MalformedRecordError,
    NotFoundError,
)
from guarduim.observability.logging import get_logger
from guarduim.store.base import WatchEvent, WatchEventKind
from guarduim.store.events import EventBroadcaster

log = get_logger(__name__)


class SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory
        self._events = EventBroadcaster()

    # -- identities ----------------------------------------------------------

    async def get(self, key: ObjectKey) -> MonitoredIdentity:
        async with self._sessions() as session:
            row = await _identity_row(session, key)
            if row is None:
                raise NotFoundError("MonitoredIdentity", str(key))
            return _decode(row)

    async def list_identities(self, namespace: str | None = None) -> list[MonitoredIdentity]:
        stmt = select(MonitoredIdentityRow).order_by(
            MonitoredIdentityRow.namespace, MonitoredIdentityRow.name
        )
        if namespace is not None:
            stmt = stmt.where(MonitoredIdentityRow.namespace == namespace)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()

        identities = []
        for row in rows:
            try:
                identities.append(_decode(row))
            except MalformedRecordError as e:
                # A skipped row still fails `get`, so its own reconcile reports it.
                log.warning("identity_skipped_malformed", identity=e.name, error=e.detail)
        return identities

    async def create(self, identity: MonitoredIdentity) -> MonitoredIdentity:
        row = MonitoredIdentityRow(
            namespace=identity.namespace,
            name=identity.name,
            username=identity.spec.username,
            threshold=identity.spec.threshold,
            failure_count=identity.status.failure_count,
            blocked=identity.status.blocked,
            resource_version=1,
        )
        async with self._sessions() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise AlreadyExistsError("MonitoredIdentity", str(identity.key)) from e
            stored = _decode(row)
        self._events.publish(WatchEvent(WatchEventKind.added, stored.key, stored))
        return stored

    async def update_spec(
        self, key: ObjectKey, spec: IdentitySpec, *, expected_version: int
    ) -> MonitoredIdentity:
        return await self._compare_and_swap(
            key,
            expected_version,
            {"username": spec.username, "threshold": spec.threshold},
        )

    async def update_status(
        self, key: ObjectKey, status: IdentityStatus, *, expected_version: int
    ) -> MonitoredIdentity:
        return await self._compare_and_swap(
            key,
            expected_version,
            {"failure_count": status.failure_count, "blocked": status.blocked},
        )

    async def delete(self, key: ObjectKey) -> MonitoredIdentity:
        async with self._sessions() as session:
            row = await _identity_row(session, key)
            if row is None:
                raise NotFoundError("MonitoredIdentity", str(key))
            removed = _decode(row)
            await session.delete(row)
            await session.commit()
        self._events.publish(WatchEvent(WatchEventKind.deleted, key, removed))
        return removed

    def watch(self) -> AsyncIterator[WatchEvent]:
        return self._events.subscribe()

    async def _compare_and_swap(
        self, key: ObjectKey, expected_version: int, values: dict[str, Any]
    ) -> MonitoredIdentity:
        async with self._sessions() as session:
            row = await _identity_row(session, key)
            if row is None:
                raise NotFoundError("MonitoredIdentity", str(key))
            if row.resource_version != expected_version:
                raise ConflictError(
                    str(key),
                    expected_version=expected_version,
                    actual_version=row.resource_version,
                )
            if all(getattr(row, col) == v for col, v in values.items()):
                return _decode(row)

            # The version predicate makes the write atomic against other processes too.
            result = await session.execute(
                update(MonitoredIdentityRow)
                .where(
                    MonitoredIdentityRow.id == row.id,
                    MonitoredIdentityRow.resource_version == expected_version,
                )
                .values(
                    **values,
                    resource_version=expected_version + 1,
                    updated_at=datetime.utcnow(),
                )
            )
            if result.rowcount == 0:
                await session.rollback()
                raise ConflictError(
                    str(key),
                    expected_version=expected_version,
                    actual_version=expected_version + 1,
                )
            await session.commit()
            await session.refresh(row)
            stored = _decode(row)
        self._events.publish(WatchEvent(WatchEventKind.modified, key, stored))
        return stored

    # -- access objects ------------------------------------------------------

    async def create_role(self, role: DenyRole) -> DenyRole:
        async with self._sessions() as session:
            session.add(DenyRoleRow(name=role.name, rules=list(role.rules)))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise AlreadyExistsError("DenyRole", role.name) from e
        return role

    async def get_role(self, name: str) -> DenyRole:
        async with self._sessions() as session:
            row = await session.get(DenyRoleRow, name)
            if row is None:
                raise NotFoundError("DenyRole", name)
            return DenyRole(name=row.name, rules=tuple(row.rules or ()), created_at=row.created_at)

    async def create_binding(self, binding: IdentityBinding) -> IdentityBinding:
        async with self._sessions() as session:
            session.add(
                IdentityBindingRow(
                    name=binding.name,
                    username=binding.username,
                    role_name=binding.role_name,
                )
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise AlreadyExistsError("IdentityBinding", binding.name) from e
        return binding

    async def get_binding(self, name: str) -> IdentityBinding:
        async with self._sessions() as session:
            row = await session.get(IdentityBindingRow, name)
            if row is None:
                raise NotFoundError("IdentityBinding", name)
            return _binding(row)

    async def delete_binding(self, name: str) -> None:
        async with self._sessions() as session:
            result = await session.execute(
                delete(IdentityBindingRow).where(IdentityBindingRow.name == name)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("IdentityBinding", name)
            await session.commit()

    async def list_bindings(self) -> list[IdentityBinding]:
        async with self._sessions() as session:
            rows = (
                (await session.execute(select(IdentityBindingRow).order_by(IdentityBindingRow.name)))
                .scalars()
                .all()
            )
            return [_binding(r) for r in rows]


async def _identity_row(session: AsyncSession, key: ObjectKey) -> MonitoredIdentityRow | None:
    stmt = select(MonitoredIdentityRow).where(
        MonitoredIdentityRow.namespace == key.namespace,
        MonitoredIdentityRow.name == key.name,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


def _decode(row: MonitoredIdentityRow) -> MonitoredIdentity:
    return MonitoredIdentity.decode(row.to_payload(), name=f"{row.namespace}/{row.name}")


def _binding(row: IdentityBindingRow) -> IdentityBinding:
    return IdentityBinding(
        name=row.name,
        username=row.username,
        role_name=row.role_name,
        created_at=row.created_at,
    )


# --- Module Notes -----------------------------------------------------------
# Each call opens and commits its own session; callers never hold a transaction.
