"""
guarduim.db.models

Persistence schema for identities and access objects.

Responsibilities:
- MonitoredIdentityRow: spec + status columns with an optimistic-concurrency version.
- DenyRoleRow / IdentityBindingRow: the enforcement objects, keyed by name.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, String, UniqueConstraint, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from guarduim.db.base import Base


def _utcnow() -> datetime:
    # Naive UTC timestamps; SQLite has no tz-aware datetime type.
    return datetime.utcnow()


class MonitoredIdentityRow(Base):
    __tablename__ = "monitored_identities"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    namespace: Mapped[str] = mapped_column(String(63), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(253), nullable=False)

    username: Mapped[str] = mapped_column(String(240), nullable=False, index=True)
    threshold: Mapped[int] = mapped_column(nullable=False)

    failure_count: Mapped[int] = mapped_column(nullable=False, default=0)
    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    resource_version: Mapped[int] = mapped_column(nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_identity_namespace_name"),)

    def to_payload(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "spec": {"username": self.username, "threshold": self.threshold},
            "status": {"failureCount": self.failure_count, "blocked": self.blocked},
            "resourceVersion": self.resource_version,
        }


class DenyRoleRow(Base):
    __tablename__ = "deny_roles"

    name: Mapped[str] = mapped_column(String(253), primary_key=True)
    rules: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)


class IdentityBindingRow(Base):
    __tablename__ = "identity_bindings"

    name: Mapped[str] = mapped_column(String(253), primary_key=True)
    username: Mapped[str] = mapped_column(String(240), nullable=False, unique=True)
    role_name: Mapped[str] = mapped_column(String(253), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)


# --- Module Notes -----------------------------------------------------------
# The primary key on binding name is what makes concurrent creates race-safe: the
# losing insert fails with IntegrityError and is reported as AlreadyExistsError.
