"""
guarduim.domain.models

Typed records handled by the controller.

Responsibilities:
- MonitoredIdentity: declared spec (username + threshold) and observed status.
- DenyRole / IdentityBinding: the access objects that implement a lock.
- Decode raw payloads into validated records at the store boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from guarduim.errors import MalformedRecordError

BINDING_PREFIX = "block-user-"

# Kubernetes-style names; usernames may also carry '@' and ':' (e.g. "system:admin").
_USERNAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._@:-]*$"
_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"


@dataclass(frozen=True, slots=True, order=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class IdentitySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1, max_length=240, pattern=_USERNAME_PATTERN)
    threshold: int = Field(ge=0)


class IdentityStatus(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    failure_count: int = Field(default=0, ge=0, alias="failureCount")
    blocked: bool = False


class MonitoredIdentity(BaseModel):
    """
    Declared + observed record tying a username and threshold to a lock decision.

    `resource_version` changes on every effective write and is the token for
    conditional updates.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    namespace: str = Field(min_length=1, max_length=63, pattern=_NAME_PATTERN)
    name: str = Field(min_length=1, max_length=253, pattern=_NAME_PATTERN)
    spec: IdentitySpec
    status: IdentityStatus = Field(default_factory=IdentityStatus)
    resource_version: int = Field(default=0, ge=0, alias="resourceVersion")

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @classmethod
    def decode(cls, raw: Any, *, name: str = "<unknown>") -> MonitoredIdentity:
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise MalformedRecordError(name, _summarize(e)) from e


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class DenyRole(BaseModel):
    """Cluster-scoped role that grants nothing; binding a user to it is the lock."""

    model_config = ConfigDict(frozen=True)

    name: str
    rules: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)


class IdentityBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    username: str
    role_name: str
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def for_user(cls, username: str, *, role_name: str) -> IdentityBinding:
        return cls(name=binding_name(username), username=username, role_name=role_name)


def binding_name(username: str) -> str:
    # Existence of a binding must be a pure function of the username.
    return f"{BINDING_PREFIX}{username}"


def _summarize(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


# --- Module Notes -----------------------------------------------------------
# Records are frozen; writers produce new instances via `model_copy(update=...)`.
