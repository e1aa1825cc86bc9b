"""
guarduim.enforcement.access

Access enforcement: drive the deny role and per-user bindings to match a decision.

Responsibilities:
- `ensure(username, want_blocked)`: idempotent convergence of one user's binding.
- Create the shared DenyRole lazily; never delete it.
- Treat AlreadyExists on create and NotFound on delete as success.
"""

from __future__ import annotations

import enum

from guarduim.domain.models import DenyRole, IdentityBinding, binding_name
from guarduim.errors import AlreadyExistsError, NotFoundError
from guarduim.observability.logging import get_logger
from guarduim.store.base import AccessObjectStore

log = get_logger(__name__)


class EnforcementOutcome(enum.StrEnum):
    binding_created = "BINDING_CREATED"
    binding_removed = "BINDING_REMOVED"
    unchanged = "UNCHANGED"


class AccessEnforcer:
    """
    Safe to call repeatedly and concurrently for the same user: every write is a
    create-if-absent or delete-if-present, and the losing side of a race sees
    AlreadyExists/NotFound, which is the state it wanted anyway.
    """

    def __init__(self, *, objects: AccessObjectStore, role_name: str) -> None:
        self._objects = objects
        self._role_name = role_name

    async def ensure(self, username: str, want_blocked: bool) -> EnforcementOutcome:
        if want_blocked:
            return await self._ensure_blocked(username)
        return await self._ensure_allowed(username)

    async def is_enforced(self, username: str) -> bool:
        try:
            await self._objects.get_binding(binding_name(username))
        except NotFoundError:
            return False
        return True

    async def _ensure_blocked(self, username: str) -> EnforcementOutcome:
        await self._ensure_role()
        try:
            await self._objects.create_binding(
                IdentityBinding.for_user(username, role_name=self._role_name)
            )
        except AlreadyExistsError:
            return EnforcementOutcome.unchanged
        log.info("binding_created", username=username, role=self._role_name)
        return EnforcementOutcome.binding_created

    async def _ensure_allowed(self, username: str) -> EnforcementOutcome:
        name = binding_name(username)
        try:
            await self._objects.get_binding(name)
        except NotFoundError:
            return EnforcementOutcome.unchanged
        try:
            await self._objects.delete_binding(name)
        except NotFoundError:
            # Another worker removed it between our get and delete.
            return EnforcementOutcome.unchanged
        log.info("binding_removed", username=username)
        return EnforcementOutcome.binding_removed

    async def _ensure_role(self) -> None:
        try:
            await self._objects.create_role(DenyRole(name=self._role_name))
        except AlreadyExistsError:
            return
        log.info("deny_role_created", role=self._role_name)


# --- Module Notes -----------------------------------------------------------
# The DenyRole is shared by every binding; only an operator removes it.
