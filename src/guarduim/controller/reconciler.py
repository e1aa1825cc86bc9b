"""
guarduim.controller.reconciler

The reconcile cycle for one MonitoredIdentity.

Responsibilities:
- Fetch the record, query the failure signal source, and compute the lock decision.
- Persist status with a conditional write (ConflictError aborts the whole cycle).
- Converge the access objects with the decision through AccessEnforcer.
- Optional deletion cleanup (`finalize`) for records that are already gone.

The cycle is level-triggered: it looks only at current state, so running it
redundantly (at-least-once delivery) is harmless.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from guarduim.controller.namespace import NamespaceResolver
from guarduim.domain.models import IdentityStatus, MonitoredIdentity, ObjectKey
from guarduim.domain.states import decide_blocked, is_transition, observe
from guarduim.enforcement.access import AccessEnforcer, EnforcementOutcome
from guarduim.errors import CollaboratorTimeoutError, NotFoundError, SignalSourceUnavailableError
from guarduim.observability.logging import get_logger
from guarduim.signals.base import FailureSignalSource, checked_count
from guarduim.store.base import IdentityStore

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    requeue_after: float | None = None


class Reconciler:
    def __init__(
        self,
        *,
        store: IdentityStore,
        signals: FailureSignalSource,
        enforcer: AccessEnforcer,
        namespaces: NamespaceResolver | None = None,
        requeue_after: float = 30.0,
        call_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._signals = signals
        self._enforcer = enforcer
        # None means cluster-wide: every namespace is in scope.
        self._namespaces = namespaces
        self._requeue_after = requeue_after
        self._call_timeout = call_timeout

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        if not await self._in_scope(key):
            log.debug("reconcile_skipped_out_of_scope")
            return ReconcileResult()

        try:
            identity = await self._call(self._store.get(key), "get identity")
        except NotFoundError:
            # Deleted since it was enqueued. Any binding it left is handled by `finalize`.
            log.info("reconcile_identity_gone")
            return ReconcileResult()

        username = identity.spec.username
        count = await self._query(username)
        blocked = decide_blocked(count, identity.spec.threshold)
        previous = observe(
            identity,
            binding_present=await self._call(
                self._enforcer.is_enforced(username), "check binding"
            ),
        )

        await self._call(
            self._store.update_status(
                key,
                IdentityStatus(failure_count=count, blocked=blocked),
                expected_version=identity.resource_version,
            ),
            "update status",
        )

        retained = False
        if not blocked and await self._wanted_by_another(identity):
            # The binding is shared by every record naming this username.
            retained = True
            outcome = EnforcementOutcome.unchanged
        else:
            outcome = await self._call(self._enforcer.ensure(username, blocked), "enforce")

        current = observe(identity, binding_present=blocked or retained)
        if is_transition(previous, current) or outcome != EnforcementOutcome.unchanged:
            log.info(
                "enforcement_transition",
                username=username,
                failure_count=count,
                threshold=identity.spec.threshold,
                previous=previous.value,
                current=current.value,
                outcome=outcome.value,
            )
        else:
            log.debug(
                "reconcile_succeeded",
                username=username,
                failure_count=count,
                blocked=blocked,
                binding_retained=retained,
            )
        return ReconcileResult(requeue_after=self._requeue_after)

    async def finalize(self, identity: MonitoredIdentity) -> EnforcementOutcome:
        """
        Remove the binding left behind by a deleted record.

        Bindings are keyed by username, so another live record for the same user may
        still want the lock; in that case the binding stays.
        """

        username = identity.spec.username
        if await self._wanted_by_another(identity):
            log.info("finalize_binding_retained", username=username)
            return EnforcementOutcome.unchanged
        outcome = await self._call(self._enforcer.ensure(username, False), "enforce")
        log.info("finalize_completed", username=username, outcome=outcome.value)
        return outcome

    async def _wanted_by_another(self, identity: MonitoredIdentity) -> bool:
        # Bindings are cluster-wide, so siblings in every namespace count.
        others = await self._call(self._store.list_identities(), "list identities")
        return any(
            other.key != identity.key
            and other.spec.username == identity.spec.username
            and other.status.blocked
            for other in others
        )

    async def _in_scope(self, key: ObjectKey) -> bool:
        if self._namespaces is None:
            return True
        namespace = await self._namespaces.resolve()
        return key.namespace == namespace

    async def _query(self, username: str) -> int:
        try:
            raw = await asyncio.wait_for(self._signals.query(username), self._call_timeout)
        except TimeoutError as e:
            raise SignalSourceUnavailableError(
                username, f"query timed out after {self._call_timeout:g}s"
            ) from e
        return checked_count(username, raw)

    async def _call(self, aw: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(aw, self._call_timeout)
        except TimeoutError as e:
            raise CollaboratorTimeoutError(operation, self._call_timeout) from e


# --- Module Notes -----------------------------------------------------------
# Status and enforcement are two separate writes. If enforcement fails after the
# status write, the error propagates and the next cycle converges the binding.
