"""
tests.test_reconciler

Reconcile cycle behaviour: decision, status persistence, enforcement, and error paths.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import ROLE, make_identity
from guarduim.controller.namespace import NamespaceResolver
from guarduim.controller.reconciler import Reconciler
from guarduim.domain.models import IdentityStatus, ObjectKey
from guarduim.enforcement.access import AccessEnforcer, EnforcementOutcome
from guarduim.errors import (
    CollaboratorTimeoutError,
    ConflictError,
    NamespaceUnavailableError,
    SignalSourceUnavailableError,
)
from guarduim.signals.memory import StaticFailureSignalSource
from guarduim.store.memory import MemoryStore


@pytest.mark.asyncio
async def test_count_sequence_blocks_at_threshold(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=5))
    observed = []
    bindings_after = []

    for count in (0, 3, 5):
        signals.set_count("alice", count)
        result = await reconciler.reconcile(identity.key)
        assert result.requeue_after == 30.0
        observed.append((await store.get(identity.key)).status.blocked)
        bindings_after.append(len(await store.list_bindings()))

    assert observed == [False, False, True]
    assert bindings_after == [0, 0, 1]
    assert (await store.get_binding("block-user-alice")).role_name == ROLE


@pytest.mark.asyncio
async def test_count_drop_unblocks_and_removes_binding(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=5))
    signals.set_count("alice", 6)
    await reconciler.reconcile(identity.key)
    assert (await store.get(identity.key)).status.blocked is True

    signals.set_count("alice", 2)
    await reconciler.reconcile(identity.key)

    current = await store.get(identity.key)
    assert current.status == IdentityStatus(failure_count=2, blocked=False)
    assert await store.list_bindings() == []
    # The role outlives the binding.
    assert (await store.get_role(ROLE)).rules == ()


@pytest.mark.asyncio
async def test_signal_failure_leaves_status_untouched(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=5))
    signals.set_count("alice", 7)
    await reconciler.reconcile(identity.key)
    before = await store.get(identity.key)

    signals.fail("alice")
    with pytest.raises(SignalSourceUnavailableError) as exc:
        await reconciler.reconcile(identity.key)

    assert exc.value.retryable is True
    after = await store.get(identity.key)
    assert after.status == before.status
    assert after.resource_version == before.resource_version
    assert len(await store.list_bindings()) == 1


@pytest.mark.asyncio
async def test_deleted_record_is_a_quiet_success(store, signals, reconciler) -> None:
    identity = await store.create(make_identity())
    await store.delete(identity.key)

    result = await reconciler.reconcile(identity.key)

    assert result.requeue_after is None
    assert signals.queries == []
    assert await store.list_bindings() == []


@pytest.mark.asyncio
async def test_deleted_blocked_record_keeps_its_binding(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=1))
    signals.set_count("alice", 1)
    await reconciler.reconcile(identity.key)
    await store.delete(identity.key)

    await reconciler.reconcile(identity.key)

    assert [b.name for b in await store.list_bindings()] == ["block-user-alice"]


@pytest.mark.asyncio
async def test_zero_threshold_blocks_with_zero_failures(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=0))
    signals.set_count("alice", 0)

    await reconciler.reconcile(identity.key)

    assert (await store.get(identity.key)).status.blocked is True
    assert len(await store.list_bindings()) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("threshold", [0, 1, 3, 10])
async def test_status_and_binding_converge(store, signals, reconciler, threshold) -> None:
    identity = await store.create(make_identity(threshold=threshold))
    for count in (0, 1, 2, 3, 9, 10, 11, 4, 0):
        signals.set_count("alice", count)
        await reconciler.reconcile(identity.key)

        status = (await store.get(identity.key)).status
        assert status.failure_count == count
        assert status.blocked == (count >= threshold)
        assert (len(await store.list_bindings()) == 1) == status.blocked


class _RacingStore(MemoryStore):
    """Bumps the record between the reconciler's read and its status write."""

    async def update_status(self, key, status, *, expected_version):
        current = await self.get(key)
        await self.update_spec(
            key,
            current.spec.model_copy(update={"threshold": current.spec.threshold + 1}),
            expected_version=current.resource_version,
        )
        return await super().update_status(key, status, expected_version=expected_version)


@pytest.mark.asyncio
async def test_conflicting_write_aborts_before_enforcement() -> None:
    store = _RacingStore()
    signals = StaticFailureSignalSource({"alice": 9})
    reconciler = Reconciler(
        store=store,
        signals=signals,
        enforcer=AccessEnforcer(objects=store, role_name=ROLE),
    )
    identity = await store.create(make_identity(threshold=5))

    with pytest.raises(ConflictError):
        await reconciler.reconcile(identity.key)

    assert (await store.get(identity.key)).status.blocked is False
    assert await store.list_bindings() == []


class _StalledSource:
    async def query(self, username: str) -> int:
        await asyncio.sleep(60)
        return 0


@pytest.mark.asyncio
async def test_stalled_signal_source_times_out(store, enforcer) -> None:
    reconciler = Reconciler(
        store=store, signals=_StalledSource(), enforcer=enforcer, call_timeout=0.05
    )
    identity = await store.create(make_identity())

    with pytest.raises(SignalSourceUnavailableError):
        await reconciler.reconcile(identity.key)


class _StalledStore(MemoryStore):
    async def get(self, key):
        await asyncio.sleep(60)
        return await super().get(key)


@pytest.mark.asyncio
async def test_stalled_store_times_out(signals) -> None:
    store = _StalledStore()
    reconciler = Reconciler(
        store=store,
        signals=signals,
        enforcer=AccessEnforcer(objects=store, role_name=ROLE),
        call_timeout=0.05,
    )

    with pytest.raises(CollaboratorTimeoutError):
        await reconciler.reconcile(ObjectKey("guarduim", "alice-guard"))


class _BadCountSource:
    async def query(self, username: str) -> int:
        return -1


@pytest.mark.asyncio
async def test_negative_count_is_rejected(store, enforcer) -> None:
    reconciler = Reconciler(store=store, signals=_BadCountSource(), enforcer=enforcer)
    identity = await store.create(make_identity())

    with pytest.raises(SignalSourceUnavailableError):
        await reconciler.reconcile(identity.key)
    assert (await store.get(identity.key)).status == IdentityStatus()


@pytest.mark.asyncio
async def test_keys_outside_operating_namespace_are_skipped(store, signals, enforcer) -> None:
    reconciler = Reconciler(
        store=store,
        signals=signals,
        enforcer=enforcer,
        namespaces=NamespaceResolver(explicit="guarduim"),
    )
    other = await store.create(make_identity(namespace="elsewhere", threshold=0))

    result = await reconciler.reconcile(other.key)

    assert result.requeue_after is None
    assert signals.queries == []


@pytest.mark.asyncio
async def test_unresolvable_namespace_fails_the_cycle(tmp_path, store, signals, enforcer) -> None:
    reconciler = Reconciler(
        store=store,
        signals=signals,
        enforcer=enforcer,
        namespaces=NamespaceResolver(path=tmp_path / "missing"),
    )
    identity = await store.create(make_identity(threshold=0))

    with pytest.raises(NamespaceUnavailableError):
        await reconciler.reconcile(identity.key)
    assert (await store.get(identity.key)).status.blocked is False
    assert await store.list_bindings() == []


@pytest.mark.asyncio
async def test_finalize_removes_binding_of_deleted_record(store, signals, reconciler) -> None:
    identity = await store.create(make_identity(threshold=1))
    signals.set_count("alice", 3)
    await reconciler.reconcile(identity.key)
    removed = await store.delete(identity.key)

    outcome = await reconciler.finalize(removed)

    assert outcome == EnforcementOutcome.binding_removed
    assert await store.list_bindings() == []


@pytest.mark.asyncio
async def test_finalize_keeps_binding_still_wanted_by_another_record(
    store, signals, reconciler
) -> None:
    first = await store.create(make_identity("alice-a", threshold=1))
    second = await store.create(make_identity("alice-b", threshold=1))
    signals.set_count("alice", 3)
    await reconciler.reconcile(first.key)
    await reconciler.reconcile(second.key)
    removed = await store.delete(first.key)

    outcome = await reconciler.finalize(removed)

    assert outcome == EnforcementOutcome.unchanged
    assert len(await store.list_bindings()) == 1


@pytest.mark.asyncio
async def test_records_sharing_a_username_keep_the_binding_while_any_is_blocked(
    store, signals, reconciler
) -> None:
    strict = await store.create(make_identity("alice-strict", threshold=1))
    lax = await store.create(make_identity("alice-lax", threshold=10))
    signals.set_count("alice", 3)

    bindings_after = []
    for _ in range(3):
        for identity in (strict, lax):
            await reconciler.reconcile(identity.key)
            bindings_after.append(len(await store.list_bindings()))

    assert bindings_after == [1, 1, 1, 1, 1, 1]
    assert (await store.get(strict.key)).status.blocked is True
    assert (await store.get(lax.key)).status.blocked is False

    signals.set_count("alice", 0)
    await reconciler.reconcile(lax.key)
    assert len(await store.list_bindings()) == 1
    await reconciler.reconcile(strict.key)
    assert await store.list_bindings() == []
