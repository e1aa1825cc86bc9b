"""
tests.conftest

Shared fixtures: an in-memory store, a fake failure signal source, and a reconciler
wired to both.
"""

from __future__ import annotations

import pytest

from guarduim.controller.reconciler import Reconciler
from guarduim.domain.models import IdentitySpec, MonitoredIdentity
from guarduim.enforcement.access import AccessEnforcer
from guarduim.signals.memory import StaticFailureSignalSource
from guarduim.store.memory import MemoryStore

ROLE = "guarduim-deny"


def make_identity(
    name: str = "alice-guard",
    *,
    username: str = "alice",
    threshold: int = 5,
    namespace: str = "guarduim",
) -> MonitoredIdentity:
    return MonitoredIdentity(
        namespace=namespace,
        name=name,
        spec=IdentitySpec(username=username, threshold=threshold),
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def signals() -> StaticFailureSignalSource:
    return StaticFailureSignalSource()


@pytest.fixture
def enforcer(store: MemoryStore) -> AccessEnforcer:
    return AccessEnforcer(objects=store, role_name=ROLE)


@pytest.fixture
def reconciler(
    store: MemoryStore, signals: StaticFailureSignalSource, enforcer: AccessEnforcer
) -> Reconciler:
    return Reconciler(store=store, signals=signals, enforcer=enforcer, call_timeout=1.0)
