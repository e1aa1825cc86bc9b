"""
tests.test_models

Record decoding and the enforcement state machine.
"""

from __future__ import annotations

import pytest

from guarduim.domain.models import MonitoredIdentity, ObjectKey, binding_name
from guarduim.domain.states import (
    EnforcementState,
    decide_blocked,
    is_transition,
    observe,
)
from guarduim.errors import MalformedRecordError


def test_decode_accepts_wire_aliases() -> None:
    identity = MonitoredIdentity.decode(
        {
            "namespace": "guarduim",
            "name": "alice-guard",
            "spec": {"username": "system:admin", "threshold": 3},
            "status": {"failureCount": 4, "blocked": True},
            "resourceVersion": 7,
        }
    )

    assert identity.key == ObjectKey("guarduim", "alice-guard")
    assert str(identity.key) == "guarduim/alice-guard"
    assert identity.status.failure_count == 4
    assert identity.resource_version == 7
    assert identity.model_dump(by_alias=True)["status"] == {"failureCount": 4, "blocked": True}


def test_decode_defaults_missing_status() -> None:
    identity = MonitoredIdentity.decode(
        {"namespace": "guarduim", "name": "bob", "spec": {"username": "bob", "threshold": 0}}
    )

    assert identity.status.failure_count == 0
    assert identity.status.blocked is False


@pytest.mark.parametrize(
    "raw",
    [
        {"namespace": "guarduim", "name": "x", "spec": {"username": "alice", "threshold": -1}},
        {"namespace": "guarduim", "name": "x", "spec": {"username": "", "threshold": 1}},
        {"namespace": "guarduim", "name": "x", "spec": {"threshold": 1}},
        {"namespace": "guarduim", "name": "Bad_Name", "spec": {"username": "a", "threshold": 1}},
        {"namespace": "guarduim", "name": "x"},
        "not a mapping",
    ],
)
def test_decode_rejects_malformed_records(raw) -> None:
    with pytest.raises(MalformedRecordError) as exc:
        MonitoredIdentity.decode(raw, name="guarduim/x")

    assert exc.value.retryable is False
    assert "guarduim/x" in str(exc.value)


def test_binding_name_is_derived_from_username() -> None:
    assert binding_name("alice") == "block-user-alice"
    assert binding_name("alice") == binding_name("alice")


@pytest.mark.parametrize(
    ("count", "threshold", "blocked"),
    [(0, 0, True), (0, 1, False), (4, 5, False), (5, 5, True), (6, 5, True)],
)
def test_decide_blocked_is_inclusive(count, threshold, blocked) -> None:
    assert decide_blocked(count, threshold) is blocked


def test_observed_states() -> None:
    identity = MonitoredIdentity.decode(
        {"namespace": "guarduim", "name": "a", "spec": {"username": "a", "threshold": 1}}
    )

    assert observe(None, binding_present=True) == EnforcementState.unknown
    assert observe(identity, binding_present=False) == EnforcementState.allowed
    assert observe(identity, binding_present=True) == EnforcementState.blocked
    assert is_transition(EnforcementState.allowed, EnforcementState.blocked)
    assert not is_transition(EnforcementState.blocked, EnforcementState.blocked)
