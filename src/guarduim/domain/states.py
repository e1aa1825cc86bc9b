"""
guarduim.domain.states

Per-identity enforcement state machine.

States are observed at the (MonitoredIdentity, IdentityBinding) pair level:

- UNKNOWN: no record
- ALLOWED: record exists, binding absent
- BLOCKED: record exists, binding present

There is no terminal state; a record may cycle ALLOWED <-> BLOCKED indefinitely.
"""

from __future__ import annotations

import enum

from guarduim.domain.models import MonitoredIdentity


class EnforcementState(enum.StrEnum):
    unknown = "UNKNOWN"
    allowed = "ALLOWED"
    blocked = "BLOCKED"


def decide_blocked(failure_count: int, threshold: int) -> bool:
    # Inclusive boundary: threshold 0 blocks even with zero recorded failures.
    return failure_count >= threshold


def observe(identity: MonitoredIdentity | None, *, binding_present: bool) -> EnforcementState:
    if identity is None:
        return EnforcementState.unknown
    return EnforcementState.blocked if binding_present else EnforcementState.allowed


def is_transition(previous: EnforcementState, current: EnforcementState) -> bool:
    return previous != current
