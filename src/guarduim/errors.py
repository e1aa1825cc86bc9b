"""
guarduim.errors

Error taxonomy shared by the stores, signal sources, enforcement and the controller.

Responsibilities:
- Give each failure mode its own type so callers branch on type, not on message text.
- Mark which failures are worth retrying (`retryable`).
"""

from __future__ import annotations


class GuarduimError(Exception):
    retryable: bool = True


class NotFoundError(GuarduimError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name!r} not found")
        self.kind = kind
        self.name = name


class AlreadyExistsError(GuarduimError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name!r} already exists")
        self.kind = kind
        self.name = name


class ConflictError(GuarduimError):
    """
    The stored record changed between read and write.
    The reconcile that hit this must start over from the fetch.
    """

    def __init__(self, name: str, *, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"{name!r} was modified (expected version {expected_version}, "
            f"found {actual_version})"
        )
        self.name = name
        self.expected_version = expected_version
        self.actual_version = actual_version


class SignalSourceUnavailableError(GuarduimError):
    def __init__(self, username: str, reason: str) -> None:
        super().__init__(f"failure count for {username!r} unavailable: {reason}")
        self.username = username
        self.reason = reason


class CollaboratorTimeoutError(GuarduimError):
    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} timed out after {timeout:g}s")
        self.operation = operation
        self.timeout = timeout


class NamespaceUnavailableError(GuarduimError):
    pass


class MalformedRecordError(GuarduimError):
    # Retrying does not fix a bad payload; an operator has to edit the record.
    retryable = False

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"malformed record {name!r}: {detail}")
        self.name = name
        self.detail = detail
