"""
guarduim.auth.models

Auth domain models.
"""

from __future__ import annotations

from dataclasses import dataclass

VIEWER_ROLE = "identity_viewer"
OPERATOR_ROLE = "identity_operator"
ADMIN_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity.
    """

    subject: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    def has_role(self, role: str) -> bool:
        # Operators can do everything viewers can.
        if role == VIEWER_ROLE and OPERATOR_ROLE in self.roles:
            return True
        return role in self.roles
