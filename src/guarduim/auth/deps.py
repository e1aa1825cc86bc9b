"""
guarduim.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Enforce role checks via a reusable dependency factory.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from guarduim.api.deps import settings_dep
from guarduim.auth.jwt import JwtConfig, JwtValidationError, principal_from_token
from guarduim.auth.models import Principal
from guarduim.observability.logging import get_logger
from guarduim.settings import Settings

log = get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        return principal_from_token(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        log.info("auth_rejected", reason=str(e))
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e


def require_role(role: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.is_admin or principal.has_role(role):
            return principal
        log.info("auth_forbidden", subject=principal.subject, required=role)
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _dep
