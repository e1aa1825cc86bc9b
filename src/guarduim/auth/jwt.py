"""
guarduim.auth.jwt

Bearer tokens for the operator API.

Responsibilities:
- Issue HS256 tokens carrying identity_viewer / identity_operator / admin roles.
- Validate tokens (signature, iss/aud/exp/iat/sub, bounded clock skew) and turn the
  claims into a `Principal`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from guarduim.auth.models import Principal
from guarduim.settings import Settings

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    audience: str
    secret: str
    leeway: timedelta = timedelta(0)

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
            leeway=timedelta(seconds=settings.jwt_leeway_seconds),
        )


class JwtValidationError(Exception):
    pass


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    roles: Iterable[str],
    ttl: timedelta = timedelta(hours=1),
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "roles": sorted(set(roles)),
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            leeway=cfg.leeway,
            options={"require": _REQUIRED_CLAIMS},
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


def principal_from_token(*, cfg: JwtConfig, token: str) -> Principal:
    claims = decode_and_validate(cfg=cfg, token=token)

    subject = str(claims.get("sub", ""))
    if not subject:
        raise JwtValidationError("empty subject")
    roles = claims.get("roles", [])
    if not isinstance(roles, list):
        raise JwtValidationError("roles claim must be a list")
    return Principal(subject=subject, roles=frozenset(str(r) for r in roles))


# --- Module Notes -----------------------------------------------------------
# Tokens are minted out of band (or by tests via `issue_token`); the API never issues them.
