from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt
from compliance_lms.core.config import get_settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class TokenError(Exception):
    """Raised when a token cannot be decoded or validated."""


class Role(str, Enum):
    ADMIN = "admin"
    ORG_ADMIN = "org_admin"
    LEARNER = "learner"

    @classmethod
    def values(cls) -> frozenset[str]:
        return frozenset(role.value for role in cls)


def create_access_token(
    subject: str,
    *,
    roles: Sequence[str],
    email: str | None = None,
    expires_delta: timedelta | None = None,
    token_type: str = ACCESS_TOKEN,
) -> str:
    """Sign a JWT for ``subject``.

    ``token_type`` lands in the ``typ`` claim; only access tokens authorize API calls.
    """
    settings = get_settings()

    unsupported = sorted(set(roles) - set(settings.allowed_roles))
    if unsupported:
        raise TokenError(f"Unsupported role(s): {', '.join(unsupported)}")

    issued_at = datetime.now(UTC)
    expires_at = issued_at + (expires_delta or timedelta(seconds=settings.access_token_ttl_seconds))
    claims: dict[str, object] = {
        "sub": subject,
        "roles": list(roles),
        "typ": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        "iss": settings.app_name,
    }
    if email:
        claims["email"] = email

    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, *, expected_type: str = ACCESS_TOKEN) -> dict:
    """Verify signature, expiry, token type and roles; return the claims."""
    settings = get_settings()

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "roles", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise TokenError("Invalid token") from exc

    # Tokens minted before the typ claim existed are access tokens
    if claims.get("typ", ACCESS_TOKEN) != expected_type:
        raise TokenError(f"Expected an {expected_type} token")

    unknown = [role for role in claims.get("roles", []) if role not in Role.values()]
    if unknown:
        raise TokenError(f"Unsupported role: {unknown[0]}")
    return claims
