"""Security utilities - member access tokens and invite tokens.

Access tokens are issued by the account service; this service only verifies
them. ``create_access_token`` exists for tooling and tests.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from surveypulse.core.config import settings
from surveypulse.core.exceptions import InvalidTokenError, TokenExpiredError

INVITE_TOKEN_BYTES = 32
ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ["exp", "sub", "tenant_id", "role"]


def generate_invite_token() -> str:
    """Generate an opaque invite token (32 random bytes, hex encoded)."""
    return secrets.token_hex(INVITE_TOKEN_BYTES)


def create_access_token(
    user_id: str,
    tenant_id: str,
    role: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a member access token scoped to one tenant."""
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "tenant_id": tenant_id,
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> dict[str, Any]:
    """
    Verify a member access token and return its claims.

    Raises:
        TokenExpiredError: If the token has expired
        InvalidTokenError: If the signature, claims or token type are wrong
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(message=str(e))

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError(message="Invalid token type")
    return payload
