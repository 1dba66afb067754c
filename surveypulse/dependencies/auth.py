"""Authentication dependencies for FastAPI."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from surveypulse.core.exceptions import (
    AuthenticationError,
    InsufficientPermissionsError,
    InvalidTokenError,
)
from surveypulse.core.security import verify_access_token
from surveypulse.domains.member.models import MANAGER_ROLES, MemberRole

# JWT Bearer scheme
bearer_scheme = HTTPBearer(auto_error=False)


def user_from_payload(payload: dict) -> dict:
    """
    Build the current-user dict from a verified token payload.

    Raises:
        InvalidTokenError: If the payload lacks user, tenant or a known role
    """
    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    role = payload.get("role")
    if not user_id or not tenant_id:
        raise InvalidTokenError("Invalid token payload")
    if role not in {r.value for r in MemberRole}:
        raise InvalidTokenError("Unknown role in token")

    return {
        "user_id": user_id,
        "tenant_id": tenant_id,
        "role": role,
        "email": payload.get("email"),
    }


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> dict:
    """
    Verify JWT token and return current user info.

    Returns:
        dict with user_id, tenant_id, role, email
    """
    if not credentials:
        raise AuthenticationError("Authorization header required")

    payload = verify_access_token(credentials.credentials)
    return user_from_payload(payload)


def require_roles(*allowed_roles: MemberRole):
    """
    Dependency factory that checks if current user has required role.

    Usage:
        @router.put("/{pk}/assign")
        async def assign(
            user: dict = Depends(require_roles(MemberRole.ADMIN, MemberRole.COMPANY_ADMIN))
        ):
            ...
    """
    async def role_checker(
        current_user: dict = Depends(get_current_user),
    ) -> dict:
        if current_user.get("role") not in [r.value for r in allowed_roles]:
            raise InsufficientPermissionsError(
                f"Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user

    return role_checker


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[dict, Depends(get_current_user)]
ManagerOnly = Annotated[dict, Depends(require_roles(*MANAGER_ROLES))]
