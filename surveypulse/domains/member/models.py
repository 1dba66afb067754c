"""Member roles carried in access tokens."""

from enum import Enum


class MemberRole(str, Enum):
    """Role of a tenant member."""

    ADMIN = "admin"
    COMPANY_ADMIN = "companyAdmin"
    MEMBER = "member"


MANAGER_ROLES = (MemberRole.ADMIN, MemberRole.COMPANY_ADMIN)


def is_manager(role: str | None) -> bool:
    return role in {r.value for r in MANAGER_ROLES}
