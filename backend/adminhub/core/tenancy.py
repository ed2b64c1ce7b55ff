"""Business-unit scoping for every tenant-owned resource."""

from __future__ import annotations

from fastapi import HTTPException, status

from adminhub.core import rbac
from adminhub.models.enums import Role

GLOBAL_ACCESS_ROLES = (Role.ADMIN, Role.HR, Role.ACCTG, Role.PURCHASER)


def has_global_business_unit_access(user) -> bool:
    return rbac.user_has_any_role(user, GLOBAL_ACCESS_ROLES)


def can_access_business_unit(user, business_unit_id: int) -> bool:
    if has_global_business_unit_access(user):
        return True
    return user.business_unit_id == business_unit_id


def require_business_unit_access(user, business_unit_id: int) -> None:
    if not can_access_business_unit(user, business_unit_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this business unit",
        )
