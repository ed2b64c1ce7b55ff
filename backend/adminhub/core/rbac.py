from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from fastapi import HTTPException, status

from adminhub.models.enums import Role


ROLE_CAPABILITIES: dict[Role, Dict[str, bool]] = {
    Role.ADMIN: {
        "approve_requests": True,
        "manage_leave_setup": True,
        "manage_material_requests": True,
        "serve_material_requests": True,
        "post_material_requests": True,
        "receive_material_requests": True,
        "manage_assets": True,
        "run_depreciation": True,
        "manage_gl_accounts": True,
        "manage_business_units": True,
        "global_business_unit_access": True,
    },
    Role.HR: {
        "approve_requests": True,
        "manage_leave_setup": True,
        "manage_material_requests": False,
        "serve_material_requests": False,
        "post_material_requests": False,
        "receive_material_requests": False,
        "manage_assets": False,
        "run_depreciation": False,
        "manage_gl_accounts": False,
        "manage_business_units": False,
        "global_business_unit_access": True,
    },
    Role.MANAGER: {
        "approve_requests": True,
        "manage_leave_setup": False,
        "manage_material_requests": True,
        "serve_material_requests": False,
        "post_material_requests": False,
        "receive_material_requests": True,
        "manage_assets": True,
        "run_depreciation": False,
        "manage_gl_accounts": False,
        "manage_business_units": False,
        "global_business_unit_access": False,
    },
    Role.ACCTG: {
        "approve_requests": False,
        "manage_leave_setup": False,
        "manage_material_requests": False,
        "serve_material_requests": False,
        "post_material_requests": True,
        "receive_material_requests": False,
        "manage_assets": True,
        "run_depreciation": True,
        "manage_gl_accounts": True,
        "manage_business_units": False,
        "global_business_unit_access": True,
    },
    Role.PURCHASER: {
        "approve_requests": False,
        "manage_leave_setup": False,
        "manage_material_requests": False,
        "serve_material_requests": True,
        "post_material_requests": False,
        "receive_material_requests": True,
        "manage_assets": False,
        "run_depreciation": False,
        "manage_gl_accounts": False,
        "manage_business_units": False,
        "global_business_unit_access": True,
    },
    Role.STOCKROOM: {
        "approve_requests": False,
        "manage_leave_setup": False,
        "manage_material_requests": False,
        "serve_material_requests": False,
        "post_material_requests": False,
        "receive_material_requests": True,
        "manage_assets": False,
        "run_depreciation": False,
        "manage_gl_accounts": False,
        "manage_business_units": False,
        "global_business_unit_access": False,
    },
    Role.EMPLOYEE: {
        "approve_requests": False,
        "manage_leave_setup": False,
        "manage_material_requests": False,
        "serve_material_requests": False,
        "post_material_requests": False,
        "receive_material_requests": False,
        "manage_assets": False,
        "run_depreciation": False,
        "manage_gl_accounts": False,
        "manage_business_units": False,
        "global_business_unit_access": False,
    },
}


def _coerce_role(value: Role | str | None) -> Optional[Role]:
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value))
    except ValueError:
        return None


def roles_for_user(user) -> list[Role]:
    roles: list[Role] = []
    raw_roles = getattr(user, "roles", None)
    if raw_roles:
        for raw in raw_roles:
            role = _coerce_role(raw)
            if role and role not in roles:
                roles.append(role)
    primary = _coerce_role(getattr(user, "role", None))
    if primary and primary not in roles:
        roles.insert(0, primary)
    return roles


def get_capabilities_for_roles(
    roles: Iterable[Role],
    overrides: Optional[Mapping[str, Optional[bool]]] = None,
) -> Dict[str, bool]:
    merged: Dict[str, bool] = {}
    for role in roles:
        base = ROLE_CAPABILITIES.get(role, {})
        for key, value in base.items():
            merged[key] = merged.get(key, False) or bool(value)
    if overrides:
        for key, value in overrides.items():
            if key in merged and value is not None:
                merged[key] = bool(value)
    return merged


def get_capabilities_for_user(user) -> Dict[str, bool]:
    return get_capabilities_for_roles(roles_for_user(user))


def user_has_role(user, role: Role) -> bool:
    return role in roles_for_user(user)


def user_has_any_role(user, roles: Iterable[Role]) -> bool:
    user_roles = set(roles_for_user(user))
    return any(role in user_roles for role in roles)


def require_roles(user, required_roles: Iterable[Role]) -> None:
    """
    Require that the user has at least one of the specified roles.
    Raises HTTPException with 403 status if user doesn't have required roles.
    """
    required_roles = list(required_roles)
    if not user_has_any_role(user, required_roles):
        role_names = ", ".join(role.value for role in required_roles)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required roles: {role_names}"
        )

