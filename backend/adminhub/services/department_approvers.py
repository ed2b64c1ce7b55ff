from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.enums import Role
from adminhub.models.material_request import DepartmentApprover
from adminhub.models.organization import Department, User
from adminhub.schemas.material_request import DepartmentApproverCreate
from adminhub.services.activity import log_activity

MANAGE_ROLES = (Role.ADMIN, Role.MANAGER)


def get_department_or_404(db: Session, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if not department:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    return department


def get_approver_or_404(db: Session, approver_id: int) -> DepartmentApprover:
    approver = db.get(DepartmentApprover, approver_id)
    if not approver:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department approver not found")
    return approver


def require_manage(db: Session, actor: User, department_id: int) -> Department:
    rbac.require_roles(actor, MANAGE_ROLES)
    department = get_department_or_404(db, department_id)
    require_business_unit_access(actor, department.business_unit_id)
    return department


def list_department_approvers(db: Session, *, department_id: int) -> list[DepartmentApprover]:
    return (
        db.query(DepartmentApprover)
        .filter(DepartmentApprover.department_id == department_id)
        .order_by(DepartmentApprover.approver_type.asc(), DepartmentApprover.id.asc())
        .all()
    )


def create_department_approver(db: Session, *, actor: User, payload: DepartmentApproverCreate) -> DepartmentApprover:
    department = require_manage(db, actor, payload.department_id)
    employee = db.get(User, payload.employee_id)
    if not employee or not employee.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Approver must be an active employee")

    existing = (
        db.query(DepartmentApprover)
        .filter(
            DepartmentApprover.department_id == payload.department_id,
            DepartmentApprover.employee_id == payload.employee_id,
            DepartmentApprover.approver_type == payload.approver_type,
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Approver already assigned to this department")

    approver = DepartmentApprover(
        department_id=payload.department_id,
        employee_id=payload.employee_id,
        approver_type=payload.approver_type,
        is_active=True,
    )
    db.add(approver)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="DEPARTMENT_APPROVER_ADDED",
        business_unit_id=department.business_unit_id,
        message=f"{payload.approver_type.value} approver added to {department.name}",
        payload={"department_id": department.id, "employee_id": employee.id},
    )
    return approver


def toggle_department_approver(db: Session, *, actor: User, approver: DepartmentApprover) -> DepartmentApprover:
    require_manage(db, actor, approver.department_id)
    approver.is_active = not approver.is_active
    db.add(approver)
    db.flush()
    return approver


def delete_department_approver(db: Session, *, actor: User, approver: DepartmentApprover) -> None:
    require_manage(db, actor, approver.department_id)
    db.delete(approver)
    db.flush()
