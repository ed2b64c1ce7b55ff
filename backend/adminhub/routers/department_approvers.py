from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.organization import User
from adminhub.schemas.material_request import DepartmentApproverCreate, DepartmentApproverRead
from adminhub.services import department_approvers as approver_service

router = APIRouter(prefix="/api/department-approvers", tags=["material-requests"])


@router.get("", response_model=List[DepartmentApproverRead])
def list_department_approvers(
    department_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[DepartmentApproverRead]:
    department = approver_service.get_department_or_404(db, department_id)
    require_business_unit_access(current_user, department.business_unit_id)
    approvers = approver_service.list_department_approvers(db, department_id=department_id)
    return [DepartmentApproverRead.model_validate(a) for a in approvers]


@router.post("", response_model=DepartmentApproverRead, status_code=status.HTTP_201_CREATED)
def create_department_approver(
    approver_in: DepartmentApproverCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DepartmentApproverRead:
    approver = approver_service.create_department_approver(db, actor=current_user, payload=approver_in)
    db.commit()
    db.refresh(approver)
    return DepartmentApproverRead.model_validate(approver)


@router.post("/{approver_id}/toggle", response_model=DepartmentApproverRead)
def toggle_department_approver(
    approver_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DepartmentApproverRead:
    approver = approver_service.get_approver_or_404(db, approver_id)
    approver_service.toggle_department_approver(db, actor=current_user, approver=approver)
    db.commit()
    db.refresh(approver)
    return DepartmentApproverRead.model_validate(approver)


@router.delete("/{approver_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department_approver(
    approver_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    approver = approver_service.get_approver_or_404(db, approver_id)
    approver_service.delete_department_approver(db, actor=current_user, approver=approver)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
