"""
Two-step approval chain shared by leave and overtime requests.

A request starts at PENDING_MANAGER. The owner's direct approver (or an
admin) moves it to PENDING_HR, then HR (or an admin) finalises it as
APPROVED. Either pending step may reject it; the owner may cancel while it
is still pending.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from adminhub.core import rbac
from adminhub.core.observability import record_transition
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.enums import RequestStatus, Role
from adminhub.models.leave import LeaveRequest
from adminhub.models.organization import User
from adminhub.models.overtime import OvertimeRequest
from adminhub.services.activity import log_activity


ChainRequest = Union[LeaveRequest, OvertimeRequest]

APPROVER_ROLES = (Role.ADMIN, Role.HR, Role.MANAGER)
PENDING_STATUSES = (RequestStatus.PENDING_MANAGER, RequestStatus.PENDING_HR)
DECIDED_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _entity_name(request: ChainRequest) -> str:
    return "leave" if isinstance(request, LeaveRequest) else "overtime"


def require_approver(user: User) -> None:
    if not rbac.user_has_any_role(user, APPROVER_ROLES):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorised to approve requests")


def is_direct_manager(actor: User, owner: User) -> bool:
    return rbac.user_has_role(actor, Role.MANAGER) and owner.approver_id == actor.id


def can_act_as_hr(actor: User) -> bool:
    return rbac.user_has_any_role(actor, (Role.ADMIN, Role.HR))


def _require_admin_scope(actor: User, owner: User, business_unit_id: Optional[int]) -> None:
    # Admins act within one business unit at a time; their own unless named.
    scope = business_unit_id if business_unit_id is not None else actor.business_unit_id
    if owner.business_unit_id != scope:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Request belongs to a different business unit",
        )


def _require_actionable(
    actor: User,
    request: ChainRequest,
    business_unit_id: Optional[int] = None,
) -> RequestStatus:
    """
    Managers act on their direct reports and HR on manager-approved requests,
    in any business unit. Admins may take either step but only for owners in
    the business unit they act in.
    """
    require_approver(actor)
    if business_unit_id is not None:
        require_business_unit_access(actor, business_unit_id)
    owner = request.user

    if request.status == RequestStatus.PENDING_MANAGER:
        if is_direct_manager(actor, owner):
            return RequestStatus.PENDING_MANAGER
        if rbac.user_has_role(actor, Role.ADMIN):
            _require_admin_scope(actor, owner, business_unit_id)
            return RequestStatus.PENDING_MANAGER
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the requester's approver can act on this request",
        )

    if request.status == RequestStatus.PENDING_HR:
        if not can_act_as_hr(actor):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only HR can finalise this request")
        if not rbac.user_has_role(actor, Role.HR):
            _require_admin_scope(actor, owner, business_unit_id)
        if request.manager_action_by is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Manager approval must be recorded before HR approval",
            )
        return RequestStatus.PENDING_HR

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Request is already {request.status.value}")


def approve_request(
    db: Session,
    *,
    request: ChainRequest,
    actor: User,
    comments: Optional[str] = None,
    business_unit_id: Optional[int] = None,
) -> RequestStatus:
    """Advance the request one step and return the status it left."""
    stage = _require_actionable(actor, request, business_unit_id)
    now = _now()
    if stage == RequestStatus.PENDING_MANAGER:
        request.manager_action_by = actor.id
        request.manager_action_at = now
        request.manager_comments = comments
        request.status = RequestStatus.PENDING_HR
    else:
        request.hr_action_by = actor.id
        request.hr_action_at = now
        request.hr_comments = comments
        request.status = RequestStatus.APPROVED
    db.add(request)
    db.flush()

    entity = _entity_name(request)
    suffix = "APPROVED" if request.status == RequestStatus.APPROVED else "MANAGER_APPROVED"
    record_transition(entity, request.status)
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type=f"{entity.upper()}_{suffix}",
        business_unit_id=request.user.business_unit_id,
        message=f"{entity.capitalize()} request {request.id} moved to {request.status.value}",
        payload={"request_id": request.id, "from_status": stage.value, "to_status": request.status.value},
    )
    return stage


def reject_request(
    db: Session,
    *,
    request: ChainRequest,
    actor: User,
    comments: Optional[str],
    business_unit_id: Optional[int] = None,
) -> RequestStatus:
    if not comments or not comments.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comments are required when rejecting")
    stage = _require_actionable(actor, request, business_unit_id)
    now = _now()
    if stage == RequestStatus.PENDING_MANAGER:
        request.manager_action_by = actor.id
        request.manager_action_at = now
        request.manager_comments = comments
        request.hr_action_by = None
        request.hr_action_at = None
        request.hr_comments = None
    else:
        request.hr_action_by = actor.id
        request.hr_action_at = now
        request.hr_comments = comments
    request.status = RequestStatus.REJECTED
    db.add(request)
    db.flush()

    entity = _entity_name(request)
    record_transition(entity, request.status)
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type=f"{entity.upper()}_REJECTED",
        business_unit_id=request.user.business_unit_id,
        message=f"{entity.capitalize()} request {request.id} rejected",
        payload={"request_id": request.id, "from_status": stage.value, "comments": comments},
    )
    return stage


def cancel_request(db: Session, *, request: ChainRequest, actor: User) -> None:
    if request.user_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can cancel this request")
    if request.status not in PENDING_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only pending requests can be cancelled")
    from_status = request.status
    request.status = RequestStatus.CANCELLED
    db.add(request)
    db.flush()

    entity = _entity_name(request)
    record_transition(entity, request.status)
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type=f"{entity.upper()}_CANCELLED",
        business_unit_id=actor.business_unit_id,
        message=f"{entity.capitalize()} request {request.id} cancelled",
        payload={"request_id": request.id, "from_status": from_status.value},
    )


def require_editable(request: ChainRequest, actor: User) -> None:
    if request.user_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can edit this request")
    if request.status not in PENDING_STATUSES or request.manager_action_by is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request can no longer be edited",
        )


def pending_for_approver(
    query: Query,
    model,
    *,
    actor: User,
    business_unit_id: int,
    status_filter: Optional[RequestStatus] = None,
) -> Query:
    """
    Narrow ``query`` to the requests ``actor`` may act on.

    Only the admin branch is limited to ``business_unit_id``; managers see
    their direct reports and HR sees manager-approved requests wherever the
    owner is assigned.
    """
    require_approver(actor)
    require_business_unit_access(actor, business_unit_id)

    conditions = []
    if rbac.user_has_role(actor, Role.ADMIN):
        conditions.append(and_(model.status.in_(PENDING_STATUSES), User.business_unit_id == business_unit_id))
    if rbac.user_has_role(actor, Role.HR):
        conditions.append(and_(model.status == RequestStatus.PENDING_HR, model.manager_action_by.isnot(None)))
    if rbac.user_has_role(actor, Role.MANAGER):
        conditions.append(and_(model.status == RequestStatus.PENDING_MANAGER, User.approver_id == actor.id))

    query = query.join(User, model.user_id == User.id).filter(or_(*conditions))
    if status_filter:
        query = query.filter(model.status == status_filter)
    return query.order_by(model.created_at.asc())


def acted_on_by(
    query: Query,
    model,
    *,
    actor: User,
    business_unit_id: int,
    status_filter: Optional[RequestStatus] = None,
) -> Query:
    """Approved or rejected requests where ``actor`` recorded the manager or HR decision."""
    require_approver(actor)
    require_business_unit_access(actor, business_unit_id)
    if status_filter is not None and status_filter not in DECIDED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="History can only be filtered by APPROVED or REJECTED",
        )

    statuses = (status_filter,) if status_filter else DECIDED_STATUSES
    return query.filter(
        model.status.in_(statuses),
        or_(model.manager_action_by == actor.id, model.hr_action_by == actor.id),
    ).order_by(func.coalesce(model.hr_action_at, model.manager_action_at).desc(), model.id.desc())


def require_viewer(actor: User, request: ChainRequest) -> None:
    if request.user_id == actor.id:
        return
    require_approver(actor)
    if is_direct_manager(actor, request.user) or actor.id in (request.manager_action_by, request.hr_action_by):
        return
    require_business_unit_access(actor, request.user.business_unit_id)
