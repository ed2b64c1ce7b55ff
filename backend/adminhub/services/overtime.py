from __future__ import annotations

from sqlalchemy.orm import Session

from adminhub.core.observability import record_transition
from adminhub.models.enums import RequestStatus
from adminhub.models.organization import User
from adminhub.models.overtime import OvertimeRequest
from adminhub.schemas.overtime import OvertimeRequestCreate
from adminhub.services.activity import log_activity
from adminhub.services.approvals import require_editable


def submit_overtime_request(db: Session, *, owner: User, payload: OvertimeRequestCreate) -> OvertimeRequest:
    overtime = OvertimeRequest(
        user_id=owner.id,
        start_time=payload.start_time,
        end_time=payload.end_time,
        reason=payload.reason,
        status=RequestStatus.PENDING_MANAGER,
    )
    db.add(overtime)
    db.flush()

    record_transition("overtime", overtime.status)
    log_activity(
        db,
        actor_user_id=owner.id,
        activity_type="OVERTIME_REQUESTED",
        business_unit_id=owner.business_unit_id,
        message=f"Overtime requested: {overtime.hours} hours",
        payload={"overtime_request_id": overtime.id, "hours": overtime.hours},
    )
    return overtime


def update_overtime_request(
    db: Session,
    *,
    overtime: OvertimeRequest,
    actor: User,
    payload: OvertimeRequestCreate,
) -> OvertimeRequest:
    require_editable(overtime, actor)
    overtime.start_time = payload.start_time
    overtime.end_time = payload.end_time
    overtime.reason = payload.reason
    db.add(overtime)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="OVERTIME_UPDATED",
        business_unit_id=actor.business_unit_id,
        message=f"Overtime request {overtime.id} updated",
        payload={"overtime_request_id": overtime.id},
    )
    return overtime
