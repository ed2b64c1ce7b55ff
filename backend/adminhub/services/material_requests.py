"""
Material request lifecycle.

DRAFT -> FOR_REC_APPROVAL -> FOR_FINAL_APPROVAL -> FOR_SERVING -> FOR_POSTING
-> POSTED -> RECEIVED, with DISAPPROVED reachable from either approval stage.
While serving, the coordinator may mark a request for edit; serving is held
until the requester completes the edit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from adminhub.core import rbac
from adminhub.core.observability import record_transition
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.enums import ApprovalDecision, ApproverType, MRStatus, Role
from adminhub.models.material_request import DepartmentApprover, MaterialRequest, MaterialRequestItem
from adminhub.models.organization import User
from adminhub.schemas.material_request import (
    MarkServedRequest,
    MaterialRequestCreate,
    MaterialRequestItemIn,
    MaterialRequestUpdate,
)
from adminhub.services.activity import log_activity
from adminhub.services.numbering import next_material_request_number

EDITOR_ROLES = (Role.ADMIN, Role.MANAGER)
SERVE_ROLES = (Role.ADMIN, Role.PURCHASER)
POST_ROLES = (Role.ADMIN, Role.ACCTG)
RECEIVE_ROLES = (Role.ADMIN, Role.MANAGER, Role.PURCHASER, Role.STOCKROOM)

EDITABLE_STATUSES = (MRStatus.DRAFT, MRStatus.FOR_EDIT)
DONE_STATUSES = (MRStatus.POSTED, MRStatus.RECEIVED)

CENT = Decimal("0.01")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _transition(
    db: Session,
    mr: MaterialRequest,
    to_status: MRStatus,
    *,
    actor: User,
    activity_type: str,
    payload: Optional[dict] = None,
) -> None:
    from_status = mr.status
    mr.status = to_status
    db.add(mr)
    db.flush()
    record_transition("material_request", to_status)
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type=activity_type,
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} moved to {to_status.value}",
        payload={
            "material_request_id": mr.id,
            "from_status": from_status.value if from_status else None,
            "to_status": to_status.value,
            **(payload or {}),
        },
    )


def get_material_request_or_404(db: Session, material_request_id: int) -> MaterialRequest:
    mr = db.get(MaterialRequest, material_request_id)
    if not mr:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material request not found")
    return mr


def _build_items(items_in: Iterable[MaterialRequestItemIn]) -> list[MaterialRequestItem]:
    items = []
    for item_in in items_in:
        total_price = None
        if item_in.unit_price is not None:
            total_price = _money(item_in.unit_price * item_in.quantity)
        items.append(
            MaterialRequestItem(
                item_code=item_in.item_code,
                description=item_in.description,
                uom=item_in.uom,
                quantity=item_in.quantity,
                quantity_served=Decimal("0"),
                unit_price=item_in.unit_price,
                total_price=total_price,
                remarks=item_in.remarks,
            )
        )
    return items


def compute_total(items: Iterable[MaterialRequestItem], *, freight: Decimal, discount: Decimal) -> Decimal:
    subtotal = sum((Decimal(item.total_price or 0) for item in items), Decimal("0"))
    return _money(subtotal + Decimal(freight or 0) - Decimal(discount or 0))


def _validate_approver(db: Session, user_id: Optional[int], label: str) -> None:
    if user_id is None:
        return
    approver = db.get(User, user_id)
    if not approver or not approver.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} approver")


def default_approvers(db: Session, department_id: Optional[int]) -> tuple[Optional[int], Optional[int]]:
    """Active department approvers as ``(recommending, final)`` user ids."""
    if department_id is None:
        return None, None
    rows = (
        db.query(DepartmentApprover)
        .filter(DepartmentApprover.department_id == department_id, DepartmentApprover.is_active.is_(True))
        .order_by(DepartmentApprover.id.asc())
        .all()
    )
    rec = next((row.employee_id for row in rows if row.approver_type == ApproverType.RECOMMENDING), None)
    final = next((row.employee_id for row in rows if row.approver_type == ApproverType.FINAL), None)
    return rec, final


def create_material_request(db: Session, *, owner: User, payload: MaterialRequestCreate) -> MaterialRequest:
    require_business_unit_access(owner, payload.business_unit_id)

    rec_approver_id = payload.rec_approver_id
    final_approver_id = payload.final_approver_id
    if rec_approver_id is None and final_approver_id is None:
        rec_approver_id, final_approver_id = default_approvers(db, payload.department_id or owner.department_id)
    _validate_approver(db, rec_approver_id, "recommending")
    _validate_approver(db, final_approver_id, "final")

    items = _build_items(payload.items)
    mr = MaterialRequest(
        doc_no=next_material_request_number(db, series=payload.series, on=payload.date_prepared),
        series=payload.series.upper(),
        type=payload.type,
        status=MRStatus.DRAFT,
        date_prepared=payload.date_prepared,
        date_required=payload.date_required,
        business_unit_id=payload.business_unit_id,
        department_id=payload.department_id or owner.department_id,
        charge_to=payload.charge_to,
        purpose=payload.purpose,
        remarks=payload.remarks,
        deliver_to=payload.deliver_to,
        freight=payload.freight,
        discount=payload.discount,
        total=compute_total(items, freight=payload.freight, discount=payload.discount),
        requested_by_id=owner.id,
        rec_approver_id=rec_approver_id,
        final_approver_id=final_approver_id,
        items=items,
    )
    db.add(mr)
    db.flush()

    record_transition("material_request", mr.status)
    log_activity(
        db,
        actor_user_id=owner.id,
        activity_type="MR_CREATED",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} created",
        payload={"material_request_id": mr.id, "total": str(mr.total)},
    )
    return mr


def _require_owner_or_editor(mr: MaterialRequest, actor: User) -> None:
    if mr.requested_by_id == actor.id:
        return
    if not rbac.user_has_any_role(actor, EDITOR_ROLES):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorised to modify this request")
    require_business_unit_access(actor, mr.business_unit_id)


def update_material_request(
    db: Session,
    *,
    mr: MaterialRequest,
    actor: User,
    payload: MaterialRequestUpdate,
) -> MaterialRequest:
    _require_owner_or_editor(mr, actor)
    if mr.status not in EDITABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only draft or for-edit requests can be updated",
        )

    data = payload.model_dump(exclude_unset=True, exclude={"items"})
    for key, value in data.items():
        setattr(mr, key, value)
    if mr.date_required < mr.date_prepared:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date_required cannot be before date_prepared")
    _validate_approver(db, mr.rec_approver_id, "recommending")
    _validate_approver(db, mr.final_approver_id, "final")

    if payload.items is not None:
        mr.items.clear()
        db.flush()
        mr.items.extend(_build_items(payload.items))
    mr.total = compute_total(mr.items, freight=mr.freight, discount=mr.discount)
    mr.rec_approval_status = None
    mr.final_approval_status = None

    _transition(db, mr, MRStatus.DRAFT, actor=actor, activity_type="MR_UPDATED")
    return mr


def delete_material_request(db: Session, *, mr: MaterialRequest, actor: User) -> None:
    _require_owner_or_editor(mr, actor)
    if mr.status != MRStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft requests can be deleted")
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="MR_DELETED",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} deleted",
        payload={"doc_no": mr.doc_no},
    )
    db.delete(mr)
    db.flush()


def submit_for_approval(db: Session, *, mr: MaterialRequest, actor: User) -> MaterialRequest:
    if mr.requested_by_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can submit this request")
    if mr.status != MRStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft requests can be submitted")
    if mr.rec_approver_id is None and mr.final_approver_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one approver is required")
    if not mr.items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one item is required")

    if mr.rec_approver_id is not None:
        mr.rec_approval_status = ApprovalDecision.PENDING
        to_status = MRStatus.FOR_REC_APPROVAL
    else:
        to_status = MRStatus.FOR_FINAL_APPROVAL
    if mr.final_approver_id is not None:
        mr.final_approval_status = ApprovalDecision.PENDING

    _transition(db, mr, to_status, actor=actor, activity_type="MR_SUBMITTED")
    return mr


def _current_stage(mr: MaterialRequest, actor: User) -> ApproverType:
    if mr.status == MRStatus.FOR_REC_APPROVAL:
        if mr.rec_approver_id != actor.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not the recommending approver")
        return ApproverType.RECOMMENDING
    if mr.status == MRStatus.FOR_FINAL_APPROVAL:
        if mr.final_approver_id != actor.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not the final approver")
        return ApproverType.FINAL
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is not awaiting approval")


def approve_material_request(
    db: Session,
    *,
    mr: MaterialRequest,
    actor: User,
    comments: Optional[str] = None,
) -> MaterialRequest:
    require_business_unit_access(actor, mr.business_unit_id)
    stage = _current_stage(mr, actor)
    now = _now()

    if stage == ApproverType.RECOMMENDING:
        mr.rec_approval_status = ApprovalDecision.APPROVED
        mr.rec_approval_date = now
        mr.rec_approval_remarks = comments
        if mr.final_approver_id is not None:
            _transition(db, mr, MRStatus.FOR_FINAL_APPROVAL, actor=actor, activity_type="MR_REC_APPROVED")
            return mr
        mr.date_approved = now
        _transition(db, mr, MRStatus.FOR_SERVING, actor=actor, activity_type="MR_APPROVED")
        return mr

    if mr.rec_approver_id is not None and mr.rec_approval_status != ApprovalDecision.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Recommending approval is required before final approval",
        )
    mr.final_approval_status = ApprovalDecision.APPROVED
    mr.final_approval_date = now
    mr.final_approval_remarks = comments
    mr.date_approved = now
    _transition(db, mr, MRStatus.FOR_SERVING, actor=actor, activity_type="MR_APPROVED")
    return mr


def reject_material_request(
    db: Session,
    *,
    mr: MaterialRequest,
    actor: User,
    comments: Optional[str],
) -> MaterialRequest:
    if not comments or not comments.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comments are required when rejecting")
    require_business_unit_access(actor, mr.business_unit_id)
    stage = _current_stage(mr, actor)
    now = _now()
    if stage == ApproverType.RECOMMENDING:
        mr.rec_approval_status = ApprovalDecision.DISAPPROVED
        mr.rec_approval_date = now
        mr.rec_approval_remarks = comments
    else:
        mr.final_approval_status = ApprovalDecision.DISAPPROVED
        mr.final_approval_date = now
        mr.final_approval_remarks = comments
    _transition(
        db,
        mr,
        MRStatus.DISAPPROVED,
        actor=actor,
        activity_type="MR_DISAPPROVED",
        payload={"stage": stage.value, "comments": comments},
    )
    return mr


def pending_for_approver(query: Query, *, actor: User, business_unit_id: int) -> Query:
    require_business_unit_access(actor, business_unit_id)
    return (
        query.filter(
            MaterialRequest.business_unit_id == business_unit_id,
            or_(
                (MaterialRequest.status == MRStatus.FOR_REC_APPROVAL) & (MaterialRequest.rec_approver_id == actor.id),
                (MaterialRequest.status == MRStatus.FOR_FINAL_APPROVAL) & (MaterialRequest.final_approver_id == actor.id),
            ),
        )
        .order_by(MaterialRequest.date_required.asc(), MaterialRequest.id.asc())
    )


def _items_by_id(mr: MaterialRequest, item_ids: Iterable[int]) -> dict[int, MaterialRequestItem]:
    lookup = {item.id: item for item in mr.items}
    missing = [item_id for item_id in item_ids if item_id not in lookup]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Items not part of this request: {', '.join(str(i) for i in missing)}",
        )
    return lookup


def _require_serving_coordinator(mr: MaterialRequest, actor: User) -> None:
    rbac.require_roles(actor, SERVE_ROLES)
    require_business_unit_access(actor, mr.business_unit_id)
    if mr.status != MRStatus.FOR_SERVING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is not for serving")


def mark_for_edit(
    db: Session,
    *,
    mr: MaterialRequest,
    actor: User,
    reason: str,
    item_ids: list[int],
) -> MaterialRequest:
    _require_serving_coordinator(mr, actor)
    lookup = _items_by_id(mr, item_ids)

    full_reason = reason.strip()
    if item_ids:
        listed = "\n".join(f"- {lookup[item_id].description}" for item_id in item_ids)
        full_reason = f"{full_reason}\n\nItems to edit:\n{listed}"

    mr.is_marked_for_edit = True
    mr.marked_for_edit_reason = full_reason
    mr.marked_for_edit_at = _now()
    mr.marked_for_edit_by_id = actor.id
    mr.edit_completed_at = None
    db.add(mr)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="MR_MARKED_FOR_EDIT",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} marked for edit",
        payload={"material_request_id": mr.id, "item_ids": item_ids},
    )
    return mr


def complete_edit(
    db: Session,
    *,
    mr: MaterialRequest,
    actor: User,
    descriptions: dict[int, str],
) -> MaterialRequest:
    if mr.requested_by_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can complete the edit")
    if not mr.edit_pending:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is not awaiting an edit")

    lookup = _items_by_id(mr, descriptions.keys())
    for item_id, description in descriptions.items():
        if not description.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Item description cannot be empty")
        lookup[item_id].description = description.strip()
    mr.edit_completed_at = _now()
    db.add(mr)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="MR_EDIT_COMPLETED",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} edit completed",
        payload={"material_request_id": mr.id, "item_ids": sorted(descriptions.keys())},
    )
    return mr


def mark_served(db: Session, *, mr: MaterialRequest, actor: User, payload: MarkServedRequest) -> MaterialRequest:
    _require_serving_coordinator(mr, actor)
    if mr.edit_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request is marked for edit and cannot be served until the edit is completed",
        )

    lookup = _items_by_id(mr, payload.served_quantities.keys())
    for item_id, quantity in payload.served_quantities.items():
        item = lookup[item_id]
        if quantity <= 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Served quantity must be positive")
        served_total = Decimal(item.quantity_served or 0) + quantity
        if served_total > Decimal(item.quantity):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Served quantity exceeds requested quantity for item {item_id}",
            )
        item.quantity_served = served_total

    mr.served_at = _now()
    mr.served_by_id = actor.id
    if payload.notes is not None:
        mr.served_notes = payload.notes
    if payload.supplier_bp_code is not None:
        mr.supplier_bp_code = payload.supplier_bp_code
    if payload.supplier_name is not None:
        mr.supplier_name = payload.supplier_name
    if payload.purchase_order_number is not None:
        mr.purchase_order_number = payload.purchase_order_number

    served = {str(item_id): str(qty) for item_id, qty in payload.served_quantities.items()}
    if all(item.is_fully_served for item in mr.items):
        _transition(
            db, mr, MRStatus.FOR_POSTING, actor=actor, activity_type="MR_SERVED", payload={"served": served}
        )
        return mr

    db.add(mr)
    db.flush()
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="MR_PARTIALLY_SERVED",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} partially served",
        payload={"material_request_id": mr.id, "served": served},
    )
    return mr


def mark_posted(db: Session, *, mr: MaterialRequest, actor: User) -> MaterialRequest:
    rbac.require_roles(actor, POST_ROLES)
    require_business_unit_access(actor, mr.business_unit_id)
    if mr.status != MRStatus.FOR_POSTING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is not for posting")
    now = _now()
    mr.date_posted = now
    mr.processed_by_id = actor.id
    mr.processed_at = now
    _transition(db, mr, MRStatus.POSTED, actor=actor, activity_type="MR_POSTED")
    return mr


def mark_received(db: Session, *, mr: MaterialRequest, actor: User) -> MaterialRequest:
    rbac.require_roles(actor, RECEIVE_ROLES)
    require_business_unit_access(actor, mr.business_unit_id)
    if mr.status != MRStatus.POSTED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only posted requests can be received")
    mr.date_received = _now()
    _transition(db, mr, MRStatus.RECEIVED, actor=actor, activity_type="MR_RECEIVED")
    return mr


def save_acknowledgement(db: Session, *, mr: MaterialRequest, actor: User, signature_data: str) -> MaterialRequest:
    if mr.requested_by_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can acknowledge")
    if mr.status not in DONE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only posted or received requests can be acknowledged",
        )
    mr.acknowledged_at = _now()
    mr.acknowledged_by_id = actor.id
    mr.signature_data = signature_data
    db.add(mr)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="MR_ACKNOWLEDGED",
        business_unit_id=mr.business_unit_id,
        message=f"Material request {mr.doc_no} acknowledged",
        payload={"material_request_id": mr.id},
    )
    return mr


QUEUE_STATUSES: dict[str, tuple[MRStatus, ...]] = {
    "to-serve": (MRStatus.FOR_SERVING,),
    "for-posting": (MRStatus.FOR_POSTING,),
    "done": DONE_STATUSES,
    "for-acknowledgement": (MRStatus.POSTED,),
}


def coordinator_queue(
    query: Query,
    *,
    queue: str,
    business_unit_id: int,
    search: Optional[str] = None,
) -> Query:
    statuses = QUEUE_STATUSES.get(queue)
    if statuses is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown queue")
    query = query.filter(
        MaterialRequest.business_unit_id == business_unit_id,
        MaterialRequest.status.in_(statuses),
    )
    if queue == "for-acknowledgement":
        query = query.filter(MaterialRequest.signature_data.is_(None))
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.join(User, MaterialRequest.requested_by_id == User.id).filter(
            or_(
                func.lower(MaterialRequest.doc_no).like(term),
                func.lower(func.coalesce(MaterialRequest.purpose, "")).like(term),
                func.lower(func.coalesce(MaterialRequest.charge_to, "")).like(term),
                func.lower(func.coalesce(MaterialRequest.supplier_name, "")).like(term),
                func.lower(User.full_name).like(term),
            )
        )
    if queue == "to-serve":
        return query.order_by(MaterialRequest.date_required.asc(), MaterialRequest.id.asc())
    if queue == "for-acknowledgement":
        return query.order_by(MaterialRequest.final_approval_date.desc(), MaterialRequest.id.asc())
    return query.order_by(MaterialRequest.updated_at.desc(), MaterialRequest.id.asc())
