from __future__ import annotations

from datetime import date
from decimal import Decimal

from adminhub.models.audit import ActivityLog
from adminhub.models.leave import LeaveBalance


def _create_leave_type(client, name="Vacation"):
    response = client.post("/api/leave/types", json={"name": name, "default_allocated_days": 15})
    assert response.status_code == 201, response.text
    return response.json()


def _set_balance(client, user_id, leave_type_id, allocated=10, year=2026):
    response = client.put(
        "/api/leave/balances",
        json={"user_id": user_id, "leave_type_id": leave_type_id, "year": year, "allocated_days": allocated},
    )
    assert response.status_code == 200, response.text
    return response.json()


def _submit_leave(client, leave_type_id, start="2026-03-02", end="2026-03-04", session="FULL_DAY"):
    response = client.post(
        "/api/leave",
        json={
            "leave_type_id": leave_type_id,
            "start_date": start,
            "end_date": end,
            "session": session,
            "reason": "Family trip",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_leave_goes_through_manager_then_hr(db, org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    _set_balance(as_user(org.hr), org.employee.id, leave_type["id"])

    leave = _submit_leave(as_user(org.employee), leave_type["id"])
    assert leave["status"] == "PENDING_MANAGER"
    assert leave["days"] == 3

    resp = as_user(org.manager).post(f"/api/leave/{leave['id']}/approve", json={"comments": "ok"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "PENDING_HR"
    assert body["manager_action_by"] == org.manager.id
    assert body["manager_comments"] == "ok"

    resp = as_user(org.hr).post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "APPROVED"
    assert body["hr_action_by"] == org.hr.id

    balance = db.query(LeaveBalance).filter(LeaveBalance.user_id == org.employee.id).one()
    db.refresh(balance)
    assert Decimal(balance.used_days) == Decimal("3")

    types = {row.type for row in db.query(ActivityLog).all()}
    assert {"LEAVE_REQUESTED", "LEAVE_MANAGER_APPROVED", "LEAVE_APPROVED"} <= types


def test_hr_cannot_skip_manager_step(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    resp = as_user(org.hr).post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 403
    assert as_user(org.employee).get(f"/api/leave/{leave['id']}").json()["status"] == "PENDING_MANAGER"


def test_only_direct_approver_can_act_at_manager_step(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    resp = as_user(org.other_manager).post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 403

    resp = as_user(org.branch_manager).post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 403


def test_admin_can_act_at_both_steps(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    admin = as_user(org.admin)
    assert admin.post(f"/api/leave/{leave['id']}/approve", json={}).json()["status"] == "PENDING_HR"
    assert admin.post(f"/api/leave/{leave['id']}/approve", json={}).json()["status"] == "APPROVED"


def test_reject_requires_comments_and_is_final(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    manager = as_user(org.manager)
    assert manager.post(f"/api/leave/{leave['id']}/reject", json={}).status_code == 422
    assert manager.post(f"/api/leave/{leave['id']}/reject", json={"comments": ""}).status_code == 422

    resp = manager.post(f"/api/leave/{leave['id']}/reject", json={"comments": "Peak season"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "REJECTED"
    assert body["manager_comments"] == "Peak season"
    assert body["hr_action_by"] is None

    resp = as_user(org.hr).post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 400

    resp = as_user(org.employee).post(f"/api/leave/{leave['id']}/cancel")
    assert resp.status_code == 400


def test_hr_rejection_keeps_manager_action(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])
    as_user(org.manager).post(f"/api/leave/{leave['id']}/approve", json={})

    resp = as_user(org.hr).post(f"/api/leave/{leave['id']}/reject", json={"comments": "No balance"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "REJECTED"
    assert body["manager_action_by"] == org.manager.id
    assert body["hr_comments"] == "No balance"


def test_owner_can_edit_and_cancel_before_manager_action(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    employee = as_user(org.employee)
    resp = employee.put(
        f"/api/leave/{leave['id']}",
        json={
            "leave_type_id": leave_type["id"],
            "start_date": "2026-03-02",
            "end_date": "2026-03-02",
            "session": "MORNING",
            "reason": "Half day",
        },
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["days"] == 0.5

    resp = as_user(org.manager).put(
        f"/api/leave/{leave['id']}",
        json={
            "leave_type_id": leave_type["id"],
            "start_date": "2026-03-02",
            "end_date": "2026-03-02",
            "reason": "Not mine",
        },
    )
    assert resp.status_code == 403

    resp = as_user(org.employee).post(f"/api/leave/{leave['id']}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"


def test_leave_cannot_be_edited_after_manager_approval(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])
    as_user(org.manager).post(f"/api/leave/{leave['id']}/approve", json={})

    resp = as_user(org.employee).put(
        f"/api/leave/{leave['id']}",
        json={
            "leave_type_id": leave_type["id"],
            "start_date": "2026-03-02",
            "end_date": "2026-03-03",
            "reason": "Changed",
        },
    )
    assert resp.status_code == 400


def test_end_date_before_start_is_rejected(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    resp = as_user(org.employee).post(
        "/api/leave",
        json={
            "leave_type_id": leave_type["id"],
            "start_date": "2026-03-05",
            "end_date": "2026-03-04",
            "reason": "Backwards",
        },
    )
    assert resp.status_code == 422


def test_pending_queue_per_role(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    first = _submit_leave(as_user(org.employee), leave_type["id"])
    second = _submit_leave(as_user(org.employee), leave_type["id"], start="2026-04-01", end="2026-04-01")
    as_user(org.manager).post(f"/api/leave/{second['id']}/approve", json={})

    manager_queue = as_user(org.manager).get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in manager_queue["items"]] == [first["id"]]

    other_queue = as_user(org.other_manager).get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert other_queue["total"] == 0

    hr_queue = as_user(org.hr).get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in hr_queue["items"]] == [second["id"]]

    admin_queue = as_user(org.admin).get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert admin_queue["total"] == 2

    resp = as_user(org.employee).get("/api/leave/pending", params={"business_unit_id": org.hq.id})
    assert resp.status_code == 403


def test_my_leave_is_paginated(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    for day in range(1, 4):
        _submit_leave(as_user(org.employee), leave_type["id"], start=f"2026-05-0{day}", end=f"2026-05-0{day}")

    page = as_user(org.employee).get("/api/leave/my", params={"page": 1, "page_size": 2}).json()
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert page["has_more"] is True
    assert page["next_page"] == 2
    assert page["total_pages"] == 2


def test_leave_type_in_use_cannot_be_deleted(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    _submit_leave(as_user(org.employee), leave_type["id"])

    assert as_user(org.hr).delete(f"/api/leave/types/{leave_type['id']}").status_code == 409
    assert as_user(org.hr).post("/api/leave/types", json={"name": "Vacation"}).status_code == 409
    assert as_user(org.employee).post("/api/leave/types", json={"name": "Sick"}).status_code == 403


def test_balance_listing_for_self_and_hr(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    _set_balance(as_user(org.hr), org.employee.id, leave_type["id"], allocated=12, year=date.today().year)

    own = as_user(org.employee).get("/api/leave/balances").json()
    assert len(own) == 1
    assert Decimal(str(own[0]["remaining_days"])) == Decimal("12")

    assert as_user(org.employee).get("/api/leave/balances", params={"user_id": org.hr.id}).status_code == 403


def test_manager_approves_direct_report_in_another_business_unit(db, org, as_user):
    org.branch_employee.approver_id = org.manager.id
    db.commit()

    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.branch_employee), leave_type["id"])

    manager = as_user(org.manager)
    queue = manager.get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in queue["items"]] == [leave["id"]]
    assert manager.get(f"/api/leave/{leave['id']}").status_code == 200

    resp = manager.post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PENDING_HR"

    # The branch's own manager is no longer the approver.
    resp = as_user(org.branch_manager).post(f"/api/leave/{leave['id']}/reject", json={"comments": "No"})
    assert resp.status_code == 403

    hr = as_user(org.hr)
    queue = hr.get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in queue["items"]] == [leave["id"]]
    resp = hr.post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "APPROVED"


def test_admin_acts_only_within_the_business_unit_in_scope(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.branch_employee), leave_type["id"])

    admin = as_user(org.admin)
    resp = admin.post(f"/api/leave/{leave['id']}/approve", json={})
    assert resp.status_code == 403

    resp = admin.post(f"/api/leave/{leave['id']}/approve", params={"business_unit_id": org.hq.id}, json={})
    assert resp.status_code == 403

    hq_queue = admin.get("/api/leave/pending", params={"business_unit_id": org.hq.id}).json()
    assert hq_queue["total"] == 0
    branch_queue = admin.get("/api/leave/pending", params={"business_unit_id": org.branch.id}).json()
    assert [row["id"] for row in branch_queue["items"]] == [leave["id"]]

    resp = admin.post(f"/api/leave/{leave['id']}/approve", params={"business_unit_id": org.branch.id}, json={})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PENDING_HR"


def test_approval_history_lists_decided_requests(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    approved = _submit_leave(as_user(org.employee), leave_type["id"])
    rejected = _submit_leave(as_user(org.employee), leave_type["id"], start="2026-04-01", end="2026-04-01")
    waiting = _submit_leave(as_user(org.employee), leave_type["id"], start="2026-05-04", end="2026-05-04")

    manager = as_user(org.manager)
    manager.post(f"/api/leave/{approved['id']}/approve", json={})
    manager.post(f"/api/leave/{waiting['id']}/approve", json={})
    as_user(org.hr).post(f"/api/leave/{approved['id']}/approve", json={})
    as_user(org.manager).post(f"/api/leave/{rejected['id']}/reject", json={"comments": "Busy week"})

    params = {"business_unit_id": org.hq.id}
    history = as_user(org.manager).get("/api/leave/history", params=params).json()
    assert {row["id"] for row in history["items"]} == {approved["id"], rejected["id"]}

    only_rejected = as_user(org.manager).get("/api/leave/history", params={**params, "status": "REJECTED"}).json()
    assert [row["id"] for row in only_rejected["items"]] == [rejected["id"]]

    hr_history = as_user(org.hr).get("/api/leave/history", params=params).json()
    assert [row["id"] for row in hr_history["items"]] == [approved["id"]]

    pending_filter = as_user(org.manager).get("/api/leave/history", params={**params, "status": "PENDING_HR"})
    assert pending_filter.status_code == 400
    assert as_user(org.employee).get("/api/leave/history", params=params).status_code == 403


def test_request_detail_is_limited_to_owner_and_approvers(org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    leave = _submit_leave(as_user(org.employee), leave_type["id"])

    assert as_user(org.employee).get(f"/api/leave/{leave['id']}").status_code == 200
    assert as_user(org.manager).get(f"/api/leave/{leave['id']}").status_code == 200
    assert as_user(org.hr).get(f"/api/leave/{leave['id']}").status_code == 200
    assert as_user(org.branch_employee).get(f"/api/leave/{leave['id']}").status_code == 403
    assert as_user(org.branch_manager).get(f"/api/leave/{leave['id']}").status_code == 403


def test_deduction_uses_the_year_the_leave_starts(db, org, as_user):
    leave_type = _create_leave_type(as_user(org.hr))
    _set_balance(as_user(org.hr), org.employee.id, leave_type["id"], allocated=10, year=2026)
    _set_balance(as_user(org.hr), org.employee.id, leave_type["id"], allocated=10, year=2027)

    leave = _submit_leave(as_user(org.employee), leave_type["id"], start="2027-01-04", end="2027-01-05")
    as_user(org.manager).post(f"/api/leave/{leave['id']}/approve", json={})
    as_user(org.hr).post(f"/api/leave/{leave['id']}/approve", json={})

    used = {
        row.year: Decimal(row.used_days)
        for row in db.query(LeaveBalance).filter(LeaveBalance.user_id == org.employee.id).all()
    }
    assert used == {2026: Decimal("0"), 2027: Decimal("2")}


def test_bulk_balance_update_is_scoped_to_business_unit(org, as_user):
    hr = as_user(org.hr)
    leave_type = _create_leave_type(hr)
    first = _set_balance(hr, org.employee.id, leave_type["id"], allocated=10)
    second = _set_balance(hr, org.manager.id, leave_type["id"], allocated=10)
    branch = _set_balance(hr, org.branch_employee.id, leave_type["id"], allocated=10)

    resp = hr.post(
        "/api/leave/balances/bulk",
        json={
            "business_unit_id": org.hq.id,
            "balances": [{"id": first["id"], "allocated_days": 12}, {"id": second["id"], "allocated_days": 8}],
        },
    )
    assert resp.status_code == 200, resp.text
    assert {row["id"]: Decimal(str(row["allocated_days"])) for row in resp.json()} == {
        first["id"]: Decimal("12"),
        second["id"]: Decimal("8"),
    }

    foreign = hr.post(
        "/api/leave/balances/bulk",
        json={"business_unit_id": org.hq.id, "balances": [{"id": branch["id"], "allocated_days": 1}]},
    )
    assert foreign.status_code == 404

    negative = hr.post(
        "/api/leave/balances/bulk",
        json={"business_unit_id": org.hq.id, "balances": [{"id": first["id"], "allocated_days": -1}]},
    )
    assert negative.status_code == 422

    forbidden = as_user(org.manager).post(
        "/api/leave/balances/bulk",
        json={"business_unit_id": org.hq.id, "balances": [{"id": first["id"], "allocated_days": 1}]},
    )
    assert forbidden.status_code == 403


def test_replenishment_carries_over_unused_days(db, org, as_user):
    hr = as_user(org.hr)
    vacation = hr.post(
        "/api/leave/types", json={"name": "Vacation", "default_allocated_days": 15, "carry_over": True}
    ).json()
    sick = hr.post("/api/leave/types", json={"name": "Sick", "default_allocated_days": 5}).json()
    assert vacation["carry_over"] is True
    assert sick["carry_over"] is False

    hr.put(
        "/api/leave/balances",
        json={
            "user_id": org.employee.id,
            "leave_type_id": vacation["id"],
            "year": 2026,
            "allocated_days": 30,
            "used_days": 5,
        },
    )
    _set_balance(hr, org.manager.id, vacation["id"], allocated=10, year=2026)
    _set_balance(hr, org.employee.id, sick["id"], allocated=5, year=2026)

    preview = hr.get(
        "/api/leave/balances/replenishment-preview",
        params={"business_unit_id": org.hq.id, "from_year": 2026},
    ).json()
    assert preview["target_year"] == 2027
    assert preview["total_users"] == 8
    assert preview["guideline_days"] == 20
    carry = {row["user_id"]: row for row in preview["carry_over"]}
    assert set(carry) == {org.employee.id, org.manager.id}
    assert Decimal(str(carry[org.employee.id]["remaining_days"])) == Decimal("25")
    assert Decimal(str(carry[org.employee.id]["excess_days"])) == Decimal("5")
    assert carry[org.employee.id]["has_excess"] is True
    assert carry[org.manager.id]["has_excess"] is False

    body = {"business_unit_id": org.hq.id, "from_year": 2026, "to_year": 2027}
    unacknowledged = hr.post("/api/leave/balances/replenish", json=body)
    assert unacknowledged.status_code == 400
    assert len(unacknowledged.json()["detail"]["warnings"]) == 1

    resp = hr.post("/api/leave/balances/replenish", json={**body, "acknowledge_excess": True})
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"target_year": 2027, "users_count": 8, "created_count": 16, "carried_over_count": 2}

    allocated = {
        (row.user_id, row.leave_type_id): Decimal(row.allocated_days)
        for row in db.query(LeaveBalance).filter(LeaveBalance.year == 2027).all()
    }
    assert allocated[(org.employee.id, vacation["id"])] == Decimal("40")
    assert allocated[(org.manager.id, vacation["id"])] == Decimal("25")
    assert allocated[(org.employee.id, sick["id"])] == Decimal("5")
    assert allocated[(org.hr.id, vacation["id"])] == Decimal("15")
    assert not any(user_id == org.branch_employee.id for user_id, _ in allocated)

    again = hr.post("/api/leave/balances/replenish", json={**body, "acknowledge_excess": True})
    assert again.status_code == 409

    backwards = hr.post("/api/leave/balances/replenish", json={**body, "to_year": 2025})
    assert backwards.status_code == 422
    assert as_user(org.manager).post("/api/leave/balances/replenish", json=body).status_code == 403
