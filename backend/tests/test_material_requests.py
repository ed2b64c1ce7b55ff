from __future__ import annotations

from decimal import Decimal


def _mr_payload(org, **overrides):
    payload = {
        "series": "mrs",
        "type": "ITEM",
        "date_prepared": "2026-02-10",
        "date_required": "2026-02-20",
        "business_unit_id": org.hq.id,
        "purpose": "Warehouse restock",
        "freight": "10",
        "discount": "5",
        "rec_approver_id": org.manager.id,
        "final_approver_id": org.other_manager.id,
        "items": [
            {"description": "Bond paper", "uom": "REAM", "quantity": "5", "unit_price": "10"},
            {"description": "Toner", "uom": "PC", "quantity": "2", "unit_price": "100"},
        ],
    }
    payload.update(overrides)
    return payload


def _create_mr(client, org, **overrides):
    response = client.post("/api/material-requests", json=_mr_payload(org, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


def _approved_mr(org, as_user):
    mr = _create_mr(as_user(org.employee), org)
    assert as_user(org.employee).post(f"/api/material-requests/{mr['id']}/submit").status_code == 200
    assert as_user(org.manager).post(f"/api/material-requests/{mr['id']}/approve", json={}).status_code == 200
    resp = as_user(org.other_manager).post(f"/api/material-requests/{mr['id']}/approve", json={})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_create_numbers_and_totals(org, as_user):
    first = _create_mr(as_user(org.employee), org)
    second = _create_mr(as_user(org.employee), org)

    assert first["doc_no"] == "MRS-26-00001"
    assert second["doc_no"] == "MRS-26-00002"
    assert first["status"] == "DRAFT"
    assert Decimal(first["total"]) == Decimal("255.00")
    assert first["department_id"] == org.ops.id


def test_required_date_cannot_precede_prepared_date(org, as_user):
    resp = as_user(org.employee).post(
        "/api/material-requests",
        json=_mr_payload(org, date_required="2026-02-01"),
    )
    assert resp.status_code == 422


def test_two_stage_approval_reaches_serving(org, as_user):
    mr = _create_mr(as_user(org.employee), org)

    resp = as_user(org.employee).post(f"/api/material-requests/{mr['id']}/submit")
    assert resp.json()["status"] == "FOR_REC_APPROVAL"
    assert resp.json()["rec_approval_status"] == "PENDING"

    resp = as_user(org.other_manager).post(f"/api/material-requests/{mr['id']}/approve", json={})
    assert resp.status_code == 403

    pending = as_user(org.manager).get("/api/material-requests/pending", params={"business_unit_id": org.hq.id})
    assert [row["id"] for row in pending.json()["items"]] == [mr["id"]]

    resp = as_user(org.manager).post(f"/api/material-requests/{mr['id']}/approve", json={"comments": "Go"})
    assert resp.json()["status"] == "FOR_FINAL_APPROVAL"
    assert resp.json()["rec_approval_status"] == "APPROVED"

    resp = as_user(org.other_manager).post(f"/api/material-requests/{mr['id']}/approve", json={})
    body = resp.json()
    assert body["status"] == "FOR_SERVING"
    assert body["final_approval_status"] == "APPROVED"
    assert body["date_approved"] is not None


def test_final_only_request_skips_recommending_stage(org, as_user):
    mr = _create_mr(as_user(org.employee), org, rec_approver_id=None)
    resp = as_user(org.employee).post(f"/api/material-requests/{mr['id']}/submit")
    assert resp.json()["status"] == "FOR_FINAL_APPROVAL"


def test_rejection_needs_comments(org, as_user):
    mr = _create_mr(as_user(org.employee), org)
    as_user(org.employee).post(f"/api/material-requests/{mr['id']}/submit")

    manager = as_user(org.manager)
    assert manager.post(f"/api/material-requests/{mr['id']}/reject", json={}).status_code == 422
    resp = manager.post(f"/api/material-requests/{mr['id']}/reject", json={"comments": "Over budget"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "DISAPPROVED"
    assert body["rec_approval_status"] == "DISAPPROVED"
    assert body["rec_approval_remarks"] == "Over budget"


def test_only_drafts_can_be_deleted(org, as_user):
    draft = _create_mr(as_user(org.employee), org)
    submitted = _create_mr(as_user(org.employee), org)
    as_user(org.employee).post(f"/api/material-requests/{submitted['id']}/submit")

    assert as_user(org.employee).delete(f"/api/material-requests/{submitted['id']}").status_code == 400
    assert as_user(org.employee).delete(f"/api/material-requests/{draft['id']}").status_code == 204
    assert as_user(org.employee).get(f"/api/material-requests/{draft['id']}").status_code == 404


def test_update_replaces_items_and_recomputes_total(org, as_user):
    mr = _create_mr(as_user(org.employee), org)
    resp = as_user(org.employee).put(
        f"/api/material-requests/{mr['id']}",
        json={"items": [{"description": "Stapler", "uom": "PC", "quantity": "1", "unit_price": "50"}]},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [item["description"] for item in body["items"]] == ["Stapler"]
    assert Decimal(body["total"]) == Decimal("55.00")


def test_update_rejects_explicit_nulls(org, as_user):
    mr = _create_mr(as_user(org.employee), org)
    employee = as_user(org.employee)
    for field in ("type", "date_prepared", "date_required", "freight", "discount"):
        resp = employee.put(f"/api/material-requests/{mr['id']}", json={field: None})
        assert resp.status_code == 422, (field, resp.text)

    unchanged = employee.get(f"/api/material-requests/{mr['id']}").json()
    assert unchanged["date_required"] == "2026-02-20"
    assert Decimal(unchanged["freight"]) == Decimal("10")

    # Nullable fields can still be cleared.
    resp = employee.put(f"/api/material-requests/{mr['id']}", json={"purpose": None})
    assert resp.status_code == 200, resp.text


def test_department_approvers_fill_in_defaults(org, as_user):
    manager = as_user(org.manager)
    for employee, approver_type in ((org.manager, "RECOMMENDING"), (org.other_manager, "FINAL")):
        resp = manager.post(
            "/api/department-approvers",
            json={"department_id": org.ops.id, "employee_id": employee.id, "approver_type": approver_type},
        )
        assert resp.status_code == 201, resp.text

    duplicate = manager.post(
        "/api/department-approvers",
        json={"department_id": org.ops.id, "employee_id": org.manager.id, "approver_type": "RECOMMENDING"},
    )
    assert duplicate.status_code == 409

    mr = _create_mr(as_user(org.employee), org, rec_approver_id=None, final_approver_id=None)
    assert mr["rec_approver_id"] == org.manager.id
    assert mr["final_approver_id"] == org.other_manager.id


def test_serving_edit_posting_and_receipt(org, as_user):
    mr = _approved_mr(org, as_user)
    paper, toner = sorted(mr["items"], key=lambda item: item["id"])

    purchaser = as_user(org.purchaser)
    resp = purchaser.post(
        f"/api/mrs-coordinator/{mr['id']}/mark-for-edit",
        json={"reason": "Specify brand", "item_ids": [toner["id"]]},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["is_marked_for_edit"] is True
    assert body["marked_for_edit_reason"] == "Specify brand\n\nItems to edit:\n- Toner"

    blocked = purchaser.post(
        f"/api/mrs-coordinator/{mr['id']}/serve",
        json={"served_quantities": {str(paper["id"]): "5"}},
    )
    assert blocked.status_code == 400

    resp = as_user(org.employee).post(
        f"/api/material-requests/{mr['id']}/complete-edit",
        json={"descriptions": {str(toner["id"]): "Toner, brand X"}},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["edit_completed_at"] is not None

    purchaser = as_user(org.purchaser)
    resp = purchaser.post(
        f"/api/mrs-coordinator/{mr['id']}/serve",
        json={"served_quantities": {str(paper["id"]): "3"}, "supplier_name": "Paper Co"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "FOR_SERVING"

    over = purchaser.post(
        f"/api/mrs-coordinator/{mr['id']}/serve",
        json={"served_quantities": {str(paper["id"]): "3"}},
    )
    assert over.status_code == 400

    resp = purchaser.post(
        f"/api/mrs-coordinator/{mr['id']}/serve",
        json={"served_quantities": {str(paper["id"]): "2", str(toner["id"]): "2"}},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "FOR_POSTING"
    assert body["supplier_name"] == "Paper Co"

    assert as_user(org.stockroom).post(f"/api/mrs-coordinator/{mr['id']}/post").status_code == 403
    resp = as_user(org.acctg).post(f"/api/mrs-coordinator/{mr['id']}/post")
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "POSTED"

    resp = as_user(org.stockroom).post(f"/api/mrs-coordinator/{mr['id']}/receive")
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "RECEIVED"

    resp = as_user(org.employee).post(
        f"/api/material-requests/{mr['id']}/acknowledge",
        json={"signature_data": "data:image/png;base64,AAAA"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["acknowledged_by_id"] == org.employee.id


def test_employee_cannot_serve(org, as_user):
    mr = _approved_mr(org, as_user)
    item = mr["items"][0]
    resp = as_user(org.employee).post(
        f"/api/mrs-coordinator/{mr['id']}/serve",
        json={"served_quantities": {str(item["id"]): "1"}},
    )
    assert resp.status_code == 403


def test_coordinator_queues(org, as_user):
    serving = _approved_mr(org, as_user)
    _create_mr(as_user(org.employee), org, purpose="Cleaning supplies")

    purchaser = as_user(org.purchaser)
    queue = purchaser.get("/api/mrs-coordinator/queues/to-serve", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in queue["items"]] == [serving["id"]]

    searched = purchaser.get(
        "/api/mrs-coordinator/queues/to-serve",
        params={"business_unit_id": org.hq.id, "search": "employee"},
    ).json()
    assert searched["total"] == 1

    missing = purchaser.get("/api/mrs-coordinator/queues/archive", params={"business_unit_id": org.hq.id})
    assert missing.status_code == 404

    assert as_user(org.employee).get(
        "/api/mrs-coordinator/queues/to-serve", params={"business_unit_id": org.hq.id}
    ).status_code == 403


def _posted_mr(org, as_user):
    mr = _approved_mr(org, as_user)
    served = {str(item["id"]): item["quantity"] for item in mr["items"]}
    resp = as_user(org.purchaser).post(f"/api/mrs-coordinator/{mr['id']}/serve", json={"served_quantities": served})
    assert resp.json()["status"] == "FOR_POSTING", resp.text
    resp = as_user(org.acctg).post(f"/api/mrs-coordinator/{mr['id']}/post")
    assert resp.json()["status"] == "POSTED", resp.text
    return resp.json()


def test_acknowledgement_queue_lists_unsigned_posted_requests(org, as_user):
    posted = _posted_mr(org, as_user)
    _approved_mr(org, as_user)

    params = {"business_unit_id": org.hq.id}
    queue = as_user(org.purchaser).get("/api/mrs-coordinator/queues/for-acknowledgement", params=params).json()
    assert [row["id"] for row in queue["items"]] == [posted["id"]]

    resp = as_user(org.employee).post(
        f"/api/material-requests/{posted['id']}/acknowledge",
        json={"signature_data": "data:image/png;base64,AAAA"},
    )
    assert resp.status_code == 200, resp.text

    queue = as_user(org.purchaser).get("/api/mrs-coordinator/queues/for-acknowledgement", params=params).json()
    assert queue["total"] == 0

    other_unit = as_user(org.purchaser).get(
        "/api/mrs-coordinator/queues/for-acknowledgement", params={"business_unit_id": org.branch.id}
    ).json()
    assert other_unit["total"] == 0
