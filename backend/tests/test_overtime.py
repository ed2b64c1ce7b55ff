from __future__ import annotations


def _submit_overtime(client, start="2026-03-02T18:00:00", end="2026-03-02T21:30:00"):
    response = client.post(
        "/api/overtime",
        json={"start_time": start, "end_time": end, "reason": "Quarter close"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_overtime_hours_and_approval_chain(org, as_user):
    overtime = _submit_overtime(as_user(org.employee))
    assert overtime["status"] == "PENDING_MANAGER"
    assert overtime["hours"] == 3.5

    resp = as_user(org.manager).post(f"/api/overtime/{overtime['id']}/approve", json={})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PENDING_HR"

    resp = as_user(org.hr).post(f"/api/overtime/{overtime['id']}/approve", json={"comments": "Noted"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "APPROVED"
    assert body["hr_comments"] == "Noted"


def test_overtime_end_must_follow_start(org, as_user):
    resp = as_user(org.employee).post(
        "/api/overtime",
        json={"start_time": "2026-03-02T18:00:00", "end_time": "2026-03-02T18:00:00", "reason": "Zero"},
    )
    assert resp.status_code == 422


def test_only_owner_can_cancel_overtime(org, as_user):
    overtime = _submit_overtime(as_user(org.employee))

    assert as_user(org.manager).post(f"/api/overtime/{overtime['id']}/cancel").status_code == 403
    resp = as_user(org.employee).post(f"/api/overtime/{overtime['id']}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    resp = as_user(org.manager).post(f"/api/overtime/{overtime['id']}/approve", json={})
    assert resp.status_code == 400


def test_branch_overtime_is_invisible_to_head_office_manager(org, as_user):
    overtime = _submit_overtime(as_user(org.branch_employee))

    resp = as_user(org.manager).get("/api/overtime/pending", params={"business_unit_id": org.branch.id})
    assert resp.status_code == 403

    queue = as_user(org.branch_manager).get("/api/overtime/pending", params={"business_unit_id": org.branch.id})
    assert queue.status_code == 200
    assert [row["id"] for row in queue.json()["items"]] == [overtime["id"]]


def test_overtime_history_and_cross_unit_manager(db, org, as_user):
    org.branch_employee.approver_id = org.manager.id
    db.commit()
    overtime = _submit_overtime(as_user(org.branch_employee))

    manager = as_user(org.manager)
    assert manager.get(f"/api/overtime/{overtime['id']}").status_code == 200
    resp = manager.post(f"/api/overtime/{overtime['id']}/reject", json={"comments": "Not budgeted"})
    assert resp.status_code == 200, resp.text

    history = manager.get("/api/overtime/history", params={"business_unit_id": org.hq.id}).json()
    assert [row["id"] for row in history["items"]] == [overtime["id"]]
    assert history["items"][0]["status"] == "REJECTED"

    assert as_user(org.other_manager).get(f"/api/overtime/{overtime['id']}").status_code == 403


def test_admin_names_the_business_unit_for_branch_overtime(org, as_user):
    overtime = _submit_overtime(as_user(org.branch_employee))

    admin = as_user(org.admin)
    assert admin.post(f"/api/overtime/{overtime['id']}/approve", json={}).status_code == 403
    resp = admin.post(
        f"/api/overtime/{overtime['id']}/approve",
        params={"business_unit_id": org.branch.id},
        json={},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PENDING_HR"
