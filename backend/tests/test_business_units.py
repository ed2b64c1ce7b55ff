from __future__ import annotations


def test_business_units_visible_to_caller(org, as_user):
    admin_units = as_user(org.admin).get("/api/business-units").json()
    assert sorted(unit["code"] for unit in admin_units) == ["BR", "HQ"]

    manager_units = as_user(org.manager).get("/api/business-units").json()
    assert [unit["code"] for unit in manager_units] == ["HQ"]


def test_only_admin_creates_business_units(org, as_user):
    resp = as_user(org.admin).post("/api/business-units", json={"code": "nw", "name": "North West"})
    assert resp.status_code == 201, resp.text
    assert resp.json()["code"] == "NW"

    duplicate = as_user(org.admin).post("/api/business-units", json={"code": "NW", "name": "Again"})
    assert duplicate.status_code == 409

    assert as_user(org.hr).post("/api/business-units", json={"code": "SE", "name": "South"}).status_code == 403


def test_global_roles_cross_business_units(org, as_user):
    for user in (org.admin, org.hr, org.acctg, org.purchaser):
        resp = as_user(user).get("/api/assets", params={"business_unit_id": org.branch.id})
        assert resp.status_code == 200, user.employee_id

    for user in (org.manager, org.stockroom, org.employee):
        resp = as_user(user).get("/api/assets", params={"business_unit_id": org.branch.id})
        assert resp.status_code == 403, user.employee_id
