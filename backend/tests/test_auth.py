from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from adminhub.core.security import create_access_token
from adminhub.db.session import get_db
from adminhub.main import app


@pytest.fixture()
def raw_client(db, org):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


def _auth(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


def test_bearer_token_resolves_user(raw_client, org):
    resp = raw_client.get("/api/me", headers=_auth(org.manager.id))
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["employee_id"] == "MANAGER"
    assert body["capabilities"]["approve_requests"] is True
    assert body["capabilities"]["run_depreciation"] is False
    assert [unit["code"] for unit in body["business_units"]] == ["HQ"]


def test_missing_or_bad_token_is_unauthorised(raw_client, org):
    assert raw_client.get("/api/me").status_code == 401
    assert raw_client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401
    assert raw_client.get("/api/me", headers=_auth(99999)).status_code == 401


def test_inactive_user_is_rejected(raw_client, db, org):
    org.employee.is_active = False
    db.commit()
    assert raw_client.get("/api/me", headers=_auth(org.employee.id)).status_code == 401


def test_secondary_roles_merge_capabilities(raw_client, db, org):
    org.stockroom.roles = ["STOCKROOM", "ACCTG"]
    db.commit()
    body = raw_client.get("/api/me", headers=_auth(org.stockroom.id)).json()
    assert body["capabilities"]["run_depreciation"] is True
    assert body["capabilities"]["receive_material_requests"] is True
    assert {unit["code"] for unit in body["business_units"]} == {"HQ", "BR"}
