from __future__ import annotations


def test_healthz_checks_database(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "ok"}


def test_version_reports_environment(client):
    body = client.get("/version").json()
    assert body["version"]
    assert "environment" in body


def test_metrics_expose_http_and_workflow_series(org, as_user):
    as_user(org.employee).post(
        "/api/overtime",
        json={"start_time": "2026-03-02T18:00:00", "end_time": "2026-03-02T19:00:00", "reason": "Late"},
    )
    resp = as_user(org.admin).get("/metrics")
    assert resp.status_code == 200
    assert "adminhub_workflow_transitions_total" in resp.text


def test_request_id_header_is_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-Id": "abc-123"})
    assert resp.headers.get("X-Request-Id") == "abc-123"
