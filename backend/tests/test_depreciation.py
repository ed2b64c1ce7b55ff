from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from adminhub.models.asset import Asset
from adminhub.models.depreciation import DepreciationExecution
from adminhub.models.enums import DepreciationMethod
from adminhub.scripts import run_depreciation
from adminhub.services import depreciation as depreciation_service
from adminhub.services import depreciation_math as dm
from helpers import create_asset, create_category


@pytest.fixture()
def on_day(monkeypatch):
    def _set(day: date) -> None:
        monkeypatch.setattr(depreciation_service, "_today", lambda: day)

    return _set


def _run(client, org, **extra):
    return client.post("/api/depreciation/run", json={"business_unit_id": org.hq.id, **extra})


def test_straight_line_spreads_depreciable_base():
    assert dm.straight_line(Decimal("12000"), Decimal("0"), 12) == Decimal("1000.00")
    assert dm.straight_line(Decimal("1000"), Decimal("100"), 7) == Decimal("128.57")
    assert dm.straight_line(Decimal("1000"), Decimal("0"), 0) == Decimal("0")


def test_declining_balance_uses_current_book_value():
    assert dm.declining_balance(Decimal("10000"), Decimal("0.2")) == Decimal("166.67")
    assert dm.declining_balance(Decimal("10000"), None) == Decimal("0")


def test_sum_of_years_digits_by_year():
    assert dm.sum_of_years_digits(Decimal("15000"), Decimal("0"), 5, 1) == Decimal("416.67")
    assert dm.sum_of_years_digits(Decimal("15000"), Decimal("0"), 5, 5) == Decimal("83.33")
    assert dm.sum_of_years_digits(Decimal("15000"), Decimal("0"), 5, 6) == Decimal("0")


def test_units_of_production():
    per_unit = dm.rate_per_unit(Decimal("10000"), Decimal("0"), 20000)
    assert per_unit == Decimal("0.5")
    assert dm.units_of_production(per_unit, 150) == Decimal("75.00")
    assert dm.rate_per_unit(Decimal("10000"), Decimal("0"), None) == Decimal("0")


def test_cap_to_salvage_and_month_arithmetic():
    assert dm.cap_to_salvage(Decimal("100"), Decimal("1050"), Decimal("1000")) == Decimal("50")
    assert dm.cap_to_salvage(Decimal("100"), Decimal("1000"), Decimal("1000")) == Decimal("0")
    assert dm.add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert dm.add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)
    assert dm.months_between(date(2025, 11, 30), date(2026, 2, 28)) == 3


@pytest.mark.parametrize(
    "day, allowed",
    [
        (date(2026, 3, 30), True),
        (date(2026, 3, 31), True),
        (date(2026, 2, 28), True),
        (date(2026, 4, 30), True),
        (date(2026, 3, 15), False),
        (date(2026, 3, 29), False),
    ],
)
def test_allowed_days(day, allowed):
    assert depreciation_service.is_allowed_day(day) is allowed


def test_next_allowed_date():
    assert depreciation_service.next_allowed_date(date(2026, 3, 15)) == date(2026, 3, 30)
    assert depreciation_service.next_allowed_date(date(2026, 2, 10)) == date(2026, 2, 28)
    assert depreciation_service.next_allowed_date(date(2026, 3, 31)) == date(2026, 3, 31)


def test_calendar_override_is_admin_only(org):
    blocked = depreciation_service.check_calendar(org.acctg, today=date(2026, 3, 15), override=True)
    assert blocked.can_calculate is False
    assert "2026-03-30" in blocked.message

    allowed = depreciation_service.check_calendar(org.admin, today=date(2026, 3, 15), override=True)
    assert allowed.can_calculate is True
    assert allowed.is_allowed_day is False


def test_month_end_run_posts_depreciation(org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    asset = create_asset(admin, org.hq.id, category["id"], "LAP-001")

    on_day(date(2026, 2, 28))
    preview = as_user(org.acctg).get("/api/depreciation/preview", params={"business_unit_id": org.hq.id}).json()
    assert preview["can_calculate"] is True
    assert preview["total_assets"] == 1
    assert Decimal(preview["total_estimated_amount"]) == Decimal("1000.00")

    resp = _run(as_user(org.acctg), org)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["processed_count"] == 1
    assert body["failed_count"] == 0
    assert Decimal(body["total_amount"]) == Decimal("1000.00")
    assert body["execution"]["status"] == "COMPLETED"
    assert body["execution"]["override_used"] is False

    detail = as_user(org.acctg).get(f"/api/assets/{asset['id']}").json()
    assert Decimal(detail["current_book_value"]) == Decimal("11000.00")
    assert Decimal(detail["accumulated_depreciation"]) == Decimal("1000.00")
    assert detail["last_depreciation_date"] == "2026-02-28"
    assert detail["next_depreciation_date"] == "2026-03-28"

    execution = as_user(org.acctg).get(f"/api/depreciation/executions/{body['execution']['id']}").json()
    assert len(execution["postings"]) == 1
    posting = execution["postings"][0]
    assert Decimal(posting["book_value_start"]) == Decimal("12000.00")
    assert Decimal(posting["book_value_end"]) == Decimal("11000.00")

    history = as_user(org.acctg).get(f"/api/assets/{asset['id']}/history").json()
    assert history[-1]["action"] == "DEPRECIATED"

    # Already posted for this period.
    again = _run(as_user(org.acctg), org).json()
    assert again["processed_count"] == 0


def test_mid_month_run_is_blocked_without_admin_override(org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    create_asset(admin, org.hq.id, category["id"], "LAP-001")

    on_day(date(2026, 3, 15))
    resp = _run(as_user(org.acctg), org)
    assert resp.status_code == 400
    assert "2026-03-30" in resp.json()["detail"]

    resp = _run(as_user(org.acctg), org, override=True)
    assert resp.status_code == 403

    resp = _run(as_user(org.admin), org, override=True)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["processed_count"] == 1
    assert body["execution"]["override_used"] is True


def test_failures_are_isolated_per_asset(org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    create_asset(admin, org.hq.id, category["id"], "LAP-001")
    meter = create_asset(
        admin,
        org.hq.id,
        category["id"],
        "PRN-001",
        depreciation_method="UNITS_OF_PRODUCTION",
        purchase_price="10000",
        total_expected_units=1000,
        useful_life_years=0,
    )

    on_day(date(2026, 2, 28))
    body = _run(as_user(org.acctg), org).json()
    assert body["processed_count"] == 1
    assert body["failed_count"] == 1
    assert body["execution"]["status"] == "COMPLETED"
    assert body["errors"][0]["id"] == meter["id"]
    assert body["errors"][0]["label"] == "PRN-001"

    body = _run(as_user(org.acctg), org, units_used={str(meter["id"]): 50}).json()
    assert body["processed_count"] == 1
    assert Decimal(body["total_amount"]) == Decimal("500.00")


def test_book_value_never_drops_below_salvage(db, org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    asset = create_asset(
        admin,
        org.hq.id,
        category["id"],
        "CAM-001",
        purchase_price="1000",
        salvage_value="900",
        useful_life_years=0,
        useful_life_months=1,
    )

    on_day(date(2026, 2, 28))
    body = _run(as_user(org.acctg), org).json()
    assert Decimal(body["total_amount"]) == Decimal("100.00")

    row = db.get(Asset, asset["id"])
    db.refresh(row)
    assert row.is_fully_depreciated is True
    assert Decimal(row.current_book_value) == Decimal("900.00")

    on_day(date(2026, 3, 31))
    preview = as_user(org.acctg).get("/api/depreciation/preview", params={"business_unit_id": org.hq.id}).json()
    assert preview["total_assets"] == 0
    assert preview["can_calculate"] is False


def test_declining_balance_recomputes_monthly_amount(db, org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    asset = create_asset(
        admin,
        org.hq.id,
        category["id"],
        "TRK-001",
        depreciation_method="DECLINING_BALANCE",
        depreciation_rate="0.2",
    )
    assert Decimal(asset["monthly_depreciation"]) == Decimal("200.00")

    on_day(date(2026, 2, 28))
    _run(as_user(org.acctg), org)

    row = db.get(Asset, asset["id"])
    db.refresh(row)
    assert row.depreciation_method == DepreciationMethod.DECLINING_BALANCE
    assert Decimal(row.current_book_value) == Decimal("11800.00")
    assert Decimal(row.monthly_depreciation) == Decimal("196.67")


def test_sum_of_years_digits_reaches_salvage_at_end_of_life(db, org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    asset = create_asset(
        admin,
        org.hq.id,
        category["id"],
        "SRV-001",
        depreciation_method="SUM_OF_YEARS_DIGITS",
        purchase_price="1000",
    )

    amounts = []
    for month in range(1, 13):
        on_day(dm.add_months(date(2026, 1, 31), month))
        body = _run(as_user(org.acctg), org).json()
        assert body["processed_count"] == 1, (month, body)
        amounts.append(Decimal(body["total_amount"]))

    assert amounts[:11] == [Decimal("83.33")] * 11
    # The final month absorbs the rounding remainder.
    assert amounts[11] == Decimal("83.37")

    row = db.get(Asset, asset["id"])
    db.refresh(row)
    assert Decimal(row.current_book_value) == Decimal("0.00")
    assert Decimal(row.accumulated_depreciation) == Decimal("1000.00")
    assert row.is_fully_depreciated is True

    on_day(date(2027, 2, 28))
    preview = as_user(org.acctg).get("/api/depreciation/preview", params={"business_unit_id": org.hq.id}).json()
    assert preview["total_assets"] == 0


def test_sum_of_years_digits_steps_down_each_life_year(db, org, as_user, on_day):
    admin = as_user(org.admin)
    category = create_category(admin, org.hq.id)
    asset = create_asset(
        admin,
        org.hq.id,
        category["id"],
        "SRV-002",
        depreciation_method="SUM_OF_YEARS_DIGITS",
        purchase_price="3600",
        useful_life_years=2,
    )

    amounts = []
    for month in range(1, 25):
        on_day(dm.add_months(date(2026, 1, 31), month))
        amounts.append(Decimal(_run(as_user(org.acctg), org).json()["total_amount"]))

    # 2/3 of the base in the first year, 1/3 in the second.
    assert amounts[0] == amounts[11] == Decimal("200.00")
    assert amounts[12] == amounts[22] == Decimal("100.00")
    assert sum(amounts) == Decimal("3600.00")

    row = db.get(Asset, asset["id"])
    db.refresh(row)
    assert row.is_fully_depreciated is True


def test_depreciation_requires_accounting_role_and_unit_access(org, as_user, on_day):
    on_day(date(2026, 2, 28))
    assert _run(as_user(org.manager), org).status_code == 403
    assert as_user(org.employee).get(
        "/api/depreciation/executions", params={"business_unit_id": org.hq.id}
    ).status_code == 403


def test_scheduled_run_covers_every_business_unit(db, org):
    assert depreciation_service.run_scheduled(db, today=date(2026, 3, 15)) == []

    results = depreciation_service.run_scheduled(db, today=date(2026, 3, 31))
    db.commit()
    assert [r.execution.business_unit_id for r in results] == [org.hq.id, org.branch.id]
    assert all(r.execution.trigger == "SCHEDULED" for r in results)
    assert all(r.execution.executed_by_id is None for r in results)


def test_run_depreciation_script_commits_scheduled_executions(db, org, capsys):
    assert run_depreciation.main(["--date", "2026-03-31"], session_factory=lambda: db) == 0

    assert "2 business unit(s)" in capsys.readouterr().out
    assert db.query(DepreciationExecution).count() == 2


def test_run_depreciation_script_skips_mid_month(db, org):
    assert run_depreciation.main(["--date", "2026-03-15"], session_factory=lambda: db) == 0
    assert db.query(DepreciationExecution).count() == 0


def test_execution_history_is_paginated(org, as_user, on_day):
    on_day(date(2026, 2, 28))
    for _ in range(3):
        _run(as_user(org.acctg), org)

    page = as_user(org.acctg).get(
        "/api/depreciation/executions",
        params={"business_unit_id": org.hq.id, "page_size": 2},
    ).json()
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert page["has_more"] is True
