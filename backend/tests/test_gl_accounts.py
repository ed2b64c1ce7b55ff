from __future__ import annotations

from helpers import create_gl_account


def test_normal_balance_defaults_from_account_type(org, as_user):
    acctg = as_user(org.acctg)
    cash = create_gl_account(acctg, "1000", "Cash", "ASSET")
    payable = create_gl_account(acctg, "2000", "Accounts payable", "LIABILITY")
    rent = create_gl_account(acctg, "6000", "Rent", "EXPENSE")

    assert cash["normal_balance"] == "DEBIT"
    assert payable["normal_balance"] == "CREDIT"
    assert rent["normal_balance"] == "DEBIT"

    resp = acctg.patch(f"/api/gl-accounts/{rent['id']}", json={"account_type": "REVENUE"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["normal_balance"] == "CREDIT"


def test_account_codes_are_unique(org, as_user):
    acctg = as_user(org.acctg)
    create_gl_account(acctg, "1000", "Cash", "ASSET")
    resp = acctg.post(
        "/api/gl-accounts",
        json={"account_code": "1000", "account_name": "Cash again", "account_type": "ASSET"},
    )
    assert resp.status_code == 409


def test_listing_filters_and_counts(org, as_user):
    acctg = as_user(org.acctg)
    create_gl_account(acctg, "1000", "Cash on hand", "ASSET")
    create_gl_account(acctg, "1010", "Cash in bank", "ASSET")
    equity = create_gl_account(acctg, "3000", "Owner equity", "EQUITY")
    acctg.post(f"/api/gl-accounts/{equity['id']}/toggle")

    body = acctg.get("/api/gl-accounts", params={"search": "cash"}).json()
    assert [row["account_code"] for row in body["items"]] == ["1000", "1010"]
    assert body["counts_by_type"]["ASSET"] == 2
    assert body["counts_by_type"]["EQUITY"] == 1
    assert body["counts_by_type"]["REVENUE"] == 0

    inactive = acctg.get("/api/gl-accounts", params={"is_active": "false"}).json()
    assert [row["account_code"] for row in inactive["items"]] == ["3000"]


def test_unreferenced_account_can_be_deleted(org, as_user):
    acctg = as_user(org.acctg)
    account = create_gl_account(acctg, "7000", "Misc", "EXPENSE")
    assert acctg.delete(f"/api/gl-accounts/{account['id']}").status_code == 204
    assert acctg.get(f"/api/gl-accounts/{account['id']}").status_code == 404


def test_gl_accounts_are_accounting_only(org, as_user):
    assert as_user(org.employee).get("/api/gl-accounts").status_code == 403
    assert as_user(org.manager).post(
        "/api/gl-accounts",
        json={"account_code": "1", "account_name": "X", "account_type": "ASSET"},
    ).status_code == 403
