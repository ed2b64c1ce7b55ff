from __future__ import annotations


def create_gl_account(client, code, name, account_type):
    response = client.post(
        "/api/gl-accounts",
        json={"account_code": code, "account_name": name, "account_type": account_type},
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_category(client, business_unit_id, code="IT", **accounts):
    response = client.post(
        "/api/assets/categories",
        json={"code": code, "name": f"{code} equipment", "business_unit_id": business_unit_id, **accounts},
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_asset(client, business_unit_id, category_id, item_code, **overrides):
    payload = {
        "item_code": item_code,
        "description": f"Laptop {item_code}",
        "category_id": category_id,
        "business_unit_id": business_unit_id,
        "purchase_date": "2026-01-31",
        "purchase_price": "12000",
        "useful_life_years": 1,
        "salvage_value": "0",
    }
    payload.update(overrides)
    response = client.post("/api/assets", json=payload)
    assert response.status_code == 201, response.text
    return response.json()
