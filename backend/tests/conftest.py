from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adminhub.core.deps import get_current_user
from adminhub.db.base import Base
from adminhub.db.session import get_db
from adminhub.main import app
from adminhub.models.enums import Role
from adminhub.models.organization import BusinessUnit, Department, User


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _user(db, employee_id: str, role: Role, business_unit: BusinessUnit, **extra) -> User:
    user = User(
        employee_id=employee_id,
        email=f"{employee_id.lower()}@example.com",
        full_name=employee_id.title(),
        role=role,
        is_active=True,
        business_unit_id=business_unit.id,
        **extra,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture()
def org(db):
    """Two business units with one user per role in the head office."""
    hq = BusinessUnit(code="HQ", name="Head Office", is_active=True)
    branch = BusinessUnit(code="BR", name="Branch", is_active=True)
    db.add_all([hq, branch])
    db.flush()

    ops = Department(name="Operations", code="OPS", business_unit_id=hq.id, is_active=True)
    db.add(ops)
    db.flush()

    admin = _user(db, "ADMIN", Role.ADMIN, hq)
    hr = _user(db, "HR", Role.HR, hq)
    manager = _user(db, "MANAGER", Role.MANAGER, hq, department_id=ops.id)
    other_manager = _user(db, "MANAGER2", Role.MANAGER, hq, department_id=ops.id)
    employee = _user(db, "EMPLOYEE", Role.EMPLOYEE, hq, department_id=ops.id, approver_id=manager.id)
    acctg = _user(db, "ACCTG", Role.ACCTG, hq)
    purchaser = _user(db, "PURCHASER", Role.PURCHASER, hq)
    stockroom = _user(db, "STOCKROOM", Role.STOCKROOM, hq)
    branch_manager = _user(db, "BRMANAGER", Role.MANAGER, branch)
    branch_employee = _user(db, "BREMPLOYEE", Role.EMPLOYEE, branch, approver_id=branch_manager.id)
    db.commit()

    return SimpleNamespace(
        hq=hq,
        branch=branch,
        ops=ops,
        admin=admin,
        hr=hr,
        manager=manager,
        other_manager=other_manager,
        employee=employee,
        acctg=acctg,
        purchaser=purchaser,
        stockroom=stockroom,
        branch_manager=branch_manager,
        branch_employee=branch_employee,
    )


@pytest.fixture()
def acting():
    return {"user": None}


@pytest.fixture()
def client(db, org, acting):
    acting["user"] = org.admin

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_current_user():
        return acting["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


@pytest.fixture()
def as_user(client, acting):
    """Switch the authenticated user for subsequent requests."""

    def _as_user(user: User) -> TestClient:
        acting["user"] = user
        return client

    return _as_user
