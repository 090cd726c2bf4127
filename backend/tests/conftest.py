"""Shared fixtures for the dues-matcher test suite.

The database URL must be pinned before anything under ``dues`` is imported:
``dues.database`` builds its engine at import time.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_SEND_INVITES"] = "false"
for _name in ("PAYMENT_WEBHOOK_SECRET", "FORM_WEBHOOK_SECRET", "ADMIN_USERNAME", "ADMIN_PASSWORD", "INVITE_WEBHOOK_URL"):
    os.environ.pop(_name, None)

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from dues.core.security import create_access_token, hash_password
from dues.database import Base, SessionLocal, engine
from dues.main import app
from dues.models.application import Application, ApplicationStatus, new_application_id
from dues.models.deposit import Deposit, DepositStatus, new_deposit_id
from dues.models.operator import Operator

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)


@pytest.fixture
def db():
    """Fresh schema on the shared in-memory database for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_application(db):
    def _make(name="Kim Minjun", submitted_at=T0, student_id="20231234", **kwargs) -> Application:
        defaults = {
            "id": new_application_id(),
            "status": ApplicationStatus.PENDING,
            "email": "applicant@example.com",
            "extra_fields": {},
        }
        defaults.update(kwargs)
        application = Application(name=name, student_id=student_id, submitted_at=submitted_at, **defaults)
        db.add(application)
        db.commit()
        return application

    return _make


@pytest.fixture
def make_deposit(db):
    def _make(depositor_name="Kim Minjun", timestamp=T0, amount=30000, **kwargs) -> Deposit:
        defaults = {
            "id": new_deposit_id(),
            "status": DepositStatus.PENDING,
            "raw_notification": f"{amount:,}원 입금 | {depositor_name} →  모임통장 (2581)",
        }
        defaults.update(kwargs)
        deposit = Deposit(depositor_name=depositor_name, timestamp=timestamp, amount=amount, **defaults)
        db.add(deposit)
        db.commit()
        return deposit

    return _make


@pytest.fixture
def operator(db):
    op = Operator(username="opAlice", hashed_password=hash_password("correct-horse-battery"))
    db.add(op)
    db.commit()
    return op


@pytest.fixture
def auth_headers(operator):
    token = create_access_token({"sub": operator.username})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c
