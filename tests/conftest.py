"""
Shared fixtures: in-memory SQLite (one connection shared via StaticPool),
fresh tables per test, demo users, bearer tokens and deterministic gateways.
"""

import os

# Must be set before config.settings is imported anywhere
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PAYMENT_GATEWAY"] = "simulated"
os.environ["UPI_CALLBACK_SECRET"] = "test-callback-secret"
os.environ["UPI_SIMULATED_DELAY_SECONDS"] = "0"
os.environ["UPI_GATEWAY_URL"] = "https://upi.example.test"

import pytest
from fastapi.testclient import TestClient

import main
from config.database import Base, engine, SessionLocal
from common.security import create_token
from modules.user.models import User, UserRole
from modules.checkout.service import checkout_service
from modules.payment.gateways import register_gateway
from modules.payment.gateways.simulated import SimulatedUpiGateway


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(username: str, role: str = UserRole.USER) -> int:
    session = SessionLocal()
    try:
        user = User(username=username, email=f"{username}@example.com", role=role, is_active=True)
        session.add(user)
        session.commit()
        return user.id
    finally:
        session.close()


@pytest.fixture
def alice(db):
    return db.get(User, _make_user("alice"))


@pytest.fixture
def bob(db):
    return db.get(User, _make_user("bob"))


@pytest.fixture
def admin(db):
    return db.get(User, _make_user("admin", UserRole.ADMIN))


@pytest.fixture
def auth():
    """Bearer header builder: auth(user) -> {"Authorization": ...}."""
    return auth_header


def token_for(user: User) -> str:
    return create_token({"userId": user.id, "role": user.role})


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def client():
    return TestClient(main.app)


def _use_gateway(monkeypatch, name: str, success_rate: float) -> SimulatedUpiGateway:
    gw = SimulatedUpiGateway(success_rate=success_rate, delay_seconds=0)
    gw.name = name
    register_gateway(gw)
    monkeypatch.setattr(checkout_service, "gateway_name", name)
    return gw


@pytest.fixture
def approving_gateway(monkeypatch):
    """Every verification settles as paid."""
    return _use_gateway(monkeypatch, "test-approve", 1.0)


@pytest.fixture
def declining_gateway(monkeypatch):
    """Every verification settles as declined."""
    return _use_gateway(monkeypatch, "test-decline", 0.0)
