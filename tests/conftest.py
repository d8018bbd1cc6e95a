"""Shared pytest fixtures: in-memory database, signed tokens, catalog rows."""

import os

# Settings are read at import time; configure before importing the app.
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"

import time
import uuid
from contextlib import nullcontext

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.database import get_session
from app.main import app
from app.models.medicine import Category, Medicine
from app.models.user import User
from app.services.search_history import recent_searches


def make_token(user_id: uuid.UUID, email: str, expires_in: int = 3600) -> str:
    """Sign a token the way Supabase Auth does (HS256, sub + email)."""
    return jwt.encode(
        {
            "sub": str(user_id),
            "email": email,
            "aud": "authenticated",
            "exp": int(time.time()) + expires_in,
        },
        "test-jwt-secret",
        algorithm="HS256",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session, monkeypatch):
    """TestClient whose requests (and cart socket handshakes) share the test session."""
    app.dependency_overrides[get_session] = lambda: session
    monkeypatch.setattr("app.routers.cart.open_session", lambda: nullcontext(session))
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_recent_searches():
    yield
    recent_searches._entries.clear()


@pytest.fixture
def customer(session) -> User:
    user = User(id=uuid.uuid4(), email="asha@example.com", role="customer")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin(session) -> User:
    user = User(id=uuid.uuid4(), email="admin@example.com", role="admin")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def auth_headers(customer) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(customer.id, customer.email)}"}


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(admin.id, admin.email)}"}


@pytest.fixture
def category(session) -> Category:
    category = Category(name="Pain Relief")
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@pytest.fixture
def make_medicine(session):
    """Factory fixture: make_medicine("Paracetamol", 100, in_stock=False)."""

    def _make(name: str, price: float, **fields) -> Medicine:
        medicine = Medicine(name=name, price=price, **fields)
        session.add(medicine)
        session.commit()
        session.refresh(medicine)
        return medicine

    return _make


@pytest.fixture
def paracetamol(make_medicine, category) -> Medicine:
    return make_medicine(
        "Paracetamol 500mg",
        100,
        mrp=125,
        category_id=category.id,
        manufacturer="Cipla",
        active_ingredient="Paracetamol",
        dosage="500mg",
    )


@pytest.fixture
def cetirizine(make_medicine) -> Medicine:
    return make_medicine(
        "Cetirizine 10mg",
        50,
        manufacturer="Sun Pharma",
        active_ingredient="Cetirizine",
    )


@pytest.fixture
def amoxicillin(make_medicine) -> Medicine:
    return make_medicine(
        "Amoxicillin 250mg",
        80,
        manufacturer="Cipla",
        active_ingredient="Amoxicillin",
        prescription_required=True,
    )
