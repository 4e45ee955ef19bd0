"""Pytest fixtures for marketplace service tests."""

import os

# Must be set before any project module is imported: config is read at import time
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["PROFILING_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORE_BACKEND"] = "sql"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.pop("API_TOKENS", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import SessionLocal, _engine_options, engine, seed_demo_data
from models import Base
from services.authorization import Caller
from services.memory import InMemoryStore, InMemoryUnitOfWork
from services.unit_of_work import SqlAlchemyUnitOfWork


BUYER = Caller(user_id="user-buyer-1", role="User")
OTHER_BUYER = Caller(user_id="user-buyer-2", role="User")
SELLER = Caller(user_id="user-seller-1", role="Seller")
OTHER_SELLER = Caller(user_id="user-seller-2", role="Seller")
ADMIN = Caller(user_id="user-admin-1", role="Admin")
OWNER = Caller(user_id="user-owner-1", role="Owner")

# Seeded catalog (see database.DEMO_PRODUCTS): ids follow insertion order
LAPTOP, SMARTPHONE, HEADPHONES, DESK_CHAIR, TABLE_LAMP, BOOKSHELF = 1, 2, 3, 4, 5, 6
GADGET_HUB, HOME_STORE = 1, 2

ADDRESS = {
    "full_name": "Sara Malik",
    "phone": "+92-321-5550000",
    "address_line1": "12 Canal Road",
    "city": "Lahore",
    "postal_code": "54000",
    "country": "PK",
}

API_ADDRESS = {
    "fullName": "Sara Malik",
    "phone": "+92-321-5550000",
    "addressLine1": "12 Canal Road",
    "city": "Lahore",
    "postalCode": "54000",
    "country": "PK",
}


def bearer(token):
    """Authorization header for a configured API token."""
    return {"Authorization": f"Bearer {token}"}


BUYER_HEADERS = bearer("buyer-token-123")
OTHER_BUYER_HEADERS = bearer("buyer-token-456")
SELLER_HEADERS = bearer("seller-token-123")
OTHER_SELLER_HEADERS = bearer("seller-token-456")
ADMIN_HEADERS = bearer("admin-token-789")
OWNER_HEADERS = bearer("owner-token-789")


@pytest.fixture
def store():
    """In-memory store seeded with the demo sellers and products."""
    store = InMemoryStore()
    seed_demo_data(InMemoryUnitOfWork(store))
    return store


@pytest.fixture
def uow(store):
    return InMemoryUnitOfWork(store)


@pytest.fixture
def sql_session():
    """Session on a private SQLite database seeded with demo data."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)()
    seed_demo_data(SqlAlchemyUnitOfWork(session))
    try:
        yield session
    finally:
        session.close()
        test_engine.dispose()


@pytest.fixture
def sql_file_engine(tmp_path):
    """Engine on a seeded SQLite file, pooled the way the application pools it."""
    url = f"sqlite:///{tmp_path / 'marketplace.db'}"
    file_engine = create_engine(url, **_engine_options(url))
    Base.metadata.create_all(bind=file_engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)()
    try:
        seed_demo_data(SqlAlchemyUnitOfWork(session))
    finally:
        session.close()
    try:
        yield file_engine
    finally:
        file_engine.dispose()


@pytest.fixture
def client():
    """Test client on the application's SQLite database, reset and seeded."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed_demo_data(SqlAlchemyUnitOfWork(session))
    finally:
        session.close()

    from main import app

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def memory_client(store):
    """Test client serving from an in-memory store instead of the database."""
    from main import app

    app.state.memory_store = store
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        del app.state.memory_store


def place_order(client, headers=BUYER_HEADERS, items=None, **extra):
    """POST /api/order with a valid address."""
    body = {
        "items": items if items is not None else [{"productId": LAPTOP, "qty": 1}],
        "shippingAddress": API_ADDRESS,
        "paymentMethod": "COD",
    }
    body.update(extra)
    return client.post("/api/order", json=body, headers=headers)
