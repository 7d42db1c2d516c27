import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hotel_booking.db import get_db, init_db
from hotel_booking.main import app
from hotel_booking.models import Room, RoomType, User, UserRole
from hotel_booking.security import hash_password

PASSWORD = "secret-pass-123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def add(session_factory):
    """Persist a model in its own transaction and return its id."""
    def _add(obj):
        session = session_factory()
        try:
            session.add(obj)
            session.commit()
            return obj.id
        finally:
            session.close()
    return _add


@pytest.fixture
def make_client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    def _make(email=None, password=PASSWORD):
        client = TestClient(app)
        if email:
            resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
            assert resp.status_code == 200, resp.text
        return client

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def admin(add):
    return add(User(name="Admin", email="admin@example.com", hashed_password=hash_password(PASSWORD), role=UserRole.ADMIN.value))


@pytest.fixture
def customer(add):
    return add(User(name="Alice Guest", email="alice@example.com", hashed_password=hash_password(PASSWORD)))


@pytest.fixture
def other_customer(add):
    return add(User(name="Bob Guest", email="bob@example.com", hashed_password=hash_password(PASSWORD)))


@pytest.fixture
def admin_client(make_client, admin):
    return make_client("admin@example.com")


@pytest.fixture
def customer_client(make_client, customer):
    return make_client("alice@example.com")


@pytest.fixture
def other_client(make_client, other_customer):
    return make_client("bob@example.com")


@pytest.fixture
def anon_client(make_client):
    return make_client()


@pytest.fixture
def room(add):
    return add(
        Room(
            room_number="101",
            room_type=RoomType.DOUBLE,
            price_per_night=Decimal("100.00"),
            capacity=2,
            amenities=["WiFi", "TV"],
        )
    )


@pytest.fixture
def stay():
    """A three-night stay a month from today."""
    check_in = date.today() + timedelta(days=30)
    return check_in, check_in + timedelta(days=3)


def booking_payload(room_id, check_in, check_out, **extra):
    payload = {
        "roomId": room_id,
        "checkInDate": check_in.isoformat(),
        "checkOutDate": check_out.isoformat(),
        "guestCount": 2,
    }
    payload.update(extra)
    return payload
