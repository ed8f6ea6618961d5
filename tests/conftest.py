"""Shared fixtures for all tests.

Uses a throwaway SQLite file so the app and the test helpers (and the
threads in the concurrency tests) all see the same data.
The schema is recreated for every test function.
"""

import os

# Configure the app before any eventhub imports read the settings
os.environ["DATABASE_URL"] = "sqlite:///./test_eventhub.db"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from eventhub.database import Base
from eventhub.main import app
from eventhub.models import Event, EventStatus, TicketType, User, UserRole

TEST_DATABASE_URL = "sqlite:///./test_eventhub.db"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """A session on the test database for arranging and inspecting state."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def client():
    """TestClient running the app lifespan against the test database."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def future_date(days=30):
    return (date.today() + timedelta(days=days)).isoformat()


# ============== Factory helpers (HTTP) ==============

@pytest.fixture
def register(client):
    """Factory: register a user, log in, return user JSON plus auth headers."""

    _counter = [0]

    def _create(role="attendee", **overrides):
        _counter[0] += 1
        data = {
            "email": f"user{_counter[0]}@example.com",
            "name": f"Test User {_counter[0]}",
            "password": "correct-horse",
            "role": role,
        }
        data.update(overrides)
        r = client.post("/api/auth/register", json=data)
        assert r.status_code == 201, r.text
        r2 = client.post("/api/auth/token", json={"email": data["email"], "password": data["password"]})
        assert r2.status_code == 200, r2.text
        token = r2.json()["access_token"]
        return {
            "user": r.json(),
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _create


@pytest.fixture
def organizer(register):
    return register(role="organizer", company_name="Acme Events")


@pytest.fixture
def attendee(register):
    return register(role="attendee")


@pytest.fixture
def create_event(client, organizer):
    """Factory: create an event through the API (published by default)."""

    def _create(headers=None, **overrides):
        data = {
            "title": "Test Event",
            "description": "A test event description",
            "start_date": future_date(),
            "start_time": "19:00",
            "end_time": "22:00",
            "location": "Test Hall",
            "venue": "Main Stage",
            "category": "music",
            "max_attendees": 100,
            "ticket_price": 25,
            "status": "published",
        }
        data.update(overrides)
        r = client.post("/api/events", json=data, headers=headers or organizer["headers"])
        assert r.status_code == 201, r.text
        return r.json()

    return _create


@pytest.fixture
def set_sold(db):
    """Set a ticket type's sold count directly in storage."""

    def _set(event_id, sold, name=None):
        query = db.query(TicketType).filter(TicketType.event_id == event_id)
        if name is not None:
            query = query.filter(TicketType.name == name)
        query.update({"sold": sold})
        db.commit()

    return _set


# ============== Factory helpers (ORM) ==============

@pytest.fixture
def make_user(db):
    _counter = [0]

    def _create(role=UserRole.ATTENDEE):
        _counter[0] += 1
        user = User(
            email=f"orm{_counter[0]}@example.com",
            name=f"ORM User {_counter[0]}",
            role=role,
            password_hash="not-a-real-hash",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _create


@pytest.fixture
def make_event(db, make_user):
    """Factory: insert a published event with the given ticket types."""

    def _create(ticket_types=None, start_date=None, status=EventStatus.PUBLISHED, slug=None):
        organizer = make_user(role=UserRole.ORGANIZER)
        ticket_types = ticket_types or [{"name": "General Admission", "price": 25, "quantity": 10, "sold": 0}]
        event = Event(
            slug=slug or f"event-{organizer.id}",
            title="ORM Event",
            description="Inserted directly for service tests",
            start_date=start_date or date.today() + timedelta(days=30),
            start_time="19:00",
            end_date=start_date or date.today() + timedelta(days=30),
            end_time="22:00",
            location="Test Hall",
            venue="Main Stage",
            capacity=sum(tt["quantity"] for tt in ticket_types),
            status=status,
            organizer_id=organizer.id,
            ticket_types=[
                TicketType(position=i, **tt) for i, tt in enumerate(ticket_types)
            ],
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _create
