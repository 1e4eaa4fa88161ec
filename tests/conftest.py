import os

# Configure before importing the application
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SCHEDULING_TIMEZONE"] = "UTC"
os.environ["AI_GATEWAY_API_KEY"] = ""
os.environ["LOVABLE_API_KEY"] = ""
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["GOOGLE_REDIRECT_URI"] = "http://localhost:5173/google-calendar/callback"

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from icebreaker.database import Base  # noqa: E402
from icebreaker.models import Meeting, Profile  # noqa: E402

ALICE = "11111111-1111-4111-8111-111111111111"
BOB = "22222222-2222-4222-8222-222222222222"
CAROL = "33333333-3333-4333-8333-333333333333"

# Monday
NOW = datetime(2025, 3, 3, 10, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def weekday_availability(start="09:00", end="17:00", days=("monday", "tuesday", "wednesday", "thursday", "friday")):
    data = {day: {"active": day in days, "start": start, "end": end} for day in (
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
    )}
    data["dateOverrides"] = []
    data["blockedDates"] = []
    return data


@pytest.fixture
def profiles(db):
    """Alice and Bob free Mon-Fri 09:00-17:00, Carol with no availability"""
    alice = Profile(
        id=ALICE,
        full_name="Alice",
        email="alice@example.edu",
        availability=weekday_availability(),
        interests=["Chess", "Hiking", "Jazz"],
    )
    bob = Profile(
        id=BOB,
        full_name="Bob",
        email="bob@example.edu",
        availability=weekday_availability(),
        interests=["hiking", "jazz"],
    )
    carol = Profile(id=CAROL, full_name="Carol", interests=[])
    db.add_all([alice, bob, carol])
    db.commit()
    return alice, bob, carol


def make_meeting(**overrides) -> Meeting:
    """Unsaved meeting between Alice (requester) and Bob, pending by default"""
    fields = {
        "id": "meeting-1",
        "requester_id": ALICE,
        "recipient_id": BOB,
        "proposed_by_id": ALICE,
        "scheduled_at": NOW + timedelta(days=3),
        "duration_minutes": 60,
        "status": "pending",
        "meeting_type": "friendly",
        "requester_completed": False,
        "recipient_completed": False,
        "reschedule_count": 0,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Meeting(**fields)


def make_token(user_id: str, email: str = None, secret: str = "test-jwt-secret") -> str:
    claims = {
        "sub": user_id,
        "aud": "authenticated",
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
