import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .shared.clock import local_now


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth provider's user (JWT "sub")
    id = Column(String(36), primary_key=True, default=generate_public_id)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    studies = Column(String(255), nullable=True)
    role = Column(String(100), nullable=True)
    # Weekly template + date overrides + blocked dates, see AvailabilityModel.to_dict()
    availability = Column(JSON, nullable=True)
    interests = Column(JSON, default=list, nullable=True)  # list of interest tags
    created_at = Column(DateTime, default=local_now)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now)

    calendar_integration = relationship(
        "GoogleCalendarIntegration", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    requester_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    # Participant whose proposed time is waiting for the other one's answer
    proposed_by_id = Column(String(36), nullable=False)

    # Canonical unordered pair: pair_low < pair_high
    pair_low = Column(String(36), nullable=False)
    pair_high = Column(String(36), nullable=False)

    scheduled_at = Column(DateTime, nullable=False, index=True)  # wall clock in SCHEDULING_TIMEZONE
    duration_minutes = Column(Integer, default=60, nullable=False)

    # Status workflow: pending → confirmed → completed
    # pending → declined / cancelled, confirmed → cancelled
    # pending/confirmed → pending (new time proposed)
    status = Column(String(30), default="pending", nullable=False, index=True)
    meeting_type = Column(String(50), default="friendly", nullable=False)
    location = Column(String(255), nullable=True)
    connected_interest = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    requester_completed = Column(Boolean, default=False, nullable=False)
    recipient_completed = Column(Boolean, default=False, nullable=False)
    reschedule_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=local_now, nullable=False)
    # When the currently proposed time was put forward; pending expiry counts from here
    proposed_at = Column(DateTime, default=local_now, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, nullable=False)

    requester = relationship("Profile", foreign_keys=[requester_id])
    recipient = relationship("Profile", foreign_keys=[recipient_id])

    __table_args__ = (
        CheckConstraint("requester_id <> recipient_id", name="ck_meetings_distinct_participants"),
        # At most one pending meeting per unordered pair
        Index(
            "uq_meetings_pending_pair",
            "pair_low",
            "pair_high",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def other_participant(self, user_id: str) -> str:
        return self.recipient_id if user_id == self.requester_id else self.requester_id

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.recipient_id)


# Register related models so relationship() strings resolve wherever Profile is used
from . import models_google_calendar  # noqa: E402,F401
