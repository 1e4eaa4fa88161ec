"""Scheduling repository - Database operations for profiles and meetings"""

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Meeting, Profile
from .availability import AvailabilityModel
from .errors import DuplicatePendingMeetingError
from .lifecycle import MeetingStatus

logger = logging.getLogger(__name__)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class ProfileRepository:
    """Profile store: availability and interests"""

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def create_profile(db: Session, user_id: str, **profile_data) -> Profile:
        profile = Profile(id=user_id, **profile_data)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    @staticmethod
    def get_availability(db: Session, user_id: str) -> Optional[AvailabilityModel]:
        """Availability for a user, or None when the profile does not exist"""
        profile = ProfileRepository.get_profile(db, user_id)
        if not profile:
            return None
        return AvailabilityModel.from_dict(profile.availability)

    @staticmethod
    def set_availability(db: Session, user_id: str, availability: AvailabilityModel) -> None:
        profile = ProfileRepository.get_profile(db, user_id)
        if not profile:
            raise ValueError(f"Profile not found: {user_id}")
        profile.availability = availability.to_dict()
        db.commit()


class MeetingRepository:
    """Meeting store"""

    @staticmethod
    def get_meeting(db: Session, meeting_id: str) -> Optional[Meeting]:
        return db.query(Meeting).filter(Meeting.id == meeting_id).first()

    @staticmethod
    def find_pending_between(db: Session, user_a: str, user_b: str) -> Optional[Meeting]:
        """The pending meeting between an unordered pair, if any"""
        low, high = canonical_pair(user_a, user_b)
        return (
            db.query(Meeting)
            .filter(
                Meeting.pair_low == low,
                Meeting.pair_high == high,
                Meeting.status.in_([MeetingStatus.PENDING.value, MeetingStatus.RESCHEDULE_REQUESTED.value]),
            )
            .first()
        )

    @staticmethod
    def insert_meeting(db: Session, meeting: Meeting, supersede: Optional[Meeting] = None) -> Meeting:
        """
        Insert a new pending meeting in one transaction.

        `supersede`, when given, is an expired pending meeting between the same
        pair that is cancelled in the same transaction. The partial unique
        index on (pair_low, pair_high) closes the race between concurrent
        inserts.

        Raises:
            DuplicatePendingMeetingError: another pending meeting exists
        """
        meeting.pair_low, meeting.pair_high = canonical_pair(meeting.requester_id, meeting.recipient_id)
        try:
            if supersede is not None:
                supersede.status = MeetingStatus.CANCELLED.value
                db.flush()
            db.add(meeting)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                f"⚠️ Duplicate pending meeting rejected for pair {meeting.pair_low}/{meeting.pair_high}"
            )
            raise DuplicatePendingMeetingError() from e

        db.refresh(meeting)
        return meeting

    @staticmethod
    def update_meeting_status(db: Session, meeting: Meeting, status: str, **fields) -> Meeting:
        """
        Single-record status update.

        Raises:
            DuplicatePendingMeetingError: moving back to pending would create a
                second pending meeting for the pair
        """
        meeting.status = status
        for key, value in fields.items():
            if hasattr(meeting, key):
                setattr(meeting, key, value)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicatePendingMeetingError() from e

        db.refresh(meeting)
        return meeting

    @staticmethod
    def list_meetings_for(db: Session, user_id: str) -> list[Meeting]:
        return (
            db.query(Meeting)
            .filter(or_(Meeting.requester_id == user_id, Meeting.recipient_id == user_id))
            .order_by(Meeting.scheduled_at.asc())
            .all()
        )
