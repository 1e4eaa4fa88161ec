"""Scheduling service - Business logic for availability and meetings"""

import asyncio
import logging
from datetime import date, datetime, time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import AI_GATEWAY_TIMEOUT_SECONDS, CALENDAR_IMPORT_DAYS, SLOT_LENGTH_MINUTES
from ...models import Meeting, Profile
from ...services import google_calendar_service
from ...services.ai_gateway import get_ai_gateway
from ...services.notification_service import NotificationService
from ...shared.clock import local_now
from ...shared.validators import parse_time_of_day
from .availability import AvailabilityModel
from .calendar_import import import_from_external_calendar
from .errors import (
    DuplicatePendingMeetingError,
    InvalidRangeError,
    NotParticipantError,
    PastDateError,
    RankingServiceError,
)
from .lifecycle import (
    MeetingAction,
    MeetingStatus,
    MeetingView,
    can_cancel,
    classify,
    display_status,
    icebreaker_available,
    is_awaiting_response,
    is_expired,
    plan_transition,
    proposal_time,
    responder_id,
)
from .ranker import MeetingProposalRanker, RankingResult
from .repository import MeetingRepository, ProfileRepository
from .schemas import MeetingCreate, MeetingResponse
from .text_parser import parse_from_text

logger = logging.getLogger(__name__)

DEFAULT_CONNECTED_INTEREST = "shared interests"

# Notification event per lifecycle action
ACTION_EVENTS = {
    MeetingAction.CONFIRM: "confirmed",
    MeetingAction.DECLINE: "declined",
    MeetingAction.CANCEL: "cancelled",
    MeetingAction.RESCHEDULE: "rescheduled",
    MeetingAction.COMPLETE: "completed",
}


def common_interest(first: Optional[list], second: Optional[list]) -> str:
    """First interest tag of `first` that `second` shares, case-insensitively"""
    other = {str(tag).strip().lower() for tag in (second or [])}
    for tag in first or []:
        if str(tag).strip().lower() in other:
            return str(tag).strip()
    return DEFAULT_CONNECTED_INTEREST


class SchedulingService:
    """Service layer for availability, suggestions and the meeting lifecycle"""

    def __init__(
        self,
        db: Session,
        ranker: Optional[MeetingProposalRanker] = None,
        gateway=None,
        notifier: Optional[NotificationService] = None,
        calendar=None,
    ):
        self.db = db
        self.profiles = ProfileRepository()
        self.meetings = MeetingRepository()
        self.gateway = gateway if gateway is not None else get_ai_gateway()
        self.ranker = ranker or MeetingProposalRanker(self.gateway)
        self.notifier = notifier or NotificationService()
        self.calendar = calendar or google_calendar_service

    # ========================================================================
    # AVAILABILITY
    # ========================================================================

    def get_profile(self, user_id: str) -> Profile:
        profile = self.profiles.get_profile(self.db, user_id)
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")
        return profile

    def get_availability(self, user_id: str) -> AvailabilityModel:
        availability = self.profiles.get_availability(self.db, user_id)
        if availability is None:
            raise HTTPException(status_code=404, detail="User not found")
        return availability

    def save_availability(self, user_id: str, availability: AvailabilityModel) -> AvailabilityModel:
        self.get_profile(user_id)
        self.profiles.set_availability(self.db, user_id, availability)
        logger.info(
            f"✅ Availability saved for {user_id}: {len(availability.active_days())} active days, "
            f"{len(availability.date_overrides)} overrides, {len(availability.blocked_dates)} blocked dates"
        )
        return availability

    def replace_availability(self, user_id: str, data: dict) -> AvailabilityModel:
        """Replace the whole availability document"""
        return self.save_availability(user_id, AvailabilityModel.from_dict(data))

    def set_day(self, user_id: str, day: str, active: bool, start: time, end: time) -> AvailabilityModel:
        availability = self.get_availability(user_id)
        try:
            availability.set_day(day, active, start, end)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return self.save_availability(user_id, availability)

    def add_date_override(
        self, user_id: str, on: date, start: time, end: time, now: Optional[datetime] = None
    ) -> AvailabilityModel:
        now = now or local_now()
        availability = self.get_availability(user_id)
        availability.add_date_override(on, start, end, today=now.date())
        return self.save_availability(user_id, availability)

    def block_date(self, user_id: str, on: date, now: Optional[datetime] = None) -> AvailabilityModel:
        now = now or local_now()
        if on < now.date():
            raise PastDateError("Cannot block a date in the past")
        availability = self.get_availability(user_id)
        availability.block_date(on)
        return self.save_availability(user_id, availability)

    async def parse_availability(
        self,
        user_id: str,
        text: str,
        apply: bool = True,
        use_ai: bool = False,
        now: Optional[datetime] = None,
    ) -> tuple[AvailabilityModel, bool, bool]:
        """
        Turn free text into availability.

        With use_ai the gateway parses the weekly template; any gateway
        failure falls back to the local parser.

        Returns:
            (availability, changed, applied)
        """
        now = now or local_now()
        base = self.get_availability(user_id)
        parsed = None

        if use_ai and self.gateway is not None:
            try:
                weekly = await asyncio.wait_for(
                    self.gateway.parse_availability(text, now), timeout=AI_GATEWAY_TIMEOUT_SECONDS
                )
                stored = base.to_dict()
                parsed = AvailabilityModel.from_dict(
                    {
                        **weekly,
                        "dateOverrides": stored["dateOverrides"],
                        "blockedDates": stored["blockedDates"],
                    }
                )
                logger.info(f"🤖 Availability parsed by AI gateway for {user_id}")
            except asyncio.TimeoutError:
                logger.warning("⚠️ AI availability parsing timed out, using local parser")
            except (RankingServiceError, InvalidRangeError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"⚠️ AI availability parsing failed: {e}, using local parser")

        if parsed is None:
            parsed = parse_from_text(text, base)

        changed = parsed.to_dict() != base.to_dict()
        applied = False
        if apply and changed:
            self.save_availability(user_id, parsed)
            applied = True
        return parsed, changed, applied

    async def import_calendar(self, user_id: str, now: Optional[datetime] = None) -> AvailabilityModel:
        """
        Replace availability with Mon-Fri 09:00-17:00 minus Google Calendar
        busy time over the next CALENDAR_IMPORT_DAYS days

        Raises:
            CalendarNotConnectedError, CalendarServiceError
        """
        now = now or local_now()
        profile = self.get_profile(user_id)
        events = await self.calendar.fetch_busy_intervals(profile, self.db, CALENDAR_IMPORT_DAYS)
        availability = import_from_external_calendar(events, today=now.date(), days=CALENDAR_IMPORT_DAYS)
        return self.save_availability(user_id, availability)

    # ========================================================================
    # SUGGESTIONS
    # ========================================================================

    async def suggest_slots(
        self,
        requester_id: str,
        recipient_id: str,
        preference: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        now = now or local_now()
        if requester_id == recipient_id:
            raise HTTPException(status_code=400, detail="Cannot schedule a meeting with yourself")

        requester = self.get_availability(requester_id)
        recipient = self.get_availability(recipient_id)
        result = await self.ranker.rank(requester, recipient, now, preference_text=preference)
        logger.info(
            f"📅 {len(result.slots)} slots suggested for {requester_id} → {recipient_id} ({result.source})"
        )
        return result

    # ========================================================================
    # MEETINGS
    # ========================================================================

    def get_meeting(self, meeting_id: str, user_id: str) -> Meeting:
        meeting = self.meetings.get_meeting(self.db, meeting_id)
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        if not meeting.is_participant(user_id):
            raise NotParticipantError()
        return meeting

    async def create_meeting(
        self, requester_id: str, data: MeetingCreate, now: Optional[datetime] = None
    ) -> Meeting:
        """
        Invite `data.recipientId` to meet at the selected slot

        Raises:
            PastDateError: the slot is not in the future
            DuplicatePendingMeetingError: the pair already has a live pending meeting
        """
        now = now or local_now()
        logger.info(f"📥 Creating meeting invitation {requester_id} → {data.recipientId}")

        if data.recipientId == requester_id:
            raise HTTPException(status_code=400, detail="Cannot schedule a meeting with yourself")
        self.get_profile(requester_id)
        self.get_profile(data.recipientId)

        scheduled_at = datetime.combine(data.date, parse_time_of_day(data.startTime))
        if scheduled_at <= now:
            raise PastDateError("The meeting time must be in the future")

        existing = self.meetings.find_pending_between(self.db, requester_id, data.recipientId)
        supersede = None
        if existing is not None:
            if not is_expired(existing, now):
                logger.warning(f"⚠️ Pending meeting {existing.id} already exists for this pair")
                raise DuplicatePendingMeetingError()
            logger.info(f"🔄 Superseding expired pending meeting {existing.id}")
            supersede = existing

        meeting = Meeting(
            requester_id=requester_id,
            recipient_id=data.recipientId,
            proposed_by_id=requester_id,
            scheduled_at=scheduled_at,
            duration_minutes=SLOT_LENGTH_MINUTES,
            status=MeetingStatus.PENDING.value,
            meeting_type=data.meetingType,
            location=data.location,
            created_at=now,
            proposed_at=now,
            updated_at=now,
        )
        meeting = self.meetings.insert_meeting(self.db, meeting, supersede=supersede)
        logger.info(f"✅ Meeting {meeting.id} created for {scheduled_at.isoformat()}")

        await self.notifier.send_meeting_notification("invited", meeting, data.recipientId, requester_id)
        return meeting

    async def _apply(
        self,
        meeting_id: str,
        actor_id: str,
        action: MeetingAction,
        now: Optional[datetime] = None,
        new_scheduled_at: Optional[datetime] = None,
    ) -> Meeting:
        now = now or local_now()
        meeting = self.get_meeting(meeting_id, actor_id)
        transition = plan_transition(meeting, action, actor_id, now, new_scheduled_at=new_scheduled_at)

        fields = dict(transition.fields)
        fields["updated_at"] = now
        if action == MeetingAction.CONFIRM:
            fields["connected_interest"] = common_interest(
                meeting.requester.interests if meeting.requester else None,
                meeting.recipient.interests if meeting.recipient else None,
            )

        previous = meeting.status
        meeting = self.meetings.update_meeting_status(self.db, meeting, transition.status.value, **fields)
        logger.info(f"✅ Meeting {meeting.id}: {previous} → {meeting.status} ({action.value} by {actor_id})")

        await self.notifier.send_meeting_notification(
            ACTION_EVENTS[action], meeting, meeting.other_participant(actor_id), actor_id
        )
        return meeting

    async def confirm_meeting(self, meeting_id: str, actor_id: str, now: Optional[datetime] = None) -> Meeting:
        meeting = await self._apply(meeting_id, actor_id, MeetingAction.CONFIRM, now)
        await self.sync_calendars(meeting)
        return meeting

    async def decline_meeting(self, meeting_id: str, actor_id: str, now: Optional[datetime] = None) -> Meeting:
        return await self._apply(meeting_id, actor_id, MeetingAction.DECLINE, now)

    async def cancel_meeting(self, meeting_id: str, actor_id: str, now: Optional[datetime] = None) -> Meeting:
        return await self._apply(meeting_id, actor_id, MeetingAction.CANCEL, now)

    async def reschedule_meeting(
        self, meeting_id: str, actor_id: str, on: date, start: time, now: Optional[datetime] = None
    ) -> Meeting:
        new_scheduled_at = datetime.combine(on, parse_time_of_day(start))
        return await self._apply(meeting_id, actor_id, MeetingAction.RESCHEDULE, now, new_scheduled_at=new_scheduled_at)

    async def complete_meeting(self, meeting_id: str, actor_id: str, now: Optional[datetime] = None) -> Meeting:
        return await self._apply(meeting_id, actor_id, MeetingAction.COMPLETE, now)

    async def sync_calendars(self, meeting: Meeting) -> None:
        """Add a confirmed meeting to each participant's connected Google Calendar"""
        for profile, other in ((meeting.requester, meeting.recipient), (meeting.recipient, meeting.requester)):
            if profile is None:
                continue
            try:
                event_id = await self.calendar.create_meeting_event(profile, meeting, other, self.db)
            except Exception as e:
                # The meeting is already confirmed; calendar sync is best-effort
                logger.error(f"❌ Calendar sync failed for meeting {meeting.id}, profile {profile.id}: {str(e)}")
                self.db.rollback()
                continue
            if event_id:
                logger.info(f"📅 Meeting {meeting.id} added to calendar of {profile.id}")

    def list_meetings(self, user_id: str, now: Optional[datetime] = None) -> dict[MeetingView, list[Meeting]]:
        """The caller's meetings grouped the way the meetings screen shows them"""
        now = now or local_now()
        grouped: dict[MeetingView, list[Meeting]] = {view: [] for view in MeetingView}
        for meeting in self.meetings.list_meetings_for(self.db, user_id):
            grouped[classify(meeting, user_id, now)].append(meeting)

        grouped[MeetingView.INCOMING].sort(key=proposal_time, reverse=True)
        grouped[MeetingView.SENT].sort(key=proposal_time, reverse=True)
        grouped[MeetingView.UPCOMING].sort(key=lambda m: m.scheduled_at)
        grouped[MeetingView.HISTORY].sort(key=lambda m: m.scheduled_at, reverse=True)
        return grouped

    def to_response(self, meeting: Meeting, viewer_id: str, now: Optional[datetime] = None) -> MeetingResponse:
        now = now or local_now()
        other_id = meeting.other_participant(viewer_id)
        other = meeting.recipient if other_id == meeting.recipient_id else meeting.requester
        awaiting = is_awaiting_response(meeting) and not is_expired(meeting, now)

        return MeetingResponse(
            id=meeting.id,
            requesterId=meeting.requester_id,
            recipientId=meeting.recipient_id,
            proposedById=meeting.proposed_by_id,
            otherUserId=other_id,
            otherUserName=other.full_name if other else None,
            scheduledAt=meeting.scheduled_at,
            durationMinutes=meeting.duration_minutes,
            status=meeting.status,
            displayStatus=display_status(meeting, now),
            meetingType=meeting.meeting_type,
            location=meeting.location,
            connectedInterest=meeting.connected_interest,
            requesterCompleted=bool(meeting.requester_completed),
            recipientCompleted=bool(meeting.recipient_completed),
            rescheduleCount=meeting.reschedule_count or 0,
            isReschedule=(meeting.reschedule_count or 0) > 0,
            awaitingMyResponse=awaiting and responder_id(meeting) == viewer_id,
            canCancel=can_cancel(meeting, now),
            iceBreakerAvailable=icebreaker_available(meeting, now),
            createdAt=meeting.created_at,
            proposedAt=proposal_time(meeting),
            updatedAt=meeting.updated_at,
        )
