"""Scheduling router - FastAPI endpoints for availability, suggestions and meetings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .lifecycle import MeetingView
from .schemas import (
    AvailabilityPayload,
    BlockedDateCreate,
    DateOverrideSchema,
    DayUpdate,
    MeetingCreate,
    MeetingListResponse,
    MeetingResponse,
    ParseAvailabilityRequest,
    ParseAvailabilityResponse,
    RescheduleRequest,
    SuggestionsRequest,
    SuggestionsResponse,
    TimeSlotResponse,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability/me", response_model=AvailabilityPayload)
async def get_my_availability(
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.get_availability(current_user.id).to_dict()


@router.put("/availability/me", response_model=AvailabilityPayload)
async def replace_my_availability(
    data: AvailabilityPayload,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Replace the weekly template, date overrides and blocked dates"""
    return service.replace_availability(current_user.id, data.to_storage()).to_dict()


@router.put("/availability/me/days/{day}", response_model=AvailabilityPayload)
async def update_day(
    day: str,
    data: DayUpdate,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.set_day(current_user.id, day, data.active, data.start, data.end).to_dict()


@router.post("/availability/me/overrides", response_model=AvailabilityPayload)
async def add_date_override(
    data: DateOverrideSchema,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Add availability for a specific date, replacing the weekday window on that date"""
    return service.add_date_override(current_user.id, data.date, data.start, data.end).to_dict()


@router.post("/availability/me/blocked-dates", response_model=AvailabilityPayload)
async def block_date(
    data: BlockedDateCreate,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.block_date(current_user.id, data.date).to_dict()


@router.post("/availability/me/parse", response_model=ParseAvailabilityResponse)
async def parse_availability(
    data: ParseAvailabilityRequest,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Turn a free-text description ("weekdays 9am-5pm") into availability"""
    availability, changed, applied = await service.parse_availability(
        current_user.id, data.text, apply=data.apply, use_ai=data.useAI
    )
    return ParseAvailabilityResponse(availability=availability.to_dict(), changed=changed, applied=applied)


@router.post("/availability/me/import-calendar", response_model=AvailabilityPayload)
async def import_calendar(
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Rebuild availability from the connected Google Calendar's busy time"""
    return (await service.import_calendar(current_user.id)).to_dict()


@router.get("/availability/{user_id}", response_model=AvailabilityPayload)
async def get_user_availability(
    user_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.get_availability(user_id).to_dict()


# ============================================================================
# SUGGESTIONS
# ============================================================================


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggest_meeting_times(
    data: SuggestionsRequest,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Mutual free slots with `userId`, ranked when the AI gateway is available"""
    result = await service.suggest_slots(current_user.id, data.userId, data.preference)
    return SuggestionsResponse(
        slots=[TimeSlotResponse(**slot.to_dict()) for slot in result.slots],
        source=result.source,
        ranked=result.ranked,
    )


# ============================================================================
# MEETINGS
# ============================================================================


@router.post("/meetings", response_model=MeetingResponse, status_code=201)
async def create_meeting(
    data: MeetingCreate,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    meeting = await service.create_meeting(current_user.id, data)
    return service.to_response(meeting, current_user.id)


@router.get("/meetings", response_model=MeetingListResponse)
async def list_meetings(
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """The caller's meetings grouped into incoming, sent, upcoming and history"""
    grouped = service.list_meetings(current_user.id)

    def responses(view: MeetingView) -> list[MeetingResponse]:
        return [service.to_response(m, current_user.id) for m in grouped[view]]

    return MeetingListResponse(
        incoming=responses(MeetingView.INCOMING),
        sent=responses(MeetingView.SENT),
        upcoming=responses(MeetingView.UPCOMING),
        history=responses(MeetingView.HISTORY),
    )


@router.get("/meetings/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.to_response(service.get_meeting(meeting_id, current_user.id), current_user.id)


@router.post("/meetings/{meeting_id}/confirm", response_model=MeetingResponse)
async def confirm_meeting(
    meeting_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    meeting = await service.confirm_meeting(meeting_id, current_user.id)
    return service.to_response(meeting, current_user.id)


@router.post("/meetings/{meeting_id}/decline", response_model=MeetingResponse)
async def decline_meeting(
    meeting_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    meeting = await service.decline_meeting(meeting_id, current_user.id)
    return service.to_response(meeting, current_user.id)


@router.post("/meetings/{meeting_id}/cancel", response_model=MeetingResponse)
async def cancel_meeting(
    meeting_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Cancel a pending meeting, or a confirmed one more than 48 hours before it starts"""
    meeting = await service.cancel_meeting(meeting_id, current_user.id)
    return service.to_response(meeting, current_user.id)


@router.post("/meetings/{meeting_id}/reschedule", response_model=MeetingResponse)
async def reschedule_meeting(
    meeting_id: str,
    data: RescheduleRequest,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    meeting = await service.reschedule_meeting(meeting_id, current_user.id, data.date, data.startTime)
    return service.to_response(meeting, current_user.id)


@router.post("/meetings/{meeting_id}/complete", response_model=MeetingResponse)
async def complete_meeting(
    meeting_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Mark the meeting as done for the caller; completed once both participants have"""
    meeting = await service.complete_meeting(meeting_id, current_user.id)
    return service.to_response(meeting, current_user.id)
