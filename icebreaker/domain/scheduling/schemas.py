"""Scheduling domain schemas - Pydantic models for validation"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import format_time_of_day, parse_time_of_day, sanitize_text, validate_optional_text


def _time_of_day(v):
    return format_time_of_day(parse_time_of_day(v))


class DayAvailabilitySchema(BaseModel):
    active: bool = False
    start: str = "09:00"
    end: str = "17:00"

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v):
        return _time_of_day(v)


class DateOverrideSchema(BaseModel):
    date: dt.date
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v):
        return _time_of_day(v)


class AvailabilityPayload(BaseModel):
    """Weekly availability in the client's JSON shape"""

    monday: Optional[DayAvailabilitySchema] = None
    tuesday: Optional[DayAvailabilitySchema] = None
    wednesday: Optional[DayAvailabilitySchema] = None
    thursday: Optional[DayAvailabilitySchema] = None
    friday: Optional[DayAvailabilitySchema] = None
    saturday: Optional[DayAvailabilitySchema] = None
    sunday: Optional[DayAvailabilitySchema] = None
    dateOverrides: list[DateOverrideSchema] = []
    blockedDates: list[dt.date] = []

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class DayUpdate(BaseModel):
    active: bool
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v):
        return _time_of_day(v)


class BlockedDateCreate(BaseModel):
    date: dt.date


class ParseAvailabilityRequest(BaseModel):
    text: str
    apply: bool = True
    useAI: bool = False

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        v = validate_optional_text(v, 1000)
        if not v:
            raise ValueError("Text is required")
        return v


class ParseAvailabilityResponse(BaseModel):
    availability: dict
    changed: bool
    applied: bool


class SuggestionsRequest(BaseModel):
    userId: str
    preference: Optional[str] = None

    @field_validator("preference")
    @classmethod
    def validate_preference(cls, v):
        return sanitize_text(v, 500)


class TimeSlotResponse(BaseModel):
    day: str
    date: dt.date
    startTime: str
    endTime: str
    rationale: Optional[str] = None


class SuggestionsResponse(BaseModel):
    slots: list[TimeSlotResponse]
    source: str
    ranked: bool


class MeetingCreate(BaseModel):
    """Schema for inviting a user to a meeting at a selected slot"""

    recipientId: str
    date: dt.date
    startTime: str
    meetingType: str = "friendly"
    location: Optional[str] = None

    @field_validator("startTime")
    @classmethod
    def validate_time(cls, v):
        return _time_of_day(v)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return sanitize_text(v, 255)


class RescheduleRequest(BaseModel):
    date: dt.date
    startTime: str

    @field_validator("startTime")
    @classmethod
    def validate_time(cls, v):
        return _time_of_day(v)


class MeetingResponse(BaseModel):
    id: str
    requesterId: str
    recipientId: str
    proposedById: str
    otherUserId: str
    otherUserName: Optional[str] = None
    scheduledAt: dt.datetime
    durationMinutes: int
    status: str
    displayStatus: str
    meetingType: str
    location: Optional[str] = None
    connectedInterest: Optional[str] = None
    requesterCompleted: bool
    recipientCompleted: bool
    rescheduleCount: int
    isReschedule: bool
    awaitingMyResponse: bool
    canCancel: bool
    iceBreakerAvailable: bool
    createdAt: dt.datetime
    proposedAt: dt.datetime
    updatedAt: dt.datetime


class MeetingListResponse(BaseModel):
    incoming: list[MeetingResponse]
    sent: list[MeetingResponse]
    upcoming: list[MeetingResponse]
    history: list[MeetingResponse]


class CalendarCallbackRequest(BaseModel):
    code: str
    state: Optional[str] = None


class CalendarConnectResponse(BaseModel):
    authorizationUrl: str


class CalendarStatusResponse(BaseModel):
    connected: bool
    googleEmail: Optional[str] = None
    calendarId: Optional[str] = None
