"""
Meeting Lifecycle State Machine

Statuses: pending → confirmed → completed
          pending → declined / cancelled
          confirmed → cancelled (until 48h before start)
          pending / confirmed → pending with a new time (reschedule)

"pending" is the single status for a (re)proposed time awaiting an answer;
proposed_by_id records who proposed it, the other participant answers.
Legacy "reschedule_requested" rows are treated exactly like "pending".

Expiry is a derived, display-level classification: a proposal left unanswered
for more than PENDING_EXPIRY_DAYS (counted from proposed_at, which a
reschedule restarts), or whose time has passed, is shown in history
while its stored status stays "pending".
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from ...config import CANCELLATION_CUTOFF_HOURS, PENDING_EXPIRY_DAYS
from .errors import (
    CancellationWindowClosedError,
    InvalidTransitionError,
    MeetingExpiredError,
    NotParticipantError,
    PastDateError,
)


class MeetingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    COMPLETED = "completed"


class MeetingAction(str, Enum):
    CONFIRM = "confirm"
    DECLINE = "decline"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    COMPLETE = "complete"


class MeetingView(str, Enum):
    INCOMING = "incoming"
    SENT = "sent"
    UPCOMING = "upcoming"
    HISTORY = "history"


AWAITING_RESPONSE = {MeetingStatus.PENDING, MeetingStatus.RESCHEDULE_REQUESTED}
TERMINAL_STATUSES = {MeetingStatus.DECLINED, MeetingStatus.CANCELLED, MeetingStatus.COMPLETED}


@dataclass
class Transition:
    status: MeetingStatus
    fields: dict = field(default_factory=dict)


def normalize_status(status) -> MeetingStatus:
    return status if isinstance(status, MeetingStatus) else MeetingStatus(status)


def is_awaiting_response(meeting) -> bool:
    return normalize_status(meeting.status) in AWAITING_RESPONSE


def responder_id(meeting) -> str:
    """The participant who has to answer the currently proposed time"""
    return meeting.other_participant(meeting.proposed_by_id)


def proposal_time(meeting) -> datetime:
    """When the time awaiting an answer was put forward; older rows fall back to created_at"""
    return meeting.proposed_at or meeting.created_at


def is_expired(meeting, now: datetime, expiry_days: int = PENDING_EXPIRY_DAYS) -> bool:
    """An unanswered proposal that is too old or whose time has passed"""
    if not is_awaiting_response(meeting):
        return False
    return now - proposal_time(meeting) > timedelta(days=expiry_days) or meeting.scheduled_at <= now


def cancellation_deadline(meeting, cutoff_hours: int = CANCELLATION_CUTOFF_HOURS) -> datetime:
    return meeting.scheduled_at - timedelta(hours=cutoff_hours)


def can_cancel(meeting, now: datetime, cutoff_hours: int = CANCELLATION_CUTOFF_HOURS) -> bool:
    status = normalize_status(meeting.status)
    if status in AWAITING_RESPONSE:
        return True
    if status == MeetingStatus.CONFIRMED:
        return now <= cancellation_deadline(meeting, cutoff_hours)
    return False


def icebreaker_available(meeting, now: datetime, cutoff_hours: int = CANCELLATION_CUTOFF_HOURS) -> bool:
    """Confirmed meetings open the pre-meeting ice-breaker once cancellation closes"""
    return normalize_status(meeting.status) == MeetingStatus.CONFIRMED and now >= cancellation_deadline(
        meeting, cutoff_hours
    )


def classify(meeting, viewer_id: str, now: datetime, expiry_days: int = PENDING_EXPIRY_DAYS) -> MeetingView:
    status = normalize_status(meeting.status)

    if status in AWAITING_RESPONSE and not is_expired(meeting, now, expiry_days):
        return MeetingView.INCOMING if responder_id(meeting) == viewer_id else MeetingView.SENT
    if status == MeetingStatus.CONFIRMED and meeting.scheduled_at > now:
        return MeetingView.UPCOMING
    return MeetingView.HISTORY


def display_status(meeting, now: datetime, expiry_days: int = PENDING_EXPIRY_DAYS) -> str:
    status = normalize_status(meeting.status)
    if is_expired(meeting, now, expiry_days):
        return "expired"
    if status == MeetingStatus.CONFIRMED and meeting.scheduled_at <= now:
        return "past"
    if status == MeetingStatus.RESCHEDULE_REQUESTED:
        return MeetingStatus.PENDING.value
    return status.value


def plan_transition(
    meeting,
    action: MeetingAction,
    actor_id: str,
    now: datetime,
    new_scheduled_at: Optional[datetime] = None,
    cutoff_hours: int = CANCELLATION_CUTOFF_HOURS,
    expiry_days: int = PENDING_EXPIRY_DAYS,
) -> Transition:
    """
    Validate `action` by `actor_id` against the meeting's current state.

    Returns:
        Transition with the target status and the fields to write

    Raises:
        NotParticipantError: actor is not one of the two participants
        InvalidTransitionError: action not allowed in the current state
        CancellationWindowClosedError: confirmed meeting is within the cutoff
        MeetingExpiredError: confirming an expired invitation
        PastDateError: rescheduling to a time that is not in the future
    """
    if not meeting.is_participant(actor_id):
        raise NotParticipantError()

    action = MeetingAction(action)
    status = normalize_status(meeting.status)

    if status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Meeting is already {status.value}")

    awaiting = status in AWAITING_RESPONSE
    is_responder = awaiting and responder_id(meeting) == actor_id

    if action == MeetingAction.CONFIRM:
        if not awaiting:
            raise InvalidTransitionError(f"Cannot confirm a {status.value} meeting")
        if not is_responder:
            raise InvalidTransitionError("Waiting for the other participant to respond")
        if is_expired(meeting, now, expiry_days):
            raise MeetingExpiredError()
        return Transition(MeetingStatus.CONFIRMED)

    if action == MeetingAction.DECLINE:
        if not awaiting:
            raise InvalidTransitionError(f"Cannot decline a {status.value} meeting")
        if not is_responder:
            raise InvalidTransitionError("Only the invited participant can decline; cancel instead")
        return Transition(MeetingStatus.DECLINED)

    if action == MeetingAction.CANCEL:
        if not can_cancel(meeting, now, cutoff_hours):
            raise CancellationWindowClosedError(
                f"Confirmed meetings can only be cancelled more than {cutoff_hours} hours before they start. "
                "Break the ice instead!"
            )
        return Transition(MeetingStatus.CANCELLED)

    if action == MeetingAction.RESCHEDULE:
        if new_scheduled_at is None:
            raise InvalidTransitionError("A new time is required to reschedule")
        if new_scheduled_at <= now:
            raise PastDateError("The new meeting time must be in the future")
        if awaiting and not is_responder:
            raise InvalidTransitionError("Waiting for the other participant to respond")
        if not awaiting and status != MeetingStatus.CONFIRMED:
            raise InvalidTransitionError(f"Cannot reschedule a {status.value} meeting")
        return Transition(
            MeetingStatus.PENDING,
            {
                "scheduled_at": new_scheduled_at,
                "proposed_by_id": actor_id,
                "proposed_at": now,
                "reschedule_count": (meeting.reschedule_count or 0) + 1,
                "requester_completed": False,
                "recipient_completed": False,
            },
        )

    # MeetingAction.COMPLETE
    if status != MeetingStatus.CONFIRMED:
        raise InvalidTransitionError(f"Cannot complete a {status.value} meeting")
    if now < meeting.scheduled_at:
        raise InvalidTransitionError("The meeting has not started yet")

    requester_done = bool(meeting.requester_completed) or actor_id == meeting.requester_id
    recipient_done = bool(meeting.recipient_completed) or actor_id == meeting.recipient_id
    fields = {"requester_completed": requester_done, "recipient_completed": recipient_done}
    if requester_done and recipient_done:
        return Transition(MeetingStatus.COMPLETED, fields)
    return Transition(MeetingStatus.CONFIRMED, fields)
