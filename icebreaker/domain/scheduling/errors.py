"""Scheduling domain errors

Every error carries the HTTP status the API reports it with and a stable
machine-readable code for the client.
"""


class SchedulingError(Exception):
    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class InvalidRangeError(SchedulingError):
    """Start time must be before end time"""

    status_code = 422
    code = "invalid_range"


class PastDateError(SchedulingError):
    """Date or time is not in the future"""

    status_code = 422
    code = "past_date"


class DuplicatePendingMeetingError(SchedulingError):
    """You already have a pending invitation with this user"""

    status_code = 409
    code = "duplicate_pending_meeting"


class InvalidTransitionError(SchedulingError):
    """This action is not allowed for the meeting's current status"""

    status_code = 409
    code = "invalid_transition"


class CancellationWindowClosedError(InvalidTransitionError):
    """Confirmed meetings cannot be cancelled this close to the start time"""

    code = "cancellation_window_closed"


class MeetingExpiredError(InvalidTransitionError):
    """This invitation has expired"""

    code = "meeting_expired"


class NotParticipantError(SchedulingError):
    """Only the meeting's participants can do this"""

    status_code = 403
    code = "not_participant"


class RankingServiceError(SchedulingError):
    """The meeting-time ranking service failed"""

    status_code = 502
    code = "ranking_service_error"


class CalendarNotConnectedError(SchedulingError):
    """Google Calendar not connected"""

    status_code = 400
    code = "calendar_not_connected"


class CalendarServiceError(SchedulingError):
    """Google Calendar request failed"""

    status_code = 502
    code = "calendar_service_error"


class CalendarAuthorizationError(SchedulingError):
    """Google rejected the calendar authorization"""

    status_code = 400
    code = "calendar_authorization_failed"
