import asyncio
from datetime import date, datetime, time, timedelta

import httpx
import pytest
from conftest import ALICE, BOB, CAROL, NOW, make_meeting
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from icebreaker.domain.scheduling.calendar_import import BusyInterval
from icebreaker.domain.scheduling.errors import (
    CalendarNotConnectedError,
    DuplicatePendingMeetingError,
    InvalidRangeError,
    InvalidTransitionError,
    NotParticipantError,
    PastDateError,
)
from icebreaker.domain.scheduling.lifecycle import MeetingView
from icebreaker.domain.scheduling.repository import MeetingRepository
from icebreaker.domain.scheduling.schemas import MeetingCreate
from icebreaker.domain.scheduling.service import SchedulingService, common_interest
from icebreaker.services.notification_service import NotificationService


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def send_meeting_notification(self, event, meeting, recipient_id, actor_id=None):
        self.sent.append((event, recipient_id))
        return True


class FakeCalendar:
    def __init__(self, events=None, error=None, create_error=None):
        self.events = events or []
        self.error = error
        self.create_error = create_error
        self.created = []

    async def fetch_busy_intervals(self, profile, db, days):
        if self.error:
            raise self.error
        return self.events

    async def create_meeting_event(self, profile, meeting, attendee, db):
        self.created.append((profile.id, attendee.id))
        if self.create_error:
            raise self.create_error
        return f"event-{profile.id}"


class FakeAvailabilityGateway:
    def __init__(self, weekly=None, error=None):
        self.weekly = weekly
        self.error = error

    async def parse_availability(self, text, now):
        if self.error:
            raise self.error
        return self.weekly


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def service(db, profiles, notifier, calendar):
    return SchedulingService(db, notifier=notifier, calendar=calendar)


def invite(service, requester=ALICE, recipient=BOB, on=date(2025, 3, 5), start="10:00", now=NOW):
    data = MeetingCreate(recipientId=recipient, date=on, startTime=start)
    return asyncio.run(service.create_meeting(requester, data, now=now))


class TestAvailability:
    def test_set_day_persists(self, service):
        service.set_day(CAROL, "saturday", True, time(10, 0), time(14, 0))

        assert service.get_availability(CAROL).active_days() == ["saturday"]

    def test_set_day_invalid_range(self, service):
        with pytest.raises(InvalidRangeError):
            service.set_day(CAROL, "monday", True, time(14, 0), time(10, 0))

    def test_set_day_unknown_weekday(self, service):
        with pytest.raises(HTTPException) as exc:
            service.set_day(CAROL, "funday", True, time(9, 0), time(10, 0))
        assert exc.value.status_code == 422

    def test_add_override_in_past(self, service):
        with pytest.raises(PastDateError):
            service.add_date_override(ALICE, date(2025, 3, 1), time(9, 0), time(10, 0), now=NOW)

    def test_block_date(self, service):
        model = service.block_date(ALICE, date(2025, 3, 5), now=NOW)

        assert model.windows_for(date(2025, 3, 5)) == []
        assert service.get_availability(ALICE).blocked_dates == [date(2025, 3, 5)]

    def test_unknown_user(self, service):
        with pytest.raises(HTTPException) as exc:
            service.get_availability("nobody")
        assert exc.value.status_code == 404

    def test_parse_applies_local_parser(self, service):
        model, changed, applied = asyncio.run(service.parse_availability(CAROL, "Monday to Friday, 9am-5pm", now=NOW))

        assert changed and applied
        assert service.get_availability(CAROL).active_days() == model.active_days()
        assert len(model.active_days()) == 5

    def test_parse_preview_does_not_save(self, service):
        _, changed, applied = asyncio.run(service.parse_availability(CAROL, "weekends", apply=False, now=NOW))

        assert changed and not applied
        assert service.get_availability(CAROL).active_days() == []

    def test_parse_with_ai_gateway(self, db, profiles):
        weekly = {day: {"active": day == "sunday", "start": "10:00", "end": "11:00"} for day in (
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
        )}
        service = SchedulingService(db, gateway=FakeAvailabilityGateway(weekly), notifier=RecordingNotifier())

        model, _, applied = asyncio.run(service.parse_availability(ALICE, "sundays at ten", use_ai=True, now=NOW))

        assert applied
        assert model.active_days() == ["sunday"]

    def test_parse_ai_failure_falls_back_to_local_parser(self, db, profiles):
        from icebreaker.services.ai_gateway import RateLimitedError

        service = SchedulingService(
            db, gateway=FakeAvailabilityGateway(error=RateLimitedError()), notifier=RecordingNotifier()
        )

        model, _, _ = asyncio.run(service.parse_availability(CAROL, "weekends", use_ai=True, now=NOW))

        assert model.active_days() == ["saturday", "sunday"]

    def test_import_calendar(self, db, profiles, notifier):
        busy = BusyInterval(datetime(2025, 3, 4, 10, 0), datetime(2025, 3, 4, 11, 0))
        service = SchedulingService(db, notifier=notifier, calendar=FakeCalendar(events=[busy]))

        model = asyncio.run(service.import_calendar(CAROL, now=NOW))

        assert model.windows_for(date(2025, 3, 4)) == [(540, 600), (660, 1020)]
        assert service.get_availability(CAROL).to_dict() == model.to_dict()

    def test_import_calendar_not_connected(self, db, profiles, notifier):
        service = SchedulingService(db, notifier=notifier, calendar=FakeCalendar(error=CalendarNotConnectedError()))

        with pytest.raises(CalendarNotConnectedError):
            asyncio.run(service.import_calendar(CAROL, now=NOW))


class TestSuggestions:
    def test_mutual_slots(self, service):
        result = asyncio.run(service.suggest_slots(ALICE, BOB, now=NOW))

        assert result.source == "fallback"
        assert len(result.slots) == 20
        assert result.slots[0].starts_at == datetime(2025, 3, 3, 11, 0)

    def test_no_mutual_availability(self, service):
        result = asyncio.run(service.suggest_slots(ALICE, CAROL, now=NOW))

        assert result.slots == []

    def test_cannot_schedule_with_self(self, service):
        with pytest.raises(HTTPException):
            asyncio.run(service.suggest_slots(ALICE, ALICE, now=NOW))


class TestCreateMeeting:
    def test_creates_pending_meeting(self, service, notifier):
        meeting = invite(service)

        assert meeting.status == "pending"
        assert meeting.scheduled_at == datetime(2025, 3, 5, 10, 0)
        assert meeting.proposed_by_id == ALICE
        assert notifier.sent == [("invited", BOB)]

    def test_time_must_be_in_future(self, service):
        with pytest.raises(PastDateError):
            invite(service, on=date(2025, 3, 3), start="09:00")

    def test_duplicate_from_either_party(self, service):
        invite(service)

        with pytest.raises(DuplicatePendingMeetingError):
            invite(service, requester=BOB, recipient=ALICE, on=date(2025, 3, 6))
        with pytest.raises(DuplicatePendingMeetingError):
            invite(service, on=date(2025, 3, 7))

    def test_other_pairs_are_independent(self, service):
        invite(service)

        assert invite(service, recipient=CAROL).status == "pending"

    def test_expired_pending_is_superseded(self, service, db):
        old = invite(service)
        later = NOW + timedelta(days=5)

        new = invite(service, requester=BOB, recipient=ALICE, on=date(2025, 3, 12), now=later)

        db.refresh(old)
        assert old.status == "cancelled"
        assert new.status == "pending"

    def test_after_decline_a_new_invitation_is_allowed(self, service):
        meeting = invite(service)
        asyncio.run(service.decline_meeting(meeting.id, BOB, now=NOW))

        assert invite(service, on=date(2025, 3, 6)).status == "pending"

    def test_unknown_recipient(self, service):
        with pytest.raises(HTTPException) as exc:
            invite(service, recipient="nobody")
        assert exc.value.status_code == 404

    def test_store_rejects_second_pending_row(self, db, profiles):
        repo = MeetingRepository()
        repo.insert_meeting(db, make_meeting(id="m-1"))

        with pytest.raises(DuplicatePendingMeetingError):
            repo.insert_meeting(db, make_meeting(id="m-2", requester_id=BOB, recipient_id=ALICE, proposed_by_id=BOB))


class TestMeetingActions:
    def test_confirm_sets_interest_and_syncs_calendars(self, service, notifier, calendar):
        meeting = invite(service)

        confirmed = asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))

        assert confirmed.status == "confirmed"
        assert confirmed.connected_interest == "Hiking"
        assert sorted(calendar.created) == sorted([(ALICE, BOB), (BOB, ALICE)])
        assert notifier.sent[-1] == ("confirmed", ALICE)

    def test_calendar_sync_failure_does_not_fail_confirm(self, db, profiles, notifier):
        calendar = FakeCalendar(create_error=OperationalError("UPDATE google_calendar_integrations", {}, None))
        service = SchedulingService(db, notifier=notifier, calendar=calendar)
        meeting = invite(service)

        confirmed = asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))

        assert confirmed.status == "confirmed"
        # Each participant is attempted even when the first one fails
        assert sorted(calendar.created) == sorted([(ALICE, BOB), (BOB, ALICE)])
        db.expire_all()
        assert service.get_meeting(meeting.id, BOB).status == "confirmed"

    def test_confirm_without_common_interest(self, service):
        meeting = invite(service, recipient=CAROL)

        confirmed = asyncio.run(service.confirm_meeting(meeting.id, CAROL, now=NOW))

        assert confirmed.connected_interest == "shared interests"

    def test_requester_cannot_confirm(self, service):
        meeting = invite(service)

        with pytest.raises(InvalidTransitionError):
            asyncio.run(service.confirm_meeting(meeting.id, ALICE, now=NOW))

    def test_outsider_cannot_view(self, service):
        meeting = invite(service)

        with pytest.raises(NotParticipantError):
            service.get_meeting(meeting.id, CAROL)

    def test_reschedule_then_confirm_by_original_requester(self, service):
        meeting = invite(service)

        rescheduled = asyncio.run(service.reschedule_meeting(meeting.id, BOB, date(2025, 3, 6), "14:00", now=NOW))

        assert rescheduled.status == "pending"
        assert rescheduled.scheduled_at == datetime(2025, 3, 6, 14, 0)
        assert rescheduled.reschedule_count == 1
        assert service.to_response(rescheduled, ALICE, now=NOW).awaitingMyResponse

        confirmed = asyncio.run(service.confirm_meeting(meeting.id, ALICE, now=NOW))
        assert confirmed.status == "confirmed"

    def test_rescheduling_an_old_confirmed_meeting_keeps_it_live(self, service):
        meeting = invite(service, on=date(2025, 3, 20))
        asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))
        later = NOW + timedelta(days=6)

        asyncio.run(service.reschedule_meeting(meeting.id, ALICE, date(2025, 3, 21), "11:00", now=later))

        listing = service.list_meetings(BOB, now=later)
        assert [m.id for m in listing[MeetingView.INCOMING]] == [meeting.id]
        assert service.to_response(listing[MeetingView.INCOMING][0], BOB, now=later).proposedAt == later
        # Still live, so it blocks a new invitation instead of being superseded
        with pytest.raises(DuplicatePendingMeetingError):
            invite(service, requester=BOB, recipient=ALICE, on=date(2025, 3, 24), now=later)

        confirmed = asyncio.run(service.confirm_meeting(meeting.id, BOB, now=later))
        assert confirmed.status == "confirmed"
        assert confirmed.scheduled_at == datetime(2025, 3, 21, 11, 0)

    def test_reschedule_confirmed_meeting_conflicts_with_other_pending(self, service, db):
        meeting = invite(service)
        asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))
        invite(service, requester=BOB, on=date(2025, 3, 10), recipient=ALICE)

        with pytest.raises(DuplicatePendingMeetingError):
            asyncio.run(service.reschedule_meeting(meeting.id, ALICE, date(2025, 3, 11), "10:00", now=NOW))

    def test_cancel_cutoff(self, service):
        meeting = invite(service, on=date(2025, 3, 5), start="09:00")
        asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))

        # 47 hours before the start
        with pytest.raises(InvalidTransitionError):
            asyncio.run(service.cancel_meeting(meeting.id, ALICE, now=datetime(2025, 3, 3, 10, 0)))

    def test_complete_requires_both(self, service):
        meeting = invite(service)
        asyncio.run(service.confirm_meeting(meeting.id, BOB, now=NOW))
        after = datetime(2025, 3, 5, 12, 0)

        first = asyncio.run(service.complete_meeting(meeting.id, ALICE, now=after))
        assert first.status == "confirmed"
        assert first.requester_completed

        second = asyncio.run(service.complete_meeting(meeting.id, BOB, now=after))
        assert second.status == "completed"


class TestListMeetings:
    def test_grouping(self, service):
        sent = invite(service)
        incoming = invite(service, requester=CAROL, recipient=ALICE, on=date(2025, 3, 6))
        asyncio.run(service.confirm_meeting(incoming.id, ALICE, now=NOW))
        incoming_again = invite(service, requester=CAROL, recipient=ALICE, on=date(2025, 3, 7))

        grouped = service.list_meetings(ALICE, now=NOW)

        assert [m.id for m in grouped[MeetingView.SENT]] == [sent.id]
        assert [m.id for m in grouped[MeetingView.INCOMING]] == [incoming_again.id]
        assert [m.id for m in grouped[MeetingView.UPCOMING]] == [incoming.id]
        assert grouped[MeetingView.HISTORY] == []

    def test_expired_moves_to_history(self, service):
        meeting = invite(service, on=date(2025, 3, 14))

        grouped = service.list_meetings(BOB, now=NOW + timedelta(days=5))

        assert [m.id for m in grouped[MeetingView.HISTORY]] == [meeting.id]
        response = service.to_response(meeting, BOB, now=NOW + timedelta(days=5))
        assert response.displayStatus == "expired"
        assert response.status == "pending"
        assert not response.awaitingMyResponse

    def test_upcoming_sorted_by_time(self, service):
        later = invite(service, on=date(2025, 3, 12))
        asyncio.run(service.confirm_meeting(later.id, BOB, now=NOW))
        sooner = invite(service, on=date(2025, 3, 6))
        asyncio.run(service.confirm_meeting(sooner.id, BOB, now=NOW))

        grouped = service.list_meetings(ALICE, now=NOW)

        assert [m.id for m in grouped[MeetingView.UPCOMING]] == [sooner.id, later.id]


def test_common_interest():
    assert common_interest(["Chess", "Hiking"], ["hiking"]) == "Hiking"
    assert common_interest(["Chess"], []) == "shared interests"
    assert common_interest(None, None) == "shared interests"


class TestNotificationService:
    def test_webhook_failure_is_swallowed(self):
        meeting = make_meeting()
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        notifier = NotificationService(webhook_url="https://hooks.test/meetings", transport=transport)

        assert asyncio.run(notifier.send_meeting_notification("invited", meeting, BOB, ALICE)) is False

    def test_webhook_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["json"] = request.read()
            return httpx.Response(204)

        notifier = NotificationService(webhook_url="https://hooks.test/meetings", transport=httpx.MockTransport(handler))

        assert asyncio.run(notifier.send_meeting_notification("invited", make_meeting(), BOB, ALICE)) is True
        assert b'"event":"invited"' in captured["json"].replace(b" ", b"")

    def test_without_webhook_only_logs(self):
        notifier = NotificationService(webhook_url=None)

        assert asyncio.run(notifier.send_meeting_notification("invited", make_meeting(), BOB, ALICE)) is True
