from datetime import date, time

from icebreaker.domain.scheduling.availability import AvailabilityModel
from icebreaker.domain.scheduling.text_parser import parse_days, parse_from_text, parse_time_range


class TestParseFromText:
    def test_monday_to_friday_nine_to_five(self):
        model = parse_from_text("Monday to Friday, 9am-5pm")

        assert model.active_days() == ["monday", "tuesday", "wednesday", "thursday", "friday"]
        for day in model.active_days():
            assert model.days[day].start == time(9, 0)
            assert model.days[day].end == time(17, 0)
        assert not model.days["saturday"].active
        assert not model.days["sunday"].active

    def test_abbreviated_range_with_minutes(self):
        model = parse_from_text("mon-wed 10:00 to 14:30")

        assert model.active_days() == ["monday", "tuesday", "wednesday"]
        assert model.days["tuesday"].start == time(10, 0)
        assert model.days["tuesday"].end == time(14, 30)

    def test_weekend_afternoons(self):
        model = parse_from_text("Weekends in the afternoon")

        assert model.active_days() == ["saturday", "sunday"]
        assert model.days["saturday"].start == time(12, 0)
        assert model.days["saturday"].end == time(17, 0)

    def test_every_day(self):
        model = parse_from_text("free every day 8am-8pm")

        assert len(model.active_days()) == 7
        assert model.days["sunday"].end == time(20, 0)

    def test_days_without_time_use_default_hours(self):
        model = parse_from_text("tuesdays and thursdays")

        assert model.active_days() == ["tuesday", "thursday"]
        assert model.days["thursday"].start == time(9, 0)

    def test_day_range_wraps_around_week(self):
        assert parse_days("fri-mon") == {"friday", "saturday", "sunday", "monday"}

    def test_time_only_applies_to_active_days(self):
        base = AvailabilityModel.default_template()

        model = parse_from_text("only 1-5pm", base)

        assert model.active_days() == base.active_days()
        assert model.days["monday"].start == time(13, 0)
        assert model.days["monday"].end == time(17, 0)
        # Base is not mutated
        assert base.days["monday"].start == time(9, 0)

    def test_unrecognised_text_returns_base_unchanged(self):
        base = AvailabilityModel.default_template()

        assert parse_from_text("whenever the stars align", base).to_dict() == base.to_dict()

    def test_invalid_time_range_without_days_returns_base(self):
        base = AvailabilityModel.default_template()

        assert parse_from_text("5pm to 9am", base).to_dict() == base.to_dict()

    def test_empty_text(self):
        base = AvailabilityModel.default_template()

        assert parse_from_text("", base) is base
        assert parse_from_text(None, base) is base

    def test_keeps_date_overrides_and_blocked_dates(self):
        base = AvailabilityModel.default_template()
        base.add_date_override(date(2025, 3, 8), "10:00", "12:00", today=date(2025, 3, 3))
        base.block_date(date(2025, 3, 10))

        model = parse_from_text("weekends", base)

        assert model.date_overrides == base.date_overrides
        assert model.blocked_dates == [date(2025, 3, 10)]


class TestParseTimeRange:
    def test_nine_to_five_without_meridiem(self):
        assert parse_time_range("9-5") == (time(9, 0), time(17, 0))

    def test_twelve_hour_clock(self):
        assert parse_time_range("10am to 2pm") == (time(10, 0), time(14, 0))

    def test_noon_and_midnight(self):
        assert parse_time_range("12pm-3pm") == (time(12, 0), time(15, 0))
        assert parse_time_range("12am-6am") == (time(0, 0), time(6, 0))

    def test_reversed_range_is_invalid(self):
        assert parse_time_range("10pm-6am") is None

    def test_no_range(self):
        assert parse_time_range("sometime in the morning") is None
