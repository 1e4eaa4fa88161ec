from datetime import date, time

import pytest
from pydantic import ValidationError

from icebreaker.domain.scheduling.schemas import MeetingCreate
from icebreaker.shared.validators import (
    format_time_of_day,
    parse_iso_date,
    parse_time_of_day,
    sanitize_text,
    time_from_minutes,
    validate_optional_text,
    validate_uuid,
)


class TestTimeOfDay:
    @pytest.mark.parametrize("value,expected", [("09:00", time(9, 0)), ("9:05", time(9, 5)), (" 23:59 ", time(23, 59))])
    def test_parse(self, value, expected):
        assert parse_time_of_day(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", None, 900])
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)

    def test_seconds_are_rejected(self):
        with pytest.raises(ValueError):
            parse_time_of_day(time(9, 0, 30))

    def test_format_is_zero_padded(self):
        assert format_time_of_day(time(7, 5)) == "07:05"

    def test_time_from_minutes_bounds(self):
        assert time_from_minutes(1439) == time(23, 59)
        with pytest.raises(ValueError):
            time_from_minutes(1440)


class TestText:
    def test_blank_becomes_none(self):
        assert validate_optional_text("   ", 10) is None

    def test_too_long(self):
        with pytest.raises(ValueError):
            validate_optional_text("x" * 11, 10)

    def test_markup_is_stripped(self):
        assert sanitize_text("<b>Blue Bottle</b> <script>x</script>", 255) == "Blue Bottle x"

    def test_location_is_sanitized_on_create(self):
        data = MeetingCreate(recipientId="u", date="2025-03-05", startTime="9:00", location="<i>Park</i>")

        assert data.location == "Park"
        assert data.startTime == "09:00"

    def test_invalid_start_time_on_create(self):
        with pytest.raises(ValidationError):
            MeetingCreate(recipientId="u", date="2025-03-05", startTime="9am")


def test_parse_iso_date():
    assert parse_iso_date("2025-03-05T10:00:00Z") == date(2025, 3, 5)
    with pytest.raises(ValueError):
        parse_iso_date("March 5th")


def test_validate_uuid():
    assert validate_uuid("11111111-1111-1111-1111-111111111111")
    assert not validate_uuid("nope")
