"""Tests for schedule expression parsing."""

from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.interval import IntervalTrigger

from query_reporter.scheduler.triggers import build_trigger, parse_duration

# Sunday
SUNDAY_MORNING = datetime(2026, 1, 4, 9, 0, 30, tzinfo=timezone.utc)


def next_fire(expression, now=SUNDAY_MORNING):
    return build_trigger(expression, timezone="UTC").get_next_fire_time(None, now)


class TestWeekdays:
    """Tests for cron day-of-week numbering."""

    def test_one_is_monday(self):
        """Test that 1 means Monday."""
        fire = next_fire("0 8 * * 1")

        assert fire.strftime("%A") == "Monday"
        assert fire == datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("weekday", ["0", "7", "sun", "SUN"])
    def test_sunday(self, weekday):
        """Test that 0, 7 and the name all mean Sunday."""
        fire = next_fire(f"0 8 * * {weekday}")

        assert fire.strftime("%A") == "Sunday"
        assert fire == datetime(2026, 1, 11, 8, 0, tzinfo=timezone.utc)

    def test_weekday_range(self):
        """Test a Monday to Friday range."""
        saturday = datetime(2026, 1, 3, 9, 0, tzinfo=timezone.utc)

        assert next_fire("0 8 * * 1-5", now=saturday).strftime("%A") == "Monday"

    def test_range_ending_on_seven(self):
        """Test that a range may end on 7 (Sunday)."""
        monday = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

        assert next_fire("0 8 * * 5-7", now=monday).strftime("%A") == "Friday"
        assert next_fire("0 8 * * 6-7", now=monday).strftime("%A") == "Saturday"

    def test_range_starting_on_sunday(self):
        """Test a range that starts at 0."""
        assert next_fire("0 8 * * 0-2").strftime("%A") == "Monday"

    def test_step(self):
        """Test that */2 means Sunday, Tuesday, Thursday and Saturday."""
        assert next_fire("0 8 * * */2").strftime("%A") == "Tuesday"

    def test_list(self):
        """Test a list mixing numbers and names."""
        assert next_fire("0 8 * * 3,fri").strftime("%A") == "Wednesday"

    @pytest.mark.parametrize("weekday", ["8", "sat-sun", "2-1", "1/0", "x"])
    def test_invalid(self, weekday):
        """Test weekday values cron rejects."""
        with pytest.raises(ValueError):
            build_trigger(f"0 8 * * {weekday}")


class TestCronFields:
    """Tests for the other cron fields."""

    def test_every_minute(self):
        """Test the default job schedule."""
        assert next_fire("* * * * *") == datetime(2026, 1, 4, 9, 1, tzinfo=timezone.utc)

    def test_wrong_field_count(self):
        """Test that anything but five fields is rejected."""
        with pytest.raises(ValueError) as exc_info:
            build_trigger("0 8 * *")

        assert "expected 5" in str(exc_info.value)

    def test_out_of_range(self):
        """Test that an out-of-range minute is rejected."""
        with pytest.raises(ValueError):
            build_trigger("61 * * * *")

    def test_not_a_string(self):
        """Test that a missing schedule is rejected."""
        with pytest.raises(ValueError):
            build_trigger(None)

    def test_day_of_month_or_weekday(self):
        """Test that a restricted day and weekday fire on either."""
        trigger = build_trigger("0 8 13 * 5")

        assert isinstance(trigger, OrTrigger)
        first = trigger.get_next_fire_time(None, SUNDAY_MORNING)
        assert first == datetime(2026, 1, 9, 8, 0, tzinfo=timezone.utc)

        second = trigger.get_next_fire_time(first, first + timedelta(hours=1))
        assert second == datetime(2026, 1, 13, 8, 0, tzinfo=timezone.utc)


class TestDescriptors:
    """Tests for @-descriptors."""

    @pytest.mark.parametrize("descriptor,expected", [
        ("@hourly", datetime(2026, 1, 4, 10, 0, tzinfo=timezone.utc)),
        ("@daily", datetime(2026, 1, 5, 0, 0, tzinfo=timezone.utc)),
        ("@midnight", datetime(2026, 1, 5, 0, 0, tzinfo=timezone.utc)),
        ("@weekly", datetime(2026, 1, 11, 0, 0, tzinfo=timezone.utc)),
        ("@monthly", datetime(2026, 2, 1, 0, 0, tzinfo=timezone.utc)),
        ("@yearly", datetime(2027, 1, 1, 0, 0, tzinfo=timezone.utc)),
        ("@annually", datetime(2027, 1, 1, 0, 0, tzinfo=timezone.utc)),
    ])
    def test_fixed_descriptors(self, descriptor, expected):
        """Test each fixed descriptor against its five-field form."""
        assert next_fire(descriptor) == expected

    def test_every(self):
        """Test that @every builds an interval trigger."""
        trigger = build_trigger("@every 1h30m")

        assert isinstance(trigger, IntervalTrigger)
        assert trigger.interval == timedelta(minutes=90)

    def test_unknown_descriptor(self):
        """Test that unknown descriptors are rejected."""
        with pytest.raises(ValueError) as exc_info:
            build_trigger("@reboot")

        assert "@reboot" in str(exc_info.value)

    @pytest.mark.parametrize("expression", ["@every", "@every soon", "@every 10"])
    def test_every_invalid(self, expression):
        """Test @every without a valid duration."""
        with pytest.raises(ValueError):
            build_trigger(expression)


class TestParseDuration:
    """Tests for duration parsing."""

    @pytest.mark.parametrize("text,seconds", [
        ("90s", 90),
        ("5m", 300),
        ("1h30m", 5400),
        ("1.5h", 5400),
        ("2m500ms", 120),
        ("500ms", 1),
        ("0s", 1),
    ])
    def test_durations(self, text, seconds):
        """Test whole seconds, truncated, at least one."""
        assert parse_duration(text) == seconds

    def test_invalid(self):
        """Test that unit-less text is rejected."""
        with pytest.raises(ValueError):
            parse_duration("1d")
