"""Tests for candidate generation over open hours."""

import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from models import DateException, DayHours, OpenHoursTemplate, TimeInterval, TimeRange
from scheduler.generator import SlotGenerator, open_minutes, resolve_open_hours

from conftest import MONDAY, SATURDAY, TUESDAY, at, weekday_hours, window

UTC = timezone.utc
CHICAGO = ZoneInfo("America/Chicago")


def collect(generator, template, search_window, **kwargs):
    return [c.start for c in generator.generate(template, search_window, **kwargs)]


def chicago(template):
    return template.model_copy(update={"timezone": "America/Chicago"})


class TestResolveOpenHours:
    """Tests for resolve_open_hours."""

    def test_weekly_hours(self):
        """Test that a plain weekday uses the weekly template."""
        assert resolve_open_hours(weekday_hours(), MONDAY) == (time(9, 0), time(17, 0))

    def test_missing_weekday_is_closed(self):
        """Test that weekends are closed when not listed."""
        assert resolve_open_hours(weekday_hours(), SATURDAY) is None

    def test_unavailable_exception_closes_date(self):
        """Test a holiday exception."""
        template = weekday_hours()
        template.exceptions.append(DateException(date=MONDAY, is_available=False))

        assert resolve_open_hours(template, MONDAY) is None
        assert resolve_open_hours(template, TUESDAY) == (time(9, 0), time(17, 0))

    def test_override_replaces_hours(self):
        """Test that override times win over the weekly hours."""
        template = weekday_hours()
        template.exceptions.append(
            DateException(date=MONDAY, is_available=True, override_start=time(10, 0), override_end=time(11, 0))
        )

        assert resolve_open_hours(template, MONDAY) == (time(10, 0), time(11, 0))

    def test_partial_override_keeps_weekly_close(self):
        """Test an exception that only moves the opening time."""
        template = weekday_hours()
        template.exceptions.append(DateException(date=MONDAY, is_available=True, override_start=time(12, 0)))

        assert resolve_open_hours(template, MONDAY) == (time(12, 0), time(17, 0))

    def test_malformed_hours_are_closed_and_logged(self, caplog):
        """Test that close <= open is treated as closed with a warning."""
        template = OpenHoursTemplate(weekly={0: DayHours(open_time=time(17, 0), close_time=time(9, 0))})

        with caplog.at_level(logging.WARNING, logger="scheduler.generator"):
            assert resolve_open_hours(template, MONDAY) is None

        assert any("treating the day as closed" in r.message for r in caplog.records)


class TestSlotGenerator:
    """Tests for SlotGenerator."""

    def test_steps_through_open_hours(self):
        """Test a simple morning window at 30-minute granularity."""
        gen = SlotGenerator(duration_minutes=30, granularity_minutes=30)

        result = collect(gen, weekday_hours(), window(MONDAY, 9, 12))

        assert result == [at(MONDAY, 9), at(MONDAY, 9, 30), at(MONDAY, 10),
                          at(MONDAY, 10, 30), at(MONDAY, 11), at(MONDAY, 11, 30)]

    def test_closed_day_produces_nothing(self):
        """Test that a Saturday window yields no candidates."""
        gen = SlotGenerator(30, 30)

        assert collect(gen, weekday_hours(), window(SATURDAY, 0, 23)) == []

    def test_exception_override_hours(self):
        """Test that candidates follow the overridden hours."""
        template = weekday_hours()
        template.exceptions.append(
            DateException(date=MONDAY, is_available=True, override_start=time(10, 0), override_end=time(11, 0))
        )
        gen = SlotGenerator(30, 30)

        assert collect(gen, template, window(MONDAY, 0, 23)) == [at(MONDAY, 10), at(MONDAY, 10, 30)]

    def test_never_crosses_closing_time(self):
        """Test that the last candidate ends at or before closing."""
        gen = SlotGenerator(duration_minutes=60, granularity_minutes=45)

        candidates = list(gen.generate(weekday_hours(), window(MONDAY, 0, 23)))

        assert candidates
        assert all(c.end <= at(MONDAY, 17) for c in candidates)
        assert candidates[-1].start == at(MONDAY, 15, 45)

    def test_grid_anchored_at_opening_time(self):
        """Test that starts align with the open time, not the window start."""
        template = OpenHoursTemplate(weekly={0: DayHours(open_time=time(9, 5), close_time=time(10, 0))})
        gen = SlotGenerator(15, 15)

        assert collect(gen, template, window(MONDAY, 9, 10)) == [
            at(MONDAY, 9, 5), at(MONDAY, 9, 20), at(MONDAY, 9, 35)
        ]

    def test_not_before_rounds_up_to_grid(self):
        """Test that candidates before 'now' are skipped and the grid is kept."""
        gen = SlotGenerator(15, 15)

        result = collect(gen, weekday_hours(), window(MONDAY, 9, 11), not_before=at(MONDAY, 10, 7))

        assert result[0] == at(MONDAY, 10, 15)
        assert all(s >= at(MONDAY, 10, 7) for s in result)

    def test_days_of_week_filter(self):
        """Test that only the requested weekdays produce candidates."""
        gen = SlotGenerator(60, 60)
        search = TimeInterval(start=at(MONDAY, 0), end=at(TUESDAY, 23))

        result = collect(gen, weekday_hours(), search, days_of_week=[1])

        assert result
        assert {s.date() for s in result} == {TUESDAY}

    def test_time_range_narrows_hours(self):
        """Test that a clock range intersects the open hours."""
        gen = SlotGenerator(30, 30)
        rng = TimeRange(start_time=time(13, 0), end_time=time(14, 0))

        assert collect(gen, weekday_hours(), window(MONDAY, 0, 23), time_range=rng) == [
            at(MONDAY, 13), at(MONDAY, 13, 30)
        ]

    def test_missing_template_is_open_all_day(self):
        """Test that an unrestricted resource is open across midnight."""
        gen = SlotGenerator(60, 60)
        search = TimeInterval(start=at(MONDAY, 22), end=at(TUESDAY, 2))

        assert collect(gen, None, search) == [at(MONDAY, 22), at(MONDAY, 23), at(TUESDAY, 0), at(TUESDAY, 1)]

    def test_starts_are_nondecreasing(self):
        """Test ordering across several days."""
        gen = SlotGenerator(45, 15)
        search = TimeInterval(start=at(MONDAY, 0), end=at(MONDAY, 0) + timedelta(days=7))

        result = collect(gen, weekday_hours(), search)

        assert result == sorted(result)


class TestOpenMinutes:
    """Tests for open_minutes."""

    def test_full_day(self):
        """Test a whole open day."""
        assert open_minutes(weekday_hours(), window(MONDAY, 0, 23)) == pytest.approx(480.0)

    def test_clipped_by_window(self):
        """Test that only the part inside the window counts."""
        assert open_minutes(weekday_hours(), window(MONDAY, 16, 23)) == pytest.approx(60.0)

    def test_filters_apply(self):
        """Test that weekday and clock filters reduce the total."""
        search = TimeInterval(start=datetime(2026, 10, 19), end=datetime(2026, 10, 26))
        rng = TimeRange(start_time=time(9, 0), end_time=time(12, 0))

        assert open_minutes(weekday_hours(), search, days_of_week=[0, 1], time_range=rng) == pytest.approx(360.0)


class TestTemplateTimezone:
    """Tests for templates whose hours are wall-clock times in a named zone."""

    def test_utc_window_yields_local_hours(self):
        """Test that 09:00-17:00 Chicago hours produce 14:00-22:00 UTC candidates."""
        template = chicago(weekday_hours())
        search = TimeInterval(start=datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
                              end=datetime(2026, 10, 20, 0, 0, tzinfo=UTC))

        candidates = list(SlotGenerator(60, 60).generate(template, search))

        assert len(candidates) == 8
        assert candidates[0].start == datetime(2026, 10, 19, 14, 0, tzinfo=UTC)
        assert candidates[0].start.astimezone(CHICAGO).hour == 9
        assert candidates[-1].end == datetime(2026, 10, 19, 22, 0, tzinfo=UTC)

    def test_local_weekday_decides_open_day(self):
        """Test that a Saturday UTC window can still fall on a Friday evening in Chicago."""
        template = chicago(weekday_hours(18, 23))
        search = TimeInterval(start=datetime(2026, 10, 24, 0, 0, tzinfo=UTC),
                              end=datetime(2026, 10, 24, 3, 0, tzinfo=UTC))

        result = collect(SlotGenerator(60, 60), template, search)

        assert [s.astimezone(CHICAGO).hour for s in result] == [19, 20, 21]
        assert all(s.astimezone(CHICAGO).weekday() == 4 for s in result)

    def test_open_minutes_in_local_time(self):
        """Test that open minutes follow the template zone."""
        search = TimeInterval(start=datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
                              end=datetime(2026, 10, 20, 0, 0, tzinfo=UTC))

        assert open_minutes(chicago(weekday_hours()), search) == pytest.approx(480.0)
