"""Tests for clocks and calendar-day arithmetic."""

from datetime import date, datetime, timezone

from circdesk.clock import FixedClock, SystemClock, add_days, days_between, to_date


class TestDaysBetween:
    """Tests for whole-day differences."""

    def test_forward_and_back(self):
        assert days_between(date(2025, 1, 1), date(2025, 1, 15)) == 14
        assert days_between(date(2025, 1, 15), date(2025, 1, 1)) == -14

    def test_antisymmetric(self):
        a, b = date(2024, 2, 27), date(2024, 3, 2)
        assert days_between(a, b) == -days_between(b, a)
        assert days_between(a, b) == 4  # leap year

    def test_time_of_day_ignored(self):
        """Test timestamps count by calendar day, not elapsed hours."""
        late = datetime(2025, 1, 1, 23, 59, tzinfo=timezone.utc)
        early = datetime(2025, 1, 2, 0, 1, tzinfo=timezone.utc)
        assert days_between(late, early) == 1

    def test_iso_strings(self):
        assert days_between("2025-01-01", "2025-01-03T10:00:00+00:00") == 2
        assert to_date("2025-06-30") == date(2025, 6, 30)

    def test_add_days(self):
        assert add_days(date(2025, 1, 25), 14) == date(2025, 2, 8)
        assert add_days("2025-12-30", 3) == date(2026, 1, 2)


class TestClocks:
    """Tests for clock implementations."""

    def test_fixed_clock(self):
        clock = FixedClock(date(2025, 3, 1))
        assert clock.today() == date(2025, 3, 1)
        assert clock.now().date() == date(2025, 3, 1)
        assert clock.advance(5) == date(2025, 3, 6)
        clock.set(date(2025, 1, 1))
        assert clock.today() == date(2025, 1, 1)

    def test_system_clock_is_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0
