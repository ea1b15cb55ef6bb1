"""
Tests for booking policy checks.
"""

import pendulum
import pytest
from pendulum import DateTime

from meetingslots.domain.models import Booking, BookingStatus, EventType, Host
from meetingslots.domain.policy import BookingPolicyGuard, PolicyViolationReason

NOW = pendulum.datetime(2024, 1, 10, 12, 0, tz="UTC")


def utc(*args) -> DateTime:
    return pendulum.datetime(*args, tz="UTC")


def booking(start: DateTime, event_type_id: str = "intro", **kwargs) -> Booking:
    return Booking(event_type_id=event_type_id, start=start, end=start.add(minutes=30), **kwargs)


@pytest.fixture
def guard():
    return BookingPolicyGuard("UTC")


@pytest.fixture
def stockholm_guard():
    return BookingPolicyGuard("Europe/Stockholm")


class TestMinimumNotice:
    """Tests for the minimum notice check."""

    def test_one_minute_short_fails(self, guard):
        violation = guard.check_minimum_notice(NOW, utc(2024, 1, 11, 11, 59), 24)

        assert violation is not None
        assert violation.reason is PolicyViolationReason.MINIMUM_NOTICE_VIOLATED
        assert violation.message == "This event requires at least 24 hours notice"
        assert violation.limit == 24

    def test_exact_boundary_passes(self, guard):
        assert guard.check_minimum_notice(NOW, utc(2024, 1, 11, 12, 0), 24) is None

    def test_zero_notice_allows_now(self, guard):
        assert guard.check_minimum_notice(NOW, NOW, 0) is None


class TestMaximumNotice:
    """Tests for the maximum notice check."""

    def test_exact_boundary_passes(self, guard):
        assert guard.check_maximum_notice(NOW, utc(2024, 2, 9, 12, 0), 30) is None

    def test_one_minute_beyond_fails(self, guard):
        violation = guard.check_maximum_notice(NOW, utc(2024, 2, 9, 12, 1), 30)

        assert violation is not None
        assert violation.reason is PolicyViolationReason.MAXIMUM_NOTICE_EXCEEDED
        assert violation.message == "This event can only be booked up to 30 days in advance"


class TestWeeklyCap:
    """Tests for the weekly cap check and the week it counts."""

    def test_no_cap(self, guard):
        assert guard.check_weekly_cap(NOW, None, 100) is None

    def test_below_cap_passes(self, guard):
        assert guard.check_weekly_cap(NOW, 3, 2) is None

    @pytest.mark.parametrize("count", [3, 4])
    def test_at_or_above_cap_fails(self, guard, count):
        violation = guard.check_weekly_cap(NOW, 3, count)

        assert violation is not None
        assert violation.reason is PolicyViolationReason.WEEKLY_CAP_REACHED
        assert violation.message == "Maximum bookings per week (3) reached for this event type"

    def test_week_starts_sunday_midnight_host_local(self, stockholm_guard):
        """A Wednesday in Stockholm belongs to the week from Sunday 00:00 CET."""
        week = stockholm_guard.week_containing(utc(2024, 1, 17, 12))

        assert week.start == utc(2024, 1, 13, 23)
        assert week.end == utc(2024, 1, 20, 23)

    def test_late_saturday_utc_is_sunday_locally(self, stockholm_guard):
        """23:30 UTC Saturday is 00:30 Sunday in Stockholm, so a new week."""
        week = stockholm_guard.week_containing(utc(2024, 1, 13, 23, 30))

        assert week.start == utc(2024, 1, 13, 23)

    def test_sunday_belongs_to_its_own_week(self, guard):
        week = guard.week_containing(utc(2024, 1, 14, 0, 0))

        assert week.start == utc(2024, 1, 14)
        assert week.end == utc(2024, 1, 21)

    def test_week_spanning_dst_change_is_shorter(self, stockholm_guard):
        """The week of 31 March 2024 loses an hour to summer time."""
        week = stockholm_guard.week_containing(utc(2024, 4, 2, 12))

        assert week.start == utc(2024, 3, 30, 23)
        assert week.duration_minutes() == 167 * 60

    def test_count_ignores_cancelled_other_types_and_other_weeks(self, guard):
        bookings = [
            booking(utc(2024, 1, 15, 9)),
            booking(utc(2024, 1, 16, 9), status=BookingStatus.PENDING),
            booking(utc(2024, 1, 17, 9), status=BookingStatus.CANCELLED),
            booking(utc(2024, 1, 17, 10), event_type_id="other"),
            booking(utc(2024, 1, 21, 9)),
            booking(utc(2024, 1, 13, 23, 59)),
        ]

        assert guard.count_bookings_in_week(utc(2024, 1, 18, 9), bookings, "intro") == 2

    def test_count_excludes_given_booking(self, guard):
        mine = booking(utc(2024, 1, 15, 9), id="mine")

        assert guard.count_bookings_in_week(utc(2024, 1, 15, 9), [mine], "intro", exclude_booking_id="mine") == 0


class TestEvaluate:
    """Tests for running all checks together."""

    def make_event_type(self, **kwargs) -> EventType:
        return EventType(id="intro", host=Host(timezone="UTC"), duration_minutes=30, **kwargs)

    def test_passes_with_no_violations(self, guard):
        event_type = self.make_event_type(minimum_notice_hours=1, maximum_notice_days=30)

        assert guard.evaluate(NOW, utc(2024, 1, 12, 9), event_type, []) == []

    def test_collects_every_violation(self, guard):
        event_type = self.make_event_type(minimum_notice_hours=24, max_bookings_per_week=1)
        existing = [booking(utc(2024, 1, 10, 9))]

        violations = guard.evaluate(NOW, utc(2024, 1, 10, 13), event_type, existing)

        assert [v.reason for v in violations] == [
            PolicyViolationReason.MINIMUM_NOTICE_VIOLATED,
            PolicyViolationReason.WEEKLY_CAP_REACHED,
        ]
