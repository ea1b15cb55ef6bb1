"""
Booking policy checks: notice windows and weekly booking caps.

Both the availability display and the booking write path call these same
checks; neither re-implements the predicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

import pendulum

from .availability import wall_clock_to_instant
from .models import Booking, EventType, LocalTime, TimeWindow, ensure_utc, resolve_timezone

_MIDNIGHT = LocalTime(0, 0)


class PolicyViolationReason(str, Enum):
    MINIMUM_NOTICE_VIOLATED = "minimum_notice_violated"
    MAXIMUM_NOTICE_EXCEEDED = "maximum_notice_exceeded"
    WEEKLY_CAP_REACHED = "weekly_cap_reached"


@dataclass(frozen=True)
class SlotPolicyViolation:
    """A failed policy check, with a message suitable for the guest."""
    reason: PolicyViolationReason
    message: str
    limit: int


class BookingPolicyGuard:
    """
    Validates a proposed start instant against an event type's policy.

    Each check returns ``None`` when it passes and a ``SlotPolicyViolation``
    when it fails. ``evaluate`` runs all of them so every violated constraint
    can be shown at once.
    """

    def __init__(self, timezone: str):
        self.timezone = timezone
        self.tzinfo = resolve_timezone(timezone)

    def check_minimum_notice(
        self,
        now: datetime,
        start: datetime,
        minimum_notice_hours: int,
    ) -> Optional[SlotPolicyViolation]:
        """Fail if the start is earlier than ``now + minimum_notice_hours``."""
        cutoff = ensure_utc(now).add(hours=minimum_notice_hours)
        if ensure_utc(start) < cutoff:
            return SlotPolicyViolation(
                reason=PolicyViolationReason.MINIMUM_NOTICE_VIOLATED,
                message=f"This event requires at least {minimum_notice_hours} hours notice",
                limit=minimum_notice_hours,
            )
        return None

    def check_maximum_notice(
        self,
        now: datetime,
        start: datetime,
        maximum_notice_days: int,
    ) -> Optional[SlotPolicyViolation]:
        """Fail if the start is later than ``now + maximum_notice_days``."""
        cutoff = ensure_utc(now).add(days=maximum_notice_days)
        if ensure_utc(start) > cutoff:
            return SlotPolicyViolation(
                reason=PolicyViolationReason.MAXIMUM_NOTICE_EXCEEDED,
                message=f"This event can only be booked up to {maximum_notice_days} days in advance",
                limit=maximum_notice_days,
            )
        return None

    def check_weekly_cap(
        self,
        start: datetime,
        max_bookings_per_week: Optional[int],
        count: int,
    ) -> Optional[SlotPolicyViolation]:
        """
        Fail if the week containing ``start`` already holds the cap.

        Args:
            start: Proposed start instant
            max_bookings_per_week: Cap, or None for no cap
            count: Non-cancelled bookings of the event type in that week
        """
        if max_bookings_per_week is None:
            return None
        if count >= max_bookings_per_week:
            return SlotPolicyViolation(
                reason=PolicyViolationReason.WEEKLY_CAP_REACHED,
                message=(
                    f"Maximum bookings per week ({max_bookings_per_week}) "
                    f"reached for this event type"
                ),
                limit=max_bookings_per_week,
            )
        return None

    def week_containing(self, start: datetime) -> TimeWindow:
        """
        Get the calendar week containing an instant.

        Weeks run from Sunday 00:00 to the following Sunday 00:00 in the
        host's timezone, so a week spanning a DST change is 167 or 169 hours.
        """
        local = ensure_utc(start).in_timezone(self.tzinfo)
        if local.day_of_week != pendulum.SUNDAY:
            local = local.previous(pendulum.SUNDAY)
        sunday = local.date()
        return TimeWindow(
            start=wall_clock_to_instant(sunday, _MIDNIGHT, self.tzinfo),
            end=wall_clock_to_instant(sunday.add(weeks=1), _MIDNIGHT, self.tzinfo),
        )

    def count_bookings_in_week(
        self,
        start: datetime,
        bookings: Iterable[Booking],
        event_type_id: str,
        exclude_booking_id: Optional[str] = None,
    ) -> int:
        """Count non-cancelled bookings of an event type starting in the week of ``start``."""
        week = self.week_containing(start)
        return sum(
            1 for booking in bookings
            if booking.is_active()
            and booking.event_type_id == event_type_id
            and booking.id != exclude_booking_id
            and week.contains(booking.start)
        )

    def evaluate(
        self,
        now: datetime,
        start: datetime,
        event_type: EventType,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> List[SlotPolicyViolation]:
        """
        Run every policy check for a proposed start.

        Returns:
            All violations, empty when the start is acceptable
        """
        count = self.count_bookings_in_week(
            start,
            bookings,
            event_type.id,
            exclude_booking_id=exclude_booking_id,
        )
        results = [
            self.check_minimum_notice(now, start, event_type.minimum_notice_hours),
            self.check_maximum_notice(now, start, event_type.maximum_notice_days),
            self.check_weekly_cap(start, event_type.max_bookings_per_week, count),
        ]
        return [violation for violation in results if violation is not None]
