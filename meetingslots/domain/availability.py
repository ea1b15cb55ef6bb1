"""
Resolution of a host's recurring weekly rules into absolute time windows.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Sequence

import pendulum
from pendulum import DateTime, Timezone

from .exceptions import InvalidAvailabilityRule
from .models import UTC, AvailabilityRule, Host, LocalTime, TimeWindow, resolve_timezone

logger = logging.getLogger(__name__)


def day_of_week(day: date) -> int:
    """Day of week counted from Sunday (0) to Saturday (6)."""
    return day.isoweekday() % 7


def validate_rule(rule: AvailabilityRule) -> AvailabilityRule:
    """
    Reject a rule a host tries to save whose start is not before its end.

    Slot resolution itself tolerates such rules; this check belongs to the
    write path.

    Raises:
        InvalidAvailabilityRule: If local_start >= local_end
    """
    if rule.is_degenerate():
        raise InvalidAvailabilityRule(
            f"Availability on day {rule.day_of_week} must start before it ends "
            f"(got {rule.local_start}-{rule.local_end})"
        )
    return rule


def wall_clock_to_instant(day: date, wall_clock: LocalTime, tzinfo: Timezone) -> DateTime:
    """
    Convert a local wall-clock reading on a date to a UTC instant.

    Readings inside a spring-forward gap are moved forward by the size of
    the gap. Ambiguous readings in a fall-back overlap resolve to the first
    occurrence.
    """
    fields = (day.year, day.month, day.day, wall_clock.hour, wall_clock.minute)
    local = pendulum.datetime(*fields, tz=tzinfo, fold=0)
    if (local.hour, local.minute) != (wall_clock.hour, wall_clock.minute):
        # Inside a gap fold=0 shifts backwards; the default shifts forwards
        local = pendulum.datetime(*fields, tz=tzinfo)
    return local.in_timezone(UTC)


class WeeklyAvailability:
    """
    A host's weekly schedule bound to the host's timezone.

    All wall-clock arithmetic happens in the host's zone; the windows handed
    out are UTC instants. The same local rule therefore maps to different UTC
    offsets on either side of a DST transition.
    """

    def __init__(self, timezone: str, rules: Sequence[AvailabilityRule]):
        self.timezone = timezone
        self.tzinfo = resolve_timezone(timezone)
        self.rules = list(rules)

    @classmethod
    def for_host(cls, host: Host) -> "WeeklyAvailability":
        return cls(timezone=host.timezone, rules=host.rules)

    def local_date(self, value: date) -> date:
        """
        Normalize a calendar date or datetime to a date in the host's locale.

        Aware datetimes are converted into the host timezone first; naive
        datetimes and plain dates are taken as already local.
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None and value.utcoffset() is not None:
                return pendulum.instance(value).in_timezone(self.tzinfo).date()
            return value.date()
        return value

    def to_instant(self, day: date, wall_clock: LocalTime) -> DateTime:
        return wall_clock_to_instant(day, wall_clock, self.tzinfo)

    def windows_for_date(self, value: date) -> List[TimeWindow]:
        """
        Get the availability windows for one calendar date.

        Args:
            value: Calendar date in the host's locale

        Returns:
            One window per matching rule, ordered by start. Degenerate rules
            yield empty windows.
        """
        day = self.local_date(value)
        weekday = day_of_week(day)

        windows: List[TimeWindow] = []
        for rule in self.rules:
            if rule.day_of_week != weekday:
                continue

            start = self.to_instant(day, rule.local_start)
            if rule.is_degenerate():
                windows.append(TimeWindow(start=start, end=start))
                continue

            end = self.to_instant(day, rule.local_end)
            # A start pushed forward out of a DST gap can land past the end
            windows.append(TimeWindow(start=start, end=max(start, end)))

        windows.sort(key=lambda w: (w.start, w.end))

        logger.debug(
            "Resolved %d window(s) for %s (weekday %d) in %s",
            len(windows), day.isoformat(), weekday, self.timezone,
        )
        return windows
