"""
Domain models for slot resolution.

Absolute instants and wall-clock readings are kept apart: every instant on a
domain value is a pendulum ``DateTime`` normalized to UTC, while
``LocalTime`` is a bare ``HH:MM`` reading that only becomes an instant once a
host timezone and a calendar date are supplied.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Dict, List, Optional, Union

import pendulum
from pendulum import DateTime, Timezone

UTC = pendulum.UTC

_HHMM_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def ensure_utc(value: datetime) -> DateTime:
    """
    Normalize an aware datetime to a UTC pendulum instant.

    Raises:
        ValueError: If the datetime is naive
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Expected a timezone-aware instant, got naive datetime {value!r}")
    return pendulum.instance(value).in_timezone(UTC)


def format_instant(value: datetime) -> str:
    """Serialize an instant as ISO-8601 with the UTC designator."""
    return ensure_utc(value).to_iso8601_string()


def resolve_timezone(name: str) -> Timezone:
    """
    Resolve an IANA timezone identifier.

    Raises:
        ValueError: If the identifier is not a known zone
    """
    try:
        return pendulum.timezone(name)
    except (ValueError, KeyError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


def parse_instant(text: str, tz: Optional[Union[str, Timezone]] = UTC) -> DateTime:
    """
    Parse an ISO-8601 instant.

    Text without an offset is read as wall-clock time in ``tz``, and is
    rejected when ``tz`` is None.

    Raises:
        ValueError: If the text is not a date-time
    """
    parsed = pendulum.parse(text.strip(), tz=tz)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Expected a date-time, got {text!r}")
    return ensure_utc(parsed)


@dataclass(frozen=True, order=True)
class LocalTime:
    """
    A wall-clock reading (hour and minute) without any timezone.
    """
    hour: int
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {self.minute}")

    @classmethod
    def parse(cls, text: str) -> "LocalTime":
        """
        Parse a zero-padded ``HH:MM`` string.

        Raises:
            ValueError: If the text is malformed or out of range
        """
        match = _HHMM_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Expected a time in HH:MM format, got {text!r}")
        return cls(hour=int(match.group(1)), minute=int(match.group(2)))

    def to_time(self) -> time:
        return time(hour=self.hour, minute=self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class TimeWindow:
    """
    Half-open interval ``[start, end)`` of absolute instants.

    Invariant: start is not after end. An interval with start == end is
    empty and overlaps nothing.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        start = ensure_utc(self.start)
        end = ensure_utc(self.end)
        if end < start:
            raise ValueError(f"Start time {start} must not be after end time {end}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def duration(self) -> timedelta:
        return self.end - self.start

    def duration_minutes(self) -> int:
        """Return the duration in whole minutes."""
        return int(self.duration().total_seconds() // 60)

    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "TimeWindow") -> bool:
        """
        Check if this window overlaps another.

        Touching endpoints do not overlap, so back-to-back windows are allowed.
        An empty window overlaps nothing, even when it lies inside the other.
        """
        if self.is_empty() or other.is_empty():
            return False
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        """Check if an instant falls inside ``[start, end)``."""
        return self.start <= ensure_utc(instant) < self.end

    def contains_window(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_instant(self.start), "end": format_instant(self.end)}

    def __str__(self) -> str:
        return f"{format_instant(self.start)} - {format_instant(self.end)}"


class Slot(TimeWindow):
    """
    A concrete bookable interval produced by slot resolution. Never stored.
    """


@dataclass(frozen=True)
class AvailabilityRule:
    """
    One recurring weekly availability block of a host.

    ``day_of_week`` counts from Sunday (0) to Saturday (6). Start and end are
    wall-clock readings in the host's timezone; a rule never crosses midnight.
    """
    day_of_week: int
    local_start: LocalTime
    local_end: LocalTime

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if isinstance(self.local_start, str):
            object.__setattr__(self, "local_start", LocalTime.parse(self.local_start))
        if isinstance(self.local_end, str):
            object.__setattr__(self, "local_end", LocalTime.parse(self.local_end))

    def is_degenerate(self) -> bool:
        """A rule whose start is not before its end offers no time."""
        return self.local_start >= self.local_end

    def __str__(self) -> str:
        return f"day {self.day_of_week} {self.local_start}-{self.local_end}"


@dataclass
class Host:
    """
    The owner of availability rules and bookings.

    The timezone may change at any time; rules are always interpreted in the
    current one.
    """
    timezone: str
    rules: List[AvailabilityRule] = field(default_factory=list)
    id: str = "host"
    username: str = ""

    def __post_init__(self):
        resolve_timezone(self.timezone)

    @property
    def tzinfo(self) -> Timezone:
        return resolve_timezone(self.timezone)

    def rules_for_day(self, day_of_week: int) -> List[AvailabilityRule]:
        return [rule for rule in self.rules if rule.day_of_week == day_of_week]


@dataclass
class EventType:
    """
    A bookable meeting template offered by a host.
    """
    id: str
    host: Host
    duration_minutes: int
    minimum_notice_hours: int = 0
    maximum_notice_days: int = 30
    max_bookings_per_week: Optional[int] = None
    title: str = ""
    slug: str = ""

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        if self.minimum_notice_hours < 0:
            raise ValueError("minimum_notice_hours must not be negative")
        if self.maximum_notice_days <= 0:
            raise ValueError("maximum_notice_days must be greater than zero")
        if self.max_bookings_per_week is not None and self.max_bookings_per_week <= 0:
            raise ValueError("max_bookings_per_week must be greater than zero when set")

    @property
    def duration(self) -> pendulum.Duration:
        return pendulum.duration(minutes=self.duration_minutes)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class Booking:
    """
    A committed (or cancelled) booking of an event type.

    The stored interval is absolute and does not follow later changes to the
    event type's duration or the host's timezone.
    """
    event_type_id: str
    start: datetime
    end: datetime
    status: BookingStatus = BookingStatus.CONFIRMED
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    guest_name: str = ""
    guest_email: str = ""
    guest_notes: Optional[str] = None
    calendar_event_id: Optional[str] = None

    def __post_init__(self):
        self.start = ensure_utc(self.start)
        self.end = ensure_utc(self.end)
        if self.end < self.start:
            raise ValueError(f"Booking start {self.start} must not be after end {self.end}")
        self.status = BookingStatus(self.status)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.start, end=self.end)

    def is_active(self) -> bool:
        """Cancelled bookings never block slots or count toward caps."""
        return self.status is not BookingStatus.CANCELLED
