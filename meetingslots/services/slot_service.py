"""
Application service for resolving bookable slots.

The service composes the domain pieces (weekly availability, slot tiling,
conflict filtering, policy checks) behind a single entry point so that the
public booking page and the booking write path compute slots the same way.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from ..domain.availability import WeeklyAvailability
from ..domain.conflict_filter import ConflictFilter
from ..domain.models import Booking, EventType, Slot, ensure_utc
from ..domain.policy import BookingPolicyGuard
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class SlotService:
    """
    Facade over slot resolution.

    Order of application is shape (availability, tiling, conflicts), then the
    now-filter, then policy. ``available_slots`` is the pure shape step and
    holds no state between calls.
    """

    def __init__(
        self,
        generator: Optional[SlotGenerator] = None,
        conflict_filter: Optional[ConflictFilter] = None,
    ) -> None:
        self._generator = generator or SlotGenerator()
        self._conflict_filter = conflict_filter or ConflictFilter()

    @property
    def conflict_filter(self) -> ConflictFilter:
        return self._conflict_filter

    def availability_for(self, event_type: EventType) -> WeeklyAvailability:
        return WeeklyAvailability.for_host(event_type.host)

    def policy_guard_for(self, event_type: EventType) -> BookingPolicyGuard:
        """Policy guard bound to the event type's host timezone."""
        return BookingPolicyGuard(timezone=event_type.host.timezone)

    def available_slots(
        self,
        day: date,
        event_type: EventType,
        existing_bookings: Iterable[Booking],
    ) -> List[Slot]:
        """
        Compute the bookable slots for one host-local date.

        Args:
            day: Calendar date in the host's locale
            event_type: Event type whose host and duration apply
            existing_bookings: Committed bookings to avoid

        Returns:
            Slots ordered by start
        """
        windows = self.availability_for(event_type).windows_for_date(day)
        candidates = self._generator.generate(windows, event_type.duration_minutes)
        return self._conflict_filter.filter(candidates, existing_bookings)

    def candidate_slots(self, day: date, event_type: EventType) -> List[Slot]:
        """Slots the host's schedule offers on a date, ignoring bookings."""
        windows = self.availability_for(event_type).windows_for_date(day)
        return self._generator.generate(windows, event_type.duration_minutes)

    def future_slots(
        self,
        day: date,
        event_type: EventType,
        existing_bookings: Iterable[Booking],
        now: datetime,
    ) -> List[Slot]:
        """Available slots that start strictly after ``now``."""
        cutoff = ensure_utc(now)
        return [
            slot for slot in self.available_slots(day, event_type, existing_bookings)
            if slot.start > cutoff
        ]

    def offerable_slots(
        self,
        day: date,
        event_type: EventType,
        existing_bookings: Iterable[Booking],
        now: datetime,
    ) -> List[Slot]:
        """
        Future slots that also pass every booking policy check.

        ``existing_bookings`` must cover the calendar weeks touched by the
        date for the weekly cap to be counted correctly.
        """
        bookings = list(existing_bookings)
        guard = self.policy_guard_for(event_type)
        return [
            slot for slot in self.future_slots(day, event_type, bookings, now)
            if not guard.evaluate(now, slot.start, event_type, bookings)
        ]

    def bookable_dates(
        self,
        event_type: EventType,
        existing_bookings: Iterable[Booking],
        now: datetime,
    ) -> List[date]:
        """
        List host-local dates inside the notice window that still have a slot.

        The range runs from the local date of ``now + minimum notice`` to the
        local date of ``now + maximum notice``, both inclusive.
        """
        now = ensure_utc(now)
        bookings = list(existing_bookings)
        availability = self.availability_for(event_type)

        first = availability.local_date(now.add(hours=event_type.minimum_notice_hours))
        last = availability.local_date(now.add(days=event_type.maximum_notice_days))

        dates: List[date] = []
        current = first
        while current <= last:
            if self.offerable_slots(current, event_type, bookings, now):
                dates.append(current)
            current = current.add(days=1)

        logger.debug(
            "Event type %s has %d bookable date(s) between %s and %s",
            event_type.id, len(dates), first, last,
        )
        return dates
