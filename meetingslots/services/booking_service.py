"""
Booking write path.

Creation and rescheduling re-run the conflict check against freshly read
bookings inside the repository's atomic section, so a slot computed at page
load is never trusted as of commit time. Calendar and email collaborators
are notified only after the write succeeds and cannot undo it. A calendar
event id handed back by a collaborator is stored on the booking so later
runs can update or delete the same event.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, ContextManager, Iterable, List, Optional, Protocol, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    BookingPolicyError,
    BookingStateError,
    SlotNoLongerAvailable,
    SlotNotOffered,
)
from ..domain.models import UTC, Booking, BookingStatus, EventType, TimeWindow, ensure_utc
from .slot_service import SlotService

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    """Persistence operations the booking flow relies on."""

    def get_event_type(self, event_type_id: str) -> EventType:
        """Return the event type or raise ``UnknownEventType``."""

    def get_booking(self, booking_id: str) -> Booking:
        """Return the booking or raise ``UnknownBooking``."""

    def list_bookings(
        self,
        event_type_id: str,
        window: Optional[TimeWindow] = None,
    ) -> List[Booking]:
        """Return bookings of an event type, optionally only those overlapping a window."""

    def add_booking(self, booking: Booking) -> Booking:
        """Persist a new booking."""

    def update_booking(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking."""

    def atomic(self) -> ContextManager[None]:
        """Context under which a read-check-write sequence is serialized."""


class BookingNotifier(Protocol):
    """
    Side-effect collaborator (calendar sync, email) run after commits.

    Hooks may return the id of an external calendar event to remember on the
    booking, or None.
    """

    def booking_created(self, booking: Booking, event_type: EventType) -> Optional[str]:
        ...

    def booking_rescheduled(self, booking: Booking, event_type: EventType) -> Optional[str]:
        ...

    def booking_cancelled(self, booking: Booking, event_type: EventType) -> Optional[str]:
        ...


def _utc_now() -> DateTime:
    return pendulum.now(UTC)


class BookingService:
    """
    Creates, reschedules and cancels bookings.

    This is the single place where policy and conflict checks run at write
    time; the availability display uses the same ``SlotService`` and
    ``BookingPolicyGuard``.
    """

    def __init__(
        self,
        repository: BookingRepository,
        slot_service: Optional[SlotService] = None,
        notifiers: Sequence[BookingNotifier] = (),
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._slot_service = slot_service or SlotService()
        self._notifiers = list(notifiers)
        self._clock = clock or _utc_now

    def create_booking(
        self,
        event_type_id: str,
        start: datetime,
        guest_name: str,
        guest_email: str,
        guest_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Book a slot for a guest.

        Args:
            event_type_id: Event type to book
            start: Chosen slot start (aware datetime)
            guest_name: Guest display name
            guest_email: Guest email address
            guest_notes: Optional notes from the guest
            now: Reference instant for notice checks, defaults to the clock

        Returns:
            The confirmed booking

        Raises:
            UnknownEventType: If the event type does not exist
            SlotNotOffered: If the start is not one of the host's slots
            BookingPolicyError: If any policy check fails
            SlotNoLongerAvailable: If the slot was taken in the meantime
        """
        now = ensure_utc(now if now is not None else self._clock())
        event_type = self._repository.get_event_type(event_type_id)
        window = self._requested_window(event_type, start)
        self._ensure_offered(event_type, window)

        with self._repository.atomic():
            bookings = self._repository.list_bookings(event_type.id)
            self._ensure_policy(event_type, window, bookings, now)
            self._ensure_free(window, bookings)

            booking = Booking(
                event_type_id=event_type.id,
                start=window.start,
                end=window.end,
                status=BookingStatus.CONFIRMED,
                guest_name=guest_name,
                guest_email=guest_email,
                guest_notes=guest_notes or None,
            )
            self._repository.add_booking(booking)

        logger.info("Created booking %s for %s at %s", booking.id, event_type.id, window)
        return self._notify("booking_created", booking, event_type)

    def reschedule_booking(
        self,
        booking_id: str,
        new_start: datetime,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Move a booking to a new start.

        The booking itself is excluded from conflict and weekly-cap counts.

        Raises:
            UnknownBooking: If the booking does not exist
            BookingStateError: If the booking is cancelled
            SlotNotOffered, BookingPolicyError, SlotNoLongerAvailable: As for creation
        """
        now = ensure_utc(now if now is not None else self._clock())

        with self._repository.atomic():
            booking = self._repository.get_booking(booking_id)
            if not booking.is_active():
                raise BookingStateError("Cannot reschedule a cancelled booking")

            event_type = self._repository.get_event_type(booking.event_type_id)
            window = self._requested_window(event_type, new_start)
            self._ensure_offered(event_type, window)

            bookings = self._repository.list_bookings(event_type.id)
            self._ensure_policy(event_type, window, bookings, now, exclude_booking_id=booking.id)
            self._ensure_free(window, bookings, exclude_booking_id=booking.id)

            updated = replace(booking, start=window.start, end=window.end)
            self._repository.update_booking(updated)

        logger.info("Rescheduled booking %s to %s", updated.id, window)
        return self._notify("booking_rescheduled", updated, event_type)

    def cancel_booking(self, booking_id: str) -> Booking:
        """
        Cancel a booking. Cancelled bookings stop blocking slots immediately.

        Raises:
            UnknownBooking: If the booking does not exist
            BookingStateError: If the booking is already cancelled
        """
        with self._repository.atomic():
            booking = self._repository.get_booking(booking_id)
            if not booking.is_active():
                raise BookingStateError("Booking already cancelled")

            event_type = self._repository.get_event_type(booking.event_type_id)
            updated = replace(booking, status=BookingStatus.CANCELLED)
            self._repository.update_booking(updated)

        logger.info("Cancelled booking %s", updated.id)
        return self._notify("booking_cancelled", updated, event_type)

    @staticmethod
    def _requested_window(event_type: EventType, start: datetime) -> TimeWindow:
        start = ensure_utc(start)
        return TimeWindow(start=start, end=start.add(minutes=event_type.duration_minutes))

    def _ensure_offered(self, event_type: EventType, window: TimeWindow) -> None:
        """The window must be one of the host's slots on its host-local date."""
        availability = self._slot_service.availability_for(event_type)
        local_day = availability.local_date(window.start)
        offered = self._slot_service.candidate_slots(local_day, event_type)

        if not any(slot.start == window.start and slot.end == window.end for slot in offered):
            raise SlotNotOffered(
                f"{window} is not an available time for event type {event_type.id}"
            )

    def _ensure_policy(
        self,
        event_type: EventType,
        window: TimeWindow,
        bookings: Iterable[Booking],
        now: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        guard = self._slot_service.policy_guard_for(event_type)
        violations = guard.evaluate(
            now,
            window.start,
            event_type,
            bookings,
            exclude_booking_id=exclude_booking_id,
        )
        if violations:
            raise BookingPolicyError(violations)

    def _ensure_free(
        self,
        window: TimeWindow,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        conflicts = self._slot_service.conflict_filter.conflicting_bookings(
            window,
            bookings,
            exclude_booking_id=exclude_booking_id,
        )
        if conflicts:
            logger.info(
                "Rejected %s: overlaps booking(s) %s",
                window, ", ".join(b.id for b in conflicts),
            )
            raise SlotNoLongerAvailable()

    def _notify(self, hook: str, booking: Booking, event_type: EventType) -> Booking:
        for notifier in self._notifiers:
            try:
                event_id = getattr(notifier, hook)(booking, event_type)
            except Exception as exc:
                logger.warning(
                    "%s.%s failed for booking %s: %s",
                    type(notifier).__name__, hook, booking.id, exc,
                )
                continue

            if event_id and event_id != booking.calendar_event_id:
                booking = self._record_calendar_event(booking, event_id)
        return booking

    def _record_calendar_event(self, booking: Booking, event_id: str) -> Booking:
        try:
            with self._repository.atomic():
                current = self._repository.get_booking(booking.id)
                updated = replace(current, calendar_event_id=event_id)
                self._repository.update_booking(updated)
        except Exception as exc:
            logger.warning(
                "Could not store calendar event %s for booking %s: %s",
                event_id, booking.id, exc,
            )
            return booking

        logger.debug("Linked booking %s to calendar event %s", booking.id, event_id)
        return updated
