"""
Booking repositories: an in-memory store and a JSON-file store.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from ..domain.exceptions import UnknownBooking, UnknownEventType
from ..domain.models import Booking, BookingStatus, EventType, TimeWindow, format_instant, parse_instant

logger = logging.getLogger(__name__)


def booking_to_dict(booking: Booking) -> Dict[str, Any]:
    """Serialize a booking with ISO-8601 UTC instants."""
    return {
        "id": booking.id,
        "eventTypeId": booking.event_type_id,
        "start": format_instant(booking.start),
        "end": format_instant(booking.end),
        "status": booking.status.value,
        "guestName": booking.guest_name,
        "guestEmail": booking.guest_email,
        "guestNotes": booking.guest_notes,
        "calendarEventId": booking.calendar_event_id,
    }


def booking_from_dict(data: Mapping[str, Any]) -> Booking:
    """
    Parse a serialized booking.

    Raises:
        KeyError: If a required field is missing
        ValueError: If an instant is malformed or naive, or the status is unknown
    """
    return Booking(
        id=data["id"],
        event_type_id=data["eventTypeId"],
        start=parse_instant(data["start"], tz=None),
        end=parse_instant(data["end"], tz=None),
        status=BookingStatus(data.get("status", BookingStatus.CONFIRMED.value)),
        guest_name=data.get("guestName", ""),
        guest_email=data.get("guestEmail", ""),
        guest_notes=data.get("guestNotes"),
        calendar_event_id=data.get("calendarEventId"),
    )


class InMemoryBookingRepository:
    """
    Booking repository held in process memory.

    ``atomic`` takes a re-entrant lock, so concurrent bookings through one
    repository instance cannot interleave their check and write.
    """

    def __init__(
        self,
        event_types: Mapping[str, EventType],
        bookings: Iterable[Booking] = (),
    ):
        self._event_types = dict(event_types)
        self._bookings: Dict[str, Booking] = {b.id: b for b in bookings}
        self._lock = threading.RLock()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            yield

    def get_event_type(self, event_type_id: str) -> EventType:
        try:
            return self._event_types[event_type_id]
        except KeyError:
            raise UnknownEventType(f"Event type not found: {event_type_id}") from None

    def get_booking(self, booking_id: str) -> Booking:
        with self._lock:
            try:
                return self._bookings[booking_id]
            except KeyError:
                raise UnknownBooking(f"Booking not found: {booking_id}") from None

    def list_bookings(
        self,
        event_type_id: str,
        window: Optional[TimeWindow] = None,
    ) -> List[Booking]:
        with self._lock:
            bookings = [
                b for b in self._bookings.values()
                if b.event_type_id == event_type_id
                and (window is None or window.overlaps(b.window))
            ]
        return sorted(bookings, key=lambda b: b.start)

    def add_booking(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking already exists: {booking.id}")
            self._commit(booking)
        return booking

    def update_booking(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id not in self._bookings:
                raise UnknownBooking(f"Booking not found: {booking.id}")
            self._commit(booking)
        return booking

    def _commit(self, booking: Booking) -> None:
        """Persist the changed store first; memory only changes once that succeeds."""
        bookings = dict(self._bookings)
        bookings[booking.id] = booking
        self._persist(bookings)
        self._bookings = bookings

    def _persist(self, bookings: Mapping[str, Booking]) -> None:
        """Hook for durable subclasses."""


class JsonBookingRepository(InMemoryBookingRepository):
    """
    Booking repository persisted to a JSON file.

    File format::

        {"bookings": [{"id": "...", "eventTypeId": "...",
                       "start": "2024-01-15T08:00:00Z", ...}]}

    The file is re-read when an atomic section opens, and every write
    replaces the file through a temporary sibling.
    """

    def __init__(self, path: Path, event_types: Mapping[str, EventType]):
        super().__init__(event_types=event_types)
        self.path = Path(path)
        self._load()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            self._load()
            yield

    def _load(self) -> None:
        """Load bookings from disk, skipping malformed records."""
        if not self.path.exists():
            self._bookings = {}
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {self.path}: {exc}") from exc

        records = data.get("bookings", []) if isinstance(data, dict) else []
        bookings: Dict[str, Booking] = {}

        for record in records:
            try:
                booking = booking_from_dict(record)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid booking record in %s: %s", self.path, exc)
                continue
            bookings[booking.id] = booking

        self._bookings = bookings

    def _persist(self, bookings: Mapping[str, Booking]) -> None:
        payload = {
            "bookings": [
                booking_to_dict(b)
                for b in sorted(bookings.values(), key=lambda b: b.start)
            ]
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
