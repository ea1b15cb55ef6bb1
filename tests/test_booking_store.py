"""
Tests for the booking repositories.
"""

import json
import logging
from dataclasses import replace

import pendulum
import pytest
from pendulum import DateTime

from meetingslots.adapters.booking_store import (
    InMemoryBookingRepository,
    JsonBookingRepository,
    booking_from_dict,
    booking_to_dict,
)
from meetingslots.domain.exceptions import UnknownBooking, UnknownEventType
from meetingslots.domain.models import Booking, BookingStatus, EventType, Host, TimeWindow


def utc(*args) -> DateTime:
    return pendulum.datetime(*args, tz="UTC")


@pytest.fixture
def event_types():
    return {"intro": EventType(id="intro", host=Host(timezone="UTC"), duration_minutes=30)}


class TestSerialization:
    """Tests for the JSON record format."""

    def test_record_uses_utc_z_suffix(self):
        booking = Booking(
            id="b1",
            event_type_id="intro",
            start=utc(2024, 1, 15, 8),
            end=utc(2024, 1, 15, 8, 30),
            guest_name="Ada",
            guest_email="ada@example.com",
        )

        data = booking_to_dict(booking)

        assert data == {
            "id": "b1",
            "eventTypeId": "intro",
            "start": "2024-01-15T08:00:00Z",
            "end": "2024-01-15T08:30:00Z",
            "status": "confirmed",
            "guestName": "Ada",
            "guestEmail": "ada@example.com",
            "guestNotes": None,
            "calendarEventId": None,
        }

    def test_parses_offset_instants(self):
        booking = booking_from_dict({
            "id": "b1",
            "eventTypeId": "intro",
            "start": "2024-01-15T09:00:00+01:00",
            "end": "2024-01-15T09:30:00+01:00",
            "status": "pending",
        })

        assert booking.start == utc(2024, 1, 15, 8)
        assert booking.status is BookingStatus.PENDING

    def test_calendar_event_id_kept(self):
        booking = booking_from_dict({
            "id": "b1",
            "eventTypeId": "intro",
            "start": "2024-01-15T08:00:00Z",
            "end": "2024-01-15T08:30:00Z",
            "calendarEventId": "evt-1",
        })

        assert booking.calendar_event_id == "evt-1"
        assert booking_to_dict(booking)["calendarEventId"] == "evt-1"

    def test_missing_field_raises(self):
        with pytest.raises(KeyError):
            booking_from_dict({"id": "b1", "start": "2024-01-15T08:00:00Z", "end": "2024-01-15T08:30:00Z"})


class TestInMemoryBookingRepository:
    """Tests for InMemoryBookingRepository."""

    def test_unknown_event_type(self, event_types):
        repository = InMemoryBookingRepository(event_types)

        with pytest.raises(UnknownEventType, match="Event type not found: other"):
            repository.get_event_type("other")

    def test_unknown_booking(self, event_types):
        with pytest.raises(UnknownBooking):
            InMemoryBookingRepository(event_types).get_booking("missing")

    def test_list_filters_by_event_type_and_window(self, event_types):
        bookings = [
            Booking(id="late", event_type_id="intro", start=utc(2024, 1, 15, 10), end=utc(2024, 1, 15, 11)),
            Booking(id="early", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9)),
            Booking(id="other", event_type_id="other", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9)),
        ]
        repository = InMemoryBookingRepository(event_types, bookings)

        assert [b.id for b in repository.list_bookings("intro")] == ["early", "late"]
        window = TimeWindow(start=utc(2024, 1, 15, 9), end=utc(2024, 1, 15, 12))
        assert [b.id for b in repository.list_bookings("intro", window)] == ["late"]

    def test_duplicate_id_rejected(self, event_types):
        repository = InMemoryBookingRepository(event_types)
        booking = Booking(id="b1", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9))
        repository.add_booking(booking)

        with pytest.raises(ValueError, match="already exists"):
            repository.add_booking(booking)

    def test_update_requires_existing(self, event_types):
        booking = Booking(id="b1", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9))

        with pytest.raises(UnknownBooking):
            InMemoryBookingRepository(event_types).update_booking(booking)


class TestJsonBookingRepository:
    """Tests for JsonBookingRepository."""

    def test_missing_file_is_empty(self, tmp_path, event_types):
        repository = JsonBookingRepository(tmp_path / "bookings.json", event_types)

        assert repository.list_bookings("intro") == []

    def test_writes_survive_reload(self, tmp_path, event_types):
        path = tmp_path / "data" / "bookings.json"
        repository = JsonBookingRepository(path, event_types)
        booking = Booking(id="b1", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9))
        repository.add_booking(booking)

        reloaded = JsonBookingRepository(path, event_types)

        assert reloaded.get_booking("b1") == booking
        assert json.loads(path.read_text())["bookings"][0]["start"] == "2024-01-15T08:00:00Z"

    def test_atomic_sees_changes_from_other_instance(self, tmp_path, event_types):
        path = tmp_path / "bookings.json"
        first = JsonBookingRepository(path, event_types)
        second = JsonBookingRepository(path, event_types)
        second.add_booking(
            Booking(id="b1", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9))
        )

        with first.atomic():
            assert [b.id for b in first.list_bookings("intro")] == ["b1"]

    def test_invalid_json_raises(self, tmp_path, event_types):
        path = tmp_path / "bookings.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            JsonBookingRepository(path, event_types)

    def test_bad_record_skipped_with_warning(self, tmp_path, event_types, caplog):
        path = tmp_path / "bookings.json"
        path.write_text(json.dumps({
            "bookings": [
                {"id": "bad", "eventTypeId": "intro", "start": "15/01/2024 08:00", "end": "2024-01-15T09:00:00Z"},
                {"id": "good", "eventTypeId": "intro", "start": "2024-01-15T10:00:00Z", "end": "2024-01-15T11:00:00Z"},
            ]
        }))

        with caplog.at_level(logging.WARNING):
            repository = JsonBookingRepository(path, event_types)

        assert [b.id for b in repository.list_bookings("intro")] == ["good"]
        assert "Skipping invalid booking record" in caplog.text

    def test_failed_write_leaves_store_unchanged(self, tmp_path, event_types, monkeypatch):
        """When the file cannot be written, memory keeps matching the file."""
        path = tmp_path / "bookings.json"
        repository = JsonBookingRepository(path, event_types)
        original = Booking(id="b1", event_type_id="intro", start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 9))
        repository.add_booking(original)

        def fail(bookings):
            raise OSError("disk full")

        monkeypatch.setattr(repository, "_persist", fail)

        with pytest.raises(OSError, match="disk full"):
            repository.add_booking(
                Booking(id="b2", event_type_id="intro", start=utc(2024, 1, 15, 10), end=utc(2024, 1, 15, 11))
            )
        with pytest.raises(OSError, match="disk full"):
            repository.update_booking(replace(original, status=BookingStatus.CANCELLED))

        assert [b.id for b in repository.list_bookings("intro")] == ["b1"]
        assert repository.get_booking("b1").is_active()
        assert [r["id"] for r in json.loads(path.read_text())["bookings"]] == ["b1"]
