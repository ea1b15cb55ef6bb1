"""
Tests for filtering slots against existing bookings.
"""

import pendulum
from pendulum import DateTime

from meetingslots.domain.conflict_filter import ConflictFilter
from meetingslots.domain.models import Booking, BookingStatus, Slot, TimeWindow
from meetingslots.domain.slot_generator import SlotGenerator


def utc(*args) -> DateTime:
    return pendulum.datetime(*args, tz="UTC")


def booking(start: DateTime, minutes: int, status: BookingStatus = BookingStatus.CONFIRMED, **kwargs) -> Booking:
    return Booking(
        event_type_id="intro",
        start=start,
        end=start.add(minutes=minutes),
        status=status,
        **kwargs,
    )


def morning_slots():
    window = TimeWindow(start=utc(2024, 1, 15, 9), end=utc(2024, 1, 15, 12))
    return SlotGenerator().generate([window], 60)


class TestConflictFilter:
    """Tests for ConflictFilter."""

    def test_no_bookings_keeps_everything(self):
        candidates = morning_slots()

        assert ConflictFilter().filter(candidates, []) == candidates

    def test_overlapping_booking_removes_slot(self):
        result = ConflictFilter().filter(morning_slots(), [booking(utc(2024, 1, 15, 10), 60)])

        assert [s.start.hour for s in result] == [9, 11]

    def test_partial_overlap_removes_both_slots(self):
        """A booking 09:30-10:30 touches the inside of two slots."""
        result = ConflictFilter().filter(morning_slots(), [booking(utc(2024, 1, 15, 9, 30), 60)])

        assert [s.start.hour for s in result] == [11]

    def test_booking_containing_slot_removes_it(self):
        result = ConflictFilter().filter(morning_slots(), [booking(utc(2024, 1, 15, 8), 150)])

        assert [s.start.hour for s in result] == [11]

    def test_adjacent_booking_does_not_conflict(self):
        """A booking ending exactly at a slot start leaves the slot available."""
        result = ConflictFilter().filter(morning_slots(), [booking(utc(2024, 1, 15, 8), 60)])

        assert len(result) == 3

    def test_zero_length_booking_blocks_nothing(self):
        """An empty booking inside a slot leaves the slot available."""
        result = ConflictFilter().filter(morning_slots(), [booking(utc(2024, 1, 15, 10, 30), 0)])

        assert len(result) == 3

    def test_cancelled_booking_ignored(self):
        cancelled = booking(utc(2024, 1, 15, 10), 60, status=BookingStatus.CANCELLED)

        result = ConflictFilter().filter(morning_slots(), [cancelled])

        assert len(result) == 3

    def test_pending_booking_blocks(self):
        pending = booking(utc(2024, 1, 15, 10), 60, status=BookingStatus.PENDING)

        result = ConflictFilter().filter(morning_slots(), [pending])

        assert len(result) == 2

    def test_order_preserved(self):
        candidates = list(reversed(morning_slots()))

        result = ConflictFilter().filter(candidates, [booking(utc(2024, 1, 15, 10), 60)])

        assert [s.start.hour for s in result] == [11, 9]

    def test_no_output_slot_overlaps_an_active_booking(self):
        """Across many booking offsets, no kept slot intersects an active booking."""
        window = TimeWindow(start=utc(2024, 1, 15, 8), end=utc(2024, 1, 15, 18))
        candidates = SlotGenerator().generate([window], 30)
        bookings = [
            booking(utc(2024, 1, 15, 8).add(minutes=offset), 40)
            for offset in range(0, 600, 85)
        ]

        result = ConflictFilter().filter(candidates, bookings)

        assert result
        for slot in result:
            for b in bookings:
                assert not (slot.start < b.end and b.start < slot.end)

    def test_conflicting_bookings_excludes_given_id(self):
        mine = booking(utc(2024, 1, 15, 10), 60, id="mine")
        other = booking(utc(2024, 1, 15, 10, 30), 60, id="other")
        window = Slot(start=utc(2024, 1, 15, 10), end=utc(2024, 1, 15, 11))

        conflicts = ConflictFilter().conflicting_bookings(window, [mine, other], exclude_booking_id="mine")

        assert conflicts == [other]
