"""
Removal of candidate slots that collide with committed bookings.
"""

from typing import Iterable, List, Optional

from .models import Booking, Slot, TimeWindow


class ConflictFilter:
    """Drops slots overlapping any booking that is not cancelled."""

    def filter(self, candidates: Iterable[Slot], bookings: Iterable[Booking]) -> List[Slot]:
        """
        Filter candidates against bookings, preserving candidate order.

        Back-to-back adjacency (a slot ending exactly when a booking starts,
        or starting when one ends) is not a conflict.
        """
        blocking = [booking.window for booking in bookings if booking.is_active()]
        if not blocking:
            return list(candidates)

        return [
            slot for slot in candidates
            if not any(slot.overlaps(window) for window in blocking)
        ]

    def conflicting_bookings(
        self,
        window: TimeWindow,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Return the active bookings that overlap a window."""
        return [
            booking for booking in bookings
            if booking.is_active()
            and booking.id != exclude_booking_id
            and window.overlaps(booking.window)
        ]
