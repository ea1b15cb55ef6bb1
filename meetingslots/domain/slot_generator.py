"""
Tiling of availability windows into fixed-length slots.
"""

from typing import Iterable, List, Set, Tuple

from .models import Slot, TimeWindow


class SlotGenerator:
    """
    Cuts availability windows into back-to-back slots of one duration.

    Algorithm:
    1. Start a cursor at each window's start
    2. Emit ``[cursor, cursor + duration)`` while it still fits in the window
    3. Advance the cursor by the duration (no gaps, no overlap)
    4. Drop slots already produced by an overlapping window
    5. Return everything in ascending start order

    Arithmetic runs on UTC instants, so every slot lasts exactly the
    duration in real time even when a window straddles a DST change.
    """

    def generate(self, windows: Iterable[TimeWindow], duration_minutes: int) -> List[Slot]:
        """
        Generate candidate slots for the given windows.

        Args:
            windows: Availability windows, in any order
            duration_minutes: Length of each slot

        Returns:
            Deduplicated slots ordered by start

        Raises:
            ValueError: If the duration is not positive
        """
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be greater than zero, got {duration_minutes}")

        seen: Set[Tuple] = set()
        slots: List[Slot] = []

        for window in windows:
            for slot in self._tile(window, duration_minutes):
                key = (slot.start, slot.end)
                if key in seen:
                    continue
                seen.add(key)
                slots.append(slot)

        slots.sort(key=lambda s: (s.start, s.end))
        return slots

    @staticmethod
    def _tile(window: TimeWindow, duration_minutes: int) -> List[Slot]:
        """
        Tile a single window.

        Example (60 minutes):
        Window: 09:00 - 11:30
        Result: [09:00-10:00, 10:00-11:00]
        """
        tiles: List[Slot] = []
        cursor = window.start

        end = cursor.add(minutes=duration_minutes)
        while end <= window.end:
            tiles.append(Slot(start=cursor, end=end))
            cursor, end = end, end.add(minutes=duration_minutes)

        return tiles
