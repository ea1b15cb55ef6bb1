"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingNotifier, BookingRepository, BookingService
from .slot_service import SlotService

__all__ = ["BookingNotifier", "BookingRepository", "BookingService", "SlotService"]
