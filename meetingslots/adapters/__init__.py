"""
Adapters layer - Persistence and external calendar integrations.
"""

from .booking_store import (
    InMemoryBookingRepository,
    JsonBookingRepository,
    booking_from_dict,
    booking_to_dict,
)
from .graph_authenticator import GraphAuthenticator
from .graph_calendar import GraphCalendarSync

__all__ = [
    "GraphAuthenticator",
    "GraphCalendarSync",
    "InMemoryBookingRepository",
    "JsonBookingRepository",
    "booking_from_dict",
    "booking_to_dict",
]
