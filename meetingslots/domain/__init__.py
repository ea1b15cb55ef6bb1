"""
Domain layer - Pure slot-resolution logic without external dependencies.
"""

from .availability import WeeklyAvailability, day_of_week, validate_rule
from .conflict_filter import ConflictFilter
from .models import (
    AvailabilityRule,
    Booking,
    BookingStatus,
    EventType,
    Host,
    LocalTime,
    Slot,
    TimeWindow,
)
from .policy import BookingPolicyGuard, PolicyViolationReason, SlotPolicyViolation
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilityRule",
    "Booking",
    "BookingPolicyGuard",
    "BookingStatus",
    "ConflictFilter",
    "EventType",
    "Host",
    "LocalTime",
    "PolicyViolationReason",
    "Slot",
    "SlotGenerator",
    "SlotPolicyViolation",
    "TimeWindow",
    "WeeklyAvailability",
    "day_of_week",
    "validate_rule",
]
