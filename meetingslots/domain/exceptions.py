"""
Domain-specific exception hierarchy for the scheduling engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .policy import SlotPolicyViolation


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidAvailabilityRule(SchedulingError, ValueError):
    """Raised when a host tries to save a rule whose start is not before its end."""


class SlotNotOffered(SchedulingError):
    """Raised when a requested time is not one of the host's slots."""


class SlotNoLongerAvailable(SchedulingError):
    """Raised when the chosen slot overlaps a booking committed in the meantime."""

    def __init__(self, message: str = "This time slot is no longer available"):
        super().__init__(message)


class BookingPolicyError(SchedulingError):
    """Raised by the booking flow when one or more policy checks fail."""

    def __init__(self, violations: List["SlotPolicyViolation"]):
        self.violations = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class BookingStateError(SchedulingError):
    """Raised on an illegal booking status transition."""


class UnknownHost(SchedulingError, LookupError):
    """Raised when a host id cannot be resolved."""


class UnknownEventType(SchedulingError, LookupError):
    """Raised when an event type id cannot be resolved."""


class UnknownBooking(SchedulingError, LookupError):
    """Raised when a booking id cannot be resolved."""


class CalendarAPIError(SchedulingError):
    """Raised when the remote calendar cannot be updated."""


class AuthenticationError(SchedulingError):
    """Raised when authentication or token handling fails."""
