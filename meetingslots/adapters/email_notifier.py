"""
Booking notification emails sent through Resend.
"""

from __future__ import annotations

import html
import logging
from typing import Any, Callable, Dict, List, Optional

import resend

from ..domain.models import Booking, EventType, ensure_utc

logger = logging.getLogger(__name__)

DATETIME_FORMAT = "dddd, MMMM D, YYYY HH:mm zz"


class EmailNotifier:
    """
    Emails the host when a booking is created, rescheduled or cancelled.

    Times in the message are shown in the host's current timezone. The
    notifier never returns a calendar event id.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        to_address: str,
        send: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        """
        Initialize the notifier.

        Args:
            api_key: Resend API key
            from_address: Sender address
            to_address: Host inbox that receives the notifications
            send: Replacement for ``resend.Emails.send`` (tests)
        """
        resend.api_key = api_key
        self.from_address = from_address
        self.to_address = to_address
        self._send = send or resend.Emails.send

    def booking_created(self, booking: Booking, event_type: EventType) -> None:
        rows = self._rows(booking, event_type)
        if booking.guest_notes:
            rows.append(("Notes", booking.guest_notes))
        self._deliver(
            f"New Booking: {self._title(event_type)} with {booking.guest_name}",
            "New Booking Scheduled",
            "A new booking has been scheduled.",
            rows,
        )

    def booking_rescheduled(self, booking: Booking, event_type: EventType) -> None:
        self._deliver(
            f"Booking Rescheduled: {self._title(event_type)} with {booking.guest_name}",
            "Booking Rescheduled",
            "A booking has been rescheduled.",
            self._rows(booking, event_type, prefix="New "),
        )

    def booking_cancelled(self, booking: Booking, event_type: EventType) -> None:
        self._deliver(
            f"Booking Cancelled: {self._title(event_type)} with {booking.guest_name}",
            "Booking Cancelled",
            "A booking has been cancelled.",
            self._rows(booking, event_type),
        )

    @staticmethod
    def _title(event_type: EventType) -> str:
        return event_type.title or event_type.id

    def _rows(self, booking: Booking, event_type: EventType, prefix: str = "") -> List[tuple]:
        tz = event_type.host.tzinfo
        return [
            ("Event", self._title(event_type)),
            ("Guest", f"{booking.guest_name} ({booking.guest_email})"),
            (f"{prefix}Start", ensure_utc(booking.start).in_timezone(tz).format(DATETIME_FORMAT)),
            (f"{prefix}End", ensure_utc(booking.end).in_timezone(tz).format(DATETIME_FORMAT)),
        ]

    def _deliver(self, subject: str, heading: str, intro: str, rows: List[tuple]) -> None:
        items = "".join(
            f"<li><strong>{html.escape(label)}:</strong> {html.escape(value)}</li>"
            for label, value in rows
        )
        email_data = {
            "from": self.from_address,
            "to": [self.to_address],
            "subject": subject,
            "html": f"<h2>{heading}</h2><p>{intro}</p><ul>{items}</ul>",
        }

        logger.info("Sending booking email to %s: %s", self.to_address, subject)
        response = self._send(email_data)
        logger.debug("Resend response: %s", response)
