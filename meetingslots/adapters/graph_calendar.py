"""
Microsoft Graph calendar sync for committed bookings.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from ..domain.exceptions import CalendarAPIError
from ..domain.models import Booking, EventType, ensure_utc

logger = logging.getLogger(__name__)


class GraphCalendarSync:
    """
    Mirrors bookings into the host's Outlook calendar.

    Implements the booking notifier hooks: events are created on booking,
    moved on reschedule and deleted on cancellation. The sync keeps no state
    of its own; it works from ``booking.calendar_event_id`` and hands new
    event ids back to the booking service, which stores them.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        access_token: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        """
        Initialize the sync client.

        Args:
            access_token: Valid Microsoft Graph access token
            session: Optional requests session (shared or stubbed)
            timeout: Per-request timeout in seconds
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def booking_created(self, booking: Booking, event_type: EventType) -> Optional[str]:
        data = self._request(
            "POST",
            f"{self.GRAPH_API_ENDPOINT}/me/events",
            json=self._event_payload(booking, event_type),
        )
        event_id = data.get("id")
        logger.debug("Created calendar event %s for booking %s", event_id, booking.id)
        return event_id

    def booking_rescheduled(self, booking: Booking, event_type: EventType) -> Optional[str]:
        event_id = booking.calendar_event_id
        if event_id is None:
            return self.booking_created(booking, event_type)

        self._request(
            "PATCH",
            f"{self.GRAPH_API_ENDPOINT}/me/events/{event_id}",
            json={
                "start": self._graph_datetime(booking.start),
                "end": self._graph_datetime(booking.end),
            },
        )
        return event_id

    def booking_cancelled(self, booking: Booking, event_type: EventType) -> Optional[str]:
        event_id = booking.calendar_event_id
        if event_id is None:
            logger.debug("No calendar event recorded for booking %s", booking.id)
            return None

        self._request("DELETE", f"{self.GRAPH_API_ENDPOINT}/me/events/{event_id}")
        return None

    def test_connection(self) -> Dict[str, Any]:
        """Fetch the signed-in user's profile."""
        return self._request("GET", f"{self.GRAPH_API_ENDPOINT}/me")

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Microsoft Graph {method} {url} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _graph_datetime(value: datetime) -> Dict[str, str]:
        return {
            "dateTime": ensure_utc(value).format("YYYY-MM-DD[T]HH:mm:ss"),
            "timeZone": "UTC",
        }

    def _event_payload(self, booking: Booking, event_type: EventType) -> Dict[str, Any]:
        title = event_type.title or event_type.id
        subject = f"{title} with {booking.guest_name}" if booking.guest_name else title

        payload: Dict[str, Any] = {
            "subject": subject,
            "start": self._graph_datetime(booking.start),
            "end": self._graph_datetime(booking.end),
            "body": {"contentType": "text", "content": booking.guest_notes or ""},
        }
        if booking.guest_email:
            payload["attendees"] = [
                {
                    "emailAddress": {
                        "address": booking.guest_email,
                        "name": booking.guest_name or booking.guest_email,
                    },
                    "type": "required",
                }
            ]
        return payload
