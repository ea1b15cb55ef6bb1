"""
Tests for booking emails against a stubbed Resend transport.
"""

import pendulum
import pytest

from meetingslots.adapters.email_notifier import EmailNotifier
from meetingslots.domain.models import Booking, EventType, Host


class StubSender:
    def __init__(self):
        self.sent = []

    def __call__(self, email_data):
        self.sent.append(email_data)
        return {"id": f"email-{len(self.sent)}"}


@pytest.fixture
def sender():
    return StubSender()


@pytest.fixture
def notifier(sender):
    return EmailNotifier(
        api_key="re_test",
        from_address="bookings@example.com",
        to_address="host@example.com",
        send=sender,
    )


@pytest.fixture
def event_type():
    return EventType(id="intro", host=Host(timezone="Europe/Stockholm"), duration_minutes=30, title="Intro call")


@pytest.fixture
def booking():
    return Booking(
        id="b1",
        event_type_id="intro",
        start=pendulum.datetime(2024, 1, 15, 8, 0, tz="UTC"),
        end=pendulum.datetime(2024, 1, 15, 8, 30, tz="UTC"),
        guest_name="Ada <script>",
        guest_email="ada@example.com",
        guest_notes="Roadmap & budget",
    )


class TestEmailNotifier:
    """Tests for EmailNotifier."""

    def test_created_email(self, notifier, sender, booking, event_type):
        assert notifier.booking_created(booking, event_type) is None

        email = sender.sent[0]
        assert email["from"] == "bookings@example.com"
        assert email["to"] == ["host@example.com"]
        assert email["subject"] == "New Booking: Intro call with Ada <script>"
        assert "<h2>New Booking Scheduled</h2>" in email["html"]
        assert "Roadmap &amp; budget" in email["html"]

    def test_guest_input_escaped(self, notifier, sender, booking, event_type):
        notifier.booking_created(booking, event_type)

        assert "<script>" not in sender.sent[0]["html"]
        assert "Ada &lt;script&gt;" in sender.sent[0]["html"]

    def test_times_in_host_timezone(self, notifier, sender, booking, event_type):
        """08:00 UTC in January is 09:00 in Stockholm."""
        notifier.booking_created(booking, event_type)

        assert "Monday, January 15, 2024 09:00" in sender.sent[0]["html"]

    def test_rescheduled_email(self, notifier, sender, booking, event_type):
        notifier.booking_rescheduled(booking, event_type)

        email = sender.sent[0]
        assert email["subject"] == "Booking Rescheduled: Intro call with Ada <script>"
        assert "New Start:" in email["html"]

    def test_cancelled_email(self, notifier, sender, booking, event_type):
        notifier.booking_cancelled(booking, event_type)

        email = sender.sent[0]
        assert email["subject"] == "Booking Cancelled: Intro call with Ada <script>"
        assert "Notes" not in email["html"]

    def test_title_falls_back_to_id(self, notifier, sender, booking):
        untitled = EventType(id="intro", host=Host(timezone="UTC"), duration_minutes=30)

        notifier.booking_cancelled(booking, untitled)

        assert sender.sent[0]["subject"].startswith("Booking Cancelled: intro with")
