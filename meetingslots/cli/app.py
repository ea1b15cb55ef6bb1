"""
Main CLI application using Typer.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, List, NoReturn, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.booking_store import JsonBookingRepository
from ..adapters.email_notifier import EmailNotifier
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_calendar import GraphCalendarSync
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingPolicyError, SchedulingError
from ..domain.models import UTC, EventType, Slot, parse_instant
from ..services.booking_service import BookingNotifier, BookingService
from ..services.slot_service import SlotService

app = typer.Typer(
    name="meetingslots",
    help="Resolve bookable meeting slots and manage bookings",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


class CliState:
    """Options shared by every command."""

    def __init__(self, config_path: Optional[Path], verbose: bool):
        self.config_path = config_path
        self.verbose = verbose
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = AppConfig.load_from_yaml(self.config_path or get_default_config_path())
            _configure_logging("DEBUG" if self.verbose else self._config.log_level)
        return self._config


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _event_type(config: AppConfig, event_types: dict, identifier: str) -> EventType:
    found = config.find_event_type(identifier)
    if found is None:
        _fail(f"Unknown event type: {identifier}")
    return event_types[found.id]


def _parse_now(value: Optional[str]) -> DateTime:
    if value is None:
        return pendulum.now(UTC)
    return _parse_instant(value, None)


def _parse_instant(value: str, event_type: Optional[EventType]) -> DateTime:
    """
    Parse an ISO-8601 instant.

    Values without an offset are read as wall-clock time of the event
    type's host, or as UTC when there is no event type.
    """
    tz = event_type.host.tzinfo if event_type is not None else UTC
    try:
        return parse_instant(value, tz=tz)
    except ValueError as exc:
        _fail(f"Could not parse time {value!r}: {exc}")


def _parse_date(value: str) -> date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError:
        _fail(f"Could not parse date {value!r}, expected YYYY-MM-DD")


def _notifiers(config: AppConfig) -> List[BookingNotifier]:
    notifiers: List[BookingNotifier] = []

    if config.graph is not None and config.graph.calendar_sync:
        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            authority_url=config.graph.get_authority_url(),
        )
        notifiers.append(GraphCalendarSync(access_token=authenticator.get_access_token()))

    if config.email is not None and config.email.enabled:
        notifiers.append(
            EmailNotifier(
                api_key=config.email.api_key,
                from_address=config.email.from_address,
                to_address=config.email.notify_address,
            )
        )

    return notifiers


def _format_local(slot: Slot, event_type: EventType) -> str:
    tz = event_type.host.tzinfo
    start = slot.start.in_timezone(tz)
    end = slot.end.in_timezone(tz)
    return f"{start.format('ddd YYYY-MM-DD HH:mm')} - {end.format('HH:mm')}"


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Resolve bookable meeting slots and manage bookings.
    """
    ctx.obj = CliState(config_path=config_file, verbose=verbose)


@app.command("slots")
def slots(
    ctx: typer.Context,
    day: Annotated[str, typer.Argument(help="Date in the host's locale (YYYY-MM-DD)")],
    event_type_id: Annotated[str, typer.Option("--event-type", "-e", help="Event type id or slug")],
    json_output: Annotated[bool, typer.Option("--json", help="Print the slots as JSON.")] = False,
    include_past: Annotated[bool, typer.Option("--all", help="Include slots that already started.")] = False,
    now: Annotated[Optional[str], typer.Option("--now", help="Reference instant (ISO-8601). Defaults to the current time.")] = None,
):
    """
    Show available slots for one date.

    Examples:

        meetingslots slots 2024-01-15 --event-type intro

        meetingslots slots 2024-01-15 -e intro --json
    """
    try:
        config = ctx.obj.config
        event_types = config.build_event_types()
        event_type = _event_type(config, event_types, event_type_id)
        target = _parse_date(day)
        reference = _parse_now(now)

        repository = JsonBookingRepository(config.bookings_file, event_types)
        bookings = repository.list_bookings(event_type.id)
        service = SlotService()

        if include_past:
            found = service.available_slots(target, event_type, bookings)
        else:
            found = service.future_slots(target, event_type, bookings, reference)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    if json_output:
        typer.echo(json.dumps({"slots": [slot.to_dict() for slot in found]}))
        return

    if not found:
        console.print(f"[yellow]No available slots on {target.isoformat()}.[/yellow]")
        return

    table = Table(
        title=f"{event_type.title or event_type.id} ({event_type.host.timezone})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Local time", style="bold yellow")
    table.add_column("Start (UTC)", style="dim")

    for slot in found:
        table.add_row(_format_local(slot, event_type), slot.to_dict()["start"])

    console.print()
    console.print(table)
    console.print()


@app.command("dates")
def dates(
    ctx: typer.Context,
    event_type_id: Annotated[str, typer.Option("--event-type", "-e", help="Event type id or slug")],
    now: Annotated[Optional[str], typer.Option("--now", help="Reference instant (ISO-8601).")] = None,
):
    """
    List the dates that still have bookable slots.
    """
    try:
        config = ctx.obj.config
        event_types = config.build_event_types()
        event_type = _event_type(config, event_types, event_type_id)
        repository = JsonBookingRepository(config.bookings_file, event_types)

        found = SlotService().bookable_dates(
            event_type,
            repository.list_bookings(event_type.id),
            _parse_now(now),
        )
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    if not found:
        console.print("[yellow]No bookable dates in the notice window.[/yellow]")
        return

    for day in found:
        console.print(f"  {day.isoformat()} ({day.format('dddd')})")


@app.command("check")
def check(
    ctx: typer.Context,
    start: Annotated[str, typer.Argument(help="Proposed start (ISO-8601; no offset = host local time)")],
    event_type_id: Annotated[str, typer.Option("--event-type", "-e", help="Event type id or slug")],
    now: Annotated[Optional[str], typer.Option("--now", help="Reference instant (ISO-8601).")] = None,
):
    """
    Check a proposed start against every booking policy.
    """
    try:
        config = ctx.obj.config
        event_types = config.build_event_types()
        event_type = _event_type(config, event_types, event_type_id)
        proposed = _parse_instant(start, event_type)
        repository = JsonBookingRepository(config.bookings_file, event_types)

        guard = SlotService().policy_guard_for(event_type)
        violations = guard.evaluate(
            _parse_now(now),
            proposed,
            event_type,
            repository.list_bookings(event_type.id),
        )
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    if not violations:
        console.print("[green]✓ All booking policies pass.[/green]")
        return

    for violation in violations:
        console.print(f"[red]✗ {violation.message}[/red]")
    raise typer.Exit(1)


@app.command("book")
def book(
    ctx: typer.Context,
    start: Annotated[str, typer.Argument(help="Slot start (ISO-8601; no offset = host local time)")],
    event_type_id: Annotated[str, typer.Option("--event-type", "-e", help="Event type id or slug")],
    name: Annotated[str, typer.Option("--name", help="Guest name")],
    email: Annotated[str, typer.Option("--email", help="Guest email")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes from the guest")] = None,
    now: Annotated[Optional[str], typer.Option("--now", help="Reference instant (ISO-8601).")] = None,
):
    """
    Book a slot for a guest.
    """
    try:
        config = ctx.obj.config
        event_types = config.build_event_types()
        event_type = _event_type(config, event_types, event_type_id)
        proposed = _parse_instant(start, event_type)
        repository = JsonBookingRepository(config.bookings_file, event_types)
        service = BookingService(repository, notifiers=_notifiers(config))

        booking = service.create_booking(
            event_type.id,
            proposed,
            guest_name=name,
            guest_email=email,
            guest_notes=notes,
            now=_parse_now(now),
        )
    except BookingPolicyError as e:
        for violation in e.violations:
            console.print(f"[red]✗ {violation.message}[/red]")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    console.print(f"[bold green]✓ Booked {booking.window}[/bold green] (id: {booking.id})")


@app.command("cancel")
def cancel(
    ctx: typer.Context,
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
):
    """
    Cancel a booking.
    """
    try:
        config = ctx.obj.config
        repository = JsonBookingRepository(config.bookings_file, config.build_event_types())
        service = BookingService(repository, notifiers=_notifiers(config))
        booking = service.cancel_booking(booking_id)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    console.print(f"[green]✓ Booking {booking.id} cancelled.[/green]")


@app.command("reschedule")
def reschedule(
    ctx: typer.Context,
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    new_start: Annotated[str, typer.Argument(help="New start (ISO-8601; no offset = host local time)")],
    now: Annotated[Optional[str], typer.Option("--now", help="Reference instant (ISO-8601).")] = None,
):
    """
    Move a booking to another slot.
    """
    try:
        config = ctx.obj.config
        event_types = config.build_event_types()
        repository = JsonBookingRepository(config.bookings_file, event_types)
        existing = repository.get_booking(booking_id)
        event_type = repository.get_event_type(existing.event_type_id)
        service = BookingService(repository, notifiers=_notifiers(config))

        booking = service.reschedule_booking(
            booking_id,
            _parse_instant(new_start, event_type),
            now=_parse_now(now),
        )
    except BookingPolicyError as e:
        for violation in e.violations:
            console.print(f"[red]✗ {violation.message}[/red]")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    console.print(f"[green]✓ Booking {booking.id} moved to {booking.window}.[/green]")


@app.command("event-types")
def event_types(ctx: typer.Context):
    """
    List all configured event types.
    """
    try:
        config = ctx.obj.config
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if not config.event_types:
        console.print("[yellow]No event types defined in the config file.[/yellow]")
        return

    table = Table(title="Event types", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold yellow")
    table.add_column("Host")
    table.add_column("Duration")
    table.add_column("Notice")
    table.add_column("Weekly cap", style="dim")

    for event in config.event_types:
        table.add_row(
            event.id,
            event.host,
            f"{event.duration_minutes} min",
            f"{event.minimum_notice_hours} h - {event.maximum_notice_days} d",
            str(event.max_bookings_per_week) if event.max_bookings_per_week else "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command("test-auth")
def test_auth(
    ctx: typer.Context,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication for calendar sync.
    """
    try:
        config = ctx.obj.config
        if config.graph is None:
            _fail("No 'graph' section in the config file.")

        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            authority_url=config.graph.get_authority_url(),
        )
        user_info = GraphCalendarSync(
            access_token=authenticator.get_access_token(force_refresh=force)
        ).test_connection()
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        _fail(str(e))

    console.print(
        f"[bold green]✓ Signed in as[/bold green] "
        f"{user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}"
    )


@app.command("clear-cache")
def clear_cache(ctx: typer.Context):
    """
    Clear the Microsoft Graph token cache.
    """
    try:
        config = ctx.obj.config
        if config.graph is None:
            _fail("No 'graph' section in the config file.")

        GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
        ).clear_cache()
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    console.print("[green]✓ Token cache cleared.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]meetingslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
