"""
Developer CLI for checking availability against a booking store.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.clock import SystemClock
from ..adapters.http_store import HttpBookingStore
from ..adapters.json_store import JsonBookingStore
from ..adapters.memory_store import InMemoryBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import InvalidInterval, StoreUnavailable
from ..domain.models import ChangeSummary, Conflict, UserPreferences, format_hhmm, parse_hhmm
from ..domain.service_rules import calculate_service_duration
from ..domain.time_grid import format_time, merge_slots, parse_time
from ..services.availability_engine import AvailabilityEngine, BookingStoreProtocol
from ..services.notifier import AvailabilityNotifier

app = typer.Typer(
    name="availabilityengine",
    help="Check booking availability and resolve scheduling conflicts",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]

UNAVAILABLE_MESSAGE = "This time is unavailable."
STORE_DOWN_MESSAGE = "We could not check availability right now, please try again."


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load the given config file, or the default one when present."""
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)

    console.print("[dim]No config.yaml found, using built-in defaults and mock bookings.[/dim]")
    return AppConfig()


def _build_store(config: AppConfig) -> BookingStoreProtocol:
    if config.store.kind == "memory":
        return InMemoryBookingStore()
    if config.store.kind == "http":
        return HttpBookingStore(
            base_url=config.store.base_url,
            api_token=config.store.api_token,
            timezone=config.timezone,
            timeout=config.store_timeout_seconds,
        )
    return JsonBookingStore(config.store.path)


def _end_time(start: str, end: Optional[str], services: List[str]) -> str:
    """Given end time, or start plus the standard length of the services."""
    if end is not None:
        return parse_time(end)
    return format_hhmm(parse_hhmm(parse_time(start)) + calculate_service_duration(services))


def _conflict_table(conflicts: List[Conflict]) -> Table:
    table = Table(title="Conflicts", show_header=True, header_style="bold cyan")
    table.add_column("Type", style="bold yellow")
    table.add_column("Booked")
    table.add_column("Requested")
    table.add_column("Severity")
    table.add_column("Booking", style="dim")

    for conflict in conflicts:
        severity_style = "red" if conflict.severity.value == "major" else "yellow"
        table.add_row(
            conflict.kind.value,
            str(conflict.existing),
            str(conflict.requested),
            f"[{severity_style}]{conflict.severity.value}[/{severity_style}]",
            conflict.booking_id or "-",
        )
    return table


@app.command()
def check(
    date: Annotated[str, typer.Argument(help="Event date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time, e.g. 14:30 or '2:30 PM'")],
    end: Annotated[Optional[str], typer.Argument(help="End time; defaults to the services' standard length")] = None,
    service: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Booked service (DJ, Photography, Karaoke). Repeatable.")] = None,
    early: Annotated[bool, typer.Option("--allow-early-start", help="Allow moving the event earlier.")] = False,
    late: Annotated[bool, typer.Option("--allow-late-end", help="Allow moving the event later.")] = False,
    morning: Annotated[bool, typer.Option("--prefer-morning", help="Rank morning alternatives first.")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Check whether an event can be booked and resolve conflicts.

    Examples:

        availabilityengine check 2024-02-15 15:00 17:00 -s DJ

        availabilityengine check 2024-02-15 18:00 -s DJ -s Karaoke

        availabilityengine check 2024-02-15 "1:00 PM" "1:45 PM" --allow-early-start
    """
    _setup_logging(verbose)

    try:
        config = _load_config(config_file)
        engine = AvailabilityEngine.from_config(_build_store(config), SystemClock(config.timezone), config)
        slot = (parse_time(start), _end_time(start, end, service or []))
        prefs = UserPreferences(allow_early_start=early, allow_late_end=late, prefer_morning=morning)

        async def run():
            result = await engine.check_availability(date, slot, service or [])
            resolution = None
            if not result.available:
                resolution = await engine.resolve_conflicts(result.date, result.all_conflicts, prefs)
            return result, resolution

        result, resolution = asyncio.run(run())

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except StoreUnavailable as e:
        console.print(f"[bold red]{STORE_DOWN_MESSAGE}[/bold red]")
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(2)

    requested = f"{format_time(slot[0], '12h')} - {format_time(slot[1], '12h')}"

    if result.available:
        console.print(Panel.fit(
            f"[bold green]✓ Available[/bold green]\n\n{result.date.to_date_string()} | {requested}",
            title="Availability"
        ))
        return

    console.print(f"\n[bold red]✗ {UNAVAILABLE_MESSAGE}[/bold red] {result.date.to_date_string()} | {requested}\n")
    console.print(_conflict_table(result.all_conflicts))
    console.print()

    if resolution.success and resolution.new_slot is not None:
        tags = ", ".join(tag.value for tag in resolution.adjustments)
        console.print(f"[bold green]✓ Suggested adjustment:[/bold green] {resolution.new_slot} ({tags})\n")
    elif resolution.alternatives:
        console.print("[bold cyan]Here are some alternatives:[/bold cyan]")
        for alternative in resolution.alternatives:
            console.print(f"  {alternative.slot}  [dim](score {alternative.score:.2f})[/dim]")
        console.print()
    else:
        console.print("[yellow]⚠ No alternative time is free on this date.[/yellow]\n")

    raise typer.Exit(3)


@app.command()
def suggest(
    date: Annotated[str, typer.Argument(help="Event date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time, e.g. 14:30 or '2:30 PM'")],
    end: Annotated[str, typer.Argument(help="End time, e.g. 18:30 or '6:30 PM'")],
    max_results: Annotated[Optional[int], typer.Option("--max", "-n", min=0, help="Number of alternatives")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    List alternative times for a slot that clashes with a booking.
    """
    _setup_logging(verbose)

    try:
        config = _load_config(config_file)
        engine = AvailabilityEngine.from_config(_build_store(config), SystemClock(config.timezone), config)
        slot = (parse_time(start), parse_time(end))

        async def run():
            result = await engine.check_availability(date, slot)
            if result.available:
                return result, []
            return result, await engine.suggest(result.date, result.all_conflicts[0], max_results)

        result, alternatives = asyncio.run(run())

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except StoreUnavailable as e:
        console.print(f"[bold red]{STORE_DOWN_MESSAGE}[/bold red]\n[dim]{e}[/dim]")
        raise typer.Exit(2)

    if result.available:
        console.print(f"[green]✓ {slot[0]}-{slot[1]} is free, nothing to suggest.[/green]")
        return
    if not alternatives:
        console.print("[yellow]⚠ No alternative time is free on this date.[/yellow]")
        raise typer.Exit(3)

    table = Table(title=f"Alternatives for {slot[0]}-{slot[1]}", show_header=True, header_style="bold cyan")
    table.add_column("Time")
    table.add_column("12h")
    table.add_column("Score", justify="right")

    for alternative in alternatives:
        times = alternative.slot.to_dict()
        table.add_row(
            str(alternative.slot),
            f"{format_time(times['start'], '12h')} - {format_time(times['end'], '12h')}",
            f"{alternative.score:.2f}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def grid(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    step: Annotated[int, typer.Option("--step", help="Grid step in minutes")] = 15,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Show free and blocked periods of a day.
    """
    _setup_logging(verbose)

    try:
        config = _load_config(config_file)
        engine = AvailabilityEngine.from_config(_build_store(config), SystemClock(config.timezone), config)
        cells = asyncio.run(engine.day_grid(date, step))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except StoreUnavailable as e:
        console.print(f"[bold red]{STORE_DOWN_MESSAGE}[/bold red]\n[dim]{e}[/dim]")
        raise typer.Exit(2)

    table = Table(title=f"Availability {date}", show_header=True, header_style="bold cyan")
    table.add_column("Time")
    table.add_column("Status")

    for cell in merge_slots(cells):
        status = "[green]free[/green]" if cell.available else "[red]blocked[/red]"
        table.add_row(str(cell.slot), status)

    console.print()
    console.print(table)
    console.print()


@app.command()
def watch(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    interval: Annotated[Optional[float], typer.Option("--interval", "-i", help="Poll interval in seconds")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Poll the booking store and print changes for a date until interrupted.
    """
    _setup_logging(verbose)

    try:
        config = _load_config(config_file)
        notifier = AvailabilityNotifier(
            _build_store(config),
            SystemClock(config.timezone),
            poll_interval_seconds=interval or config.poll_interval_seconds,
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except StoreUnavailable as e:
        console.print(f"[bold red]{STORE_DOWN_MESSAGE}[/bold red]\n[dim]{e}[/dim]")
        raise typer.Exit(2)

    def on_change(summary: ChangeSummary) -> None:
        stamp = summary.checked_at.format("HH:mm:ss")
        for booking in summary.added:
            console.print(f"[green]+[/green] {stamp} booking {booking.booking_id} {booking.slot}")
        for booking in summary.removed:
            console.print(f"[red]-[/red] {stamp} booking {booking.booking_id} {booking.slot}")

    async def run():
        subscription = notifier.subscribe(date, on_change)
        try:
            await subscription.wait_closed()
        finally:
            await notifier.close()

    console.print(f"[bold]Watching {date}[/bold] every {notifier.poll_interval_seconds:g}s (Ctrl+C to stop)")
    try:
        asyncio.run(run())
    except InvalidInterval as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]availabilityengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
