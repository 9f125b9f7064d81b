"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..clock import ManualClock
from ..config import AppConfig, load_config
from ..domain.models import BookingRecord, ReservationHandle
from ..domain.outcomes import ReservationFailure
from ..factory import build_system
from ..services.events import ReservationEvent

app = typer.Typer(
    name="slotreservation",
    help="Reserve, confirm and release hospital appointment slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled mock schedules instead of the hospital API."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> AppConfig:
    try:
        return load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date(value: Optional[str], tz: str, default_days_ahead: int = 1):
    if value is None:
        return pendulum.now(tz).add(days=default_days_ahead).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _describe(result) -> str:
    """One-line rendering of a service result for the step table."""
    if isinstance(result, ReservationFailure):
        return f"[yellow]{type(result).__name__}[/yellow]: {result.message}"
    if isinstance(result, ReservationHandle):
        return f"[green]held[/green] v{result.version} until {result.expires_at.format('HH:mm:ss')}"
    if isinstance(result, BookingRecord):
        return f"[green]booked[/green] {result.booking_id}"
    if isinstance(result, list):
        return f"{len(result)} free slot(s)"
    return str(result)


@app.command()
def doctors(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List bookable doctors.
    """
    config = _load(config_file)
    system = build_system(config, mock=mock)

    try:
        doctor_list = system.provider.list_doctors()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not doctor_list:
        console.print("[yellow]No doctors available.[/yellow]")
        return

    table = Table(
        title="Doctors",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Specialization", style="dim")

    for doctor in doctor_list:
        table.add_row(doctor.id, doctor.name, doctor.specialization)

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    doctor_id: Annotated[str, typer.Argument(help="Doctor ID (see 'doctors')")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to tomorrow.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show free slots of a doctor for one day.

    Examples:

        slotreservation slots doc-perera --mock
        slotreservation slots doc-perera --date 2024-06-03
    """
    config = _load(config_file)
    day = _parse_date(date, config.timezone)
    system = build_system(config, mock=mock)

    result = system.service.available_slots(doctor_id, day)
    if isinstance(result, ReservationFailure):
        console.print(f"[bold red]Error:[/bold red] {result.message}")
        raise typer.Exit(1)

    console.print()
    if not result:
        console.print(f"[yellow]⚠ No free slots for {doctor_id} on {day.isoformat()}.[/yellow]\n")
        return

    console.print(f"[bold green]✓ {len(result)} free slot(s) for {doctor_id} on {day.isoformat()}:[/bold green]\n")
    times: List[str] = [key.start_time.strftime("%H:%M") for key in result]
    for row_start in range(0, len(times), 8):
        console.print("  " + "  ".join(times[row_start:row_start + 8]))
    console.print()


@app.command()
def simulate(
    doctor_id: Annotated[Optional[str], typer.Option("--doctor", help="Doctor ID. Defaults to the first mock doctor.")] = None,
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to tomorrow.")] = None,
    config_file: ConfigOption = None,
):
    """
    Replay two patients racing for the same slot on a simulated clock.

    Patient A holds the first free slot, patient B is turned away, A abandons
    checkout, the hold expires and is swept, then B reserves and confirms.
    """
    config = _load(config_file)
    day = _parse_date(date, config.timezone)

    clock = ManualClock(
        pendulum.datetime(day.year, day.month, day.day, tz=config.timezone).subtract(days=1).add(hours=8)
    )
    system = build_system(config, clock=clock, mock=True)
    service = system.service

    events: List[ReservationEvent] = []
    system.events.subscribe(events.append)

    doctor_id = doctor_id or next((d.id for d in system.provider.list_doctors()), None)
    if doctor_id is None:
        console.print("[bold red]Error:[/bold red] No doctors in mock data.")
        raise typer.Exit(1)

    free = service.available_slots(doctor_id, day)
    if isinstance(free, ReservationFailure) or not free:
        message = free.message if isinstance(free, ReservationFailure) else "no free slots"
        console.print(f"[bold red]Error:[/bold red] {message}")
        raise typer.Exit(1)

    slot = free[0]
    slot_time = slot.start_time.strftime("%H:%M")
    hold_seconds = int(config.reservation.hold_duration().total_seconds())
    steps = []

    def step(label: str, result) -> None:
        steps.append((clock.now().format("HH:mm:ss"), label, _describe(result)))

    handle_a = service.reserve_slot(doctor_id, day, slot_time, "patient-A")
    step(f"A reserves {slot_time}", handle_a)

    clock.advance(seconds=1)
    step(f"B reserves {slot_time}", service.reserve_slot(doctor_id, day, slot_time, "patient-B"))

    clock.advance(seconds=hold_seconds)
    freed = system.sweeper.run_once()
    step("Sweeper runs", f"freed {', '.join(str(key) for key in freed) or 'nothing'}")

    clock.advance(seconds=1)
    handle_b = service.reserve_slot(doctor_id, day, slot_time, "patient-B")
    step(f"B reserves {slot_time} again", handle_b)

    if isinstance(handle_a, ReservationHandle):
        step("A tries to confirm", service.confirm_reservation(handle_a))

    if isinstance(handle_b, ReservationHandle):
        clock.advance(seconds=min(300, hold_seconds - 1))
        step(
            "B confirms",
            service.confirm_reservation(
                handle_b, {"appointment_type": "consultation", "reason": "Recurring chest pain after exercise"}
            ),
        )

    remaining = service.available_slots(doctor_id, day)
    still_offered = isinstance(remaining, list) and slot in remaining
    step(f"{slot_time} still offered?", "yes" if still_offered else "no")

    table = Table(title=f"Race for {slot}", show_header=True, header_style="bold cyan")
    table.add_column("Clock", style="dim")
    table.add_column("Step", style="bold")
    table.add_column("Result")
    for row in steps:
        table.add_row(*row)

    console.print()
    console.print(table)
    console.print(f"\n[dim]{len(events)} event(s) published: "
                  f"{', '.join(type(event).__name__ for event in events)}[/dim]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotreservation[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
