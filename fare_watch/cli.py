"""fare-watch CLI - round-trip award and cash fare monitor."""

import asyncio
import logging
from typing import Annotated, Optional

import typer
from rich.markup import escape

from .alerts import AlertQueue
from .fetchers import SeatsAeroFetcher
from .formatter import (
    console,
    print_alerts,
    print_cash_requests,
    print_monitor_detail,
    print_monitors,
)
from .handshake import CashHandshake
from .models import AVAIL_TYPES, CHANNELS, Leg, Monitor
from .scheduler import Scheduler
from .store import MonitorNotFound, MonitorStore, ValidationError

app = typer.Typer(
    name="fare-watch",
    help="✈ Track the cheapest round-trip award and cash fares for your routes",
    rich_markup_mode="rich",
)

monitor_app = typer.Typer(help="Monitor management commands")
app.add_typer(monitor_app, name="monitor")

alerts_app = typer.Typer(help="Pending alert commands")
app.add_typer(alerts_app, name="alerts")

cash_app = typer.Typer(help="Cash-price handshake commands")
app.add_typer(cash_app, name="cash")

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _scheduler(store: MonitorStore) -> Scheduler:
    queue = AlertQueue()
    return Scheduler(store, queue, SeatsAeroFetcher(), CashHandshake(store, queue))


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def _resolve(store: MonitorStore, monitor_id: str) -> Monitor:
    """Find a monitor by full id or unique id prefix."""
    monitor = store.get_monitor(monitor_id)
    if monitor is not None:
        return monitor
    matches = [m for m in store.list_monitors() if m.id.startswith(monitor_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        _fail(f"Ambiguous monitor id {monitor_id!r}: {len(matches)} matches")
    _fail(f"Monitor not found: {monitor_id}")


def _split_cabins(cabins: str) -> list[str]:
    return [c.strip() for c in cabins.split(",") if c.strip()]


def _check_choice(value: Optional[str], choices: tuple, name: str) -> None:
    if value is not None and value not in choices:
        _fail(f"Invalid {name}: {value}. Choose: {', '.join(choices)}")


def _print_messages(label: str, messages: list[str]) -> None:
    if not messages:
        console.print(f"  [dim]{label}: no changes[/dim]")
        return
    console.print(f"  [bold]{label}[/bold]")
    for msg in messages:
        console.print(f"    🔔 {msg}")


# ---------------------------------------------------------------------------
# monitor sub-commands
# ---------------------------------------------------------------------------

@monitor_app.command("add")
def monitor_add(
    label: Annotated[str, typer.Argument(help="Display label, e.g. 'Boston June'")],
    origin: Annotated[str, typer.Option("--from", help="Outbound origin airport (e.g. SYD)")],
    destination: Annotated[str, typer.Option("--to", help="Outbound destination airport (e.g. BOS)")],
    out_start: Annotated[str, typer.Option("--out-start", help="Outbound window start (YYYY-MM-DD)")],
    ret_start: Annotated[str, typer.Option("--ret-start", help="Return window start (YYYY-MM-DD)")],
    out_end: Annotated[Optional[str], typer.Option("--out-end", help="Outbound window end (default: start)")] = None,
    ret_end: Annotated[Optional[str], typer.Option("--ret-end", help="Return window end (default: start)")] = None,
    ret_from: Annotated[Optional[str], typer.Option("--ret-from", help="Return origin (default: outbound destination)")] = None,
    ret_to: Annotated[Optional[str], typer.Option("--ret-to", help="Return destination (default: outbound origin)")] = None,
    cabins: Annotated[str, typer.Option("--cabins", "-c", help="Comma-separated: business,premium,economy,first")] = "business",
    channel: Annotated[str, typer.Option("--channel", help="awards (seats.aero) or cash (external checker)")] = "awards",
    mode: Annotated[str, typer.Option("--mode", "-m", help="Award mode: rewards or any (incl. Points+Pay)")] = "rewards",
):
    """
    ➕ Create a round-trip monitor.

    Each leg's window may span at most 5 days.

    Examples:

      fare-watch monitor add "Boston June" --from SYD --to BOS --out-start 2026-06-01 --out-end 2026-06-05 --ret-start 2026-06-18 --ret-end 2026-06-22 -c business,premium

      fare-watch monitor add "LHR cash" --from SYD --to LHR --out-start 2026-09-01 --ret-start 2026-09-20 --channel cash
    """
    _check_choice(channel, CHANNELS, "channel")
    _check_choice(mode, AVAIL_TYPES, "mode")

    outbound = Leg(origin, destination, out_start, out_end or out_start)
    return_leg = Leg(ret_from or destination, ret_to or origin, ret_start, ret_end or ret_start)
    try:
        monitor = MonitorStore().create_monitor(
            label, _split_cabins(cabins), outbound, return_leg,
            channel=channel, avail_type=mode,
        )
    except ValidationError as e:
        _fail(str(e))

    console.print(f"[green]✅ Monitor {monitor.id[:8]} created:[/green] {monitor.label}")
    console.print(
        f"[dim]{outbound.route} {outbound.date_from}..{outbound.date_to} · "
        f"{return_leg.route} {return_leg.date_from}..{return_leg.date_to}[/dim]"
    )


@monitor_app.command("edit")
def monitor_edit(
    monitor_id: Annotated[str, typer.Argument(help="Monitor id (or unique prefix)")],
    label: Annotated[Optional[str], typer.Option("--label", help="New label")] = None,
    origin: Annotated[Optional[str], typer.Option("--from", help="Outbound origin")] = None,
    destination: Annotated[Optional[str], typer.Option("--to", help="Outbound destination")] = None,
    out_start: Annotated[Optional[str], typer.Option("--out-start", help="Outbound window start")] = None,
    out_end: Annotated[Optional[str], typer.Option("--out-end", help="Outbound window end")] = None,
    ret_from: Annotated[Optional[str], typer.Option("--ret-from", help="Return origin")] = None,
    ret_to: Annotated[Optional[str], typer.Option("--ret-to", help="Return destination")] = None,
    ret_start: Annotated[Optional[str], typer.Option("--ret-start", help="Return window start")] = None,
    ret_end: Annotated[Optional[str], typer.Option("--ret-end", help="Return window end")] = None,
    cabins: Annotated[Optional[str], typer.Option("--cabins", "-c", help="Comma-separated cabins")] = None,
    channel: Annotated[Optional[str], typer.Option("--channel", help="awards or cash")] = None,
    mode: Annotated[Optional[str], typer.Option("--mode", "-m", help="rewards or any")] = None,
):
    """
    ✏️  Edit a monitor.

    Changing a route, a date, the cabins or the award mode resets the
    monitor's price history and known slots.

    Example:

      fare-watch monitor edit 3f2a --out-end 2026-06-04
    """
    _check_choice(channel, CHANNELS, "channel")
    _check_choice(mode, AVAIL_TYPES, "mode")

    store = MonitorStore()
    current = _resolve(store, monitor_id)
    out, ret = current.outbound, current.return_leg
    outbound = Leg(
        origin or out.origin, destination or out.destination,
        out_start or out.date_from, out_end or out.date_to,
    )
    return_leg = Leg(
        ret_from or ret.origin, ret_to or ret.destination,
        ret_start or ret.date_from, ret_end or ret.date_to,
    )
    try:
        updated = store.edit_monitor(
            current.id,
            label=label,
            cabins=_split_cabins(cabins) if cabins is not None else None,
            outbound=outbound,
            return_leg=return_leg,
            channel=channel,
            avail_type=mode,
        )
    except (ValidationError, MonitorNotFound) as e:
        _fail(str(e))

    console.print(f"[green]Monitor {updated.id[:8]} updated.[/green]")
    if updated.epoch != current.epoch:
        console.print("[yellow]Tracking reset: the next refresh starts a fresh history.[/yellow]")


@monitor_app.command("remove")
def monitor_remove(
    monitor_id: Annotated[str, typer.Argument(help="Monitor id (or unique prefix)")],
):
    """🗑  Remove a monitor."""
    store = MonitorStore()
    monitor = _resolve(store, monitor_id)
    store.delete_monitor(monitor.id)
    CashHandshake(store, AlertQueue()).forget(monitor.id)
    console.print(f"[green]Monitor {monitor.id[:8]} ({monitor.label}) removed.[/green]")


@monitor_app.command("list")
def monitor_list():
    """📋 List monitors with their lowest prices."""
    print_monitors(MonitorStore().list_monitors())


@monitor_app.command("show")
def monitor_show(
    monitor_id: Annotated[str, typer.Argument(help="Monitor id (or unique prefix)")],
):
    """🔍 Show current vs lowest prices and the last results for a monitor."""
    print_monitor_detail(_resolve(MonitorStore(), monitor_id))


# ---------------------------------------------------------------------------
# refresh / serve
# ---------------------------------------------------------------------------

@app.command()
def refresh(
    monitor_id: Annotated[Optional[str], typer.Argument(help="Monitor id (omit to refresh all)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
):
    """
    🔄 Refresh one monitor, or all of them.

    Award monitors are searched now; cash monitors get a cash-check request
    queued unless one is already pending.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = MonitorStore()
    scheduler = _scheduler(store)

    if monitor_id:
        monitor = _resolve(store, monitor_id)
        try:
            messages = asyncio.run(scheduler.refresh_monitor(monitor))
        except Exception as e:
            _fail(f"Refresh failed for {monitor.label}: {e}")
        if monitor.is_cash:
            console.print(f"[dim]{monitor.label}: cash check pending.[/dim]")
        else:
            _print_messages(monitor.label, messages)
        return

    summary = asyncio.run(scheduler.refresh_all())
    for err in summary.errors:
        console.print(f"[red]⚠ {escape(err)}[/red]")
    console.print(
        f"[bold green]✅ Done:[/bold green] {summary.refreshed} refreshed, "
        f"{summary.cash_requested} cash request(s), {summary.failed} failed, "
        f"{summary.alerts} alert line(s)"
    )


@app.command()
def serve(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
):
    """
    🕐 Run the background scheduler.

    Refreshes every monitor hourly (and once shortly after start) and polls
    for cash-check results every 30 seconds. Stop with Ctrl-C.
    """
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)
    scheduler = _scheduler(MonitorStore())
    console.print("[bold]fare-watch scheduler running. Ctrl-C to stop.[/bold]")
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


# ---------------------------------------------------------------------------
# alerts / cash sub-commands
# ---------------------------------------------------------------------------

@alerts_app.command("show")
def alerts_show(
    clear: Annotated[bool, typer.Option("--clear", help="Clear the queue after showing it")] = False,
):
    """🔔 Show pending alerts (optionally consuming them)."""
    queue = AlertQueue()
    print_alerts(queue.drain() if clear else queue.read())


@alerts_app.command("clear")
def alerts_clear():
    """Clear all pending alerts."""
    AlertQueue().clear()
    console.print("[green]Pending alerts cleared.[/green]")


@cash_app.command("requests")
def cash_requests():
    """💰 List outstanding cash-check requests."""
    store = MonitorStore()
    print_cash_requests(CashHandshake(store, AlertQueue()).pending_requests())


@cash_app.command("poll")
def cash_poll():
    """Apply any cash-check results now instead of waiting for the scheduler."""
    store = MonitorStore()
    applied = CashHandshake(store, AlertQueue()).poll()
    console.print(f"[green]{applied} cash result(s) applied.[/green]")


def main():
    app()


if __name__ == "__main__":
    main()
