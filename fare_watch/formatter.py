"""Console output for monitors, alerts and cash requests."""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich import box
from rich.text import Text

from .models import Monitor, NormalizedFlight, PendingAlert, cabin_label
from .tracker import format_aud, format_points

console = Console()

CABIN_STYLES = {
    "J": "yellow",
    "W": "cyan",
    "Y": "green",
    "F": "red bold",
}


def format_dt(value: Optional[str]) -> str:
    """Shorten an ISO timestamp to 'YYYY-MM-DD HH:MM'."""
    if not value:
        return "–"
    return value[:16].replace("T", " ")


def _cabin_text(code: str) -> Text:
    return Text(cabin_label(code), style=CABIN_STYLES.get(code, "white"))


def _status(m: Monitor) -> str:
    if m.is_cash and m.cash_pending:
        return "[yellow]pending[/yellow]"
    if not m.last_checked:
        return "[dim]never checked[/dim]"
    return f"[green]{format_dt(m.last_checked)}[/green]"


def _best_summary(m: Monitor) -> str:
    parts = []
    if m.is_cash:
        for code, rec in m.lowest_cash.items():
            parts.append(f"{cabin_label(code)} AUD ${format_aud(rec.aud)}")
    else:
        for code, rec in m.lowest_combined.items():
            parts.append(f"{cabin_label(code)} {format_points(rec.points)}")
    return ", ".join(parts) if parts else "[dim]–[/dim]"


def print_monitors(monitors: list[Monitor]) -> None:
    """Print all monitors as a rich table."""
    if not monitors:
        console.print("[dim]No monitors configured. Use `fare-watch monitor add` to create one.[/dim]")
        return

    table = Table(
        title="✈ Monitors",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Label", style="bold")
    table.add_column("Outbound")
    table.add_column("Return")
    table.add_column("Cabins")
    table.add_column("Channel")
    table.add_column("Lowest")
    table.add_column("Last Checked")

    for m in monitors:
        channel = "cash" if m.is_cash else f"awards ({m.avail_type})"
        table.add_row(
            m.id[:8],
            m.label,
            f"{m.outbound.route}\n{m.outbound.date_from}..{m.outbound.date_to}",
            f"{m.return_leg.route}\n{m.return_leg.date_from}..{m.return_leg.date_to}",
            ", ".join(c.title() for c in m.cabins),
            channel,
            _best_summary(m),
            _status(m),
        )

    console.print(table)


def _print_leg(title: str, flights: list[NormalizedFlight]) -> None:
    console.print(f"\n[bold]{title}[/bold]")
    if not flights:
        console.print("[dim]No availability.[/dim]")
        return

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Cabin")
    table.add_column("Points", justify="right", style="bold")
    table.add_column("Seats", justify="right")
    table.add_column("Taxes", justify="right")
    table.add_column("Direct", justify="center")
    table.add_column("Airlines")

    for f in flights:
        table.add_row(
            f.date,
            _cabin_text(f.cabin),
            format_points(f.mileage_cost),
            str(f.remaining_seats),
            f"{f.taxes_currency} {f.total_taxes:.0f}".strip(),
            "✓" if f.is_direct else "–",
            f.airlines or "–",
        )
    console.print(table)


def print_monitor_detail(m: Monitor) -> None:
    """Print current vs lowest per cabin, then both legs' last results."""
    console.print(f"\n[bold blue]{m.label}[/bold blue]  [dim]{m.id}[/dim]")
    console.print(
        f"[dim]{m.outbound.route} {m.outbound.date_from}..{m.outbound.date_to} · "
        f"{m.return_leg.route} {m.return_leg.date_from}..{m.return_leg.date_to} · "
        f"last checked {format_dt(m.last_checked)}[/dim]"
    )

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Cabin")
    table.add_column("Now", justify="right")
    table.add_column("Lowest", justify="right")
    table.add_column("Dates")

    for code in m.cabin_codes:
        if m.is_cash:
            cur = m.current_cash.get(code)
            low = m.lowest_cash.get(code)
            now_str = f"AUD ${format_aud(cur.aud)}" if cur else "–"
            low_str = f"AUD ${format_aud(low.aud)}" if low else "–"
        else:
            cur = m.current_combined.get(code)
            low = m.lowest_combined.get(code)
            now_str = f"{format_points(cur.points)} pts" if cur else "–"
            low_str = f"{format_points(low.points)} pts" if low else "–"
        rec = cur or low
        dates = f"{rec.outbound_date} → {rec.return_date}" if rec else "–"
        table.add_row(_cabin_text(code), now_str, low_str, dates)

    console.print(table)

    if m.is_cash:
        state = "pending since " + format_dt(m.cash_requested_at) if m.cash_pending else "idle"
        console.print(f"[dim]Cash check: {state}[/dim]")
        return

    _print_leg(f"Outbound {m.outbound.route}", m.last_outbound)
    _print_leg(f"Return {m.return_leg.route}", m.last_return)
    console.print(f"[dim]{len(m.known_slots)} known slot(s).[/dim]\n")


def print_alerts(batches: list[PendingAlert]) -> None:
    if not batches:
        console.print("[dim]No pending alerts.[/dim]")
        return
    for batch in batches:
        console.print(
            f"\n[bold]🔔 {batch.monitor_label}[/bold] [dim]{format_dt(batch.created_at)}[/dim]"
        )
        for msg in batch.messages:
            console.print(f"  {msg}")
    console.print()


def print_cash_requests(requests: list[dict]) -> None:
    if not requests:
        console.print("[dim]No outstanding cash requests.[/dim]")
        return

    table = Table(title="💰 Cash Requests", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Monitor")
    table.add_column("Outbound")
    table.add_column("Return")
    table.add_column("Cabins")
    table.add_column("Requested")

    for r in requests:
        out = r.get("outbound") or {}
        ret = r.get("return") or {}
        table.add_row(
            r.get("label") or r.get("monitorId", "?"),
            f"{out.get('origin', '?')} → {out.get('destination', '?')} "
            f"{out.get('dateFrom', '')}..{out.get('dateTo', '')}",
            f"{ret.get('origin', '?')} → {ret.get('destination', '?')} "
            f"{ret.get('dateFrom', '')}..{ret.get('dateTo', '')}",
            ", ".join(r.get("cabins") or []),
            format_dt(r.get("requestedAt")),
        )
    console.print(table)
