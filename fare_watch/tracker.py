"""Current / historical-low tracking and new-slot detection.

A refresh of an award monitor compares the cheapest outbound + cheapest
return fare per cabin against the lowest combined price ever seen for the
monitor, and compares every available (date, cabin, direction) slot against
the slots seen before. Both produce human-readable alert lines.

The cash channel reuses the same "strictly lower replaces" rule for the fare
amounts reported by the external cash-price checker.
"""

import logging
from typing import Optional

from . import config
from .models import (
    CashRecord,
    LowestRecord,
    Monitor,
    NormalizedFlight,
    cabin_code,
    cabin_label,
    utc_now,
)

logger = logging.getLogger(__name__)

DIRECTIONS = {"out": "outbound", "ret": "return"}


def format_points(points) -> str:
    if isinstance(points, float) and points.is_integer():
        points = int(points)
    return f"{points:,}"


def format_aud(amount: float) -> str:
    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def slot_key(date: str, cabin: str, direction: str) -> str:
    return f"{date}|{cabin}|{direction}"


def detect_new_slots(
    monitor: Monitor,
    outbound: list[NormalizedFlight],
    ret: list[NormalizedFlight],
) -> tuple[list[str], list[str]]:
    """Return (new slot keys, alert lines) for slots the monitor never saw."""
    known = set(monitor.known_slots)
    new_keys: list[str] = []
    messages: list[str] = []

    for direction, flights in (("out", outbound), ("ret", ret)):
        for f in flights:
            key = slot_key(f.date, f.cabin, direction)
            if key in known:
                continue
            known.add(key)
            new_keys.append(key)
            messages.append(
                f"✈ New {DIRECTIONS[direction]} {cabin_label(f.cabin)} available: "
                f"{f.date} for {format_points(f.mileage_cost)} pts"
            )

    return new_keys, messages


def cheapest(flights: list[NormalizedFlight], code: str) -> Optional[NormalizedFlight]:
    """Lowest-cost flight for a cabin; the first one wins on ties."""
    best = None
    for f in flights:
        if f.cabin != code:
            continue
        if best is None or f.mileage_cost < best.mileage_cost:
            best = f
    return best


def combine(
    best_out: NormalizedFlight,
    best_ret: NormalizedFlight,
    now: str,
) -> LowestRecord:
    return LowestRecord(
        points=best_out.mileage_cost + best_ret.mileage_cost,
        outbound_date=best_out.date,
        return_date=best_ret.date,
        seen_at=now,
        total_taxes=round((best_out.total_taxes or 0) + (best_ret.total_taxes or 0), 2),
        taxes_currency=(
            best_out.taxes_currency or best_ret.taxes_currency or config.DEFAULT_TAXES_CURRENCY
        ),
        is_direct=best_out.is_direct and best_ret.is_direct,
    )


def track_awards(
    monitor: Monitor,
    outbound: list[NormalizedFlight],
    ret: list[NormalizedFlight],
    now: Optional[str] = None,
) -> list[str]:
    """Apply one award refresh to *monitor* in place.

    Returns the alert lines produced (new slots first, then new lows).
    """
    now = now or utc_now()
    new_keys, alerts = detect_new_slots(monitor, outbound, ret)

    lowest = dict(monitor.lowest_combined)
    current: dict[str, LowestRecord] = {}

    for code in monitor.cabin_codes:
        best_out = cheapest(outbound, code)
        best_ret = cheapest(ret, code)
        if best_out is None or best_ret is None:
            continue

        rec = combine(best_out, best_ret, now)
        current[code] = rec

        prev = lowest.get(code)
        if prev is None or rec.points < prev.points:
            lowest[code] = LowestRecord(**vars(rec))
            saving = f" (was {format_points(prev.points)})" if prev else " (first record)"
            alerts.append(
                f"🏆 New lowest {cabin_label(code)} round-trip: "
                f"{format_points(rec.points)} pts{saving} — "
                f"out {rec.outbound_date} + ret {rec.return_date}"
            )

    monitor.last_checked = now
    monitor.last_outbound = list(outbound)
    monitor.last_return = list(ret)
    monitor.current_combined = current
    monitor.lowest_combined = lowest
    monitor.known_slots = monitor.known_slots + new_keys

    logger.debug(
        "%s: %d new slot(s), %d cabin(s) priced, %d alert(s)",
        monitor.label, len(new_keys), len(current), len(alerts),
    )
    return alerts


def _cash_record(raw: dict, seen_at: str) -> Optional[CashRecord]:
    if not isinstance(raw, dict):
        return None
    aud = raw.get("aud")
    if isinstance(aud, bool) or not isinstance(aud, (int, float)):
        return None
    return CashRecord(
        aud=aud,
        outbound_date=raw.get("outboundDate") or "",
        return_date=raw.get("returnDate") or "",
        seen_at=raw.get("seenAt") or seen_at,
        is_direct=bool(raw.get("isDirect", False)),
    )


def apply_cash_prices(
    monitor: Monitor,
    prices: dict,
    checked_at: str,
) -> list[str]:
    """Apply a cash-checker price map ``{cabin: {aud, ...}}`` to *monitor*.

    Cabin keys may be names ("business") or codes ("J"); they are stored by
    code. Returns the new-low alert lines.
    """
    alerts: list[str] = []
    for cabin, raw in (prices or {}).items():
        code = cabin_code(str(cabin))
        rec = _cash_record(raw, checked_at)
        if rec is None:
            logger.warning("%s: ignoring malformed cash price for %s: %r", monitor.label, cabin, raw)
            continue

        monitor.current_cash[code] = rec
        prev = monitor.lowest_cash.get(code)
        if prev is None or rec.aud < prev.aud:
            monitor.lowest_cash[code] = CashRecord(**vars(rec))
            saving = f" (was AUD ${format_aud(prev.aud)})" if prev else " (first record)"
            alerts.append(
                f"💰 New lowest {cabin_label(code)} cash fare: AUD ${format_aud(rec.aud)}{saving} — "
                f"out {rec.outbound_date} · ret {rec.return_date}"
            )
    return alerts
