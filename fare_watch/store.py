"""Monitor store backed by SQLite.

Every monitor is one row: the full record as a JSON document plus its
tracking epoch. Each mutation runs in its own ``BEGIN IMMEDIATE``
transaction, so concurrent writers (an on-demand refresh overlapping the
hourly cycle, an edit landing mid-refresh) serialize per monitor instead of
overwriting each other's read-modify-write.

Usage::

    store = MonitorStore()
    m = store.create_monitor(
        "Boston June", ["business", "premium"],
        Leg("SYD", "BOS", "2026-06-01", "2026-06-05"),
        Leg("BOS", "SYD", "2026-06-18", "2026-06-22"),
    )
    store.edit_monitor(m.id, label="Boston (June)")   # keeps tracking state
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from . import config
from .models import AVAIL_TYPES, CHANNELS, Leg, Monitor, utc_now

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """A create/edit request was rejected; nothing was written."""


class MonitorNotFound(KeyError):
    """No monitor with the given id."""

    def __str__(self) -> str:
        return f"Monitor not found: {self.args[0]}"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_leg(leg: Leg, name: str) -> None:
    for field_name, code in (("origin", leg.origin), ("destination", leg.destination)):
        if len(code) != 3 or not code.isalpha():
            raise ValidationError(f"{name}: {field_name} must be a 3-letter airport code, got {code!r}")
    try:
        start = date.fromisoformat(leg.date_from)
        end = date.fromisoformat(leg.date_to)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{name}: dates must be YYYY-MM-DD, got {leg.date_from!r}..{leg.date_to!r}"
        ) from None
    days = (end - start).days
    if days < 0:
        raise ValidationError(f"{name}: end date must be after start date")
    if days > config.MAX_DATE_RANGE_DAYS:
        raise ValidationError(
            f"{name}: date range cannot exceed {config.MAX_DATE_RANGE_DAYS} days"
        )


def _clean_cabins(cabins: list[str]) -> list[str]:
    cleaned = list(dict.fromkeys(c.strip().lower() for c in cabins if c and c.strip()))
    if not cleaned:
        raise ValidationError("At least one cabin is required")
    return cleaned


def _validate(monitor: Monitor) -> None:
    if not monitor.label or not monitor.label.strip():
        raise ValidationError("Label is required")
    if monitor.channel not in CHANNELS:
        raise ValidationError(f"Channel must be one of {', '.join(CHANNELS)}")
    if monitor.avail_type not in AVAIL_TYPES:
        raise ValidationError(f"Award mode must be one of {', '.join(AVAIL_TYPES)}")
    validate_leg(monitor.outbound, "Outbound")
    validate_leg(monitor.return_leg, "Return")


def core_changed(old: Monitor, new: Monitor) -> bool:
    """True when an edit invalidates the monitor's tracking state."""
    return (
        old.outbound != new.outbound
        or old.return_leg != new.return_leg
        or old.avail_type != new.avail_type
        or sorted(old.cabins) != sorted(new.cabins)
    )


def _merge_tracking(stored: Monitor, refreshed: Monitor) -> None:
    """Copy refresh results onto the stored record.

    Historical lows only ever move down and known slots only grow, even if
    another refresh of the same epoch was saved in between.
    """
    stored.last_checked = refreshed.last_checked
    stored.current_combined = refreshed.current_combined
    stored.last_outbound = refreshed.last_outbound
    stored.last_return = refreshed.last_return
    stored.current_cash = refreshed.current_cash
    stored.cash_pending = refreshed.cash_pending
    stored.cash_requested_at = refreshed.cash_requested_at

    for code, rec in refreshed.lowest_combined.items():
        prev = stored.lowest_combined.get(code)
        if prev is None or rec.points < prev.points:
            stored.lowest_combined[code] = rec
    for code, rec in refreshed.lowest_cash.items():
        prev = stored.lowest_cash.get(code)
        if prev is None or rec.aud < prev.aud:
            stored.lowest_cash[code] = rec

    seen = set(stored.known_slots)
    stored.known_slots = stored.known_slots + [k for k in refreshed.known_slots if k not in seen]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class MonitorStore:
    """Persisted collection of monitors."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or config.MONITORS_DB)

    def _get_conn(self) -> sqlite3.Connection:
        """Return an open SQLite connection, creating the schema if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=30, isolation_level=None)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS monitors (
                id          TEXT    PRIMARY KEY,
                label       TEXT    NOT NULL,
                channel     TEXT    NOT NULL,
                epoch       INTEGER NOT NULL DEFAULT 0,
                created_at  TEXT    NOT NULL,
                data        TEXT    NOT NULL
            )
        """)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @staticmethod
    def _load(conn: sqlite3.Connection, monitor_id: str) -> Optional[Monitor]:
        row = conn.execute("SELECT data FROM monitors WHERE id = ?", (monitor_id,)).fetchone()
        return Monitor.from_dict(json.loads(row[0])) if row else None

    @staticmethod
    def _write(conn: sqlite3.Connection, monitor: Monitor) -> None:
        conn.execute(
            """
            INSERT INTO monitors (id, label, channel, epoch, created_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                label = excluded.label,
                channel = excluded.channel,
                epoch = excluded.epoch,
                data = excluded.data
            """,
            (
                monitor.id,
                monitor.label,
                monitor.channel,
                monitor.epoch,
                monitor.created_at,
                json.dumps(monitor.to_dict(), ensure_ascii=False),
            ),
        )

    # -- queries ------------------------------------------------------------

    def list_monitors(self) -> list[Monitor]:
        conn = self._get_conn()
        rows = conn.execute("SELECT data FROM monitors ORDER BY rowid").fetchall()
        conn.close()
        return [Monitor.from_dict(json.loads(r[0])) for r in rows]

    def get_monitor(self, monitor_id: str) -> Optional[Monitor]:
        conn = self._get_conn()
        monitor = self._load(conn, monitor_id)
        conn.close()
        return monitor

    def require(self, monitor_id: str) -> Monitor:
        monitor = self.get_monitor(monitor_id)
        if monitor is None:
            raise MonitorNotFound(monitor_id)
        return monitor

    # -- management surface -------------------------------------------------

    def create_monitor(
        self,
        label: str,
        cabins: list[str],
        outbound: Leg,
        return_leg: Leg,
        channel: str = "awards",
        avail_type: str = "rewards",
    ) -> Monitor:
        """Validate and persist a new monitor."""
        monitor = Monitor(
            id=str(uuid.uuid4()),
            label=label.strip() if label else "",
            cabins=_clean_cabins(cabins),
            outbound=outbound,
            return_leg=return_leg,
            channel=channel,
            avail_type=avail_type,
            created_at=utc_now(),
        )
        _validate(monitor)
        with self._transaction() as conn:
            self._write(conn, monitor)
        logger.info("Monitor %s created: %s", monitor.id, monitor.label)
        return monitor

    def edit_monitor(
        self,
        monitor_id: str,
        label: Optional[str] = None,
        cabins: Optional[list[str]] = None,
        outbound: Optional[Leg] = None,
        return_leg: Optional[Leg] = None,
        channel: Optional[str] = None,
        avail_type: Optional[str] = None,
    ) -> Monitor:
        """Update a monitor. Omitted fields keep their current value.

        Changing either leg, the cabin set or the award mode clears all
        tracking state and starts a new tracking epoch.
        """
        with self._transaction() as conn:
            old = self._load(conn, monitor_id)
            if old is None:
                raise MonitorNotFound(monitor_id)

            new = Monitor.from_dict(old.to_dict())
            if label is not None:
                new.label = label.strip()
            if cabins is not None:
                new.cabins = _clean_cabins(cabins)
            if outbound is not None:
                new.outbound = outbound
            if return_leg is not None:
                new.return_leg = return_leg
            if channel is not None:
                new.channel = channel
            if avail_type is not None:
                new.avail_type = avail_type
            _validate(new)

            if core_changed(old, new):
                new.reset_tracking()
                logger.info("Monitor %s: core fields changed, tracking reset (epoch %d)",
                            monitor_id, new.epoch)
            self._write(conn, new)
        return new

    def delete_monitor(self, monitor_id: str) -> bool:
        """Hard-delete a monitor. Returns True if a row was deleted."""
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM monitors WHERE id = ?", (monitor_id,))
        return cur.rowcount > 0

    # -- refresh bookkeeping --------------------------------------------------

    def save_tracking(self, monitor: Monitor) -> bool:
        """Persist the tracking state of a refreshed monitor.

        The write is dropped (returns False) when the monitor was deleted or
        reset since the refresh started, so a stale refresh can never bring
        back state from a previous epoch.
        """
        with self._transaction() as conn:
            stored = self._load(conn, monitor.id)
            if stored is None:
                logger.warning("Monitor %s was deleted during refresh; result dropped", monitor.id)
                return False
            if stored.epoch != monitor.epoch:
                logger.warning(
                    "Monitor %s was reset during refresh (epoch %d -> %d); result dropped",
                    monitor.id, monitor.epoch, stored.epoch,
                )
                return False
            _merge_tracking(stored, monitor)
            self._write(conn, stored)
        return True
