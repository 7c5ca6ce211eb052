"""Request/result handshake with the external cash-price checker.

Cash fares are looked up by an outside process (a person or an agent driving
Google Flights), so the engine can only leave a request and poll for the
answer::

    cash-requests.json   engine -> checker   one entry per monitor id
    cash-results.json    checker -> engine   consumed and reset every poll

Requests carry the monitor's tracking epoch. A result that echoes an older
epoch answers a request made before the monitor was edited, and is dropped.
Results without an epoch are accepted.
"""

import logging
from pathlib import Path
from typing import Optional

from . import config
from .alerts import AlertQueue
from .documents import read_array, write_array
from .models import Monitor, utc_now
from .store import MonitorStore
from .tracker import apply_cash_prices

logger = logging.getLogger(__name__)


def build_request(monitor: Monitor) -> dict:
    return {
        "monitorId": monitor.id,
        "label": monitor.label,
        "outbound": monitor.outbound.to_dict(),
        "return": monitor.return_leg.to_dict(),
        "cabins": list(monitor.cabins),
        "requestedAt": monitor.cash_requested_at,
        "epoch": monitor.epoch,
    }


class CashHandshake:
    """Coordinates cash-price requests and results for cash monitors."""

    def __init__(
        self,
        store: MonitorStore,
        queue: AlertQueue,
        requests_path: Optional[Path] = None,
        results_path: Optional[Path] = None,
    ):
        self.store = store
        self.queue = queue
        self.requests_path = Path(requests_path or config.CASH_REQUESTS_FILE)
        self.results_path = Path(results_path or config.CASH_RESULTS_FILE)

    def pending_requests(self) -> list[dict]:
        return [r for r in read_array(self.requests_path) if isinstance(r, dict)]

    def request(self, monitor: Monitor, now: Optional[str] = None) -> bool:
        """Queue a cash check for *monitor* unless one is already outstanding.

        Returns True if a request was written.
        """
        if not monitor.is_cash:
            raise ValueError(f"Monitor {monitor.id} is not a cash monitor")
        if monitor.cash_pending:
            logger.debug("%s: cash check already pending since %s",
                         monitor.label, monitor.cash_requested_at)
            return False

        monitor.cash_pending = True
        monitor.cash_requested_at = now or utc_now()

        if not self.store.save_tracking(monitor):
            return False

        requests = [
            r for r in self.pending_requests() if r.get("monitorId") != monitor.id
        ]
        requests.append(build_request(monitor))
        write_array(self.requests_path, requests)
        logger.info("%s: cash check requested", monitor.label)
        return True

    def forget(self, monitor_id: str) -> bool:
        """Withdraw the outstanding request of a deleted monitor, if any."""
        requests = self.pending_requests()
        remaining = [r for r in requests if r.get("monitorId") != monitor_id]
        if len(remaining) == len(requests):
            return False
        write_array(self.requests_path, remaining)
        logger.info("Cash request for %s withdrawn", monitor_id)
        return True

    def poll(self, now: Optional[str] = None) -> int:
        """Apply every result in the result document, then reset it.

        Returns the number of results applied.
        """
        results = read_array(self.results_path)
        if not results:
            return 0

        applied = 0
        consumed: set[str] = set()

        for entry in results:
            if not isinstance(entry, dict):
                logger.warning("Ignoring malformed cash result: %r", entry)
                continue
            monitor_id = entry.get("monitorId")
            monitor = self.store.get_monitor(monitor_id) if monitor_id else None
            if monitor is None or not monitor.is_cash:
                logger.warning("Ignoring cash result for unknown monitor %r", monitor_id)
                continue

            epoch = entry.get("epoch")
            if epoch is not None and epoch != monitor.epoch:
                logger.warning(
                    "%s: dropping stale cash result (epoch %s, monitor is at %d)",
                    monitor.label, epoch, monitor.epoch,
                )
                continue

            checked_at = entry.get("checkedAt") or now or utc_now()
            monitor.cash_pending = False
            monitor.last_checked = checked_at
            prices = entry.get("prices")
            messages = apply_cash_prices(
                monitor, prices if isinstance(prices, dict) else {}, checked_at
            )

            if not self.store.save_tracking(monitor):
                continue
            self.queue.append(monitor.id, monitor.label, messages)
            consumed.add(monitor.id)
            applied += 1

        write_array(self.results_path, [])

        if consumed:
            requests = self.pending_requests()
            remaining = [r for r in requests if r.get("monitorId") not in consumed]
            if len(remaining) != len(requests):
                write_array(self.requests_path, remaining)

        logger.info("Cash poll: %d of %d result(s) applied", applied, len(results))
        return applied
