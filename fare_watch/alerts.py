"""Pending-alert queue consumed by an external notifier.

Each refresh that produces alert lines appends one batch. The engine never
edits or removes batches; the notifier reads the whole document and resets
it once the alerts are delivered::

    queue = AlertQueue()
    queue.append(monitor.id, monitor.label, ["🏆 New lowest Business ..."])

    # notifier side
    for batch in queue.drain():
        send(batch)
"""

import logging
from pathlib import Path
from typing import Optional

from . import config
from .documents import read_array, write_array
from .models import PendingAlert, utc_now

logger = logging.getLogger(__name__)


class AlertQueue:
    """Append-only alert document (``alerts-pending.json``)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or config.ALERTS_FILE)

    def append(
        self,
        monitor_id: str,
        label: str,
        messages: list[str],
        now: Optional[str] = None,
    ) -> Optional[PendingAlert]:
        """Append one batch. Returns None (and writes nothing) for no messages."""
        if not messages:
            return None
        batch = PendingAlert(
            monitor_id=monitor_id,
            monitor_label=label,
            messages=list(messages),
            created_at=now or utc_now(),
        )
        pending = read_array(self.path)
        pending.append(batch.to_dict())
        write_array(self.path, pending)
        logger.info("Queued %d alert line(s) for %s", len(messages), label)
        return batch

    def read(self) -> list[PendingAlert]:
        return [PendingAlert.from_dict(d) for d in read_array(self.path) if isinstance(d, dict)]

    def clear(self) -> None:
        write_array(self.path, [])

    def drain(self) -> list[PendingAlert]:
        """Read every batch and reset the queue (notifier side)."""
        batches = self.read()
        if batches:
            self.clear()
        return batches
