"""Paths, intervals and limits for fare-watch.

Everything lives under ``~/.fare-watch`` unless ``FARE_WATCH_HOME`` points
somewhere else. The cash request/result and alert documents in that
directory are shared with external processes.
"""

import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("FARE_WATCH_HOME", Path.home() / ".fare-watch"))

MONITORS_DB = DATA_DIR / "monitors.db"
ALERTS_FILE = DATA_DIR / "alerts-pending.json"
CASH_REQUESTS_FILE = DATA_DIR / "cash-requests.json"
CASH_RESULTS_FILE = DATA_DIR / "cash-results.json"
KEY_FILE = Path(os.environ.get("FARE_WATCH_KEY_FILE", DATA_DIR / "seats-aero-key"))

# Scheduler timings (seconds)
REFRESH_INTERVAL = 60 * 60
STARTUP_DELAY = 5
CASH_POLL_INTERVAL = 30

FETCH_TIMEOUT = 30  # seconds, per leg
MAX_DATE_RANGE_DAYS = 5
DEFAULT_TAXES_CURRENCY = "AUD"
