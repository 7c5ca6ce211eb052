"""Whole-document JSON arrays shared with external processes.

Readers treat a missing, unreadable or malformed document as empty. Writers
replace the file atomically so a concurrent reader never sees half a
document.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def read_array(path: Path) -> list:
    """Load a JSON array, returning [] if the document is missing or corrupt."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as fp:
            data = json.load(fp)
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable document %s: %s", path, e)
        return []
    if not isinstance(data, list):
        logger.warning("Ignoring %s: expected a JSON array, got %s", path, type(data).__name__)
        return []
    return data


def write_array(path: Path, items: list) -> None:
    """Replace the document at *path* with *items*."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(items, fp, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
