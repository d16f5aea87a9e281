"""Persisted widget store: stripped widget records in a JSON file.

Saves id, source_id, title, size, refresh_interval_ms, render and
resolved_intent. data and last_updated are dropped; the runtime re-fetches
them after boot.

load() never raises: a missing, corrupt or non-list file loads as [].
save() is best effort and debounced; nothing it does reaches the caller.
"""

import asyncio
import json
from pathlib import Path

from vibedash.log import log

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_PATH = _DATA_DIR / "widgets.json"

DEBOUNCE_SECONDS = 0.5


class WidgetStore:

    def __init__(self, path=DEFAULT_PATH, debounce=DEBOUNCE_SECONDS):
        self.path = Path(path)
        self.debounce = debounce
        self._pending = None   # asyncio.TimerHandle for the next debounced write

    def load(self):
        """Return the stored records, skipping any without an id or source_id."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            log(f"  [store] could not read {self.path}: {e}")
            return []
        if not isinstance(data, list):
            log(f"  [store] {self.path} does not hold a list, ignoring it")
            return []
        records = []
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("id") or not entry.get("source_id"):
                log(f"  [store] skipping invalid record: {entry!r}")
                continue
            records.append(entry)
        return records

    def save(self, widgets):
        """Debounced write. Calls inside the debounce window collapse to the last."""
        records = [w.to_record() for w in widgets]
        self._cancel_pending()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write(records)
            return
        self._pending = loop.call_later(self.debounce, self._write, records)

    def flush(self, widgets):
        """Write immediately, dropping any debounced write still waiting."""
        self._cancel_pending()
        self._write([w.to_record() for w in widgets])

    def clear(self):
        self._cancel_pending()
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log(f"  [store] could not remove {self.path}: {e}")

    def _cancel_pending(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _write(self, records):
        self._pending = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(records, indent=2) + "\n")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            log(f"  [store] write failed: {e}")
