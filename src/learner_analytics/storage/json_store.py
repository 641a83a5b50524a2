from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

from learner_analytics.storage.event_store import DEFAULT_MAX_EVENTS, KeyValueEventStore

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileEventStore(KeyValueEventStore):
    """JSON persistence with one file per learner collection, replaced atomically on write."""

    def __init__(self, base_dir: Path, max_events: int = DEFAULT_MAX_EVENTS):
        """Ensure the backing directory exists and record the retention cap."""
        super().__init__(max_events=max_events)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def key_path(self, key: str) -> Path:
        """Return the JSON file path holding ``key``."""
        return self.base_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self.key_path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, payload: str) -> None:
        path = self.key_path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(tmp_path, path)
