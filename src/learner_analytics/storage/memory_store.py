from __future__ import annotations

from typing import Dict, Optional

from learner_analytics.storage.event_store import DEFAULT_MAX_EVENTS, KeyValueEventStore


class InMemoryEventStore(KeyValueEventStore):
    """Process-local key/value store holding serialized payloads; contents die with the instance."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        super().__init__(max_events=max_events)
        self._data: Dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, payload: str) -> None:
        self._data[key] = payload
