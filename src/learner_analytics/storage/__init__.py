from .event_store import EventStore, KeyValueEventStore
from .factory import create_event_store
from .json_store import JsonFileEventStore
from .memory_store import InMemoryEventStore

__all__ = [
    "EventStore",
    "InMemoryEventStore",
    "JsonFileEventStore",
    "KeyValueEventStore",
    "create_event_store",
]
