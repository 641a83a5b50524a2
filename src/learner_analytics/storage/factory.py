from __future__ import annotations

import logging

from learner_analytics.config.schema import StorageConfig
from learner_analytics.storage.event_store import EventStore
from learner_analytics.storage.json_store import JsonFileEventStore
from learner_analytics.storage.memory_store import InMemoryEventStore

logger = logging.getLogger(__name__)


def create_event_store(config: StorageConfig) -> EventStore:
    """
    Instantiate the event store backend named in the storage configuration.

    Parameters
    ----------
    config : StorageConfig
        ``backend`` selects "json" (files under ``data_dir``) or "memory";
        ``max_events`` sets the per-learner retention cap.

    Returns
    -------
    EventStore
        A ready-to-use store. The JSON backend creates its directory eagerly.

    Raises
    ------
    ValueError
        If the backend name is not recognized.
    """
    if config.backend == "json":
        logger.info(f"Using JSON event store at {config.data_dir}")
        return JsonFileEventStore(config.data_dir, max_events=config.max_events)
    if config.backend == "memory":
        logger.info("Using in-memory event store")
        return InMemoryEventStore(max_events=config.max_events)
    raise ValueError(
        f"Unknown event store backend: {config.backend}. "
        "Supported backends: 'json', 'memory'"
    )
