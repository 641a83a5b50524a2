from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from learner_analytics.analytics.bootstrap import BootstrapGenerator
from learner_analytics.config import Settings, load_settings
from learner_analytics.services.analytics_service import AnalyticsService
from learner_analytics.storage import EventStore, create_event_store
from learner_analytics.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class AnalyticsSystem:
    """
    Wires configuration, storage and the analytics service together.

    Each instance owns exactly one event store and one service; nothing is
    shared between instances, so tests and embedding applications can build as
    many isolated systems as they need.

    Attributes
    ----------
    settings : Settings
        Validated configuration, usually read from ``config/default.yaml``.
    store : EventStore
        Backend selected by ``settings.storage.backend``.
    service : AnalyticsService
        Facade used by the CLI and by embedding code.
    """

    def __init__(self, settings: Settings, store: Optional[EventStore] = None):
        """
        Build the store (unless one is injected) and the analytics service.

        Parameters
        ----------
        settings : Settings
            Configuration object holding storage, analytics, bootstrap and logging
            sections.
        store : Optional[EventStore], default=None
            Pre-built store, mainly for tests. When None the store is created from
            ``settings.storage``.
        """
        self.settings = settings
        configure_logging(settings.logging.level, settings.logging.use_json)

        self.store = store if store is not None else create_event_store(settings.storage)
        bootstrap = None
        if settings.bootstrap.enabled:
            bootstrap = BootstrapGenerator(
                days=settings.bootstrap.days,
                game_mode=settings.bootstrap.game_mode,
            )
        else:
            logger.info("Cold-start seeding disabled by configuration")
        self.service = AnalyticsService(
            self.store,
            config=settings.analytics,
            bootstrap=bootstrap,
        )

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> "AnalyticsSystem":
        """Load settings (file plus environment overrides) and construct the system."""
        return cls(load_settings(config_path))
