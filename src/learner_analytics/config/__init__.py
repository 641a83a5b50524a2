from .loader import load_settings
from .schema import AnalyticsConfig, BootstrapConfig, LoggingConfig, Settings, StorageConfig

__all__ = [
    "AnalyticsConfig",
    "BootstrapConfig",
    "LoggingConfig",
    "Settings",
    "StorageConfig",
    "load_settings",
]
