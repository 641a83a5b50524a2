"""
Learner Analytics.

Deterministic learning metrics (accuracy, mastery, levels, streaks, study-time
patterns and recommendations) derived from a learner's practice events and
study sessions.
"""

from .config.loader import load_settings
from .services.analytics_service import AnalyticsService
from .system import AnalyticsSystem

__all__ = ["AnalyticsService", "AnalyticsSystem", "load_settings"]
