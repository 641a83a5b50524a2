from .bootstrap import BootstrapGenerator, SeedHistory
from .models import (
    ActivityItem,
    OverallProgress,
    ProgressStatistics,
    Recommendation,
    RecommendationPriority,
    RecommendationType,
    StrengthsAndWeaknesses,
    StudentAnalytics,
    StudyStreak,
    StudyTimeAnalytics,
    TopicAnalytics,
    analytics_to_dict,
)
from .recommendations import generate_recommendations, recommend_from_events

__all__ = [
    "ActivityItem",
    "BootstrapGenerator",
    "OverallProgress",
    "ProgressStatistics",
    "Recommendation",
    "RecommendationPriority",
    "RecommendationType",
    "SeedHistory",
    "StrengthsAndWeaknesses",
    "StudentAnalytics",
    "StudyStreak",
    "StudyTimeAnalytics",
    "TopicAnalytics",
    "analytics_to_dict",
    "generate_recommendations",
    "recommend_from_events",
]
