from __future__ import annotations

from datetime import timedelta
from typing import Iterable, List, Mapping, Sequence

from learner_analytics.analytics.metrics import aggregate_by_category
from learner_analytics.analytics.models import (
    CategoryStats,
    Recommendation,
    RecommendationPriority,
    RecommendationType,
)
from learner_analytics.data_models import Category, PerformanceEvent, new_id

PRACTICE_MAX_ACCURACY = 0.7
PRACTICE_MIN_SAMPLES = 3
PRACTICE_DURATION = timedelta(minutes=15)

CHALLENGE_MIN_ACCURACY = 0.9
CHALLENGE_MIN_SAMPLES = 10
CHALLENGE_DURATION = timedelta(minutes=20)

DEFAULT_LIMIT = 5


def _practice(category: Category, stats: CategoryStats) -> Recommendation:
    return Recommendation(
        id=new_id(),
        type=RecommendationType.PRACTICE,
        title=f"Practice {category.display_name}",
        description=f"Your accuracy is {round(stats.accuracy * 100)}%. Let's improve it!",
        priority=RecommendationPriority.HIGH,
        estimated_time=PRACTICE_DURATION,
        category=category,
    )


def _challenge(category: Category) -> Recommendation:
    return Recommendation(
        id=new_id(),
        type=RecommendationType.CHALLENGE,
        title=f"Challenge: Advanced {category.display_name}",
        description="You've mastered this topic! Ready for harder challenges?",
        priority=RecommendationPriority.MEDIUM,
        estimated_time=CHALLENGE_DURATION,
        category=category,
    )


def generate_recommendations(
    category_stats: Mapping[Category, CategoryStats] | Iterable[CategoryStats],
    limit: int = DEFAULT_LIMIT,
) -> List[Recommendation]:
    """
    Rank practice and challenge suggestions from per-category answer tallies.

    A category with at least three answers below 70% accuracy yields a
    high-priority practice recommendation; one with at least ten answers at 90% or
    better yields a medium-priority challenge. The list is sorted by priority,
    highest first, keeping category order among equal priorities, and cut to
    ``limit`` entries.
    """
    stats_list: Sequence[CategoryStats] = (
        list(category_stats.values()) if isinstance(category_stats, Mapping) else list(category_stats)
    )
    recommendations: List[Recommendation] = []
    for stats in stats_list:
        if stats.samples >= PRACTICE_MIN_SAMPLES and stats.accuracy < PRACTICE_MAX_ACCURACY:
            recommendations.append(_practice(stats.category, stats))
        elif stats.samples >= CHALLENGE_MIN_SAMPLES and stats.accuracy >= CHALLENGE_MIN_ACCURACY:
            recommendations.append(_challenge(stats.category))

    recommendations.sort(key=lambda item: item.priority, reverse=True)
    return recommendations[: max(limit, 0)]


def recommend_from_events(
    events: Sequence[PerformanceEvent],
    limit: int = DEFAULT_LIMIT,
) -> List[Recommendation]:
    """Aggregate ``events`` by category and rank recommendations from the result."""
    return generate_recommendations(aggregate_by_category(events), limit=limit)
