"""Tests for recommendation ranking."""

from __future__ import annotations

import pytest

from learner_analytics.analytics.metrics import aggregate_by_category
from learner_analytics.analytics.models import (
    CategoryStats,
    RecommendationPriority,
    RecommendationType,
)
from learner_analytics.analytics.recommendations import generate_recommendations, recommend_from_events
from learner_analytics.data_models import Category, PerformanceEvent


def answers(category: str, total: int, correct: int):
    return [
        PerformanceEvent(
            learner_id="student123",
            question_id=f"{category}_{i}",
            category=category,
            is_correct=i < correct,
            response_time_ms=3000,
        )
        for i in range(total)
    ]


def test_practice_for_weak_topic():
    recommendations = recommend_from_events(answers("geometry", total=3, correct=1))

    assert len(recommendations) == 1
    item = recommendations[0]
    assert item.type == RecommendationType.PRACTICE
    assert item.priority == RecommendationPriority.HIGH
    assert item.category == Category.GEOMETRY
    assert item.title == "Practice Geometry"
    assert item.description == "Your accuracy is 33%. Let's improve it!"


def test_challenge_for_mastered_topic():
    recommendations = recommend_from_events(answers("fractions", total=20, correct=19))

    assert len(recommendations) == 1
    item = recommendations[0]
    assert item.type == RecommendationType.CHALLENGE
    assert item.priority == RecommendationPriority.MEDIUM
    assert item.title == "Challenge: Advanced Fractions"


def test_one_recommendation_per_qualifying_category():
    events = answers("addition", total=20, correct=19) + answers("word_problems", total=3, correct=1)
    recommendations = recommend_from_events(events)

    assert [(item.category, item.type) for item in recommendations] == [
        (Category.WORD_PROBLEMS, RecommendationType.PRACTICE),
        (Category.ADDITION, RecommendationType.CHALLENGE),
    ], "High priority practice should rank ahead of the challenge"


def test_thresholds_require_enough_samples():
    events = answers("division", total=2, correct=0) + answers("algebra", total=9, correct=9)
    assert recommend_from_events(events) == []


def test_limit_truncates_after_sorting():
    stats = aggregate_by_category(
        answers("addition", total=10, correct=10)
        + answers("subtraction", total=4, correct=1)
        + answers("decimals", total=5, correct=2)
    )
    recommendations = generate_recommendations(stats, limit=1)

    assert len(recommendations) == 1
    assert recommendations[0].category == Category.SUBTRACTION


def test_accepts_iterable_of_stats():
    stats = [CategoryStats(category=Category.PATTERNS, samples=4, correct=0)]
    recommendations = generate_recommendations(stats)

    assert recommendations[0].description == "Your accuracy is 0%. Let's improve it!"
    assert generate_recommendations(stats, limit=0) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
