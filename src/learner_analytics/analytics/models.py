from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from learner_analytics.data_models import Category, Difficulty, StudySession


class RecommendationType(str, Enum):
    PRACTICE = "practice"
    CHALLENGE = "challenge"
    REVIEW = "review"
    EXPLORE = "explore"


class RecommendationPriority(int, Enum):
    """Ordered so that a higher value ranks first."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    URGENT = 3


class ActivityType(str, Enum):
    QUESTION = "question"
    ACHIEVEMENT = "achievement"
    SESSION = "session"
    MILESTONE = "milestone"


@dataclass
class CategoryStats:
    """Running answer tally for one topic category."""

    category: Category
    samples: int = 0
    correct: int = 0
    total_response_ms: int = 0
    last_practiced: Optional[datetime] = None

    @property
    def accuracy(self) -> float:
        return self.correct / self.samples if self.samples else 0.0


@dataclass
class DifficultyStats:
    """Running answer tally for one difficulty tier."""

    difficulty: Difficulty
    samples: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.samples if self.samples else 0.0


@dataclass(frozen=True)
class OverallProgress:
    """Accuracy percentage (0-100) plus experience-based level standing."""

    percentage: float = 0.0
    level: int = 1
    experience_points: int = 0
    next_level_progress: float = 0.0  # 0-1 scale


@dataclass(frozen=True)
class StrengthsAndWeaknesses:
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StudyStreak:
    """Consecutive calendar days with at least one session."""

    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: Optional[datetime] = None


@dataclass(frozen=True)
class Recommendation:
    """Ranked suggestion of what to study next."""

    id: str
    type: RecommendationType
    title: str
    description: str
    priority: RecommendationPriority
    estimated_time: timedelta
    category: Category


@dataclass(frozen=True)
class ActivityItem:
    """Timeline entry describing one recent answer attempt."""

    id: str
    type: ActivityType
    title: str
    description: str
    timestamp: datetime
    is_positive: bool
    category: Category
    difficulty: Difficulty


@dataclass(frozen=True)
class StudyTimeAnalytics:
    """Where and when study time was spent."""

    today_study_time: timedelta = timedelta(0)
    weekly_study_time: timedelta = timedelta(0)
    monthly_study_time: timedelta = timedelta(0)
    average_daily_study_time: timedelta = timedelta(0)
    most_productive_hour: int = 15
    study_consistency: float = 0.0
    weekly_goal_progress: float = 0.0
    study_time_distribution: Dict[str, timedelta] = field(
        default_factory=lambda: {
            "morning": timedelta(0),
            "afternoon": timedelta(0),
            "evening": timedelta(0),
        }
    )
    longest_study_session: Optional[StudySession] = None
    total_lifetime_study_time: timedelta = timedelta(0)


@dataclass(frozen=True)
class ProgressStatistics:
    """Lifetime counters across events and sessions."""

    total_questions_answered: int = 0
    total_correct_answers: int = 0
    total_study_time: timedelta = timedelta(0)
    average_session_length: timedelta = timedelta(0)
    current_streak: int = 0
    longest_streak: int = 0
    topics_explored: int = 0
    difficulties_attempted: int = 0
    game_modes_played: int = 0


@dataclass(frozen=True)
class TopicAnalytics:
    """Per-category detail for a topic the learner has practiced."""

    category: Category
    total_questions: int
    correct_answers: int
    average_response_time: timedelta
    mastery_level: float
    difficulty_distribution: Dict[Difficulty, int]
    last_practiced: Optional[datetime]


@dataclass(frozen=True)
class StudentAnalytics:
    """Immutable snapshot of every derived metric for one learner at ``last_updated``."""

    learner_id: str
    overall_progress: OverallProgress
    topic_mastery: Dict[Category, float]
    learning_velocity: float
    strengths_and_weaknesses: StrengthsAndWeaknesses
    recent_activity: List[ActivityItem]
    study_streak: StudyStreak
    recommendations: List[Recommendation]
    achievement_progress: Dict[str, float]
    study_time_analytics: StudyTimeAnalytics
    difficulty_progression: Dict[Difficulty, float]
    progress_statistics: ProgressStatistics
    topic_analytics: Dict[Category, TopicAnalytics]
    last_updated: datetime


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, StudySession):
        return value.to_json_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, RecommendationPriority):
        return value.name.lower()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, timedelta):
        return value // timedelta(milliseconds=1)
    if isinstance(value, datetime):
        return value.isoformat(timespec="milliseconds")
    if isinstance(value, dict):
        return {_to_jsonable(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


def analytics_to_dict(snapshot: StudentAnalytics) -> Dict[str, Any]:
    """
    Flatten a snapshot into JSON-compatible primitives.

    Enums become their canonical names, durations integer milliseconds and
    timestamps ISO-8601 strings, matching the persisted record conventions.
    """
    return _to_jsonable(snapshot)
