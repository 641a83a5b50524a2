"""Analytics facade: ingestion, session lifecycle and snapshot computation for learners.

The service owns no durable state. Every query reloads the learner's history from
the event store and recomputes each metric, so the store remains the only source
of truth and no snapshot is ever cached or persisted. Public operations bind
``learner_id`` into the structlog context, so store and bootstrap log lines they
trigger carry it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError
from structlog.contextvars import bound_contextvars

from learner_analytics.analytics import metrics
from learner_analytics.analytics.bootstrap import BootstrapGenerator
from learner_analytics.analytics.models import (
    ProgressStatistics,
    StudentAnalytics,
    StudyTimeAnalytics,
    TopicAnalytics,
)
from learner_analytics.analytics.recommendations import generate_recommendations
from learner_analytics.config.schema import AnalyticsConfig
from learner_analytics.data_models import (
    Category,
    Difficulty,
    GradeLevel,
    PerformanceEvent,
    StudySession,
    now_millis,
)
from learner_analytics.storage import EventStore

logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Entry point for recording practice and reading a learner's analytics.

    The service is constructed explicitly with its collaborators and holds no
    global or cached state; its lifetime belongs to the caller.

    Attributes
    ----------
    store : EventStore
        Durable owner of events and sessions. All writes go through it.
    config : AnalyticsConfig
        Output bounds (recent activity, recommendation count) and the daily
        study goal used for weekly goal progress.
    bootstrap : BootstrapGenerator | None
        Cold-start generator. ``None`` disables seeding, in which case a new
        learner simply gets the empty-history defaults.
    clock : Callable[[], datetime]
        Source of "now" for new records and calendar windows.

    Examples
    --------
    >>> from learner_analytics.storage import InMemoryEventStore
    >>> service = AnalyticsService(InMemoryEventStore())
    >>> session_id = service.start_session("student123", "classic_quiz", ["addition"])
    >>> event = service.record_performance(
    ...     "student123", "q1", "addition", "easy", "grade3",
    ...     is_correct=True, response_time_ms=4200,
    ... )
    >>> service.end_session("student123", session_id, questions_answered=1, correct_answers=1)
    True
    >>> service.get_analytics("student123").overall_progress.percentage
    100.0
    """

    def __init__(
        self,
        store: EventStore,
        config: Optional[AnalyticsConfig] = None,
        bootstrap: Optional[BootstrapGenerator] = None,
        clock: Callable[[], datetime] = now_millis,
    ):
        self.store = store
        self.config = config or AnalyticsConfig()
        self.bootstrap = bootstrap
        self.clock = clock

    def record_performance(
        self,
        learner_id: str,
        question_id: str,
        category: Category | str,
        difficulty: Difficulty | str,
        grade_level: GradeLevel | str,
        is_correct: bool,
        response_time_ms: int,
        hints_used: int = 0,
        game_mode: str = "classic_quiz",
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[PerformanceEvent]:
        """
        Append one answer attempt to the learner's history.

        Ingestion is fire-and-forget: invalid input or a failed write is logged and
        reported by returning ``None`` rather than raising.
        """
        with bound_contextvars(learner_id=learner_id):
            try:
                event = PerformanceEvent(
                    learner_id=learner_id,
                    question_id=question_id,
                    category=category,
                    difficulty=difficulty,
                    grade_level=grade_level,
                    is_correct=is_correct,
                    response_time_ms=response_time_ms,
                    hints_used=hints_used,
                    game_mode=game_mode,
                    timestamp=self.clock(),
                    extra=extra or {},
                )
            except ValidationError as exc:
                logger.error(f"Discarding invalid performance event: {exc}")
                return None

            if not self.store.append_event(learner_id, event):
                logger.error(f"Performance event {event.id} was not persisted")
                return None
            logger.debug(f"Question performance tracked: {question_id} ({event.category.value})")
            return event

    def start_session(
        self,
        learner_id: str,
        session_type: str = "practice",
        topics: Optional[Iterable[Category | str]] = None,
    ) -> str:
        """Open a study session and return its id; unknown topic names are dropped."""
        with bound_contextvars(learner_id=learner_id):
            topics_studied: List[Category] = []
            for topic in topics or []:
                try:
                    topics_studied.append(Category(topic))
                except ValueError:
                    logger.warning(f"Ignoring unknown session topic '{topic}'")

            session = StudySession(
                learner_id=learner_id,
                start_time=self.clock(),
                topics_studied=topics_studied,
                session_type=session_type,
            )
            if self.store.append_session(learner_id, session):
                logger.info(f"Study session started: {session.id}")
            else:
                logger.error(f"Study session {session.id} was not persisted")
            return session.id

    def end_session(
        self,
        learner_id: str,
        session_id: str,
        questions_answered: int,
        correct_answers: int,
    ) -> bool:
        """Close an open session with its final counts; return whether it was closed and stored."""
        with bound_contextvars(learner_id=learner_id):
            closed = self.store.close_session(
                learner_id,
                session_id,
                questions_answered=questions_answered,
                correct_answers=correct_answers,
                end_time=self.clock(),
            )
        return closed is not None

    def ensure_seed_data(self, learner_id: str) -> bool:
        """
        Seed synthetic history when the learner has neither events nor sessions.

        The emptiness check and the write happen under the learner's store lock, so
        concurrent first requests seed at most once. Returns True only when this
        call wrote seed data.
        """
        if self.bootstrap is None:
            return False
        with self.store.locked(learner_id):
            if self.store.load_events(learner_id) or self.store.load_sessions(learner_id):
                return False
            return self.bootstrap.seed(self.store, learner_id, now=self.clock())

    def compute_snapshot(self, learner_id: str, now: Optional[datetime] = None) -> StudentAnalytics:
        """Recompute every metric from the stored history without seeding."""
        current = now or self.clock()
        events = self.store.load_events(learner_id)
        sessions = self.store.load_sessions(learner_id)

        category_stats = metrics.aggregate_by_category(events)
        snapshot = StudentAnalytics(
            learner_id=learner_id,
            overall_progress=metrics.compute_overall_progress(events),
            topic_mastery=metrics.compute_topic_mastery(events),
            learning_velocity=metrics.compute_learning_velocity(events),
            strengths_and_weaknesses=metrics.compute_strengths_and_weaknesses(events),
            recent_activity=metrics.compute_recent_activity(
                events, limit=self.config.recent_activity_limit
            ),
            study_streak=metrics.compute_study_streak(sessions, now=current),
            recommendations=generate_recommendations(
                category_stats, limit=self.config.recommendation_limit
            ),
            achievement_progress=metrics.compute_achievement_progress(events),
            study_time_analytics=metrics.compute_study_time_analytics(
                sessions, now=current, daily_goal_minutes=self.config.daily_goal_minutes
            ),
            difficulty_progression=metrics.compute_difficulty_progression(events),
            progress_statistics=metrics.compute_progress_statistics(events, sessions, now=current),
            topic_analytics=metrics.compute_topic_analytics(events),
            last_updated=current,
        )
        logger.debug(
            f"Analytics for {learner_id}: {len(events)} events, {len(sessions)} sessions, "
            f"level {snapshot.overall_progress.level}, streak {snapshot.study_streak.current_streak}"
        )
        return snapshot

    def get_analytics(self, learner_id: str, now: Optional[datetime] = None) -> StudentAnalytics:
        """Seed a first-time learner if needed, then compute the snapshot from the store."""
        with bound_contextvars(learner_id=learner_id):
            if self.ensure_seed_data(learner_id):
                logger.info("Seeded initial history")
            return self.compute_snapshot(learner_id, now=now)

    def get_study_time_analytics(self, learner_id: str, now: Optional[datetime] = None) -> StudyTimeAnalytics:
        return metrics.compute_study_time_analytics(
            self.store.load_sessions(learner_id),
            now=now or self.clock(),
            daily_goal_minutes=self.config.daily_goal_minutes,
        )

    def get_progress_statistics(self, learner_id: str, now: Optional[datetime] = None) -> ProgressStatistics:
        return metrics.compute_progress_statistics(
            self.store.load_events(learner_id),
            self.store.load_sessions(learner_id),
            now=now or self.clock(),
        )

    def get_topic_analytics(self, learner_id: str) -> Dict[Category, TopicAnalytics]:
        return metrics.compute_topic_analytics(self.store.load_events(learner_id))
