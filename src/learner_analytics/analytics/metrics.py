"""
Deterministic metrics derived from a learner's events and sessions.

Every function here is pure and total: empty or degenerate input yields a
well-defined default instead of an exception, and each ratio is guarded against
a zero denominator. Calendar arithmetic happens in local wall-clock time; aware
timestamps are converted to local time before their day or hour is taken.
Functions that depend on "today" accept ``now`` so callers and tests can pin
the clock.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from learner_analytics.analytics.models import (
    ActivityItem,
    ActivityType,
    CategoryStats,
    DifficultyStats,
    OverallProgress,
    ProgressStatistics,
    StrengthsAndWeaknesses,
    StudyStreak,
    StudyTimeAnalytics,
    TopicAnalytics,
)
from learner_analytics.data_models import (
    Category,
    Difficulty,
    PerformanceEvent,
    StudySession,
    to_local_naive,
)

BASE_CORRECT_XP = 10
FAST_ANSWER_MS = 5_000
FAST_ANSWER_XP = 5
GOOD_ANSWER_MS = 10_000
GOOD_ANSWER_XP = 3
NO_HINT_XP = 2
DIFFICULTY_XP: Dict[Difficulty, int] = {
    Difficulty.EASY: 1,
    Difficulty.NORMAL: 3,
    Difficulty.GENIUS: 7,
    Difficulty.QUANTUM: 15,
}
FIRST_LEVEL_XP = 100
LEVEL_XP_STEP = 150

VELOCITY_WINDOW = 10

STRENGTH_MIN_SAMPLES = 5
STRENGTH_MIN_ACCURACY = 0.8
WEAKNESS_MIN_SAMPLES = 3
WEAKNESS_MAX_ACCURACY = 0.6

MORNING_END_HOUR = 12
EVENING_START_HOUR = 17
DEFAULT_PRODUCTIVE_HOUR = 15
CONSISTENCY_WINDOW_DAYS = 7

ACCURACY_MILESTONES = (70, 80, 90)
QUESTION_MILESTONES = (50, 100, 500)


_as_local = to_local_naive


def _local_day(value: datetime) -> date:
    return _as_local(value).date()


def _resolve_now(now: Optional[datetime]) -> datetime:
    return _as_local(now) if now is not None else datetime.now()


def _millis(total_ms: int) -> timedelta:
    return timedelta(milliseconds=total_ms)


def accuracy(events: Sequence[PerformanceEvent]) -> float:
    """Fraction of correct answers (0-1); 0 for an empty sequence."""
    if not events:
        return 0.0
    return sum(1 for event in events if event.is_correct) / len(events)


def aggregate_by_category(events: Iterable[PerformanceEvent]) -> Dict[Category, CategoryStats]:
    """Tally events per category; every category is present, unpracticed ones with zero samples."""
    stats = {category: CategoryStats(category=category) for category in Category}
    for event in events:
        entry = stats[event.category]
        entry.samples += 1
        entry.correct += int(event.is_correct)
        entry.total_response_ms += event.response_time_ms
        if entry.last_practiced is None or _as_local(event.timestamp) > _as_local(entry.last_practiced):
            entry.last_practiced = event.timestamp
    return stats


def aggregate_by_difficulty(events: Iterable[PerformanceEvent]) -> Dict[Difficulty, DifficultyStats]:
    """Tally events per difficulty tier; every tier is present."""
    stats = {difficulty: DifficultyStats(difficulty=difficulty) for difficulty in Difficulty}
    for event in events:
        entry = stats[event.difficulty]
        entry.samples += 1
        entry.correct += int(event.is_correct)
    return stats


def event_experience(event: PerformanceEvent) -> int:
    """XP awarded for a single answer; incorrect answers earn nothing."""
    if not event.is_correct:
        return 0
    points = BASE_CORRECT_XP
    if event.response_time_ms < FAST_ANSWER_MS:
        points += FAST_ANSWER_XP
    elif event.response_time_ms < GOOD_ANSWER_MS:
        points += GOOD_ANSWER_XP
    points += DIFFICULTY_XP[event.difficulty]
    if event.hints_used == 0:
        points += NO_HINT_XP
    return points


def experience_points(events: Iterable[PerformanceEvent]) -> int:
    return sum(event_experience(event) for event in events)


def level_bounds(level: int) -> Tuple[int, int]:
    """
    Return ``(xp_at_level_start, xp_span_to_next_level)`` for ``level``.

    Level 1 spans 100 XP and each later span is 150 XP longer than the previous
    one, so levels start at 0, 100, 350, 750, 1300, ...
    """
    floor = 0
    span = FIRST_LEVEL_XP
    for _ in range(1, max(level, 1)):
        floor += span
        span += LEVEL_XP_STEP
    return floor, span


def level_for_experience(xp: int) -> int:
    """Level reached with ``xp`` points: one plus the number of spans fully consumed."""
    level = 1
    floor = 0
    span = FIRST_LEVEL_XP
    while floor + span <= xp:
        floor += span
        span += LEVEL_XP_STEP
        level += 1
    return level


def next_level_progress(xp: int, level: int) -> float:
    """Fraction (0-1) of the current level's span already earned."""
    floor, span = level_bounds(level)
    return min(max((xp - floor) / span, 0.0), 1.0)


def compute_overall_progress(events: Sequence[PerformanceEvent]) -> OverallProgress:
    """Overall accuracy percentage together with XP, level and progress toward the next level."""
    if not events:
        return OverallProgress()
    xp = experience_points(events)
    level = level_for_experience(xp)
    return OverallProgress(
        percentage=accuracy(events) * 100,
        level=level,
        experience_points=xp,
        next_level_progress=next_level_progress(xp, level),
    )


def compute_topic_mastery(events: Sequence[PerformanceEvent]) -> Dict[Category, float]:
    """Accuracy percentage for every category; unpracticed categories report 0."""
    return {
        category: stats.accuracy * 100
        for category, stats in aggregate_by_category(events).items()
    }


def compute_learning_velocity(events: Sequence[PerformanceEvent]) -> float:
    """
    Signed change in accuracy between the last two windows of ten answers.

    Events are ordered chronologically first. Fewer than twenty events give 0.
    """
    if len(events) < 2 * VELOCITY_WINDOW:
        return 0.0
    ordered = sorted(events, key=lambda event: _as_local(event.timestamp))
    recent = ordered[-VELOCITY_WINDOW:]
    previous = ordered[-2 * VELOCITY_WINDOW:-VELOCITY_WINDOW]
    return accuracy(recent) - accuracy(previous)


def compute_strengths_and_weaknesses(events: Sequence[PerformanceEvent]) -> StrengthsAndWeaknesses:
    strengths: List[str] = []
    weaknesses: List[str] = []
    for category, stats in aggregate_by_category(events).items():
        if stats.samples >= STRENGTH_MIN_SAMPLES and stats.accuracy >= STRENGTH_MIN_ACCURACY:
            strengths.append(category.display_name)
        elif stats.samples >= WEAKNESS_MIN_SAMPLES and stats.accuracy < WEAKNESS_MAX_ACCURACY:
            weaknesses.append(category.display_name)
    recommendations = [
        f"Focus on {topic} - try 10 practice questions daily" for topic in weaknesses
    ]
    return StrengthsAndWeaknesses(
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
    )


def compute_study_streak(
    sessions: Sequence[StudySession],
    now: Optional[datetime] = None,
) -> StudyStreak:
    """
    Current and longest runs of consecutive study days.

    Sessions collapse to distinct local calendar days, so input order and multiple
    sessions per day do not matter. The trailing run only counts as the current
    streak when its last day is today or yesterday.
    """
    if not sessions:
        return StudyStreak()

    days = sorted({_local_day(session.start_time) for session in sessions})
    run = 1
    longest = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if (current - previous).days == 1 else 1
        longest = max(longest, run)

    today = _resolve_now(now).date()
    current_streak = run if days[-1] in (today, today - timedelta(days=1)) else 0
    latest = max(sessions, key=lambda session: _as_local(session.start_time))
    return StudyStreak(
        current_streak=current_streak,
        longest_streak=longest,
        last_study_date=latest.start_time,
    )


def _time_of_day_bucket(hour: int) -> str:
    if hour < MORNING_END_HOUR:
        return "morning"
    if hour < EVENING_START_HOUR:
        return "afternoon"
    return "evening"


def compute_study_time_analytics(
    sessions: Sequence[StudySession],
    now: Optional[datetime] = None,
    daily_goal_minutes: int = 30,
) -> StudyTimeAnalytics:
    """
    Study-time totals, averages and time-of-day patterns.

    Today, this week (from Monday) and this month (from the 1st) sum the durations
    of sessions that started inside the window and no later than the end of today.
    The most productive hour is the start hour with the most correct answers,
    the earliest hour winning ties.
    """
    if not sessions:
        return StudyTimeAnalytics()

    current = _resolve_now(now)
    today_start = datetime.combine(current.date(), time.min)
    tomorrow_start = today_start + timedelta(days=1)
    week_start = today_start - timedelta(days=today_start.weekday())
    month_start = today_start.replace(day=1)

    def window_ms(start: datetime) -> int:
        return sum(
            session.duration_ms
            for session in sessions
            if start <= _as_local(session.start_time) < tomorrow_start
        )

    weekly_ms = window_ms(week_start)
    total_ms = sum(session.duration_ms for session in sessions)
    study_days = {_local_day(session.start_time) for session in sessions}

    correct_by_hour: Dict[int, int] = {}
    distribution_ms = {"morning": 0, "afternoon": 0, "evening": 0}
    for session in sessions:
        hour = _as_local(session.start_time).hour
        correct_by_hour[hour] = correct_by_hour.get(hour, 0) + session.correct_answers
        distribution_ms[_time_of_day_bucket(hour)] += session.duration_ms

    best = max(correct_by_hour.values())
    productive_hour = min(hour for hour, total in correct_by_hour.items() if total == best)

    window_floor = current - timedelta(days=CONSISTENCY_WINDOW_DAYS)
    recent_sessions = sum(
        1 for session in sessions if window_floor < _as_local(session.start_time) <= current
    )
    goal_minutes = CONSISTENCY_WINDOW_DAYS * max(daily_goal_minutes, 1)

    return StudyTimeAnalytics(
        today_study_time=_millis(window_ms(today_start)),
        weekly_study_time=_millis(weekly_ms),
        monthly_study_time=_millis(window_ms(month_start)),
        average_daily_study_time=_millis(total_ms // len(study_days)),
        most_productive_hour=productive_hour,
        study_consistency=min(recent_sessions / CONSISTENCY_WINDOW_DAYS, 1.0),
        weekly_goal_progress=min(weekly_ms / 60_000 / goal_minutes, 1.0),
        study_time_distribution={name: _millis(ms) for name, ms in distribution_ms.items()},
        longest_study_session=max(sessions, key=lambda session: session.duration_ms),
        total_lifetime_study_time=_millis(total_ms),
    )


def compute_difficulty_progression(events: Sequence[PerformanceEvent]) -> Dict[Difficulty, float]:
    """Accuracy percentage per difficulty tier; unattempted tiers report 0."""
    return {
        difficulty: stats.accuracy * 100
        for difficulty, stats in aggregate_by_difficulty(events).items()
    }


def compute_recent_activity(
    events: Sequence[PerformanceEvent],
    limit: int = 10,
) -> List[ActivityItem]:
    """The ``limit`` most recent answers as timeline items, newest first."""
    ordered = sorted(events, key=lambda event: _as_local(event.timestamp), reverse=True)
    activity: List[ActivityItem] = []
    for event in ordered[: max(limit, 0)]:
        if event.is_correct:
            description = f"Answered correctly in {event.response_time_ms // 1000}s"
        else:
            description = f"Needs more practice ({event.hints_used} hints used)"
        activity.append(
            ActivityItem(
                id=event.id,
                type=ActivityType.QUESTION,
                title=f"{event.category.display_name} question",
                description=description,
                timestamp=event.timestamp,
                is_positive=event.is_correct,
                category=event.category,
                difficulty=event.difficulty,
            )
        )
    return activity


def compute_achievement_progress(events: Sequence[PerformanceEvent]) -> Dict[str, float]:
    """Percent progress (0-100) toward accuracy and question-count milestones."""
    if not events:
        return {}
    total = len(events)
    accuracy_pct = sum(1 for event in events if event.is_correct) * 100 / total
    progress: Dict[str, float] = {}
    for target in ACCURACY_MILESTONES:
        progress[f"accuracy_{target}"] = 100.0 if accuracy_pct >= target else accuracy_pct * 100 / target
    for target in QUESTION_MILESTONES:
        progress[f"questions_{target}"] = 100.0 if total >= target else total * 100 / target
    return progress


def compute_progress_statistics(
    events: Sequence[PerformanceEvent],
    sessions: Sequence[StudySession],
    now: Optional[datetime] = None,
) -> ProgressStatistics:
    """Lifetime counters; average session length only considers closed sessions."""
    closed = [session for session in sessions if session.is_closed]
    total_ms = sum(session.duration_ms for session in sessions)
    average_ms = sum(session.duration_ms for session in closed) // len(closed) if closed else 0
    streak = compute_study_streak(sessions, now=now)
    return ProgressStatistics(
        total_questions_answered=len(events),
        total_correct_answers=sum(1 for event in events if event.is_correct),
        total_study_time=_millis(total_ms),
        average_session_length=_millis(average_ms),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        topics_explored=len({event.category for event in events}),
        difficulties_attempted=len({event.difficulty for event in events}),
        game_modes_played=len({event.game_mode for event in events}),
    )


def compute_topic_analytics(events: Sequence[PerformanceEvent]) -> Dict[Category, TopicAnalytics]:
    """Detail for each practiced category, keyed in category order."""
    by_category: Dict[Category, List[PerformanceEvent]] = {}
    for event in events:
        by_category.setdefault(event.category, []).append(event)

    analytics: Dict[Category, TopicAnalytics] = {}
    for category, stats in aggregate_by_category(events).items():
        if not stats.samples:
            continue
        distribution = {
            difficulty: tier.samples
            for difficulty, tier in aggregate_by_difficulty(by_category[category]).items()
        }
        analytics[category] = TopicAnalytics(
            category=category,
            total_questions=stats.samples,
            correct_answers=stats.correct,
            average_response_time=_millis(stats.total_response_ms // stats.samples),
            mastery_level=stats.accuracy * 100,
            difficulty_distribution=distribution,
            last_practiced=stats.last_practiced,
        )
    return analytics
