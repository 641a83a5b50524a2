"""Tests for cold-start seed history generation."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

import pytest

from learner_analytics.analytics import metrics
from learner_analytics.analytics.bootstrap import BootstrapGenerator
from learner_analytics.storage import InMemoryEventStore

NOW = datetime(2024, 5, 15, 20, 0)


@pytest.fixture
def history():
    return BootstrapGenerator().generate("student123", now=NOW)


def test_one_closed_session_per_day(history):
    assert len(history.sessions) == 7
    days = [session.start_time.date() for session in history.sessions]
    assert days == [NOW.date() - timedelta(days=offset) for offset in range(6, -1, -1)]
    assert all(session.is_closed and session.seeded for session in history.sessions)
    assert all(session.learner_id == "student123" for session in history.sessions)


def test_sessions_grow_toward_today(history):
    questions = [session.questions_answered for session in history.sessions]
    durations = [session.duration_ms for session in history.sessions]
    accuracies = [session.correct_answers / session.questions_answered for session in history.sessions]

    assert questions[0] == 8 and questions[-1] == 20
    assert all(8 <= count <= 20 for count in questions)
    assert questions == sorted(questions)
    assert durations == sorted(durations)
    assert durations[0] == 15 * 60_000 and durations[-1] == 45 * 60_000
    assert accuracies[-1] > accuracies[0]


def test_events_match_session_counts(history):
    assert len(history.events) == sum(session.questions_answered for session in history.sessions)

    correct_by_session = Counter(
        event.extra["session_id"] for event in history.events if event.is_correct
    )
    for session in history.sessions:
        assert correct_by_session[session.id] == session.correct_answers
        end = session.end_time
        for event in history.events:
            if event.extra["session_id"] == session.id:
                assert session.start_time <= event.timestamp <= end


def test_events_carry_provenance(history):
    assert all(event.seeded for event in history.events)
    assert all(event.game_mode == "classic_quiz" for event in history.events)
    assert all(0 <= event.hints_used <= 2 for event in history.events)
    assert all(event.hints_used == 0 for event in history.events if event.is_correct)
    assert all(2500 <= event.response_time_ms < 4500 for event in history.events if event.is_correct)
    assert all(5000 <= event.response_time_ms < 7000 for event in history.events if not event.is_correct)


def test_generation_is_deterministic():
    generator = BootstrapGenerator()
    first = generator.generate("student123", now=NOW)
    second = generator.generate("student123", now=NOW)
    other = generator.generate("student456", now=NOW)

    assert [event.model_dump() for event in first.events] == [event.model_dump() for event in second.events]
    assert [session.id for session in first.sessions] == [session.id for session in second.sessions]
    assert first.sessions[0].id != other.sessions[0].id


def test_seeded_history_yields_full_streak(history):
    streak = metrics.compute_study_streak(history.sessions, now=NOW)
    assert streak.current_streak == 7
    assert streak.longest_streak == 7


def test_single_day_uses_most_recent_profile():
    history = BootstrapGenerator(days=1).generate("student123", now=NOW)

    assert len(history.sessions) == 1
    assert history.sessions[0].questions_answered == 20
    assert history.sessions[0].correct_answers == 17


def test_just_after_midnight_stays_in_the_past():
    just_after_midnight = datetime(2024, 5, 15, 0, 10)
    history = BootstrapGenerator().generate("student123", now=just_after_midnight)

    today = history.sessions[-1]
    assert today.start_time == datetime(2024, 5, 15, 0, 0)
    assert today.end_time == just_after_midnight
    assert today.duration_ms == 10 * 60_000
    assert all(session.end_time <= just_after_midnight for session in history.sessions)
    assert all(event.timestamp <= just_after_midnight for event in history.events)
    assert all(
        session.start_time.date() == session.end_time.date() for session in history.sessions
    )


def test_aware_reference_time():
    history = BootstrapGenerator().generate("student123", now=NOW.astimezone())

    assert history.sessions[-1].end_time == NOW
    assert history.sessions[-1].start_time == NOW - timedelta(minutes=45)


def test_invalid_day_count_rejected():
    with pytest.raises(ValueError):
        BootstrapGenerator(days=0)


def test_seed_writes_through_store():
    store = InMemoryEventStore()
    assert BootstrapGenerator().seed(store, "student123", now=NOW)

    assert len(store.load_sessions("student123")) == 7
    assert len(store.load_events("student123")) == sum(range(8, 21, 2))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
