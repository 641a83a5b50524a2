"""Tests for the JSON and in-memory event stores."""

from __future__ import annotations

import gc
import json
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from learner_analytics.config.schema import StorageConfig
from learner_analytics.data_models import PerformanceEvent, StudySession
from learner_analytics.storage import (
    InMemoryEventStore,
    JsonFileEventStore,
    create_event_store,
)

START = datetime(2024, 5, 15, 9, 0)


def make_event(index: int, learner_id: str = "student123") -> PerformanceEvent:
    return PerformanceEvent(
        id=f"e{index}",
        learner_id=learner_id,
        question_id=f"q{index}",
        category="addition",
        is_correct=index % 2 == 0,
        response_time_ms=3000,
        timestamp=START + timedelta(seconds=index),
    )


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for learner files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(params=["json", "memory"])
def store(request, temp_data_dir):
    """Exercise each backend through the same contract."""
    if request.param == "json":
        return JsonFileEventStore(temp_data_dir)
    return InMemoryEventStore()


class FailingWriteStore(InMemoryEventStore):
    def _write(self, key: str, payload: str) -> None:
        raise OSError("disk full")


def test_unknown_learner_has_empty_history(store):
    assert store.load_events("nobody") == []
    assert store.load_sessions("nobody") == []


def test_events_persist_in_append_order(store):
    appended = [make_event(index) for index in range(3)]
    for event in appended:
        assert store.append_event("student123", event)

    loaded = store.load_events("student123")
    assert [event.question_id for event in loaded] == ["q0", "q1", "q2"]
    assert [event.model_dump() for event in loaded] == [event.model_dump() for event in appended]
    assert store.load_events("someone_else") == [], "Histories are per learner"


def test_retention_keeps_most_recent(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir, max_events=5)
    for index in range(8):
        store.append_event("student123", make_event(index))

    assert [event.question_id for event in store.load_events("student123")] == ["q3", "q4", "q5", "q6", "q7"]


def test_default_retention_is_one_thousand():
    store = InMemoryEventStore()
    store.append_events("student123", [make_event(index) for index in range(1005)])

    events = store.load_events("student123")
    assert len(events) == 1000
    assert events[0].question_id == "q5"
    assert events[-1].question_id == "q1004"


def test_invalid_retention_rejected():
    with pytest.raises(ValueError):
        InMemoryEventStore(max_events=0)


def test_session_close_lifecycle(store):
    session = StudySession(learner_id="student123", start_time=START)
    store.append_session("student123", session)

    closed = store.close_session(
        "student123", session.id, questions_answered=10, correct_answers=7,
        end_time=START + timedelta(minutes=18),
    )
    assert closed is not None
    assert closed.duration_ms == 18 * 60_000

    stored = store.load_sessions("student123")
    assert len(stored) == 1
    assert stored[0].is_closed
    assert stored[0].correct_answers == 7

    again = store.close_session("student123", session.id, questions_answered=11, correct_answers=8)
    assert again is None, "A closed session cannot be closed twice"
    assert store.load_sessions("student123")[0].questions_answered == 10


def test_close_unknown_session_returns_none(store):
    assert store.close_session("student123", "missing", questions_answered=1, correct_answers=1) is None


def test_close_with_bad_counts_leaves_session_open(store):
    session = StudySession(learner_id="student123", start_time=START)
    store.append_session("student123", session)

    result = store.close_session(
        "student123", session.id, questions_answered=1, correct_answers=3,
        end_time=START + timedelta(minutes=1),
    )
    assert result is None
    assert not store.load_sessions("student123")[0].is_closed


def test_malformed_file_reads_as_empty(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir)
    store.key_path(store.events_key("student123")).write_text("{not json", encoding="utf-8")
    store.key_path(store.sessions_key("student123")).write_text('{"a": 1}', encoding="utf-8")

    assert store.load_events("student123") == []
    assert store.load_sessions("student123") == []


def test_invalid_records_are_skipped(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir)
    good = make_event(1).to_json_dict()
    bad = dict(good, category="astrology")
    store.key_path(store.events_key("student123")).write_text(
        json.dumps([bad, good]),
        encoding="utf-8",
    )

    events = store.load_events("student123")
    assert [event.question_id for event in events] == ["q1"]


def test_mixed_offset_session_loads(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir)
    end_utc = (START + timedelta(hours=1)).astimezone(timezone.utc)
    store.key_path(store.sessions_key("student123")).write_text(
        json.dumps(
            [
                {
                    "id": "s1",
                    "learnerId": "student123",
                    "startTime": START.isoformat(timespec="milliseconds"),
                    "endTime": end_utc.isoformat(timespec="milliseconds"),
                    "durationMs": 3_600_000,
                }
            ]
        ),
        encoding="utf-8",
    )

    sessions = store.load_sessions("student123")
    assert len(sessions) == 1
    assert sessions[0].end_time == START + timedelta(hours=1)
    assert sessions[0].end_time.tzinfo is None, "Stored times are local wall-clock values"


def test_session_ending_before_start_is_skipped(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir)
    end_utc = (START - timedelta(hours=1)).astimezone(timezone.utc)
    store.key_path(store.sessions_key("student123")).write_text(
        json.dumps(
            [
                {
                    "id": "s1",
                    "learnerId": "student123",
                    "startTime": START.isoformat(timespec="milliseconds"),
                    "endTime": end_utc.isoformat(timespec="milliseconds"),
                }
            ]
        ),
        encoding="utf-8",
    )

    assert store.load_sessions("student123") == []


def test_close_with_aware_end_time(store):
    session = StudySession(learner_id="student123", start_time=START)
    store.append_session("student123", session)

    closed = store.close_session(
        "student123", session.id, questions_answered=1, correct_answers=1,
        end_time=(START + timedelta(minutes=10)).astimezone(timezone.utc),
    )
    assert closed is not None
    assert closed.end_time == START + timedelta(minutes=10)
    assert closed.duration_ms == 10 * 60_000
    assert store.load_sessions("student123")[0].is_closed


def test_idle_learner_locks_are_released():
    store = InMemoryEventStore()
    with store.locked("student123"):
        with store.locked("student123"):
            assert "student123" in store._locks
    gc.collect()

    assert "student123" not in store._locks


def test_key_path_stays_in_data_dir(temp_data_dir):
    store = JsonFileEventStore(temp_data_dir)
    path = store.key_path(store.events_key("../../etc/passwd"))

    assert path.parent == temp_data_dir
    assert path.suffix == ".json"


def test_write_failure_is_swallowed():
    store = FailingWriteStore()

    assert store.append_event("student123", make_event(0)) is False
    assert store.load_events("student123") == []


def test_concurrent_appends_lose_nothing(store):
    def worker(offset: int) -> None:
        for index in range(25):
            store.append_event("student123", make_event(offset * 100 + index))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    events = store.load_events("student123")
    assert len(events) == 100
    assert len({event.id for event in events}) == 100


def test_factory_builds_configured_backend(temp_data_dir):
    json_store = create_event_store(StorageConfig(backend="json", data_dir=temp_data_dir / "learners"))
    memory_store = create_event_store(StorageConfig(backend="MEMORY", max_events=10))

    assert isinstance(json_store, JsonFileEventStore)
    assert (temp_data_dir / "learners").is_dir()
    assert isinstance(memory_store, InMemoryEventStore)
    assert memory_store.max_events == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
