from __future__ import annotations

import json
import logging
import threading
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence, Type, TypeVar

from pydantic import ValidationError

from learner_analytics.data_models import PerformanceEvent, SessionStateError, StudySession

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 1000

RecordT = TypeVar("RecordT", PerformanceEvent, StudySession)


class EventStore(ABC):
    """
    Durable owner of each learner's performance events and study sessions.

    Loads never raise: a learner without history, or with an unreadable payload,
    yields an empty list. Mutations for one learner are serialized through
    :meth:`locked`, so callers that need a check-then-write sequence (such as
    cold-start seeding) can hold the same lock across both steps.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @contextmanager
    def locked(self, learner_id: str) -> Iterator[None]:
        """
        Hold the learner's exclusive section for the duration of the block.

        Locks are held weakly, so a learner's entry disappears once no caller
        is inside or waiting on it.
        """
        with self._locks_guard:
            lock = self._locks.get(learner_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[learner_id] = lock
        with lock:
            yield

    @abstractmethod
    def load_events(self, learner_id: str) -> List[PerformanceEvent]:
        """Return the learner's retained events, oldest first."""

    @abstractmethod
    def load_sessions(self, learner_id: str) -> List[StudySession]:
        """Return the learner's sessions in the order they were started."""

    @abstractmethod
    def append_event(self, learner_id: str, event: PerformanceEvent) -> bool:
        """Append one event and apply retention; return whether the write succeeded."""

    @abstractmethod
    def append_session(self, learner_id: str, session: StudySession) -> bool:
        """Append one session; return whether the write succeeded."""

    @abstractmethod
    def close_session(
        self,
        learner_id: str,
        session_id: str,
        questions_answered: int,
        correct_answers: int,
        end_time: Optional[datetime] = None,
    ) -> Optional[StudySession]:
        """Close an open session and return the stored result, or None when nothing was closed."""

    def append_events(self, learner_id: str, events: Iterable[PerformanceEvent]) -> bool:
        """Append several events; backends may override to write once."""
        with self.locked(learner_id):
            return all([self.append_event(learner_id, event) for event in events])

    def append_sessions(self, learner_id: str, sessions: Iterable[StudySession]) -> bool:
        """Append several sessions; backends may override to write once."""
        with self.locked(learner_id):
            return all([self.append_session(learner_id, session) for session in sessions])


class KeyValueEventStore(EventStore):
    """
    Event store over a string key/value backend.

    Each learner owns two keys, ``performance_history_<id>`` and
    ``study_sessions_<id>``, holding a JSON array of wire records. Every mutation is
    a full read-modify-write performed under the learner lock. Subclasses only
    provide raw ``_read``/``_write`` access.
    """

    EVENTS_PREFIX = "performance_history"
    SESSIONS_PREFIX = "study_sessions"

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        super().__init__()
        if max_events < 1:
            raise ValueError("max_events must be positive")
        self.max_events = max_events

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the raw payload stored under ``key`` or None when absent."""

    @abstractmethod
    def _write(self, key: str, payload: str) -> None:
        """Replace the raw payload stored under ``key``."""

    def events_key(self, learner_id: str) -> str:
        return f"{self.EVENTS_PREFIX}_{learner_id}"

    def sessions_key(self, learner_id: str) -> str:
        return f"{self.SESSIONS_PREFIX}_{learner_id}"

    def load_events(self, learner_id: str) -> List[PerformanceEvent]:
        return self._load_records(self.events_key(learner_id), PerformanceEvent)

    def load_sessions(self, learner_id: str) -> List[StudySession]:
        return self._load_records(self.sessions_key(learner_id), StudySession)

    def append_event(self, learner_id: str, event: PerformanceEvent) -> bool:
        return self.append_events(learner_id, [event])

    def append_events(self, learner_id: str, events: Iterable[PerformanceEvent]) -> bool:
        new_events = list(events)
        if not new_events:
            return True
        with self.locked(learner_id):
            history = self.load_events(learner_id)
            history.extend(new_events)
            if len(history) > self.max_events:
                dropped = len(history) - self.max_events
                history = history[dropped:]
                logger.debug(f"Retention dropped {dropped} oldest events for {learner_id}")
            return self._save_records(self.events_key(learner_id), history)

    def append_session(self, learner_id: str, session: StudySession) -> bool:
        return self.append_sessions(learner_id, [session])

    def append_sessions(self, learner_id: str, sessions: Iterable[StudySession]) -> bool:
        new_sessions = list(sessions)
        if not new_sessions:
            return True
        with self.locked(learner_id):
            stored = self.load_sessions(learner_id)
            stored.extend(new_sessions)
            return self._save_records(self.sessions_key(learner_id), stored)

    def close_session(
        self,
        learner_id: str,
        session_id: str,
        questions_answered: int,
        correct_answers: int,
        end_time: Optional[datetime] = None,
    ) -> Optional[StudySession]:
        with self.locked(learner_id):
            sessions = self.load_sessions(learner_id)
            index = next((i for i, s in enumerate(sessions) if s.id == session_id), None)
            if index is None:
                logger.warning(f"Cannot close unknown session {session_id} for {learner_id}")
                return None
            try:
                closed = sessions[index].close(questions_answered, correct_answers, end_time)
            except (SessionStateError, ValidationError, TypeError) as exc:
                logger.warning(f"Rejected close of session {session_id}: {exc}")
                return None
            sessions[index] = closed
            if not self._save_records(self.sessions_key(learner_id), sessions):
                return None
        logger.info(f"Study session ended: {session_id} ({closed.duration_ms // 60000} min)")
        return closed

    def _load_records(self, key: str, model: Type[RecordT]) -> List[RecordT]:
        try:
            raw = self._read(key)
        except OSError as exc:
            logger.warning(f"Could not read {key}: {exc}")
            return []
        if raw is None or not raw.strip():
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Ignoring malformed payload under {key}: {exc}")
            return []
        if not isinstance(items, list):
            logger.warning(f"Ignoring non-list payload under {key}")
            return []

        records: List[RecordT] = []
        for position, item in enumerate(items):
            try:
                records.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping invalid record {position} under {key}: {exc.error_count()} error(s)")
            except (TypeError, ValueError) as exc:
                logger.warning(f"Skipping unreadable record {position} under {key}: {exc}")
        return records

    def _save_records(self, key: str, records: Sequence[RecordT]) -> bool:
        try:
            payload = json.dumps([record.to_json_dict() for record in records])
        except (TypeError, ValueError) as exc:
            logger.error(f"Could not serialize records for {key}: {exc}")
            return False
        try:
            self._write(key, payload)
        except OSError as exc:
            logger.error(f"Failed to persist {key}: {exc}")
            return False
        return True
