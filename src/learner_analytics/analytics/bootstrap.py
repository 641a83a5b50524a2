from __future__ import annotations

import logging
import random
import uuid
import zlib
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Optional

from learner_analytics.data_models import (
    Category,
    Difficulty,
    GradeLevel,
    PerformanceEvent,
    StudySession,
    now_millis,
    to_local_naive,
    truncate_to_millis,
)
from learner_analytics.storage import EventStore

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 8
MAX_QUESTIONS = 20
MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 45
START_ACCURACY = 0.55
END_ACCURACY = 0.85

BASE_RESPONSE_MS = 3000
CORRECT_RESPONSE_SHIFT_MS = -500
INCORRECT_RESPONSE_SHIFT_MS = 2000
RESPONSE_JITTER_MS = 2000
MAX_HINTS = 2


@dataclass
class SeedHistory:
    """Synthetic sessions and events produced for one learner, oldest first."""

    sessions: List[StudySession] = field(default_factory=list)
    events: List[PerformanceEvent] = field(default_factory=list)


class BootstrapGenerator:
    """
    Synthesize a plausible first week of practice for a learner with no history.

    The output depends only on the learner id and the reference time: a random
    generator seeded from the learner id drives response-time jitter, hint counts
    and record ids. Each day gets one closed session; session length, question
    count and accuracy grow toward the most recent day, and every question becomes
    one event whose correctness matches the session's correct-answer count.

    Generated records carry provenance (``StudySession.seeded`` and
    ``extra["seeded"]`` on events) but are otherwise treated as real history.
    """

    def __init__(
        self,
        days: int = 7,
        game_mode: str = "classic_quiz",
        grade_level: GradeLevel = GradeLevel.GRADE5,
    ):
        if days < 1:
            raise ValueError("days must be at least 1")
        self.days = days
        self.game_mode = game_mode
        self.grade_level = grade_level

    def generate(self, learner_id: str, now: Optional[datetime] = None) -> SeedHistory:
        """Build the synthetic history without touching storage."""
        reference = truncate_to_millis(to_local_naive(now)) if now is not None else now_millis()
        rng = random.Random(zlib.crc32(learner_id.encode("utf-8")))
        categories = list(Category)
        difficulties = list(Difficulty)
        history = SeedHistory()
        question_counter = 0

        for index in range(self.days):
            days_ago = self.days - 1 - index
            ramp = index / (self.days - 1) if self.days > 1 else 1.0
            questions = MIN_QUESTIONS + round((MAX_QUESTIONS - MIN_QUESTIONS) * ramp)
            minutes = MIN_SESSION_MINUTES + round((MAX_SESSION_MINUTES - MIN_SESSION_MINUTES) * ramp)
            correct = round(questions * (START_ACCURACY + (END_ACCURACY - START_ACCURACY) * ramp))
            anchor = reference - timedelta(days=days_ago)
            day_start = datetime.combine(anchor.date(), time.min)
            # Each session ends at the anchor and never crosses midnight.
            duration = min(timedelta(minutes=minutes), anchor - day_start)
            start = anchor - duration
            session_id = self._random_id(rng)

            session_categories: List[Category] = []
            spacing = duration / questions
            for question in range(questions):
                category = categories[question_counter % len(categories)]
                question_counter += 1
                if category not in session_categories:
                    session_categories.append(category)

                # Spread the correct answers evenly across the session.
                is_correct = (question + 1) * correct // questions > question * correct // questions
                shift = CORRECT_RESPONSE_SHIFT_MS if is_correct else INCORRECT_RESPONSE_SHIFT_MS
                response_ms = BASE_RESPONSE_MS + shift + rng.randrange(RESPONSE_JITTER_MS)
                hints = 0 if is_correct else rng.randint(0, MAX_HINTS)

                history.events.append(
                    PerformanceEvent(
                        id=self._random_id(rng),
                        learner_id=learner_id,
                        question_id=f"q_{index}_{question}",
                        category=category,
                        difficulty=difficulties[(index + question) % len(difficulties)],
                        grade_level=self.grade_level,
                        is_correct=is_correct,
                        response_time_ms=response_ms,
                        hints_used=hints,
                        game_mode=self.game_mode,
                        timestamp=start + spacing * question,
                        extra={
                            "session_id": session_id,
                            "question_index": question,
                            "total_questions": questions,
                            "seeded": True,
                        },
                    )
                )

            history.sessions.append(
                StudySession(
                    id=session_id,
                    learner_id=learner_id,
                    start_time=start,
                    end_time=anchor,
                    duration_ms=duration // timedelta(milliseconds=1),
                    topics_studied=session_categories,
                    questions_answered=questions,
                    correct_answers=correct,
                    session_type=self.game_mode,
                    seeded=True,
                )
            )

        return history

    def seed(self, store: EventStore, learner_id: str, now: Optional[datetime] = None) -> bool:
        """Generate the history and write it through ``store``; return whether both writes succeeded."""
        logger.info(f"Generating {self.days} days of seed history for {learner_id}")
        history = self.generate(learner_id, now=now)
        sessions_ok = store.append_sessions(learner_id, history.sessions)
        events_ok = store.append_events(learner_id, history.events)
        if sessions_ok and events_ok:
            logger.info(
                f"Seeded {len(history.sessions)} sessions and {len(history.events)} events for {learner_id}"
            )
        else:
            logger.error(f"Seed history for {learner_id} was only partially persisted")
        return sessions_ok and events_ok

    @staticmethod
    def _random_id(rng: random.Random) -> str:
        return uuid.UUID(int=rng.getrandbits(128), version=4).hex
