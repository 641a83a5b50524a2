from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

DEFAULT_DIFFICULTY = "normal"
DEFAULT_GRADE_LEVEL = "grade5"
DEFAULT_GAME_MODE = "classic_quiz"
DEFAULT_SESSION_TYPE = "practice"


class Category(str, Enum):
    """Topic domain a practice question belongs to."""

    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"
    ALGEBRA = "algebra"
    GEOMETRY = "geometry"
    CALCULUS = "calculus"
    FRACTIONS = "fractions"
    DECIMALS = "decimals"
    PERCENTAGES = "percentages"
    WORD_PROBLEMS = "word_problems"
    PATTERNS = "patterns"
    MEASUREMENT = "measurement"
    DATA_ANALYSIS = "data_analysis"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Difficulty(str, Enum):
    """Ordinal difficulty tier, lowest first."""

    EASY = "easy"
    NORMAL = "normal"
    GENIUS = "genius"
    QUANTUM = "quantum"

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)


class GradeLevel(str, Enum):
    """School grade band from pre-kindergarten through grade 12."""

    PRE_K = "pre_k"
    KINDERGARTEN = "kindergarten"
    GRADE1 = "grade1"
    GRADE2 = "grade2"
    GRADE3 = "grade3"
    GRADE4 = "grade4"
    GRADE5 = "grade5"
    GRADE6 = "grade6"
    GRADE7 = "grade7"
    GRADE8 = "grade8"
    GRADE9 = "grade9"
    GRADE10 = "grade10"
    GRADE11 = "grade11"
    GRADE12 = "grade12"


class SessionStateError(ValueError):
    """Raised when a study session lifecycle transition is not allowed."""


def new_id() -> str:
    """Return a collision-resistant record identifier."""
    return uuid.uuid4().hex


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision so timestamps survive the wire format unchanged."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def to_local_naive(value: datetime) -> datetime:
    """Express an aware timestamp in local wall-clock time; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def now_millis() -> datetime:
    """Current local wall-clock time at millisecond precision."""
    return truncate_to_millis(datetime.now())


def _fallback_enum(value: Any, enum_cls: type[Enum], default: str) -> Any:
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value in {member.value for member in enum_cls}:
        return value
    return default


class _WireRecord(BaseModel):
    """Shared config for persisted records: camelCase on the wire, immutable in memory."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON-compatible wire mapping."""
        return self.model_dump(mode="json", by_alias=True)


class PerformanceEvent(_WireRecord):
    """One atomic answer attempt with correctness, timing, and context."""

    id: str = Field(default_factory=new_id)
    learner_id: str = Field(alias="learnerId")
    question_id: str = Field(alias="questionId")
    category: Category
    difficulty: Difficulty = Difficulty.NORMAL
    grade_level: GradeLevel = Field(GradeLevel.GRADE5, alias="gradeLevel")
    is_correct: bool = Field(alias="isCorrect")
    response_time_ms: int = Field(0, ge=0, alias="responseTimeMs")
    hints_used: int = Field(0, ge=0, alias="hintsUsed")
    game_mode: str = Field(DEFAULT_GAME_MODE, alias="gameMode")
    timestamp: datetime = Field(default_factory=now_millis)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("difficulty", mode="before")
    @classmethod
    def default_unknown_difficulty(cls, value: Any) -> Any:
        return _fallback_enum(value, Difficulty, DEFAULT_DIFFICULTY)

    @field_validator("grade_level", mode="before")
    @classmethod
    def default_unknown_grade(cls, value: Any) -> Any:
        return _fallback_enum(value, GradeLevel, DEFAULT_GRADE_LEVEL)

    @field_validator("game_mode", mode="before")
    @classmethod
    def default_missing_mode(cls, value: Any) -> Any:
        return DEFAULT_GAME_MODE if value is None else value

    @field_validator("extra", mode="before")
    @classmethod
    def default_missing_extra(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("timestamp")
    @classmethod
    def millisecond_precision(cls, value: datetime) -> datetime:
        return truncate_to_millis(to_local_naive(value))

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat(timespec="milliseconds")

    @property
    def response_time(self) -> timedelta:
        return timedelta(milliseconds=self.response_time_ms)

    @property
    def seeded(self) -> bool:
        """True when the event was synthesized by the cold-start bootstrap."""
        return bool(self.extra.get("seeded", False))


class StudySession(_WireRecord):
    """
    Bounded interval of study activity.

    A session is created open (``end_time`` is ``None`` and ``duration_ms`` zero) and
    closed exactly once through :meth:`close`, which returns a new record carrying the
    final duration and answer counts.
    """

    id: str = Field(default_factory=new_id)
    learner_id: str = Field(alias="learnerId")
    start_time: datetime = Field(default_factory=now_millis, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    duration_ms: int = Field(0, ge=0, alias="durationMs")
    topics_studied: List[Category] = Field(default_factory=list, alias="topicsStudied")
    questions_answered: int = Field(0, ge=0, alias="questionsAnswered")
    correct_answers: int = Field(0, ge=0, alias="correctAnswers")
    session_type: str = Field(DEFAULT_SESSION_TYPE, alias="sessionType")
    seeded: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def millisecond_precision(cls, value: Optional[datetime]) -> Optional[datetime]:
        return truncate_to_millis(to_local_naive(value)) if value is not None else None

    @field_validator("topics_studied", mode="before")
    @classmethod
    def dedupe_topics(cls, value: Any) -> Any:
        if value is None:
            return []
        seen: List[Any] = []
        for topic in value:
            if topic not in seen:
                seen.append(topic)
        return seen

    @field_validator("session_type", mode="before")
    @classmethod
    def default_missing_type(cls, value: Any) -> Any:
        return DEFAULT_SESSION_TYPE if value is None else value

    @field_validator("seeded", mode="before")
    @classmethod
    def default_missing_seeded(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def check_counts(self) -> "StudySession":
        if self.correct_answers > self.questions_answered:
            raise ValueError("correct_answers cannot exceed questions_answered")
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time cannot precede start_time")
        return self

    @field_serializer("start_time", "end_time")
    def serialize_times(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat(timespec="milliseconds") if value is not None else None

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.duration_ms)

    def close(
        self,
        questions_answered: int,
        correct_answers: int,
        end_time: Optional[datetime] = None,
    ) -> "StudySession":
        """Return the closed form of this session; closing twice is an error."""
        if self.is_closed:
            raise SessionStateError(f"Session {self.id} is already closed")
        end = truncate_to_millis(to_local_naive(end_time)) if end_time is not None else now_millis()
        if end < self.start_time:
            raise SessionStateError(f"Session {self.id} cannot end before it started")
        elapsed = end - self.start_time
        payload = self.model_dump(by_alias=False)
        payload.update(
            end_time=end,
            duration_ms=elapsed // timedelta(milliseconds=1),
            questions_answered=questions_answered,
            correct_answers=correct_answers,
        )
        return StudySession.model_validate(payload)
