from .records import (
    Category,
    Difficulty,
    GradeLevel,
    PerformanceEvent,
    SessionStateError,
    StudySession,
    new_id,
    now_millis,
    to_local_naive,
    truncate_to_millis,
)

__all__ = [
    "Category",
    "Difficulty",
    "GradeLevel",
    "PerformanceEvent",
    "SessionStateError",
    "StudySession",
    "new_id",
    "now_millis",
    "to_local_naive",
    "truncate_to_millis",
]
