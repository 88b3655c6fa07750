from .common import Result
from .session import (
    SESSION_CONFIG,
    AnswerRecord,
    AnswerSignal,
    Expression,
    Session,
    SessionContent,
    SessionProgress,
    SessionRecord,
    SessionStats,
    SessionStatus,
    SessionType,
    TickOutcome,
    TimeRemaining,
)
from .srs import DailyProgress, ReviewItem, ReviewRating, ReviewStats, SrsState

__all__ = [
    "SESSION_CONFIG",
    "AnswerRecord",
    "AnswerSignal",
    "DailyProgress",
    "Expression",
    "Result",
    "ReviewItem",
    "ReviewRating",
    "ReviewStats",
    "Session",
    "SessionContent",
    "SessionProgress",
    "SessionRecord",
    "SessionStats",
    "SessionStatus",
    "SessionType",
    "SrsState",
    "TickOutcome",
    "TimeRemaining",
]
