"""studyloop — spaced-repetition scheduling and timed learning sessions."""

__version__ = "0.1.0"

from .models import (
    Expression,
    Result,
    ReviewItem,
    ReviewRating,
    SessionRecord,
    SessionStatus,
    SessionType,
    SrsState,
)
from .session import SessionMachine
from .store import ReviewRepository, SrsStore

__all__ = [
    "Expression",
    "Result",
    "ReviewItem",
    "ReviewRating",
    "ReviewRepository",
    "SessionMachine",
    "SessionRecord",
    "SessionStatus",
    "SessionType",
    "SrsState",
    "SrsStore",
]
