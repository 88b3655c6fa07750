from enum import Enum
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class SessionType(str, Enum):
    thirty_seconds = "30s"
    one_minute = "1m"
    five_minutes = "5m"


class SessionStatus(str, Enum):
    idle = "idle"
    active = "active"
    paused = "paused"
    completed = "completed"


class SessionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration: int
    expression_count: int


SESSION_CONFIG: dict[SessionType, SessionConfig] = {
    SessionType.thirty_seconds: SessionConfig(duration=30, expression_count=3),
    SessionType.one_minute: SessionConfig(duration=60, expression_count=6),
    SessionType.five_minutes: SessionConfig(duration=300, expression_count=15),
}


class Expression(BaseModel):
    """A practice candidate shown during a session."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    prompt: str
    answer: str
    pronunciation: Optional[str] = None
    context: Optional[str] = None
    skills: list[str] = Field(default_factory=list)


class SessionContent(BaseModel):
    """Selected candidates per pedagogical bucket.

    - success: 正答率 80% 以上（自信づけ）
    - weakness: 30〜79%（弱点補強、不足分の補充先）
    - expansion: 30% 未満または未出題（新しい挑戦）
    """

    success: list[Expression] = Field(default_factory=list)
    weakness: list[Expression] = Field(default_factory=list)
    expansion: list[Expression] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.success) + len(self.weakness) + len(self.expansion)

    def flatten(self) -> list[Expression]:
        return [*self.success, *self.weakness, *self.expansion]


class AnswerRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    expression_id: str
    is_correct: bool
    user_answer: Optional[str] = None
    time_spent_ms: int = Field(default=0, ge=0)
    attempts: int = Field(default=1, ge=1)


class AnswerSignal(BaseModel):
    """Outcome emitted after an answer for feedback collaborators (sound/haptics)."""

    model_config = ConfigDict(frozen=True)

    expression_id: str
    is_correct: bool
    attempts: int
    correct_streak: int
    is_first_answer: bool
    is_milestone: bool


class Session(BaseModel):
    """Live session state. Only `SessionMachine` mutates it."""

    id: str
    type: SessionType
    expressions: list[Expression]
    current_index: int = 0
    answers: list[AnswerRecord] = Field(default_factory=list)
    time_remaining: int = Field(ge=0)
    is_paused: bool = False
    started_at: AwareDatetime


class SessionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: SessionType
    started_at: AwareDatetime
    completed_at: AwareDatetime
    answers: tuple[AnswerRecord, ...] = ()
    total_count: int = Field(ge=0)
    correct_count: int = Field(ge=0)
    score: int = Field(ge=0, le=100)


class SessionProgress(BaseModel):
    current: int
    total: int
    percentage: int


class TimeRemaining(BaseModel):
    minutes: int
    seconds: int


class SessionStats(BaseModel):
    total_sessions: int = 0
    average_score: int = 0
    average_time: int = 0
    by_type: dict[SessionType, int] = Field(
        default_factory=lambda: {t: 0 for t in SessionType}
    )


class TickOutcome(str, Enum):
    counted = "counted"
    completed = "completed"
    paused = "paused"
