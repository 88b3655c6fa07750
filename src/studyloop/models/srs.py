from enum import Enum
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from ..config import SM2_EASE_FLOOR


class ReviewRating(str, Enum):
    """Recall quality reported by the learner.

    復習時の自己評価（again < hard < good < easy の順序尺度）。
    """

    again = "again"
    hard = "hard"
    good = "good"
    easy = "easy"


class SrsState(BaseModel):
    """Per-item scheduling state.

    - repetition: 連続成功回数
    - ease_factor: 間隔の伸び率（下限 1.3）
    - interval: 次回までの日数
    """

    model_config = ConfigDict(frozen=True)

    repetition: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=2.5, ge=SM2_EASE_FLOOR)
    interval: int = Field(default=0, ge=0)
    next_review_date: AwareDatetime
    created_at: AwareDatetime
    updated_at: AwareDatetime


class ReviewItem(BaseModel):
    """A learned word together with its scheduling state."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    word: str
    meaning: str
    example: Optional[str] = None
    pronunciation: Optional[str] = None
    srs: SrsState


class ReviewStats(BaseModel):
    """Aggregate review statistics.

    個々の項目の状態から導出される集計値。項目側が常に正であり、
    不整合時は項目から再計算する。
    """

    total_reviews: int = 0
    correct_reviews: int = 0
    average_ease_factor: float = 2.5
    longest_interval: int = 0
    last_review_date: Optional[AwareDatetime] = None


class DailyProgress(BaseModel):
    goal: int = Field(default=20, ge=1, le=100)
    done: int = Field(default=0, ge=0)
    date: Optional[str] = None
