"""SM-2 style scheduler.

Pure functions over `SrsState`; nothing here touches storage or the clock.

- again: repetition/interval reset to 0, ease -0.20, due immediately
- hard/good/easy: 1 day -> 6 days -> round(interval * ease); ease -0.15 / ±0 / +0.15
- ease is clamped to the configured floor; intervals to the configured cap
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .common import round_half_up
from .config import settings
from .models.srs import ReviewRating, SrsState


_EASE_DELTA: dict[ReviewRating, float] = {
    ReviewRating.hard: -0.15,
    ReviewRating.good: 0.0,
    ReviewRating.easy: 0.15,
}
_AGAIN_EASE_PENALTY = 0.20

_RATING_SCORE: dict[ReviewRating, int] = {
    ReviewRating.again: 0,
    ReviewRating.hard: 2,
    ReviewRating.good: 4,
    ReviewRating.easy: 5,
}


def new_state(now: datetime) -> SrsState:
    """Initial state for a freshly added item (immediately due)."""
    return SrsState(
        repetition=0,
        ease_factor=settings.srs_default_ease_factor,
        interval=0,
        next_review_date=now,
        created_at=now,
        updated_at=now,
    )


def _clamp_ease(value: float) -> float:
    # 2桁に丸めて浮動小数の誤差が蓄積しないようにする
    return round(max(settings.srs_min_ease_factor, value), 2)


def next_interval(repetition: int, previous_interval: int, ease_factor: float) -> int:
    """Interval in days for the given (already incremented) repetition count."""
    if repetition == 1:
        interval = 1
    elif repetition == 2:
        interval = 6
    else:
        interval = round_half_up(previous_interval * ease_factor)
    return min(settings.srs_max_interval_days, interval)


def review(state: SrsState, rating: ReviewRating, now: datetime) -> SrsState:
    """Return the state after one review with `rating` at `now`."""
    if rating is ReviewRating.again:
        return state.model_copy(
            update={
                "repetition": 0,
                "interval": 0,
                "ease_factor": _clamp_ease(state.ease_factor - _AGAIN_EASE_PENALTY),
                "next_review_date": now,
                "updated_at": now,
            }
        )

    repetition = state.repetition + 1
    # 間隔は更新前の EF で計算する（rating 間の単調性を保つ）
    interval = next_interval(repetition, state.interval, state.ease_factor)
    ease = _clamp_ease(state.ease_factor + _EASE_DELTA[rating])
    return state.model_copy(
        update={
            "repetition": repetition,
            "interval": interval,
            "ease_factor": ease,
            "next_review_date": now + timedelta(days=interval),
            "updated_at": now,
        }
    )


def is_mastered(state: SrsState) -> bool:
    return state.interval >= settings.srs_mastery_interval_days


def is_correct(rating: ReviewRating) -> bool:
    return rating is not ReviewRating.again


def rating_score(rating: ReviewRating) -> int:
    """SM-2 quality score (0-5) used for statistics."""
    return _RATING_SCORE[rating]
