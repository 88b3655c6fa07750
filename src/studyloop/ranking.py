from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List

from .models.srs import ReviewItem, SrsState


_ONE_DAY = timedelta(days=1)


def is_due(state: SrsState, now: datetime) -> bool:
    return state.repetition == 0 or state.next_review_date <= now


def overdue_days(state: SrsState, now: datetime) -> int:
    """Whole days past the scheduled review; 0 when not yet due."""
    delta = now - state.next_review_date
    if delta <= timedelta(0):
        return 0
    return delta // _ONE_DAY


def due_words(items: Iterable[ReviewItem], now: datetime) -> List[ReviewItem]:
    """Due items, most urgent first.

    - 期限超過が長いものを優先（新規追加分に古い復習が埋もれないように）
    - 同じなら EF が低い（苦手な）ものを優先
    - 最後に id で安定化し、同じ入力なら同じ順序を返す
    """
    due = [item for item in items if is_due(item.srs, now)]
    return sorted(
        due,
        key=lambda item: (
            -(now - item.srs.next_review_date),
            item.srs.ease_factor,
            item.id,
        ),
    )


def overdue_words(items: Iterable[ReviewItem], now: datetime) -> List[ReviewItem]:
    """Items whose next review strictly predates `now`, in ranking order."""
    return [item for item in due_words(items, now) if item.srs.next_review_date < now]
