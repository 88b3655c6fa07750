from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .clock import Clock, SystemClock
from .config import settings
from .errors import InvalidReference
from .logging import logger
from .models.common import Result
from .models.srs import DailyProgress, ReviewItem, ReviewRating, ReviewStats, SrsState
from .ranking import due_words, is_due, overdue_words
from .srs import is_correct, is_mastered, new_state, review


class ReviewRepository:
    """In-memory per-item scheduling state, addressable by id.

    挿入順を保持する dict。永続化は persistence 側のアダプタが担当する。
    """

    def __init__(self, items: Iterable[ReviewItem] = ()) -> None:
        self._items: Dict[str, ReviewItem] = {}
        for item in items:
            self._items[item.id] = item

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReviewRepository):
            return NotImplemented
        return list(self._items.items()) == list(other._items.items())

    def get(self, item_id: str) -> Optional[ReviewItem]:
        return self._items.get(item_id)

    def put(self, item: ReviewItem) -> None:
        self._items[item.id] = item

    def remove(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    def all(self) -> List[ReviewItem]:
        return list(self._items.values())


class SrsStore:
    """Review scheduling facade used by the UI layer.

    - review_word: 採点して次回日時を更新し、統計を増分更新する
    - get_words_for_review: 期限切れの項目を優先度順に返す
    - 日次の復習件数は日付が変わったらリセット
    """

    def __init__(
        self,
        repository: Optional[ReviewRepository] = None,
        clock: Optional[Clock] = None,
        stats: Optional[ReviewStats] = None,
        daily: Optional[DailyProgress] = None,
    ) -> None:
        self.repository = repository if repository is not None else ReviewRepository()
        self.clock: Clock = clock or SystemClock()
        self.stats = stats or ReviewStats(average_ease_factor=settings.srs_default_ease_factor)
        self.daily = daily or DailyProgress(goal=settings.srs_daily_review_goal)

    # --- word management ---
    def add_word(
        self,
        word_id: str,
        word: str,
        meaning: str,
        example: Optional[str] = None,
        pronunciation: Optional[str] = None,
    ) -> bool:
        """Add a word with fresh SRS state; returns False when the id already exists."""
        if word_id in self.repository:
            return False
        self.repository.put(
            ReviewItem(
                id=word_id,
                word=word,
                meaning=meaning,
                example=example,
                pronunciation=pronunciation,
                srs=new_state(self.clock.now()),
            )
        )
        return True

    def add_words(self, words: Iterable[dict]) -> int:
        added = 0
        for data in words:
            if self.add_word(
                data["id"],
                data["word"],
                data["meaning"],
                example=data.get("example"),
                pronunciation=data.get("pronunciation"),
            ):
                added += 1
        return added

    def remove_word(self, word_id: str) -> Result[None]:
        if not self.repository.remove(word_id):
            return Result.failure(InvalidReference("word", word_id))
        return Result.success()

    # --- review ---
    def review_word(self, word_id: str, rating: ReviewRating) -> Result[SrsState]:
        item = self.repository.get(word_id)
        if item is None:
            return Result.failure(InvalidReference("word", word_id))

        rating = ReviewRating(rating)
        now = self.clock.now()
        self._reset_daily_if_needed(now)
        updated = review(item.srs, rating, now)
        self.repository.put(item.model_copy(update={"srs": updated}))

        items = self.repository.all()
        self.stats = ReviewStats(
            total_reviews=self.stats.total_reviews + 1,
            correct_reviews=self.stats.correct_reviews + (1 if is_correct(rating) else 0),
            average_ease_factor=sum(i.srs.ease_factor for i in items) / len(items),
            longest_interval=max(i.srs.interval for i in items),
            last_review_date=now,
        )
        self.daily = self.daily.model_copy(update={"done": self.daily.done + 1})
        logger.info(
            "srs_reviewed",
            word_id=word_id,
            rating=rating.value,
            interval=updated.interval,
            ease_factor=updated.ease_factor,
        )
        return Result.success(updated)

    def get_words_for_review(self) -> List[ReviewItem]:
        return due_words(self.repository.all(), self.clock.now())

    def get_due_word_count(self) -> int:
        now = self.clock.now()
        return sum(1 for item in self.repository.all() if is_due(item.srs, now))

    def get_overdue_words(self) -> List[ReviewItem]:
        return overdue_words(self.repository.all(), self.clock.now())

    def get_mastered_words(self) -> List[ReviewItem]:
        return [item for item in self.repository.all() if is_mastered(item.srs)]

    def get_word_progress(self, word_id: str) -> Result[SrsState]:
        item = self.repository.get(word_id)
        if item is None:
            return Result.failure(InvalidReference("word", word_id))
        return Result.success(item.srs)

    def get_word(self, word_id: str) -> Optional[ReviewItem]:
        return self.repository.get(word_id)

    def all_words(self) -> List[ReviewItem]:
        return self.repository.all()

    # --- stats & daily progress ---
    def get_review_stats(self) -> ReviewStats:
        return self.stats

    def set_daily_goal(self, goal: int) -> None:
        self.daily = self.daily.model_copy(update={"goal": max(1, min(100, goal))})

    def get_today_progress(self) -> DailyProgress:
        self._reset_daily_if_needed(self.clock.now())
        return self.daily

    def reset_all_progress(self) -> None:
        now = self.clock.now()
        for item in self.repository.all():
            self.repository.put(item.model_copy(update={"srs": new_state(now)}))
        self.stats = ReviewStats(average_ease_factor=settings.srs_default_ease_factor)
        self.daily = self.daily.model_copy(update={"done": 0})

    def _reset_daily_if_needed(self, now: datetime) -> None:
        today = now.date().isoformat()
        if self.daily.date != today:
            self.daily = self.daily.model_copy(update={"done": 0, "date": today})
