"""Timed learning sessions.

SessionMachine は 30秒/1分/5分のセッションを管理する。タイマーは持たず、
ホスト側が 1 秒ごとに `tick()` を呼び出す前提で動作する。

    idle -> active <-> paused -> completed
    active/paused -> idle  (cancel)

Illegal calls return `Result.failure(...)` instead of raising.
"""

from __future__ import annotations

import random
import uuid
from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, Sequence

from structlog import contextvars as structlog_contextvars

from .clock import Clock, SystemClock
from .common import normalize_non_negative_int, round_half_up
from .config import settings
from .errors import InvalidReference, InvalidTransition
from .logging import logger
from .models.common import Result
from .models.session import (
    SESSION_CONFIG,
    AnswerRecord,
    AnswerSignal,
    Expression,
    Session,
    SessionProgress,
    SessionRecord,
    SessionStats,
    SessionStatus,
    SessionType,
    TickOutcome,
    TimeRemaining,
)
from .selector import flatten_and_shuffle, select_content


MILESTONE_STREAK = 5


class SessionMachine:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        history_limit: Optional[int] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.clock: Clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.history_limit = (
            settings.session_history_limit if history_limit is None else history_limit
        )
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self.status = SessionStatus.idle
        self.current: Optional[Session] = None
        self.history: list[SessionRecord] = []
        self.today_session_count = 0
        self.today_streak = 0
        self.last_session_date: Optional[str] = None
        self._correct_streak = 0

    # --- lifecycle ---
    def start_session(
        self,
        session_type: SessionType,
        pool: Sequence[Expression],
        proficiency: Optional[Mapping[str, float]] = None,
        target_count: Optional[int] = None,
    ) -> Result[Session]:
        """Select content and start the countdown.

        Valid from idle/completed. A live session is superseded; guarding
        against re-entrant starts is the caller's job. An empty selection
        (empty pool or zero target) fails with `InvalidReference` and leaves
        the machine untouched.
        """
        session_type = SessionType(session_type)
        config = SESSION_CONFIG[session_type]
        count = config.expression_count if target_count is None else target_count
        content = select_content(pool, count, proficiency, rng=self.rng)
        if content.total == 0:
            logger.warning("session_start_rejected", pool=len(pool), target_count=count)
            return Result.failure(InvalidReference("expression_pool", "empty"))
        expressions = flatten_and_shuffle(content, self.rng)

        if self.current is not None:
            logger.warning(
                "session_superseded",
                session_id=self.current.id,
                status=self.status.value,
            )

        now = self.clock.now()
        today = now.date().isoformat()
        if self.last_session_date != today:
            self.today_session_count = 1
            self.today_streak = 1
        else:
            self.today_session_count += 1
            self.today_streak += 1
        self.last_session_date = today

        self.current = Session(
            id=self._new_id(),
            type=session_type,
            expressions=expressions,
            current_index=0,
            answers=[],
            time_remaining=config.duration,
            is_paused=False,
            started_at=now,
        )
        self.status = SessionStatus.active
        self._correct_streak = 0
        structlog_contextvars.bind_contextvars(
            session_id=self.current.id, session_type=session_type.value
        )
        logger.info(
            "session_started",
            expressions=len(expressions),
            success=len(content.success),
            weakness=len(content.weakness),
            expansion=len(content.expansion),
            duration=config.duration,
        )
        return Result.success(self.current)

    def pause_session(self) -> Result[None]:
        if self.current is None:
            return Result.failure(InvalidTransition("pause_session", self.status.value))
        self.current.is_paused = True
        self.status = SessionStatus.paused
        return Result.success()

    def resume_session(self) -> Result[None]:
        if self.current is None:
            return Result.failure(InvalidTransition("resume_session", self.status.value))
        self.current.is_paused = False
        self.status = SessionStatus.active
        return Result.success()

    def tick(self) -> Result[TickOutcome]:
        """Count down one second.

        Paused ticks are harmless no-ops since the host timer may race a pause.
        """
        if self.current is None:
            return Result.failure(InvalidTransition("tick", self.status.value))
        if self.status is not SessionStatus.active or self.current.is_paused:
            return Result.success(TickOutcome.paused)

        remaining = max(0, self.current.time_remaining - 1)
        self.current.time_remaining = remaining
        if remaining == 0:
            self.end_session()
            return Result.success(TickOutcome.completed)
        return Result.success(TickOutcome.counted)

    def end_session(self) -> Result[SessionRecord]:
        session = self.current
        if session is None:
            return Result.failure(InvalidTransition("end_session", self.status.value))

        correct_count = sum(1 for a in session.answers if a.is_correct)
        total_count = len(session.answers)
        score = round_half_up(correct_count / total_count * 100) if total_count > 0 else 0
        record = SessionRecord(
            id=session.id,
            type=session.type,
            started_at=session.started_at,
            completed_at=self.clock.now(),
            answers=tuple(session.answers),
            total_count=total_count,
            correct_count=correct_count,
            score=score,
        )
        self.history = [record, *self.history][: self.history_limit]
        self.current = None
        self.status = SessionStatus.completed
        logger.info(
            "session_completed",
            total=total_count,
            correct=correct_count,
            score=score,
        )
        structlog_contextvars.unbind_contextvars("session_id", "session_type")
        return Result.success(record)

    def cancel_session(self) -> Result[None]:
        if self.current is None:
            return Result.failure(InvalidTransition("cancel_session", self.status.value))
        logger.info("session_cancelled", answered=len(self.current.answers))
        self.current = None
        self.status = SessionStatus.idle
        structlog_contextvars.unbind_contextvars("session_id", "session_type")
        return Result.success()

    # --- answering ---
    def record_answer(
        self,
        expression_id: str,
        is_correct: bool,
        user_answer: Optional[str] = None,
        time_spent_ms: int = 0,
    ) -> Result[AnswerSignal]:
        """Upsert the answer for `expression_id`; the index does not move."""
        session = self.current
        if session is None:
            return Result.failure(InvalidTransition("record_answer", self.status.value))
        if not any(e.id == expression_id for e in session.expressions):
            return Result.failure(InvalidReference("expression", expression_id))

        attempts = 1
        position = None
        for idx, answer in enumerate(session.answers):
            if answer.expression_id == expression_id:
                attempts = answer.attempts + 1
                position = idx
                break

        record = AnswerRecord(
            expression_id=expression_id,
            is_correct=is_correct,
            user_answer=user_answer,
            time_spent_ms=normalize_non_negative_int(time_spent_ms),
            attempts=attempts,
        )
        if position is None:
            session.answers.append(record)
        else:
            session.answers[position] = record

        self._correct_streak = self._correct_streak + 1 if is_correct else 0
        return Result.success(
            AnswerSignal(
                expression_id=expression_id,
                is_correct=is_correct,
                attempts=attempts,
                correct_streak=self._correct_streak,
                is_first_answer=len(session.answers) == 1 and attempts == 1,
                is_milestone=self._correct_streak > 0
                and self._correct_streak % MILESTONE_STREAK == 0,
            )
        )

    def next_expression(self) -> Result[bool]:
        """Advance; `False` at the last item (caller should end the session)."""
        session = self.current
        if session is None:
            return Result.failure(InvalidTransition("next_expression", self.status.value))
        next_index = session.current_index + 1
        if next_index >= len(session.expressions):
            return Result.success(False)
        session.current_index = next_index
        return Result.success(True)

    # --- queries ---
    def current_expression(self) -> Optional[Expression]:
        session = self.current
        if session is None or not session.expressions:
            return None
        return session.expressions[session.current_index]

    def progress(self) -> SessionProgress:
        session = self.current
        if session is None or not session.expressions:
            return SessionProgress(current=0, total=0, percentage=0)
        current = session.current_index + 1
        total = len(session.expressions)
        return SessionProgress(current=current, total=total, percentage=round_half_up(current / total * 100))

    def time_remaining(self) -> TimeRemaining:
        if self.current is None:
            return TimeRemaining(minutes=0, seconds=0)
        minutes, seconds = divmod(self.current.time_remaining, 60)
        return TimeRemaining(minutes=minutes, seconds=seconds)

    def last_session(self) -> Optional[SessionRecord]:
        return self.history[0] if self.history else None

    def today_sessions(self, now: Optional[datetime] = None) -> list[SessionRecord]:
        today = (now or self.clock.now()).date()
        return [r for r in self.history if r.started_at.date() == today]

    def session_stats(self) -> SessionStats:
        if not self.history:
            return SessionStats()
        total = len(self.history)
        by_type = {t: 0 for t in SessionType}
        for record in self.history:
            by_type[record.type] += 1
        return SessionStats(
            total_sessions=total,
            average_score=round_half_up(sum(r.score for r in self.history) / total),
            average_time=round_half_up(sum(SESSION_CONFIG[r.type].duration for r in self.history) / total),
            by_type=by_type,
        )

    def reset_today_stats(self) -> None:
        if self.last_session_date != self.clock.now().date().isoformat():
            self.today_session_count = 0
            self.today_streak = 0

    def restore(
        self,
        history: Iterable[SessionRecord],
        *,
        today_session_count: int = 0,
        today_streak: int = 0,
        last_session_date: Optional[str] = None,
    ) -> None:
        """Load persisted history; the live session is never restored."""
        self.history = list(history)[: self.history_limit]
        self.today_session_count = today_session_count
        self.today_streak = today_streak
        self.last_session_date = last_session_date
        self.current = None
        self.status = SessionStatus.idle
