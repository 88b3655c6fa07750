"""Snapshot codec and the apply-and-persist adapter.

コア（SrsStore / SessionMachine）は I/O を持たない。ここで JSON スナップショットへの
変換と、変更後の保存（失敗してもコアへ伝播させない）を行う。
"""

from __future__ import annotations

import json
import random
import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Protocol, Sequence, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .clock import Clock, SystemClock
from .config import settings
from .errors import DeserializationError
from .logging import logger
from .models.common import Result
from .models.session import AnswerSignal, Expression, Session, SessionRecord, SessionType, TickOutcome
from .models.srs import DailyProgress, ReviewItem, ReviewRating, ReviewStats, SrsState
from .session import SessionMachine
from .store import ReviewRepository, SrsStore


SNAPSHOT_VERSION = 1
SRS_KEY = "srs-storage"
SESSIONS_KEY = "session-storage"

M = TypeVar("M", bound=BaseModel)


class RepositorySnapshot(BaseModel):
    version: Literal[1] = SNAPSHOT_VERSION
    words: List[ReviewItem] = Field(default_factory=list)
    stats: ReviewStats = Field(default_factory=ReviewStats)
    daily: DailyProgress = Field(default_factory=DailyProgress)


class SessionCounters(BaseModel):
    today_session_count: int = Field(default=0, ge=0)
    today_streak: int = Field(default=0, ge=0)
    last_session_date: Optional[str] = None


class HistorySnapshot(BaseModel):
    version: Literal[1] = SNAPSHOT_VERSION
    history: List[SessionRecord] = Field(default_factory=list)
    counters: SessionCounters = Field(default_factory=SessionCounters)


def _parse(blob: str | bytes, model: type[M]) -> M:
    try:
        raw = json.loads(blob)
    except (TypeError, ValueError) as exc:
        raise DeserializationError("snapshot is not valid JSON", cause=exc) from exc
    if not isinstance(raw, dict):
        raise DeserializationError("snapshot root must be an object")
    if raw.get("version") != SNAPSHOT_VERSION:
        raise DeserializationError(f"unsupported snapshot version: {raw.get('version')!r}")
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise DeserializationError("snapshot failed validation", cause=exc) from exc


# --- repository ---
def serialize_repository(
    repository: ReviewRepository,
    stats: Optional[ReviewStats] = None,
    daily: Optional[DailyProgress] = None,
) -> str:
    snapshot = RepositorySnapshot(
        words=repository.all(),
        stats=stats or ReviewStats(),
        daily=daily or DailyProgress(),
    )
    return snapshot.model_dump_json()


def load_repository_snapshot(blob: str | bytes) -> RepositorySnapshot:
    snapshot = _parse(blob, RepositorySnapshot)
    seen: set[str] = set()
    for item in snapshot.words:
        if item.id in seen:
            raise DeserializationError(f"duplicate word id in snapshot: {item.id}")
        seen.add(item.id)
        if item.srs.interval > settings.srs_max_interval_days:
            raise DeserializationError(f"interval out of range for word {item.id}")
    return snapshot


def deserialize_repository(blob: str | bytes) -> ReviewRepository:
    return ReviewRepository(load_repository_snapshot(blob).words)


def serialize_store(store: SrsStore) -> str:
    return serialize_repository(store.repository, store.stats, store.daily)


def deserialize_store(blob: str | bytes, clock: Optional[Clock] = None) -> SrsStore:
    snapshot = load_repository_snapshot(blob)
    return SrsStore(
        ReviewRepository(snapshot.words),
        clock=clock,
        stats=snapshot.stats,
        daily=snapshot.daily,
    )


# --- session history ---
def serialize_history(machine: SessionMachine, limit: Optional[int] = None) -> str:
    if limit is None:
        limit = settings.session_history_persist_limit
    snapshot = HistorySnapshot(
        history=machine.history[:limit],
        counters=SessionCounters(
            today_session_count=machine.today_session_count,
            today_streak=machine.today_streak,
            last_session_date=machine.last_session_date,
        ),
    )
    return snapshot.model_dump_json()


def deserialize_history(blob: str | bytes) -> HistorySnapshot:
    return _parse(blob, HistorySnapshot)


# --- sinks ---
class SnapshotSink(Protocol):
    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, blob: str) -> None: ...


class MemorySink:
    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, blob: str) -> None:
        self.data[key] = blob


class SQLiteSink:
    """SQLite-backed key-value sink (single `kv` table, WAL)."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or settings.snapshot_db_path
        self._ensure_dirs()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            with conn:
                conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    def _ensure_dirs(self) -> None:
        if self.db_path == ":memory:":
            return
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    );
                    """
                )
        finally:
            conn.close()

    def load(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?;", (key,)).fetchone()
            return None if row is None else row["value"]
        finally:
            conn.close()

    def save(self, key: str, blob: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("INSERT OR REPLACE INTO kv(key, value) VALUES (?, ?);", (key, blob))
        finally:
            conn.close()


# --- apply-and-persist adapter ---
class PersistentStudyloop:
    """SrsStore + SessionMachine wired to a sink.

    変更系の呼び出しの後にスナップショットを保存する。保存失敗はログに残すだけで
    呼び出し元には返さない（fire-and-forget）。
    """

    def __init__(
        self,
        sink: SnapshotSink,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.sink = sink
        self.clock: Clock = clock or SystemClock()
        self.srs = SrsStore(clock=self.clock)
        self.sessions = SessionMachine(clock=self.clock, rng=rng)

    def load(self) -> None:
        """Restore from the sink; a corrupt snapshot is rejected and replaced by empty state."""
        blob = self.sink.load(SRS_KEY)
        if blob is not None:
            try:
                self.srs = deserialize_store(blob, clock=self.clock)
            except DeserializationError as exc:
                logger.error("snapshot_rejected", key=SRS_KEY, error=str(exc))
                self.srs = SrsStore(clock=self.clock)

        blob = self.sink.load(SESSIONS_KEY)
        if blob is not None:
            try:
                snapshot = deserialize_history(blob)
            except DeserializationError as exc:
                logger.error("snapshot_rejected", key=SESSIONS_KEY, error=str(exc))
                self.sessions.restore([])
            else:
                self.sessions.restore(
                    snapshot.history,
                    today_session_count=snapshot.counters.today_session_count,
                    today_streak=snapshot.counters.today_streak,
                    last_session_date=snapshot.counters.last_session_date,
                )

    def _save(self, key: str, blob: str) -> None:
        try:
            self.sink.save(key, blob)
        except Exception as exc:  # sink errors never reach the core
            logger.warning("snapshot_save_failed", key=key, error_type=type(exc).__name__, error=str(exc))
        else:
            logger.debug("snapshot_saved", key=key, size=len(blob))

    def save_srs(self) -> None:
        self._save(SRS_KEY, serialize_store(self.srs))

    def save_sessions(self) -> None:
        self._save(SESSIONS_KEY, serialize_history(self.sessions))

    # --- SRS ---
    def add_word(self, word_id: str, word: str, meaning: str, **extra: Optional[str]) -> bool:
        added = self.srs.add_word(word_id, word, meaning, **extra)
        if added:
            self.save_srs()
        return added

    def review_word(self, word_id: str, rating: ReviewRating) -> Result[SrsState]:
        result = self.srs.review_word(word_id, rating)
        if result.ok:
            self.save_srs()
        return result

    def add_words(self, words: Iterable[dict]) -> int:
        added = self.srs.add_words(words)
        if added:
            self.save_srs()
        return added

    def remove_word(self, word_id: str) -> Result[None]:
        result = self.srs.remove_word(word_id)
        if result.ok:
            self.save_srs()
        return result

    def set_daily_goal(self, goal: int) -> None:
        self.srs.set_daily_goal(goal)
        self.save_srs()

    def reset_all_progress(self) -> None:
        self.srs.reset_all_progress()
        self.save_srs()

    # --- sessions ---
    def start_session(
        self,
        session_type: SessionType,
        pool: Sequence[Expression],
        proficiency: Optional[Dict[str, float]] = None,
        target_count: Optional[int] = None,
    ) -> Result[Session]:
        result = self.sessions.start_session(session_type, pool, proficiency, target_count)
        if result.ok:
            self.save_sessions()
        return result

    # Live-session edits are never persisted; these only forward to the machine.
    def pause_session(self) -> Result[None]:
        return self.sessions.pause_session()

    def resume_session(self) -> Result[None]:
        return self.sessions.resume_session()

    def record_answer(
        self,
        expression_id: str,
        is_correct: bool,
        user_answer: Optional[str] = None,
        time_spent_ms: int = 0,
    ) -> Result[AnswerSignal]:
        return self.sessions.record_answer(expression_id, is_correct, user_answer, time_spent_ms)

    def next_expression(self) -> Result[bool]:
        return self.sessions.next_expression()

    def tick(self) -> Result[TickOutcome]:
        result = self.sessions.tick()
        if result.value is TickOutcome.completed:
            self.save_sessions()
        return result

    def end_session(self) -> Result[SessionRecord]:
        result = self.sessions.end_session()
        if result.ok:
            self.save_sessions()
        return result

    def cancel_session(self) -> Result[None]:
        result = self.sessions.cancel_session()
        if result.ok:
            self.save_sessions()
        return result
