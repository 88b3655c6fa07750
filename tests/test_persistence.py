import json
import random

import pytest

from studyloop.errors import DeserializationError
from studyloop.models.srs import ReviewRating
from studyloop.persistence import (
    HistorySnapshot,
    RepositorySnapshot,
    SESSIONS_KEY,
    SRS_KEY,
    MemorySink,
    PersistentStudyloop,
    SQLiteSink,
    deserialize_history,
    deserialize_repository,
    deserialize_store,
    load_repository_snapshot,
    serialize_history,
    serialize_repository,
    serialize_store,
)
from studyloop.session import SessionMachine
from studyloop.store import ReviewRepository
from tests.factories import make_pool


def _populated_store(store, clock):
    for word_id in ("converge", "assumption", "feasible"):
        store.add_word(word_id, word_id, f"meaning of {word_id}", pronunciation="/x/")
    store.review_word("converge", ReviewRating.good)
    clock.advance(days=1)
    store.review_word("converge", ReviewRating.easy)
    store.review_word("assumption", ReviewRating.again)
    return store


def test_repository_round_trip(store, clock):
    _populated_store(store, clock)

    restored = deserialize_repository(serialize_repository(store.repository))

    assert restored == store.repository
    assert isinstance(restored, ReviewRepository)


def test_empty_repository_round_trip():
    assert deserialize_repository(serialize_repository(ReviewRepository())) == ReviewRepository()


def test_store_round_trip_keeps_stats_and_daily(store, clock):
    _populated_store(store, clock)

    restored = deserialize_store(serialize_store(store), clock=clock)

    assert restored.repository == store.repository
    assert restored.get_review_stats() == store.get_review_stats()
    assert restored.daily == store.daily
    assert restored.get_words_for_review() == store.get_words_for_review()


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        "[]",
        json.dumps({"version": 99, "words": []}),
        json.dumps({"version": 1, "words": [{"id": "x"}]}),
    ],
)
def test_corrupt_snapshot_is_rejected(blob):
    with pytest.raises(DeserializationError):
        deserialize_repository(blob)


def test_snapshot_with_broken_invariants_is_rejected(store, clock):
    _populated_store(store, clock)
    data = json.loads(serialize_store(store))
    data["words"][0]["srs"]["ease_factor"] = 0.9

    with pytest.raises(DeserializationError):
        deserialize_repository(json.dumps(data))


def test_duplicate_ids_are_rejected(store, clock):
    _populated_store(store, clock)
    data = json.loads(serialize_store(store))
    data["words"].append(data["words"][0])

    with pytest.raises(DeserializationError, match="duplicate"):
        deserialize_repository(json.dumps(data))


def test_history_round_trip_is_capped(clock):
    machine = SessionMachine(clock=clock, rng=random.Random(2))
    for _ in range(4):
        session = machine.start_session("30s", make_pool(5), {}).value
        machine.record_answer(session.expressions[0].id, True)
        machine.end_session()

    snapshot = deserialize_history(serialize_history(machine, limit=2))

    assert snapshot.history == machine.history[:2]
    assert snapshot.counters.today_session_count == 4


def test_persistent_engine_saves_and_reloads(clock, tmp_path):
    sink = SQLiteSink(str(tmp_path / "nested" / "snap.sqlite3"))
    engine = PersistentStudyloop(sink, clock=clock, rng=random.Random(4))
    engine.add_word("robust", "robust", "resilient")
    engine.review_word("robust", ReviewRating.good)
    engine.start_session("30s", make_pool(4), {})
    for _ in range(30):
        engine.tick()

    reloaded = PersistentStudyloop(sink, clock=clock)
    reloaded.load()

    assert reloaded.srs.repository == engine.srs.repository
    assert len(reloaded.sessions.history) == 1
    assert reloaded.sessions.history[0] == engine.sessions.history[0]


def test_corrupt_sink_falls_back_to_empty_state(clock):
    sink = MemorySink()
    sink.save(SRS_KEY, '{"version": 1, "words": "garbage"}')
    sink.save(SESSIONS_KEY, "\x00")

    engine = PersistentStudyloop(sink, clock=clock)
    engine.load()

    assert engine.srs.all_words() == []
    assert engine.sessions.history == []


class _FailingSink(MemorySink):
    def save(self, key, blob):
        raise OSError("disk full")


def test_sink_failures_do_not_reach_the_core(clock):
    engine = PersistentStudyloop(_FailingSink(), clock=clock)

    assert engine.add_word("a", "a", "b") is True
    assert engine.review_word("a", ReviewRating.good).ok
    assert engine.srs.get_word_progress("a").value.interval == 1


@pytest.mark.parametrize("field", ["next_review_date", "created_at", "updated_at"])
def test_naive_srs_timestamps_are_rejected(store, clock, field):
    _populated_store(store, clock)
    data = json.loads(serialize_store(store))
    data["words"][0]["srs"][field] = "2025-03-01T09:00:00"

    with pytest.raises(DeserializationError):
        deserialize_repository(json.dumps(data))


def test_naive_history_timestamps_are_rejected(clock):
    machine = SessionMachine(clock=clock, rng=random.Random(2))
    machine.start_session("30s", make_pool(3), {})
    machine.end_session()
    data = json.loads(serialize_history(machine))
    data["history"][0]["started_at"] = "2025-03-01T09:00:00"

    with pytest.raises(DeserializationError):
        deserialize_history(json.dumps(data))


def test_naive_last_review_date_is_rejected(store, clock):
    _populated_store(store, clock)
    data = json.loads(serialize_store(store))
    data["stats"]["last_review_date"] = "2025-03-01T09:00:00"

    with pytest.raises(DeserializationError):
        deserialize_store(json.dumps(data))


def test_decoders_return_typed_snapshots(store, clock):
    _populated_store(store, clock)
    machine = SessionMachine(clock=clock)

    assert isinstance(load_repository_snapshot(serialize_store(store)), RepositorySnapshot)
    assert isinstance(deserialize_history(serialize_history(machine)), HistorySnapshot)


def test_history_limit_zero_writes_no_records(clock):
    machine = SessionMachine(clock=clock, rng=random.Random(2))
    machine.start_session("30s", make_pool(3), {})
    machine.end_session()

    assert deserialize_history(serialize_history(machine, limit=0)).history == []


def test_daily_goal_bulk_add_and_reset_survive_reload(clock):
    sink = MemorySink()
    engine = PersistentStudyloop(sink, clock=clock)
    added = engine.add_words(
        [{"id": "a", "word": "a", "meaning": "x"}, {"id": "b", "word": "b", "meaning": "y"}]
    )
    engine.review_word("a", ReviewRating.good)
    engine.set_daily_goal(35)

    reloaded = PersistentStudyloop(sink, clock=clock)
    reloaded.load()

    assert added == 2
    assert [w.id for w in reloaded.srs.all_words()] == ["a", "b"]
    assert reloaded.srs.daily.goal == 35
    assert reloaded.srs.get_word_progress("a").value.interval == 1

    engine.reset_all_progress()
    reloaded = PersistentStudyloop(sink, clock=clock)
    reloaded.load()

    assert reloaded.srs.get_word_progress("a").value.repetition == 0
    assert reloaded.srs.get_word_progress("a").value.interval == 0
    assert reloaded.srs.get_review_stats().total_reviews == 0
    assert reloaded.srs.daily.done == 0
    assert reloaded.srs.daily.goal == 35


def test_session_operations_pass_through_the_adapter(clock):
    sink = MemorySink()
    engine = PersistentStudyloop(sink, clock=clock, rng=random.Random(3))
    session = engine.start_session("1m", make_pool(6), {}).value

    assert engine.pause_session().ok
    assert engine.sessions.current.is_paused is True
    assert engine.resume_session().ok
    signal = engine.record_answer(session.expressions[0].id, True).value
    assert signal.correct_streak == 1
    assert engine.next_expression().value is True
    assert engine.cancel_session().ok
    assert engine.pause_session().is_invalid_transition

    snapshot = deserialize_history(sink.load(SESSIONS_KEY))
    assert snapshot.history == []
    assert snapshot.counters.today_session_count == 1


def test_rejected_start_does_not_write_a_snapshot(clock):
    sink = MemorySink()
    engine = PersistentStudyloop(sink, clock=clock)

    assert engine.start_session("30s", [], {}).is_invalid_reference
    assert sink.load(SESSIONS_KEY) is None
