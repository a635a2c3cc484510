"""Tests for PoolIndex snapshots and the in-memory question bank."""
import pytest

from quizalloc.allocation import (
    Difficulty,
    InMemoryQuestionBank,
    PoolFilter,
    PoolIndex,
    PoolSnapshot,
    QuestionRecord,
)


@pytest.fixture
def index(sample_bank):
    return PoolIndex(sample_bank)


def test_snapshot_groups_by_section(index):
    snapshot = index.snapshot()
    assert snapshot.count("math") == 10
    assert snapshot.count("science") == 5
    assert snapshot.count(None) == 3
    assert len(snapshot) == 18


def test_snapshot_indexes_section_and_difficulty(index):
    snapshot = index.snapshot()
    assert set(snapshot.ids("science", Difficulty.EASY)) == {"sci-easy-1", "sci-easy-2"}
    assert snapshot.ids("science", Difficulty.HARD) == ("sci-hard-1",)
    assert snapshot.ids("math", Difficulty.HARD) == ()


def test_difficulty_filter(index):
    snapshot = index.snapshot(PoolFilter(difficulty=Difficulty.MEDIUM))
    assert snapshot.count("math") == 10
    assert snapshot.count("science") == 2
    assert snapshot.count(None) == 0


def test_section_filter_includes_uncategorized(index):
    snapshot = index.snapshot(PoolFilter(section_ids=("science", None)))
    assert set(snapshot.sections) == {"science", None}
    assert "math-1" not in snapshot


def test_unknown_section_is_empty(index):
    snapshot = index.snapshot(PoolFilter(section_ids=("history",)))
    assert len(snapshot) == 0
    assert snapshot.ids("history") == ()


def test_snapshot_is_not_affected_by_later_deletes(sample_bank, index):
    snapshot = index.snapshot()
    sample_bank.remove(["math-1"])
    assert "math-1" in snapshot
    assert "math-1" not in index.snapshot()


def test_verify_reports_deleted_ids(sample_bank, index):
    sample_bank.remove(["math-2", "math-3"])
    missing = index.verify(["math-1", "math-2", "math-3"])
    assert missing == frozenset({"math-2", "math-3"})


def test_verify_respects_filter(index):
    # math questions exist but are outside the science filter
    missing = index.verify(["math-1", "sci-easy-1"], PoolFilter(section_ids=("science",)))
    assert missing == frozenset({"math-1"})


def test_duplicate_records_are_collapsed():
    record = QuestionRecord(id="q1", section_id="a", difficulty=Difficulty.EASY)
    snapshot = PoolSnapshot([record, record])
    assert len(snapshot) == 1
    assert snapshot.section_of("q1") == "a"


def test_bank_owner_scoping(question_factory):
    bank = InMemoryQuestionBank(
        question_factory("math", 3, owner_id="owner-a", prefix="a")
        + question_factory("math", 2, owner_id="owner-b", prefix="b"),
        owner_id="owner-a",
    )
    assert {r.id for r in bank.list_available()} == {"a-1", "a-2", "a-3"}


def test_bank_rejects_reserved_section_name():
    record = QuestionRecord(id="q1", section_id="*", difficulty=Difficulty.EASY)
    with pytest.raises(ValueError):
        InMemoryQuestionBank([record])
