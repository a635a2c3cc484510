"""
Concurrency tests: many requesters allocating against one quiz at once.

Threads are released together through a barrier so the allocations
really race for the quiz lock.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from quizalloc.allocation import (
    AllocationCoordinator,
    InMemoryAllocationStore,
    InMemoryQuestionBank,
    InsufficientPoolError,
    QuotaSpec,
)
from quizalloc.db import (
    SqlAllocationStore,
    SqlQuestionBank,
    create_db_engine,
    create_session_factory,
    init_db,
)

REQUESTERS = 8
QUOTA = QuotaSpec.by_section({"math": 3, "science": 1})


def race(coordinator, quiz_id, requesters=REQUESTERS, quota=QUOTA):
    """Run one allocate per requester concurrently; return (results, errors)."""
    barrier = threading.Barrier(requesters)

    def request(n):
        barrier.wait()
        try:
            return coordinator.allocate(quiz_id, quota, f"user-{n}", timeout=10)
        except InsufficientPoolError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=requesters) as executor:
        outcomes = list(executor.map(request, range(requesters)))

    results = [o for o in outcomes if not isinstance(o, Exception)]
    errors = [o for o in outcomes if isinstance(o, Exception)]
    return results, errors


def assert_disjoint(results):
    seen = set()
    for result in results:
        ids = set(result.question_ids)
        assert not ids & seen
        seen |= ids


def pool_for(question_factory, allocations):
    """Enough questions for exactly ``allocations`` full QUOTA allocations."""
    return question_factory("math", 3 * allocations) + question_factory("science", allocations)


def test_pool_for_n_minus_one_requesters(question_factory):
    bank = InMemoryQuestionBank(pool_for(question_factory, REQUESTERS - 1))
    coordinator = AllocationCoordinator(bank, InMemoryAllocationStore())

    results, errors = race(coordinator, "quiz-1")

    assert len(results) == REQUESTERS - 1
    assert len(errors) == 1
    assert_disjoint(results)
    assert len(coordinator.list_allocations("quiz-1")) == REQUESTERS - 1


def test_every_requester_served_when_pool_suffices(question_factory):
    bank = InMemoryQuestionBank(pool_for(question_factory, REQUESTERS))
    coordinator = AllocationCoordinator(bank)

    results, errors = race(coordinator, "quiz-1")

    assert errors == []
    assert_disjoint(results)
    allocated = {qid for r in results for qid in r.question_ids}
    assert allocated == {r.id for r in bank.list_available()}


def test_recycle_under_contention(question_factory):
    bank = InMemoryQuestionBank(pool_for(question_factory, 2))
    coordinator = AllocationCoordinator(bank, default_policy="recycle")

    results, errors = race(coordinator, "quiz-1", requesters=6)

    assert errors == []
    by_generation = {}
    for result in results:
        by_generation.setdefault(result.generation, []).append(result)
    assert sorted(by_generation) == [1, 2, 3]
    for generation_results in by_generation.values():
        assert len(generation_results) == 2
        assert_disjoint(generation_results)


def test_separate_quizzes_do_not_interfere(question_factory):
    bank = InMemoryQuestionBank(pool_for(question_factory, 4))
    coordinator = AllocationCoordinator(bank)
    outcomes = {}

    def run(quiz_id):
        outcomes[quiz_id] = race(coordinator, quiz_id, requesters=4)

    threads = [threading.Thread(target=run, args=(f"quiz-{n}",)) for n in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)

    for results, errors in outcomes.values():
        assert errors == []
        assert len(results) == 4
        assert_disjoint(results)


@pytest.mark.slow
def test_sql_backed_race(tmp_path, question_factory):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}", echo=False)
    init_db(engine)
    factory = create_session_factory(engine)
    bank = SqlQuestionBank(factory)
    bank.add(pool_for(question_factory, REQUESTERS - 1))
    store = SqlAllocationStore(factory)
    coordinator = AllocationCoordinator(bank, store)

    results, errors = race(coordinator, "quiz-1")

    assert len(results) == REQUESTERS - 1
    assert len(errors) == 1
    assert_disjoint(results)
    assert len(store.list_allocations("quiz-1")) == REQUESTERS - 1
    engine.dispose()
