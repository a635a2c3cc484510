"""
Allocation coordinator: hands out disjoint question sets per quiz.

Each attempt runs through a small state machine:

    Idle -> Validating -> Reserving -> Committed
               |              |
               +--> Failed <--+

Validating takes a fresh pool snapshot and resolves the quota without any
lock. Reserving runs under the quiz's own lock: availability is recomputed
against the ledger, the exhaustion policy is consulted if the pool falls
short, questions are drawn and re-checked against the bank, and the
allocation is persisted before the ledger is updated. Quizzes never share a
lock, so allocations for different quizzes run in parallel.
"""
from __future__ import annotations

import threading
import uuid
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterator, List, Tuple

from loguru import logger

from quizalloc.config import Settings, get_settings

from .coverage import PoolCoverage, build_coverage
from .errors import (
    AllocationError,
    AllocationStateError,
    AllocationTimeoutError,
    ConcurrentModificationError,
    InsufficientPoolError,
    ReservationConflictError,
)
from .exhaustion import DrawPlan, ExhaustionPolicy, get_policy
from .ledger import ConsumedLedger
from .models import Allocation, AllocationResult, QuotaSpec, SectionKey
from .pool_index import PoolIndex, PoolSnapshot, QuestionBankStore
from .quota_planner import QuotaPlanner, ResolvedQuota
from .sampling import SamplingStrategy, UniformSampler
from .store import AllocationStore, InMemoryAllocationStore

_DEFAULT = object()


class AllocationState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESERVING = "reserving"
    COMMITTED = "committed"
    FAILED = "failed"


_TRANSITIONS = {
    AllocationState.IDLE: {AllocationState.VALIDATING},
    AllocationState.VALIDATING: {AllocationState.RESERVING, AllocationState.FAILED},
    AllocationState.RESERVING: {AllocationState.COMMITTED, AllocationState.FAILED},
    AllocationState.COMMITTED: set(),
    AllocationState.FAILED: set(),
}


@dataclass
class AllocationAttempt:
    quiz_id: str
    requester_id: str
    number: int = 1
    state: AllocationState = AllocationState.IDLE

    def transition(self, new_state: AllocationState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise AllocationStateError(
                f"illegal transition {self.state.value} -> {new_state.value} "
                f"for quiz {self.quiz_id}"
            )
        logger.debug(
            f"Quiz {self.quiz_id} attempt {self.number} ({self.requester_id}): "
            f"{self.state.value} -> {new_state.value}"
        )
        self.state = new_state


class _QuizSlot:
    """
    Per-quiz lock plus the ledger it guards.

    The ledger is loaded on first use and reloaded whenever the store reports
    a newer generation, e.g. after another process reset the quiz.
    """

    def __init__(
        self,
        quiz_id: str,
        loader: Callable[[str], ConsumedLedger],
        generation_of: Callable[[str], int],
    ):
        self.quiz_id = quiz_id
        self._loader = loader
        self._generation_of = generation_of
        self._lock = threading.Lock()
        self._ledger: ConsumedLedger | None = None

    @contextmanager
    def hold(self, timeout: float | None) -> Iterator[ConsumedLedger]:
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise AllocationTimeoutError(self.quiz_id, timeout)
        try:
            if self._ledger is not None and self._generation_of(self.quiz_id) > self._ledger.generation:
                logger.info(
                    f"Quiz {self.quiz_id}: store moved past generation {self._ledger.generation}, reloading ledger"
                )
                self._ledger = None
            if self._ledger is None:
                self._ledger = self._loader(self.quiz_id)
            yield self._ledger
        finally:
            self._lock.release()

    def invalidate(self) -> None:
        """Drop the cached ledger; only call while holding the slot."""
        self._ledger = None


class AllocationCoordinator:
    """
    Entry point of the allocation engine.

    Handles:
    - allocate: one disjoint, quota-satisfying question set per requester
    - reset_generation: manual recycle of a quiz's pool
    - coverage: read-only check of a quota against the remaining pool
    - list_allocations: allocation history of a quiz
    """

    def __init__(
        self,
        bank: QuestionBankStore,
        store: AllocationStore | None = None,
        sampler: SamplingStrategy | None = None,
        planner: QuotaPlanner | None = None,
        default_policy: ExhaustionPolicy | str = "strict",
        max_retries: int = 3,
        lock_timeout: float | None = 30.0,
        shuffle: bool = True,
    ):
        self.pool_index = PoolIndex(bank)
        self.store = store if store is not None else InMemoryAllocationStore()
        self.sampler = sampler or UniformSampler()
        self.planner = planner or QuotaPlanner()
        self.default_policy = default_policy
        self.max_retries = max_retries
        self.lock_timeout = lock_timeout
        self.shuffle = shuffle

        self._slots: Dict[str, _QuizSlot] = {}
        self._slots_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        bank: QuestionBankStore,
        store: AllocationStore | None = None,
        settings: Settings | None = None,
    ) -> "AllocationCoordinator":
        settings = settings or get_settings()
        return cls(
            bank,
            store=store,
            sampler=UniformSampler(settings.sampling_seed),
            default_policy=settings.default_exhaustion_policy,
            max_retries=settings.max_allocation_retries,
            lock_timeout=settings.lock_timeout_seconds,
            shuffle=settings.shuffle_allocations,
        )

    # ========================================
    # Quiz slots
    # ========================================

    def _slot(self, quiz_id: str) -> _QuizSlot:
        with self._slots_lock:
            slot = self._slots.get(quiz_id)
            if slot is None:
                slot = _QuizSlot(quiz_id, self._load_ledger, self.store.current_generation)
                self._slots[quiz_id] = slot
            return slot

    def _load_ledger(self, quiz_id: str) -> ConsumedLedger:
        generation = self.store.current_generation(quiz_id)
        allocations = self.store.list_allocations(quiz_id, generation)
        ledger = ConsumedLedger.from_allocations(quiz_id, generation, allocations)
        logger.debug(
            f"Quiz {quiz_id}: loaded ledger at generation {generation} ({len(ledger)} ids consumed)"
        )
        return ledger

    def _timeout(self, timeout: object) -> float | None:
        return self.lock_timeout if timeout is _DEFAULT else timeout

    # ========================================
    # Allocation
    # ========================================

    def allocate(
        self,
        quiz_id: str,
        quota: QuotaSpec,
        requester_id: str,
        policy: ExhaustionPolicy | str | None = None,
        timeout: float | None = _DEFAULT,
    ) -> AllocationResult:
        """
        Allocate a question set for one requester.

        Args:
            quiz_id: Quiz whose ledger the questions are drawn against
            quota: Flat or per-section quota
            requester_id: Session or user receiving the questions
            policy: Exhaustion policy instance or name (default from settings)
            timeout: Seconds to wait for the quiz lock (None = forever)

        Returns:
            AllocationResult with the committed Allocation

        Raises:
            InvalidQuotaError: quota exceeds the pool itself
            InsufficientPoolError: too few unallocated questions remain
            AllocationTimeoutError: the quiz lock was not acquired in time
        """
        exhaustion = get_policy(policy if policy is not None else self.default_policy)
        timeout = self._timeout(timeout)
        slot = self._slot(quiz_id)
        last_error: ConcurrentModificationError | None = None

        for number in range(1, self.max_retries + 2):
            attempt = AllocationAttempt(quiz_id, requester_id, number)
            attempt.transition(AllocationState.VALIDATING)
            try:
                snapshot = self.pool_index.snapshot(quota.pool_filter())
                resolved = self.planner.resolve(quota, snapshot)
                with slot.hold(timeout) as ledger:
                    attempt.transition(AllocationState.RESERVING)
                    return self._reserve(attempt, slot, ledger, resolved, snapshot, exhaustion)
            except ConcurrentModificationError as exc:
                attempt.transition(AllocationState.FAILED)
                last_error = exc
                logger.warning(
                    f"Quiz {quiz_id}: {exc}; retrying with a fresh snapshot "
                    f"({number}/{self.max_retries + 1})"
                )
            except AllocationError:
                attempt.transition(AllocationState.FAILED)
                raise

        raise InsufficientPoolError(
            quiz_id,
            [],
            f"insufficient pool for quiz {quiz_id}: questions kept changing during "
            f"{self.max_retries + 1} allocation attempts",
        ) from last_error

    def _plan(self, ledger: ConsumedLedger, resolved: ResolvedQuota, snapshot: PoolSnapshot) -> DrawPlan:
        generation = ledger.generation
        requested = resolved.requirements()
        pools = {key: resolved.pool(snapshot, key) for key in requested}
        candidates = {key: tuple(ledger.remaining(pool, generation)) for key, pool in pools.items()}
        return DrawPlan(
            generation=generation,
            requested=requested,
            requirements=dict(requested),
            candidates=candidates,
            pools=pools,
        )

    def _reserve(
        self,
        attempt: AllocationAttempt,
        slot: _QuizSlot,
        ledger: ConsumedLedger,
        resolved: ResolvedQuota,
        snapshot: PoolSnapshot,
        policy: ExhaustionPolicy,
    ) -> AllocationResult:
        plan = self._plan(ledger, resolved, snapshot)
        if plan.shortfalls():
            plan = policy.apply(attempt.quiz_id, plan)

        chosen: List[Tuple[SectionKey, Tuple[str, ...]]] = [
            (key, tuple(self.sampler.draw(plan.candidates[key], count)))
            for key, count in plan.requirements.items()
            if count > 0
        ]

        drawn = [qid for _, ids in chosen for qid in ids]
        missing = self.pool_index.verify(drawn, resolved.pool_filter)
        if missing:
            raise ConcurrentModificationError(attempt.quiz_id, missing)

        allocation = self._build_allocation(attempt, plan, chosen, resolved, snapshot, policy)

        try:
            self.store.save(allocation)
        except ReservationConflictError:
            slot.invalidate()
            raise

        if plan.generation > ledger.generation:
            ledger.advance(plan.generation)
        for key, ids in allocation.sections:
            ledger.reserve(key, ids, plan.generation, allocation.allocation_id)

        attempt.transition(AllocationState.COMMITTED)
        logger.info(
            f"Quiz {attempt.quiz_id}: allocated {allocation.size} question(s) to "
            f"{attempt.requester_id} (generation {allocation.generation}, {policy.name})"
        )
        return AllocationResult(allocation=allocation, shortfall=plan.unmet(), recycled=plan.recycled)

    def _build_allocation(
        self,
        attempt: AllocationAttempt,
        plan: DrawPlan,
        chosen: List[Tuple[SectionKey, Tuple[str, ...]]],
        resolved: ResolvedQuota,
        snapshot: PoolSnapshot,
        policy: ExhaustionPolicy,
    ) -> Allocation:
        ordered = [qid for _, ids in chosen for qid in ids]
        section_counts = Counter(snapshot.section_of(qid) for qid in ordered)

        question_ids = ordered
        if self.shuffle and resolved.shuffle:
            question_ids = self.sampler.shuffle(ordered)

        return Allocation(
            allocation_id=str(uuid.uuid4()),
            quiz_id=attempt.quiz_id,
            requester_id=attempt.requester_id,
            question_ids=tuple(question_ids),
            sections=tuple(chosen),
            section_counts=tuple(section_counts.items()),
            generation=plan.generation,
            policy=policy.name,
            created_at=datetime.now(timezone.utc),
        )

    # ========================================
    # Administration
    # ========================================

    def reset_generation(self, quiz_id: str, timeout: float | None = _DEFAULT) -> int:
        """Start a new generation for a quiz, making every question available again."""
        with self._slot(quiz_id).hold(self._timeout(timeout)) as ledger:
            generation = ledger.generation + 1
            self.store.set_generation(quiz_id, generation)
            ledger.advance(generation)
        logger.info(f"Quiz {quiz_id}: generation reset to {generation}")
        return generation

    def current_generation(self, quiz_id: str, timeout: float | None = _DEFAULT) -> int:
        with self._slot(quiz_id).hold(self._timeout(timeout)) as ledger:
            return ledger.generation

    def coverage(self, quiz_id: str, quota: QuotaSpec, timeout: float | None = _DEFAULT) -> PoolCoverage:
        """Report how well the pool covers ``quota`` without allocating anything."""
        snapshot = self.pool_index.snapshot(quota.pool_filter())
        with self._slot(quiz_id).hold(self._timeout(timeout)) as ledger:
            generation = ledger.generation
            consumed = ledger.consumed(generation)
        return build_coverage(quiz_id, quota, snapshot, consumed, generation)

    def list_allocations(self, quiz_id: str, generation: int | None = None) -> List[Allocation]:
        return self.store.list_allocations(quiz_id, generation)
