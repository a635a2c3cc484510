"""
Question-bank allocation engine.

This module provides:
- AllocationCoordinator: per-quiz serialised allocation of disjoint question sets
- PoolIndex / PoolSnapshot: read-only views of the question bank
- QuotaPlanner: flat and per-section quota resolution
- ConsumedLedger: questions already handed out, per quiz and generation
- UniformSampler: uniform sampling without replacement
- Exhaustion policies: strict, recycle, best_effort

Exhaustion Policies:
- strict: fail with InsufficientPoolError, nothing committed (default)
- recycle: start a new generation and retry once
- best_effort: commit a short allocation and report the shortfall
"""

from .coordinator import AllocationAttempt, AllocationCoordinator, AllocationState
from .coverage import PoolCoverage, SectionCoverage
from .errors import (
    AllocationError,
    AllocationStateError,
    AllocationTimeoutError,
    ConcurrentModificationError,
    DoubleReservationError,
    InsufficientPoolError,
    InvalidQuotaError,
    LedgerError,
    ReservationConflictError,
    StaleGenerationError,
)
from .exhaustion import (
    BestEffortPolicy,
    DrawPlan,
    ExhaustionPolicy,
    RecyclePolicy,
    StrictPolicy,
    get_policy,
)
from .ledger import ConsumedLedger
from .models import (
    FLAT_SECTION,
    UNCATEGORIZED,
    Allocation,
    AllocationResult,
    Difficulty,
    PoolFilter,
    QuestionRecord,
    QuotaSpec,
    SectionQuota,
    SectionShortfall,
)
from .pool_index import InMemoryQuestionBank, PoolIndex, PoolSnapshot, QuestionBankStore
from .quota_planner import BySectionQuota, FlatQuota, QuotaPlanner, ResolvedQuota
from .sampling import SamplingStrategy, UniformSampler
from .store import AllocationStore, InMemoryAllocationStore

__all__ = [
    # Coordinator
    "AllocationCoordinator",
    "AllocationAttempt",
    "AllocationState",
    # Components
    "PoolIndex",
    "PoolSnapshot",
    "QuestionBankStore",
    "InMemoryQuestionBank",
    "QuotaPlanner",
    "ResolvedQuota",
    "FlatQuota",
    "BySectionQuota",
    "ConsumedLedger",
    "SamplingStrategy",
    "UniformSampler",
    "AllocationStore",
    "InMemoryAllocationStore",
    "PoolCoverage",
    "SectionCoverage",
    # Policies
    "ExhaustionPolicy",
    "StrictPolicy",
    "RecyclePolicy",
    "BestEffortPolicy",
    "DrawPlan",
    "get_policy",
    # Models
    "Allocation",
    "AllocationResult",
    "Difficulty",
    "PoolFilter",
    "QuestionRecord",
    "QuotaSpec",
    "SectionQuota",
    "SectionShortfall",
    "FLAT_SECTION",
    "UNCATEGORIZED",
    # Errors
    "AllocationError",
    "InvalidQuotaError",
    "InsufficientPoolError",
    "ConcurrentModificationError",
    "ReservationConflictError",
    "AllocationTimeoutError",
    "AllocationStateError",
    "LedgerError",
    "DoubleReservationError",
    "StaleGenerationError",
]
