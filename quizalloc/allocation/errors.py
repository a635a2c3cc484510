"""Exceptions raised by the allocation engine."""
from __future__ import annotations

from typing import Iterable, List

from .models import SectionKey, SectionShortfall, section_label


class AllocationError(Exception):
    """Base class for allocation failures."""


class InvalidQuotaError(AllocationError):
    """
    The quota can never be satisfied by the current pool.

    Carries every violating section so the caller can fix them all at once.
    """

    def __init__(self, violations: Iterable[SectionShortfall], message: str | None = None):
        self.violations: List[SectionShortfall] = list(violations)
        if message is None:
            message = "quota exceeds pool: " + "; ".join(str(v) for v in self.violations)
        super().__init__(message)


class InsufficientPoolError(AllocationError):
    """Not enough unallocated questions remain to satisfy the quota."""

    def __init__(self, quiz_id: str, shortfalls: Iterable[SectionShortfall], message: str | None = None):
        self.quiz_id = quiz_id
        self.shortfalls: List[SectionShortfall] = list(shortfalls)
        if message is None:
            details = "; ".join(str(s) for s in self.shortfalls) or "pool exhausted"
            message = f"insufficient pool for quiz {quiz_id}: {details}"
        super().__init__(message)

    def shortfall_for(self, section_id: SectionKey) -> SectionShortfall | None:
        for shortfall in self.shortfalls:
            if shortfall.section_id == section_id:
                return shortfall
        return None


class ConcurrentModificationError(AllocationError):
    """Selected questions disappeared between snapshot and commit."""

    def __init__(self, quiz_id: str, question_ids: Iterable[str]):
        self.quiz_id = quiz_id
        self.question_ids = frozenset(question_ids)
        super().__init__(
            f"{len(self.question_ids)} question(s) changed during allocation for quiz {quiz_id}"
        )


class ReservationConflictError(ConcurrentModificationError):
    """The store refused ids already allocated by another process."""


class AllocationTimeoutError(AllocationError):
    """Gave up waiting for a quiz's allocation lock."""

    def __init__(self, quiz_id: str, timeout: float):
        self.quiz_id = quiz_id
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:.1f}s waiting to allocate for quiz {quiz_id}")


class AllocationStateError(AllocationError):
    """An allocation attempt was driven through an illegal state transition."""


class LedgerError(AllocationError):
    """Ledger misuse. Always indicates a bug in the caller."""


class DoubleReservationError(LedgerError):
    def __init__(self, quiz_id: str, section_id: SectionKey, question_ids: Iterable[str]):
        self.quiz_id = quiz_id
        self.section_id = section_id
        self.question_ids = frozenset(question_ids)
        super().__init__(
            f"quiz {quiz_id}: {len(self.question_ids)} question(s) in "
            f"{section_label(section_id)} already reserved by another allocation"
        )


class StaleGenerationError(LedgerError):
    def __init__(self, quiz_id: str, expected: int, actual: int):
        self.quiz_id = quiz_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"quiz {quiz_id}: generation {expected} is stale (current {actual})")
