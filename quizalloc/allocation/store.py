"""
Allocation stores: where committed allocations and quiz generations live.

The coordinator persists an allocation before updating its in-memory ledger,
so ``save`` is the single commit point of an allocation. Stores must reject
an allocation that reuses an id already allocated in the same quiz and
generation (ReservationConflictError); the coordinator treats that as a
concurrent modification and retries with a reloaded ledger.
"""
from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, List, Protocol, Set, Tuple

from .errors import ReservationConflictError
from .models import Allocation


class AllocationStore(Protocol):
    def current_generation(self, quiz_id: str) -> int:
        ...

    def set_generation(self, quiz_id: str, generation: int) -> None:
        ...

    def save(self, allocation: Allocation) -> None:
        ...

    def list_allocations(self, quiz_id: str, generation: int | None = None) -> List[Allocation]:
        ...


class InMemoryAllocationStore:
    """Process-local allocation store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations: Dict[str, int] = {}
        self._allocations: Dict[str, List[Allocation]] = defaultdict(list)
        self._taken: Dict[Tuple[str, int], Set[str]] = defaultdict(set)

    def current_generation(self, quiz_id: str) -> int:
        with self._lock:
            return self._generations.get(quiz_id, 1)

    def set_generation(self, quiz_id: str, generation: int) -> None:
        with self._lock:
            self._generations[quiz_id] = generation

    def save(self, allocation: Allocation) -> None:
        key = (allocation.quiz_id, allocation.generation)
        with self._lock:
            taken = self._taken[key]
            clashes = taken.intersection(allocation.question_ids)
            if clashes:
                raise ReservationConflictError(allocation.quiz_id, clashes)

            taken.update(allocation.question_ids)
            self._allocations[allocation.quiz_id].append(allocation)
            current = self._generations.get(allocation.quiz_id, 1)
            self._generations[allocation.quiz_id] = max(current, allocation.generation)

    def list_allocations(self, quiz_id: str, generation: int | None = None) -> List[Allocation]:
        with self._lock:
            allocations = list(self._allocations.get(quiz_id, ()))
        if generation is None:
            return allocations
        return [a for a in allocations if a.generation == generation]
