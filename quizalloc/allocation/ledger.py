"""
Consumed ledger: which questions a quiz has already handed out.

One ledger exists per quiz. It is not thread-safe on its own; every
mutation happens while the coordinator holds that quiz's lock.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from loguru import logger

from .errors import DoubleReservationError, StaleGenerationError
from .models import Allocation, SectionKey

_ANY_SECTION = object()


class ConsumedLedger:
    """Append-only set of allocated ids for the current generation."""

    def __init__(self, quiz_id: str, generation: int = 1):
        self.quiz_id = quiz_id
        self._generation = generation
        # question id -> (allocation id, section key)
        self._holders: Dict[str, Tuple[str, SectionKey]] = {}

    @classmethod
    def from_allocations(
        cls,
        quiz_id: str,
        generation: int,
        allocations: Iterable[Allocation],
    ) -> "ConsumedLedger":
        """Rebuild a ledger from the persisted allocations of one generation."""
        ledger = cls(quiz_id, generation)
        for allocation in allocations:
            if allocation.generation != generation:
                continue
            for section_key, ids in allocation.sections:
                ledger.reserve(section_key, ids, generation, allocation.allocation_id)
        return ledger

    @property
    def generation(self) -> int:
        return self._generation

    def _check(self, generation: int) -> None:
        if generation < self._generation:
            raise StaleGenerationError(self.quiz_id, generation, self._generation)

    def consumed(self, generation: int, section_id: object = _ANY_SECTION) -> frozenset:
        """
        Ids already allocated in ``generation``.

        A later generation has consumed nothing yet. Pass ``section_id`` to
        restrict the result to ids reserved under that quota key.
        """
        self._check(generation)
        if generation > self._generation:
            return frozenset()
        if section_id is _ANY_SECTION:
            return frozenset(self._holders)
        return frozenset(qid for qid, (_, key) in self._holders.items() if key == section_id)

    def remaining(self, candidates: Iterable[str], generation: int) -> List[str]:
        """Candidates not yet allocated in ``generation``, order preserved."""
        taken = self.consumed(generation)
        return [qid for qid in candidates if qid not in taken]

    def reserve(
        self,
        section_id: SectionKey,
        question_ids: Iterable[str],
        generation: int,
        allocation_id: str,
    ) -> int:
        """
        Record ``question_ids`` as allocated. All or nothing.

        Re-reserving ids already held by the same allocation is a no-op.

        Returns:
            Number of newly reserved ids

        Raises:
            StaleGenerationError: ``generation`` is not the current one
            DoubleReservationError: another allocation already holds an id
        """
        if generation != self._generation:
            raise StaleGenerationError(self.quiz_id, generation, self._generation)

        ids = list(dict.fromkeys(question_ids))
        conflicts = [
            qid for qid in ids
            if qid in self._holders and self._holders[qid][0] != allocation_id
        ]
        if conflicts:
            raise DoubleReservationError(self.quiz_id, section_id, conflicts)

        fresh = [qid for qid in ids if qid not in self._holders]
        for qid in fresh:
            self._holders[qid] = (allocation_id, section_id)
        return len(fresh)

    def advance(self, to_generation: int | None = None) -> int:
        """Start a new generation, forgetting every consumed id."""
        target = self._generation + 1 if to_generation is None else to_generation
        if target <= self._generation:
            raise StaleGenerationError(self.quiz_id, target, self._generation)

        released = len(self._holders)
        self._holders.clear()
        self._generation = target
        logger.info(
            f"Quiz {self.quiz_id}: ledger advanced to generation {target} ({released} ids released)"
        )
        return target

    def __len__(self) -> int:
        return len(self._holders)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._holders
