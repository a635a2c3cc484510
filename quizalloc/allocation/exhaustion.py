"""
Exhaustion policies: what to do when a quiz's remaining pool is too small.

A DrawPlan describes one reservation attempt (generation, counts and the
candidate ids per quota key). When the plan falls short the coordinator
hands it to the quiz's policy, which either raises or returns the plan to
commit instead. Policies never touch the ledger; a recycled plan carries
the new generation and the coordinator applies it at commit time.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import ClassVar, Dict, List, Tuple, Type

from loguru import logger

from .errors import InsufficientPoolError
from .models import SectionKey, SectionShortfall


@dataclass(frozen=True)
class DrawPlan:
    generation: int
    requested: Dict[SectionKey, int]
    requirements: Dict[SectionKey, int]
    candidates: Dict[SectionKey, Tuple[str, ...]]
    pools: Dict[SectionKey, Tuple[str, ...]]
    recycled: bool = False

    def shortfalls(self) -> List[SectionShortfall]:
        """Sections whose remaining candidates cannot cover the requirement."""
        return [
            SectionShortfall(key, need, len(self.candidates.get(key, ())))
            for key, need in self.requirements.items()
            if need > len(self.candidates.get(key, ()))
        ]

    def unmet(self) -> Dict[SectionKey, SectionShortfall]:
        """Sections where this plan draws fewer questions than were requested."""
        return {
            key: SectionShortfall(key, wanted, self.requirements.get(key, 0))
            for key, wanted in self.requested.items()
            if self.requirements.get(key, 0) < wanted
        }

    @property
    def total(self) -> int:
        return sum(self.requirements.values())

    def recycle(self) -> "DrawPlan":
        """Same request against the next generation, where nothing is consumed yet."""
        return replace(
            self,
            generation=self.generation + 1,
            requirements=dict(self.requested),
            candidates=dict(self.pools),
            recycled=True,
        )

    def trimmed(self) -> "DrawPlan":
        """Reduce every requirement to what its candidates can cover."""
        return replace(
            self,
            requirements={
                key: min(need, len(self.candidates.get(key, ())))
                for key, need in self.requirements.items()
            },
        )


class ExhaustionPolicy(ABC):
    name: ClassVar[str] = ""

    @abstractmethod
    def apply(self, quiz_id: str, plan: DrawPlan) -> DrawPlan:
        """Return the plan to commit, or raise InsufficientPoolError."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class StrictPolicy(ExhaustionPolicy):
    """Fail without committing anything."""

    name = "strict"

    def apply(self, quiz_id: str, plan: DrawPlan) -> DrawPlan:
        raise InsufficientPoolError(quiz_id, plan.shortfalls())


class RecyclePolicy(ExhaustionPolicy):
    """Start a new generation and retry once against the full pool."""

    name = "recycle"

    def apply(self, quiz_id: str, plan: DrawPlan) -> DrawPlan:
        if plan.recycled:
            raise InsufficientPoolError(quiz_id, plan.shortfalls())

        fresh = plan.recycle()
        shortfalls = fresh.shortfalls()
        if shortfalls:
            raise InsufficientPoolError(quiz_id, shortfalls)

        logger.warning(
            f"Quiz {quiz_id}: pool exhausted in generation {plan.generation}, "
            f"recycling into generation {fresh.generation}"
        )
        return fresh


class BestEffortPolicy(ExhaustionPolicy):
    """Commit whatever is left and report the under-served sections."""

    name = "best_effort"

    def apply(self, quiz_id: str, plan: DrawPlan) -> DrawPlan:
        trimmed = plan.trimmed()
        if trimmed.total == 0:
            raise InsufficientPoolError(quiz_id, plan.shortfalls())

        for shortfall in trimmed.unmet().values():
            logger.warning(f"Quiz {quiz_id}: short allocation, {shortfall}")
        return trimmed


POLICIES: Dict[str, Type[ExhaustionPolicy]] = {
    StrictPolicy.name: StrictPolicy,
    RecyclePolicy.name: RecyclePolicy,
    BestEffortPolicy.name: BestEffortPolicy,
}


def get_policy(policy: ExhaustionPolicy | str | None, default: str = StrictPolicy.name) -> ExhaustionPolicy:
    """Resolve a policy instance from an instance, a name, or None (default)."""
    if isinstance(policy, ExhaustionPolicy):
        return policy
    key = (policy or default).lower().replace("-", "_")
    try:
        return POLICIES[key]()
    except KeyError:
        raise ValueError(
            f"unknown exhaustion policy {policy!r}; expected one of {', '.join(POLICIES)}"
        ) from None
