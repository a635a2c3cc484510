"""
Data model for question-bank allocation.

Implements:
- QuestionRecord: read-only view of a bank question
- SectionQuota / QuotaSpec: caller-supplied quota (validated with pydantic)
- PoolFilter: section/difficulty filter applied to the bank
- Allocation: immutable record of the questions handed to one requester
- AllocationResult: an Allocation plus the outcome of the exhaustion policy

Section keys:
- a section id string
- None for uncategorized questions
- FLAT_SECTION for the implicit section of a flat quota
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SectionKey = Optional[str]

UNCATEGORIZED: SectionKey = None
FLAT_SECTION = "*"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def check_section_id(section_id: SectionKey) -> SectionKey:
    """Reject the key reserved for the implicit section of a flat quota."""
    if section_id == FLAT_SECTION:
        raise ValueError(f"{FLAT_SECTION!r} is reserved for flat quotas and cannot name a section")
    return section_id


def section_label(section_id: SectionKey) -> str:
    """Human readable name for a section key."""
    if section_id is None:
        return "uncategorized"
    if section_id == FLAT_SECTION:
        return "all sections"
    return section_id


@dataclass(frozen=True)
class QuestionRecord:
    """A question as exposed by the bank store. Content is never inspected."""

    id: str
    section_id: SectionKey
    difficulty: Difficulty
    content: Any = field(default=None, compare=False, repr=False)
    owner_id: str | None = None


@dataclass(frozen=True)
class PoolFilter:
    """Restricts a pool snapshot to some sections and/or one difficulty."""

    section_ids: Tuple[SectionKey, ...] | None = None
    difficulty: Difficulty | None = None

    def matches(self, record: QuestionRecord) -> bool:
        if self.difficulty is not None and record.difficulty != self.difficulty:
            return False
        if self.section_ids is not None and record.section_id not in self.section_ids:
            return False
        return True


class SectionQuota(BaseModel):
    """Number of questions to draw from one section."""

    model_config = ConfigDict(frozen=True)

    section_id: SectionKey = None
    requested_count: int = Field(ge=0)

    @field_validator("section_id")
    @classmethod
    def _not_flat_key(cls, value: SectionKey) -> SectionKey:
        return check_section_id(value)


class QuotaSpec(BaseModel):
    """
    Quota requested for every allocation of a quiz.

    Either ``section_distribution`` (explicit per-section counts) or
    ``total_count`` (flat count over the filtered pool) must be given.
    ``section_ids`` narrows the pool of a flat quota; ``difficulty``
    applies to both shapes.
    """

    model_config = ConfigDict(frozen=True)

    section_distribution: List[SectionQuota] = Field(default_factory=list)
    total_count: int | None = Field(default=None, ge=0)
    section_ids: List[SectionKey] | None = None
    difficulty: Difficulty | None = None
    shuffle: bool = True

    @model_validator(mode="after")
    def _check_shape(self) -> "QuotaSpec":
        if self.section_distribution and self.total_count is not None:
            raise ValueError("give either section_distribution or total_count, not both")
        if not self.section_distribution and self.total_count is None:
            raise ValueError("a quota needs section_distribution or total_count")
        if self.section_distribution and self.section_ids is not None:
            raise ValueError("section_ids only applies to a flat total_count quota")
        for section_id in self.section_ids or ():
            check_section_id(section_id)

        seen = set()
        for entry in self.section_distribution:
            if entry.section_id in seen:
                raise ValueError(f"section {section_label(entry.section_id)!r} listed twice")
            seen.add(entry.section_id)
        return self

    @classmethod
    def by_section(
        cls,
        counts: Mapping[SectionKey, int],
        difficulty: Difficulty | str | None = None,
        shuffle: bool = True,
    ) -> "QuotaSpec":
        """Build a distribution quota from an ordered ``{section_id: count}`` mapping."""
        return cls(
            section_distribution=[
                SectionQuota(section_id=section_id, requested_count=count)
                for section_id, count in counts.items()
            ],
            difficulty=difficulty,
            shuffle=shuffle,
        )

    @classmethod
    def flat(
        cls,
        total_count: int,
        section_ids: Iterable[SectionKey] | None = None,
        difficulty: Difficulty | str | None = None,
        shuffle: bool = True,
    ) -> "QuotaSpec":
        return cls(
            total_count=total_count,
            section_ids=list(section_ids) if section_ids is not None else None,
            difficulty=difficulty,
            shuffle=shuffle,
        )

    @property
    def is_flat(self) -> bool:
        return not self.section_distribution

    def pool_filter(self) -> PoolFilter:
        """Filter selecting every question this quota may draw from."""
        if self.is_flat:
            sections = tuple(self.section_ids) if self.section_ids is not None else None
        else:
            sections = tuple(entry.section_id for entry in self.section_distribution)
        return PoolFilter(section_ids=sections, difficulty=self.difficulty)


@dataclass(frozen=True)
class SectionShortfall:
    """A section whose pool cannot cover the requested count."""

    section_id: SectionKey
    requested: int
    available: int

    @property
    def missing(self) -> int:
        return max(0, self.requested - self.available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "requested": self.requested,
            "available": self.available,
            "missing": self.missing,
        }

    def __str__(self) -> str:
        return f"{section_label(self.section_id)}: need {self.requested}, have {self.available}"


@dataclass(frozen=True)
class Allocation:
    """
    Immutable record of the questions handed to one requester.

    ``sections`` keeps the ids drawn per quota key (used to rebuild the
    ledger); ``section_counts`` is the breakdown by real section.
    """

    allocation_id: str
    quiz_id: str
    requester_id: str
    question_ids: Tuple[str, ...]
    sections: Tuple[Tuple[SectionKey, Tuple[str, ...]], ...]
    section_counts: Tuple[Tuple[SectionKey, int], ...]
    generation: int
    policy: str
    created_at: datetime

    @property
    def size(self) -> int:
        return len(self.question_ids)

    def ids_for(self, section_key: SectionKey) -> Tuple[str, ...]:
        for key, ids in self.sections:
            if key == section_key:
                return ids
        return ()

    @property
    def per_section(self) -> List[Dict[str, Any]]:
        return [
            {"section_id": section_id, "count": count}
            for section_id, count in self.section_counts
        ]


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of a successful allocate call."""

    allocation: Allocation
    shortfall: Dict[SectionKey, SectionShortfall] = field(default_factory=dict)
    recycled: bool = False

    @property
    def allocation_id(self) -> str:
        return self.allocation.allocation_id

    @property
    def question_ids(self) -> Tuple[str, ...]:
        return self.allocation.question_ids

    @property
    def generation(self) -> int:
        return self.allocation.generation

    @property
    def per_section(self) -> List[Dict[str, Any]]:
        return self.allocation.per_section

    @property
    def is_complete(self) -> bool:
        return not self.shortfall

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allocationId": self.allocation_id,
            "questionIds": list(self.question_ids),
            "perSection": self.per_section,
            "generation": self.generation,
            "shortfall": [s.to_dict() for s in self.shortfall.values()],
            "recycled": self.recycled,
        }
