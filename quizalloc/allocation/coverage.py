"""
Pool coverage reports.

Answers "can this quiz be published with this quota, and how many more
test-takers can it serve before the pool runs dry?" without allocating.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .models import FLAT_SECTION, QuotaSpec, SectionKey, section_label
from .pool_index import PoolSnapshot


@dataclass
class SectionCoverage:
    section_id: SectionKey
    requested: int
    pool_size: int
    remaining: int

    @property
    def sufficient(self) -> bool:
        return self.requested <= self.pool_size

    @property
    def allocations_left(self) -> int:
        """Further full allocations this section supports in the current generation."""
        return self.remaining // self.requested if self.requested else 0

    @property
    def allocations_per_generation(self) -> int:
        return self.pool_size // self.requested if self.requested else 0


@dataclass
class PoolCoverage:
    """Coverage of one quota against a quiz's pool and ledger."""

    quiz_id: str
    generation: int
    sections: List[SectionCoverage]
    recommendations: List[str] = field(default_factory=list)

    @property
    def required_questions(self) -> int:
        return sum(s.requested for s in self.sections)

    @property
    def total_available(self) -> int:
        return sum(s.pool_size for s in self.sections)

    @property
    def coverage_met(self) -> bool:
        return bool(self.sections) and all(s.sufficient for s in self.sections)

    @property
    def allocations_left(self) -> int:
        if not self.sections:
            return 0
        return min(s.allocations_left for s in self.sections)

    @property
    def allocations_per_generation(self) -> int:
        if not self.sections:
            return 0
        return min(s.allocations_per_generation for s in self.sections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quiz_id": self.quiz_id,
            "generation": self.generation,
            "required_questions": self.required_questions,
            "total_available": self.total_available,
            "coverage_met": self.coverage_met,
            "allocations_left": self.allocations_left,
            "allocations_per_generation": self.allocations_per_generation,
            "sections": [
                {
                    "section_id": s.section_id,
                    "requested": s.requested,
                    "pool_size": s.pool_size,
                    "remaining": s.remaining,
                    "sufficient": s.sufficient,
                }
                for s in self.sections
            ],
            "recommendations": list(self.recommendations),
        }


def build_coverage(
    quiz_id: str,
    quota: QuotaSpec,
    snapshot: PoolSnapshot,
    consumed: frozenset,
    generation: int,
) -> PoolCoverage:
    if quota.is_flat:
        pools = {FLAT_SECTION: snapshot.all_ids()}
        requested = {FLAT_SECTION: quota.total_count or 0}
    else:
        requested = {
            e.section_id: e.requested_count
            for e in quota.section_distribution
            if e.requested_count > 0
        }
        pools = {key: snapshot.ids(key) for key in requested}

    sections = [
        SectionCoverage(
            section_id=key,
            requested=count,
            pool_size=len(pools[key]),
            remaining=sum(1 for qid in pools[key] if qid not in consumed),
        )
        for key, count in requested.items()
        if count > 0
    ]

    coverage = PoolCoverage(quiz_id=quiz_id, generation=generation, sections=sections)
    coverage.recommendations = _get_coverage_recommendations(coverage)
    return coverage


def _get_coverage_recommendations(coverage: PoolCoverage) -> List[str]:
    """Generate recommendations for improving pool coverage."""
    recommendations = []

    if not coverage.sections:
        recommendations.append("Request at least one question")
        return recommendations

    for section in coverage.sections:
        if not section.sufficient:
            gap = section.requested - section.pool_size
            recommendations.append(
                f"Add {gap} more question(s) to {section_label(section.section_id)}"
            )

    if coverage.coverage_met and coverage.allocations_left == 0:
        recommendations.append(
            "Pool exhausted for this generation; reset the generation or use the recycle policy"
        )
    elif coverage.coverage_met and coverage.allocations_per_generation < 2:
        recommendations.append(
            "Pool only supports one unique allocation; add questions to serve more test-takers"
        )

    return recommendations
