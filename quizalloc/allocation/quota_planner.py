"""
Quota planning: normalise a QuotaSpec into a ResolvedQuota.

Both quota shapes collapse into one tagged variant:
- FlatQuota: one implicit section covering the whole filtered pool
- BySectionQuota: explicit counts per section, zero counts dropped
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Dict, Tuple

from loguru import logger

from .errors import InvalidQuotaError
from .models import FLAT_SECTION, PoolFilter, QuotaSpec, SectionKey, SectionShortfall, section_label
from .pool_index import PoolSnapshot


@dataclass(frozen=True)
class ResolvedQuota(ABC):
    pool_filter: PoolFilter
    shuffle: bool

    kind: ClassVar[str] = ""

    @abstractmethod
    def requirements(self) -> Dict[SectionKey, int]:
        """Ordered map of quota key -> number of questions to draw."""

    @abstractmethod
    def pool(self, snapshot: PoolSnapshot, section_key: SectionKey) -> Tuple[str, ...]:
        """Every snapshot id a quota key may draw from."""

    @property
    def total(self) -> int:
        return sum(self.requirements().values())


@dataclass(frozen=True)
class FlatQuota(ResolvedQuota):
    count: int

    kind: ClassVar[str] = "flat"

    def requirements(self) -> Dict[SectionKey, int]:
        return {FLAT_SECTION: self.count}

    def pool(self, snapshot: PoolSnapshot, section_key: SectionKey) -> Tuple[str, ...]:
        return snapshot.all_ids()


@dataclass(frozen=True)
class BySectionQuota(ResolvedQuota):
    counts: Tuple[Tuple[SectionKey, int], ...]

    kind: ClassVar[str] = "by_section"

    def requirements(self) -> Dict[SectionKey, int]:
        return dict(self.counts)

    def pool(self, snapshot: PoolSnapshot, section_key: SectionKey) -> Tuple[str, ...]:
        return snapshot.ids(section_key)


class QuotaPlanner:
    """Validates quotas against a pool snapshot."""

    def resolve(self, spec: QuotaSpec, snapshot: PoolSnapshot) -> ResolvedQuota:
        """
        Resolve a quota against the pool.

        Raises:
            InvalidQuotaError: listing every section whose request exceeds
                its pool, or when the quota asks for no questions at all.
        """
        pool_filter = spec.pool_filter()

        if spec.is_flat:
            count = spec.total_count or 0
            if count == 0:
                raise InvalidQuotaError([], "quota requests no questions")
            if count > len(snapshot):
                raise InvalidQuotaError([SectionShortfall(FLAT_SECTION, count, len(snapshot))])
            return FlatQuota(pool_filter=pool_filter, shuffle=spec.shuffle, count=count)

        counts = []
        violations = []
        for entry in spec.section_distribution:
            if entry.requested_count == 0:
                logger.debug(f"Dropping zero-count section {section_label(entry.section_id)}")
                continue
            available = snapshot.count(entry.section_id)
            if entry.requested_count > available:
                violations.append(
                    SectionShortfall(entry.section_id, entry.requested_count, available)
                )
            counts.append((entry.section_id, entry.requested_count))

        if violations:
            raise InvalidQuotaError(violations)
        if not counts:
            raise InvalidQuotaError([], "quota requests no questions")

        return BySectionQuota(pool_filter=pool_filter, shuffle=spec.shuffle, counts=tuple(counts))
