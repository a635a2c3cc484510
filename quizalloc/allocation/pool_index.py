"""
Pool index: read-only snapshots of the question bank.

The bank store is an external collaborator. Anything exposing
``list_available(section_ids=None, difficulty=None)`` works; snapshots are
plain reads with no transactional guarantee beyond the single call.
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Protocol, Sequence, Tuple

from loguru import logger

from .models import Difficulty, PoolFilter, QuestionRecord, SectionKey, check_section_id


class QuestionBankStore(Protocol):
    def list_available(
        self,
        section_ids: Sequence[SectionKey] | None = None,
        difficulty: Difficulty | None = None,
    ) -> List[QuestionRecord]:
        ...


class InMemoryQuestionBank:
    """Thread-safe in-process question bank."""

    def __init__(self, records: Iterable[QuestionRecord] = (), owner_id: str | None = None):
        self.owner_id = owner_id
        self._records: Dict[str, QuestionRecord] = {}
        self._lock = threading.Lock()
        self.add(records)

    def add(self, records: Iterable[QuestionRecord]) -> int:
        count = 0
        with self._lock:
            for record in records:
                check_section_id(record.section_id)
                self._records[record.id] = record
                count += 1
        return count

    def remove(self, question_ids: Iterable[str]) -> int:
        count = 0
        with self._lock:
            for question_id in question_ids:
                if self._records.pop(question_id, None) is not None:
                    count += 1
        return count

    def list_available(
        self,
        section_ids: Sequence[SectionKey] | None = None,
        difficulty: Difficulty | None = None,
    ) -> List[QuestionRecord]:
        with self._lock:
            records = list(self._records.values())

        sections = set(section_ids) if section_ids is not None else None
        return [
            r for r in records
            if (sections is None or r.section_id in sections)
            and (difficulty is None or r.difficulty == difficulty)
            and (self.owner_id is None or r.owner_id == self.owner_id)
        ]

    def __len__(self) -> int:
        return len(self._records)


class PoolSnapshot:
    """Available question ids indexed by section and by (section, difficulty)."""

    def __init__(self, records: Iterable[QuestionRecord], pool_filter: PoolFilter | None = None):
        self.pool_filter = pool_filter or PoolFilter()
        self.taken_at = datetime.now(timezone.utc)

        # dicts double as insertion-ordered sets
        self._by_section: Dict[SectionKey, Dict[str, None]] = {}
        self._by_key: Dict[Tuple[SectionKey, Difficulty], Dict[str, None]] = {}
        self._section_of: Dict[str, SectionKey] = {}

        for record in records:
            if record.id in self._section_of:
                continue
            self._section_of[record.id] = record.section_id
            self._by_section.setdefault(record.section_id, {})[record.id] = None
            self._by_key.setdefault((record.section_id, record.difficulty), {})[record.id] = None

    @property
    def sections(self) -> Dict[SectionKey, Tuple[str, ...]]:
        return {section: tuple(ids) for section, ids in self._by_section.items()}

    def ids(self, section_id: SectionKey, difficulty: Difficulty | None = None) -> Tuple[str, ...]:
        if difficulty is None:
            return tuple(self._by_section.get(section_id, ()))
        return tuple(self._by_key.get((section_id, difficulty), ()))

    def all_ids(self) -> Tuple[str, ...]:
        return tuple(self._section_of)

    def count(self, section_id: SectionKey) -> int:
        return len(self._by_section.get(section_id, ()))

    def section_of(self, question_id: str) -> SectionKey:
        return self._section_of[question_id]

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._section_of

    def __len__(self) -> int:
        return len(self._section_of)


class PoolIndex:
    """Takes snapshots of the bank store for one allocation attempt at a time."""

    def __init__(self, store: QuestionBankStore):
        self.store = store

    def _fetch(self, pool_filter: PoolFilter) -> List[QuestionRecord]:
        section_ids = list(pool_filter.section_ids) if pool_filter.section_ids is not None else None
        records = self.store.list_available(
            section_ids=section_ids,
            difficulty=pool_filter.difficulty,
        )
        return [r for r in records if pool_filter.matches(r)]

    def snapshot(self, pool_filter: PoolFilter | None = None) -> PoolSnapshot:
        """Read the bank as it is right now."""
        pool_filter = pool_filter or PoolFilter()
        snapshot = PoolSnapshot(self._fetch(pool_filter), pool_filter)
        logger.debug(
            f"Pool snapshot: {len(snapshot)} questions in {len(snapshot.sections)} section(s)"
        )
        return snapshot

    def verify(self, question_ids: Iterable[str], pool_filter: PoolFilter | None = None) -> frozenset:
        """Return the ids that are no longer available in the bank."""
        wanted = set(question_ids)
        if not wanted:
            return frozenset()
        present = {r.id for r in self._fetch(pool_filter or PoolFilter())}
        return frozenset(wanted - present)
