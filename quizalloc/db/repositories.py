"""
SQL-backed question bank and allocation store.

SqlQuestionBank implements the bank-store contract the pool index reads
from; SqlAllocationStore persists allocations and generations so a
restarted coordinator rebuilds each quiz's ledger from the database.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from quizalloc.allocation.errors import ReservationConflictError
from quizalloc.allocation.models import Allocation, Difficulty, QuestionRecord, SectionKey
from quizalloc.db.database import session_scope
from quizalloc.db.models import AllocationRecord, QuestionBankItem, QuizGeneration


class SqlQuestionBank:
    """Question bank backed by the ``question_bank`` table."""

    def __init__(self, session_factory: sessionmaker[Session], owner_id: str | None = None):
        self.session_factory = session_factory
        self.owner_id = owner_id

    def list_available(
        self,
        section_ids: Sequence[SectionKey] | None = None,
        difficulty: Difficulty | None = None,
    ) -> List[QuestionRecord]:
        query = select(QuestionBankItem).where(QuestionBankItem.is_active.is_(True))

        if self.owner_id is not None:
            query = query.where(QuestionBankItem.owner_id == self.owner_id)

        if difficulty is not None:
            query = query.where(QuestionBankItem.difficulty == Difficulty(difficulty).value)

        if section_ids is not None:
            named = [s for s in section_ids if s is not None]
            conditions = []
            if named:
                conditions.append(QuestionBankItem.section_id.in_(named))
            if None in section_ids:
                conditions.append(QuestionBankItem.section_id.is_(None))
            if not conditions:
                return []
            query = query.where(or_(*conditions))

        query = query.order_by(QuestionBankItem.created_at, QuestionBankItem.id)

        with session_scope(self.session_factory) as session:
            return [item.to_record() for item in session.scalars(query)]

    def add(self, records: Iterable[QuestionRecord]) -> int:
        """Insert or replace bank questions."""
        count = 0
        with session_scope(self.session_factory) as session:
            for record in records:
                session.merge(QuestionBankItem.from_record(record))
                count += 1
        return count

    def deactivate(self, question_ids: Iterable[str]) -> int:
        """Hide questions from future snapshots."""
        ids = list(question_ids)
        if not ids:
            return 0
        with session_scope(self.session_factory) as session:
            result = session.execute(
                update(QuestionBankItem)
                .where(QuestionBankItem.id.in_(ids))
                .values(is_active=False)
            )
            return result.rowcount


class SqlAllocationStore:
    """Allocation store backed by the ``allocations`` tables."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def current_generation(self, quiz_id: str) -> int:
        with session_scope(self.session_factory) as session:
            row = session.get(QuizGeneration, quiz_id)
            return row.generation if row else 1

    def set_generation(self, quiz_id: str, generation: int) -> None:
        with session_scope(self.session_factory) as session:
            self._set_generation(session, quiz_id, generation)

    @staticmethod
    def _set_generation(session: Session, quiz_id: str, generation: int, only_forward: bool = False) -> None:
        row = session.get(QuizGeneration, quiz_id)
        if row is None:
            session.add(QuizGeneration(quiz_id=quiz_id, generation=generation))
        elif not only_forward or generation > row.generation:
            row.generation = generation

    def save(self, allocation: Allocation) -> None:
        """
        Persist an allocation and its per-question rows in one transaction.

        Raises:
            ReservationConflictError: an id is already allocated in this
                quiz and generation
        """
        try:
            with session_scope(self.session_factory) as session:
                session.add(AllocationRecord.from_allocation(allocation))
                self._set_generation(session, allocation.quiz_id, allocation.generation, only_forward=True)
        except IntegrityError as exc:
            logger.warning(
                f"Quiz {allocation.quiz_id}: database rejected allocation "
                f"{allocation.allocation_id} ({exc.orig})"
            )
            raise ReservationConflictError(allocation.quiz_id, allocation.question_ids) from exc

    def list_allocations(self, quiz_id: str, generation: int | None = None) -> List[Allocation]:
        query = select(AllocationRecord).where(AllocationRecord.quiz_id == quiz_id)
        if generation is not None:
            query = query.where(AllocationRecord.generation == generation)
        query = query.order_by(AllocationRecord.created_at, AllocationRecord.allocation_id)

        with session_scope(self.session_factory) as session:
            return [record.to_allocation() for record in session.scalars(query)]
