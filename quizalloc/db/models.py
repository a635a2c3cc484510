"""
SQLAlchemy models for the question bank and allocation history.

Implements:
- QuestionBankItem: bank questions (read by the allocation engine, written elsewhere)
- QuizGeneration: current ledger generation per quiz
- AllocationRecord: committed allocations
- AllocatedQuestion: one row per allocated question; the unique constraint on
  (quiz_id, generation, question_id) keeps allocations disjoint even across
  processes sharing the database
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from quizalloc.allocation.models import Allocation, Difficulty, QuestionRecord, check_section_id


class Base(DeclarativeBase):
    pass


class QuestionBankItem(Base):
    """A reusable bank question. ``section_id`` NULL means uncategorized."""

    __tablename__ = "question_bank"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(String(64), index=True)
    section_id: Mapped[str | None] = mapped_column(String(64), index=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default=Difficulty.MEDIUM.value)

    # Opaque question payload (type, text, options...)
    content: Mapped[dict | None] = mapped_column(JSON)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<QuestionBankItem(id={self.id}, section={self.section_id}, difficulty={self.difficulty})>"

    @classmethod
    def from_record(cls, record: QuestionRecord) -> "QuestionBankItem":
        check_section_id(record.section_id)
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            section_id=record.section_id,
            difficulty=Difficulty(record.difficulty).value,
            content=record.content,
            is_active=True,
        )

    def to_record(self) -> QuestionRecord:
        return QuestionRecord(
            id=self.id,
            section_id=self.section_id,
            difficulty=Difficulty(self.difficulty),
            content=self.content,
            owner_id=self.owner_id,
        )


class QuizGeneration(Base):
    __tablename__ = "quiz_generations"

    quiz_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    generation: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AllocationRecord(Base):
    """
    A committed allocation.

    ``sections`` holds ``[[quota_key, [question ids]], ...]`` and
    ``section_counts`` holds ``[[section_id, count], ...]``.
    """

    __tablename__ = "allocations"

    allocation_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    requester_id: Mapped[str] = mapped_column(String(128), nullable=False)
    generation: Mapped[int] = mapped_column(Integer, nullable=False)
    policy: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    question_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    sections: Mapped[list] = mapped_column(JSON, nullable=False)
    section_counts: Mapped[list] = mapped_column(JSON, nullable=False)

    items: Mapped[List["AllocatedQuestion"]] = relationship(
        back_populates="allocation", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<AllocationRecord(quiz={self.quiz_id}, requester={self.requester_id}, "
            f"generation={self.generation}, questions={len(self.question_ids)})>"
        )

    @classmethod
    def from_allocation(cls, allocation: Allocation) -> "AllocationRecord":
        record = cls(
            allocation_id=allocation.allocation_id,
            quiz_id=allocation.quiz_id,
            requester_id=allocation.requester_id,
            generation=allocation.generation,
            policy=allocation.policy,
            created_at=allocation.created_at,
            question_ids=list(allocation.question_ids),
            sections=[[key, list(ids)] for key, ids in allocation.sections],
            section_counts=[[section_id, count] for section_id, count in allocation.section_counts],
        )
        record.items = [
            AllocatedQuestion(
                quiz_id=allocation.quiz_id,
                generation=allocation.generation,
                question_id=question_id,
            )
            for question_id in allocation.question_ids
        ]
        return record

    def to_allocation(self) -> Allocation:
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Allocation(
            allocation_id=self.allocation_id,
            quiz_id=self.quiz_id,
            requester_id=self.requester_id,
            question_ids=tuple(self.question_ids),
            sections=tuple((key, tuple(ids)) for key, ids in self.sections),
            section_counts=tuple((section_id, count) for section_id, count in self.section_counts),
            generation=self.generation,
            policy=self.policy,
            created_at=created_at,
        )


class AllocatedQuestion(Base):
    __tablename__ = "allocated_questions"
    __table_args__ = (
        UniqueConstraint("quiz_id", "generation", "question_id", name="uq_allocated_question_generation"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    allocation_id: Mapped[str] = mapped_column(
        ForeignKey("allocations.allocation_id", ondelete="CASCADE"), nullable=False
    )
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    generation: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)

    allocation: Mapped[AllocationRecord] = relationship(back_populates="items")
