"""Wiring of a database-backed AllocationCoordinator from settings."""
from __future__ import annotations

from sqlalchemy.engine import Engine

from quizalloc.allocation import AllocationCoordinator
from quizalloc.config import Settings, get_settings
from quizalloc.db import (
    SqlAllocationStore,
    SqlQuestionBank,
    create_db_engine,
    create_session_factory,
    init_db,
)


def build_coordinator(
    settings: Settings | None = None,
    engine: Engine | None = None,
    create_tables: bool = False,
) -> AllocationCoordinator:
    settings = settings or get_settings()
    engine = engine or create_db_engine(settings.database_url)
    if create_tables:
        init_db(engine)

    factory = create_session_factory(engine)
    return AllocationCoordinator.from_settings(
        SqlQuestionBank(factory, owner_id=settings.question_owner_id),
        SqlAllocationStore(factory),
        settings=settings,
    )
