"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizalloc.allocation import (  # noqa: E402
    AllocationCoordinator,
    Difficulty,
    InMemoryAllocationStore,
    InMemoryQuestionBank,
    QuestionRecord,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database, threads)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep loguru output out of test reports unless a test fails."""
    from loguru import logger

    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    yield
    logger.remove()


def make_questions(section_id, count, difficulty=Difficulty.MEDIUM, prefix=None, owner_id=None):
    """Build ``count`` bank questions in one section."""
    prefix = prefix or (section_id or "uncat")
    return [
        QuestionRecord(
            id=f"{prefix}-{i}",
            section_id=section_id,
            difficulty=difficulty,
            content={"question": f"{prefix} question {i}"},
            owner_id=owner_id,
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def question_factory():
    return make_questions


@pytest.fixture
def sample_bank():
    """10 medium math questions, 5 science questions of mixed difficulty, 3 uncategorized."""
    science = (
        make_questions("science", 2, Difficulty.EASY, prefix="sci-easy")
        + make_questions("science", 2, Difficulty.MEDIUM, prefix="sci-medium")
        + make_questions("science", 1, Difficulty.HARD, prefix="sci-hard")
    )
    return InMemoryQuestionBank(
        make_questions("math", 10, Difficulty.MEDIUM)
        + science
        + make_questions(None, 3, Difficulty.EASY)
    )


@pytest.fixture
def allocation_store():
    return InMemoryAllocationStore()


@pytest.fixture
def coordinator(sample_bank, allocation_store):
    return AllocationCoordinator(sample_bank, allocation_store, lock_timeout=5.0)
