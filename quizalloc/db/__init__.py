# SQLAlchemy persistence
from .database import create_db_engine, create_session_factory, init_db, session_scope
from .models import AllocatedQuestion, AllocationRecord, Base, QuestionBankItem, QuizGeneration
from .repositories import SqlAllocationStore, SqlQuestionBank

__all__ = [
    # Database
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
    # Models
    "Base",
    "QuestionBankItem",
    "QuizGeneration",
    "AllocationRecord",
    "AllocatedQuestion",
    # Repositories
    "SqlQuestionBank",
    "SqlAllocationStore",
]
