"""Database models and storage layer."""

from .database import Base, create_database_engine, create_session_factory, init_schema, drop_schema
from .models import WorkflowModel
from .workflow_store import SqlAlchemyWorkflowStore

__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "init_schema",
    "drop_schema",
    "WorkflowModel",
    "SqlAlchemyWorkflowStore",
]
