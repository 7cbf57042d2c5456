"""Data models for the workflow orchestration core."""

from .core import (
    OnFailPolicy,
    TaskType,
    TaskMethod,
    ValidationRule,
    Task,
    Workflow,
    ValidationResult,
    TaskResult,
    WorkflowContext,
    WorkflowResult,
)

__all__ = [
    "OnFailPolicy",
    "TaskType",
    "TaskMethod",
    "ValidationRule",
    "Task",
    "Workflow",
    "ValidationResult",
    "TaskResult",
    "WorkflowContext",
    "WorkflowResult",
]
