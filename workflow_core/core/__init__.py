"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    ConfigurationError,
    ValidationError,
    TaskError,
    ExpressionError,
    OrchestrationError,
    StorageError,
)
from .logging import setup_logging, get_logger, StandardLoggerAdapter
from .expression_evaluator import ExpressionEvaluator, resolve_template, resolve_object
from .validation_evaluator import ValidationEvaluator
from .executor_registry import ExecutorRegistry, TaskExecutor
from .task_dispatcher import TaskDispatcher
from .retry import RetryPolicy
from .execution_engine import WorkflowEngine
from .decorators import (
    WorkflowEngineDecorator,
    LoggingWorkflowEngineDecorator,
    ValidationWorkflowEngineDecorator,
    ErrorHandlingWorkflowEngineDecorator,
    create_decorated_workflow_engine,
)
from .interceptor import WorkflowInterceptor, BaseUseCase, build_trigger_key

__all__ = [
    "WorkflowEngineError",
    "ConfigurationError",
    "ValidationError",
    "TaskError",
    "ExpressionError",
    "OrchestrationError",
    "StorageError",
    "setup_logging",
    "get_logger",
    "StandardLoggerAdapter",
    "ExpressionEvaluator",
    "resolve_template",
    "resolve_object",
    "ValidationEvaluator",
    "ExecutorRegistry",
    "TaskExecutor",
    "TaskDispatcher",
    "RetryPolicy",
    "WorkflowEngine",
    "WorkflowEngineDecorator",
    "LoggingWorkflowEngineDecorator",
    "ValidationWorkflowEngineDecorator",
    "ErrorHandlingWorkflowEngineDecorator",
    "create_decorated_workflow_engine",
    "WorkflowInterceptor",
    "BaseUseCase",
    "build_trigger_key",
]
