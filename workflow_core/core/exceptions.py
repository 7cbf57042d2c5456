"""Custom exceptions for the workflow orchestration core with detailed error information."""

import traceback
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    STORAGE = "storage"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    ORCHESTRATION = "orchestration"


class WorkflowEngineError(Exception):
    """Base exception for all workflow engine errors."""

    default_code = "WORKFLOW_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.severity = severity
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.context = context or {}
        self.timestamp = datetime.utcnow()
        self.traceback_info = traceback.format_stack()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and error responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self


class ConfigurationError(WorkflowEngineError):
    """Raised when the engine is called without a workflow or context, or is misconfigured."""

    default_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)


class ValidationError(WorkflowEngineError):
    """Raised when a validation rule cannot be evaluated.

    The validation evaluator captures these into ``ValidationResult.error``;
    the engine never lets one escape.
    """

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.field = field
        if field:
            self.add_context(field=field)


class TaskError(WorkflowEngineError):
    """Raised when a task is malformed, unsupported, or its executor fails."""

    default_code = "TASK_ERROR"

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXECUTION,
            recoverable=True,
            **kwargs
        )
        self.task_id = task_id
        if task_id:
            self.add_context(task_id=task_id)


class ExpressionError(WorkflowEngineError):
    """Raised when a ``${...}`` expression cannot be parsed or evaluated."""

    default_code = "EXPRESSION_ERROR"

    def __init__(
        self,
        message: str,
        expression: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.expression = expression
        if expression:
            self.add_context(expression=expression)


class OrchestrationError(WorkflowEngineError):
    """Raised for infrastructure failures around an execution (lookups, storage)."""

    default_code = "ORCHESTRATION_ERROR"

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        trigger: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.ORCHESTRATION)
        super().__init__(message, **kwargs)
        if workflow_id:
            self.add_context(workflow_id=workflow_id)
        if trigger:
            self.add_context(trigger=trigger)


class StorageError(OrchestrationError):
    """Raised when workflow store operations fail."""

    default_code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            category=ErrorCategory.STORAGE,
            recoverable=True,
            **kwargs
        )
        if operation:
            self.add_context(operation=operation)
        if table:
            self.add_context(table=table)


def create_error_response(error: WorkflowEngineError) -> Dict[str, Any]:
    """Create a standardized error payload from a WorkflowEngineError."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "severity": error.severity.value,
            "category": error.category.value,
            "recoverable": error.recoverable,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }
