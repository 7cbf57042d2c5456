"""Decorator chain adding logging and error normalization around a workflow engine.

Every decorator exposes ``execute(workflow, data) -> WorkflowResult`` and
forwards to the engine it wraps, so decorators stack in any order.
"""

import uuid
from typing import Any, List, Optional, Protocol

from ..models.core import ValidationRule, Workflow, WorkflowContext, WorkflowResult
from .logging import StandardLoggerAdapter, get_logger

logger = get_logger(__name__)


class WorkflowExecutor(Protocol):
    """Anything that runs a workflow against caller data."""

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        ...


class WorkflowEngineDecorator:
    """Base decorator forwarding ``execute`` to the wrapped engine."""

    def __init__(self, workflow_engine: WorkflowExecutor):
        self.workflow_engine = workflow_engine

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        return self.workflow_engine.execute(workflow, data)


class LoggingWorkflowEngineDecorator(WorkflowEngineDecorator):
    """Logs the start, success and failure of each execution; errors are re-raised."""

    def __init__(self, workflow_engine: WorkflowExecutor, logger=None):
        super().__init__(workflow_engine)
        self.logger = logger or StandardLoggerAdapter(__name__)

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        workflow_id = workflow.id if workflow is not None else None
        self.logger.info("Starting workflow execution", {"workflowId": workflow_id, "data": data})

        try:
            result = super().execute(workflow, data)
        except Exception as e:
            self.logger.error("Workflow execution failed", {"workflowId": workflow_id, "error": str(e)})
            raise

        self.logger.info("Workflow execution finished", {
            "workflowId": workflow_id,
            "executionId": result.execution_id,
            "success": result.success,
        })
        return result


class ValidationWorkflowEngineDecorator(WorkflowEngineDecorator):
    """Extension point for injecting validation rules ahead of a workflow's own.

    With no extra rules configured the workflow is forwarded unchanged.
    """

    def __init__(self, workflow_engine: WorkflowExecutor, rules: Optional[List[ValidationRule]] = None):
        super().__init__(workflow_engine)
        self.rules = list(rules or [])

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        if not self.rules or workflow is None:
            return super().execute(workflow, data)

        extended = workflow.model_copy(update={"validations": self.rules + list(workflow.validations)})
        return super().execute(extended, data)


class ErrorHandlingWorkflowEngineDecorator(WorkflowEngineDecorator):
    """Converts exceptions from the wrapped engine into a failed WorkflowResult."""

    def __init__(self, workflow_engine: WorkflowExecutor, logger=None):
        super().__init__(workflow_engine)
        self.logger = logger or StandardLoggerAdapter(__name__)

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        try:
            return super().execute(workflow, data)
        except Exception as e:
            error_message = str(e) or "Unknown error"
            self.logger.error("Workflow execution failed", {
                "workflowId": workflow.id if workflow is not None else None,
                "error": error_message,
            })

        context = self._recover_context(workflow, data)
        return WorkflowResult(
            success=False,
            context=context,
            validation_results=[],
            task_results=[],
            error=error_message,
            execution_id=context.execution_id
        )

    def _recover_context(self, workflow: Optional[Workflow], data: Any) -> WorkflowContext:
        """Re-run the workflow without validations to recover its context.

        Falls back to a context built from the workflow and data when the
        recovery run fails as well.
        """
        if workflow is not None:
            try:
                recovered = self._recovery_engine().execute(workflow.model_copy(update={"validations": []}), data)
                if recovered is not None and recovered.context is not None:
                    return recovered.context
            except Exception as e:
                logger.warning(f"Context recovery for workflow {workflow.id} failed: {e}")

        return WorkflowContext(
            data=data,
            workflow_id=workflow.id if workflow is not None else None,
            workflow_name=workflow.name if workflow is not None else None,
            execution_id=str(uuid.uuid4())
        )

    def _recovery_engine(self) -> WorkflowExecutor:
        """Wrapped engine with rule-injecting decorators directly beneath skipped."""
        engine = self.workflow_engine
        while isinstance(engine, ValidationWorkflowEngineDecorator):
            engine = engine.workflow_engine
        return engine


def create_decorated_workflow_engine(base_engine: WorkflowExecutor, logger=None) -> WorkflowEngineDecorator:
    """Wrap an engine as ErrorHandling(Validation(Logging(engine)))."""
    return ErrorHandlingWorkflowEngineDecorator(
        ValidationWorkflowEngineDecorator(
            LoggingWorkflowEngineDecorator(base_engine, logger)
        ),
        logger
    )
