"""Workflow Engine orchestrating the validation phase and the task phase."""

import uuid
from typing import Any, Callable, List, Optional

from ..models.core import (
    OnFailPolicy, Task, TaskResult, ValidationResult, ValidationRule,
    Workflow, WorkflowContext, WorkflowResult
)
from .exceptions import ConfigurationError, TaskError
from .logging import StandardLoggerAdapter, get_logger, logging_context
from .retry import RetryPolicy
from .task_dispatcher import TaskDispatcher, has_output, sort_tasks, store_output
from .validation_evaluator import ValidationEvaluator

logger = get_logger(__name__)


class WorkflowEngine:
    """Engine that runs a workflow's validations, then its tasks in order.

    The engine keeps no per-execution state; everything an execution touches
    lives on its ``WorkflowContext``, so one engine may serve many callers.
    """

    def __init__(
        self,
        dispatcher: Optional[TaskDispatcher] = None,
        validation_evaluator: Optional[ValidationEvaluator] = None,
        retry_policy: Optional[RetryPolicy] = None,
        logger=None
    ):
        """Initialize the workflow engine.

        Args:
            dispatcher: Task dispatcher; defaults to one over the built-in executors
            validation_evaluator: Evaluator for validation rules
            retry_policy: Linear backoff policy used for RETRY rules and retryable tasks
            logger: Logger collaborator exposing debug/info/warn/error
        """
        self.logger = logger or StandardLoggerAdapter(__name__)
        self.dispatcher = dispatcher or TaskDispatcher(logger=self.logger)
        self.validation_evaluator = validation_evaluator or ValidationEvaluator()
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_config(
        cls,
        config,
        dispatcher: Optional[TaskDispatcher] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        logger=None
    ) -> "WorkflowEngine":
        """Build an engine whose retry settings come from an EngineConfig."""
        retry_policy = RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            linear=True,
            sleep=sleep
        )
        return cls(dispatcher=dispatcher, retry_policy=retry_policy, logger=logger)

    def execute(self, workflow: Workflow, data: Any) -> WorkflowResult:
        """Execute a workflow against fresh caller data.

        Args:
            workflow: Workflow definition
            data: Caller supplied data placed at ``context.data``

        Returns:
            WorkflowResult of the execution

        Raises:
            ConfigurationError: If no workflow is given
        """
        if workflow is None:
            raise ConfigurationError("Workflow is required", config_key="workflow")

        context = WorkflowContext(
            data=data,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            execution_id=str(uuid.uuid4())
        )
        return self.execute_workflow(workflow, context)

    def execute_workflow(self, workflow: Workflow, context: WorkflowContext) -> WorkflowResult:
        """Run validations then tasks against an existing context.

        Args:
            workflow: Workflow definition
            context: Execution context, mutated in place

        Returns:
            WorkflowResult with every validation and task result collected

        Raises:
            ConfigurationError: If the workflow or the context is missing
        """
        if workflow is None:
            raise ConfigurationError("Workflow is required", config_key="workflow")
        if context is None:
            raise ConfigurationError("Context is required", config_key="context")

        with logging_context(workflowId=workflow.id, executionId=context.execution_id):
            return self._run_workflow(workflow, context)

    def _run_workflow(self, workflow: Workflow, context: WorkflowContext) -> WorkflowResult:
        logger.info(f"Executing workflow {workflow.id} ({workflow.name}), execution_id={context.execution_id}")

        validation_results: List[ValidationResult] = []
        failure = self._run_validations(workflow.validations, context, validation_results)
        if failure is not None:
            logger.info(f"Workflow {workflow.id} stopped during validation: {failure.error}")
            return self._build_result(False, context, validation_results, [], failure.error)

        context.validation_results = list(validation_results)

        task_results: List[TaskResult] = []
        for task in sort_tasks(workflow.tasks):
            result = self._run_task(task, context)
            task_results.append(result)

            if not result.success:
                logger.info(f"Workflow {workflow.id} stopped at task {task.id}: {result.error}")
                return self._build_result(False, context, validation_results, task_results, result.error)

            if has_output(result.output):
                store_output(context, f"task{task.id}", result.output)

        logger.info(f"Workflow {workflow.id} completed: {len(validation_results)} validations, {len(task_results)} tasks")
        return self._build_result(True, context, validation_results, task_results)

    def execute_task(self, task: Task, context: WorkflowContext) -> TaskResult:
        """Dispatch a single task; failures come back as a failed TaskResult."""
        try:
            return self.dispatcher.execute(task, context)
        except Exception as e:
            return self._task_failure(task, e)

    def _run_validations(
        self,
        rules: List[ValidationRule],
        context: WorkflowContext,
        results: List[ValidationResult]
    ) -> Optional[ValidationResult]:
        """Evaluate rules in order, appending to ``results``.

        Returns:
            The result that halts the workflow, or None when tasks may run
        """
        for rule in rules:
            result = self._evaluate_rule(rule, context)
            results.append(result)

            if result.success or rule.on_fail == OnFailPolicy.CONTINUE:
                continue

            if rule.on_fail == OnFailPolicy.FALLBACK and rule.fallback is not None:
                self.logger.warn("Validation failed, evaluating fallback", {
                    "rule": rule.name,
                    "fallback": rule.fallback.name,
                })
                fallback_result = self.validation_evaluator.evaluate(rule.fallback, context)
                results.append(fallback_result)
                if fallback_result.success:
                    continue
                return fallback_result

            # STOP, exhausted RETRY, and FALLBACK without a fallback rule
            return result

        return None

    def _evaluate_rule(self, rule: ValidationRule, context: WorkflowContext) -> ValidationResult:
        if rule.on_fail != OnFailPolicy.RETRY:
            return self.validation_evaluator.evaluate(rule, context)

        return self.retry_policy.run_until_success(
            f"validation '{rule.name}'",
            lambda: self.validation_evaluator.evaluate(rule, context),
            lambda result: result.success,
            lambda result: result.error
        )

    def _run_task(self, task: Task, context: WorkflowContext) -> TaskResult:
        def attempt() -> TaskResult:
            try:
                return self.execute_task(task, context)
            except Exception as e:
                return self._task_failure(task, e)

        if task.retry is not True:
            return attempt()

        return self.retry_policy.run_until_success(
            f"task {task.id}",
            attempt,
            lambda result: result.success,
            lambda result: result.error
        )

    def _task_failure(self, task: Task, error: Exception) -> TaskResult:
        if not isinstance(error, TaskError):
            error = TaskError(str(error) or type(error).__name__, task_id=task.id)
        self.logger.error("Task execution raised", {"taskId": task.id, "error": error.message})
        return TaskResult(task=task, task_id=task.id, success=False, error=error.message)

    @staticmethod
    def _build_result(
        success: bool,
        context: WorkflowContext,
        validation_results: List[ValidationResult],
        task_results: List[TaskResult],
        error: Optional[str] = None
    ) -> WorkflowResult:
        return WorkflowResult(
            success=success,
            context=context,
            validation_results=list(validation_results),
            task_results=list(task_results),
            error=error,
            execution_id=context.execution_id
        )
