"""Task Dispatcher routing tasks to their executors and normalizing the outcome."""

import copy
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from ..models.core import Task, TaskMethod, TaskResult, TaskType, WorkflowContext
from .exceptions import TaskError
from .executor_registry import ExecutorRegistry
from .logging import StandardLoggerAdapter, get_logger

logger = get_logger(__name__)

ALLOWED_METHODS = {method.value for method in TaskMethod}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def sort_tasks(tasks: List[Task]) -> List[Task]:
    """Return tasks ordered by ascending ``order``; ties keep declaration order.

    Tasks without a numeric order sort after the ordered ones.
    """
    def order_key(task: Task):
        if _is_number(task.order):
            return (0, task.order)
        return (1, 0)

    return sorted(tasks, key=order_key)


def has_output(output: Any) -> bool:
    """Check whether a task output is worth storing in the context."""
    if output is None:
        return False
    if isinstance(output, (Mapping, list, tuple, str)) and len(output) == 0:
        return False
    return True


def store_output(context: WorkflowContext, key: str, output: Any) -> None:
    """Write a task output into ``context.data[key]``, creating ``data`` if absent."""
    if context.data is None:
        context.data = {}
    if not isinstance(context.data, MutableMapping):
        logger.warning(f"Context data is a {type(context.data).__name__}, cannot store output '{key}'")
        return
    context.data[key] = output


class TaskDispatcher:
    """Validates tasks and hands them to the executor registered for their type.

    Executor failures never escape ``execute``; they come back as a failed
    ``TaskResult`` whose ``error`` is the failure message.
    """

    def __init__(self, registry: Optional[ExecutorRegistry] = None, logger=None):
        """Initialize the dispatcher.

        Args:
            registry: Executor registry; defaults to the built-in executors
            logger: Logger collaborator exposing debug/info/warn/error
        """
        if registry is None:
            from ..tasks import create_default_registry
            registry = create_default_registry()

        self.registry = registry
        self.logger = logger or StandardLoggerAdapter(__name__)
        self._config_validators: Dict[TaskType, Callable[[Task], None]] = {
            TaskType.API_CALL: self._validate_api_config,
        }

    def execute(self, task: Task, context: WorkflowContext) -> TaskResult:
        """Execute a single task.

        Args:
            task: Task to execute
            context: Execution context handed to the executor

        Returns:
            TaskResult describing the outcome
        """
        # snapshot; later tasks keep writing into context.data
        metadata = {"contextData": copy.deepcopy(getattr(context, "data", None))}

        try:
            self.validate_task(task)

            executor = self.registry.get_executor(task.type)
            if executor is None:
                raise TaskError(f"Unsupported task type: {task.type}", task_id=task.id)

            self.logger.debug("Starting task execution", {
                "taskId": task.id,
                "taskType": task.type,
                "executionId": getattr(context, "execution_id", None),
            })
            output = executor.execute(task, context)

        except TaskError as e:
            error_message = e.message
        except Exception as e:
            error_message = str(e) or type(e).__name__
        else:
            self.logger.debug("Task execution completed", {"taskId": task.id, "taskType": task.type})
            return TaskResult(task=task, task_id=task.id, success=True, output=output, metadata=metadata)

        self.logger.error("Task execution failed", {
            "taskId": task.id,
            "taskType": task.type,
            "error": error_message,
        })
        return TaskResult(task=task, task_id=task.id, success=False, error=error_message, metadata=metadata)

    def execute_batch(self, tasks: List[Task], context: WorkflowContext) -> List[TaskResult]:
        """Execute tasks sequentially by ascending order.

        Each successful output is stored at ``context.data[task.id]`` before
        the next task runs. A failing task with ``onError == "stop"`` ends
        the batch.

        Returns:
            Results for the tasks that ran
        """
        results: List[TaskResult] = []

        for task in sort_tasks(tasks):
            result = self.execute(task, context)
            results.append(result)

            if result.success:
                if has_output(result.output) and task.id:
                    store_output(context, task.id, result.output)
            elif task.on_error == "stop":
                self.logger.warn("Stopping batch after task failure", {"taskId": task.id, "error": result.error})
                break

        return results

    def validate_task(self, task: Task) -> None:
        """Check the task shape before dispatch.

        Raises:
            TaskError: Naming the first offending field
        """
        if task is None:
            raise TaskError("Task is required")

        if not task.id or not str(task.id).strip():
            raise TaskError("Task ID is required")

        if task.name is not None and not task.name.strip():
            raise TaskError("Task name cannot be empty", task_id=task.id)

        if not task.type or not str(task.type).strip():
            raise TaskError("Task type is required", task_id=task.id)

        if not _is_number(task.order):
            raise TaskError("Task order must be a number", task_id=task.id)

        if task.config is None:
            raise TaskError("Task config is required", task_id=task.id)

        if not isinstance(task.config, Mapping):
            raise TaskError("Task config must be an object", task_id=task.id)

        if task.timeout is not None and (not _is_number(task.timeout) or task.timeout < 0):
            raise TaskError("Task timeout must be a non-negative number", task_id=task.id)

        validator = self._config_validators.get(self._known_type(task.type))
        if validator:
            validator(task)

    @staticmethod
    def _known_type(task_type: Any) -> Optional[TaskType]:
        try:
            return TaskType(task_type)
        except ValueError:
            return None

    def _validate_api_config(self, task: Task) -> None:
        config = task.config

        url = config.get("url")
        if not url or not isinstance(url, str):
            raise TaskError("URL is required for API task", task_id=task.id)

        # Templated URLs are only known after placeholder resolution
        if "${" not in url:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise TaskError(f"Invalid URL format: {url}", task_id=task.id)

        method = config.get("method")
        if not method:
            raise TaskError("Method is required for API task", task_id=task.id)
        if str(method).upper() not in ALLOWED_METHODS:
            raise TaskError(f"Invalid HTTP method: {method}", task_id=task.id)

        timeout = config.get("timeout")
        if timeout is not None and (not _is_number(timeout) or timeout < 0):
            raise TaskError("Timeout must be a non-negative number", task_id=task.id)

        for key, label in (("headers", "Headers"), ("queryParams", "Query params")):
            value = config.get(key)
            if value is not None and not isinstance(value, Mapping):
                raise TaskError(f"{label} must be an object", task_id=task.id)

        retry = config.get("retry")
        if retry is not None:
            if not isinstance(retry, Mapping):
                raise TaskError("Retry config must be an object", task_id=task.id)
            max_attempts = retry.get("maxAttempts")
            if not _is_number(max_attempts) or max_attempts < 1:
                raise TaskError("Retry maxAttempts must be at least 1", task_id=task.id)
            delay = retry.get("delay", 0)
            if not _is_number(delay) or delay < 0:
                raise TaskError("Retry delay must be a non-negative number", task_id=task.id)
