"""Executor Registry mapping task types to the executors that run them."""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Union, runtime_checkable

from ..models.core import Task, TaskType, WorkflowContext
from .exceptions import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class TaskExecutor(Protocol):
    """Interface every per-type executor implements."""

    def execute(self, task: Task, context: WorkflowContext) -> Any:
        ...

    def execute_batch(self, tasks: List[Task], context: WorkflowContext) -> List[Any]:
        ...


def normalize_task_type(task_type: Union[TaskType, str, None]) -> Optional[TaskType]:
    """Return the TaskType for a discriminant, or None when it is unknown."""
    if isinstance(task_type, TaskType):
        return task_type
    if not task_type:
        return None
    try:
        return TaskType(str(task_type).strip())
    except ValueError:
        return None


class ExecutorRegistry:
    """Registry of task executors keyed by TaskType.

    The registry is populated when it is built; the dispatcher only reads it.
    """

    def __init__(self, executors: Optional[Mapping[Union[TaskType, str], TaskExecutor]] = None):
        """Initialize the registry.

        Args:
            executors: Optional mapping of task type to executor to register up front.

        Raises:
            ConfigurationError: If a key is not a known task type or an
                executor does not implement ``execute``/``execute_batch``.
        """
        self._executors: Dict[TaskType, TaskExecutor] = {}
        for task_type, executor in (executors or {}).items():
            self.register_executor(task_type, executor)

    def register_executor(self, task_type: Union[TaskType, str], executor: TaskExecutor) -> None:
        """Register the executor responsible for ``task_type``.

        Raises:
            ConfigurationError: If the type is unknown, already registered, or
                the executor is not a TaskExecutor.
        """
        normalized = normalize_task_type(task_type)
        if normalized is None:
            raise ConfigurationError(f"Unknown task type '{task_type}'", config_key="executors")

        if not isinstance(executor, TaskExecutor):
            raise ConfigurationError(
                f"Executor for '{normalized.value}' must implement execute and execute_batch",
                config_key="executors"
            )

        if normalized in self._executors:
            raise ConfigurationError(
                f"An executor is already registered for '{normalized.value}'",
                config_key="executors"
            )

        self._executors[normalized] = executor
        logger.info(f"Registered executor {type(executor).__name__} for task type '{normalized.value}'")

    def get_executor(self, task_type: Union[TaskType, str, None]) -> Optional[TaskExecutor]:
        """Return the executor for a task type, or None if nothing handles it."""
        normalized = normalize_task_type(task_type)
        if normalized is None:
            return None
        return self._executors.get(normalized)

    def is_supported(self, task_type: Union[TaskType, str, None]) -> bool:
        """Check whether an executor is registered for the task type."""
        return self.get_executor(task_type) is not None

    def list_task_types(self) -> List[str]:
        """List the registered task type values."""
        return sorted(task_type.value for task_type in self._executors)
