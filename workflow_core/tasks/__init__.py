"""Built-in task executors."""

from ..core.executor_registry import ExecutorRegistry
from ..models.core import TaskType
from .api_task import DEFAULT_TIMEOUT_MS, ApiTaskExecutor


def create_default_registry(logger=None, session=None, sleep=None, default_timeout: int = DEFAULT_TIMEOUT_MS) -> ExecutorRegistry:
    """Build a registry holding the built-in executors."""
    api_executor = ApiTaskExecutor(session=session, logger=logger, default_timeout=default_timeout)
    if sleep is not None:
        api_executor.sleep = sleep
    return ExecutorRegistry({TaskType.API_CALL: api_executor})


__all__ = ["ApiTaskExecutor", "create_default_registry"]
