"""Pytest configuration and fixtures."""

import os
import tempfile
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from workflow_core.config import reset_config
from workflow_core.core.exceptions import TaskError
from workflow_core.core.executor_registry import ExecutorRegistry
from workflow_core.core.execution_engine import WorkflowEngine
from workflow_core.core.retry import RetryPolicy
from workflow_core.core.task_dispatcher import TaskDispatcher
from workflow_core.models.core import Task, TaskType, WorkflowContext
from workflow_core.storage.database import create_database_engine, create_session_factory, drop_schema, init_schema


class SleepRecorder:
    """Stands in for time.sleep and records every requested delay."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeExecutor:
    """Executor returning canned outputs per task id.

    An output that is an Exception instance is raised instead of returned.
    A list of outputs is consumed one item per call.
    """

    def __init__(self, outputs: Dict[str, Any] = None):
        self.outputs = dict(outputs or {})
        self.calls: List[str] = []
        self.seen_data: List[Any] = []

    def execute(self, task: Task, context: WorkflowContext) -> Any:
        self.calls.append(task.id)
        self.seen_data.append(dict(context.data) if isinstance(context.data, dict) else context.data)
        output = self.outputs.get(task.id, {"ok": True})
        if isinstance(output, list):
            output = output.pop(0) if len(output) > 1 else output[0]
        if isinstance(output, Exception):
            raise output
        return output

    def execute_batch(self, tasks: List[Task], context: WorkflowContext) -> List[Any]:
        return [self.execute(task, context) for task in tasks]


class FakeSession:
    """Minimal requests.Session replacement serving queued responses."""

    def __init__(self):
        self.queue: List[Any] = []
        self.requests: List[Dict[str, Any]] = []

    def add(self, response_or_error) -> "FakeSession":
        self.queue.append(response_or_error)
        return self

    def request(self, method: str, url: str, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        item = self.queue.pop(0) if len(self.queue) > 1 else self.queue[0]
        if isinstance(item, Exception):
            raise item
        return item


def build_response(status_code: int = 200, body: bytes = b"", headers: Dict[str, str] = None,
                   reason: str = "OK", url: str = "https://api.example.com") -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response.headers = CaseInsensitiveDict(headers or {})
    response.reason = reason
    response.url = url
    response.encoding = "utf-8"
    return response


@pytest.fixture(autouse=True)
def clean_config():
    """Reset the cached global configuration around each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sleep_recorder():
    """Record backoff waits instead of sleeping."""
    return SleepRecorder()


@pytest.fixture
def mock_logger():
    """Logger collaborator double."""
    return MagicMock(spec=["debug", "info", "warn", "error"])


@pytest.fixture
def fake_executor():
    """Executor double registered for api_call tasks."""
    return FakeExecutor()


@pytest.fixture
def registry(fake_executor):
    """Registry whose api_call executor is the fake executor."""
    return ExecutorRegistry({TaskType.API_CALL: fake_executor})


@pytest.fixture
def dispatcher(registry, mock_logger):
    """Task dispatcher over the fake registry."""
    return TaskDispatcher(registry, logger=mock_logger)


@pytest.fixture
def engine(dispatcher, sleep_recorder, mock_logger):
    """Workflow engine with a no-op sleep."""
    return WorkflowEngine(
        dispatcher=dispatcher,
        retry_policy=RetryPolicy(max_retries=3, base_delay=1.0, sleep=sleep_recorder),
        logger=mock_logger
    )


@pytest.fixture
def context():
    """Execution context with applicant data."""
    return WorkflowContext(
        data={"age": 20, "name": "Ada", "status": "active"},
        workflow_id="wf-1",
        workflow_name="Applicant Workflow",
        execution_id="exec-1"
    )


@pytest.fixture
def fake_session():
    """Fake requests session."""
    return FakeSession()


@pytest.fixture
def make_response():
    """Factory for requests.Response objects."""
    return build_response


@pytest.fixture
def make_task():
    """Factory for api_call tasks with a valid default config."""
    def _make_task(task_id: str = "1", order: int = 1, **overrides) -> Task:
        fields = {
            "id": task_id,
            "type": TaskType.API_CALL.value,
            "name": f"Task {task_id}",
            "order": order,
            "config": {"url": f"https://api.example.com/{task_id}", "method": "POST"},
        }
        fields.update(overrides)
        return Task(**fields)

    return _make_task


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database with the workflow schema."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = create_database_engine(f"sqlite:///{db_path}")
    init_schema(engine)

    yield create_session_factory(engine)

    drop_schema(engine)
    engine.dispose()
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def task_error():
    """Factory for executor failures."""
    return lambda message, task_id=None: TaskError(message, task_id=task_id)
