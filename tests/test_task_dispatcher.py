"""Tests for the executor registry and task dispatcher."""

import pytest

from workflow_core.core.exceptions import ConfigurationError
from workflow_core.core.executor_registry import ExecutorRegistry
from workflow_core.core.task_dispatcher import TaskDispatcher, sort_tasks
from workflow_core.models.core import Task, TaskType, WorkflowContext


class TestExecutorRegistry:
    """Test cases for ExecutorRegistry."""

    def test_lookup_by_enum_and_string(self, registry, fake_executor):
        """Test executors are found by TaskType or its wire value."""
        assert registry.get_executor(TaskType.API_CALL) is fake_executor
        assert registry.get_executor("api_call") is fake_executor
        assert registry.is_supported("api_call")

    def test_unknown_type(self, registry):
        """Test unknown and unregistered types return None."""
        assert registry.get_executor("invalid_type") is None
        assert registry.get_executor(TaskType.WEBHOOK) is None
        assert registry.get_executor(None) is None

    def test_duplicate_registration_rejected(self, registry, fake_executor):
        """Test a type cannot be registered twice."""
        with pytest.raises(ConfigurationError):
            registry.register_executor(TaskType.API_CALL, fake_executor)

    def test_invalid_registration(self, fake_executor):
        """Test unknown types and non-executors are rejected."""
        with pytest.raises(ConfigurationError):
            ExecutorRegistry({"not_a_type": fake_executor})
        with pytest.raises(ConfigurationError):
            ExecutorRegistry({TaskType.WEBHOOK: object()})

    def test_list_task_types(self, registry):
        """Test registered types are listed."""
        assert registry.list_task_types() == ["api_call"]


class TestTaskValidation:
    """Test cases for task shape checks."""

    def test_missing_url(self, dispatcher, context, make_task):
        """Test API tasks require a URL."""
        task = make_task(config={"method": "POST", "body": {"data": "test"}})

        result = dispatcher.execute(task, context)

        assert result.success is False
        assert result.error == "URL is required for API task"

    def test_missing_method(self, dispatcher, context, make_task):
        """Test API tasks require a method."""
        result = dispatcher.execute(make_task(config={"url": "https://api.example.com"}), context)
        assert result.error == "Method is required for API task"

    def test_invalid_method(self, dispatcher, context, make_task):
        """Test only known HTTP methods are accepted."""
        task = make_task(config={"url": "https://api.example.com", "method": "FETCH"})
        assert dispatcher.execute(task, context).error == "Invalid HTTP method: FETCH"

    def test_invalid_url(self, dispatcher, context, make_task):
        """Test URLs must be absolute http(s) URLs."""
        task = make_task(config={"url": "ftp://files.example.com", "method": "GET"})
        assert dispatcher.execute(task, context).error == "Invalid URL format: ftp://files.example.com"

    def test_templated_url_accepted(self, dispatcher, context, make_task, fake_executor):
        """Test URLs made of placeholders are checked after resolution, not before."""
        task = make_task(config={"url": "${data.endpoint}", "method": "GET"})
        assert dispatcher.execute(task, context).success is True
        assert fake_executor.calls == ["1"]

    @pytest.mark.parametrize("config,message", [
        ({"timeout": -1}, "Timeout must be a non-negative number"),
        ({"timeout": "soon"}, "Timeout must be a non-negative number"),
        ({"headers": ["x"]}, "Headers must be an object"),
        ({"queryParams": "a=b"}, "Query params must be an object"),
        ({"retry": {"maxAttempts": 0}}, "Retry maxAttempts must be at least 1"),
        ({"retry": {"maxAttempts": 2, "delay": -5}}, "Retry delay must be a non-negative number"),
    ])
    def test_config_fields(self, dispatcher, context, make_task, config, message):
        """Test each API config field is checked."""
        full_config = {"url": "https://api.example.com", "method": "GET", **config}
        assert dispatcher.execute(make_task(config=full_config), context).error == message

    def test_missing_id(self, dispatcher, context, make_task):
        """Test tasks need an id."""
        assert dispatcher.execute(make_task(task_id=None), context).error == "Task ID is required"

    def test_empty_name(self, dispatcher, context, make_task):
        """Test an explicitly empty name is rejected while an absent one is fine."""
        assert dispatcher.execute(make_task(name="  "), context).error == "Task name cannot be empty"
        assert dispatcher.execute(make_task(name=None), context).success is True

    def test_non_numeric_order(self, dispatcher, context, make_task):
        """Test order must be numeric."""
        assert dispatcher.execute(make_task(order=None), context).error == "Task order must be a number"

    def test_unsupported_type(self, dispatcher, context, make_task):
        """Test unknown task types are reported by name."""
        result = dispatcher.execute(make_task(type="invalid_type", config={}), context)

        assert result.success is False
        assert result.error == "Unsupported task type: invalid_type"


class TestTaskExecution:
    """Test cases for single task dispatch."""

    def test_success(self, dispatcher, context, make_task, fake_executor):
        """Test executor output is wrapped in a successful result."""
        fake_executor.outputs["1"] = {"statusCode": 200}

        result = dispatcher.execute(make_task(), context)

        assert result.success is True
        assert result.task_id == "1"
        assert result.output == {"statusCode": 200}
        assert result.metadata["contextData"] == context.data

    def test_executor_error_captured(self, dispatcher, context, make_task, fake_executor, task_error):
        """Test executor exceptions become failed results."""
        fake_executor.outputs["1"] = task_error("Service Unavailable", "1")

        result = dispatcher.execute(make_task(), context)

        assert result.success is False
        assert result.error == "Service Unavailable"

    def test_unexpected_error_captured(self, dispatcher, context, make_task, fake_executor, mock_logger):
        """Test arbitrary exceptions are captured and logged."""
        fake_executor.outputs["1"] = RuntimeError("boom")

        result = dispatcher.execute(make_task(), context)

        assert result.error == "boom"
        mock_logger.error.assert_called_once()

    def test_missing_context_captured(self, dispatcher, make_task):
        """Test a missing context yields a failed result instead of raising."""
        result = dispatcher.execute(make_task("1", order=1), None)

        assert result.success is False
        assert result.error
        assert result.metadata["contextData"] is None


class TestBatchExecution:
    """Test cases for batch dispatch."""

    def test_runs_in_order_and_threads_outputs(self, dispatcher, make_task, fake_executor):
        """Test tasks run by order and see earlier outputs under their id."""
        context = WorkflowContext(data={"seed": 1})
        fake_executor.outputs.update({"a": {"x": 1}, "b": {"y": 2}})
        tasks = [make_task("b", order=2), make_task("a", order=1)]

        results = dispatcher.execute_batch(tasks, context)

        assert [r.task_id for r in results] == ["a", "b"]
        assert fake_executor.calls == ["a", "b"]
        assert fake_executor.seen_data[1]["a"] == {"x": 1}
        assert context.data == {"seed": 1, "a": {"x": 1}, "b": {"y": 2}}

    def test_recorded_metadata_not_mutated(self, dispatcher, make_task, fake_executor):
        """Test earlier results keep the data they saw when later tasks write outputs."""
        context = WorkflowContext(data={"a": 1})
        fake_executor.outputs.update({"1": {"x": 1}, "2": {"y": 2}})

        results = dispatcher.execute_batch([make_task("1", order=1), make_task("2", order=2)], context)

        assert results[0].metadata["contextData"] == {"a": 1}
        assert results[1].metadata["contextData"] == {"a": 1, "1": {"x": 1}}
        assert "2" in context.data

    def test_stop_on_error(self, dispatcher, context, make_task, fake_executor):
        """Test a failing task with onError=stop ends the batch."""
        fake_executor.outputs["1"] = RuntimeError("down")
        tasks = [make_task("1", order=1, on_error="stop"), make_task("2", order=2)]

        results = dispatcher.execute_batch(tasks, context)

        assert len(results) == 1
        assert fake_executor.calls == ["1"]

    def test_continue_on_error(self, dispatcher, context, make_task, fake_executor):
        """Test failures without onError=stop let the batch continue."""
        fake_executor.outputs["1"] = RuntimeError("down")
        tasks = [make_task("1", order=1, onError="continue"), make_task("2", order=2)]

        results = dispatcher.execute_batch(tasks, context)

        assert [r.success for r in results] == [False, True]


class TestSortTasks:
    """Test cases for task ordering."""

    def test_stable_sort(self):
        """Test equal orders keep declaration order and unordered tasks go last."""
        tasks = [
            Task(id="c", type="api_call", order=2),
            Task(id="x", type="api_call"),
            Task(id="a", type="api_call", order=1),
            Task(id="b", type="api_call", order=2),
        ]

        assert [t.id for t in sort_tasks(tasks)] == ["a", "c", "b", "x"]
