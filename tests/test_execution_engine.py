"""Tests for the workflow engine orchestration loop."""

from unittest.mock import patch

import pytest

from workflow_core.config import EngineConfig
from workflow_core.core.exceptions import ConfigurationError
from workflow_core.core.execution_engine import WorkflowEngine
from workflow_core.models.core import (
    OnFailPolicy, TaskResult, ValidationRule, Workflow, WorkflowContext
)


def make_rule(name: str, condition: str, on_fail: OnFailPolicy = OnFailPolicy.STOP, **extra) -> ValidationRule:
    """Build a validation rule."""
    return ValidationRule(name=name, condition=condition, on_fail=on_fail, **extra)


def make_workflow(validations=None, tasks=None) -> Workflow:
    """Build a workflow definition."""
    return Workflow(id="wf-1", name="Test Workflow", validations=validations or [], tasks=tasks or [])


class TestEngineContract:
    """Test cases for the engine entry points."""

    def test_missing_workflow(self, engine, context):
        """Test a missing workflow raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Workflow is required"):
            engine.execute_workflow(None, context)
        with pytest.raises(ConfigurationError):
            engine.execute(None, {})

    def test_missing_context(self, engine):
        """Test a missing context raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Context is required"):
            engine.execute_workflow(make_workflow(), None)

    def test_execute_builds_context(self, engine):
        """Test execute creates a fresh context for the caller data."""
        result = engine.execute(make_workflow(), {"age": 30})

        assert result.success is True
        assert result.context.data == {"age": 30}
        assert result.context.workflow_id == "wf-1"
        assert result.context.workflow_name == "Test Workflow"
        assert result.context.execution_id
        assert result.execution_id == result.context.execution_id

    def test_empty_workflow_succeeds(self, engine, context):
        """Test a workflow with nothing to do succeeds."""
        result = engine.execute_workflow(make_workflow(), context)

        assert result.success is True
        assert result.validation_results == []
        assert result.task_results == []


class TestValidationPhase:
    """Test cases for validation policies."""

    def test_stop_halts_tasks(self, engine, make_task, fake_executor):
        """Test a failing STOP rule prevents every task."""
        workflow = make_workflow(
            validations=[make_rule("adult", "age >= 18")],
            tasks=[make_task("1")]
        )

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16}))

        assert result.success is False
        assert len(result.validation_results) == 1
        assert result.validation_results[0].error == "Validation failed: age >= 18"
        assert result.task_results == []
        assert fake_executor.calls == []

    def test_stop_skips_later_rules(self, engine):
        """Test no rule after a STOP failure is evaluated."""
        workflow = make_workflow(validations=[
            make_rule("adult", "age >= 18"),
            make_rule("named", "name == Ada"),
        ])

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16, "name": "Ada"}))

        assert [r.rule.name for r in result.validation_results] == ["adult"]

    def test_continue_keeps_success(self, engine, make_task, fake_executor):
        """Test a CONTINUE failure still runs tasks and succeeds."""
        workflow = make_workflow(
            validations=[make_rule("vip", "tier == gold", OnFailPolicy.CONTINUE)],
            tasks=[make_task("1")]
        )

        result = engine.execute_workflow(workflow, WorkflowContext(data={"tier": "silver"}))

        assert result.success is True
        assert result.validation_results[0].success is False
        assert fake_executor.calls == ["1"]

    def test_validation_results_on_context(self, engine, context):
        """Test validation results are exposed on the context before tasks run."""
        workflow = make_workflow(validations=[make_rule("adult", "age >= 18")])

        result = engine.execute_workflow(workflow, context)

        assert result.context.validation_results == result.validation_results

    def test_retry_uses_linear_backoff(self, engine, sleep_recorder):
        """Test RETRY re-evaluates with 1s, 2s, 3s waits before failing."""
        workflow = make_workflow(validations=[make_rule("adult", "age >= 18", OnFailPolicy.RETRY)])

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16}))

        assert result.success is False
        assert sleep_recorder.calls == [1.0, 2.0, 3.0]
        assert len(result.validation_results) == 1

    def test_retry_succeeds_when_context_changes(self, engine, sleep_recorder):
        """Test a retried rule passes once the data it reads changes."""
        context = WorkflowContext(data={"ready": 0})
        workflow = make_workflow(validations=[make_rule("ready", "ready > 0", OnFailPolicy.RETRY)])

        def mark_ready(seconds):
            sleep_recorder(seconds)
            context.data["ready"] = 1

        engine.retry_policy.sleep = mark_ready
        result = engine.execute_workflow(workflow, context)

        assert result.success is True
        assert sleep_recorder.calls == [1.0]

    def test_fallback_passes(self, engine, make_task, fake_executor):
        """Test a passing fallback rule lets the workflow continue."""
        rule = make_rule(
            "adult", "age >= 18", OnFailPolicy.FALLBACK,
            fallback=make_rule("guardian", "guardian == yes")
        )
        workflow = make_workflow(validations=[rule], tasks=[make_task("1")])

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16, "guardian": "yes"}))

        assert result.success is True
        assert [r.success for r in result.validation_results] == [False, True]
        assert fake_executor.calls == ["1"]

    def test_fallback_fails(self, engine, make_task, fake_executor):
        """Test a failing fallback rule stops the workflow."""
        rule = make_rule(
            "adult", "age >= 18", OnFailPolicy.FALLBACK,
            fallback=make_rule("guardian", "guardian == yes")
        )
        workflow = make_workflow(validations=[rule], tasks=[make_task("1")])

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16, "guardian": "no"}))

        assert result.success is False
        assert len(result.validation_results) == 2
        assert fake_executor.calls == []

    def test_fallback_without_rule_stops(self, engine, make_task, fake_executor):
        """Test FALLBACK with no fallback rule behaves like STOP."""
        workflow = make_workflow(
            validations=[make_rule("adult", "age >= 18", OnFailPolicy.FALLBACK)],
            tasks=[make_task("1")]
        )

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 16}))

        assert result.success is False
        assert fake_executor.calls == []

    def test_invalid_condition_is_a_failure(self, engine):
        """Test evaluator errors surface as failed results, not exceptions."""
        workflow = make_workflow(validations=[make_rule("broken", "age >=")])

        result = engine.execute_workflow(workflow, WorkflowContext(data={"age": 20}))

        assert result.success is False
        assert result.validation_results[0].error.startswith("Invalid condition format")


class TestTaskPhase:
    """Test cases for task execution."""

    def test_tasks_run_in_order(self, engine, context, make_task, fake_executor):
        """Test tasks run by ascending order regardless of declaration."""
        workflow = make_workflow(tasks=[make_task("3", order=3), make_task("1", order=1), make_task("2", order=2)])

        result = engine.execute_workflow(workflow, context)

        assert fake_executor.calls == ["1", "2", "3"]
        assert [r.task_id for r in result.task_results] == ["1", "2", "3"]

    def test_outputs_stored_on_context(self, engine, make_task, fake_executor):
        """Test successful outputs land at data["task" + id]."""
        fake_executor.outputs["1"] = {"x": 1}
        context = WorkflowContext(data=None)

        result = engine.execute_workflow(make_workflow(tasks=[make_task("1")]), context)

        assert result.success is True
        assert context.data["task1"] == {"x": 1}

    def test_empty_output_not_stored(self, engine, context, make_task, fake_executor):
        """Test empty outputs are not written into the context."""
        fake_executor.outputs["1"] = {}

        engine.execute_workflow(make_workflow(tasks=[make_task("1")]), context)

        assert "task1" not in context.data

    def test_later_tasks_see_earlier_outputs(self, engine, context, make_task, fake_executor):
        """Test outputs are visible to the tasks that follow."""
        fake_executor.outputs["1"] = {"fee": 5}

        engine.execute_workflow(make_workflow(tasks=[make_task("1", order=1), make_task("2", order=2)]), context)

        assert fake_executor.seen_data[1]["task1"] == {"fee": 5}

    def test_failure_stops_remaining_tasks(self, engine, context, make_task, fake_executor):
        """Test the first failing task ends the workflow."""
        fake_executor.outputs["2"] = RuntimeError("Service Unavailable")
        workflow = make_workflow(tasks=[make_task("1", order=1), make_task("2", order=2), make_task("3", order=3)])

        result = engine.execute_workflow(workflow, context)

        assert result.success is False
        assert result.error == "Service Unavailable"
        assert [r.success for r in result.task_results] == [True, False]
        assert fake_executor.calls == ["1", "2"]

    def test_invalid_task_config(self, engine, context, make_task):
        """Test task shape errors fail the workflow."""
        workflow = make_workflow(tasks=[make_task(config={"method": "POST", "body": {"data": "test"}})])

        result = engine.execute_workflow(workflow, context)

        assert result.success is False
        assert len(result.task_results) == 1
        assert "URL is required" in result.task_results[0].error

    def test_retry_task(self, engine, context, make_task, fake_executor, sleep_recorder):
        """Test retryable tasks are retried with linear backoff."""
        fake_executor.outputs["1"] = [RuntimeError("flaky"), RuntimeError("flaky"), {"ok": 1}]

        result = engine.execute_workflow(make_workflow(tasks=[make_task("1", retry=True)]), context)

        assert result.success is True
        assert fake_executor.calls == ["1", "1", "1"]
        assert sleep_recorder.calls == [1.0, 2.0]

    def test_retry_exhausted(self, engine, context, make_task, fake_executor, sleep_recorder):
        """Test a task failing every attempt fails the workflow after max retries."""
        fake_executor.outputs["1"] = RuntimeError("down")

        result = engine.execute_workflow(make_workflow(tasks=[make_task("1", retry=True)]), context)

        assert result.success is False
        assert len(fake_executor.calls) == 4
        assert sleep_recorder.calls == [1.0, 2.0, 3.0]

    def test_no_retry_by_default(self, engine, context, make_task, fake_executor, sleep_recorder):
        """Test tasks without retry=True run once."""
        fake_executor.outputs["1"] = RuntimeError("down")

        engine.execute_workflow(make_workflow(tasks=[make_task("1")]), context)

        assert fake_executor.calls == ["1"]
        assert sleep_recorder.calls == []

    def test_dispatch_exception_wrapped(self, engine, context, make_task):
        """Test exceptions escaping task execution become failed results."""
        workflow = make_workflow(tasks=[make_task("1")])

        with patch.object(engine, "execute_task", side_effect=Exception("Task execution failed")):
            result = engine.execute_workflow(workflow, context)

        assert result.success is False
        assert result.task_results[0].success is False
        assert result.task_results[0].error == "Task execution failed"

    def test_mocked_task_results(self, engine, context, make_task):
        """Test results from execute_task are collected as returned."""
        tasks = [make_task("1", order=1), make_task("2", order=2)]
        canned = [
            TaskResult(task=tasks[0], task_id="1", success=True, output={"result": "success1"}),
            TaskResult(task=tasks[1], task_id="2", success=True, output={"result": "success2"}),
        ]

        with patch.object(engine, "execute_task", side_effect=canned):
            result = engine.execute_workflow(make_workflow(tasks=tasks), context)

        assert result.success is True
        assert [r.task_id for r in result.task_results] == ["1", "2"]
        assert context.data["task2"] == {"result": "success2"}


class TestExecuteTask:
    """Test cases for single task execution."""

    def test_dispatcher_exception_captured(self, engine, context, make_task):
        """Test execute_task never raises."""
        with patch.object(engine.dispatcher, "execute", side_effect=RuntimeError("boom")):
            result = engine.execute_task(make_task("1"), context)

        assert result.success is False
        assert result.error == "boom"
        assert result.task_id == "1"


class TestEngineConfiguration:
    """Test cases for building an engine from configuration."""

    def test_from_config(self, dispatcher, sleep_recorder):
        """Test retry settings come from EngineConfig."""
        config = EngineConfig(max_retries=2, retry_base_delay=0.5)

        engine = WorkflowEngine.from_config(config, dispatcher=dispatcher, sleep=sleep_recorder)
        engine.execute_workflow(
            make_workflow(validations=[make_rule("adult", "age >= 18", OnFailPolicy.RETRY)]),
            WorkflowContext(data={"age": 1})
        )

        assert sleep_recorder.calls == [0.5, 1.0]
