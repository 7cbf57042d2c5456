"""Call-site middleware that runs the workflow registered for a method after it returns."""

from typing import Any, Callable, Optional, Union

from ..models.core import WorkflowResult
from .decorators import WorkflowExecutor, create_decorated_workflow_engine
from .execution_engine import WorkflowEngine
from .exceptions import OrchestrationError
from .logging import StandardLoggerAdapter


def build_trigger_key(class_name: str, method_name: str, entity_type: Optional[str] = None) -> str:
    """Build the ``"<class>.<method>[.<entity>]"`` key workflows are registered under."""
    if entity_type:
        return f"{class_name}.{method_name}.{entity_type}"
    return f"{class_name}.{method_name}"


class WorkflowInterceptor:
    """Runs a method, then the workflow triggered by it.

    The method's return value becomes the workflow's ``data``. When the
    workflow fails its WorkflowResult is returned instead of the method
    result; when no workflow is registered the method result passes through.
    """

    def __init__(self, store, engine: Optional[WorkflowExecutor] = None, logger=None):
        """Initialize the interceptor.

        Args:
            store: Workflow store exposing find_workflow_by_trigger
            engine: Engine used to run workflows; defaults to the decorated engine
            logger: Logger collaborator exposing debug/info/warn/error
        """
        self.store = store
        self.logger = logger or StandardLoggerAdapter(__name__)
        if engine is None:
            engine = create_decorated_workflow_engine(WorkflowEngine(logger=self.logger), self.logger)
        self.engine = engine

    def run(
        self,
        instance_or_class_name: Union[str, Any],
        method_name: str,
        call: Callable[..., Any],
        *args,
        entity_type: Optional[str] = None,
        **kwargs
    ) -> Union[Any, WorkflowResult]:
        """Call ``call(*args, **kwargs)`` and execute the workflow it triggers.

        Args:
            instance_or_class_name: Owning instance, or its class name
            method_name: Name of the intercepted method
            call: Callable producing the method result
            entity_type: Optional entity qualifier; read from the instance's
                ``entity_type`` attribute when omitted

        Returns:
            The method result, or the failed WorkflowResult

        Raises:
            OrchestrationError: If the workflow lookup fails
        """
        if isinstance(instance_or_class_name, str):
            class_name = instance_or_class_name
        else:
            class_name = type(instance_or_class_name).__name__
            if entity_type is None:
                entity_type = getattr(instance_or_class_name, "entity_type", None)

        method_result = call(*args, **kwargs)

        trigger = build_trigger_key(class_name, method_name, entity_type)
        try:
            workflow = self.store.find_workflow_by_trigger(class_name, method_name, entity_type)
        except OrchestrationError:
            raise
        except Exception as e:
            self.logger.error("Workflow lookup failed", {"trigger": trigger, "error": str(e)})
            raise OrchestrationError(f"Failed to look up workflow for {trigger}: {e}", trigger=trigger) from e

        if workflow is None:
            self.logger.debug("No workflow registered for trigger", {"trigger": trigger})
            return method_result

        self.logger.debug("Executing workflow", {"workflowId": workflow.id, "trigger": trigger})
        result = self.engine.execute(workflow, method_result)

        if not result.success:
            self.logger.warn("Workflow failed after method call", {
                "workflowId": workflow.id,
                "trigger": trigger,
                "error": result.error,
            })
            return result

        return method_result


class BaseUseCase:
    """Base class for use cases whose ``execute`` is followed by a workflow.

    Subclasses implement ``handle``; callers invoke ``execute``.
    """

    entity_type: Optional[str] = None

    def __init__(self, interceptor: WorkflowInterceptor):
        self.interceptor = interceptor

    def execute(self, input: Any) -> Any:
        return self.interceptor.run(self, "execute", self.handle, input, entity_type=self.entity_type)

    def handle(self, input: Any) -> Any:
        raise NotImplementedError
