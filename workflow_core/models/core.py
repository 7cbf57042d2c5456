"""Core Pydantic models for the workflow orchestration core.

Field aliases carry the persisted document shape (``onFail``, ``onError``,
``taskId`` ...); every model accepts both the alias and the attribute name.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class OnFailPolicy(str, Enum):
    """What the engine does when a validation rule fails."""
    STOP = "stop"
    CONTINUE = "continue"
    RETRY = "retry"
    FALLBACK = "fallback"


class TaskType(str, Enum):
    """Task type discriminants understood by the executor registry."""
    API_CALL = "api_call"
    DATABASE_QUERY = "database_query"
    EMAIL_SEND = "email_send"
    FILE_OPERATION = "file_operation"
    CUSTOM_FUNCTION = "custom_function"
    WEBHOOK = "webhook"
    CONDITIONAL = "conditional"


class TaskMethod(str, Enum):
    """HTTP methods accepted by API call tasks."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class ValidationRule(BaseModel):
    """A single ``"<field> <operator> <value>"`` condition evaluated before tasks run."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = Field(None, description="Optional rule identifier")
    name: str = Field(..., description="Human readable rule name")
    condition: str = Field(..., description="Three-token condition, e.g. 'age >= 18'")
    on_fail: OnFailPolicy = Field(OnFailPolicy.STOP, alias="onFail", description="Policy applied on failure")
    fallback: Optional["ValidationRule"] = Field(None, description="Rule evaluated when on_fail is FALLBACK")
    message: Optional[str] = Field(None, description="Message reported when the rule fails")


class Task(BaseModel):
    """A unit of work dispatched to the executor registered for its type.

    Shape checks (required id, numeric order, type specific config) are done
    by the task dispatcher so that a malformed task surfaces as a failed
    ``TaskResult`` instead of a load error.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = Field(None, description="Task identifier, also the context output key")
    type: Optional[str] = Field(None, description="Task type discriminant")
    name: Optional[str] = Field(None, description="Human readable task name")
    order: Optional[Union[int, float]] = Field(None, description="Execution order, ascending")
    config: Optional[Dict[str, Any]] = Field(default_factory=dict, description="Type specific configuration")
    retry: Optional[bool] = Field(None, description="Retry the task when it fails")
    on_error: Optional[Literal["stop", "continue", "retry"]] = Field(
        None, alias="onError", description="Batch policy when the task fails"
    )
    timeout: Optional[Any] = Field(None, description="Advisory timeout in milliseconds")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        """Accept numeric ids from loosely typed documents."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Workflow(BaseModel):
    """Immutable workflow definition: validations followed by ordered tasks."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Unique workflow identifier")
    name: str = Field(..., description="Workflow name")
    trigger: Optional[str] = Field(None, description="Trigger key, '<class>.<method>[.<entity>]'")
    validations: List[ValidationRule] = Field(default_factory=list, description="Rules evaluated in order")
    tasks: List[Task] = Field(default_factory=list, description="Tasks executed by ascending order")

    def to_document(self) -> Dict[str, Any]:
        """Return the JSON-compatible document persisted by workflow stores."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ValidationResult(BaseModel):
    """Outcome of evaluating one validation rule."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rule: ValidationRule
    success: bool
    error: Optional[str] = None
    output: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TaskResult(BaseModel):
    """Outcome of dispatching one task."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    task: Task
    task_id: Optional[str] = Field(None, alias="taskId")
    success: bool
    error: Optional[str] = None
    output: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkflowContext(BaseModel):
    """Mutable per-execution data bag threaded through validations and tasks.

    Unknown keys are kept as extra attributes.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    data: Optional[Any] = Field(None, description="Caller supplied data, plus task outputs")
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    workflow_name: Optional[str] = Field(None, alias="workflowName")
    execution_id: Optional[str] = Field(None, alias="executionId")
    validation_results: Optional[List[ValidationResult]] = Field(None, alias="validationResults")

    def to_lookup(self) -> Dict[str, Any]:
        """Return a shallow name -> value view used for path resolution.

        ``data`` is the live object, so lookups see task outputs as they land.
        """
        values: Dict[str, Any] = {
            "data": self.data,
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "executionId": self.execution_id,
            "validationResults": self.validation_results,
        }
        values.update(self.model_extra or {})
        return values


class WorkflowResult(BaseModel):
    """The engine's terminal result for one execution."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    success: bool
    context: WorkflowContext
    validation_results: List[ValidationResult] = Field(default_factory=list, alias="validationResults")
    task_results: List[TaskResult] = Field(default_factory=list, alias="taskResults")
    error: Optional[str] = None
    execution_id: Optional[str] = Field(None, alias="executionId")


ValidationRule.model_rebuild()
