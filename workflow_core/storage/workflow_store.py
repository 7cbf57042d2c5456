"""SQLAlchemy-backed workflow store."""

from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import StorageError
from ..core.interceptor import build_trigger_key
from ..core.logging import StandardLoggerAdapter
from ..models.core import Workflow
from .models import WorkflowModel


class SqlAlchemyWorkflowStore:
    """Persists workflow documents in the ``workflows`` table.

    Each operation opens its own session from the factory, so one store can
    be shared between callers.
    """

    def __init__(self, session_factory: sessionmaker, logger=None):
        """Initialize the store.

        Args:
            session_factory: Factory producing sessions bound to the workflow database
            logger: Logger collaborator exposing debug/info/warn/error
        """
        self.session_factory = session_factory
        self.logger = logger or StandardLoggerAdapter(__name__)

    def save_workflow(self, workflow: Workflow) -> str:
        """Insert or replace a workflow by id.

        Returns:
            ID of the stored workflow

        Raises:
            StorageError: If the write fails, e.g. the trigger is already taken
        """
        with self.session_factory() as db:
            try:
                model = db.get(WorkflowModel, workflow.id)
                if model is None:
                    model = WorkflowModel(id=workflow.id)
                    db.add(model)

                model.name = workflow.name
                model.trigger = workflow.trigger
                model.definition = workflow.to_document()
                model.updated_at = datetime.utcnow()
                db.commit()

            except SQLAlchemyError as e:
                db.rollback()
                self.logger.error("Error saving workflow", {"workflowId": workflow.id, "error": str(e)})
                raise StorageError(
                    f"Failed to store workflow: {str(e)}", operation="save_workflow", table="workflows"
                ) from e

        self.logger.info("Workflow saved", {"workflowId": workflow.id, "trigger": workflow.trigger})
        return workflow.id

    def find_workflow_by_trigger(
        self,
        class_name: str,
        method_name: str,
        entity_type: Optional[str] = None
    ) -> Optional[Workflow]:
        """Find the workflow registered for ``<class>.<method>[.<entity>]``.

        Returns:
            The workflow, or None if nothing is registered for the trigger

        Raises:
            StorageError: If the lookup fails
        """
        trigger = build_trigger_key(class_name, method_name, entity_type)

        with self.session_factory() as db:
            try:
                model = db.query(WorkflowModel).filter(WorkflowModel.trigger == trigger).first()
                if model is None:
                    self.logger.debug("No workflow found for trigger", {"trigger": trigger})
                    return None
                return self._to_workflow(model)

            except (SQLAlchemyError, PydanticValidationError) as e:
                self.logger.error("Error finding workflow by trigger", {
                    "className": class_name,
                    "methodName": method_name,
                    "error": str(e),
                })
                raise StorageError(
                    f"Failed to find workflow for trigger {trigger}: {str(e)}",
                    operation="find_workflow_by_trigger",
                    table="workflows",
                    trigger=trigger
                ) from e

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get a workflow by id, or None if it does not exist."""
        with self.session_factory() as db:
            try:
                model = db.get(WorkflowModel, workflow_id)
                return self._to_workflow(model) if model is not None else None
            except (SQLAlchemyError, PydanticValidationError) as e:
                self.logger.error("Error retrieving workflow", {"workflowId": workflow_id, "error": str(e)})
                raise StorageError(
                    f"Failed to retrieve workflow: {str(e)}",
                    operation="get_workflow",
                    table="workflows",
                    workflow_id=workflow_id
                ) from e

    def list_workflows(self) -> List[Workflow]:
        """List all stored workflows, oldest first."""
        with self.session_factory() as db:
            try:
                models = db.query(WorkflowModel).order_by(WorkflowModel.created_at, WorkflowModel.id).all()
                return [self._to_workflow(model) for model in models]
            except (SQLAlchemyError, PydanticValidationError) as e:
                self.logger.error("Error listing workflows", {"error": str(e)})
                raise StorageError(
                    f"Failed to list workflows: {str(e)}", operation="list_workflows", table="workflows"
                ) from e

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow.

        Returns:
            True if a workflow was deleted, False if it did not exist
        """
        with self.session_factory() as db:
            try:
                model = db.get(WorkflowModel, workflow_id)
                if model is None:
                    return False
                db.delete(model)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                self.logger.error("Error deleting workflow", {"workflowId": workflow_id, "error": str(e)})
                raise StorageError(
                    f"Failed to delete workflow: {str(e)}",
                    operation="delete_workflow",
                    table="workflows",
                    workflow_id=workflow_id
                ) from e

        self.logger.info("Workflow deleted", {"workflowId": workflow_id})
        return True

    @staticmethod
    def _to_workflow(model: WorkflowModel) -> Workflow:
        return Workflow.model_validate(model.definition)
