"""Factory wiring a configured workflow runtime from its components."""

from typing import Any, Callable, Optional

import requests
from sqlalchemy import Engine

from .config import EngineConfig, get_config
from .core.decorators import WorkflowEngineDecorator, create_decorated_workflow_engine
from .core.execution_engine import WorkflowEngine
from .core.interceptor import WorkflowInterceptor
from .core.logging import StandardLoggerAdapter, get_logger, setup_logging
from .core.task_dispatcher import TaskDispatcher
from .storage.database import create_database_engine, create_session_factory, init_schema
from .storage.workflow_store import SqlAlchemyWorkflowStore
from .tasks import create_default_registry

logger = get_logger(__name__)


class WorkflowRuntime:
    """Container for the components of one configured runtime."""

    def __init__(self):
        self.config: Optional[EngineConfig] = None
        self.database_engine: Optional[Engine] = None
        self.store: Optional[SqlAlchemyWorkflowStore] = None
        self.engine: Optional[WorkflowEngine] = None
        self.decorated_engine: Optional[WorkflowEngineDecorator] = None
        self.interceptor: Optional[WorkflowInterceptor] = None
        self.logger = None

    def close(self) -> None:
        """Dispose of the database engine."""
        if self.database_engine is not None:
            self.database_engine.dispose()
            self.database_engine = None


def create_runtime(
    config: Optional[EngineConfig] = None,
    session: Optional[requests.Session] = None,
    sleep: Optional[Callable[[float], Any]] = None,
    configure_logging: bool = True
) -> WorkflowRuntime:
    """Create a runtime: store, engine, decorator chain and interceptor.

    Args:
        config: Engine configuration; defaults to the global configuration
        session: Optional requests session for the API executor
        sleep: Optional sleep used for every backoff wait
        configure_logging: Whether to apply the configured logging setup

    Returns:
        The wired WorkflowRuntime
    """
    if config is None:
        config = get_config()

    if configure_logging:
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.structured_logging
        )

    runtime = WorkflowRuntime()
    runtime.config = config
    runtime.logger = StandardLoggerAdapter("workflow_core")

    runtime.database_engine = create_database_engine(config.database_url, echo=config.database_echo)
    init_schema(runtime.database_engine)
    runtime.store = SqlAlchemyWorkflowStore(create_session_factory(runtime.database_engine), runtime.logger)

    registry = create_default_registry(
        logger=runtime.logger,
        session=session,
        sleep=sleep,
        default_timeout=config.default_task_timeout
    )

    dispatcher = TaskDispatcher(registry, logger=runtime.logger)
    runtime.engine = WorkflowEngine.from_config(config, dispatcher=dispatcher, sleep=sleep, logger=runtime.logger)
    runtime.decorated_engine = create_decorated_workflow_engine(runtime.engine, runtime.logger)
    runtime.interceptor = WorkflowInterceptor(runtime.store, runtime.decorated_engine, runtime.logger)

    logger.info(f"Workflow runtime ready (max_retries={config.max_retries}, database={config.database_type.value})")
    return runtime
