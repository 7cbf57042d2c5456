"""API call task executor built on requests."""

import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..core.exceptions import TaskError
from ..core.expression_evaluator import ExpressionEvaluator
from ..core.logging import StandardLoggerAdapter
from ..core.retry import RetryPolicy
from ..models.core import Task, WorkflowContext

DEFAULT_TIMEOUT_MS = 5000


class ApiTaskExecutor:
    """Executes ``api_call`` tasks.

    ``${...}`` placeholders in the url, headers, body and query params are
    resolved against the context before the request is sent. The task's
    ``timeout`` is in milliseconds, as is the ``delay`` of its optional
    ``retry = {maxAttempts, delay}`` config.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        logger=None,
        sleep: Callable[[float], Any] = time.sleep,
        default_timeout: int = DEFAULT_TIMEOUT_MS,
        evaluator: Optional[ExpressionEvaluator] = None
    ):
        self.session = session or requests.Session()
        self.logger = logger or StandardLoggerAdapter(__name__)
        self.sleep = sleep
        self.default_timeout = default_timeout
        self.evaluator = evaluator or ExpressionEvaluator()

    def execute(self, task: Task, context: WorkflowContext) -> Dict[str, Any]:
        """Send the request described by the task.

        Returns:
            ``{"statusCode", "headers", "data"}`` of the response

        Raises:
            TaskError: On timeouts, error statuses and transport failures
        """
        config = task.config or {}
        lookup = context.to_lookup() if isinstance(context, WorkflowContext) else {"data": context}

        url = self.evaluator.resolve_template(config.get("url") or "", lookup)
        method = str(config.get("method") or "GET").upper()
        headers = self.evaluator.resolve_object(config.get("headers") or {}, lookup)
        params = self.evaluator.resolve_object(config.get("queryParams") or {}, lookup)
        body = self.evaluator.resolve_object(config.get("body"), lookup)

        timeout_ms = config.get("timeout")
        if timeout_ms is None:
            timeout_ms = task.timeout if task.timeout is not None else self.default_timeout

        retry = config.get("retry") or {}
        policy = RetryPolicy(
            max_retries=max(int(retry.get("maxAttempts") or 1) - 1, 0),
            base_delay=(retry.get("delay") or 0) / 1000.0,
            linear=False,
            sleep=self.sleep
        )

        self.logger.debug("Executing API task", {"taskId": task.id, "url": url, "method": method})

        try:
            response = policy.call(
                f"api task {task.id}",
                self._send,
                method, url, headers, params, body, timeout_ms / 1000.0
            )
        except requests.Timeout:
            error_message = f"timeout of {timeout_ms}ms exceeded"
        except requests.HTTPError as e:
            error_message = (e.response.reason if e.response is not None else None) or str(e)
        except requests.RequestException as e:
            error_message = str(e) or type(e).__name__
        except Exception as e:
            error_message = str(e) or "Unknown API error"
        else:
            output = {
                "statusCode": response.status_code,
                "headers": dict(response.headers or {}),
                "data": self._decode_body(response),
            }
            self.logger.debug("API task completed successfully", {
                "taskId": task.id,
                "statusCode": output["statusCode"],
            })
            return output

        self.logger.error("API task failed", {"taskId": task.id, "error": error_message})
        raise TaskError(error_message, task_id=task.id)

    def execute_batch(self, tasks: List[Task], context: WorkflowContext) -> List[Dict[str, Any]]:
        """Execute each task in turn; the first failure propagates."""
        return [self.execute(task, context) for task in tasks]

    def _send(self, method: str, url: str, headers: Dict[str, Any], params: Dict[str, Any], body: Any, timeout: float):
        kwargs: Dict[str, Any] = {
            "headers": {key: str(value) for key, value in headers.items()},
            "params": params or None,
            "timeout": timeout,
        }
        if isinstance(body, (str, bytes)):
            kwargs["data"] = body
        elif body is not None:
            kwargs["json"] = body

        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    @staticmethod
    def _decode_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text
