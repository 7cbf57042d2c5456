"""Validation evaluator for three-token ``"<field> <operator> <value>"`` conditions."""

import operator
from typing import Any, Callable, Dict, Optional

from ..models.core import ValidationResult, ValidationRule, WorkflowContext
from .exceptions import ValidationError
from .expression_evaluator import resolve_path, stringify
from .logging import get_logger

logger = get_logger(__name__)

NUMERIC_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}

STRING_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
}

_MISSING = object()


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _as_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings; everything else is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class ValidationEvaluator:
    """Evaluates a single validation rule against a workflow context.

    Problems with the condition itself (bad token count, unknown field or
    operator, non-numeric operands) are reported through
    ``ValidationResult.error``; ``evaluate`` never raises for them.
    """

    def evaluate(self, rule: ValidationRule, context: WorkflowContext) -> ValidationResult:
        """Evaluate ``rule`` and return its result."""
        try:
            passed, metadata = self._evaluate_condition(rule.condition, context)
        except ValidationError as e:
            logger.warning(f"Validation '{rule.name}' could not be evaluated: {e.message}")
            return ValidationResult(
                rule=rule,
                success=False,
                error=e.message,
                metadata={"condition": rule.condition, **e.context}
            )

        if passed:
            logger.debug(f"Validation '{rule.name}' passed: {rule.condition}")
            return ValidationResult(rule=rule, success=True, metadata=metadata)

        logger.info(f"Validation '{rule.name}' failed: {rule.condition}")
        return ValidationResult(
            rule=rule,
            success=False,
            error=rule.message or f"Validation failed: {rule.condition}",
            metadata=metadata
        )

    def _evaluate_condition(self, condition: str, context: WorkflowContext):
        tokens = condition.split() if isinstance(condition, str) else []
        if len(tokens) != 3:
            raise ValidationError(
                f"Invalid condition format: expected '<field> <operator> <value>', got '{condition}'"
            )

        field, op, expected = tokens
        actual = self._lookup_field(field, context)
        if actual is _MISSING:
            raise ValidationError(f"Field not found in context: {field}", field=field)

        metadata = {
            "condition": condition,
            "field": field,
            "operator": op,
            "expected": expected,
            "actual": actual,
        }

        if op in STRING_OPERATORS:
            return STRING_OPERATORS[op](stringify(actual), expected), metadata

        if op not in NUMERIC_OPERATORS:
            raise ValidationError(f"Unsupported operator: {op}", field=field)

        left = _as_number(actual)
        if left is None:
            raise ValidationError(
                f"Invalid type for {field}: expected number, got {_type_name(actual)}",
                field=field
            )
        right = _as_number(expected)
        if right is None:
            raise ValidationError(
                f"Invalid comparison value for {field}: expected number, got '{expected}'",
                field=field
            )
        return NUMERIC_OPERATORS[op](left, right), metadata

    @staticmethod
    def _lookup_field(field: str, context: WorkflowContext) -> Any:
        """Resolve ``field`` inside ``context.data`` first, then against the context itself."""
        data = context.data if isinstance(context, WorkflowContext) else None
        if data is not None:
            value = resolve_path(data, field, _MISSING)
            if value is not _MISSING:
                return value
        return resolve_path(context, field, _MISSING)
