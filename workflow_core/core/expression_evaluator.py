"""Template expression evaluator for ``${...}`` placeholders.

A placeholder is first resolved as a dotted path against the context. When
the path yields nothing, the inner text is evaluated with a small
recursive-descent grammar::

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("-" | "+") unary | primary
    primary    := NUMBER | NAME "(" [expression ("," expression)*] ")"
                | path | "(" expression ")"
    path       := NAME ("." (NAME | DIGITS))*

Only the functions in ``DEFAULT_FUNCTIONS`` can be called. Anything that
fails to resolve is left in the output as the literal ``${...}`` text.
"""

import json
import math
import os
import re
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..models.core import WorkflowContext
from .exceptions import ExpressionError
from .logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")
NUMERIC_PATTERN = re.compile(r"\d+(\.\d+)?")

_TOKEN_PATTERN = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d+)?|\.\d+)"
    r"|(?P<name>[A-Za-z_$][\w$]*)"
    r"|(?P<op>[-+*/().,]))"
)
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_float(value: Any) -> float:
    if _is_number(value):
        return float(value)
    match = _LEADING_FLOAT.match(str(value))
    if not match:
        raise ExpressionError(f"parseFloat cannot convert {value!r}")
    return float(match.group(0))


def _parse_int(value: Any) -> int:
    if _is_number(value):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        raise ExpressionError(f"parseInt cannot convert {value!r}")
    return int(match.group(0))


def _to_number(value: Any) -> float:
    if _is_number(value):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        raise ExpressionError(f"Number cannot convert {value!r}")


def _round_half_up(value: Any) -> int:
    return math.floor(_to_number(value) + 0.5)


DEFAULT_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "parseFloat": _parse_float,
    "parseInt": _parse_int,
    "Number": _to_number,
    "abs": lambda value: abs(_to_number(value)),
    "round": _round_half_up,
    "min": lambda *values: min(_to_number(v) for v in values),
    "max": lambda *values: max(_to_number(v) for v in values),
}


def resolve_path(source: Any, path: str, default: Any = None) -> Any:
    """Walk a dotted path through mappings, sequences and models.

    Returns ``default`` as soon as a segment cannot be followed.
    """
    current = source
    for part in path.split("."):
        if isinstance(current, WorkflowContext):
            current = current.to_lookup()
        if isinstance(current, Mapping):
            if part not in current:
                return default
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return default
            current = current[index]
        elif isinstance(current, BaseModel):
            if part in type(current).model_fields:
                current = getattr(current, part)
            elif current.model_extra and part in current.model_extra:
                current = current.model_extra[part]
            else:
                return default
        else:
            return default
    return current


def stringify(value: Any) -> str:
    """Render a value the way it appears inside resolved templates and comparisons."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True)
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


class _Parser:
    """Recursive-descent evaluator over a token list."""

    def __init__(self, tokens: List[Tuple[str, str]], context: Any, functions: Dict[str, Callable[..., Any]]):
        self.tokens = tokens
        self.position = 0
        self.context = context
        self.functions = functions

    def _peek(self) -> Optional[Tuple[str, str]]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _advance(self) -> Tuple[str, str]:
        token = self._peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        self.position += 1
        return token

    def _expect(self, op: str) -> None:
        kind, text = self._advance()
        if kind != "op" or text != op:
            raise ExpressionError(f"Expected '{op}' but found '{text}'")

    def _accept(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token and token[0] == "op" and token[1] in ops:
            self.position += 1
            return token[1]
        return None

    def parse(self) -> Any:
        value = self._expression()
        if self._peek() is not None:
            raise ExpressionError(f"Unexpected token '{self._peek()[1]}'")
        return value

    def _expression(self) -> Any:
        value = self._term()
        while True:
            op = self._accept("+", "-")
            if op is None:
                return value
            right = self._term()
            value = self._arithmetic(op, value, right)

    def _term(self) -> Any:
        value = self._unary()
        while True:
            op = self._accept("*", "/")
            if op is None:
                return value
            right = self._unary()
            value = self._arithmetic(op, value, right)

    def _unary(self) -> Any:
        op = self._accept("-", "+")
        if op is None:
            return self._primary()
        operand = self._unary()
        if not _is_number(operand):
            raise ExpressionError(f"Unary '{op}' requires a number")
        return -operand if op == "-" else operand

    def _primary(self) -> Any:
        kind, text = self._advance()
        if kind == "number":
            return float(text) if "." in text else int(text)
        if kind == "op" and text == "(":
            value = self._expression()
            self._expect(")")
            return value
        if kind == "name":
            if self._accept("("):
                return self._call(text)
            return self._path(text)
        raise ExpressionError(f"Unexpected token '{text}'")

    def _call(self, name: str) -> Any:
        function = self.functions.get(name)
        if function is None:
            raise ExpressionError(f"Function '{name}' is not allowed")
        args = []
        if not self._accept(")"):
            args.append(self._expression())
            while self._accept(","):
                args.append(self._expression())
            self._expect(")")
        return function(*args)

    def _path(self, head: str) -> Any:
        parts = [head]
        while self._accept("."):
            kind, text = self._advance()
            if kind == "number" and all(segment.isdigit() for segment in text.split(".")):
                parts.extend(text.split("."))
            elif kind == "name":
                parts.append(text)
            else:
                raise ExpressionError(f"Invalid path segment '{text}'")
        path = ".".join(parts)
        value = resolve_path(self.context, path, _MISSING)
        if value is _MISSING or value is None:
            raise ExpressionError(f"'{path}' is not defined", expression=path)
        return value

    @staticmethod
    def _arithmetic(op: str, left: Any, right: Any) -> Any:
        if not (_is_number(left) and _is_number(right)):
            raise ExpressionError(f"Operator '{op}' requires numbers")
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise ExpressionError("Division by zero")
        return left / right


class ExpressionEvaluator:
    """Resolves ``${...}`` placeholders in strings and nested structures."""

    def __init__(self, functions: Optional[Dict[str, Callable[..., Any]]] = None):
        self.functions = dict(DEFAULT_FUNCTIONS)
        if functions:
            self.functions.update(functions)

    def evaluate(self, expression: str, context: Any) -> Any:
        """Evaluate a bare expression (no ``${}``) against the context.

        Raises:
            ExpressionError: If the expression is malformed or references
                something undefined.
        """
        tokens = self._tokenize(expression)
        if not tokens:
            raise ExpressionError("Empty expression", expression=expression)
        return _Parser(tokens, context, self.functions).parse()

    def resolve_template(self, template: str, context: Any) -> str:
        """Replace every ``${...}`` in the template; unresolved ones stay literal."""

        def replace(match: re.Match) -> str:
            expression = match.group(1).strip()
            if expression.startswith("ENV:"):
                env_value = os.getenv(expression[4:].strip())
                return match.group(0) if env_value is None else env_value

            value = resolve_path(context, expression)
            if value is not None:
                return stringify(value)

            try:
                result = self.evaluate(expression, context)
            except (ExpressionError, TypeError, ValueError, OverflowError) as e:
                logger.debug(f"Failed to evaluate expression '{expression}': {e}")
                return match.group(0)
            return match.group(0) if result is None else stringify(result)

        return PLACEHOLDER_PATTERN.sub(replace, template)

    def resolve_object(self, value: Any, context: Any) -> Any:
        """Recursively resolve placeholders inside mappings and sequences.

        String leaves that resolve to a plain number come back as int/float.
        """
        if isinstance(value, str):
            if "${" not in value:
                return value
            resolved = self.resolve_template(value, context)
            if NUMERIC_PATTERN.fullmatch(resolved):
                return float(resolved) if "." in resolved else int(resolved)
            return resolved
        if isinstance(value, Mapping):
            return {key: self.resolve_object(item, context) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve_object(item, context) for item in value]
        return value

    @staticmethod
    def _tokenize(expression: str) -> List[Tuple[str, str]]:
        tokens: List[Tuple[str, str]] = []
        position = 0
        text = expression.rstrip()
        while position < len(text):
            match = _TOKEN_PATTERN.match(text, position)
            if not match or match.end() == position:
                raise ExpressionError(f"Unexpected character at position {position}", expression=expression)
            kind = match.lastgroup
            value = match.group(kind)
            if kind == "number" and value.startswith(".") and tokens and tokens[-1][0] in ("name", "number"):
                # path index such as items.0
                tokens.append(("op", "."))
                value = value[1:]
            tokens.append((kind, value))
            position = match.end()
        return tokens


_default_evaluator = ExpressionEvaluator()


def resolve_template(template: str, context: Any) -> str:
    """Resolve a template with the default evaluator."""
    return _default_evaluator.resolve_template(template, context)


def resolve_object(value: Any, context: Any) -> Any:
    """Resolve a nested structure with the default evaluator."""
    return _default_evaluator.resolve_object(value, context)
