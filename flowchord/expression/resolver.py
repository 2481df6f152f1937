"""Template and expression resolution against accumulated node outputs.

Two syntaxes are supported:

- `$.path` references, resolved by scanning `context.results` in execution
  order and falling back to `context.variables`.
- `{{ expr }}` template tokens, where `expr` is either a `$.path` reference or
  a small sandboxed expression evaluated with simpleeval.

Evaluation never raises from the public helpers; failures resolve to None.
"""

from __future__ import annotations

import ast
import copy
import json
import logging
import re
from datetime import date, datetime, time
from typing import Any

from simpleeval import EvalWithCompoundTypes

from flowchord.core.types import ExecutionContext
from flowchord.errors.exceptions import ExpressionError

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a path that does not exist."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_SINGLE_TEMPLATE = re.compile(r"^\s*\{\{\s*([^}]+?)\s*\}\}\s*$")
_BRACKET = re.compile(r"\[\s*['\"]?([^\]'\"]*)['\"]?\s*\]")
_STRING_LITERAL = re.compile(r"""("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')""")
_DOLLAR_PATH = re.compile(r"\$\.([A-Za-z_][\w.#]*(?:\[[^\]]*\][\w.#]*)*)")

SAFE_FUNCTIONS: dict[str, Any] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "any": any,
    "all": all,
    "round": round,
}

_LITERAL_NAMES: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "True": True,
    "False": False,
    "None": None,
}


def normalize_path(path: str) -> list[str]:
    """Split a dotted/bracketed path into segments.

    Example:
        >>> normalize_path("a.b[0].c")
        ['a', 'b', '0', 'c']
    """
    flat = _BRACKET.sub(r".\1", path.strip())
    return [segment for segment in flat.split(".") if segment]


def get_at_path(value: Any, segments: list[str]) -> Any:
    """Walk `segments` into nested dicts/lists. Returns MISSING when absent."""
    current = value
    for segment in segments:
        if isinstance(current, dict):
            if segment in current:
                current = current[segment]
            elif segment.lstrip("-").isdigit() and int(segment) in current:
                current = current[int(segment)]
            else:
                return MISSING
        elif isinstance(current, (list, tuple)):
            if segment == "length":
                current = len(current)
            elif segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                return MISSING
        elif isinstance(current, str) and segment == "length":
            current = len(current)
        else:
            return MISSING
    return current


def _is_defined(value: Any) -> bool:
    return value is not MISSING and value is not None


def _node_id_for(name: str, context: ExecutionContext) -> str | None:
    """Map a node id or display label to a node id via the graph handle."""
    if name in context.results:
        return name
    if context.diagram is None:
        return None
    node = context.diagram.find_node(name)
    return node.id if node is not None else None


def _resolve_across_results(path: str, context: ExecutionContext) -> Any:
    segments = normalize_path(path)
    if not segments:
        return MISSING
    head, rest = segments[0], segments[1:]

    # Label#nodeId addressing pins the lookup to one node
    if "#" in head:
        node_id = head.split("#", 1)[1]
        if node_id not in context.results:
            return MISSING
        return get_at_path(context.results[node_id], rest)

    for output in context.results.values():
        found = get_at_path(output, segments)
        if _is_defined(found):
            return found

    if rest:
        node_id = _node_id_for(head, context)
        if node_id is not None and node_id in context.results:
            found = get_at_path(context.results[node_id], rest)
            if _is_defined(found):
                return found
        # The head may be a label that names no known node
        for output in context.results.values():
            found = get_at_path(output, rest)
            if _is_defined(found):
                return found

    found = get_at_path(context.variables, segments)
    if _is_defined(found):
        return found
    if rest:
        found = get_at_path(context.variables, rest)
        if _is_defined(found):
            return found
    return MISSING


def resolve_path(path: str, context: ExecutionContext) -> Any:
    """Resolve a `$.`-less path across results then variables.

    Returns:
        The first defined value, or None.
    """
    found = _resolve_across_results(path, context)
    return None if found is MISSING else found


def _translate_operators(code: str) -> str:
    code = code.replace("$get(", "get(")
    code = _DOLLAR_PATH.sub(lambda m: f'get("{m.group(1)}")', code)
    code = code.replace("!==", "!=").replace("===", "==")
    code = code.replace("&&", " and ").replace("||", " or ")
    return re.sub(r"!(?!=)", " not ", code)


def translate_expression(expr: str) -> str:
    """Rewrite JavaScript-style operators into Python outside string literals."""
    parts = _STRING_LITERAL.split(expr)
    return "".join(
        part if index % 2 else _translate_operators(part)
        for index, part in enumerate(parts)
    ).strip()


class CompiledExpression:
    """A syntax-checked sandboxed expression.

    Example:
        >>> predicate = compile_expression("item.age > 30 && item.active")
        >>> predicate.evaluate(ExecutionContext(), item={"age": 40, "active": True})
        True
    """

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.source = translate_expression(expression)
        try:
            ast.parse(self.source, mode="eval")
        except SyntaxError as e:
            raise ExpressionError(expression, e.msg or "syntax error") from e

    def snapshot(self, context: ExecutionContext) -> dict[str, Any]:
        """Copy the context into an evaluation scope.

        Take one snapshot to evaluate the expression many times against the
        same context.

        Raises:
            ExpressionError: If the context cannot be copied.
        """
        try:
            results = copy.deepcopy(context.results)
            variables = copy.deepcopy(context.variables)
        except Exception as e:
            raise ExpressionError(self.expression, f"context not copyable: {e}") from e
        return {
            **_LITERAL_NAMES,
            "context": {"results": results, "variables": variables},
            "results": results,
            "variables": variables,
        }

    def evaluate(
        self,
        context: ExecutionContext,
        scope: dict[str, Any] | None = None,
        **names: Any,
    ) -> Any:
        """Evaluate against a copy of the context.

        Args:
            context: Context used by the `get()` helper.
            scope: Snapshot from `snapshot()`; taken fresh when omitted.
            **names: Extra names such as `item`.

        Raises:
            ExpressionError: If evaluation fails.
        """
        if scope is None:
            scope = self.snapshot(context)
        functions = {**SAFE_FUNCTIONS, "get": lambda path: resolve_path(str(path), context)}
        try:
            evaluator = EvalWithCompoundTypes(names={**scope, **names}, functions=functions)
            return evaluator.eval(self.source)
        except Exception as e:
            raise ExpressionError(self.expression, str(e)) from e


def compile_expression(expression: str) -> CompiledExpression:
    """Compile an expression once for repeated evaluation.

    Raises:
        ExpressionError: If the expression is not valid syntax.
    """
    return CompiledExpression(expression)


def evaluate_expression(expr: str, context: ExecutionContext) -> Any:
    """Evaluate a `$.path` reference or a sandboxed expression.

    Args:
        expr: Expression text without the surrounding braces.
        context: Execution context to resolve against.

    Returns:
        The resolved value, or None if it is undefined or evaluation fails.
    """
    text = expr.strip()
    if not text:
        return None
    if text.startswith("$."):
        return resolve_path(text[2:], context)
    try:
        return compile_expression(text).evaluate(context)
    except ExpressionError as e:
        logger.debug(f"Expression evaluated to undefined: {e}")
        return None


def stringify_value(value: Any) -> str:
    """Render a value the way templates display it."""
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def resolve_template(text: str, context: ExecutionContext) -> str:
    """Replace every `{{ expr }}` token with its rendered value.

    Example:
        >>> ctx = ExecutionContext(results={"node1": {"user": {"name": "Ana"}}})
        >>> resolve_template("Hello {{ $.user.name }}", ctx)
        'Hello Ana'
    """
    if not isinstance(text, str) or "{{" not in text:
        return text

    def replacer(match: re.Match) -> str:
        return stringify_value(evaluate_expression(match.group(1), context))

    return TEMPLATE_PATTERN.sub(replacer, text)


def resolve_value(raw: Any, context: ExecutionContext) -> Any:
    """Resolve an operand, keeping its native type where possible.

    A bare `$.path` or a string that is exactly one `{{ token }}` resolves to
    the raw value; mixed text resolves to a string; anything else is returned
    unchanged.
    """
    if not isinstance(raw, str):
        return raw
    stripped = raw.strip()
    if stripped.startswith("$."):
        return evaluate_expression(stripped, context)
    single = _SINGLE_TEMPLATE.match(raw)
    if single:
        return evaluate_expression(single.group(1), context)
    if "{{" in raw:
        return resolve_template(raw, context)
    return raw


def deep_evaluate(value: Any, context: ExecutionContext) -> Any:
    """Apply resolve_template to every string leaf of a nested structure."""
    if isinstance(value, str):
        return resolve_template(value, context)
    if isinstance(value, dict):
        return {key: deep_evaluate(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [deep_evaluate(item, context) for item in value]
    if isinstance(value, tuple):
        return tuple(deep_evaluate(item, context) for item in value)
    return value
