"""Expression resolution for templates and `$.path` references."""

from flowchord.expression.resolver import (
    CompiledExpression,
    compile_expression,
    deep_evaluate,
    evaluate_expression,
    get_at_path,
    normalize_path,
    resolve_path,
    resolve_template,
    resolve_value,
    stringify_value,
)

__all__ = [
    "CompiledExpression",
    "compile_expression",
    "deep_evaluate",
    "evaluate_expression",
    "get_at_path",
    "normalize_path",
    "resolve_path",
    "resolve_template",
    "resolve_value",
    "stringify_value",
]
