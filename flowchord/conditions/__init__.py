"""Condition evaluation shared by branching nodes."""

from flowchord.conditions.evaluator import (
    KEY_PROP_COMPARATORS,
    NUMERIC_RIGHT_COMPARATORS,
    PAIR_COMPARATORS,
    REGEX_COMPARATORS,
    UNARY_COMPARATORS,
    coerce_to_kind,
    compare_values,
    deep_equal,
    infer_value_kind,
    is_value_empty,
    parse_pair_values,
)

__all__ = [
    "KEY_PROP_COMPARATORS",
    "NUMERIC_RIGHT_COMPARATORS",
    "PAIR_COMPARATORS",
    "REGEX_COMPARATORS",
    "UNARY_COMPARATORS",
    "coerce_to_kind",
    "compare_values",
    "deep_equal",
    "infer_value_kind",
    "is_value_empty",
    "parse_pair_values",
]
