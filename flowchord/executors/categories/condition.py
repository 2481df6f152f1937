"""Condition node execution: If Condition, Switch Case, Filter and Loop.

Routing on the results (which port to follow) is the engine's job; these
executors only compute `conditionResult`, `matchedPortId` and friends.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from flowchord.conditions.evaluator import (
    KEY_PROP_COMPARATORS,
    NUMERIC_RIGHT_COMPARATORS,
    PAIR_COMPARATORS,
    REGEX_COMPARATORS,
    UNARY_COMPARATORS,
    compare_values,
    infer_value_kind,
    parse_pair_values,
    to_number,
)
from flowchord.core.types import (
    SWITCH_DEFAULT_PORT,
    ExecutionContext,
    NodeExecutionResult,
    NodeType,
    WorkflowNode,
    switch_case_port,
)
from flowchord.errors.exceptions import (
    ExpressionError,
    NodeConfigurationError,
    UnsupportedNodeTypeError,
)
from flowchord.executors.base import CategoryExecutor, now_iso
from flowchord.expression.resolver import compile_expression, resolve_template, resolve_value

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _has_two_values(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return len(value) >= 2
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
        return len(parts) >= 2 and all(parts[:2])
    return False


def _range_kind(value: Any) -> str:
    kind = infer_value_kind(value)
    if kind in ("date", "time"):
        return kind
    return "number" if not math.isnan(to_number(value)) and not _is_blank(value) else "invalid"


def validate_row(
    row: dict[str, Any],
    row_no: int,
    context: ExecutionContext,
    *,
    prefix: str,
    node_type: str,
) -> None:
    """Check one condition row before any row is evaluated.

    Raises:
        NodeConfigurationError: With a row-specific message.
    """

    def invalid(message: str, title: str) -> NodeConfigurationError:
        return NodeConfigurationError(node_type, f"{prefix}Row {row_no}: {message}", title=title)

    left, comparator, right = row.get("left"), str(row.get("comparator") or ""), row.get("right")

    if _is_blank(left):
        raise invalid('"Value 1" is required.', f"{node_type} Missing")
    if comparator in UNARY_COMPARATORS:
        return
    if _is_blank(right):
        raise invalid(f'"Value 2" is required for "{comparator}".', f"{node_type} Missing")

    resolved_right = resolve_value(right, context)

    if comparator in REGEX_COMPARATORS:
        try:
            re.compile(str(resolved_right))
        except re.error as e:
            raise invalid(
                f'Invalid regular expression in "Value 2": {e}.', f"{node_type}: Invalid Regex"
            ) from e

    if comparator in PAIR_COMPARATORS:
        if not _has_two_values(resolved_right):
            raise invalid(
                f'"{comparator}" expects two values (e.g., "min,max").',
                f"{node_type}: Invalid Range",
            )
        low, high = parse_pair_values(resolved_right)
        kinds = {_range_kind(v) for v in (resolve_value(left, context), low, high)}
        if len(kinds) != 1 or "invalid" in kinds:
            raise invalid(
                f'"{comparator}" requires numeric, date or time values '
                '(e.g., "10,20" or "2024-01-01,2024-12-31").',
                f"{node_type}: Invalid Range",
            )

    if comparator in NUMERIC_RIGHT_COMPARATORS and math.isnan(to_number(resolved_right)):
        raise invalid(
            f'"Value 2" must be a number for "{comparator}".', f"{node_type}: Invalid Number"
        )

    if comparator in KEY_PROP_COMPARATORS and not str(resolved_right).strip():
        raise invalid(
            '"Value 2" must be a non-empty key/property name.', f"{node_type}: Invalid Key"
        )


def evaluate_row(row: dict[str, Any], context: ExecutionContext) -> bool:
    comparator = str(row.get("comparator") or "")
    left = resolve_value(row.get("left", ""), context)
    right = None if comparator in UNARY_COMPARATORS else resolve_value(row.get("right", ""), context)
    return compare_values(left, comparator, right)


def fold_rows(outcomes: list[bool], joiners: list[str]) -> bool:
    """Fold row outcomes strictly left to right, with no precedence.

    The first outcome seeds the accumulator; each later row combines with it
    using its own joiner.

    Example:
        >>> fold_rows([True, False], ["AND", "OR"])
        True
        >>> fold_rows([False, True, False], ["AND", "OR", "AND"])
        False
    """
    cumulative = False
    for index, (ok, joiner) in enumerate(zip(outcomes, joiners)):
        if index == 0:
            cumulative = ok
        elif joiner == "OR":
            cumulative = cumulative or ok
        else:
            cumulative = cumulative and ok
    return cumulative


class ConditionNodeExecutor(CategoryExecutor):
    """Branching and collection nodes."""

    NODE_TYPES = (NodeType.IF_CONDITION, NodeType.SWITCH_CASE, NodeType.FILTER, NodeType.LOOP)

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        if node.node_type == NodeType.IF_CONDITION:
            return self._execute_if(node, context)
        if node.node_type == NodeType.SWITCH_CASE:
            return self._execute_switch(node, context)
        if node.node_type == NodeType.FILTER:
            return self._execute_filter(node, context)
        if node.node_type == NodeType.LOOP:
            return self._execute_loop(node, context)
        raise UnsupportedNodeTypeError(node.node_type, "condition")

    def _execute_if(self, node: WorkflowNode, context: ExecutionContext) -> NodeExecutionResult:
        rows = node.settings.general.get("conditions")
        if not isinstance(rows, list) or not rows:
            return self._execute_legacy_if(node, context)

        for row_no, row in enumerate(rows, start=1):
            validate_row(row, row_no, context, prefix="", node_type=NodeType.IF_CONDITION)

        outcomes = [evaluate_row(row, context) for row in rows]
        joiners = [str(row.get("joiner") or "AND").upper() for row in rows]
        return NodeExecutionResult.ok({
            "conditionResult": fold_rows(outcomes, joiners),
            "rowResults": outcomes,
            "evaluatedAt": now_iso(),
        })

    def _execute_legacy_if(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        """Single free-form expression, used by older saved workflows."""
        raw = node.settings.general.get("condition") or ""
        prepared = resolve_template(str(raw), context).strip()
        if not prepared:
            raise NodeConfigurationError(
                NodeType.IF_CONDITION,
                "If Condition: Please configure at least one condition row or a valid expression.",
                title="If Condition Missing",
            )
        try:
            result = bool(compile_expression(prepared).evaluate(context))
        except ExpressionError as e:
            raise NodeConfigurationError(
                NodeType.IF_CONDITION,
                f"If Condition: {e}",
                title="If Condition Failed",
            ) from e
        return NodeExecutionResult.ok({
            "conditionResult": result,
            "rowResults": [result],
            "evaluatedAt": now_iso(),
        })

    def _execute_switch(self, node: WorkflowNode, context: ExecutionContext) -> NodeExecutionResult:
        general = node.settings.general
        rules = general.get("rules")
        enable_default = bool(general.get("enableDefaultPort"))
        if not isinstance(rules, list) or not rules:
            raise NodeConfigurationError(
                NodeType.SWITCH_CASE,
                "Switch Case: Please add at least one case.",
                title="Switch Case Missing",
            )

        for row_no, rule in enumerate(rules, start=1):
            validate_row(
                rule, row_no, context, prefix="Switch Case: ", node_type=NodeType.SWITCH_CASE
            )

        row_results: list[bool] = []
        matched_index: int | None = None
        for index, rule in enumerate(rules):
            ok = evaluate_row(rule, context)
            row_results.append(ok)
            if ok and matched_index is None:
                matched_index = index

        if matched_index is not None:
            matched_port = switch_case_port(matched_index)
        else:
            matched_port = SWITCH_DEFAULT_PORT if enable_default else None

        return NodeExecutionResult.ok({
            "matchedCaseIndex": matched_index,
            "matchedPortId": matched_port,
            "defaultTaken": matched_index is None and enable_default,
            "rowResults": row_results,
        })

    def _execute_filter(self, node: WorkflowNode, context: ExecutionContext) -> NodeExecutionResult:
        general = node.settings.general
        raw_predicate = general.get("predicate") or general.get("filterCondition")
        if not raw_predicate:
            return NodeExecutionResult.fail("No filter predicate specified")

        try:
            predicate = compile_expression(resolve_template(str(raw_predicate), context).strip())
        except ExpressionError as e:
            raise NodeConfigurationError(
                NodeType.FILTER, f"Filter: {e}", title="Filter Invalid Predicate"
            ) from e

        items = _as_list(general.get("input", []), context)
        if items is None:
            raise NodeConfigurationError(
                NodeType.FILTER, 'Filter: "Input" must resolve to an array.', title="Filter Invalid Input"
            )

        try:
            scope = predicate.snapshot(context)
        except ExpressionError as e:
            logger.warning(f"Filter predicate cannot run: {e}")
            return NodeExecutionResult.ok({"filtered": []})

        filtered = []
        for item in items:
            try:
                keep = bool(predicate.evaluate(context, scope, item=item))
            except ExpressionError:
                keep = False
            if keep:
                filtered.append(item)
        return NodeExecutionResult.ok({"filtered": filtered})

    def _execute_loop(self, node: WorkflowNode, context: ExecutionContext) -> NodeExecutionResult:
        items = _as_list(node.settings.general.get("items", []), context)
        if items is None:
            raise NodeConfigurationError(
                NodeType.LOOP, 'Loop: "Items" must resolve to an array.', title="Loop Invalid Items"
            )
        return NodeExecutionResult.ok({"items": items, "count": len(items)})


def _as_list(raw: Any, context: ExecutionContext) -> list[Any] | None:
    """Resolve a list setting given inline, as JSON text or as an expression."""
    value = resolve_value(raw, context) if isinstance(raw, str) else raw
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except ValueError:
            return None
    if isinstance(value, tuple):
        value = list(value)
    return value if isinstance(value, list) else None
