"""Typed comparator library shared by If Condition, Switch Case and Loop guards.

The left operand's resolved value decides the comparison kind; the right
operand is coerced to that kind before comparing.
"""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, time, timezone
from typing import Any, Literal

from flowchord.expression.resolver import stringify_value

ValueKind = Literal["string", "number", "boolean", "date", "time", "array", "object"]

UNARY_COMPARATORS = frozenset({
    "exists", "does not exist", "is empty", "is not empty", "is true", "is false",
})
NUMERIC_RIGHT_COMPARATORS = frozenset({
    "greater than", "greater than or equal to", "less than", "less than or equal to",
    "length greater than", "length less than",
})
PAIR_COMPARATORS = frozenset({"is between", "is not between"})
REGEX_COMPARATORS = frozenset({"matches regex"})
KEY_PROP_COMPARATORS = frozenset({"has key", "has property"})
DATE_COMPARATORS = frozenset({"before", "after", "on or before", "on or after"})

ISO_DATE_REGEX = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:[T ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
TIME_OF_DAY_REGEX = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def parse_datetime(value: Any) -> datetime | None:
    """Parse a datetime, date or ISO-like string. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_time_of_day(value: Any) -> int | None:
    """Seconds since midnight for a bare `HH:mm[:ss]` value or a datetime."""
    if isinstance(value, time):
        return value.hour * 3600 + value.minute * 60 + value.second
    if isinstance(value, str):
        match = TIME_OF_DAY_REGEX.match(value.strip())
        if match:
            hours, minutes, seconds = match.groups()
            return int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return parsed.hour * 3600 + parsed.minute * 60 + parsed.second


def to_number(value: Any) -> float:
    """Numeric view of a value; NaN when it has none."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def infer_value_kind(value: Any) -> ValueKind:
    """Detect the comparison kind of a resolved left operand.

    Example:
        >>> infer_value_kind("2024-01-05")
        'date'
        >>> infer_value_kind("09:15")
        'time'
    """
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, (datetime, date)):
        return "date"
    if isinstance(value, time):
        return "time"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)) and not (isinstance(value, float) and math.isnan(value)):
        return "number"
    if isinstance(value, str):
        text = value.strip()
        if ISO_DATE_REGEX.match(text) and parse_datetime(text) is not None:
            return "date"
        if TIME_OF_DAY_REGEX.match(text):
            return "time"
    return "string"


def coerce_to_kind(value: Any, kind: ValueKind) -> Any:
    """Coerce a value to a comparison kind; unparseable input is returned as is."""
    if kind == "number":
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else to_number(value)
    if kind == "boolean":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "false"):
            return text == "true"
        return bool(value)
    if kind == "date":
        parsed = parse_datetime(value)
        return parsed if parsed is not None else value
    if kind == "time":
        seconds = parse_time_of_day(value)
        return seconds if seconds is not None else value
    if kind == "array":
        if isinstance(value, (list, tuple)):
            return list(value)
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return [value]
    if kind == "object":
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return {"value": value}
    if isinstance(value, str):
        return value
    return "null" if value is None else stringify_value(value)


def deep_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def is_value_empty(value: Any) -> bool:
    """None, an empty string, list or dict."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def parse_pair_values(value: Any) -> tuple[Any, Any]:
    """Split a between operand into two values.

    Accepts a 2+ element list or a comma-separated string; anything else
    pairs with itself.
    """
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        return value[0], value[1]
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
        if len(parts) >= 2:
            return parts[0], parts[1]
    return value, value


def _ordinal(value: Any, kind: ValueKind) -> float | None:
    """Comparable number for ordered comparisons of the given kind."""
    if kind == "time":
        return parse_time_of_day(value)
    if kind == "date":
        parsed = parse_datetime(value)
        return parsed.timestamp() if parsed is not None else None
    number = to_number(value)
    return None if math.isnan(number) else number


def _temporal_kind(kind: ValueKind) -> ValueKind:
    return "time" if kind == "time" else "date"


def _in_range(left: Any, right: Any, kind: ValueKind) -> bool:
    ordered_kind = kind if kind in ("date", "time") else "number"
    low, high = parse_pair_values(right)
    values = [_ordinal(v, ordered_kind) for v in (left, low, high)]
    if any(v is None for v in values):
        return False
    subject, a, b = values
    return min(a, b) <= subject <= max(a, b)


def _matches_regex(left: Any, pattern: Any) -> bool:
    try:
        return re.search(str(pattern), stringify_value(left)) is not None
    except re.error:
        return False


def is_truthy(value: Any) -> bool:
    """Truthiness as the editor evaluates it: empty containers and "false" are truthy."""
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not math.isnan(value)
    return True


def compare_values(left: Any, comparator: str, right: Any) -> bool:
    """Compare two resolved operands.

    Args:
        left: Resolved left operand; its kind drives coercion.
        comparator: Comparator name, e.g. "is equal to" or "is between".
        right: Resolved right operand (ignored for unary comparators).

    Returns:
        The comparison outcome. Unknown comparators and unparseable
        operands compare False.

    Example:
        >>> compare_values("09:15", "is between", "09:00,10:00")
        True
    """
    if comparator == "exists":
        return left is not None
    if comparator == "does not exist":
        return left is None
    if comparator == "is empty":
        return is_value_empty(left)
    if comparator == "is not empty":
        return not is_value_empty(left)
    if comparator == "is true":
        return is_truthy(left)
    if comparator == "is false":
        return not is_truthy(left)

    kind = infer_value_kind(left)

    if comparator in PAIR_COMPARATORS:
        inside = _in_range(left, right, kind)
        return inside if comparator == "is between" else not inside

    if comparator in DATE_COMPARATORS:
        temporal = _temporal_kind(kind)
        lhs, rhs = _ordinal(left, temporal), _ordinal(right, temporal)
        if lhs is None or rhs is None:
            return False
        if comparator == "before":
            return lhs < rhs
        if comparator == "after":
            return lhs > rhs
        if comparator == "on or before":
            return lhs <= rhs
        return lhs >= rhs

    if comparator in ("greater than", "greater than or equal to", "less than", "less than or equal to"):
        ordered_kind = kind if kind in ("date", "time") else "number"
        lhs, rhs = _ordinal(left, ordered_kind), _ordinal(right, ordered_kind)
        if lhs is None or rhs is None:
            return False
        if comparator == "greater than":
            return lhs > rhs
        if comparator == "greater than or equal to":
            return lhs >= rhs
        if comparator == "less than":
            return lhs < rhs
        return lhs <= rhs

    if comparator in ("length greater than", "length less than"):
        if not isinstance(left, (list, tuple, str)):
            return False
        limit = to_number(right)
        if math.isnan(limit):
            return False
        return len(left) > limit if comparator == "length greater than" else len(left) < limit

    if comparator in REGEX_COMPARATORS:
        return _matches_regex(left, right)

    if comparator in KEY_PROP_COMPARATORS:
        return isinstance(left, dict) and str(right) in left

    lhs = coerce_to_kind(left, kind)
    rhs = coerce_to_kind(right, kind)

    if comparator == "is equal to":
        return deep_equal(lhs, rhs)
    if comparator == "is not equal to":
        return not deep_equal(lhs, rhs)

    if comparator in ("contains", "does not contain", "contains value"):
        if isinstance(left, (list, tuple)):
            candidates = {json.dumps(rhs, default=str, sort_keys=True)}
            if isinstance(right, str):
                candidates.add(json.dumps(right, sort_keys=True))
            found = any(
                json.dumps(item, default=str, sort_keys=True) in candidates for item in left
            )
        else:
            found = stringify_value(right) in stringify_value(left)
        return not found if comparator == "does not contain" else found

    if comparator == "starts with":
        return stringify_value(left).startswith(stringify_value(right))
    if comparator == "ends with":
        return stringify_value(left).endswith(stringify_value(right))

    return False
