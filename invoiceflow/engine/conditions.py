"""Condition Evaluator for Rule and Approval Nodes

Evaluates a single `{field, operator, value}` condition against a data row.
Field paths are dotted and matched against row keys ignoring whitespace and
case, so "Customer.Address City" finds a key named "customerAddressCity"
nested under "customer".

Supported operators:
- Presence: exists
- Equality: ==, != (loose), ===, !== (strict)
- Ordering: >, >=, <, <= (numeric when both sides are numeric, else text)
- Membership: in, not in, contains
- Text: startsWith, endsWith

Evaluation is total: unknown operators, missing fields, and malformed
conditions all evaluate to False instead of raising.
"""

from __future__ import annotations

import logging
import math
import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Union

logger = logging.getLogger(__name__)

# Sentinel for a field path that does not resolve
MISSING = object()

_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


@dataclass(frozen=True)
class Condition:
    """A single field comparison.

    Attributes:
        field: Dotted field path (e.g. "vendor.country")
        operator: Operator name (see module docstring)
        value: Comparison operand, unused by `exists`
    """

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        return cls(
            field=str(data.get("field") or ""),
            operator=str(data.get("operator") or ""),
            value=data.get("value"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


ConditionLike = Union[Condition, Mapping[str, Any]]


def normalize_field_name(name: str) -> str:
    """Strip all whitespace and lowercase a key or path segment."""
    return _WHITESPACE.sub("", name).lower()


def resolve_path(row: Any, path: str) -> Any:
    """Resolve a dotted path through nested mappings.

    Returns MISSING when any segment cannot be found.
    """
    if not isinstance(row, Mapping):
        return MISSING

    current: Any = row
    for part in (normalize_field_name(p) for p in path.split(".")):
        if not isinstance(current, Mapping):
            return MISSING
        for key in current:
            if normalize_field_name(str(key)) == part:
                current = current[key]
                break
        else:
            return MISSING
    return current


# ─── Coercion helpers ───────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_numeric(value: Any) -> bool:
    """True for finite numbers and strings that parse as finite numbers."""
    if _is_number(value):
        return math.isfinite(value)
    if isinstance(value, str):
        return bool(_NUMBER.match(value.strip()))
    return False


def _to_number(value: Any) -> float:
    return float(value.strip()) if isinstance(value, str) else float(value)


def as_text(value: Any) -> str:
    """Text form of a row value, as used by text comparisons and CSV cells."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(as_text(item) for item in value)
    return str(value)


def operand_text(value: Any) -> str:
    """Text form of a comparison operand; an absent operand reads as "undefined"."""
    if value is None:
        return "undefined"
    return as_text(value)


def _string_as_number(text: str) -> float:
    stripped = text.strip()
    if not stripped:
        return 0.0
    if _NUMBER.match(stripped):
        return float(stripped)
    return math.nan


def loose_equals(left: Any, right: Any) -> bool:
    """Coercive equality: numbers and numeric strings compare by value."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool):
        left = int(left)
    if isinstance(right, bool):
        right = int(right)
    if _is_number(left) and isinstance(right, str):
        return left == _string_as_number(right)
    if isinstance(left, str) and _is_number(right):
        return _string_as_number(left) == right
    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    """Type-and-value equality. Ints and floats count as one kind."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


# ─── Operators ──────────────────────────────────────────────────────


def _ordering(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def evaluate(actual: Any, expected: Any) -> bool:
        if is_numeric(actual) and is_numeric(expected):
            return compare(_to_number(actual), _to_number(expected))
        return compare(as_text(actual), operand_text(expected))

    return evaluate


def _is_in(actual: Any, expected: Any) -> bool:
    if isinstance(expected, (list, tuple)):
        return any(strict_equals(actual, item) for item in expected)
    if isinstance(expected, str):
        return as_text(actual) in expected
    return False


def _is_not_in(actual: Any, expected: Any) -> bool:
    if isinstance(expected, (list, tuple)):
        return not any(strict_equals(actual, item) for item in expected)
    if isinstance(expected, str):
        return as_text(actual) not in expected
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return operand_text(expected) in actual
    if isinstance(actual, (list, tuple)):
        return any(strict_equals(item, expected) for item in actual)
    return False


def _starts_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and actual.startswith(operand_text(expected))


def _ends_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and actual.endswith(operand_text(expected))


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    ">": _ordering(operator.gt),
    ">=": _ordering(operator.ge),
    "<": _ordering(operator.lt),
    "<=": _ordering(operator.le),
    "in": _is_in,
    "not in": _is_not_in,
    "contains": _contains,
    "startsWith": _starts_with,
    "endsWith": _ends_with,
}


def evaluate_condition(condition: ConditionLike, row: Any) -> bool:
    """Evaluate a condition against a row.

    Args:
        condition: Condition instance or a `{field, operator, value}` mapping
        row: The data row to inspect (never modified)

    Returns:
        True if the condition holds, False otherwise (including on any error)
    """
    try:
        if not isinstance(condition, Condition):
            condition = Condition.from_dict(condition)

        actual = resolve_path(row, condition.field)

        if condition.operator == "exists":
            return actual is not MISSING and actual is not None

        if actual is MISSING or actual is None:
            return False

        op_func = OPERATORS.get(condition.operator)
        if op_func is None:
            logger.debug(f"Unknown condition operator: {condition.operator!r}")
            return False
        return bool(op_func(actual, condition.value))
    except Exception as e:
        logger.error(f"Error evaluating condition {condition!r}: {e}")
        return False
