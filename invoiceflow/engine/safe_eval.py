"""Restricted Expression Evaluator for Rule Nodes

A rule node may carry a free-form boolean `expression` evaluated once per
row, with the row's top-level fields bound as variables:

    amount > 1000 and vendor == "ACME"
    currency in ["EUR", "GBP"] || total >= 5000

Expressions are parsed with the ast module and walked by `RowExpression`,
which only knows comparisons, boolean logic, arithmetic, literals, and
subscript or dotted access into nested mappings. Anything else (calls,
lambdas, comprehensions, attribute access on non-mappings) is rejected.

The builder's C-style spellings are accepted and rewritten before parsing:
`&&` -> and, `||` -> or, `!` -> not, `===` -> ==, `!==` -> !=,
`true`/`false`/`null` -> True/False/None.
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from typing import Any, Callable, Dict, List, Mapping, Type

from ..settings import MAX_EXPRESSION_LENGTH

logger = logging.getLogger(__name__)

_COMPARISONS: Dict[Type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}

_ARITHMETIC: Dict[Type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

_UNARY: Dict[Type[ast.unaryop], Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_LITERAL_NAMES = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "none": None,
    "None": None,
}

_FORBIDDEN = (
    (ast.Call, "Function calls are not allowed in expressions"),
    (ast.Lambda, "Lambda expressions are not allowed"),
    ((ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp), "Comprehensions are not allowed"),
)

# String literals are matched first so operators inside quotes survive
_TOKEN = re.compile(
    r"""(?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')"""
    r"""|(?P<op>&&|\|\||===|!==|!(?!=))"""
)
_OP_REWRITES = {"&&": " and ", "||": " or ", "===": "==", "!==": "!=", "!": " not "}


class SafeEvalError(Exception):
    """The expression is malformed, forbidden, or failed on this row."""


def normalize_expression(expression: str) -> str:
    """Rewrite C-style operators to their Python spelling."""

    def replace(match: re.Match) -> str:
        if match.group("string") is not None:
            return match.group("string")
        return _OP_REWRITES[match.group("op")]

    return _TOKEN.sub(replace, expression).strip()


def _parse(expression: Any) -> ast.Expression:
    if not isinstance(expression, str) or not expression.strip():
        raise SafeEvalError("Expression cannot be empty")
    expression = expression.strip()
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise SafeEvalError(
            f"Expression too long ({len(expression)} chars, max {MAX_EXPRESSION_LENGTH})"
        )
    try:
        return ast.parse(normalize_expression(expression), mode="eval")
    except SyntaxError as e:
        raise SafeEvalError(f"Invalid syntax: {e}") from e


class RowExpression:
    """Evaluates a parsed expression against one row."""

    def __init__(self, row: Mapping[str, Any]):
        self.row = row

    def evaluate(self, node: ast.AST) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise SafeEvalError(f"Unsupported expression type: {type(node).__name__}")
        return handler(node)

    def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        # Row fields win over literal names
        if node.id in self.row:
            return self.row[node.id]
        if node.id in _LITERAL_NAMES:
            return _LITERAL_NAMES[node.id]
        raise SafeEvalError(f"Unknown variable: '{node.id}'")

    def _eval_Compare(self, node: ast.Compare) -> bool:
        # 0 < amount <= 1000
        left = self.evaluate(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            compare = _COMPARISONS.get(type(op))
            if compare is None:
                raise SafeEvalError(f"Unsupported comparison: {type(op).__name__}")
            right = self.evaluate(comparator)
            if not compare(left, right):
                return False
            left = right
        return True

    def _eval_BoolOp(self, node: ast.BoolOp) -> bool:
        if isinstance(node.op, ast.And):
            return all(self.evaluate(value) for value in node.values)
        return any(self.evaluate(value) for value in node.values)

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        apply = _UNARY.get(type(node.op))
        if apply is None:
            raise SafeEvalError(f"Unsupported unary op: {type(node.op).__name__}")
        return apply(self.evaluate(node.operand))

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        apply = _ARITHMETIC.get(type(node.op))
        if apply is None:
            raise SafeEvalError(f"Unsupported binary op: {type(node.op).__name__}")
        return apply(self.evaluate(node.left), self.evaluate(node.right))

    def _eval_Subscript(self, node: ast.Subscript) -> Any:
        container = self.evaluate(node.value)
        key = self.evaluate(node.slice)
        try:
            return container[key]
        except (KeyError, IndexError, TypeError) as e:
            raise SafeEvalError(f"No item {key!r}: {e}") from e

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        container = self.evaluate(node.value)
        if isinstance(container, Mapping) and node.attr in container:
            return container[node.attr]
        raise SafeEvalError(f"Field '{node.attr}' not found")

    def _eval_List(self, node: ast.List) -> List[Any]:
        return [self.evaluate(item) for item in node.elts]

    _eval_Tuple = _eval_List


def safe_eval(expression: str, row: Mapping[str, Any]) -> Any:
    """Evaluate an expression with the row's fields as variables.

    Raises:
        SafeEvalError: Empty, too long, unparsable, or unsupported
            expression, or a runtime failure such as comparing text to
            a number
    """
    tree = _parse(expression)
    try:
        return RowExpression(row).evaluate(tree.body)
    except SafeEvalError:
        raise
    except Exception as e:
        raise SafeEvalError(f"Evaluation error: {e}") from e


def evaluate_expression(expression: str, row: Mapping[str, Any]) -> bool:
    """Evaluate a rule expression against a row; any failure is False."""
    try:
        return bool(safe_eval(expression, row))
    except SafeEvalError as e:
        logger.debug(f"Expression {expression!r} treated as false: {e}")
        return False


def validate_expression(expression: str) -> List[str]:
    """Problems that would make the expression fail on every row."""
    try:
        tree = _parse(expression)
    except SafeEvalError as e:
        return [str(e)]

    errors = []
    for node in ast.walk(tree):
        for node_types, message in _FORBIDDEN:
            if isinstance(node, node_types):
                errors.append(message)
    return errors
