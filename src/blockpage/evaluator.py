"""
Condition Evaluator (Expression AST + answers → bool).

Evaluates parsed condition trees against a visitor's answer map. This is
the ONLY place where values of mixed type meet, so all coercion rules
live here as a small explicit function set:

    is_numeric_text   - does a string read as a decimal number?
    coerce_operands   - one-sided numeric coercion for == / !=
    to_number         - numeric view for ordering comparisons
    to_text           - string view for substring membership

ARCHITECTURAL RULE:
    Evaluation is pure. No loops, no calls beyond includes, no state.
    Missing answers resolve to the empty string.
"""

import math
import re
from typing import Any, Mapping, Optional, Tuple

from blockpage.expressions import (
    BinaryExpression,
    BinaryOperator,
    Expression,
    Literal,
    VariableReference,
)

_NUMERIC_TEXT = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")


# ============================================================================
# COERCION
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_numeric_text(value: Any) -> bool:
    """
    True when value is a string holding a plain decimal literal.

    Examples:
        "42", " -3.5 ", "1e3", "007"    → True
        "", "   ", "NaN", "0x10", "12a" → False
    """
    return isinstance(value, str) and bool(_NUMERIC_TEXT.match(value))


def to_number(value: Any) -> Optional[float]:
    """Numeric view of a value, or None when it has none."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if _is_number(value):
        number = float(value)
        return None if math.isnan(number) else number
    if is_numeric_text(value):
        return float(value)
    return None


def coerce_operands(left: Any, right: Any) -> Tuple[Any, Any]:
    """
    Prepare operands for equality.

    A numeric-looking string is converted only when the other side is a
    number, so '10' == 10 holds while '10' == '10.0' does not.
    """
    if isinstance(left, str) and _is_number(right) and is_numeric_text(left):
        return float(left), right
    if isinstance(right, str) and _is_number(left) and is_numeric_text(right):
        return left, float(right)
    return left, right


def to_text(value: Any) -> str:
    """String view used by substring membership and answer summaries."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def is_truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


# ============================================================================
# EVALUATION
# ============================================================================

def resolve(expr: Expression, answers: Mapping[str, Any]) -> Any:
    """Resolve an operand node to its runtime value."""
    if isinstance(expr, VariableReference):
        value = answers.get(expr.name)
        return "" if value is None else value
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, BinaryExpression):
        return evaluate_expression(expr, answers)
    raise TypeError(f"Unsupported Expression type: {type(expr)}")


def includes(container: Any, needle: Any) -> bool:
    if isinstance(container, (list, tuple)):
        return needle in container
    return to_text(needle) in to_text(container)


def compare(operator: BinaryOperator, left: Any, right: Any) -> bool:
    """Apply a comparison operator to two resolved values."""
    if operator == BinaryOperator.INCLUDES:
        return includes(left, right)

    if operator in (BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS):
        left, right = coerce_operands(left, right)
        equal = left == right
        return equal if operator == BinaryOperator.EQUALS else not equal

    left_num = to_number(left)
    right_num = to_number(right)
    if left_num is None or right_num is None:
        return False

    if operator == BinaryOperator.GREATER_THAN:
        return left_num > right_num
    if operator == BinaryOperator.GREATER_EQUAL:
        return left_num >= right_num
    if operator == BinaryOperator.LESS_THAN:
        return left_num < right_num
    if operator == BinaryOperator.LESS_EQUAL:
        return left_num <= right_num

    raise ValueError(f"Unsupported comparison operator: {operator}")


def evaluate_expression(expr: Expression, answers: Mapping[str, Any]) -> bool:
    """
    Evaluate a condition tree to a single boolean.

    Bare operands (a reference or literal with no operator) are tested
    for truthiness: '', 0, False and [] are falsy.
    """
    if not isinstance(expr, BinaryExpression):
        return is_truthy(resolve(expr, answers))

    if expr.operator == BinaryOperator.AND:
        return evaluate_expression(expr.left, answers) and evaluate_expression(expr.right, answers)
    if expr.operator == BinaryOperator.OR:
        return evaluate_expression(expr.left, answers) or evaluate_expression(expr.right, answers)

    return compare(expr.operator, resolve(expr.left, answers), resolve(expr.right, answers))


__all__ = [
    "is_numeric_text",
    "to_number",
    "coerce_operands",
    "to_text",
    "is_truthy",
    "resolve",
    "includes",
    "compare",
    "evaluate_expression",
]
