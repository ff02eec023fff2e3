"""Minimal comparison grammar used by condition nodes.

An expression is ``<left> <op> <right>`` where ``op`` is one of
``>=, <=, ==, !=, >, <``. Operators are tried in that order and an
operator only matches when it splits the expression into exactly two
non-empty operands, so ``>=`` is never read as ``>`` followed by ``=``.
"""

import math
import operator
import re
from typing import Any, Callable, Dict, Tuple

OPERATORS = (">=", "<=", "==", "!=", ">", "<")

# Numeric operands: decimals with optional exponent, 0x/0o/0b integers, Infinity
_DECIMAL = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")
_RADIX = re.compile(r"^0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$")
_INFINITY = re.compile(r"^[+-]?Infinity$")

_ORDERING: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or compared."""


def parse_expression(expression: str) -> Tuple[str, str, str]:
    """Split an expression into ``(left, operator, right)``."""
    if not isinstance(expression, str):
        raise ExpressionError("Expression must be a string")

    for op in OPERATORS:
        parts = expression.split(op)
        if len(parts) != 2:
            continue
        left, right = parts[0].strip(), parts[1].strip()
        if left and right:
            return left, op, right

    raise ExpressionError(f"Unsupported expression: {expression!r}")


def parse_operand(raw: Any) -> Any:
    """Convert an operand to a number, boolean, unquoted string or trimmed text."""
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    number = _to_number(text)
    if number is not None:
        return number

    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]

    return text


def _to_number(text: str):
    """Number for ``text``, or None when it is not numeric. Blank text is 0."""
    if not text:
        return 0
    if _RADIX.match(text):
        return int(text, 0)
    if _INFINITY.match(text):
        return -math.inf if text.startswith("-") else math.inf
    if not _DECIMAL.match(text):
        return None
    number = float(text)
    if number.is_integer() and not math.isinf(number):
        return int(number)
    return number


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equal(left: Any, right: Any) -> bool:
    # true and 1 are different values
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def compare(left: Any, op: str, right: Any) -> bool:
    """Apply ``op`` to two already parsed operands."""
    if op == "==":
        return _strict_equal(left, right)
    if op == "!=":
        return not _strict_equal(left, right)
    if op == "contains":
        if isinstance(left, str):
            return str(right) in left
        if isinstance(left, (list, tuple, set, dict)):
            return right in left
        return False

    compare_fn = _ORDERING.get(op)
    if compare_fn is None:
        raise ExpressionError(f"Unsupported operator: {op!r}")
    try:
        return bool(compare_fn(left, right))
    except TypeError:
        raise ExpressionError(
            f"Cannot compare {type(left).__name__} and {type(right).__name__} with {op}"
        )


def evaluate_expression(expression: str) -> bool:
    """Parse and evaluate a comparison expression."""
    left, op, right = parse_expression(expression)
    return compare(parse_operand(left), op, parse_operand(right))
