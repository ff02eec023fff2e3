"""Test the condition comparison grammar."""

import math

import pytest

from relayflow.nodes.expression import (
    ExpressionError,
    compare,
    evaluate_expression,
    parse_expression,
    parse_operand,
)


@pytest.mark.unit
class TestParseExpression:

    def test_simple_split(self):
        assert parse_expression("15 > 10") == ("15", ">", "10")

    @pytest.mark.parametrize("expression,operator", [
        ("10 >= 5", ">="),
        ("10 <= 5", "<="),
        ("a == b", "=="),
        ("a != b", "!="),
        ("10 < 5", "<"),
    ])
    def test_operator_precedence(self, expression, operator):
        assert parse_expression(expression)[1] == operator

    def test_ambiguous_expression_rejected(self):
        with pytest.raises(ExpressionError):
            parse_expression("1 == 1 == 1")

    def test_missing_operand_rejected(self):
        with pytest.raises(ExpressionError):
            parse_expression("> 5")

    def test_no_operator(self):
        with pytest.raises(ExpressionError):
            parse_expression("not an expr")


@pytest.mark.unit
class TestOperands:

    def test_numbers(self):
        assert parse_operand("42") == 42
        assert parse_operand(" 2.5 ") == 2.5
        assert parse_operand("-3") == -3

    def test_booleans(self):
        assert parse_operand("TRUE") is True
        assert parse_operand("false") is False

    def test_quoted_strings(self):
        assert parse_operand('"hello"') == "hello"
        assert parse_operand("'42'") == "42"

    def test_raw_text(self):
        assert parse_operand("  active ") == "active"

    def test_nan_is_text(self):
        assert parse_operand("nan") == "nan"

    @pytest.mark.parametrize("raw,expected", [
        ("0x10", 16),
        ("0b101", 5),
        ("0o17", 15),
        ("1e3", 1000),
        (".5", 0.5),
        ("5.", 5),
        ("+7", 7),
        ("Infinity", math.inf),
        ("-Infinity", -math.inf),
        ("   ", 0),
    ])
    def test_numeric_literal_forms(self, raw, expected):
        assert parse_operand(raw) == expected

    @pytest.mark.parametrize("raw", ["inf", "infinity", "1_000", "-0x10", "12px", "\u0661\u0662"])
    def test_non_numeric_forms_are_text(self, raw):
        assert parse_operand(raw) == raw.strip()

    def test_hex_compares_numerically(self):
        assert evaluate_expression("0x10 == 16") is True

    def test_non_strings_untouched(self):
        assert parse_operand(7) == 7


@pytest.mark.unit
class TestEvaluate:

    @pytest.mark.parametrize("expression,expected", [
        ("15 > 10", True),
        ("5 > 10", False),
        ("10 >= 10", True),
        ("9 <= 8", False),
        ("10 > 9", True),
        ("'abc' == \"abc\"", True),
        ("active != inactive", True),
        ("true == TRUE", True),
        ("1 == true", False),
        ("1 == 1.0", True),
        ("apple < banana", True),
    ])
    def test_expressions(self, expression, expected):
        assert evaluate_expression(expression) is expected

    def test_mismatched_ordering_is_an_error(self):
        with pytest.raises(ExpressionError):
            evaluate_expression("5 > abc")

    def test_contains(self):
        assert compare("hello world", "contains", "world") is True
        assert compare(["a", "b"], "contains", "c") is False
        assert compare(5, "contains", 5) is False

    def test_unknown_operator(self):
        with pytest.raises(ExpressionError):
            compare(1, "~=", 2)
