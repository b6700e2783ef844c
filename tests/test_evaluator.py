"""
Tests for condition evaluation and value coercion.

Answers arrive from form inputs as strings, lists and numbers, so the
coercion helpers carry most of the behavior worth pinning down.
"""

import math

import pytest
from blockpage.evaluator import (
    coerce_operands,
    compare,
    evaluate_expression,
    includes,
    is_numeric_text,
    is_truthy,
    to_number,
    to_text,
)
from blockpage.expressions import (
    BinaryExpression,
    BinaryOperator,
    Literal,
    VariableReference,
)


class TestNumericText:
    """is_numeric_text() accepts plain decimal literals only."""

    @pytest.mark.parametrize("text", ["42", " -3.5 ", "1e3", "007", "+2", "5.", ".5"])
    def test_numeric(self, text):
        assert is_numeric_text(text)

    @pytest.mark.parametrize("text", ["", "   ", "NaN", "0x10", "12a", ".", "Infinity", "1,000"])
    def test_not_numeric(self, text):
        assert not is_numeric_text(text)

    def test_non_strings_are_not_numeric_text(self):
        assert not is_numeric_text(42)
        assert not is_numeric_text(None)


class TestCoercion:

    def test_to_number(self):
        assert to_number("750") == 750.0
        assert to_number(3) == 3.0
        assert to_number(True) == 1.0
        assert to_number("abc") is None
        assert to_number("") is None
        assert to_number(math.nan) is None
        assert to_number(["1"]) is None

    def test_coerce_only_against_numbers(self):
        """A numeric string becomes a number only when the other side is one."""
        assert coerce_operands("10", 10) == (10.0, 10)
        assert coerce_operands(10, "10") == (10, 10.0)
        assert coerce_operands("10", "10.0") == ("10", "10.0")
        assert coerce_operands("ten", 10) == ("ten", 10)

    def test_to_text(self):
        assert to_text(None) == ""
        assert to_text(True) == "true"
        assert to_text(3.0) == "3"
        assert to_text(2.5) == "2.5"
        assert to_text(["a", "b"]) == "a,b"

    def test_is_truthy(self):
        assert not is_truthy("")
        assert not is_truthy(0)
        assert not is_truthy([])
        assert not is_truthy(math.nan)
        assert is_truthy("no")


class TestCompare:
    """compare() on resolved values."""

    def test_equality_across_types(self):
        assert compare(BinaryOperator.EQUALS, "10", 10)
        assert not compare(BinaryOperator.EQUALS, "10", "10.0")
        assert compare(BinaryOperator.NOT_EQUALS, "yes", "no")

    def test_ordering_needs_numbers_on_both_sides(self):
        assert compare(BinaryOperator.GREATER_THAN, "12", 5)
        assert compare(BinaryOperator.LESS_EQUAL, 5, 5)
        assert not compare(BinaryOperator.GREATER_THAN, "abc", 1)
        assert not compare(BinaryOperator.LESS_THAN, "", 1)

    def test_includes(self):
        assert includes(["a", "b"], "a")
        assert not includes(["ab"], "a")
        assert includes("roofing", "roof")
        assert includes(1234, 23)

    def test_logical_operator_is_not_a_comparison(self):
        with pytest.raises(ValueError):
            compare(BinaryOperator.AND, True, True)


class TestEvaluateExpression:
    """Tree evaluation against an answer map."""

    def test_bare_reference_truthiness(self):
        ref = VariableReference("x")
        assert evaluate_expression(ref, {"x": "yes"}) is True
        assert evaluate_expression(ref, {"x": []}) is False
        assert evaluate_expression(ref, {"x": 0}) is False
        assert evaluate_expression(ref, {}) is False

    def test_missing_answer_resolves_to_empty_string(self):
        expr = BinaryExpression(BinaryOperator.EQUALS, VariableReference("plan"), Literal(""))
        assert evaluate_expression(expr, {}) is True

    def test_and_or(self):
        a = BinaryExpression(BinaryOperator.EQUALS, VariableReference("a"), Literal(1))
        b = BinaryExpression(BinaryOperator.EQUALS, VariableReference("b"), Literal(2))
        answers = {"a": 1, "b": 3}
        assert evaluate_expression(BinaryExpression(BinaryOperator.OR, a, b), answers) is True
        assert evaluate_expression(BinaryExpression(BinaryOperator.AND, a, b), answers) is False
