"""
Tests for the condition tokenizer and parser.

Conditions are author text, so the parser must:
    1. Build the documented tree shapes
    2. Reject anything outside the grammar with ConditionSyntaxError
    3. Never let a bad condition escape evaluate_condition()
"""

import pytest
from blockpage.conditions import (
    ConditionSyntaxError,
    TokenKind,
    evaluate_condition,
    extract_references,
    parse_condition,
    tokenize,
    validate_condition,
)
from blockpage.expressions import (
    BinaryExpression,
    BinaryOperator,
    Literal,
    VariableReference,
)


class TestTokenizer:
    """Single-pass tokenization."""

    def test_comparison_tokens(self):
        tokens = tokenize("age >= 18")
        assert [t.kind for t in tokens] == [TokenKind.REF, TokenKind.OP, TokenKind.NUMBER]
        assert tokens[1].value == BinaryOperator.GREATER_EQUAL
        assert tokens[2].value == 18

    def test_number_literals(self):
        """Integers stay int; a decimal point makes a float; '-' binds to a following digit."""
        assert tokenize("1.5")[0].value == 1.5
        assert isinstance(tokenize("7")[0].value, int)
        assert tokenize("-3")[0].value == -3

    def test_string_literals_both_quotes(self):
        assert tokenize("'pro'")[0].value == "pro"
        assert tokenize('"pro plan"')[0].value == "pro plan"

    def test_booleans(self):
        assert tokenize("true")[0].value is True
        assert tokenize("false")[0].value is False

    def test_includes_split_from_reference(self):
        """tags.includes('b') → REF(tags) OP(includes) ( STRING )"""
        tokens = tokenize("tags.includes('b')")
        assert tokens[0].kind == TokenKind.REF
        assert tokens[0].value == "tags"
        assert tokens[1].value == BinaryOperator.INCLUDES
        assert [t.kind for t in tokens[2:]] == [TokenKind.LPAREN, TokenKind.STRING, TokenKind.RPAREN]

    def test_unterminated_string(self):
        with pytest.raises(ConditionSyntaxError, match="Unterminated"):
            tokenize("plan == 'pro")

    def test_malformed_number(self):
        with pytest.raises(ConditionSyntaxError, match="Malformed number"):
            tokenize("x == 1.2.3")

    @pytest.mark.parametrize("text", ["a = 1", "!a", "a + 1", "a; b", "f[0]"])
    def test_characters_outside_grammar(self, text):
        with pytest.raises(ConditionSyntaxError):
            tokenize(text)


class TestParser:
    """Tree shapes produced by parse_condition()."""

    def test_simple_comparison(self):
        expr = parse_condition("plan == 'pro'")
        assert expr == BinaryExpression(BinaryOperator.EQUALS, VariableReference("plan"), Literal("pro"))

    def test_logical_fold_left_to_right(self):
        """a || b && c parses as (a || b) && c."""
        expr = parse_condition("a || b && c")
        assert expr.operator == BinaryOperator.AND
        assert expr.left.operator == BinaryOperator.OR
        assert expr.right == VariableReference("c")

    def test_parentheses_group(self):
        """a || (b && c) keeps the grouping."""
        expr = parse_condition("a || (b && c)")
        assert expr.operator == BinaryOperator.OR
        assert expr.right.operator == BinaryOperator.AND

    def test_includes_with_and_without_parens(self):
        expected = BinaryExpression(BinaryOperator.INCLUDES, VariableReference("tags"), Literal("b"))
        assert parse_condition("tags.includes('b')") == expected
        assert parse_condition("tags.includes 'b'") == expected

    def test_bare_reference(self):
        assert parse_condition("has_pets") == VariableReference("has_pets")

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "a ==",
            "(a == 1",
            "a == 1)",
            "a == 1 b == 2",
            "&& a",
            "tags.includes('a'",
            "tags.includes()",
        ],
    )
    def test_malformed_conditions_raise(self, text):
        with pytest.raises(ConditionSyntaxError):
            parse_condition(text)

    def test_non_string_input(self):
        with pytest.raises(ConditionSyntaxError):
            parse_condition(None)

    def test_parse_is_cached(self):
        assert parse_condition("x > 1") is parse_condition("x > 1")


class TestEvaluateCondition:
    """End-to-end evaluation with the fail-closed boundary."""

    def test_string_equality(self):
        assert evaluate_condition("a == 'x'", {"a": "x"}) is True
        assert evaluate_condition("a == 'x'", {"a": "y"}) is False

    def test_numeric_range(self):
        assert evaluate_condition("age >= 18 && age <= 65", {"age": 40}) is True
        assert evaluate_condition("age >= 18 && age <= 65", {"age": 70}) is False

    def test_list_membership(self):
        assert evaluate_condition("tags.includes('b')", {"tags": ["a", "b"]}) is True
        assert evaluate_condition("tags.includes('b')", {"tags": ["a"]}) is False

    def test_substring_membership(self):
        assert evaluate_condition("notes.includes('roof')", {"notes": "new roof in 2020"}) is True

    def test_numeric_string_answers(self):
        """Form inputs arrive as strings; ordering compares numerically."""
        assert evaluate_condition("budget > 500", {"budget": "750"}) is True
        assert evaluate_condition("budget > 500", {"budget": "abc"}) is False

    def test_missing_answer_is_empty_string(self):
        assert evaluate_condition("plan == ''", {}) is True
        assert evaluate_condition("plan != 'pro'", {}) is True
        assert evaluate_condition("seats > 0", {}) is False

    @pytest.mark.parametrize(
        "text",
        ["(a == 1", "a ==", "a = 1", "'open", "", "a == 1)", "__import__('os')"],
    )
    def test_malformed_text_evaluates_false(self, text):
        """Malformed or unbalanced condition text never throws."""
        assert evaluate_condition(text, {"a": 1}) is False

    def test_non_string_condition(self):
        assert evaluate_condition(None, {}) is False


class TestDiagnostics:
    """validate_condition() and extract_references()."""

    def test_validate_ok(self):
        assert validate_condition("a == 1 && tags.includes('x')") == []

    def test_validate_reports_problem(self):
        problems = validate_condition("a == (1")
        assert len(problems) == 1
        assert "parenthesis" in problems[0]

    def test_validate_deep_nesting(self):
        text = "(" * 3000 + "a" + ")" * 3000
        assert validate_condition(text) == ["Condition nested too deeply"]
        assert evaluate_condition(text, {"a": "x"}) is False

    def test_moderate_nesting_parses(self):
        assert evaluate_condition("(" * 50 + "a == 1" + ")" * 50, {"a": 1}) is True

    @pytest.mark.parametrize("value", [5, ["a == 1"], None])
    def test_validate_non_string(self, value):
        problems = validate_condition(value)
        assert len(problems) == 1
        assert "must be text" in problems[0]

    def test_extract_references(self):
        expr = parse_condition("plan == 'pro' || (seats > 10 && tags.includes('sso'))")
        assert extract_references(expr) == {"plan", "seats", "tags"}

    def test_extract_references_none(self):
        assert extract_references(None) == set()
