"""
Condition Parser (author text → Expression AST).

Conditions appear in wizard branches and result rules:

    plan == 'pro' && seats >= 10
    tags.includes('b') || budget > 500
    has_pets

Grammar:
    expr        := comparison (('&&' | '||') comparison)*
    comparison  := operand (comparator operand | 'includes' argument)?
    operand     := literal | reference | '(' expr ')'
    argument    := '(' value ')' | value

Syntax Notes:
    - '&&' and '||' fold left-to-right in textual order with no
      precedence between them: a || b && c  ==  (a || b) && c
    - A bare operand is tested for truthiness
    - Any parse or evaluation failure makes evaluate_condition() False
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, List, Mapping, Set, Tuple

from blockpage.errors import BlockPageError
from blockpage.evaluator import evaluate_expression
from blockpage.expressions import (
    BinaryExpression,
    BinaryOperator,
    Expression,
    Literal,
    VariableReference,
)

logger = logging.getLogger(__name__)


class ConditionSyntaxError(BlockPageError):
    """Raised when condition text does not match the grammar."""
    pass


class TokenKind(Enum):
    STRING = "str"
    NUMBER = "num"
    BOOL = "bool"
    REF = "ref"
    OP = "op"
    LPAREN = "lp"
    RPAREN = "rp"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: Any = None


_TWO_CHAR_OPERATORS = ("==", "!=", ">=", "<=", "&&", "||")
_ONE_CHAR_OPERATORS = (">", "<")
_DIGITS = "0123456789"
_WORD_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_."
)
_INCLUDES_SUFFIX = ".includes"

_OPERATOR_BY_TEXT = {op.value: op for op in BinaryOperator}


def tokenize(text: str) -> List[Token]:
    """
    Split condition text into tokens in a single left-to-right pass.

    Raises:
        ConditionSyntaxError: On unterminated strings, malformed numbers
            or characters outside the grammar.
    """
    tokens: List[Token] = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch.isspace():
            i += 1
            continue

        # Quoted string literal
        if ch in ("'", '"'):
            end = text.find(ch, i + 1)
            if end == -1:
                raise ConditionSyntaxError(f"Unterminated string literal at position {i}")
            tokens.append(Token(TokenKind.STRING, text[i + 1:end]))
            i = end + 1
            continue

        # Numeric literal, optionally negative
        if ch in _DIGITS or (ch == "-" and i + 1 < n and text[i + 1] in _DIGITS):
            j = i + 1
            while j < n and (text[j] in _DIGITS or text[j] == "."):
                j += 1
            raw = text[i:j]
            try:
                value = float(raw) if "." in raw else int(raw)
            except ValueError:
                raise ConditionSyntaxError(f"Malformed number '{raw}' at position {i}")
            tokens.append(Token(TokenKind.NUMBER, value))
            i = j
            continue

        pair = text[i:i + 2]
        if pair in _TWO_CHAR_OPERATORS:
            tokens.append(Token(TokenKind.OP, _OPERATOR_BY_TEXT[pair]))
            i += 2
            continue

        if ch in _ONE_CHAR_OPERATORS:
            tokens.append(Token(TokenKind.OP, _OPERATOR_BY_TEXT[ch]))
            i += 1
            continue

        if ch == "(":
            tokens.append(Token(TokenKind.LPAREN))
            i += 1
            continue

        if ch == ")":
            tokens.append(Token(TokenKind.RPAREN))
            i += 1
            continue

        j = i
        while j < n and text[j] in _WORD_CHARS:
            j += 1
        if j == i:
            raise ConditionSyntaxError(f"Unexpected character '{ch}' at position {i}")
        word = text[i:j]
        i = j

        if word == _INCLUDES_SUFFIX:
            tokens.append(Token(TokenKind.OP, BinaryOperator.INCLUDES))
        elif word == "true":
            tokens.append(Token(TokenKind.BOOL, True))
        elif word == "false":
            tokens.append(Token(TokenKind.BOOL, False))
        elif word.endswith(_INCLUDES_SUFFIX):
            tokens.append(Token(TokenKind.REF, word[:-len(_INCLUDES_SUFFIX)]))
            tokens.append(Token(TokenKind.OP, BinaryOperator.INCLUDES))
        else:
            tokens.append(Token(TokenKind.REF, word))

    return tokens


def _parse_expression(tokens: List[Token], pos: int) -> tuple:
    """Fold comparisons against && / || in textual order."""
    left, pos = _parse_comparison(tokens, pos)

    while pos < len(tokens) and tokens[pos].kind == TokenKind.OP and tokens[pos].value.is_logical:
        operator = tokens[pos].value
        right, pos = _parse_comparison(tokens, pos + 1)
        left = BinaryExpression(operator, left, right)

    return left, pos


def _parse_comparison(tokens: List[Token], pos: int) -> tuple:
    """Parse comparison expression (==, !=, <, >, <=, >=, includes)."""
    left, pos = _parse_operand(tokens, pos)

    if pos < len(tokens) and tokens[pos].kind == TokenKind.OP and not tokens[pos].value.is_logical:
        operator = tokens[pos].value
        pos += 1
        if operator == BinaryOperator.INCLUDES:
            right, pos = _parse_includes_argument(tokens, pos)
        else:
            right, pos = _parse_operand(tokens, pos)
        left = BinaryExpression(operator, left, right)

    return left, pos


def _parse_includes_argument(tokens: List[Token], pos: int) -> tuple:
    """Parse the single value passed to .includes, parentheses optional."""
    if pos < len(tokens) and tokens[pos].kind == TokenKind.LPAREN:
        value, pos = _parse_value(tokens, pos + 1)
        if pos >= len(tokens) or tokens[pos].kind != TokenKind.RPAREN:
            raise ConditionSyntaxError("Missing closing parenthesis after includes argument")
        return value, pos + 1
    return _parse_value(tokens, pos)


def _parse_operand(tokens: List[Token], pos: int) -> tuple:
    """Parse a value or a parenthesized sub-expression."""
    if pos < len(tokens) and tokens[pos].kind == TokenKind.LPAREN:
        inner, pos = _parse_expression(tokens, pos + 1)
        if pos >= len(tokens) or tokens[pos].kind != TokenKind.RPAREN:
            raise ConditionSyntaxError("Missing closing parenthesis")
        return inner, pos + 1
    return _parse_value(tokens, pos)


def _parse_value(tokens: List[Token], pos: int) -> tuple:
    if pos >= len(tokens):
        raise ConditionSyntaxError("Unexpected end of condition")

    token = tokens[pos]
    if token.kind in (TokenKind.STRING, TokenKind.NUMBER, TokenKind.BOOL):
        return Literal(token.value), pos + 1
    if token.kind == TokenKind.REF:
        return VariableReference(token.value), pos + 1

    raise ConditionSyntaxError(f"Unexpected token: {token.kind.value} {token.value or ''}".rstrip())


def parse_condition(text: str) -> Expression:
    """
    Parse condition text into an Expression AST.

    Results are cached by source text; the returned tree is immutable.

    Raises:
        ConditionSyntaxError: If the text is not a string, is empty, is
            malformed or nests parentheses too deeply.
    """
    if not isinstance(text, str):
        raise ConditionSyntaxError(f"Condition must be text, got {type(text).__name__}")
    if not text.strip():
        raise ConditionSyntaxError("Empty condition")
    return _parse_text(text)


@lru_cache(maxsize=1024)
def _parse_text(text: str) -> Expression:
    tokens = tokenize(text)
    try:
        expr, pos = _parse_expression(tokens, 0)
    except RecursionError:
        raise ConditionSyntaxError("Condition nested too deeply") from None

    if pos < len(tokens):
        raise ConditionSyntaxError(f"Unexpected tokens after condition: {tokens[pos:]}")

    return expr


def evaluate_condition(text: str, answers: Mapping[str, Any]) -> bool:
    """
    Evaluate condition text against an answer map.

    Fail-closed: any syntax or evaluation problem yields False.
    This function never raises.
    """
    try:
        return evaluate_expression(parse_condition(text), answers)
    except Exception as e:
        logger.debug("Condition %r evaluated to False: %s", text, e)
        return False


def validate_condition(text: str) -> List[str]:
    """Return syntax problems for author feedback (empty list when valid)."""
    try:
        parse_condition(text)
    except ConditionSyntaxError as e:
        return [str(e)]
    return []


def extract_references(expr: Expression) -> Set[str]:
    """Extract all answer field ids referenced by an expression."""
    if expr is None:
        return set()

    if isinstance(expr, VariableReference):
        return {expr.name}
    elif isinstance(expr, BinaryExpression):
        return extract_references(expr.left) | extract_references(expr.right)

    return set()


__all__ = [
    "ConditionSyntaxError",
    "Token",
    "TokenKind",
    "tokenize",
    "parse_condition",
    "evaluate_condition",
    "validate_condition",
    "extract_references",
]
