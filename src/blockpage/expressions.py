"""
Expression System for embedded conditions

Author-written condition strings (wizard branches, result rules) are
parsed once into Abstract Syntax Trees and evaluated from the tree,
never by handing text to an interpreter.

This ensures:
    - No arbitrary code execution
    - Deterministic, loop-free evaluation
    - Inspectable structure for diagnostics and diagrams

ARCHITECTURAL RULE:
    Nodes are structure only.
    Parsing lives in blockpage.conditions, evaluation in blockpage.evaluator.
"""

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Union


class Expression(ABC):
    """
    Base class for all AST expressions.

    It exists to provide type-safety for the expression hierarchy.

    DO NOT:
        - Add evaluation logic here (belongs in blockpage.evaluator)
        - Add string rendering here (belongs in backends)
    """
    pass


class BinaryOperator(Enum):
    """
    Binary operators supported in condition expressions.

    The grammar is closed: every operator an author can write is listed
    here and nothing else can reach the evaluator.
    """

    # Logical operators
    AND = "&&"
    OR = "||"

    # Comparison operators
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="
    LESS_THAN = "<"
    LESS_EQUAL = "<="

    # Membership: list contains / substring of
    INCLUDES = "includes"

    @property
    def is_logical(self) -> bool:
        return self in (BinaryOperator.AND, BinaryOperator.OR)


COMPARISON_OPERATORS = frozenset(
    op for op in BinaryOperator if not op.is_logical
)


@dataclass(frozen=True)
class BinaryExpression(Expression):
    """
    Represents a binary logical, comparison or membership expression.

    Example:
        plan == 'pro' || seats > 10

    Becomes (folded left-to-right in textual order):
        BinaryExpression(
            operator=BinaryOperator.OR,
            left=BinaryExpression(
                operator=BinaryOperator.EQUALS,
                left=VariableReference("plan"),
                right=Literal("pro")
            ),
            right=BinaryExpression(
                operator=BinaryOperator.GREATER_THAN,
                left=VariableReference("seats"),
                right=Literal(10)
            )
        )

    IMPORTANT:
        This object is immutable (frozen=True).
        It does NOT evaluate itself.
    """

    operator: BinaryOperator
    left: "Expression"
    right: "Expression"


@dataclass(frozen=True)
class VariableReference(Expression):
    """
    References a wizard answer by field id.

    Examples:
        - age
        - budget_range
        - tags           (in tags.includes('b'))

    IMPORTANT:
        This object does NOT validate that the field exists.
        A missing answer resolves to the empty string at evaluation time.
    """

    name: str


@dataclass(frozen=True)
class Literal(Expression):
    """
    Represents a literal constant value.

    Examples:
        - 18
        - -2.5
        - 'yes'
        - true
    """

    value: Union[int, float, str, bool]
