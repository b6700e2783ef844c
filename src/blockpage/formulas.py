"""
Formula Expressions for calculator blocks.

A formula is arithmetic text over numeric input ids, either a bare
expression or a multi-output object literal:

    principal * rate / 12
    ({monthly: principal * rate / 12, yearly: principal * rate})

Processing pipeline:
    1. parse_multi_output()    - split {key: expr} pairs as TEXT
    2. sanitize_expression()   - character allow-list per expression
    3. compile_formula()       - ast node allow-list → FormulaProgram
    4. FormulaProgram.evaluate - pure numeric function of the inputs

IMPORTANT:
    Braces and colons never survive step 1; the multi-output form is
    resolved before anything executable exists. Evaluation failures
    (unknown names, division by zero, overflow, non-finite results)
    produce None, never an exception.
"""

import ast
import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from types import SimpleNamespace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from blockpage.errors import BlockPageError
from blockpage.evaluator import to_number

logger = logging.getLogger(__name__)

EMPTY_RESULT = "—"

_MULTI_OUTPUT = re.compile(r"^\(?\s*\{([\s\S]+)\}\s*\)?$")
_OUTPUT_KEY = re.compile(r"^[A-Za-z_]\w*$")
_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9_\s+\-*/%().,]")

# Wide enough for any finite float at any display precision
_WIDE_CONTEXT = Context(prec=400)


class FormulaSyntaxError(BlockPageError):
    """Raised when a formula is rejected by the sanitizer or compiler."""
    pass


# ============================================================================
# MULTI-OUTPUT SPLIT
# ============================================================================

def parse_multi_output(formula: str) -> Optional[Dict[str, str]]:
    """
    Split a multi-output formula into {output_id: expression}.

    Examples:
        "({x: a+b, y: a-b})"  → {"x": "a+b", "y": "a-b"}
        "{total: max(a, b)}"  → {"total": "max(a, b)"}
        "a*b"                 → None (single output)

    Segments are split on commas outside parentheses, then on the first
    colon. Segments with an invalid key or an empty expression are
    ignored; when none survive the formula is treated as single-output.
    """
    match = _MULTI_OUTPUT.match((formula or "").strip())
    if not match:
        return None

    inner = match.group(1)
    result: Dict[str, str] = {}
    depth = 0
    seg_start = 0

    # Trailing sentinel comma flushes the last segment
    for i, ch in enumerate(inner + ","):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            segment = inner[seg_start:i].strip()
            seg_start = i + 1
            key, sep, expr = segment.partition(":")
            key = key.strip()
            expr = expr.strip()
            if sep and _OUTPUT_KEY.match(key) and expr:
                result[key] = expr

    return result or None


# ============================================================================
# SANITIZER
# ============================================================================

def sanitize_expression(expr: str, strict: bool = False) -> str:
    """
    Apply the character allow-list [A-Za-z0-9_ whitespace + - * / % ( ) . ,].

    Args:
        expr: Raw author expression
        strict: Raise instead of stripping disallowed characters

    Raises:
        FormulaSyntaxError: In strict mode, naming the rejected characters.
    """
    expr = expr or ""
    if strict:
        rejected = sorted(set(_DISALLOWED_CHARS.findall(expr)))
        if rejected:
            raise FormulaSyntaxError(
                f"Disallowed characters in formula {expr!r}: {' '.join(rejected)}"
            )
        return expr
    return _DISALLOWED_CHARS.sub("", expr)


# ============================================================================
# SAFE COMPILATION
# ============================================================================

def _round(value: float, ndigits: int = 0) -> float:
    """Half-up rounding (Math.round semantics)."""
    factor = 10.0 ** int(ndigits)
    return math.floor(value * factor + 0.5) / factor


def _floor(value: float) -> float:
    return float(math.floor(value))


def _ceil(value: float) -> float:
    return float(math.ceil(value))


def _abs(value: float) -> float:
    return float(abs(value))


# Every function returns a float, so ** never runs on Python ints.
ALLOWED_FUNCTIONS = {
    "abs": _abs,
    "min": min,
    "max": max,
    "round": _round,
    "floor": _floor,
    "ceil": _ceil,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "log": math.log,
    "exp": math.exp,
}

MATH_NAMESPACE = "Math"

ALLOWED_NODES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Attribute,
    ast.Call,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.Mod,
    ast.Pow,
    ast.USub,
    ast.UAdd,
)


def _validate_ast(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise FormulaSyntaxError(f"Unsupported formula syntax: {type(node).__name__}")
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise FormulaSyntaxError(f"Unsupported constant: {node.value!r}")
        if isinstance(node, ast.Attribute):
            if not (
                isinstance(node.value, ast.Name)
                and node.value.id == MATH_NAMESPACE
                and node.attr in ALLOWED_FUNCTIONS
            ):
                raise FormulaSyntaxError("Only Math.<function> attribute access is allowed")
        if isinstance(node, ast.Call):
            if node.keywords:
                raise FormulaSyntaxError("Keyword arguments are not allowed")
            func = node.func
            if isinstance(func, ast.Name) and func.id in ALLOWED_FUNCTIONS:
                continue
            if isinstance(func, ast.Attribute):
                continue
            raise FormulaSyntaxError("Unsupported function call")


class _FloatArithmetic(ast.NodeTransformer):
    """Make every constant a float; route % through fmod and ** through pow."""

    _ROUTED = {ast.Mod: "_fmod", ast.Pow: "_pow"}

    def visit_Constant(self, node: ast.Constant) -> ast.AST:
        return ast.copy_location(ast.Constant(value=float(node.value)), node)

    def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
        self.generic_visit(node)
        helper = self._ROUTED.get(type(node.op))
        if helper is not None:
            call = ast.Call(
                func=ast.Name(id=helper, ctx=ast.Load()),
                args=[node.left, node.right],
                keywords=[],
            )
            return ast.copy_location(call, node)
        return node


def _input_names(tree: ast.AST) -> Tuple[str, ...]:
    nodes = sorted(
        (node for node in ast.walk(tree) if isinstance(node, ast.Name)),
        key=lambda node: (node.lineno, node.col_offset),
    )
    names: List[str] = []
    for node in nodes:
        if node.id in ALLOWED_FUNCTIONS or node.id == MATH_NAMESPACE:
            continue
        if node.id not in names:
            names.append(node.id)
    return tuple(names)


_EVAL_GLOBALS: Dict[str, Any] = {
    "__builtins__": {},
    "_fmod": math.fmod,
    "_pow": math.pow,
    MATH_NAMESPACE: SimpleNamespace(**ALLOWED_FUNCTIONS),
    **ALLOWED_FUNCTIONS,
}


@dataclass(frozen=True)
class FormulaProgram:
    """
    Validated, compiled arithmetic expression.

    Attributes:
        source: The sanitized expression text
        variables: Input ids referenced, in order of first appearance
        code: Compiled code object (node allow-list enforced)
    """

    source: str
    variables: Tuple[str, ...]
    code: Any

    def evaluate(self, values: Mapping[str, Any]) -> Optional[float]:
        """
        Evaluate with the given input values.

        Non-numeric input values count as 0. Returns None when an input is
        absent, evaluation fails, or the result is not a finite number.
        """
        scope = {}
        for name in self.variables:
            if name in values:
                number = to_number(values[name])
                scope[name] = number if number is not None else 0.0
        try:
            result = eval(self.code, _EVAL_GLOBALS, scope)
            if isinstance(result, bool) or not isinstance(result, (int, float)):
                return None
            result = float(result)
        except Exception as e:
            logger.debug("Formula %r failed: %s", self.source, e)
            return None

        return result if math.isfinite(result) else None


def compile_formula(expr: str, strict: bool = False) -> FormulaProgram:
    """
    Sanitize and compile one arithmetic expression.

    Raises:
        FormulaSyntaxError: If the expression is empty after sanitizing,
            does not parse, or uses syntax outside the allow-list.
    """
    source = sanitize_expression(expr, strict=strict).strip()
    if not source:
        raise FormulaSyntaxError(f"Formula {expr!r} is empty after sanitizing")

    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise FormulaSyntaxError(f"Invalid formula {source!r}: {e.msg}") from e

    _validate_ast(tree)
    variables = _input_names(tree)
    tree = ast.fix_missing_locations(_FloatArithmetic().visit(tree))
    return FormulaProgram(source=source, variables=variables, code=compile(tree, "<formula>", "eval"))


# ============================================================================
# CALCULATOR OUTPUTS
# ============================================================================

@dataclass(frozen=True)
class CalculatorOutput:
    """One displayed calculator result: {id, label, format, decimals?}."""

    id: str
    label: str = ""
    format: str = "number"
    decimals: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CalculatorOutput":
        decimals = d.get("decimals")
        return cls(
            id=str(d.get("id", "")),
            label=str(d.get("label", "")),
            format=str(d.get("format") or "number"),
            decimals=int(decimals) if decimals is not None else None,
        )


def _quantize(value: float, decimals: int) -> Decimal:
    exponent = Decimal(1).scaleb(-decimals)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP, context=_WIDE_CONTEXT)


def format_output(value: Optional[float], output: CalculatorOutput) -> str:
    """
    Format a computed value for display.

    currency → $1,234.50  (default 2 decimals)
    percent  → 12.5%      (default 1 decimal)
    number   → 1,234.5    (default 0 decimals, trailing zeros dropped)
    """
    if value is None or not math.isfinite(value):
        return EMPTY_RESULT

    if output.format == "currency":
        decimals = 2 if output.decimals is None else output.decimals
        return "$" + f"{_quantize(value, decimals):,.{decimals}f}"
    if output.format == "percent":
        decimals = 1 if output.decimals is None else output.decimals
        return f"{_quantize(value, decimals):.{decimals}f}%"

    decimals = 0 if output.decimals is None else output.decimals
    text = f"{_quantize(value, decimals):,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def calculator_expressions(
    formula: str,
    outputs: Sequence[CalculatorOutput],
    strict: bool = False,
) -> Dict[str, str]:
    """
    Map output id → sanitized expression.

    Outputs whose expression is missing or empty after sanitizing are
    omitted. A single-output formula maps to every output.
    """
    multi = parse_multi_output(formula)
    expressions: Dict[str, str] = {}
    for output in outputs:
        raw = multi.get(output.id) if multi is not None else formula
        if not raw:
            continue
        safe = sanitize_expression(raw, strict=strict).strip()
        if safe:
            expressions[output.id] = safe
    return expressions


def compute_outputs(
    formula: str,
    outputs: Sequence[CalculatorOutput],
    values: Mapping[str, Any],
) -> Dict[str, Optional[float]]:
    """Compute the raw numeric result (or None) for every output id."""
    expressions = calculator_expressions(formula, outputs)
    results: Dict[str, Optional[float]] = {}
    for output in outputs:
        expr = expressions.get(output.id)
        if expr is None:
            results[output.id] = None
            continue
        try:
            program = compile_formula(expr)
        except FormulaSyntaxError as e:
            logger.debug("Output %s has no result: %s", output.id, e)
            results[output.id] = None
            continue
        results[output.id] = program.evaluate(values)
    return results


def evaluate_calculator(
    formula: str,
    outputs: Sequence[CalculatorOutput],
    values: Mapping[str, Any],
) -> Dict[str, str]:
    """Compute and format every output; failures display as a dash."""
    results = compute_outputs(formula, outputs, values)
    return {output.id: format_output(results[output.id], output) for output in outputs}


def check_formula(formula: str, output_ids: Optional[Sequence[str]] = None) -> List[str]:
    """
    Strictly check a formula, returning human-readable problems.

    Used by the analyzer and the lint command; rendering never raises.
    """
    problems: List[str] = []
    multi = parse_multi_output(formula)
    if multi is None:
        targets = {"(formula)": formula}
    else:
        targets = dict(multi)
        for output_id in output_ids or ():
            if output_id not in multi:
                problems.append(f"Output '{output_id}' has no expression")

    for key, expr in targets.items():
        try:
            compile_formula(expr, strict=True)
        except FormulaSyntaxError as e:
            problems.append(f"{key}: {e}")
    return problems


__all__ = [
    "EMPTY_RESULT",
    "FormulaSyntaxError",
    "FormulaProgram",
    "CalculatorOutput",
    "ALLOWED_FUNCTIONS",
    "parse_multi_output",
    "sanitize_expression",
    "compile_formula",
    "format_output",
    "calculator_expressions",
    "compute_outputs",
    "evaluate_calculator",
    "check_formula",
]
