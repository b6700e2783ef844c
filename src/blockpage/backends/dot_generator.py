"""
Graphviz DOT diagram generator for wizard definitions.

Converts a WizardDefinition's step graph into Graphviz DOT format.

Supports multiple modes:
    - SIMPLE: Step flow only
    - DETAILED: Branch conditions on edges, fields in step labels
    - OUTCOMES: DETAILED plus result rules hanging off the Results node
"""

import re
from enum import Enum
from typing import Optional

from blockpage.conditions import ConditionSyntaxError, parse_condition
from blockpage.expressions import (
    BinaryExpression,
    BinaryOperator,
    Expression,
    Literal,
    VariableReference,
)
from blockpage.model import Step, WizardDefinition

RESULTS_ID = "__results__"
MAX_EDGE_LABEL = 40

_PLAIN_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DotMode(Enum):
    """Visualization modes for DOT output."""
    SIMPLE = "simple"
    DETAILED = "detailed"
    OUTCOMES = "outcomes"


def _escape_dot_string(s: str) -> str:
    """Quote a label, escaping backslashes and quotes; newlines become \\n."""
    if not s:
        return '""'
    s = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{s}"'


def _escape_dot_id(identifier: str) -> str:
    """Quote an identifier unless it is a plain DOT ID."""
    if _PLAIN_ID.match(identifier):
        return identifier
    return _escape_dot_string(identifier)


def _expr_to_dot_label(expr: Optional[Expression]) -> str:
    """Convert a condition tree to a readable label."""
    if expr is None:
        return ""

    if isinstance(expr, BinaryExpression):
        left = _expr_to_dot_label(expr.left)
        right = _expr_to_dot_label(expr.right)
        if expr.operator == BinaryOperator.INCLUDES:
            return f"{left} has {right}"
        op_str = {BinaryOperator.AND: "AND", BinaryOperator.OR: "OR"}.get(
            expr.operator, expr.operator.value
        )
        if expr.operator.is_logical:
            return f"({left} {op_str} {right})"
        return f"{left} {op_str} {right}"

    elif isinstance(expr, VariableReference):
        return expr.name

    elif isinstance(expr, Literal):
        if isinstance(expr.value, bool):
            return "true" if expr.value else "false"
        if isinstance(expr.value, str):
            return f"'{expr.value}'"
        return str(expr.value)

    return "?"


def _condition_label(text: str) -> str:
    try:
        label = _expr_to_dot_label(parse_condition(text))
    except ConditionSyntaxError:
        label = f"invalid: {text}"
    if len(label) > MAX_EDGE_LABEL:
        label = label[:MAX_EDGE_LABEL - 3] + "..."
    return label


def _step_label(step: Step, mode: DotMode) -> str:
    label = step.title or step.id
    if mode != DotMode.SIMPLE and step.fields:
        names = [f"{f.id}{'*' if f.required else ''}" for f in step.fields]
        label = f"{label}\n[{', '.join(names)}]"
    return label


def generate_dot(definition: WizardDefinition, mode: DotMode = DotMode.SIMPLE) -> str:
    """
    Generate Graphviz DOT format for a wizard's step graph.

    Args:
        definition: Wizard to visualize
        mode: Visualization mode (SIMPLE, DETAILED, OUTCOMES)

    Returns:
        String containing DOT graph definition
    """
    steps = definition.steps
    known = {s.id for s in steps}
    detailed = mode != DotMode.SIMPLE

    lines = [
        "digraph wizard {",
        "  rankdir=LR;",
        "  node [shape=box, style=filled, fillcolor=lightblue];",
        '  START [shape=ellipse, fillcolor=lightgreen, label="START"];',
        f'  {RESULTS_ID} [shape=doubleoctagon, fillcolor=gold, label="Results"];',
    ]

    # =========================================================================
    # NODES
    # =========================================================================

    for step in steps:
        lines.append(f"  {_escape_dot_id(step.id)} [label={_escape_dot_string(_step_label(step, mode))}];")

    # =========================================================================
    # EDGES
    # =========================================================================

    if steps:
        lines.append(f"  START -> {_escape_dot_id(steps[0].id)};")

    for index, step in enumerate(steps):
        source = _escape_dot_id(step.id)

        for branch in step.branches:
            target = _escape_dot_id(branch.go_to)
            color = "blue"
            if branch.go_to not in known:
                color = "red"
                lines.append(f"  {target} [shape=octagon, fillcolor=mistyrose, label={_escape_dot_string(branch.go_to + ' (missing)')}];")
            attrs = [f"color={color}", "style=dashed"]
            if detailed:
                attrs.append(f"label={_escape_dot_string(_condition_label(branch.condition))}")
            lines.append(f"  {source} -> {target} [{', '.join(attrs)}];")

        if step.next_step and step.next_step in known:
            fallback = _escape_dot_id(step.next_step)
        elif index + 1 < len(steps):
            fallback = _escape_dot_id(steps[index + 1].id)
        else:
            fallback = RESULTS_ID

        edge_attr = ' [label="else"]' if detailed and step.branches else ""
        lines.append(f"  {source} -> {fallback}{edge_attr};")

    # =========================================================================
    # OUTCOMES
    # =========================================================================

    if mode == DotMode.OUTCOMES:
        for i, rule in enumerate(definition.result_rules, start=1):
            rule_id = f"rule_{i}"
            lines.append(f"  {rule_id} [shape=note, fillcolor=lightyellow, label={_escape_dot_string(rule.title)}];")
            lines.append(f"  {RESULTS_ID} -> {rule_id} [label={_escape_dot_string(_condition_label(rule.condition))}];")

    lines.append("}")

    return "\n".join(lines)


def save_dot_file(definition: WizardDefinition, filename: str, mode: DotMode = DotMode.SIMPLE) -> None:
    """
    Generate DOT and save to file.

    Args:
        definition: Wizard to visualize
        filename: Output file path (.dot extension recommended)
        mode: Visualization mode
    """
    dot = generate_dot(definition, mode=mode)
    with open(filename, "w") as f:
        f.write(dot)


__all__ = ["DotMode", "generate_dot", "save_dot_file"]
