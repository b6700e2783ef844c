"""
Wizard and Page Analyzer: author-time diagnostics.

This module provides lightweight analysis of definitions before they
reach visitors:
    - Step graph reachability, dead ends and cycles
    - Unknown branch / nextStep targets and duplicate ids
    - Condition syntax and unknown field references
    - Condition complexity metrics
    - Calculator formula problems (strict allow-list)
    - Page layout problems (extra Header/Footer/Sidebar, unknown types)

IMPORTANT: Analysis is read-only. Runtime code never calls this module;
at runtime the same problems degrade gracefully (conditions fail closed,
unknown targets are skipped, formulas are sanitized). The analyzer is
where they become visible.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from blockpage.assembler import classify_blocks
from blockpage.conditions import ConditionSyntaxError, extract_references, parse_condition
from blockpage.errors import DefinitionError
from blockpage.expressions import BinaryExpression, Expression, VariableReference
from blockpage.formulas import CalculatorOutput, FormulaSyntaxError, check_formula, compile_formula, parse_multi_output
from blockpage.model import BlockEnvelope, BlockType, WizardDefinition
from blockpage.registry import RendererRegistry
from blockpage.serialization import wizard_from_block

RESULTS_NODE = "(results)"

MAX_CONDITION_DEPTH = 5


@dataclass
class ExpressionMetrics:
    """Metrics about a single condition tree."""
    depth: int = 0
    node_count: int = 0
    field_references: Set[str] = field(default_factory=set)


def _analyze_expression(expr: Expression | None) -> ExpressionMetrics:
    """Recursively measure a condition tree."""
    if expr is None:
        return ExpressionMetrics()

    metrics = ExpressionMetrics(node_count=1)

    if isinstance(expr, BinaryExpression):
        left = _analyze_expression(expr.left)
        right = _analyze_expression(expr.right)
        metrics.depth = 1 + max(left.depth, right.depth)
        metrics.node_count += left.node_count + right.node_count
        metrics.field_references = left.field_references | right.field_references

    elif isinstance(expr, VariableReference):
        metrics.field_references.add(expr.name)

    return metrics


def _find_cycle_dfs(graph: Dict[str, List[str]], node: str, visited: Set[str],
                    on_path: Set[str], path: List[str]) -> Optional[List[str]]:
    """DFS returning the first cycle found from node, closed on its start."""
    visited.add(node)
    on_path.add(node)
    path.append(node)

    for neighbor in graph.get(node, []):
        if neighbor not in visited:
            cycle = _find_cycle_dfs(graph, neighbor, visited, on_path, path[:])
            if cycle:
                return cycle
        elif neighbor in on_path:
            return path[path.index(neighbor):] + [neighbor]

    on_path.remove(node)
    return None


def _reachable(graph: Dict[str, List[str]], start: str) -> Set[str]:
    seen: Set[str] = set()
    stack = [start]
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        stack.extend(n for n in graph.get(node, []) if n not in seen)
    return seen


# ============================================================================
# WIZARD ANALYSIS
# ============================================================================

@dataclass
class WizardReport:
    """
    Diagnostics for one wizard definition.

    Errors make the wizard behave differently from what the author wrote
    (a branch that can never fire, a step nobody can reach by id).
    Warnings are legal but suspicious.
    """

    total_steps: int = 0
    total_fields: int = 0
    total_branches: int = 0
    total_rules: int = 0
    required_fields: int = 0

    # Ids
    duplicate_step_ids: Set[str] = field(default_factory=set)
    duplicate_field_ids: Set[str] = field(default_factory=set)

    # Conditions
    syntax_errors: Dict[str, str] = field(default_factory=dict)  # location → message
    undefined_fields: Set[str] = field(default_factory=set)
    field_usage: Dict[str, int] = field(default_factory=dict)
    max_condition_depth: int = 0

    # Graph
    step_graph: Dict[str, List[str]] = field(default_factory=dict)
    unknown_targets: List[Tuple[str, str]] = field(default_factory=list)  # (step id, target)
    unreachable_steps: Set[str] = field(default_factory=set)
    dead_end_steps: Set[str] = field(default_factory=set)  # cannot reach Results
    has_cycles: bool = False
    cycle_example: Optional[List[str]] = None

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        if msg not in self.errors:
            self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def _step_edges(definition: WizardDefinition, index: int, report: WizardReport) -> List[str]:
    """Possible successors of one step, mirroring WizardSession.next_step_index."""
    steps = definition.steps
    step = steps[index]
    known = {s.id for s in steps}
    edges: List[str] = []

    for branch in step.branches:
        if branch.go_to in known:
            edges.append(branch.go_to)
        else:
            report.unknown_targets.append((step.id, branch.go_to))

    fallback = steps[index + 1].id if index + 1 < len(steps) else RESULTS_NODE
    if step.next_step:
        if step.next_step in known:
            fallback = step.next_step
        else:
            report.unknown_targets.append((step.id, step.next_step))
    edges.append(fallback)

    return list(dict.fromkeys(edges))


def analyze_wizard(definition: WizardDefinition) -> WizardReport:
    """
    Perform author-time analysis of a WizardDefinition.

    Checks for:
    - Duplicate step and field ids
    - Condition syntax errors and references to undeclared fields
    - Unknown branch / nextStep targets
    - Unreachable steps, steps with no path to Results, and cycles
    - Scoring weights and value maps naming unknown fields

    Returns a WizardReport with metrics, errors and warnings.
    """
    report = WizardReport()
    steps = definition.steps
    all_fields = definition.all_fields()

    report.total_steps = len(steps)
    report.total_fields = len(all_fields)
    report.total_branches = sum(len(s.branches) for s in steps)
    report.total_rules = len(definition.result_rules)
    report.required_fields = sum(1 for f in all_fields if f.required)

    if not steps:
        report.add_error("Wizard has no steps")
        return report

    # =========================================================================
    # 1. IDS
    # =========================================================================

    step_counts = Counter(s.id for s in steps)
    report.duplicate_step_ids = {sid for sid, n in step_counts.items() if n > 1}

    field_counts = Counter(f.id for f in all_fields)
    report.duplicate_field_ids = {fid for fid, n in field_counts.items() if n > 1}
    declared_fields = set(field_counts)

    # =========================================================================
    # 2. CONDITIONS
    # =========================================================================

    conditions: List[Tuple[str, str]] = []
    for step in steps:
        for i, branch in enumerate(step.branches):
            conditions.append((f"step '{step.id}' branch {i + 1}", branch.condition))
    for i, rule in enumerate(definition.result_rules):
        conditions.append((f"result rule {i + 1} ({rule.title})", rule.condition))

    usage: Dict[str, int] = defaultdict(int)
    for location, text in conditions:
        try:
            expr = parse_condition(text)
        except ConditionSyntaxError as e:
            report.syntax_errors[location] = str(e)
            continue
        metrics = _analyze_expression(expr)
        report.max_condition_depth = max(report.max_condition_depth, metrics.depth)
        for name in extract_references(expr):
            usage[name] += 1

    report.field_usage = dict(usage)
    report.undefined_fields = set(usage) - declared_fields

    # =========================================================================
    # 3. STEP GRAPH
    # =========================================================================

    graph: Dict[str, List[str]] = {}
    for index, step in enumerate(steps):
        if step.id in graph:
            continue
        graph[step.id] = _step_edges(definition, index, report)
    report.step_graph = graph

    reachable = _reachable(graph, steps[0].id)
    report.unreachable_steps = {s.id for s in steps if s.id not in reachable}

    reverse: Dict[str, List[str]] = defaultdict(list)
    for source, targets in graph.items():
        for target in targets:
            reverse[target].append(source)
    reaches_results = _reachable(reverse, RESULTS_NODE)
    report.dead_end_steps = {s.id for s in steps if s.id not in reaches_results}

    visited: Set[str] = set()
    for step_id in graph:
        if step_id not in visited:
            cycle = _find_cycle_dfs(graph, step_id, visited, set(), [])
            if cycle:
                report.has_cycles = True
                report.cycle_example = cycle
                break

    # =========================================================================
    # 4. FLAGS
    # =========================================================================

    if report.duplicate_step_ids:
        report.add_error(f"Duplicate step ids: {', '.join(sorted(report.duplicate_step_ids))}")

    if report.duplicate_field_ids:
        report.add_error(f"Duplicate field ids: {', '.join(sorted(report.duplicate_field_ids))}")

    for location, message in report.syntax_errors.items():
        report.add_error(f"Syntax error in {location}: {message}")

    for step_id, target in report.unknown_targets:
        report.add_error(f"Step '{step_id}' targets unknown step '{target}'")

    if report.undefined_fields:
        report.add_warning(
            f"Conditions reference undeclared fields: {', '.join(sorted(report.undefined_fields))}"
        )

    if report.unreachable_steps:
        report.add_warning(f"Unreachable steps: {', '.join(sorted(report.unreachable_steps))}")

    if report.dead_end_steps:
        report.add_error(f"Steps that can never reach results: {', '.join(sorted(report.dead_end_steps))}")

    if report.has_cycles:
        report.add_warning(f"Cycle detected: {' -> '.join(report.cycle_example)}")

    if report.max_condition_depth > MAX_CONDITION_DEPTH:
        report.add_warning(f"High condition complexity: max depth {report.max_condition_depth}")

    scoring = definition.scoring
    if scoring is not None:
        unknown = (set(scoring.weights) | set(scoring.value_map)) - declared_fields
        if unknown:
            report.add_warning(f"Scoring names undeclared fields: {', '.join(sorted(unknown))}")

    lead = definition.collect_lead
    if lead is not None and not lead.endpoint:
        report.add_warning("Lead capture has no endpoint; a collect URL must be configured")

    return report


# ============================================================================
# FORMULA ANALYSIS
# ============================================================================

def analyze_calculator(block: BlockEnvelope) -> List[str]:
    """
    Strictly check one QuoteCalculator block.

    Reports disallowed characters, unparseable expressions, outputs with
    no expression and expressions that read undeclared inputs.
    """
    content = block.content
    formula = content.get("formula") or ""
    outputs = [CalculatorOutput.from_dict(o) for o in content.get("outputs") or []]
    input_ids = {str(inp.get("id")) for inp in content.get("inputs") or []}

    if not formula.strip():
        return ["Calculator has no formula"]

    problems = check_formula(formula, [o.id for o in outputs])

    multi = parse_multi_output(formula)
    expressions = multi if multi is not None else {"(formula)": formula}
    for key, expr in expressions.items():
        try:
            program = compile_formula(expr, strict=True)
        except FormulaSyntaxError:
            continue
        unknown = [name for name in program.variables if name not in input_ids]
        if unknown:
            problems.append(f"{key}: unknown inputs {', '.join(unknown)}")

    return problems


# ============================================================================
# PAGE ANALYSIS
# ============================================================================

@dataclass
class PageReport:
    """Diagnostics for one block sequence."""

    total_blocks: int = 0
    block_type_counts: Dict[str, int] = field(default_factory=dict)
    unknown_types: Set[str] = field(default_factory=set)
    unrendered_types: Set[str] = field(default_factory=set)
    duplicate_block_ids: Set[str] = field(default_factory=set)
    dropped_blocks: List[str] = field(default_factory=list)
    formula_problems: Dict[str, List[str]] = field(default_factory=dict)
    wizard_reports: Dict[str, WizardReport] = field(default_factory=dict)

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and all(r.ok for r in self.wizard_reports.values())

    def add_error(self, msg: str) -> None:
        if msg not in self.errors:
            self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_page(blocks: Sequence[BlockEnvelope], registry: RendererRegistry | None = None) -> PageReport:
    """
    Analyze a page's blocks, including every embedded wizard and calculator.

    When a registry is given, block types it cannot render are reported.
    """
    report = PageReport(total_blocks=len(blocks))
    report.block_type_counts = dict(Counter(b.type for b in blocks))

    id_counts = Counter(b.id for b in blocks)
    report.duplicate_block_ids = {bid for bid, n in id_counts.items() if n > 1}

    for block in blocks:
        block_type = block.block_type
        if block_type is None:
            report.unknown_types.add(block.type)
            continue
        if registry is not None and block_type not in registry:
            report.unrendered_types.add(block.type)

        if block_type is BlockType.QUOTE_CALCULATOR:
            problems = analyze_calculator(block)
            if problems:
                report.formula_problems[block.id] = problems

        elif block_type is BlockType.WIZARD:
            try:
                definition = wizard_from_block(block)
            except DefinitionError as e:
                report.add_error(f"Wizard block {block.id} could not be loaded: {e}")
                continue
            report.wizard_reports[block.id] = analyze_wizard(definition)

    layout = classify_blocks(blocks)
    report.dropped_blocks = [f"{b.type}:{b.id}" for b in layout.dropped]

    if report.unknown_types:
        report.add_warning(f"Unknown block types: {', '.join(sorted(report.unknown_types))}")

    if report.unrendered_types:
        report.add_warning(f"Block types without a renderer: {', '.join(sorted(report.unrendered_types))}")

    if report.duplicate_block_ids:
        report.add_error(f"Duplicate block ids: {', '.join(sorted(report.duplicate_block_ids))}")

    if report.dropped_blocks:
        report.add_warning(f"Extra structural blocks dropped: {', '.join(report.dropped_blocks)}")

    for block_id, problems in report.formula_problems.items():
        for problem in problems:
            report.add_error(f"Calculator {block_id}: {problem}")

    return report


__all__ = [
    "ExpressionMetrics",
    "WizardReport",
    "PageReport",
    "analyze_wizard",
    "analyze_calculator",
    "analyze_page",
]
