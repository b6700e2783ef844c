"""
Tests for the Wizard and Page Analyzer.

Tests verify that the analyzer correctly:
    - Inventories steps, fields and branches
    - Detects duplicate ids, bad targets and syntax errors
    - Finds unreachable steps, dead ends and cycles
    - Measures condition complexity
    - Checks calculator formulas and page layout
"""

from blockpage.analyzer import analyze_calculator, analyze_page, analyze_wizard
from blockpage.examples import build_example_blocks, build_example_quiz, build_example_wizard
from blockpage.model import (
    BlockEnvelope,
    Branch,
    Field,
    FieldType,
    LeadCaptureSpec,
    ResultRule,
    ScoringSpec,
    Step,
    WizardDefinition,
)
from blockpage.renderers import build_default_registry
from blockpage.serialization import wizard_to_dict


def _wizard(*steps, **kwargs):
    return WizardDefinition(steps=list(steps), **kwargs)


def test_example_wizard_is_clean():
    """The example wizard has no errors and no warnings."""
    report = analyze_wizard(build_example_wizard())

    assert report.ok
    assert report.warnings == []
    assert report.total_steps == 4
    assert report.total_fields == 7
    assert report.required_fields == 6
    assert report.total_branches == 2
    assert report.total_rules == 4
    assert report.max_condition_depth == 3
    assert report.step_graph == {
        "home": ["goals", "roof"],
        "roof": ["goals", "bill"],
        "bill": ["goals"],
        "goals": ["(results)"],
    }
    assert not report.has_cycles


def test_example_quiz_is_clean():
    report = analyze_wizard(build_example_quiz())
    assert report.ok
    assert report.warnings == []


def test_field_usage_counts():
    report = analyze_wizard(build_example_wizard())
    assert report.field_usage["owner"] == 3
    assert report.field_usage["extras"] == 1


def test_no_steps():
    report = analyze_wizard(WizardDefinition())
    assert report.errors == ["Wizard has no steps"]


class TestIds:

    def test_duplicate_step_ids(self):
        report = analyze_wizard(_wizard(Step(id="a", title="A"), Step(id="a", title="Again")))
        assert "Duplicate step ids: a" in report.errors

    def test_duplicate_field_ids(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", fields=[Field("x", FieldType.TEXT)]),
            Step(id="b", title="B", fields=[Field("x", FieldType.NUMBER)]),
        ))
        assert report.errors == ["Duplicate field ids: x"]


class TestConditions:

    def test_syntax_error(self):
        report = analyze_wizard(_wizard(Step(id="a", title="A", branches=[Branch("x ==", "a")])))
        assert "step 'a' branch 1" in report.syntax_errors
        assert any(e.startswith("Syntax error in step 'a' branch 1") for e in report.errors)

    def test_deep_nesting_is_a_syntax_error(self):
        deep = "(" * 3000 + "x" + ")" * 3000
        report = analyze_wizard(_wizard(Step(id="a", title="A", fields=[Field("x")], branches=[Branch(deep, "a")])))
        assert report.syntax_errors == {"step 'a' branch 1": "Condition nested too deeply"}
        assert not report.ok

    def test_result_rule_syntax_error(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A"),
            result_rules=[ResultRule("(x == 1", "Broken", "")],
        ))
        assert any(e.startswith("Syntax error in result rule 1 (Broken)") for e in report.errors)

    def test_undeclared_fields(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", fields=[Field("size")], branches=[Branch("colour == 'red'", "b")]),
            Step(id="b", title="B"),
            result_rules=[ResultRule("size > 3 && shape == 'round'", "Big", "")],
        ))
        assert report.ok
        assert report.undefined_fields == {"colour", "shape"}
        assert "Conditions reference undeclared fields: colour, shape" in report.warnings

    def test_complexity(self):
        condition = " && ".join(["a == 1"] * 6)
        report = analyze_wizard(_wizard(
            Step(id="s", title="S", fields=[Field("a")]),
            result_rules=[ResultRule(condition, "Deep", "")],
        ))
        assert report.max_condition_depth == 6
        assert "High condition complexity: max depth 6" in report.warnings


class TestStepGraph:

    def test_unknown_target(self):
        report = analyze_wizard(_wizard(Step(id="a", title="A", branches=[Branch("true", "zzz")])))
        assert report.unknown_targets == [("a", "zzz")]
        assert "Step 'a' targets unknown step 'zzz'" in report.errors
        assert report.step_graph == {"a": ["(results)"]}

    def test_unknown_next_step(self):
        report = analyze_wizard(_wizard(Step(id="a", title="A", next_step="nowhere"), Step(id="b", title="B")))
        assert "Step 'a' targets unknown step 'nowhere'" in report.errors
        assert report.step_graph["a"] == ["b"]

    def test_unreachable_step(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", next_step="c"),
            Step(id="b", title="B"),
            Step(id="c", title="C"),
        ))
        assert report.ok
        assert report.unreachable_steps == {"b"}
        assert "Unreachable steps: b" in report.warnings

    def test_dead_end_loop(self):
        """Two steps that only point at each other can never finish."""
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", next_step="b"),
            Step(id="b", title="B", next_step="a"),
        ))
        assert report.dead_end_steps == {"a", "b"}
        assert "Steps that can never reach results: a, b" in report.errors
        assert report.has_cycles
        assert report.cycle_example == ["a", "b", "a"]

    def test_loop_with_exit_is_a_warning(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", fields=[Field("x")], branches=[Branch("x == 'again'", "a")]),
        ))
        assert report.ok
        assert report.dead_end_steps == set()
        assert report.cycle_example == ["a", "a"]
        assert "Cycle detected: a -> a" in report.warnings


class TestScoringAndLeads:

    def test_scoring_names_unknown_fields(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A", fields=[Field("x")]),
            scoring=ScoringSpec(weights={"x": 1, "ghost": 1}, value_map={"phantom": {"a": 1}}),
        ))
        assert "Scoring names undeclared fields: ghost, phantom" in report.warnings

    def test_lead_without_endpoint(self):
        report = analyze_wizard(_wizard(
            Step(id="a", title="A"),
            collect_lead=LeadCaptureSpec(fields=["email"]),
        ))
        assert report.ok
        assert "Lead capture has no endpoint; a collect URL must be configured" in report.warnings


class TestCalculator:

    def test_example_calculator(self):
        block = next(b for b in build_example_blocks() if b.id == "calc")
        assert analyze_calculator(block) == []

    def test_no_formula(self):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={"outputs": [{"id": "x"}]})
        assert analyze_calculator(block) == ["Calculator has no formula"]

    def test_unknown_inputs(self):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={
            "inputs": [{"id": "price"}],
            "outputs": [{"id": "x"}],
            "formula": "({x: price * rate})",
        })
        assert analyze_calculator(block) == ["x: unknown inputs rate"]

    def test_output_without_expression(self):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={
            "inputs": [{"id": "a"}],
            "outputs": [{"id": "x"}, {"id": "y"}],
            "formula": "({x: a * 2})",
        })
        assert analyze_calculator(block) == ["Output 'y' has no expression"]

    def test_disallowed_characters(self):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={
            "inputs": [{"id": "a"}, {"id": "b"}],
            "formula": "a; b",
        })
        problems = analyze_calculator(block)
        assert len(problems) == 1
        assert problems[0].startswith("(formula): ")


class TestPage:

    def test_example_page(self):
        report = analyze_page(build_example_blocks(), build_default_registry())
        assert report.ok
        assert report.warnings == []
        assert report.total_blocks == 10
        assert set(report.wizard_reports) == {"wizard"}
        assert report.block_type_counts["FAQ"] == 1

    def test_layout_problems(self):
        blocks = [
            BlockEnvelope(id="h1", type="Header"),
            BlockEnvelope(id="h2", type="Header"),
            BlockEnvelope(id="p", type="PricingTable"),
            BlockEnvelope(id="x", type="Carousel"),
            BlockEnvelope(id="f", type="FAQ"),
            BlockEnvelope(id="f", type="FAQ"),
        ]
        report = analyze_page(blocks, build_default_registry())
        assert report.unknown_types == {"Carousel"}
        assert report.unrendered_types == {"PricingTable"}
        assert report.dropped_blocks == ["Header:h2"]
        assert report.errors == ["Duplicate block ids: f"]
        assert report.warnings == [
            "Unknown block types: Carousel",
            "Block types without a renderer: PricingTable",
            "Extra structural blocks dropped: Header:h2",
        ]

    def test_without_registry_skips_renderer_check(self):
        report = analyze_page([BlockEnvelope(id="p", type="PricingTable")])
        assert report.unrendered_types == set()
        assert report.ok

    def test_wizard_that_cannot_load(self):
        block = BlockEnvelope(id="w", type="Wizard", content={"steps": ["not a step"]})
        report = analyze_page([block])
        assert len(report.errors) == 1
        assert report.errors[0].startswith("Wizard block w could not be loaded")

    def test_embedded_wizard_errors_fail_the_page(self):
        broken = _wizard(Step(id="a", title="A", next_step="b"), Step(id="b", title="B", next_step="a"))
        report = analyze_page([BlockEnvelope(id="w", type="Wizard", content=wizard_to_dict(broken))])
        assert report.errors == []
        assert not report.wizard_reports["w"].ok
        assert not report.ok

    def test_calculator_problems_reported(self):
        report = analyze_page([BlockEnvelope(id="c", type="QuoteCalculator")])
        assert report.errors == ["Calculator c: Calculator has no formula"]
