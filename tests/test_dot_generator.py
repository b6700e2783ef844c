"""
Tests for DOT diagram generator.

These tests verify that wizard step graphs are correctly converted to
Graphviz DOT format. Visual output is easy to get wrong and hard to
debug, so edges and labels are checked line by line.

Tests cover:
    - Step nodes and flow edges
    - Branch condition labels on edges
    - Missing branch targets
    - Result rules in outcomes mode
    - Special character escaping
"""

from blockpage.backends.dot_generator import DotMode, generate_dot, save_dot_file
from blockpage.examples import build_example_wizard
from blockpage.model import Branch, Step, WizardDefinition


def _lines(dot):
    return [line.strip() for line in dot.splitlines()]


class TestDotBasicStructure:
    """Test basic DOT graph structure."""

    def test_empty_wizard_generates_valid_dot(self):
        """Should generate valid DOT even for a wizard with no steps."""
        dot = generate_dot(WizardDefinition())
        assert dot.startswith("digraph wizard {")
        assert dot.endswith("}")
        assert "START ->" not in dot

    def test_start_and_results_nodes(self):
        lines = _lines(generate_dot(build_example_wizard()))
        assert 'START [shape=ellipse, fillcolor=lightgreen, label="START"];' in lines
        assert '__results__ [shape=doubleoctagon, fillcolor=gold, label="Results"];' in lines


class TestSimpleMode:

    def test_example_edges(self):
        lines = _lines(generate_dot(build_example_wizard(), mode=DotMode.SIMPLE))
        assert "START -> home;" in lines
        assert "home -> goals [color=blue, style=dashed];" in lines
        assert "home -> roof;" in lines
        assert "roof -> bill;" in lines
        assert "bill -> goals;" in lines
        assert "goals -> __results__;" in lines

    def test_simple_labels_are_titles(self):
        lines = _lines(generate_dot(build_example_wizard()))
        assert 'home [label="About your home"];' in lines

    def test_next_step_edge(self):
        definition = WizardDefinition(steps=[
            Step(id="a", title="A", next_step="c"),
            Step(id="b", title="B"),
            Step(id="c", title="C"),
        ])
        lines = _lines(generate_dot(definition))
        assert "a -> c;" in lines
        assert "b -> c;" in lines
        assert "c -> __results__;" in lines


class TestDetailedMode:

    def test_branch_labels(self):
        lines = _lines(generate_dot(build_example_wizard(), mode=DotMode.DETAILED))
        assert "roof -> goals [color=blue, style=dashed, label=\"shade == 'heavy'\"];" in lines
        assert 'roof -> bill [label="else"];' in lines
        assert "bill -> goals;" in lines

    def test_fields_in_step_labels(self):
        lines = _lines(generate_dot(build_example_wizard(), mode=DotMode.DETAILED))
        assert 'home [label="About your home\\n[home_type*, owner*]"];' in lines
        assert 'bill [label="Your energy use\\n[monthly_bill*, extras]"];' in lines

    def test_long_labels_truncated(self):
        dot = generate_dot(build_example_wizard(), mode=DotMode.DETAILED)
        assert "label=\"(owner == 'no' OR home_type == 'apart...\"" in dot

    def test_invalid_condition_label(self):
        definition = WizardDefinition(steps=[
            Step(id="a", title="A", branches=[Branch("x ==", "b")]),
            Step(id="b", title="B"),
        ])
        dot = generate_dot(definition, mode=DotMode.DETAILED)
        assert 'a -> b [color=blue, style=dashed, label="invalid: x =="];' in dot


class TestOutcomesMode:

    def test_result_rules(self):
        lines = _lines(generate_dot(build_example_wizard(), mode=DotMode.OUTCOMES))
        assert 'rule_1 [shape=note, fillcolor=lightyellow, label="Community solar is your best fit"];' in lines
        assert "__results__ -> rule_4 [label=\"extras has 'battery'\"];" in lines

    def test_rules_absent_in_other_modes(self):
        assert "rule_1" not in generate_dot(build_example_wizard(), mode=DotMode.DETAILED)


class TestMissingTargets:

    def test_missing_branch_target(self):
        definition = WizardDefinition(steps=[Step(id="a", title="A", branches=[Branch("true", "ghost")])])
        lines = _lines(generate_dot(definition))
        assert 'ghost [shape=octagon, fillcolor=mistyrose, label="ghost (missing)"];' in lines
        assert "a -> ghost [color=red, style=dashed];" in lines
        assert "a -> __results__;" in lines


class TestEscaping:

    def test_ids_and_quotes(self):
        definition = WizardDefinition(steps=[
            Step(id="step-1", title='Say "hi"'),
            Step(id="2nd", title="Back\\slash"),
        ])
        lines = _lines(generate_dot(definition))
        assert '"step-1" [label="Say \\"hi\\""];' in lines
        assert '"2nd" [label="Back\\\\slash"];' in lines
        assert 'START -> "step-1";' in lines
        assert '"step-1" -> "2nd";' in lines

    def test_untitled_step_uses_id(self):
        lines = _lines(generate_dot(WizardDefinition(steps=[Step(id="only", title="")])))
        assert 'only [label="only"];' in lines


def test_save_dot_file(tmp_path):
    path = tmp_path / "wizard.dot"
    definition = build_example_wizard()
    save_dot_file(definition, str(path), mode=DotMode.DETAILED)
    assert path.read_text() == generate_dot(definition, mode=DotMode.DETAILED)
