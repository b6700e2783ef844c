"""
Tests for the blockpage command line.
"""

import pytest
from blockpage.cli import main
from blockpage.examples import build_example_page, build_example_wizard
from blockpage.model import Step, WizardDefinition
from blockpage.serialization import page_to_yaml, wizard_to_yaml


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("COLLECT_URL", "SUBMIT_TIMEOUT", "RENDER_WORKERS", "STRICT_FORMULAS", "LOG_LEVEL"):
        monkeypatch.delenv(f"BLOCKPAGE_{var}", raising=False)


@pytest.fixture
def wizard_file(tmp_path):
    path = tmp_path / "wizard.yaml"
    path.write_text(wizard_to_yaml(build_example_wizard()), encoding="utf-8")
    return path


class TestEval:

    def test_true(self, capsys):
        assert main(["eval", "age >= 18 && plan == 'pro'", "--answers", '{"age": 30, "plan": "pro"}']) == 0
        assert capsys.readouterr().out == "true\n"

    def test_false(self, capsys):
        assert main(["eval", "age >= 18", "--answers", '{"age": "12"}']) == 0
        assert capsys.readouterr().out == "false\n"

    def test_exit_status(self, capsys):
        assert main(["eval", "age >= 18", "--exit-status"]) == 1
        assert capsys.readouterr().out == "false\n"

    def test_syntax_error_is_false_unless_checked(self, capsys):
        assert main(["eval", "x =="]) == 0
        assert capsys.readouterr().out == "false\n"
        assert main(["eval", "x ==", "--check"]) == 2
        assert "ERROR" in capsys.readouterr().err

    def test_bad_answers(self, capsys):
        assert main(["eval", "true", "--answers", "{nope"]) == 2
        assert "Invalid JSON for --answers" in capsys.readouterr().err

    def test_answers_must_be_object(self, capsys):
        assert main(["eval", "true", "--answers", "[1, 2]"]) == 2
        assert "must be a JSON object" in capsys.readouterr().err


class TestCalc:

    def test_multi_output_currency(self, capsys):
        code = main(["calc", "({net: price * qty})", "--values", '{"price": 9.5, "qty": 3}', "--format", "currency"])
        assert code == 0
        assert capsys.readouterr().out == "net: $28.50\n"

    def test_single_output(self, capsys):
        assert main(["calc", "a / b", "--values", '{"a": 1, "b": 8}', "--decimals", "3"]) == 0
        assert capsys.readouterr().out == "result: 0.125\n"

    def test_failure_is_a_dash(self, capsys):
        assert main(["calc", "1/0"]) == 0
        assert capsys.readouterr().out == "result: —\n"


class TestLint:

    def test_clean_wizard(self, wizard_file, capsys):
        assert main(["lint", str(wizard_file)]) == 0
        assert capsys.readouterr().out == f"OK      {wizard_file}\n"

    def test_wizard_with_errors(self, tmp_path, capsys):
        broken = WizardDefinition(steps=[
            Step(id="a", title="A", next_step="b"),
            Step(id="b", title="B", next_step="a"),
        ])
        path = tmp_path / "broken.yaml"
        path.write_text(wizard_to_yaml(broken), encoding="utf-8")

        assert main(["lint", str(path)]) == 1
        out = capsys.readouterr().out
        assert f"ERROR   {path}: Steps that can never reach results: a, b" in out
        assert f"WARNING {path}: Cycle detected: a -> b -> a" in out
        assert "OK" not in out

    def test_page(self, tmp_path, capsys):
        path = tmp_path / "page.yaml"
        path.write_text(page_to_yaml(build_example_page()), encoding="utf-8")
        assert main(["lint", str(path)]) == 0
        assert capsys.readouterr().out == f"OK      {path}\n"

    def test_missing_file(self, tmp_path, capsys):
        assert main(["lint", str(tmp_path / "nope.yaml")]) == 2
        assert "Cannot read" in capsys.readouterr().err


class TestDot:

    def test_stdout(self, wizard_file, capsys):
        assert main(["dot", str(wizard_file)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("digraph wizard {")
        assert "  START -> home;" in out

    def test_out_file(self, wizard_file, tmp_path, capsys):
        out_path = tmp_path / "wizard.dot"
        assert main(["dot", str(wizard_file), "--mode", "outcomes", "--out", str(out_path)]) == 0
        assert capsys.readouterr().out == ""
        assert "rule_1" in out_path.read_text(encoding="utf-8")


class TestRender:

    def test_example_to_file(self, tmp_path):
        out_path = tmp_path / "page.html"
        assert main(["render", "--example", "--out", str(out_path), "--css", "/site.css"]) == 0
        html = out_path.read_text(encoding="utf-8")
        assert html.startswith("<!DOCTYPE html>")
        assert '<link rel="stylesheet" href="/site.css">' in html

    def test_page_file(self, tmp_path, capsys):
        path = tmp_path / "page.yaml"
        path.write_text(page_to_yaml(build_example_page()), encoding="utf-8")
        assert main(["render", str(path), "--breadcrumbs"]) == 0
        assert 'class="breadcrumbs"' in capsys.readouterr().out

    def test_nothing_to_render(self, capsys):
        assert main(["render"]) == 2
        assert "render needs a page file or --example" in capsys.readouterr().err

    def test_collect_url_from_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("BLOCKPAGE_COLLECT_URL", "https://collect.example.test/in")
        assert main(["render", "--example"]) == 0
        assert 'action="https://collect.example.test/in"' in capsys.readouterr().out


class TestSettings:

    def test_bad_settings_file(self, tmp_path, capsys):
        path = tmp_path / "settings.yaml"
        path.write_text("colour: blue\n", encoding="utf-8")
        assert main(["--settings", str(path), "eval", "true"]) == 2
        assert "invalid settings: Unknown setting: colour" in capsys.readouterr().err

    def test_bad_log_level(self, capsys):
        assert main(["--log-level", "LOUD", "eval", "true"]) == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("blockpage ")
