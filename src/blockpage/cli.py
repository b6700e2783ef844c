"""
blockpage command line.

Usage
-----
blockpage render page.yaml --out page.html
blockpage render --example
blockpage lint wizard.yaml
blockpage dot wizard.yaml --mode detailed --out wizard.dot
blockpage eval "age >= 18 && plan == 'pro'" --answers '{"age": 30, "plan": "pro"}'
blockpage calc "({net: price * qty})" --values '{"price": 9.5, "qty": 3}'

Exit codes: 0 success, 1 lint problems or a false condition with
--exit-status, 2 unreadable input.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from blockpage import __version__
from blockpage.analyzer import analyze_page, analyze_wizard
from blockpage.assembler import PageAssembler
from blockpage.backends import DotMode, generate_dot
from blockpage.conditions import evaluate_condition, validate_condition
from blockpage.config import ConfigError, Settings, load_settings, settings_from_dict
from blockpage.errors import DefinitionError
from blockpage.examples import build_example_page
from blockpage.formulas import CalculatorOutput, evaluate_calculator, parse_multi_output
from blockpage.renderers import build_default_registry
from blockpage.serialization import load_document, load_page, page_from_dict, wizard_from_document

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: int) -> None:
    """Configure root logging once per process."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(level)

    # Suppress noisy third-party loggers
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _parse_json_arg(raw: str, what: str) -> dict:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DefinitionError(f"Invalid JSON for {what}: {e}") from e
    if not isinstance(data, dict):
        raise DefinitionError(f"{what} must be a JSON object")
    return data


def _write_output(text: str, out: str | None) -> None:
    if out:
        Path(out).write_text(text, encoding="utf-8")
        logger.info("Wrote %s", out)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _print_problems(title: str, errors, warnings) -> None:
    for msg in errors:
        print(f"ERROR   {title}: {msg}")
    for msg in warnings:
        print(f"WARNING {title}: {msg}")


# ============================================================================
# COMMANDS
# ============================================================================

def _cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    if args.example:
        page = build_example_page()
    elif args.page:
        page = load_page(args.page)
    else:
        raise DefinitionError("render needs a page file or --example")

    context = page.context
    if settings.collect_url and not context.collect_url:
        context = replace(context, collect_url=settings.collect_url)

    registry = build_default_registry(strict_formulas=settings.strict_formulas)
    assembler = PageAssembler(
        registry,
        css_href=args.css,
        max_workers=settings.render_workers,
        show_breadcrumbs=args.breadcrumbs,
    )
    _write_output(assembler.assemble(page.blocks, context), args.out)
    return 0


def _cmd_lint(args: argparse.Namespace, settings: Settings) -> int:
    document = load_document(args.file)

    if isinstance(document, dict) and "blocks" in document:
        page = page_from_dict(document)
        report = analyze_page(page.blocks, build_default_registry())
        _print_problems(args.file, report.errors, report.warnings)
        for block_id, wizard_report in report.wizard_reports.items():
            _print_problems(f"{args.file}#{block_id}", wizard_report.errors, wizard_report.warnings)
        ok = report.ok
    else:
        report = analyze_wizard(wizard_from_document(document))
        _print_problems(args.file, report.errors, report.warnings)
        ok = report.ok

    if ok:
        print(f"OK      {args.file}")
    return 0 if ok else 1


def _cmd_dot(args: argparse.Namespace, settings: Settings) -> int:
    definition = wizard_from_document(load_document(args.file))
    _write_output(generate_dot(definition, mode=DotMode(args.mode)), args.out)
    return 0


def _cmd_eval(args: argparse.Namespace, settings: Settings) -> int:
    problems = validate_condition(args.condition)
    if problems and args.check:
        for problem in problems:
            print(f"ERROR   {problem}", file=sys.stderr)
        return 2

    answers = _parse_json_arg(args.answers, "--answers")
    result = evaluate_condition(args.condition, answers)
    print("true" if result else "false")
    if args.exit_status and not result:
        return 1
    return 0


def _cmd_calc(args: argparse.Namespace, settings: Settings) -> int:
    values = _parse_json_arg(args.values, "--values")
    multi = parse_multi_output(args.formula)
    ids = list(multi) if multi is not None else ["result"]
    outputs = [CalculatorOutput(id=i, label=i, format=args.format, decimals=args.decimals) for i in ids]
    for output_id, text in evaluate_calculator(args.formula, outputs, values).items():
        print(f"{output_id}: {text}")
    return 0


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="blockpage", description="Assemble block pages and check their logic")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--settings", help="YAML settings file")
    p.add_argument("--log-level", help="Override the configured log level")
    sp = p.add_subparsers(dest="cmd", required=True)

    pr = sp.add_parser("render", help="Render a page definition to HTML")
    pr.add_argument("page", nargs="?", help="Page YAML/JSON ({context, blocks})")
    pr.add_argument("--example", action="store_true", help="Render the built-in example page")
    pr.add_argument("--out", help="Output HTML path (default: stdout)")
    pr.add_argument("--css", default="/styles.css", help="Stylesheet href")
    pr.add_argument("--breadcrumbs", action="store_true", help="Render a visible breadcrumb trail")
    pr.set_defaults(func=_cmd_render)

    pl = sp.add_parser("lint", help="Check a wizard or page definition")
    pl.add_argument("file", help="Wizard or page YAML/JSON")
    pl.set_defaults(func=_cmd_lint)

    pd = sp.add_parser("dot", help="Draw a wizard's step graph as Graphviz DOT")
    pd.add_argument("file", help="Wizard YAML/JSON (bare content or a Wizard block)")
    pd.add_argument("--mode", choices=[m.value for m in DotMode], default=DotMode.SIMPLE.value)
    pd.add_argument("--out", help="Output .dot path (default: stdout)")
    pd.set_defaults(func=_cmd_dot)

    pe = sp.add_parser("eval", help="Evaluate a condition against answers")
    pe.add_argument("condition", help="Condition text")
    pe.add_argument("--answers", default="{}", help="Answers as a JSON object")
    pe.add_argument("--check", action="store_true", help="Fail on syntax errors instead of printing false")
    pe.add_argument("--exit-status", action="store_true", help="Exit 1 when the condition is false")
    pe.set_defaults(func=_cmd_eval)

    pc = sp.add_parser("calc", help="Evaluate a calculator formula")
    pc.add_argument("formula", help="Expression or ({id: expr, ...})")
    pc.add_argument("--values", default="{}", help="Input values as a JSON object")
    pc.add_argument("--format", choices=["number", "currency", "percent"], default="number")
    pc.add_argument("--decimals", type=int)
    pc.set_defaults(func=_cmd_calc)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings)
        if args.log_level:
            settings = settings_from_dict({"log_level": args.log_level}, settings)
    except ConfigError as e:
        print(f"blockpage: invalid settings: {e}", file=sys.stderr)
        return 2

    setup_logging(settings.logging_level)

    try:
        return int(args.func(args, settings))
    except DefinitionError as e:
        print(f"blockpage: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
