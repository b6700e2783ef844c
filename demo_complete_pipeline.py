#!/usr/bin/env python3
"""
Complete Pipeline Demo: Blocks → Analysis → Wizard Run → Diagrams → HTML

Shows the full workflow:
1. Build the example page definition
2. Lint the page and its embedded wizard
3. Walk a visitor through the wizard
4. Generate Graphviz diagrams of the step graph
5. Assemble the page to HTML
"""

from blockpage.analyzer import analyze_page
from blockpage.assembler import PageAssembler
from blockpage.backends import DotMode, generate_dot, save_dot_file
from blockpage.examples import build_example_page
from blockpage.renderers import build_default_registry
from blockpage.serialization import wizard_from_block
from blockpage.wizard import WizardSession


def main():
    print("=" * 80)
    print("COMPLETE PIPELINE DEMO: Blocks → Analysis → Wizard → Diagrams → HTML")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Build page
    # =========================================================================
    print("\n1. BUILDING PAGE...")
    page = build_example_page()
    print(f"   ✓ Route: {page.context.route}")
    print(f"   ✓ Blocks: {len(page.blocks)}")

    # =========================================================================
    # STEP 2: Analyze
    # =========================================================================
    print("\n2. ANALYZING PAGE...")
    registry = build_default_registry()
    report = analyze_page(page.blocks, registry)
    print(f"   ✓ Block types: {report.block_type_counts}")
    print(f"   ✓ Page ok: {report.ok}")
    for block_id, wizard_report in report.wizard_reports.items():
        print(f"   ✓ Wizard {block_id}: {wizard_report.total_steps} steps, "
              f"max condition depth {wizard_report.max_condition_depth}")
        for warning in wizard_report.warnings:
            print(f"      - {warning}")

    # =========================================================================
    # STEP 3: Run the wizard
    # =========================================================================
    print("\n3. RUNNING WIZARD...")
    block = next(b for b in page.blocks if b.type == "Wizard")
    definition = wizard_from_block(block)
    session = WizardSession(definition, route=page.context.route, domain=page.context.domain)

    visitor = [
        {"home_type": "house", "owner": "yes"},
        {"roof_age": 8, "shade": "none"},
        {"monthly_bill": 220, "extras": ["battery"]},
        {"goal": "save"},
    ]
    for answers in visitor:
        step = session.current_step
        session.advance(answers)
        print(f"   ✓ {step.id}: {answers}")

    results = session.results()
    print(f"   ✓ Score: {results.score}% ({results.band.label if results.band else 'no band'})")
    for card in results.cards:
        print(f"      - {card.title}")

    # =========================================================================
    # STEP 4: Diagrams
    # =========================================================================
    print("\n4. GENERATING DIAGRAMS...")
    for mode in DotMode:
        filename = f"wizard_{mode.value}.dot"
        save_dot_file(definition, filename, mode=mode)
        print(f"   ✓ Saved {filename}")

    lines = generate_dot(definition, mode=DotMode.DETAILED).split("\n")
    for line in lines[:12]:
        print(f"   {line}")
    if len(lines) > 12:
        print(f"   ... ({len(lines) - 12} more lines)")

    # =========================================================================
    # STEP 5: Assemble
    # =========================================================================
    print("\n5. ASSEMBLING HTML...")
    html = PageAssembler(registry, show_breadcrumbs=True).assemble_definition(page)
    with open("solar_check.html", "w", encoding="utf-8") as f:
        f.write(html)
    print(f"   ✓ Saved solar_check.html ({len(html)} characters)")

    print("\n" + "=" * 80)
    print("PIPELINE COMPLETE!")
    print("\nTo visualize the diagrams:")
    print("  dot -Tpng wizard_detailed.dot -o wizard_detailed.png")
    print("=" * 80)


if __name__ == "__main__":
    main()
