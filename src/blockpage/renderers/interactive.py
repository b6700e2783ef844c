"""
Interactive renderers: QuoteCalculator, LeadForm, Wizard.

IMPORTANT:
    These renderers emit markup plus inert JSON data. Author text
    (formulas, conditions) is never turned into executable script:
    calculator expressions are sanitized per output before they are
    serialized, and wizard conditions travel as plain strings for the
    shared evaluator.
"""

from typing import Any, Dict, List

from blockpage.formulas import (
    CalculatorOutput,
    calculator_expressions,
    compute_outputs,
    format_output,
)
from blockpage.model import BlockEnvelope, Field, FieldType, RenderContext
from blockpage.renderers.markup import attr, escape, json_data, safe_url
from blockpage.serialization import wizard_from_block, wizard_to_dict
from blockpage.wizard import mode_copy

_LEAD_INPUT_TYPES = {"text", "email", "tel", "number", "url", "date"}
_AUTOCOMPLETE = {
    "email": "email",
    "phone": "tel",
    "tel": "tel",
    "name": "name",
    "firstName": "given-name",
    "lastName": "family-name",
    "zip": "postal-code",
    "city": "address-level2",
    "state": "address-level1",
    "address": "street-address",
    "company": "organization",
}


# ============================================================================
# QUOTE CALCULATOR
# ============================================================================

def _input_default(inp: Dict[str, Any]) -> Any:
    if inp.get("default") is not None:
        return inp["default"]
    if inp.get("type") == "range":
        return inp.get("min", 0)
    if inp.get("type") == "select" and inp.get("options"):
        return inp["options"][0].get("value", 0)
    return 0


def _render_calculator_input(inp: Dict[str, Any]) -> str:
    input_id = escape(inp.get("id"))
    label = escape(inp.get("label"))
    unit = inp.get("unit")
    unit_html = f'<span class="calc-unit">{escape(unit)}</span>' if unit else ""

    if inp.get("type") == "select" and inp.get("options"):
        options = "".join(
            f'<option value="{escape(o.get("value"))}">{escape(o.get("label"))}</option>'
            for o in inp["options"]
        )
        return (
            f'<div class="calc-field"><label for="{input_id}">{label}</label>'
            f'<select id="{input_id}" name="{input_id}" class="calc-input">{options}</select></div>'
        )

    input_type = "range" if inp.get("type") == "range" else "number"
    bounds = attr("min", inp.get("min")) + attr("max", inp.get("max")) + attr("step", inp.get("step"))
    return (
        f'<div class="calc-field"><label for="{input_id}">{label}</label>'
        f'<div class="calc-input-group"><input type="{input_type}" id="{input_id}" name="{input_id}"'
        f' class="calc-input"{bounds}{attr("value", _input_default(inp))}>{unit_html}</div></div>'
    )


def render_quote_calculator(block: BlockEnvelope, ctx: RenderContext, strict: bool = False) -> str:
    """
    Render calculator inputs, result cards and the sanitized expressions.

    Result cards are pre-filled with the values computed from input
    defaults; outputs with no usable expression show a dash.

    Raises:
        FormulaSyntaxError: In strict mode, when a formula contains
            characters outside the allow-list.
    """
    content = block.content
    inputs: List[Dict[str, Any]] = content.get("inputs") or []
    if not inputs:
        return ""

    outputs = [CalculatorOutput.from_dict(o) for o in content.get("outputs") or []]
    formula = content.get("formula") or ""
    expressions = calculator_expressions(formula, outputs, strict=strict)

    defaults = {str(inp.get("id")): _input_default(inp) for inp in inputs}
    results = compute_outputs(formula, outputs, defaults)

    cards = "".join(
        f'<div class="calc-result-card"><span class="calc-result-label">{escape(out.label)}</span>'
        f'<span class="calc-result-value" id="result-{escape(out.id)}">'
        f'{escape(format_output(results.get(out.id), out))}'
        f"</span></div>"
        for out in outputs
    )

    data = {
        "inputs": [str(inp.get("id")) for inp in inputs],
        "outputs": [
            {"id": out.id, "format": out.format, "decimals": out.decimals, "expression": expressions.get(out.id)}
            for out in outputs
        ],
    }

    heading = content.get("heading") or block.config.get("heading")
    heading_html = f"<h2>{escape(heading)}</h2>" if heading else ""

    assumptions = content.get("assumptions") or []
    assumptions_html = (
        '<details class="calc-methodology"><summary>Assumptions</summary><ul>'
        + "".join(f"<li>{escape(a)}</li>" for a in assumptions)
        + "</ul></details>"
        if assumptions
        else ""
    )
    methodology = content.get("methodology")
    methodology_html = (
        f'<details class="calc-methodology"><summary>Methodology</summary><p>{escape(methodology)}</p></details>'
        if methodology
        else ""
    )

    return (
        f'<section class="calc-section">{heading_html}<form class="calc-form">'
        f'{"".join(_render_calculator_input(inp) for inp in inputs)}</form>'
        f'<div class="calc-results">{cards}</div>{assumptions_html}{methodology_html}'
        f'{json_data(data, "calc-data")}</section>'
    )


# ============================================================================
# LEAD FORM
# ============================================================================

def _render_lead_field(field: Dict[str, Any]) -> str:
    name = str(field.get("name") or "")
    field_id = escape(name)
    label = escape(field.get("label") or name)
    required = " required" if field.get("required") is not False else ""
    autocomplete = attr("autocomplete", _AUTOCOMPLETE.get(name))
    placeholder = escape(field.get("placeholder") or field.get("label") or name)

    if field.get("type") == "select" and field.get("options"):
        options = "".join(f'<option value="{escape(o)}">{escape(o)}</option>' for o in field["options"])
        return (
            f'<div class="lead-field"><select id="{field_id}" name="{field_id}"{required}>'
            f'<option value="">{label}</option>{options}</select></div>'
        )
    if field.get("type") == "textarea":
        return (
            f'<div class="lead-field"><textarea id="{field_id}" name="{field_id}"'
            f' placeholder="{placeholder}"{required}></textarea></div>'
        )

    input_type = field.get("type") if field.get("type") in _LEAD_INPUT_TYPES else "text"
    return (
        f'<div class="lead-field"><input type="{input_type}" id="{field_id}" name="{field_id}"'
        f' placeholder="{placeholder}"{required}{autocomplete}></div>'
    )


def render_lead_form(block: BlockEnvelope, ctx: RenderContext) -> str:
    """
    Render a lead capture form.

    The form posts to config.endpoint, or to the site's collect URL when
    no endpoint is set. With neither, nothing is rendered.
    """
    content = block.content
    fields = content.get("fields") or []
    endpoint = block.config.get("endpoint")
    if endpoint == "#":
        endpoint = None
    action = endpoint or ctx.collect_url
    if not fields or not action:
        return ""

    heading = content.get("heading")
    subheading = content.get("subheading")
    consent = content.get("consentText")
    privacy_url = content.get("privacyUrl") or "/privacy"
    submit_label = block.config.get("submitLabel") or "GET STARTED"
    success = content.get("successMessage") or "Thank you! We'll be in touch shortly."

    parts = []
    if heading:
        parts.append(f'<h2 class="lead-heading">{escape(heading)}</h2>')
    if subheading:
        parts.append(f'<p class="lead-subheading">{escape(subheading)}</p>')
    if content.get("disclosureAboveFold"):
        parts.append(f'<div class="disclosure-above">{escape(content["disclosureAboveFold"])}</div>')

    fields_html = "".join(_render_lead_field(f) for f in fields)
    consent_html = (
        f'<div class="consent"><label><input type="checkbox" name="consent" required> {escape(consent)}'
        f' <a href="{safe_url(privacy_url)}">Privacy Policy</a></label></div>'
        if consent
        else ""
    )

    parts.append(
        f'<form class="lead-form" action="{safe_url(action)}" method="POST"'
        f' data-form-type="lead"{attr("data-route", ctx.route)}{attr("data-domain", ctx.domain)}'
        f'{attr("data-success", success)}>'
        f'{fields_html}{consent_html}<button type="submit">{escape(submit_label)}</button></form>'
    )
    return f'<section class="lead-section">{"".join(parts)}</section>'


# ============================================================================
# WIZARD
# ============================================================================

def _render_wizard_field(field: Field) -> str:
    field_id = escape(field.id)
    label = escape(field.label)
    required = " required" if field.required else ""

    if field.type in (FieldType.RADIO, FieldType.CHECKBOX):
        if not field.options:
            return ""
        kind = field.type.value
        # Browsers cannot require "at least one" checkbox natively
        req = required if field.type == FieldType.RADIO else ""
        choices = "".join(
            f'<label class="wizard-{kind}"><input type="{kind}" name="{field_id}"'
            f' value="{escape(o.value)}"{req}><span>{escape(o.label)}</span></label>'
            for o in field.options
        )
        return f'<fieldset class="wizard-field" data-field-id="{field_id}"><legend>{label}</legend>{choices}</fieldset>'

    if field.type == FieldType.SELECT:
        options = "".join(f'<option value="{escape(o.value)}">{escape(o.label)}</option>' for o in field.options)
        control = (
            f'<select id="wf-{field_id}" name="{field_id}"{required}>'
            f'<option value="">Select...</option>{options}</select>'
        )
    elif field.type == FieldType.NUMBER:
        control = f'<input type="number" id="wf-{field_id}" name="{field_id}" inputmode="numeric"{required}>'
    else:
        control = f'<input type="text" id="wf-{field_id}" name="{field_id}"{required}>'

    return (
        f'<div class="wizard-field" data-field-id="{field_id}">'
        f'<label for="wf-{field_id}">{label}</label>{control}</div>'
    )


def render_wizard(block: BlockEnvelope, ctx: RenderContext) -> str:
    definition = wizard_from_block(block)
    steps = definition.steps
    if not steps:
        return ""
    copy = mode_copy(definition.mode)
    mode = escape(definition.mode.value)

    progress = ""
    if definition.show_progress:
        segments = "".join(
            f'<div class="wizard-progress-segment{" active" if i == 0 else ""}" data-index="{i}">'
            f'<span class="wizard-progress-dot">{i + 1}</span>'
            f'<span class="wizard-progress-label">{escape(step.title)}</span></div>'
            for i, step in enumerate(steps)
        )
        progress = f'<div class="wizard-progress">{segments}</div>'

    step_parts = []
    for i, step in enumerate(steps):
        description = f'<p class="wizard-step-desc">{escape(step.description)}</p>' if step.description else ""
        back = '<button type="button" class="wizard-back">Back</button>' if i > 0 else "<span></span>"
        next_label = copy.final_step_label if i == len(steps) - 1 else "Next"
        hidden = " hidden" if i > 0 else ""
        step_parts.append(
            f'<div class="wizard-step" data-step-id="{escape(step.id)}" data-step-index="{i}"{hidden}>'
            f'<h3 class="wizard-step-title">{escape(step.title)}</h3>{description}'
            f'{"".join(_render_wizard_field(f) for f in step.fields)}'
            f'<div class="wizard-nav">{back}<button type="button" class="wizard-next">{escape(next_label)}</button></div>'
            f"</div>"
        )

    lead_html = ""
    lead = definition.collect_lead
    if lead is not None:
        action = ctx.collect_url or lead.endpoint
        lead_fields = "".join(
            f'<div class="wizard-field"><label for="lead-{escape(name)}">{escape(name[:1].upper() + name[1:])}</label>'
            f'<input type="{"email" if name == "email" else "tel" if name == "phone" else "text"}"'
            f' id="lead-{escape(name)}" name="{escape(name)}" required></div>'
            for name in lead.fields
        )
        lead_html = (
            f'<div class="wizard-lead-form" hidden><h4>{escape(copy.lead_title)}</h4>'
            f'<form class="wizard-lead" action="{safe_url(action)}" method="POST">{lead_fields}'
            f'<div class="consent"><label><input type="checkbox" required> {escape(lead.consent_text)}</label></div>'
            f'<button type="submit">{escape(copy.lead_button)}</button></form></div>'
        )

    summary_html = (
        '<div class="wizard-answer-summary" hidden><h4>Selection Summary</h4><ul class="wizard-answer-list"></ul></div>'
        if copy.show_answer_summary or definition.show_answer_summary
        else ""
    )
    score_html = '<div class="wizard-quiz-score" hidden></div>' if copy.show_quiz_score else ""

    results_html = (
        f'<div class="wizard-results" hidden><h3 class="wizard-results-title">{escape(copy.results_title)}</h3>'
        f'{score_html}<div class="wizard-results-cards"></div>{summary_html}{lead_html}'
        f'<button type="button" class="wizard-restart">{escape(copy.restart_label)}</button></div>'
    )

    data = wizard_to_dict(definition)
    data["copy"] = {"emptyTitle": copy.empty_title, "emptyBody": copy.empty_body}

    return (
        f'<section class="wizard-section">'
        f'<div class="wizard-container wizard-mode-{mode}" data-wizard-mode="{mode}">'
        f'{progress}{"".join(step_parts)}{results_html}</div>'
        f'{json_data(data, "wizard-data")}</section>'
    )
