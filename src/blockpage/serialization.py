"""
Serialization helpers for blockpage objects (envelopes, pages, wizards).

Authored documents use camelCase keys (siteTitle, nextStep, goTo,
resultRules); Python objects use snake_case. Conversion goes through an
intermediate dict representation, then JSON or YAML.

Malformed input raises DefinitionError. Recoverable authoring problems
(an unknown field type or mode) emit a UserWarning and fall back to the
default.
"""
from __future__ import annotations

import json
import warnings
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Type, TypeVar

import yaml

from blockpage.errors import DefinitionError
from blockpage.model import (
    BlockEnvelope,
    Branch,
    CallToAction,
    Field,
    FieldType,
    LeadCaptureSpec,
    Option,
    PageDefinition,
    RenderContext,
    ResultRule,
    ResultTemplate,
    ScoreBand,
    ScoreOutcome,
    ScoringMethod,
    ScoringSpec,
    Step,
    WizardDefinition,
    WizardMode,
)

E = TypeVar("E", bound=Enum)

_CONTEXT_KEYS = {
    "domain": "domain",
    "site_title": "siteTitle",
    "route": "route",
    "theme": "theme",
    "skin": "skin",
    "page_title": "pageTitle",
    "page_description": "pageDescription",
    "published_at": "publishedAt",
    "updated_at": "updatedAt",
    "og_image_path": "ogImagePath",
    "head_scripts": "headScripts",
    "body_scripts": "bodyScripts",
    "collect_url": "collectUrl",
}


def _require_mapping(d: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(d, Mapping):
        raise DefinitionError(f"{what} must be a mapping, got {type(d).__name__}")
    return d


def _enum_or_default(enum_cls: Type[E], raw: Any, default: E, what: str) -> E:
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        warnings.warn(f"Unknown {what} {raw!r}; using {default.value!r}", UserWarning)
        return default


# ============================================================================
# BLOCK ENVELOPES AND PAGES
# ============================================================================

def envelope_to_dict(b: BlockEnvelope) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": b.id, "type": b.type, "config": dict(b.config), "content": b.content}
    if b.variant is not None:
        d["variant"] = b.variant
    return d


def envelope_from_dict(d: Any) -> BlockEnvelope:
    d = _require_mapping(d, "Block")
    if not d.get("type"):
        raise DefinitionError(f"Block {d.get('id')!r} has no type")
    if not d.get("id"):
        raise DefinitionError(f"Block of type {d.get('type')!r} has no id")
    return BlockEnvelope(
        id=str(d["id"]),
        type=str(d["type"]),
        config=dict(d.get("config") or {}),
        content=d.get("content") or {},
        variant=d.get("variant"),
    )


def context_to_dict(ctx: RenderContext) -> Dict[str, Any]:
    d = {}
    for attr, key in _CONTEXT_KEYS.items():
        value = getattr(ctx, attr)
        if value is not None:
            d[key] = value
    return d


def context_from_dict(d: Any) -> RenderContext:
    d = _require_mapping(d, "Context")
    kwargs = {}
    for attr, key in _CONTEXT_KEYS.items():
        if key in d:
            kwargs[attr] = d[key]
        elif attr in d:
            kwargs[attr] = d[attr]
    if not kwargs.get("domain"):
        raise DefinitionError("Context requires a domain")
    kwargs.setdefault("site_title", kwargs["domain"])
    return RenderContext(**kwargs)


def page_to_dict(page: PageDefinition) -> Dict[str, Any]:
    return {
        "context": context_to_dict(page.context),
        "blocks": [envelope_to_dict(b) for b in page.blocks],
    }


def page_from_dict(d: Any) -> PageDefinition:
    d = _require_mapping(d, "Page")
    blocks = d.get("blocks") or []
    if not isinstance(blocks, list):
        raise DefinitionError("Page blocks must be a list")
    return PageDefinition(
        blocks=[envelope_from_dict(b) for b in blocks],
        context=context_from_dict(d.get("context") or {}),
    )


# ============================================================================
# WIZARD DEFINITIONS
# ============================================================================

def cta_to_dict(c: CallToAction | None) -> Dict[str, Any] | None:
    if c is None:
        return None
    return {"text": c.text, "url": c.url}


def cta_from_dict(d: Any) -> CallToAction | None:
    if not d:
        return None
    d = _require_mapping(d, "CTA")
    return CallToAction(text=str(d.get("text", "")), url=str(d.get("url", "")))


def field_to_dict(f: Field) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": f.id, "type": f.type.value, "label": f.label}
    if f.options:
        d["options"] = [{"value": o.value, "label": o.label} for o in f.options]
    if f.required:
        d["required"] = True
    return d


def field_from_dict(d: Any) -> Field:
    d = _require_mapping(d, "Field")
    if not d.get("id"):
        raise DefinitionError("Field has no id")
    return Field(
        id=str(d["id"]),
        type=_enum_or_default(FieldType, d.get("type"), FieldType.TEXT, f"field type for {d['id']!r}"),
        label=str(d.get("label", "")),
        options=[
            Option(value=str(o.get("value", "")), label=str(o.get("label", o.get("value", ""))))
            for o in d.get("options") or []
        ],
        required=bool(d.get("required", False)),
    )


def step_to_dict(s: Step) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": s.id,
        "title": s.title,
        "fields": [field_to_dict(f) for f in s.fields],
    }
    if s.description is not None:
        d["description"] = s.description
    if s.next_step is not None:
        d["nextStep"] = s.next_step
    if s.branches:
        d["branches"] = [{"condition": b.condition, "goTo": b.go_to} for b in s.branches]
    return d


def step_from_dict(d: Any) -> Step:
    d = _require_mapping(d, "Step")
    if not d.get("id"):
        raise DefinitionError("Step has no id")
    return Step(
        id=str(d["id"]),
        title=str(d.get("title", "")),
        description=d.get("description"),
        fields=[field_from_dict(f) for f in d.get("fields") or []],
        next_step=d.get("nextStep", d.get("next_step")),
        branches=[
            Branch(condition=str(b.get("condition", "")), go_to=str(b.get("goTo", b.get("go_to", ""))))
            for b in d.get("branches") or []
        ],
    )


def rule_to_dict(r: ResultRule) -> Dict[str, Any]:
    d: Dict[str, Any] = {"condition": r.condition, "title": r.title, "body": r.body}
    if r.cta is not None:
        d["cta"] = cta_to_dict(r.cta)
    return d


def rule_from_dict(d: Any) -> ResultRule:
    d = _require_mapping(d, "Result rule")
    return ResultRule(
        condition=str(d.get("condition", "")),
        title=str(d.get("title", "")),
        body=str(d.get("body", "")),
        cta=cta_from_dict(d.get("cta")),
    )


def scoring_to_dict(s: ScoringSpec | None) -> Dict[str, Any] | None:
    if s is None:
        return None
    return {
        "method": s.method.value,
        "weights": dict(s.weights),
        "valueMap": {k: dict(v) for k, v in s.value_map.items()},
        "bands": [
            {"min": b.min, "max": b.max, "label": b.label, "description": b.description}
            for b in s.bands
        ],
        "outcomes": [
            {"min": o.min, "max": o.max, "title": o.title, "body": o.body, "cta": cta_to_dict(o.cta)}
            for o in s.outcomes
        ],
    }


def scoring_from_dict(d: Any) -> ScoringSpec | None:
    if not d:
        return None
    d = _require_mapping(d, "Scoring")
    try:
        return ScoringSpec(
            method=_enum_or_default(ScoringMethod, d.get("method"), ScoringMethod.COMPLETION, "scoring method"),
            weights={str(k): v for k, v in (d.get("weights") or {}).items()},
            value_map={
                str(k): {str(vk): float(vv) for vk, vv in (v or {}).items()}
                for k, v in (d.get("valueMap") or {}).items()
            },
            bands=[
                ScoreBand(min=float(b["min"]), max=float(b["max"]), label=str(b.get("label", "")),
                          description=b.get("description"))
                for b in d.get("bands") or []
            ],
            outcomes=[
                ScoreOutcome(min=float(o["min"]), max=float(o["max"]), title=str(o.get("title", "")),
                             body=str(o.get("body", "")), cta=cta_from_dict(o.get("cta")))
                for o in d.get("outcomes") or []
            ],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DefinitionError(f"Invalid scoring definition: {e}") from e


def lead_to_dict(spec: LeadCaptureSpec | None) -> Dict[str, Any] | None:
    if spec is None:
        return None
    return {"fields": list(spec.fields), "consentText": spec.consent_text, "endpoint": spec.endpoint}


def lead_from_dict(d: Any) -> LeadCaptureSpec | None:
    if not d:
        return None
    d = _require_mapping(d, "Lead capture")
    return LeadCaptureSpec(
        fields=[str(f) for f in d.get("fields") or []],
        consent_text=str(d.get("consentText", "")),
        endpoint=str(d.get("endpoint", "")),
    )


def wizard_to_dict(w: WizardDefinition) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "steps": [step_to_dict(s) for s in w.steps],
        "resultRules": [rule_to_dict(r) for r in w.result_rules],
        "resultTemplate": w.result_template.value,
        "mode": w.mode.value,
        "showProgress": w.show_progress,
        "showAnswerSummary": w.show_answer_summary,
    }
    if w.collect_lead is not None:
        d["collectLead"] = lead_to_dict(w.collect_lead)
    if w.scoring is not None:
        d["scoring"] = scoring_to_dict(w.scoring)
    return d


def wizard_from_dict(content: Any, config: Mapping[str, Any] | None = None) -> WizardDefinition:
    """
    Build a WizardDefinition from Wizard block content (plus config).

    Presentation settings (mode, showProgress, showAnswerSummary) are read
    from config first, then from content.
    """
    content = _require_mapping(content, "Wizard content")
    config = config or {}

    def setting(key: str, default: Any) -> Any:
        if key in config:
            return config[key]
        return content.get(key, default)

    return WizardDefinition(
        steps=[step_from_dict(s) for s in content.get("steps") or []],
        result_rules=[rule_from_dict(r) for r in content.get("resultRules") or []],
        result_template=_enum_or_default(
            ResultTemplate, content.get("resultTemplate"), ResultTemplate.SUMMARY, "result template"
        ),
        mode=_enum_or_default(WizardMode, setting("mode", None), WizardMode.WIZARD, "wizard mode"),
        collect_lead=lead_from_dict(content.get("collectLead")),
        scoring=scoring_from_dict(content.get("scoring")),
        show_progress=bool(setting("showProgress", True)),
        show_answer_summary=bool(setting("showAnswerSummary", False)),
    )


def wizard_from_block(block: BlockEnvelope) -> WizardDefinition:
    return wizard_from_dict(block.content, block.config)


def wizard_from_document(d: Any) -> WizardDefinition:
    """Accept either bare wizard content or a whole Wizard block envelope."""
    d = _require_mapping(d, "Wizard document")
    if d.get("type") == "Wizard" and "content" in d:
        return wizard_from_dict(d["content"], d.get("config"))
    return wizard_from_dict(d)


# ============================================================================
# TEXT FORMATS
# ============================================================================

def _load_text(text: str, fmt: str) -> Any:
    try:
        if fmt == "json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DefinitionError(f"Could not parse {fmt.upper()} document: {e}") from e


def _format_for(path: Path) -> str:
    return "json" if path.suffix.lower() == ".json" else "yaml"


def blocks_from_yaml(s: str) -> List[BlockEnvelope]:
    d = _load_text(s, "yaml") or []
    if isinstance(d, Mapping):
        d = d.get("blocks") or []
    if not isinstance(d, list):
        raise DefinitionError("Expected a list of blocks")
    return [envelope_from_dict(b) for b in d]


def page_to_json(page: PageDefinition) -> str:
    return json.dumps(page_to_dict(page), sort_keys=True)


def page_from_json(s: str) -> PageDefinition:
    return page_from_dict(_load_text(s, "json"))


def page_to_yaml(page: PageDefinition) -> str:
    return yaml.safe_dump(page_to_dict(page), sort_keys=False)


def page_from_yaml(s: str) -> PageDefinition:
    return page_from_dict(_load_text(s, "yaml"))


def wizard_to_json(w: WizardDefinition) -> str:
    return json.dumps(wizard_to_dict(w), sort_keys=True)


def wizard_from_json(s: str) -> WizardDefinition:
    return wizard_from_document(_load_text(s, "json"))


def wizard_to_yaml(w: WizardDefinition) -> str:
    return yaml.safe_dump(wizard_to_dict(w), sort_keys=False)


def wizard_from_yaml(s: str) -> WizardDefinition:
    return wizard_from_document(_load_text(s, "yaml"))


def load_document(path: str | Path) -> Any:
    """
    Read a JSON (by .json suffix) or YAML file into plain data.

    Raises:
        DefinitionError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DefinitionError(f"Cannot read {path}: {e}") from e
    return _load_text(text, _format_for(path))


def load_page(path: str | Path) -> PageDefinition:
    return page_from_dict(load_document(path))


def load_wizard(path: str | Path) -> WizardDefinition:
    return wizard_from_document(load_document(path))
