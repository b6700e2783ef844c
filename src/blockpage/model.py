"""
Core Block and Wizard Model Objects

Defines the data structures that flow through page assembly and the
wizard state machine:
    - Block envelopes (typed, authored units of page content)
    - Render context (read-only parameters shared by every renderer)
    - Wizard definitions (steps, fields, branches, result rules, scoring)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about HTML
        - Hold condition and formula TEXT, never compiled programs
        - Are fully serializable (see blockpage.serialization)
        - Represent structure, not behavior
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

AnswerValue = Union[str, int, float, bool, List[str]]
Answers = Dict[str, AnswerValue]


class BlockType(Enum):
    """
    The closed set of block type tags.

    Envelopes keep their raw tag string; use BlockType.from_tag() to map
    it here. Tags outside this set render as placeholders.
    """

    HEADER = "Header"
    FOOTER = "Footer"
    SIDEBAR = "Sidebar"
    HERO = "Hero"
    ARTICLE_BODY = "ArticleBody"
    FAQ = "FAQ"
    STEP_BY_STEP = "StepByStep"
    CHECKLIST = "Checklist"
    AUTHOR_BIO = "AuthorBio"
    COMPARISON_TABLE = "ComparisonTable"
    VS_CARD = "VsCard"
    RANKING_LIST = "RankingList"
    PROS_CONS_CARD = "ProsConsCard"
    LEAD_FORM = "LeadForm"
    CTA_BANNER = "CTABanner"
    PRICING_TABLE = "PricingTable"
    QUOTE_CALCULATOR = "QuoteCalculator"
    COST_BREAKDOWN = "CostBreakdown"
    STAT_GRID = "StatGrid"
    DATA_TABLE = "DataTable"
    TESTIMONIAL_GRID = "TestimonialGrid"
    TRUST_BADGES = "TrustBadges"
    CITATION_BLOCK = "CitationBlock"
    LAST_UPDATED = "LastUpdated"
    MEDICAL_DISCLAIMER = "MedicalDisclaimer"
    WIZARD = "Wizard"
    GEO_CONTENT = "GeoContent"
    INTERACTIVE_MAP = "InteractiveMap"
    PDF_DOWNLOAD = "PdfDownload"
    SCROLL_CTA = "ScrollCTA"
    EMBED_WIDGET = "EmbedWidget"
    RESOURCE_GRID = "ResourceGrid"
    LATEST_ARTICLES = "LatestArticles"

    @classmethod
    def from_tag(cls, tag: Any) -> Optional["BlockType"]:
        """Map a raw type tag to its enum member, or None if unknown."""
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class BlockEnvelope:
    """
    A single authored unit of page content.

    Properties:
        id: Stable block identifier (used in data-block-id)
        type: Raw type tag as authored; may be unknown
        config: Presentation options (position, trigger, fullWidth, ...)
        content: Block payload; shape depends on type
        variant: Optional visual variant name

    IMPORTANT:
        Envelopes are read-only to this package. Renderers must never
        mutate config or content.
    """

    id: str
    type: str
    config: Dict[str, Any] = field(default_factory=dict)
    content: Dict[str, Any] = field(default_factory=dict)
    variant: Optional[str] = None

    @property
    def block_type(self) -> Optional[BlockType]:
        return BlockType.from_tag(self.type)


@dataclass(frozen=True)
class RenderContext:
    """
    Read-only parameter bag passed to every renderer.

    Frozen so that concurrent renderers can share one instance.
    """

    domain: str
    site_title: str
    route: str = "/"
    theme: str = "default"
    skin: str = "default"
    page_title: Optional[str] = None
    page_description: Optional[str] = None
    published_at: Optional[str] = None
    updated_at: Optional[str] = None
    og_image_path: Optional[str] = None
    head_scripts: str = ""
    body_scripts: str = ""
    collect_url: Optional[str] = None

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def canonical_url(self) -> str:
        route = self.route if self.route.startswith("/") else f"/{self.route}"
        return f"{self.base_url}{route}"


@dataclass
class PageDefinition:
    """An ordered block list plus the context it is rendered with."""

    blocks: List[BlockEnvelope]
    context: RenderContext


# ============================================================================
# WIZARD DEFINITION
# ============================================================================

class FieldType(Enum):
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SELECT = "select"
    NUMBER = "number"
    TEXT = "text"


class ResultTemplate(Enum):
    SUMMARY = "summary"
    RECOMMENDATION = "recommendation"
    SCORE = "score"
    ELIGIBILITY = "eligibility"


class WizardMode(Enum):
    WIZARD = "wizard"
    CONFIGURATOR = "configurator"
    QUIZ = "quiz"
    SURVEY = "survey"
    ASSESSMENT = "assessment"


class ScoringMethod(Enum):
    COMPLETION = "completion"
    WEIGHTED = "weighted"


@dataclass
class Option:
    value: str
    label: str


@dataclass
class Field:
    """
    One input on a wizard step.

    Checkbox answers are lists of option values; every other type
    answers with a scalar.
    """

    id: str
    type: FieldType = FieldType.TEXT
    label: str = ""
    options: List[Option] = field(default_factory=list)
    required: bool = False


@dataclass
class Branch:
    """
    Conditional jump out of a step.

    Properties:
        condition: Condition text, e.g. "budget > 500 && plan == 'pro'"
        go_to: Target step id
    """

    condition: str
    go_to: str


@dataclass
class Step:
    """
    A wizard step.

    Routing after a valid Next:
        1. First branch whose condition is true (declared order)
        2. next_step, if set
        3. The following step in declared order

    A target past the last step leads to Results.
    """

    id: str
    title: str
    description: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    next_step: Optional[str] = None
    branches: List[Branch] = field(default_factory=list)


@dataclass
class CallToAction:
    text: str
    url: str


@dataclass
class ResultRule:
    """Outcome card shown when its condition holds at Results."""

    condition: str
    title: str
    body: str
    cta: Optional[CallToAction] = None


@dataclass
class ScoreBand:
    min: float
    max: float
    label: str
    description: Optional[str] = None

    def contains(self, score: float) -> bool:
        return self.min <= score <= self.max


@dataclass
class ScoreOutcome:
    min: float
    max: float
    title: str
    body: str
    cta: Optional[CallToAction] = None

    def contains(self, score: float) -> bool:
        return self.min <= score <= self.max


@dataclass
class ScoringSpec:
    """
    How a session is scored.

    Properties:
        method: completion or weighted
        weights: field id → weight (weighted method only)
        value_map: field id → {answer value → 0..100}
        bands: score ranges → labels
        outcomes: score ranges → result cards (used when no rule matches)
    """

    method: ScoringMethod = ScoringMethod.COMPLETION
    weights: Dict[str, float] = field(default_factory=dict)
    value_map: Dict[str, Dict[str, float]] = field(default_factory=dict)
    bands: List[ScoreBand] = field(default_factory=list)
    outcomes: List[ScoreOutcome] = field(default_factory=list)


@dataclass
class LeadCaptureSpec:
    """Lead form shown at Results: field names, consent copy, POST target."""

    fields: List[str] = field(default_factory=list)
    consent_text: str = ""
    endpoint: str = ""


@dataclass
class WizardDefinition:
    """
    Root container for a multi-step wizard.

    INVARIANTS (checked by blockpage.analyzer, not enforced here):
        - Step ids are unique
        - Branch and next_step targets name existing steps
        - Conditions reference declared field ids
    """

    steps: List[Step] = field(default_factory=list)
    result_rules: List[ResultRule] = field(default_factory=list)
    result_template: ResultTemplate = ResultTemplate.SUMMARY
    mode: WizardMode = WizardMode.WIZARD
    collect_lead: Optional[LeadCaptureSpec] = None
    scoring: Optional[ScoringSpec] = None
    show_progress: bool = True
    show_answer_summary: bool = False

    def get_step(self, step_id: str) -> Optional[Step]:
        """
        Retrieve a step by ID.

        Returns:
            Step object or None if not found
        """
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def step_index(self, step_id: str) -> Optional[int]:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def all_fields(self) -> List[Field]:
        return [f for step in self.steps for f in step.fields]

    def get_field(self, field_id: str) -> Optional[Field]:
        for f in self.all_fields():
            if f.id == field_id:
                return f
        return None

    def required_fields(self) -> List[Field]:
        return [f for f in self.all_fields() if f.required]
