"""
Wizard State Machine.

One WizardSession drives one visitor through a WizardDefinition:

    step 0 --Next--> step k --Next--> ... --Next--> RESULTS
           <--Back--        <--Back--       <--Back--

State:
    answers   - field id → value, merged on every valid Next
    history   - stack of visited step indices (Back pops it)
    finished  - True once Next moves past the last step

Transitions:
    Next     validate required fields; on failure raise StepValidationError
             and change nothing. Otherwise route by the first true branch,
             then next_step, then declared order.
    Back     pop history; no validation; answers kept.
    Restart  clear everything and return to step 0.
    Results  every matching result rule becomes a card; with no match,
             a score outcome or the mode's empty-state card.

ARCHITECTURAL RULE:
    Sessions are single-threaded and never persisted. Conditions are
    evaluated only through blockpage.conditions.evaluate_condition.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from blockpage.conditions import evaluate_condition
from blockpage.errors import BlockPageError, DefinitionError
from blockpage.evaluator import to_text
from blockpage.leads import (
    DEFAULT_TIMEOUT,
    SubmissionResult,
    build_payload,
    submit_lead,
    submit_lead_async,
)
from blockpage.model import (
    CallToAction,
    ScoreBand,
    Step,
    WizardDefinition,
    WizardMode,
)
from blockpage.scoring import compute_score, is_answered, score_band, score_outcome

logger = logging.getLogger(__name__)


class StepValidationError(BlockPageError):
    """Raised by Next when required fields of the current step are empty."""

    def __init__(self, step_id: str, missing: List[str]):
        self.step_id = step_id
        self.missing = list(missing)
        super().__init__(f"Step '{step_id}' is missing required answers: {', '.join(self.missing)}")


class SubmissionStatus(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ModeCopy:
    """Visitor-facing wording and result features for one wizard mode."""

    final_step_label: str
    results_title: str
    restart_label: str
    empty_title: str
    empty_body: str
    lead_title: str
    lead_button: str
    show_answer_summary: bool
    show_quiz_score: bool


MODE_COPY: Dict[WizardMode, ModeCopy] = {
    WizardMode.WIZARD: ModeCopy(
        final_step_label="See Results",
        results_title="Your Results",
        restart_label="Start Over",
        empty_title="No matching results",
        empty_body="Please try different answers.",
        lead_title="Get Your Personalized Report",
        lead_button="Get My Results",
        show_answer_summary=False,
        show_quiz_score=False,
    ),
    WizardMode.CONFIGURATOR: ModeCopy(
        final_step_label="Review Configuration",
        results_title="Your Configuration",
        restart_label="Reconfigure",
        empty_title="Configuration ready",
        empty_body="Your current selections are shown below.",
        lead_title="Send Me This Configuration",
        lead_button="Save Configuration",
        show_answer_summary=True,
        show_quiz_score=False,
    ),
    WizardMode.QUIZ: ModeCopy(
        final_step_label="See Score",
        results_title="Your Score",
        restart_label="Retake Quiz",
        empty_title="Quiz complete",
        empty_body="You completed the quiz. Review your score below.",
        lead_title="Email My Quiz Results",
        lead_button="Send Results",
        show_answer_summary=False,
        show_quiz_score=True,
    ),
    WizardMode.SURVEY: ModeCopy(
        final_step_label="Submit Survey",
        results_title="Thanks for sharing",
        restart_label="Submit Another Response",
        empty_title="Submission recorded",
        empty_body="Thank you for completing this survey.",
        lead_title="Send Me A Copy",
        lead_button="Email My Response",
        show_answer_summary=True,
        show_quiz_score=False,
    ),
    WizardMode.ASSESSMENT: ModeCopy(
        final_step_label="See Assessment",
        results_title="Assessment Results",
        restart_label="Retake Assessment",
        empty_title="Assessment complete",
        empty_body="Review your outcome and recommendations below.",
        lead_title="Email My Assessment",
        lead_button="Send Assessment",
        show_answer_summary=True,
        show_quiz_score=True,
    ),
}


def mode_copy(mode: WizardMode) -> ModeCopy:
    return MODE_COPY.get(mode, MODE_COPY[WizardMode.WIZARD])


@dataclass
class ResultCard:
    """
    One outcome card on the Results screen.

    kind is "rule" (matched result rule), "outcome" (score outcome) or
    "empty" (nothing matched).
    """

    title: str
    body: str
    cta: Optional[CallToAction] = None
    kind: str = "rule"


@dataclass
class WizardResults:
    cards: List[ResultCard] = field(default_factory=list)
    score: Optional[int] = None
    band: Optional[ScoreBand] = None
    score_text: Optional[str] = None
    summary: List[Tuple[str, str]] = field(default_factory=list)


def missing_required(step: Step, answers: Mapping[str, Any]) -> List[str]:
    """Ids of required fields on a step with no usable answer."""
    return [f.id for f in step.fields if f.required and not is_answered(answers.get(f.id))]


class WizardSession:
    """
    Runtime state of one visitor's pass through a wizard.

    Args:
        definition: The wizard to run (must have at least one step)
        route: Page route, sent with lead submissions
        domain: Site domain, sent with lead submissions
        collect_url: Lead endpoint; overrides the definition's endpoint
        timeout: Lead submission timeout in seconds
    """

    def __init__(
        self,
        definition: WizardDefinition,
        route: str = "/",
        domain: str = "",
        collect_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not definition.steps:
            raise DefinitionError("Wizard has no steps")

        self.definition = definition
        self.route = route
        self.domain = domain
        self.collect_url = collect_url
        self.timeout = timeout
        self.copy = mode_copy(definition.mode)

        self.answers: Dict[str, Any] = {}
        self.history: List[int] = [0]
        self.finished = False
        self.submission_status = SubmissionStatus.IDLE
        self.last_submission: Optional[SubmissionResult] = None

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def current_index(self) -> Optional[int]:
        """Index of the visible step, or None on the Results screen."""
        return None if self.finished else self.history[-1]

    @property
    def current_step(self) -> Optional[Step]:
        index = self.current_index
        return None if index is None else self.definition.steps[index]

    @property
    def at_results(self) -> bool:
        return self.finished

    @property
    def is_last_step(self) -> bool:
        return not self.finished and self.history[-1] == len(self.definition.steps) - 1

    @property
    def next_label(self) -> str:
        return self.copy.final_step_label if self.is_last_step else "Next"

    def next_step_index(self, index: int) -> int:
        """
        Resolve the step that follows `index` under current answers.

        May return len(steps), meaning Results.
        """
        steps = self.definition.steps
        step = steps[index]

        for branch in step.branches:
            if not evaluate_condition(branch.condition, self.answers):
                continue
            target = self.definition.step_index(branch.go_to)
            if target is not None:
                return target
            logger.warning("Step %s branches to unknown step %r; skipping", step.id, branch.go_to)

        if step.next_step:
            target = self.definition.step_index(step.next_step)
            if target is not None:
                return target
            logger.warning("Step %s has unknown nextStep %r", step.id, step.next_step)

        return index + 1

    def advance(self, answers: Optional[Mapping[str, Any]] = None) -> Optional[Step]:
        """
        Submit answers for the current step and move on.

        Returns:
            The new current step, or None when Results is reached.

        Raises:
            StepValidationError: If a required field is empty. The
                session (answers included) is left unchanged.
        """
        if self.finished:
            return None

        index = self.history[-1]
        step = self.definition.steps[index]
        merged = {**self.answers, **(answers or {})}

        missing = missing_required(step, merged)
        if missing:
            raise StepValidationError(step.id, missing)

        self.answers = merged
        target = self.next_step_index(index)

        if target >= len(self.definition.steps):
            self.finished = True
            logger.debug("Wizard reached results from step %s", step.id)
            return None

        self.history.append(target)
        return self.definition.steps[target]

    def back(self) -> Step:
        """Return to the previous step (or leave Results) without validation."""
        if self.finished:
            self.finished = False
        elif len(self.history) > 1:
            self.history.pop()
        return self.definition.steps[self.history[-1]]

    def restart(self) -> Step:
        self.answers = {}
        self.history = [0]
        self.finished = False
        self.submission_status = SubmissionStatus.IDLE
        self.last_submission = None
        return self.definition.steps[0]

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def score(self) -> int:
        return compute_score(self.definition, self.answers)

    def answer_summary(self) -> List[Tuple[str, str]]:
        """(field label, answer text) pairs in answer order."""
        summary = []
        for field_id, value in self.answers.items():
            f = self.definition.get_field(field_id)
            label = (f.label if f is not None else "") or field_id
            if isinstance(value, (list, tuple)):
                text = ", ".join(to_text(v) for v in value)
            else:
                text = to_text(value)
            summary.append((label, text or "(none)"))
        return summary

    def results(self) -> WizardResults:
        definition = self.definition
        scoring = definition.scoring

        cards = [
            ResultCard(title=rule.title, body=rule.body, cta=rule.cta)
            for rule in definition.result_rules
            if evaluate_condition(rule.condition, self.answers)
        ]

        score = None
        band = None
        if scoring is not None or self.copy.show_quiz_score:
            score = self.score()
            band = score_band(scoring, score)

        if not cards:
            outcome = score_outcome(scoring, score) if score is not None else None
            if outcome is not None:
                cards.append(ResultCard(title=outcome.title, body=outcome.body, cta=outcome.cta, kind="outcome"))
            else:
                cards.append(ResultCard(title=self.copy.empty_title, body=self.copy.empty_body, kind="empty"))

        score_text = None
        if self.copy.show_quiz_score and score is not None:
            prefix = "Quiz Score" if definition.mode == WizardMode.QUIZ else "Assessment Score"
            suffix = f" - {band.label}" if band is not None and band.label else ""
            score_text = f"{prefix}: {score}%{suffix}"

        summary = []
        if self.copy.show_answer_summary or definition.show_answer_summary:
            summary = self.answer_summary()

        return WizardResults(cards=cards, score=score, band=band, score_text=score_text, summary=summary)

    # ------------------------------------------------------------------
    # Lead submission
    # ------------------------------------------------------------------

    @property
    def submit_url(self) -> Optional[str]:
        if self.collect_url:
            return self.collect_url
        lead = self.definition.collect_lead
        return lead.endpoint if lead is not None and lead.endpoint else None

    def _lead_payload(self, lead_data: Mapping[str, Any]) -> Dict[str, Any]:
        lead = self.definition.collect_lead
        if lead is not None:
            missing = [name for name in lead.fields if not is_answered(lead_data.get(name))]
            if missing:
                raise StepValidationError("lead", missing)
        data = {**lead_data, "answers": dict(self.answers)}
        return build_payload("wizard", self.route, self.domain, data)

    def _record(self, result: SubmissionResult) -> SubmissionResult:
        self.last_submission = result
        self.submission_status = SubmissionStatus.SUCCEEDED if result.ok else SubmissionStatus.FAILED
        return result

    def submit(self, lead_data: Mapping[str, Any], client=None) -> SubmissionResult:
        """
        Submit the lead form synchronously.

        Raises:
            StepValidationError: If a lead field is empty (status unchanged).
        """
        payload = self._lead_payload(lead_data)
        self.submission_status = SubmissionStatus.PENDING
        return self._record(submit_lead(self.submit_url, payload, timeout=self.timeout, client=client))

    async def submit_async(self, lead_data: Mapping[str, Any], client=None) -> SubmissionResult:
        payload = self._lead_payload(lead_data)
        self.submission_status = SubmissionStatus.PENDING
        result = await submit_lead_async(self.submit_url, payload, timeout=self.timeout, client=client)
        return self._record(result)

    def submit_in_background(self, lead_data: Mapping[str, Any], client=None) -> "asyncio.Task":
        """
        Schedule submit_async() on the running event loop.

        The status is PENDING as soon as this returns.
        """
        # Validate before scheduling so errors surface to the caller
        self._lead_payload(lead_data)
        task = asyncio.get_running_loop().create_task(self.submit_async(lead_data, client=client))
        self.submission_status = SubmissionStatus.PENDING
        return task


__all__ = [
    "StepValidationError",
    "SubmissionStatus",
    "ModeCopy",
    "MODE_COPY",
    "mode_copy",
    "ResultCard",
    "WizardResults",
    "WizardSession",
    "missing_required",
]
