"""
Wizard scoring: completion and weighted scores, bands and outcomes.

Scores are integers 0..100, rounded half-up:

    completion = round(100 * answered_required / total_required)
    weighted   = round(100 * sum(w * normalized / 100) / sum(w))

Weighted scoring falls back to completion when it has no usable weight.
"""

import math
from typing import Any, Mapping, Optional

from blockpage.evaluator import is_numeric_text, to_number
from blockpage.model import (
    ScoreBand,
    ScoreOutcome,
    ScoringMethod,
    ScoringSpec,
    WizardDefinition,
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_answered(value: Any) -> bool:
    """An answer counts when it is present, not '', and not an empty list."""
    if value is None or value == "":
        return False
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return False
    return True


def completion_score(definition: WizardDefinition, answers: Mapping[str, Any]) -> int:
    """Percentage of required fields answered; 100 when none are required."""
    required = definition.required_fields()
    if not required:
        return 100
    answered = sum(1 for f in required if is_answered(answers.get(f.id)))
    return round_half_up(answered / len(required) * 100)


def score_value(field_id: str, value: Any, scoring: Optional[ScoringSpec]) -> Optional[float]:
    """
    Normalize one answer to a 0..100 contribution.

    Returns None for an unanswered field. Categories go through the
    field's value map; unmapped but answered values count as 100.
    """
    if value is None:
        return None

    value_map = scoring.value_map.get(field_id) if scoring is not None else None

    if isinstance(value, bool):
        return 100.0
    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, str):
        if value_map and value in value_map:
            return float(value_map[value])
        if is_numeric_text(value):
            return float(value)
        return 100.0 if value.strip() else None

    if isinstance(value, (list, tuple)):
        if not value:
            return 0.0
        if value_map:
            mapped = [float(value_map[entry]) for entry in value if entry in value_map]
            if mapped:
                return sum(mapped) / len(mapped)
        return 100.0

    return 100.0


def weighted_score(scoring: Optional[ScoringSpec], answers: Mapping[str, Any]) -> Optional[int]:
    """Weighted score, or None when weighted scoring does not apply."""
    if scoring is None or scoring.method != ScoringMethod.WEIGHTED or not scoring.weights:
        return None

    total_weight = 0.0
    achieved = 0.0
    for field_id, raw_weight in scoring.weights.items():
        weight = to_number(raw_weight)
        if weight is None or not math.isfinite(weight) or weight <= 0:
            continue
        total_weight += weight

        value = score_value(field_id, answers.get(field_id), scoring)
        if value is None or not math.isfinite(value):
            continue
        bounded = max(0.0, min(100.0, value))
        achieved += weight * (bounded / 100)

    if total_weight <= 0:
        return None
    return round_half_up(achieved / total_weight * 100)


def compute_score(definition: WizardDefinition, answers: Mapping[str, Any]) -> int:
    """Weighted score when configured and usable, else completion."""
    weighted = weighted_score(definition.scoring, answers)
    if weighted is not None:
        return weighted
    return completion_score(definition, answers)


def score_band(scoring: Optional[ScoringSpec], score: float) -> Optional[ScoreBand]:
    """First band with min <= score <= max."""
    if scoring is None:
        return None
    for band in scoring.bands:
        if band.contains(score):
            return band
    return None


def score_outcome(scoring: Optional[ScoringSpec], score: float) -> Optional[ScoreOutcome]:
    """First outcome with min <= score <= max."""
    if scoring is None:
        return None
    for outcome in scoring.outcomes:
        if outcome.contains(score):
            return outcome
    return None
