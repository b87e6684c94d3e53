"""Fold fit and regret into a probability pair."""

import math
from typing import Mapping, Optional, Sequence

from shared_types import ValueAxis

from .breakdown import compute_scores
from .models import (
    MAX_EVIDENCE_IDS,
    SENSITIVITY_MAX,
    SENSITIVITY_MIN,
    CalculationBreakdown,
    DecisionResult,
    FitBreakdown,
    InvariantViolation,
    RegretBreakdown,
)


def stable_softmax(score_a: float, score_b: float) -> tuple[float, float]:
    """Two-way softmax, shifted by the max score so exp() cannot overflow."""
    if not (math.isfinite(score_a) and math.isfinite(score_b)):
        raise InvariantViolation(f"scores must be finite, got: {score_a}, {score_b}")
    top = max(score_a, score_b)
    exp_a = math.exp(score_a - top)
    exp_b = math.exp(score_b - top)
    prob_a = exp_a / (exp_a + exp_b)
    return prob_a, 1.0 - prob_a


def combine(
    fit: FitBreakdown,
    regret: RegretBreakdown,
    sensitivity_weight: float,
    evidence_ids: Sequence[str],
    value_alignment: Mapping[ValueAxis, float],
    breakdown: Optional[CalculationBreakdown] = None,
) -> DecisionResult:
    if not SENSITIVITY_MIN <= sensitivity_weight <= SENSITIVITY_MAX:
        raise InvariantViolation(
            f"sensitivity_weight must be in [{SENSITIVITY_MIN}, {SENSITIVITY_MAX}], got: {sensitivity_weight}"
        )
    scores = compute_scores(fit, regret, sensitivity_weight)
    prob_a, prob_b = stable_softmax(scores.score_a, scores.score_b)

    return DecisionResult(
        probability_a=prob_a,
        probability_b=prob_b,
        regret_risk_a=regret.regret_risk_a,
        regret_risk_b=regret.regret_risk_b,
        evidence_ids=tuple(evidence_ids[:MAX_EVIDENCE_IDS]),
        value_alignment=dict(value_alignment),
        breakdown=breakdown,
    )
