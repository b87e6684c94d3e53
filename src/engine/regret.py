"""Regret risk: historical regret rate adjusted by evidence volatility and negativity."""

from typing import Sequence

import numpy as np

from .models import (
    DEFAULT_NEGATIVITY_WEIGHT,
    DEFAULT_VOLATILITY_WEIGHT,
    EvidenceRecord,
    FeedbackStats,
    RegretBreakdown,
)
from .vectors import Vector, as_vector, clamp, cosine_similarity

NEUTRAL_NEGATIVITY = 0.5


def valence_variance(evidence: Sequence[EvidenceRecord]) -> float:
    """Population variance of evidence valences; 0.0 below two records."""
    if len(evidence) < 2:
        return 0.0
    return float(np.var([r.valence for r in evidence]))


def option_negativity(option: Vector, evidence: Sequence[EvidenceRecord]) -> float:
    """Weighted negativity of the records an option resembles.

    Every record counts, with negativity `(1 - valence) / 2` weighted by its
    search similarity times how closely the option points at it
    (`(cos + 1) / 2`). Returns 0.5 when nothing carries weight.
    """
    vec = as_vector(option)
    weighted = 0.0
    total = 0.0
    for record in evidence:
        alignment = clamp((cosine_similarity(vec, record.embedding) + 1.0) / 2.0)
        weight = record.similarity * alignment
        weighted += weight * (1.0 - record.valence) / 2.0
        total += weight
    if total <= 0:
        return NEUTRAL_NEGATIVITY
    return clamp(weighted / total)


class RegretRiskCalculator:
    def __init__(
        self,
        volatility_weight: float = DEFAULT_VOLATILITY_WEIGHT,
        negativity_weight: float = DEFAULT_NEGATIVITY_WEIGHT,
    ):
        self.volatility_weight = volatility_weight
        self.negativity_weight = negativity_weight

    def calculate(
        self,
        evidence: Sequence[EvidenceRecord],
        baseline_regret_rate: float,
        option_a: Vector,
        option_b: Vector,
        feedback_stats: FeedbackStats,
    ) -> RegretBreakdown:
        """Regret risk for both options.

        With no feedback yet the baseline regret rate stands in for the
        historical rate. Reliability of the result is reported through the
        breakdown's feedback count and never changes the numbers.
        """
        if feedback_stats.has_feedback:
            historical = feedback_stats.regret_rate
        else:
            historical = baseline_regret_rate

        variance = valence_variance(evidence)
        negativity_a = option_negativity(option_a, evidence)
        negativity_b = option_negativity(option_b, evidence)

        base = historical + variance * self.volatility_weight
        regret_a = clamp(base + (negativity_a - 0.5) * self.negativity_weight)
        regret_b = clamp(base + (negativity_b - 0.5) * self.negativity_weight)

        return RegretBreakdown(
            historical_regret_rate=historical,
            valence_variance=variance,
            option_negativity_a=negativity_a,
            option_negativity_b=negativity_b,
            base_regret=base,
            regret_risk_a=regret_a,
            regret_risk_b=regret_b,
            feedback_count=feedback_stats.total_with_feedback,
        )
