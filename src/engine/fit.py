"""Fit calculation: how closely each option matches similar past records."""

from typing import Optional, Sequence

from .models import (
    DEFAULT_PRIORITY_AXIS_BOOST,
    MAX_CONTRIBUTIONS,
    EvidenceRecord,
    FitBreakdown,
    FragmentContribution,
    InvariantViolation,
    summarize_text,
)
from .vectors import Vector, as_vector, clamp, cosine_similarity


class FitCalculator:
    """Similarity-weighted fit of two options against historical evidence.

    Each record contributes `cos(option, record) * weight * valence_weight`
    where `weight = similarity * priority_weight` and
    `valence_weight = (1 + valence) / 2`, so positively remembered records
    count for more. Sums are divided by the total weight and clamped.
    """

    def __init__(
        self,
        priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST,
        max_contributions: int = MAX_CONTRIBUTIONS,
    ):
        if priority_axis_boost < 0:
            raise InvariantViolation(f"priority_axis_boost must be non-negative, got: {priority_axis_boost}")
        self.priority_axis_boost = priority_axis_boost
        self.max_contributions = min(max_contributions, MAX_CONTRIBUTIONS)

    def calculate(
        self,
        option_a: Vector,
        option_b: Vector,
        evidence: Sequence[EvidenceRecord],
        priority_axis_embedding: Optional[Vector] = None,
    ) -> FitBreakdown:
        if not evidence:
            return FitBreakdown.empty(self.priority_axis_boost)

        vec_a = as_vector(option_a)
        vec_b = as_vector(option_b)
        axis_vec = as_vector(priority_axis_embedding) if priority_axis_embedding is not None else None

        sum_a = 0.0
        sum_b = 0.0
        total_weight = 0.0
        contributions: list[FragmentContribution] = []

        for record in evidence:
            if record.similarity < 0:
                raise InvariantViolation(f"similarity must be non-negative for {record.record_id}")

            priority_weight = 1.0
            if axis_vec is not None:
                axis_relevance = max(cosine_similarity(record.embedding, axis_vec), 0.0)
                priority_weight = 1.0 + self.priority_axis_boost * axis_relevance

            weight = record.similarity * priority_weight
            valence_weight = (1.0 + record.valence) / 2.0

            to_a = cosine_similarity(vec_a, record.embedding) * weight * valence_weight
            to_b = cosine_similarity(vec_b, record.embedding) * weight * valence_weight

            sum_a += to_a
            sum_b += to_b
            total_weight += weight

            contributions.append(
                FragmentContribution(
                    record_id=record.record_id,
                    summary=summarize_text(record.text),
                    similarity=record.similarity,
                    valence_weight=valence_weight,
                    priority_weight=priority_weight,
                    contribution_to_a=to_a,
                    contribution_to_b=to_b,
                )
            )

        if total_weight > 0:
            fit_a = clamp(sum_a / total_weight)
            fit_b = clamp(sum_b / total_weight)
        else:
            # every record had zero similarity
            fit_a = fit_b = 0.5

        contributions.sort(key=FragmentContribution.sort_key)

        return FitBreakdown(
            fit_score_a=fit_a,
            fit_score_b=fit_b,
            total_weight=total_weight,
            priority_axis_boost=self.priority_axis_boost,
            contributions=tuple(contributions[: self.max_contributions]),
        )
