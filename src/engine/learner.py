"""Feedback-driven adjustment of per-user sensitivity parameters."""

from shared_types import FeedbackType

from .models import (
    SENSITIVITY_MAX,
    SENSITIVITY_MIN,
    FeedbackStats,
    InvariantViolation,
    ParameterUpdate,
)
from .vectors import clamp

DEFAULT_SENSITIVITY_RATE = 0.1
DEFAULT_PRIOR_RATE = 0.2
# feedback samples before the baseline moves at full prior_rate
FULL_DAMPING_SAMPLES = 10


def predicted_regret(probability_a: float, probability_b: float, regret_a: float, regret_b: float) -> float:
    """Probability-weighted regret; feedback does not say which option was taken."""
    return clamp(probability_a * regret_a + probability_b * regret_b)


class ParameterLearner:
    """Bounded exponential smoothing of sensitivity and baseline regret.

    Sensitivity moves up when observed regret exceeds the prediction and down
    otherwise. Baseline regret drifts toward the user's observed regret rate,
    damped while there are few feedback samples.
    """

    def __init__(
        self,
        sensitivity_rate: float = DEFAULT_SENSITIVITY_RATE,
        prior_rate: float = DEFAULT_PRIOR_RATE,
    ):
        if sensitivity_rate < 0 or not 0 <= prior_rate <= 1:
            raise InvariantViolation(
                f"invalid learner rates: sensitivity_rate={sensitivity_rate}, prior_rate={prior_rate}"
            )
        self.sensitivity_rate = sensitivity_rate
        self.prior_rate = prior_rate

    def learn(
        self,
        user_id: str,
        decision_id: str,
        sensitivity_weight: float,
        baseline_regret_rate: float,
        stats: FeedbackStats,
        feedback_type: FeedbackType,
        predicted: float,
    ) -> ParameterUpdate:
        observed = feedback_type.regret_signal
        error = observed - predicted

        new_sensitivity = clamp(
            sensitivity_weight * (1.0 + self.sensitivity_rate * error),
            SENSITIVITY_MIN,
            SENSITIVITY_MAX,
        )

        damping = self.prior_rate * min(stats.total_with_feedback / FULL_DAMPING_SAMPLES, 1.0)
        new_baseline = clamp(baseline_regret_rate + damping * (stats.regret_rate - baseline_regret_rate))

        return ParameterUpdate(
            user_id=user_id,
            decision_id=decision_id,
            feedback_type=feedback_type,
            sensitivity_before=sensitivity_weight,
            sensitivity_after=new_sensitivity,
            baseline_before=baseline_regret_rate,
            baseline_after=new_baseline,
            predicted_regret=predicted,
            observed_regret=observed,
            feedback_count=stats.total_with_feedback,
            rationale=_rationale(
                observed, predicted, sensitivity_weight, new_sensitivity,
                baseline_regret_rate, new_baseline, stats,
            ),
        )


def _direction(before: float, after: float) -> str:
    if after > before:
        return "raised"
    if after < before:
        return "lowered"
    return "unchanged"


def _rationale(
    observed: float,
    predicted: float,
    sens_before: float,
    sens_after: float,
    base_before: float,
    base_after: float,
    stats: FeedbackStats,
) -> str:
    if observed > predicted:
        comparison = "exceeded"
    elif observed < predicted:
        comparison = "fell below"
    else:
        comparison = "matched"
    return (
        f"Observed regret {observed:.2f} {comparison} predicted {predicted:.2f}: "
        f"sensitivity {_direction(sens_before, sens_after)} "
        f"{sens_before:.3f} -> {sens_after:.3f} ({sens_after - sens_before:+.3f}). "
        f"Baseline regret {_direction(base_before, base_after)} "
        f"{base_before:.3f} -> {base_after:.3f} ({base_after - base_before:+.3f}) "
        f"toward observed rate {stats.regret_rate:.3f} over {stats.total_with_feedback} feedback samples."
    )
