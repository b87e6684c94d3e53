"""Assemble the explainability breakdown for one calculation."""

from .models import (
    SCORE_FORMULA,
    CalculationBreakdown,
    CalculationParameters,
    FitBreakdown,
    RegretBreakdown,
    ScoreBreakdown,
)


def compute_scores(fit: FitBreakdown, regret: RegretBreakdown, sensitivity_weight: float) -> ScoreBreakdown:
    return ScoreBreakdown(
        score_a=fit.fit_score_a - sensitivity_weight * regret.regret_risk_a,
        score_b=fit.fit_score_b - sensitivity_weight * regret.regret_risk_b,
        formula=SCORE_FORMULA,
    )


def aggregate(
    fit: FitBreakdown,
    regret: RegretBreakdown,
    parameters: CalculationParameters,
) -> CalculationBreakdown:
    """Bundle the component breakdowns; construction re-checks every invariant."""
    return CalculationBreakdown(
        fit=fit,
        regret=regret,
        parameters=parameters,
        scores=compute_scores(fit, regret, parameters.sensitivity_weight),
    )
