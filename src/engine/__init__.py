"""Decision calculation engine: pure, deterministic scoring of two options."""

from .alignment import ValueAlignmentCalculator, axis_embedding_text
from .breakdown import aggregate
from .combiner import combine, stable_softmax
from .fit import FitCalculator
from .learner import ParameterLearner, predicted_regret
from .models import (
    AxisSignal,
    CalculationBreakdown,
    CalculationParameters,
    DecisionResult,
    EvidenceRecord,
    FeedbackStats,
    FitBreakdown,
    FragmentContribution,
    InvariantViolation,
    ParameterUpdate,
    RegretBreakdown,
    ScoreBreakdown,
)
from .regret import RegretRiskCalculator

__all__ = [
    "AxisSignal",
    "CalculationBreakdown",
    "CalculationParameters",
    "DecisionResult",
    "EvidenceRecord",
    "FeedbackStats",
    "FitBreakdown",
    "FitCalculator",
    "FragmentContribution",
    "InvariantViolation",
    "ParameterLearner",
    "ParameterUpdate",
    "RegretBreakdown",
    "RegretRiskCalculator",
    "ScoreBreakdown",
    "ValueAlignmentCalculator",
    "aggregate",
    "axis_embedding_text",
    "combine",
    "predicted_regret",
    "stable_softmax",
]
