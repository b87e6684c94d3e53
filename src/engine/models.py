"""Value types for the decision calculation engine.

Every type here is a frozen dataclass. Invariants are checked at construction
and a violation raises InvariantViolation: breakdown values are never clamped
into range after the fact, an out-of-range value is a programming error.
Clamping happens only inside the calculators, at the steps where it is part of
the scoring policy.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np

from shared_types import DataReliability, FavoredOption, FeedbackType, ValueAxis

from .vectors import as_vector

MAX_SUMMARY_LENGTH = 80
MAX_CONTRIBUTIONS = 10
MAX_EVIDENCE_IDS = 5
SENSITIVITY_MIN = 0.1
SENSITIVITY_MAX = 5.0
HIGH_RELIABILITY_THRESHOLD = 10
MEDIUM_RELIABILITY_THRESHOLD = 3
CLOSE_CALL_THRESHOLD = 0.05
PROBABILITY_TOLERANCE = 1e-9
NEUTRAL_ALIGNMENT = 0.5

DEFAULT_SENSITIVITY_WEIGHT = 1.0
DEFAULT_BASELINE_REGRET_RATE = 0.2
DEFAULT_PRIORITY_AXIS_BOOST = 0.35
DEFAULT_VOLATILITY_WEIGHT = 0.3
DEFAULT_NEGATIVITY_WEIGHT = 0.3

SCORE_FORMULA = "score = fit - lambda * regret"
REGRET_FORMULA = (
    "regret = clamp(baseRegret + (negativity - 0.5) * negativityWeight, 0, 1); "
    "baseRegret = historicalRate + variance * volatilityWeight"
)


class InvariantViolation(ValueError):
    """A breakdown value is outside its declared bound."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise InvariantViolation(message)


def _check_unit(name: str, value: float) -> None:
    _require(
        isinstance(value, (int, float)) and 0.0 <= value <= 1.0,
        f"{name} must be in [0.0, 1.0], got: {value}",
    )


def _check_finite(name: str, value: float) -> None:
    _require(
        isinstance(value, (int, float)) and math.isfinite(value),
        f"{name} must be a finite number, got: {value}",
    )


def _check_non_negative(name: str, value: float) -> None:
    _check_finite(name, value)
    _require(value >= 0.0, f"{name} must be non-negative, got: {value}")


def summarize_text(text: str, limit: int = MAX_SUMMARY_LENGTH) -> str:
    """Single-line summary capped at `limit` characters."""
    flat = " ".join((text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3].rstrip() + "..."


def reliability_for(feedback_count: int) -> DataReliability:
    if feedback_count >= HIGH_RELIABILITY_THRESHOLD:
        return DataReliability.HIGH
    if feedback_count >= MEDIUM_RELIABILITY_THRESHOLD:
        return DataReliability.MEDIUM
    return DataReliability.LOW


# --- Inputs ---


@dataclass(frozen=True)
class EvidenceRecord:
    """A historical fragment returned by similarity search."""

    record_id: str
    text: str
    valence: float
    similarity: float
    embedding: np.ndarray = field(compare=False, repr=False)

    def __post_init__(self):
        _require(bool(self.record_id), "record_id cannot be empty")
        _require(-1.0 <= self.valence <= 1.0, f"valence must be in [-1.0, 1.0], got: {self.valence}")
        _check_unit("similarity", self.similarity)
        object.__setattr__(self, "embedding", as_vector(self.embedding))


@dataclass(frozen=True)
class FeedbackStats:
    """Cumulative per-user feedback counts."""

    total_decisions: int = 0
    total_with_feedback: int = 0
    satisfied_count: int = 0
    neutral_count: int = 0
    regret_count: int = 0

    def __post_init__(self):
        for name in (
            "total_decisions",
            "total_with_feedback",
            "satisfied_count",
            "neutral_count",
            "regret_count",
        ):
            _require(getattr(self, name) >= 0, f"{name} must be non-negative")
        _require(
            self.satisfied_count + self.neutral_count + self.regret_count
            == self.total_with_feedback,
            "feedback type counts must sum to total_with_feedback",
        )
        _require(
            self.total_with_feedback <= self.total_decisions,
            "total_with_feedback cannot exceed total_decisions",
        )

    @property
    def has_feedback(self) -> bool:
        return self.total_with_feedback > 0

    @property
    def regret_rate(self) -> float:
        if self.total_with_feedback == 0:
            return 0.0
        return self.regret_count / self.total_with_feedback

    @property
    def feedback_rate(self) -> float:
        if self.total_decisions == 0:
            return 0.0
        return self.total_with_feedback / self.total_decisions

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_decisions": self.total_decisions,
            "total_with_feedback": self.total_with_feedback,
            "satisfied_count": self.satisfied_count,
            "neutral_count": self.neutral_count,
            "regret_count": self.regret_count,
            "regret_rate": self.regret_rate,
            "feedback_rate": self.feedback_rate,
        }


@dataclass(frozen=True)
class AxisSignal:
    """Implicit historical signal for one value axis (from the value graph)."""

    avg_valence: float
    sample_count: int

    def __post_init__(self):
        _require(-1.0 <= self.avg_valence <= 1.0, f"avg_valence must be in [-1.0, 1.0], got: {self.avg_valence}")
        _require(self.sample_count >= 0, "sample_count must be non-negative")


@dataclass(frozen=True)
class CalculationParameters:
    """Per-run snapshot of the tunable engine parameters."""

    sensitivity_weight: float = DEFAULT_SENSITIVITY_WEIGHT
    baseline_regret_rate: float = DEFAULT_BASELINE_REGRET_RATE
    priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST
    volatility_weight: float = DEFAULT_VOLATILITY_WEIGHT
    negativity_weight: float = DEFAULT_NEGATIVITY_WEIGHT

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _check_finite("sensitivity_weight", self.sensitivity_weight)
        _require(
            SENSITIVITY_MIN <= self.sensitivity_weight <= SENSITIVITY_MAX,
            f"sensitivity_weight must be in [{SENSITIVITY_MIN}, {SENSITIVITY_MAX}], "
            f"got: {self.sensitivity_weight}",
        )
        _check_unit("baseline_regret_rate", self.baseline_regret_rate)
        _check_non_negative("priority_axis_boost", self.priority_axis_boost)
        _check_non_negative("volatility_weight", self.volatility_weight)
        _check_non_negative("negativity_weight", self.negativity_weight)

    @classmethod
    def defaults(cls) -> "CalculationParameters":
        return cls()

    @classmethod
    def with_user_settings(
        cls, sensitivity_weight: float, baseline_regret_rate: float, **overrides
    ) -> "CalculationParameters":
        """User-specific sensitivity and baseline, system defaults for the rest."""
        return cls(
            sensitivity_weight=sensitivity_weight,
            baseline_regret_rate=baseline_regret_rate,
            **overrides,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensitivity_weight": self.sensitivity_weight,
            "baseline_regret_rate": self.baseline_regret_rate,
            "priority_axis_boost": self.priority_axis_boost,
            "volatility_weight": self.volatility_weight,
            "negativity_weight": self.negativity_weight,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalculationParameters":
        return cls(**{k: data[k] for k in cls().to_dict()})


# --- Breakdown components ---


@dataclass(frozen=True)
class FragmentContribution:
    """How much one evidence record moved each option's fit."""

    record_id: str
    summary: str
    similarity: float
    valence_weight: float
    priority_weight: float
    contribution_to_a: float
    contribution_to_b: float

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _require(
            len(self.summary) <= MAX_SUMMARY_LENGTH,
            f"summary exceeds {MAX_SUMMARY_LENGTH} characters",
        )
        _check_unit("similarity", self.similarity)
        _check_unit("valence_weight", self.valence_weight)
        _check_non_negative("priority_weight", self.priority_weight)
        _check_finite("contribution_to_a", self.contribution_to_a)
        _check_finite("contribution_to_b", self.contribution_to_b)

    @property
    def total_contribution(self) -> float:
        return self.contribution_to_a + self.contribution_to_b

    @property
    def favored_option(self) -> FavoredOption:
        if self.contribution_to_a > self.contribution_to_b:
            return FavoredOption.A
        if self.contribution_to_b > self.contribution_to_a:
            return FavoredOption.B
        return FavoredOption.NEUTRAL

    def sort_key(self) -> tuple[float, str]:
        return (-self.total_contribution, self.record_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "summary": self.summary,
            "similarity": self.similarity,
            "valence_weight": self.valence_weight,
            "priority_weight": self.priority_weight,
            "contribution_to_a": self.contribution_to_a,
            "contribution_to_b": self.contribution_to_b,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FragmentContribution":
        return cls(**{k: data[k] for k in (
            "record_id",
            "summary",
            "similarity",
            "valence_weight",
            "priority_weight",
            "contribution_to_a",
            "contribution_to_b",
        )})


@dataclass(frozen=True)
class FitBreakdown:
    fit_score_a: float
    fit_score_b: float
    total_weight: float
    priority_axis_boost: float
    contributions: tuple[FragmentContribution, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "contributions", tuple(self.contributions))
        self._validate()

    def _validate(self):
        _check_unit("fit_score_a", self.fit_score_a)
        _check_unit("fit_score_b", self.fit_score_b)
        _check_non_negative("total_weight", self.total_weight)
        _check_non_negative("priority_axis_boost", self.priority_axis_boost)
        _require(
            len(self.contributions) <= MAX_CONTRIBUTIONS,
            f"contributions exceed maximum of {MAX_CONTRIBUTIONS}",
        )
        for c in self.contributions:
            c._validate()
        keys = [c.sort_key() for c in self.contributions]
        _require(keys == sorted(keys), "contributions must be ranked by total contribution")

    @property
    def fit_difference(self) -> float:
        return self.fit_score_a - self.fit_score_b

    @property
    def is_close_call(self) -> bool:
        return abs(self.fit_difference) < CLOSE_CALL_THRESHOLD

    def evidence_ids(self, limit: int = MAX_EVIDENCE_IDS) -> list[str]:
        return [c.record_id for c in self.contributions[:limit]]

    @classmethod
    def empty(cls, priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST) -> "FitBreakdown":
        """Cold-start breakdown used when there is no evidence."""
        return cls(
            fit_score_a=0.5,
            fit_score_b=0.5,
            total_weight=0.0,
            priority_axis_boost=priority_axis_boost,
            contributions=(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fit_score_a": self.fit_score_a,
            "fit_score_b": self.fit_score_b,
            "total_weight": self.total_weight,
            "priority_axis_boost": self.priority_axis_boost,
            "contributions": [c.to_dict() for c in self.contributions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FitBreakdown":
        return cls(
            fit_score_a=data["fit_score_a"],
            fit_score_b=data["fit_score_b"],
            total_weight=data["total_weight"],
            priority_axis_boost=data["priority_axis_boost"],
            contributions=tuple(FragmentContribution.from_dict(c) for c in data["contributions"]),
        )


@dataclass(frozen=True)
class RegretBreakdown:
    historical_regret_rate: float
    valence_variance: float
    option_negativity_a: float
    option_negativity_b: float
    base_regret: float
    regret_risk_a: float
    regret_risk_b: float
    feedback_count: int
    formula: str = REGRET_FORMULA

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _check_unit("historical_regret_rate", self.historical_regret_rate)
        _check_unit("valence_variance", self.valence_variance)
        _check_unit("option_negativity_a", self.option_negativity_a)
        _check_unit("option_negativity_b", self.option_negativity_b)
        _check_non_negative("base_regret", self.base_regret)
        _check_unit("regret_risk_a", self.regret_risk_a)
        _check_unit("regret_risk_b", self.regret_risk_b)
        _require(self.feedback_count >= 0, f"feedback_count must be non-negative, got: {self.feedback_count}")

    @property
    def data_reliability(self) -> DataReliability:
        return reliability_for(self.feedback_count)

    @property
    def is_using_default_prior(self) -> bool:
        return self.feedback_count == 0

    @classmethod
    def with_default_prior(
        cls,
        baseline_regret_rate: float,
        option_negativity_a: float = 0.5,
        option_negativity_b: float = 0.5,
        negativity_weight: float = DEFAULT_NEGATIVITY_WEIGHT,
    ) -> "RegretBreakdown":
        """Breakdown for a user with no feedback and no evidence volatility."""
        base = baseline_regret_rate
        return cls(
            historical_regret_rate=baseline_regret_rate,
            valence_variance=0.0,
            option_negativity_a=option_negativity_a,
            option_negativity_b=option_negativity_b,
            base_regret=base,
            regret_risk_a=min(1.0, max(0.0, base + (option_negativity_a - 0.5) * negativity_weight)),
            regret_risk_b=min(1.0, max(0.0, base + (option_negativity_b - 0.5) * negativity_weight)),
            feedback_count=0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "historical_regret_rate": self.historical_regret_rate,
            "valence_variance": self.valence_variance,
            "option_negativity_a": self.option_negativity_a,
            "option_negativity_b": self.option_negativity_b,
            "base_regret": self.base_regret,
            "regret_risk_a": self.regret_risk_a,
            "regret_risk_b": self.regret_risk_b,
            "feedback_count": self.feedback_count,
            "data_reliability": self.data_reliability.value,
            "formula": self.formula,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RegretBreakdown":
        # data_reliability is derived, never read back
        return cls(
            historical_regret_rate=data["historical_regret_rate"],
            valence_variance=data["valence_variance"],
            option_negativity_a=data["option_negativity_a"],
            option_negativity_b=data["option_negativity_b"],
            base_regret=data["base_regret"],
            regret_risk_a=data["regret_risk_a"],
            regret_risk_b=data["regret_risk_b"],
            feedback_count=data["feedback_count"],
            formula=data.get("formula", REGRET_FORMULA),
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    score_a: float
    score_b: float
    formula: str = SCORE_FORMULA

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _check_finite("score_a", self.score_a)
        _check_finite("score_b", self.score_b)

    @property
    def score_difference(self) -> float:
        return self.score_a - self.score_b

    def to_dict(self) -> dict[str, Any]:
        return {
            "score_a": self.score_a,
            "score_b": self.score_b,
            "score_difference": self.score_difference,
            "formula": self.formula,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoreBreakdown":
        return cls(score_a=data["score_a"], score_b=data["score_b"], formula=data.get("formula", SCORE_FORMULA))


@dataclass(frozen=True)
class CalculationBreakdown:
    """Every intermediate value of one decision calculation."""

    fit: FitBreakdown
    regret: RegretBreakdown
    parameters: CalculationParameters
    scores: ScoreBreakdown

    def __post_init__(self):
        # components were validated when built; check again, they may come from storage
        self.fit._validate()
        self.regret._validate()
        self.parameters._validate()
        self.scores._validate()
        _require(
            math.isclose(self.fit.priority_axis_boost, self.parameters.priority_axis_boost),
            "fit priority_axis_boost does not match parameters",
        )
        lam = self.parameters.sensitivity_weight
        expected_a = self.fit.fit_score_a - lam * self.regret.regret_risk_a
        expected_b = self.fit.fit_score_b - lam * self.regret.regret_risk_b
        _require(
            math.isclose(self.scores.score_a, expected_a, abs_tol=1e-12)
            and math.isclose(self.scores.score_b, expected_b, abs_tol=1e-12),
            "scores are inconsistent with fit, regret and sensitivity_weight",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fit": self.fit.to_dict(),
            "regret": self.regret.to_dict(),
            "parameters": self.parameters.to_dict(),
            "scores": self.scores.to_dict(),
        }

    def to_json(self) -> str:
        """Canonical serialization: identical breakdowns give identical bytes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalculationBreakdown":
        return cls(
            fit=FitBreakdown.from_dict(data["fit"]),
            regret=RegretBreakdown.from_dict(data["regret"]),
            parameters=CalculationParameters.from_dict(data["parameters"]),
            scores=ScoreBreakdown.from_dict(data["scores"]),
        )

    @classmethod
    def from_json(cls, raw: str) -> "CalculationBreakdown":
        return cls.from_dict(json.loads(raw))


# --- Outputs ---


@dataclass(frozen=True)
class DecisionResult:
    """Probabilities, regret risks, evidence and value alignment for one decision.

    `breakdown` is present only when the caller asked for it; the primary
    numbers never depend on it.
    """

    probability_a: float
    probability_b: float
    regret_risk_a: float
    regret_risk_b: float
    evidence_ids: tuple[str, ...]
    value_alignment: Mapping[ValueAxis, float]
    breakdown: CalculationBreakdown | None = None

    def __post_init__(self):
        object.__setattr__(self, "evidence_ids", tuple(self.evidence_ids))
        object.__setattr__(
            self,
            "value_alignment",
            {axis: self.value_alignment[axis] for axis in ValueAxis if axis in self.value_alignment},
        )
        _check_unit("probability_a", self.probability_a)
        _check_unit("probability_b", self.probability_b)
        _require(
            abs(self.probability_a + self.probability_b - 1.0) <= PROBABILITY_TOLERANCE,
            f"probabilities must sum to 1.0, got: {self.probability_a + self.probability_b}",
        )
        _check_unit("regret_risk_a", self.regret_risk_a)
        _check_unit("regret_risk_b", self.regret_risk_b)
        _require(
            len(self.evidence_ids) <= MAX_EVIDENCE_IDS,
            f"evidence_ids exceed maximum of {MAX_EVIDENCE_IDS}",
        )
        _require(
            len(self.value_alignment) == len(ValueAxis),
            "value_alignment must cover all value axes",
        )
        for axis, value in self.value_alignment.items():
            _check_unit(f"value_alignment[{axis.value}]", value)

    @property
    def has_breakdown(self) -> bool:
        return self.breakdown is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "probability_a": self.probability_a,
            "probability_b": self.probability_b,
            "regret_risk_a": self.regret_risk_a,
            "regret_risk_b": self.regret_risk_b,
            "evidence_ids": list(self.evidence_ids),
            "value_alignment": {axis.value: v for axis, v in self.value_alignment.items()},
            "breakdown": self.breakdown.to_dict() if self.breakdown else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DecisionResult":
        raw_breakdown = data.get("breakdown")
        return cls(
            probability_a=data["probability_a"],
            probability_b=data["probability_b"],
            regret_risk_a=data["regret_risk_a"],
            regret_risk_b=data["regret_risk_b"],
            evidence_ids=tuple(data.get("evidence_ids") or ()),
            value_alignment={ValueAxis(k): v for k, v in data["value_alignment"].items()},
            breakdown=CalculationBreakdown.from_dict(raw_breakdown) if raw_breakdown else None,
        )


@dataclass(frozen=True)
class ParameterUpdate:
    """Audit record of one learner step."""

    user_id: str
    decision_id: str
    feedback_type: FeedbackType
    sensitivity_before: float
    sensitivity_after: float
    baseline_before: float
    baseline_after: float
    predicted_regret: float
    observed_regret: float
    feedback_count: int
    rationale: str

    def __post_init__(self):
        for name in ("sensitivity_before", "sensitivity_after"):
            value = getattr(self, name)
            _require(
                SENSITIVITY_MIN <= value <= SENSITIVITY_MAX,
                f"{name} must be in [{SENSITIVITY_MIN}, {SENSITIVITY_MAX}], got: {value}",
            )
        _check_unit("baseline_before", self.baseline_before)
        _check_unit("baseline_after", self.baseline_after)
        _check_unit("predicted_regret", self.predicted_regret)
        _check_unit("observed_regret", self.observed_regret)
        _require(self.feedback_count >= 0, "feedback_count must be non-negative")

    @property
    def sensitivity_delta(self) -> float:
        return self.sensitivity_after - self.sensitivity_before

    @property
    def baseline_delta(self) -> float:
        return self.baseline_after - self.baseline_before

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "decision_id": self.decision_id,
            "feedback_type": self.feedback_type.value,
            "sensitivity_before": self.sensitivity_before,
            "sensitivity_after": self.sensitivity_after,
            "baseline_before": self.baseline_before,
            "baseline_after": self.baseline_after,
            "predicted_regret": self.predicted_regret,
            "observed_regret": self.observed_regret,
            "feedback_count": self.feedback_count,
            "rationale": self.rationale,
        }


def neutral_alignment() -> dict[ValueAxis, float]:
    return {axis: NEUTRAL_ALIGNMENT for axis in ValueAxis}
