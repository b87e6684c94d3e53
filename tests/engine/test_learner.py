"""Tests for the feedback-driven parameter learner."""

import pytest

from engine.learner import ParameterLearner, predicted_regret
from engine.models import FeedbackStats, InvariantViolation
from shared_types import FeedbackType


def _stats(satisfied=0, neutral=0, regret=0):
    total = satisfied + neutral + regret
    return FeedbackStats(
        total_decisions=total,
        total_with_feedback=total,
        satisfied_count=satisfied,
        neutral_count=neutral,
        regret_count=regret,
    )


def _learn(learner=None, sensitivity=1.0, baseline=0.2, stats=None, feedback=FeedbackType.REGRET, predicted=0.2):
    learner = learner or ParameterLearner()
    return learner.learn(
        "user-1", "dec-1", sensitivity, baseline, stats or _stats(regret=1), feedback, predicted
    )


class TestPredictedRegret:
    def test_probability_weighted(self):
        assert predicted_regret(0.7, 0.3, 0.2, 0.6) == pytest.approx(0.32)

    def test_clamped(self):
        assert predicted_regret(0.5, 0.5, 1.0, 1.0) == 1.0


class TestParameterLearner:
    def test_regret_above_prediction_raises_sensitivity(self):
        update = _learn(feedback=FeedbackType.REGRET, predicted=0.2)
        # 1.0 * (1 + 0.1 * 0.8)
        assert update.sensitivity_after == pytest.approx(1.08)
        assert update.observed_regret == 1.0
        assert "raised" in update.rationale

    def test_satisfied_lowers_sensitivity(self):
        update = _learn(feedback=FeedbackType.SATISFIED, predicted=0.4, stats=_stats(satisfied=1))
        assert update.sensitivity_after == pytest.approx(0.96)
        assert "lowered" in update.rationale

    def test_neutral_signal(self):
        update = _learn(feedback=FeedbackType.NEUTRAL, predicted=0.3, stats=_stats(neutral=1))
        assert update.observed_regret == 0.3
        assert update.sensitivity_after == pytest.approx(1.0)
        assert "sensitivity unchanged" in update.rationale

    def test_sensitivity_clamped_high(self):
        update = _learn(learner=ParameterLearner(sensitivity_rate=5.0), sensitivity=4.9, predicted=0.0)
        assert update.sensitivity_after == 5.0

    def test_sensitivity_clamped_low(self):
        update = _learn(
            learner=ParameterLearner(sensitivity_rate=5.0),
            sensitivity=0.2,
            feedback=FeedbackType.SATISFIED,
            predicted=1.0,
            stats=_stats(satisfied=1),
        )
        assert update.sensitivity_after == 0.1

    def test_baseline_damped_with_few_samples(self):
        # one regret out of one: rate 1.0, damping 0.2 * 0.1
        update = _learn(baseline=0.2, stats=_stats(regret=1))
        assert update.baseline_after == pytest.approx(0.2 + 0.02 * 0.8)

    def test_baseline_full_rate_after_ten_samples(self):
        update = _learn(baseline=0.2, stats=_stats(satisfied=15, regret=5))
        # rate 0.25, damping 0.2
        assert update.baseline_after == pytest.approx(0.2 + 0.2 * 0.05)

    def test_baseline_untouched_without_feedback(self):
        update = _learn(baseline=0.35, stats=FeedbackStats())
        assert update.baseline_after == 0.35
        assert "Baseline regret unchanged" in update.rationale

    def test_update_records_before_and_after(self):
        update = _learn(sensitivity=2.0, baseline=0.3)
        assert update.sensitivity_before == 2.0
        assert update.baseline_before == 0.3
        assert update.sensitivity_delta == pytest.approx(update.sensitivity_after - 2.0)
        assert update.to_dict()["feedback_type"] == "regret"
        assert update.feedback_count == 1

    def test_repeated_regret_converges_within_bounds(self):
        learner = ParameterLearner()
        sensitivity, baseline = 1.0, 0.2
        for n in range(1, 60):
            update = learner.learn(
                "u", f"d{n}", sensitivity, baseline, _stats(regret=n), FeedbackType.REGRET, 0.1
            )
            sensitivity, baseline = update.sensitivity_after, update.baseline_after
        assert sensitivity == 5.0
        assert 0.9 < baseline <= 1.0

    def test_invalid_rates(self):
        with pytest.raises(InvariantViolation):
            ParameterLearner(prior_rate=1.5)
        with pytest.raises(InvariantViolation):
            ParameterLearner(sensitivity_rate=-0.1)
