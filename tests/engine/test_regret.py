"""Tests for regret risk calculation."""

import numpy as np
import pytest

from conftest import make_record
from engine.models import FeedbackStats
from engine.regret import RegretRiskCalculator, option_negativity, valence_variance
from shared_types import DataReliability

A = np.array([1.0, 0.0])
B = np.array([0.0, 1.0])


def _stats(satisfied=0, neutral=0, regret=0, extra_decisions=0):
    total = satisfied + neutral + regret
    return FeedbackStats(
        total_decisions=total + extra_decisions,
        total_with_feedback=total,
        satisfied_count=satisfied,
        neutral_count=neutral,
        regret_count=regret,
    )


class TestValenceVariance:
    def test_below_two_records_is_zero(self):
        assert valence_variance([]) == 0.0
        assert valence_variance([make_record(valence=0.9)]) == 0.0

    def test_population_variance(self):
        records = [make_record("a", valence=-1.0), make_record("b", valence=1.0)]
        assert valence_variance(records) == pytest.approx(1.0)


class TestOptionNegativity:
    def test_no_evidence_is_neutral(self):
        assert option_negativity(A, []) == 0.5

    def test_zero_similarity_is_neutral(self):
        assert option_negativity(A, [make_record(embedding=[1.0, 0.0], similarity=0.0, valence=-1.0)]) == 0.5

    def test_option_near_bad_memories_is_more_negative(self):
        records = [
            make_record("bad", embedding=[1.0, 0.0], valence=-0.8),
            make_record("good", embedding=[0.0, 1.0], valence=0.8),
        ]
        assert option_negativity(A, records) > 0.5 > option_negativity(B, records)

    def test_uniform_valence_sets_negativity(self):
        records = [make_record("r1", embedding=[1.0, 0.0], valence=-1.0)]
        assert option_negativity(A, records) == pytest.approx(1.0)


class TestRegretRiskCalculator:
    def test_cold_start_uses_baseline_prior(self):
        regret = RegretRiskCalculator().calculate([], 0.2, A, B, FeedbackStats())
        assert regret.regret_risk_a == pytest.approx(0.2)
        assert regret.regret_risk_b == pytest.approx(0.2)
        assert regret.historical_regret_rate == 0.2
        assert regret.is_using_default_prior
        assert regret.data_reliability == DataReliability.LOW

    def test_feedback_replaces_prior(self):
        regret = RegretRiskCalculator().calculate([], 0.2, A, B, _stats(satisfied=3, regret=1))
        assert regret.historical_regret_rate == pytest.approx(0.25)
        assert regret.regret_risk_a == pytest.approx(0.25)
        assert regret.data_reliability == DataReliability.MEDIUM

    def test_volatility_raises_base(self):
        records = [
            make_record("a", embedding=[1.0, 1.0], valence=-1.0),
            make_record("b", embedding=[1.0, 1.0], valence=1.0),
        ]
        regret = RegretRiskCalculator(volatility_weight=0.3).calculate(records, 0.2, A, B, FeedbackStats())
        assert regret.valence_variance == pytest.approx(1.0)
        assert regret.base_regret == pytest.approx(0.5)

    def test_negativity_separates_options(self):
        records = [
            make_record("bad", embedding=[1.0, 0.0], valence=-0.9),
            make_record("good", embedding=[0.0, 1.0], valence=0.9),
        ]
        regret = RegretRiskCalculator().calculate(records, 0.2, A, B, FeedbackStats())
        assert regret.regret_risk_a > regret.regret_risk_b

    def test_result_clamped(self):
        records = [make_record("a", embedding=[1.0, 0.0], valence=-1.0)]
        regret = RegretRiskCalculator(negativity_weight=5.0).calculate(records, 0.9, A, B, _stats(regret=2))
        assert regret.regret_risk_a == 1.0
        assert 0.0 <= regret.regret_risk_b <= 1.0

    def test_reliability_never_changes_numbers(self):
        few = RegretRiskCalculator().calculate([], 0.2, A, B, _stats(satisfied=4, regret=1))
        many = RegretRiskCalculator().calculate([], 0.2, A, B, _stats(satisfied=40, regret=10))
        assert few.regret_risk_a == pytest.approx(many.regret_risk_a)
        assert few.data_reliability != many.data_reliability
