"""Tests for the implicit value graph."""

import pytest

from shared_types import EdgeType, Trend, ValueAxis
from values.graph import ValueEdge, ValueGraphStore, ValueNode, compute_trend


@pytest.fixture
def graph(db_path):
    return ValueGraphStore(db_path)


class TestComputeTrend:
    def test_too_few_samples(self):
        assert compute_trend([]) == Trend.NEUTRAL
        assert compute_trend([0.9]) == Trend.NEUTRAL

    def test_rising(self):
        # newest first
        assert compute_trend([0.8, 0.7, 0.1, 0.0]) == Trend.RISING

    def test_falling(self):
        assert compute_trend([-0.5, -0.4, 0.3, 0.4]) == Trend.FALLING

    def test_flat(self):
        assert compute_trend([0.3, 0.25, 0.3, 0.28]) == Trend.NEUTRAL


class TestValueNode:
    def test_weighted_average(self):
        node = ValueNode(user_id="u1", axis=ValueAxis.GROWTH)
        node = node.update_with_fragment(0.8, 1.0, Trend.NEUTRAL)
        node = node.update_with_fragment(-0.4, 0.5, Trend.FALLING)
        # (0.8 + -0.2) / 2
        assert node.avg_valence == pytest.approx(0.3)
        assert node.fragment_count == 2
        assert node.trend == Trend.FALLING

    @pytest.mark.parametrize("valence,weight", [(1.5, 0.5), (0.5, 1.5), (0.5, -0.1)])
    def test_invalid_update(self, valence, weight):
        node = ValueNode(user_id="u1", axis=ValueAxis.GROWTH)
        with pytest.raises(ValueError):
            node.update_with_fragment(valence, weight, Trend.NEUTRAL)

    def test_to_signal(self):
        node = ValueNode(user_id="u1", axis=ValueAxis.HEALTH, avg_valence=-0.2, fragment_count=4)
        signal = node.to_signal()
        assert signal.avg_valence == -0.2
        assert signal.sample_count == 4


class TestValueGraphStore:
    def test_empty_user_has_default_nodes(self, graph):
        nodes = graph.nodes("u1")
        assert set(nodes) == set(ValueAxis)
        assert all(not n.has_fragments for n in nodes.values())
        assert graph.read_signals("u1") == {}

    def test_record_fragment(self, graph):
        graph.record_fragment("u1", {ValueAxis.GROWTH: 1.0, ValueAxis.FINANCIAL: 0.5}, 0.6)
        nodes = graph.nodes("u1")
        assert nodes[ValueAxis.GROWTH].avg_valence == pytest.approx(0.6)
        assert nodes[ValueAxis.FINANCIAL].avg_valence == pytest.approx(0.3)
        assert nodes[ValueAxis.HEALTH].fragment_count == 0

    def test_zero_weight_axes_skipped(self, graph):
        graph.record_fragment("u1", {ValueAxis.GROWTH: 0.0}, 0.6)
        assert graph.read_signals("u1") == {}

    def test_signals_only_for_observed_axes(self, graph):
        graph.record_fragment("u1", {ValueAxis.MEANING: 1.0}, -0.5)
        graph.record_fragment("u1", {ValueAxis.MEANING: 1.0}, 0.5)
        signals = graph.read_signals("u1")
        assert list(signals) == [ValueAxis.MEANING]
        assert signals[ValueAxis.MEANING].sample_count == 2
        assert signals[ValueAxis.MEANING].avg_valence == pytest.approx(0.0)

    def test_trend_from_history(self, graph):
        for valence in (-0.8, -0.6, 0.7, 0.9):
            graph.record_fragment("u1", {ValueAxis.AUTONOMY: 1.0}, valence)
        assert graph.nodes("u1")[ValueAxis.AUTONOMY].trend == Trend.RISING

    def test_users_isolated(self, graph):
        graph.record_fragment("a", {ValueAxis.GROWTH: 1.0}, 0.6)
        assert graph.read_signals("b") == {}


class TestValueEdge:
    def test_axis_order_normalized(self):
        edge = ValueEdge("u1", ValueAxis.HEALTH, ValueAxis.GROWTH, EdgeType.CONFLICT, 0.4)
        assert (edge.source, edge.target) == (ValueAxis.GROWTH, ValueAxis.HEALTH)

    def test_self_loop_rejected(self):
        with pytest.raises(ValueError, match="itself"):
            ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.GROWTH, EdgeType.SUPPORT, 0.5)

    @pytest.mark.parametrize("weight", [-0.1, 1.5])
    def test_weight_range(self, weight):
        with pytest.raises(ValueError, match="weight"):
            ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.HEALTH, EdgeType.SUPPORT, weight)

    def test_significance(self):
        assert ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.HEALTH, EdgeType.CONFLICT, 0.3).is_significant
        assert not ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.HEALTH, EdgeType.CONFLICT, 0.29).is_significant

    def test_descriptions_are_neutral(self):
        strong = ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT, 0.8)
        assert strong.describe().endswith("show strong tension in your recorded thoughts.")
        assert strong.describe().startswith("Growth/Learning and Stability/Predictability")
        support = ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.MEANING, EdgeType.SUPPORT, 0.8)
        assert "satisfied together" in support.describe()


class TestValueEdgeStore:
    def test_save_and_list(self, graph):
        graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT, 0.6))
        graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.MEANING, EdgeType.SUPPORT, 0.8))

        edges = graph.edges("u1")

        assert [(e.source, e.target, e.edge_type) for e in edges] == [
            (ValueAxis.GROWTH, ValueAxis.MEANING, EdgeType.SUPPORT),
            (ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT),
        ]
        assert [e.edge_type for e in graph.edges("u1", EdgeType.CONFLICT)] == [EdgeType.CONFLICT]
        assert graph.edges("u2") == []

    def test_reversed_pair_updates_same_edge(self, graph):
        graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT, 0.6))
        graph.save_edge(ValueEdge("u1", ValueAxis.STABILITY, ValueAxis.GROWTH, EdgeType.CONFLICT, 0.2))
        edges = graph.edges("u1")
        assert len(edges) == 1
        assert edges[0].weight == pytest.approx(0.2)

    def test_conflict_never_flipped_to_support(self, graph):
        graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT, 0.6))
        with pytest.raises(ValueError, match="already recorded as conflict"):
            graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.SUPPORT, 0.9))
        [edge] = graph.edges("u1")
        assert edge.is_conflict
        assert edge.weight == pytest.approx(0.6)

    def test_weak_conflicts_kept_but_filtered(self, graph):
        graph.save_edge(ValueEdge("u1", ValueAxis.GROWTH, ValueAxis.STABILITY, EdgeType.CONFLICT, 0.1))
        graph.save_edge(ValueEdge("u1", ValueAxis.HEALTH, ValueAxis.ACHIEVEMENT, EdgeType.CONFLICT, 0.7))
        assert [e.weight for e in graph.conflicts("u1")] == [pytest.approx(0.7)]
        assert len(graph.conflicts("u1", significant_only=False)) == 2
