"""Tests for explicit value importance."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from shared_types import ValueAxis
from values.importance import (
    ValueImportance,
    ValueImportanceStore,
    denormalize_to_scale,
    normalize_from_scale,
    parse_importance_input,
)


@pytest.fixture
def store(db_path):
    return ValueImportanceStore(db_path)


class TestScale:
    @pytest.mark.parametrize(
        "rating,normalized",
        [(1, 0.0), (10, 1.0), (5.5, 0.5), (9, 8 / 9)],
    )
    def test_normalize(self, rating, normalized):
        assert normalize_from_scale(rating) == pytest.approx(normalized)

    def test_denormalize(self):
        assert denormalize_to_scale(0.5) == pytest.approx(5.5)
        assert denormalize_to_scale(1.0) == 10.0

    def test_normalize_clamps(self):
        assert normalize_from_scale(12) == 1.0
        assert normalize_from_scale(-3) == 0.0


class TestParseImportanceInput:
    def test_valid(self):
        parsed = parse_importance_input({"growth": "9", "Health": 1})
        assert parsed[ValueAxis.GROWTH] == pytest.approx(0.889, abs=1e-3)
        assert parsed[ValueAxis.HEALTH] == 0.0

    def test_unknown_axis(self):
        with pytest.raises(ValueError, match="Unknown value axis"):
            parse_importance_input({"fame": 5})

    def test_non_numeric(self):
        with pytest.raises(ValueError, match="must be a number"):
            parse_importance_input({"growth": "lots"})

    @pytest.mark.parametrize("value", [0, 10.5])
    def test_out_of_range(self, value):
        with pytest.raises(ValueError, match="between 1 and 10"):
            parse_importance_input({"growth": value})


class TestValueImportance:
    def test_missing_axes_default(self):
        importance = ValueImportance(user_id="u1", importance={ValueAxis.GROWTH: 0.9})
        assert importance.get(ValueAxis.GROWTH) == 0.9
        assert importance.get(ValueAxis.HEALTH) == 0.5
        assert importance.has_explicit(ValueAxis.GROWTH)
        assert not importance.has_explicit(ValueAxis.HEALTH)
        assert len(importance.all()) == len(ValueAxis)

    def test_update_merges_and_bumps_version(self):
        v1 = ValueImportance(user_id="u1", importance={ValueAxis.GROWTH: 0.9})
        v2 = v1.update({ValueAxis.HEALTH: 0.2})
        assert v2.version == 2
        assert v2.get(ValueAxis.GROWTH) == 0.9
        assert v2.get(ValueAxis.HEALTH) == 0.2
        assert v1.get(ValueAxis.HEALTH) == 0.5
        assert v2.id != v1.id

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            ValueImportance(user_id="u1", importance={ValueAxis.GROWTH: 1.5})

    def test_to_dict(self):
        data = ValueImportance(user_id="u1", importance={ValueAxis.MEANING: 1.0}).to_dict()
        assert data["importance"]["meaning"] == 1.0
        assert data["importance"]["growth"] == 0.5
        assert data["explicit"] == ["meaning"]


class TestValueImportanceStore:
    def test_no_importance_reads_neutral(self, store):
        assert store.latest("u1") is None
        assert store.read_importance("u1") == {axis: 0.5 for axis in ValueAxis}

    def test_set_and_read(self, store):
        saved = store.set_importance("u1", {ValueAxis.GROWTH: 1.0})
        assert saved.version == 1
        importance = store.read_importance("u1")
        assert importance[ValueAxis.GROWTH] == 1.0
        assert importance[ValueAxis.STABILITY] == 0.5

    def test_versions_append(self, store):
        store.set_importance("u1", {ValueAxis.GROWTH: 1.0})
        store.set_importance("u1", {ValueAxis.HEALTH: 0.0})
        latest = store.latest("u1")
        assert latest.version == 2
        assert latest.get(ValueAxis.GROWTH) == 1.0
        assert latest.get(ValueAxis.HEALTH) == 0.0
        assert [v.version for v in store.history("u1")] == [2, 1]
        assert store.history("u1")[1].get(ValueAxis.HEALTH) == 0.5

    def test_users_isolated(self, store):
        store.set_importance("a", {ValueAxis.GROWTH: 1.0})
        assert store.latest("b") is None

    def test_concurrent_writers_get_consecutive_versions(self, store, db_path):
        axes = list(ValueAxis)

        def write(i):
            return ValueImportanceStore(db_path).set_importance("u1", {axes[i % len(axes)]: 1.0}).version

        with ThreadPoolExecutor(max_workers=8) as pool:
            versions = list(pool.map(write, range(16)))

        assert sorted(versions) == list(range(1, 17))
        latest = store.latest("u1")
        assert latest.version == 16
        assert all(latest.get(axis) == 1.0 for axis in ValueAxis)
