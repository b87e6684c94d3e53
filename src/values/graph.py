"""Implicit value graph: per-axis valence learned from recorded fragments."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence

import structlog

from db import ensure_parent, wal_connect, write_transaction
from engine.models import AxisSignal
from shared_types import EdgeType, Trend, ValueAxis

logger = structlog.get_logger()

TREND_THRESHOLD = 0.1
TREND_WINDOW = 10
EDGE_SIGNIFICANCE = 0.3


def compute_trend(recent_valences: Sequence[float], threshold: float = TREND_THRESHOLD) -> Trend:
    """Compare the newer half of `recent_valences` (newest first) with the older half."""
    if len(recent_valences) < 2:
        return Trend.NEUTRAL
    mid = len(recent_valences) // 2
    newer = recent_valences[:mid]
    older = recent_valences[mid:]
    change = sum(newer) / len(newer) - sum(older) / len(older)
    if change > threshold:
        return Trend.RISING
    if change < -threshold:
        return Trend.FALLING
    return Trend.NEUTRAL


@dataclass(frozen=True)
class ValueNode:
    user_id: str
    axis: ValueAxis
    avg_valence: float = 0.0
    trend: Trend = Trend.NEUTRAL
    fragment_count: int = 0
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not -1.0 <= self.avg_valence <= 1.0:
            raise ValueError("avg_valence must be between -1.0 and 1.0")
        if self.fragment_count < 0:
            raise ValueError("fragment_count cannot be negative")

    @property
    def has_fragments(self) -> bool:
        return self.fragment_count > 0

    def update_with_fragment(self, valence: float, weight: float, trend: Trend) -> "ValueNode":
        """Weighted incremental average; the weight scales this fragment's valence."""
        if not -1.0 <= valence <= 1.0:
            raise ValueError("valence must be between -1.0 and 1.0")
        if not 0.0 <= weight <= 1.0:
            raise ValueError("weight must be between 0.0 and 1.0")
        count = self.fragment_count + 1
        avg = (self.avg_valence * self.fragment_count + valence * weight) / count
        return replace(
            self,
            avg_valence=max(-1.0, min(1.0, avg)),
            trend=trend,
            fragment_count=count,
            updated_at=datetime.now(),
        )

    def to_signal(self) -> AxisSignal:
        return AxisSignal(avg_valence=self.avg_valence, sample_count=self.fragment_count)


@dataclass(frozen=True)
class ValueEdge:
    """Relationship between two axes.

    SUPPORT edges join values that tend to be satisfied together, CONFLICT
    edges join values in tension. The pair is stored in axis order, so A-B and
    B-A are the same edge. An edge keeps its type for life: new evidence
    changes the weight only, and conflict edges are never removed.
    """

    user_id: str
    source: ValueAxis
    target: ValueAxis
    edge_type: EdgeType
    weight: float = 0.0
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.source == self.target:
            raise ValueError("An edge cannot connect a value to itself")
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError("weight must be between 0.0 and 1.0")
        order = list(ValueAxis)
        if order.index(self.source) > order.index(self.target):
            source, target = self.target, self.source
            object.__setattr__(self, "source", source)
            object.__setattr__(self, "target", target)

    @property
    def is_conflict(self) -> bool:
        return self.edge_type is EdgeType.CONFLICT

    @property
    def is_significant(self) -> bool:
        return self.weight >= EDGE_SIGNIFICANCE

    def describe(self) -> str:
        a, b = self.source.display_name, self.target.display_name
        if self.edge_type is EdgeType.SUPPORT:
            return f"{a} and {b} tend to be satisfied together."
        if self.weight >= 0.7:
            return f"{a} and {b} show strong tension in your recorded thoughts."
        if self.weight >= 0.5:
            return f"{a} and {b} appear to be in moderate tension."
        return f"{a} and {b} show some tension."


class ValueGraphStore:
    """Nodes per (user, axis), the valence history used for trends, and edges."""

    def __init__(self, db_path: Path):
        self.db_path = ensure_parent(db_path)
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS value_nodes (
                    user_id TEXT NOT NULL,
                    axis TEXT NOT NULL,
                    avg_valence REAL NOT NULL DEFAULT 0,
                    trend TEXT NOT NULL DEFAULT 'neutral',
                    fragment_count INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, axis)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS value_observations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    axis TEXT NOT NULL,
                    valence REAL NOT NULL,
                    weight REAL NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_obs_user_axis ON value_observations(user_id, axis, id)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS value_edges (
                    user_id TEXT NOT NULL,
                    source TEXT NOT NULL,
                    target TEXT NOT NULL,
                    edge_type TEXT NOT NULL,
                    weight REAL NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, source, target),
                    CHECK (source != target),
                    CHECK (weight BETWEEN 0.0 AND 1.0)
                )
            """)

    def nodes(self, user_id: str) -> dict[ValueAxis, ValueNode]:
        """All 8 nodes; axes never observed get a default node."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute("SELECT * FROM value_nodes WHERE user_id = ?", (user_id,)).fetchall()
        found = {
            ValueAxis(r["axis"]): ValueNode(
                user_id=user_id,
                axis=ValueAxis(r["axis"]),
                avg_valence=r["avg_valence"],
                trend=Trend(r["trend"]),
                fragment_count=r["fragment_count"],
                updated_at=datetime.fromisoformat(r["updated_at"]),
            )
            for r in rows
        }
        return {axis: found.get(axis, ValueNode(user_id=user_id, axis=axis)) for axis in ValueAxis}

    def read_signals(self, user_id: str) -> dict[ValueAxis, AxisSignal]:
        return {axis: node.to_signal() for axis, node in self.nodes(user_id).items() if node.has_fragments}

    def record_fragment(self, user_id: str, axis_weights: Mapping[ValueAxis, float], valence: float):
        """Soft-assign one fragment to every axis with a positive weight."""
        now = datetime.now().isoformat()
        with write_transaction(self.db_path) as conn:
            for axis, weight in axis_weights.items():
                if weight <= 0:
                    continue
                row = conn.execute(
                    "SELECT * FROM value_nodes WHERE user_id = ? AND axis = ?", (user_id, axis.value)
                ).fetchone()
                node = ValueNode(user_id=user_id, axis=axis)
                if row:
                    node = ValueNode(
                        user_id=user_id,
                        axis=axis,
                        avg_valence=row["avg_valence"],
                        trend=Trend(row["trend"]),
                        fragment_count=row["fragment_count"],
                    )
                conn.execute(
                    """INSERT INTO value_observations (user_id, axis, valence, weight, created_at)
                    VALUES (?, ?, ?, ?, ?)""",
                    (user_id, axis.value, valence, weight, now),
                )
                recent = [
                    r["valence"]
                    for r in conn.execute(
                        """SELECT valence FROM value_observations
                        WHERE user_id = ? AND axis = ? ORDER BY id DESC LIMIT ?""",
                        (user_id, axis.value, TREND_WINDOW),
                    ).fetchall()
                ]
                node = node.update_with_fragment(valence, weight, compute_trend(recent))
                conn.execute(
                    """INSERT INTO value_nodes (user_id, axis, avg_valence, trend, fragment_count, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, axis) DO UPDATE SET
                        avg_valence = excluded.avg_valence,
                        trend = excluded.trend,
                        fragment_count = excluded.fragment_count,
                        updated_at = excluded.updated_at""",
                    (user_id, axis.value, node.avg_valence, node.trend.value, node.fragment_count, now),
                )
        logger.debug("value_graph.recorded", user_id=user_id, axes=sorted(a.value for a in axis_weights))

    # --- edges ---

    def save_edge(self, edge: ValueEdge) -> ValueEdge:
        """Insert an edge or update the weight of an existing one.

        Raises ValueError when the pair is already recorded with the other
        edge type; a conflict is never turned into support or back.
        """
        with write_transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT edge_type FROM value_edges WHERE user_id = ? AND source = ? AND target = ?",
                (edge.user_id, edge.source.value, edge.target.value),
            ).fetchone()
            if row and row["edge_type"] != edge.edge_type.value:
                raise ValueError(
                    f"{edge.source.value}-{edge.target.value} is already recorded as {row['edge_type']}"
                )
            conn.execute(
                """INSERT INTO value_edges (user_id, source, target, edge_type, weight, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, source, target) DO UPDATE SET
                    weight = excluded.weight,
                    updated_at = excluded.updated_at""",
                (
                    edge.user_id,
                    edge.source.value,
                    edge.target.value,
                    edge.edge_type.value,
                    edge.weight,
                    edge.updated_at.isoformat(),
                ),
            )
        logger.info(
            "value_graph.edge_saved",
            user_id=edge.user_id,
            source=edge.source.value,
            target=edge.target.value,
            edge_type=edge.edge_type.value,
        )
        return edge

    def edges(self, user_id: str, edge_type: Optional[EdgeType] = None) -> list[ValueEdge]:
        query = "SELECT * FROM value_edges WHERE user_id = ?"
        params: list = [user_id]
        if edge_type is not None:
            query += " AND edge_type = ?"
            params.append(edge_type.value)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(query + " ORDER BY weight DESC, source, target", params).fetchall()
        return [
            ValueEdge(
                user_id=r["user_id"],
                source=ValueAxis(r["source"]),
                target=ValueAxis(r["target"]),
                edge_type=EdgeType(r["edge_type"]),
                weight=r["weight"],
                updated_at=datetime.fromisoformat(r["updated_at"]),
            )
            for r in rows
        ]

    def conflicts(self, user_id: str, significant_only: bool = True) -> list[ValueEdge]:
        """Conflict edges, strongest first. Tension is reported, never resolved."""
        found = self.edges(user_id, EdgeType.CONFLICT)
        if significant_only:
            found = [e for e in found if e.is_significant]
        return found
