"""Explicit per-axis value importance, versioned and append-only."""

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import structlog

from db import ensure_parent, wal_connect, write_transaction
from shared_types import ValueAxis

logger = structlog.get_logger()

DEFAULT_IMPORTANCE = 0.5
SCALE_MIN = 1.0
SCALE_MAX = 10.0


def normalize_from_scale(value: float, low: float = SCALE_MIN, high: float = SCALE_MAX) -> float:
    """Map a 1-10 rating onto [0, 1]."""
    return max(0.0, min(1.0, (value - low) / (high - low)))


def denormalize_to_scale(normalized: float, low: float = SCALE_MIN, high: float = SCALE_MAX) -> float:
    return max(low, min(high, normalized * (high - low) + low))


def parse_importance_input(raw: Mapping[str, Any]) -> dict[ValueAxis, float]:
    """Validate user input on the 1-10 scale and normalize it.

    Raises ValueError for unknown axis names, non-numeric values and values
    outside [1, 10].
    """
    parsed: dict[ValueAxis, float] = {}
    for name, value in raw.items():
        axis = ValueAxis.parse(name)
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Importance for {name} must be a number, got: {value!r}") from e
        if not SCALE_MIN <= number <= SCALE_MAX:
            raise ValueError(
                f"Importance for {axis.value} must be between {SCALE_MIN:g} and {SCALE_MAX:g}, got: {number:g}"
            )
        parsed[axis] = normalize_from_scale(number)
    return parsed


@dataclass(frozen=True)
class ValueImportance:
    user_id: str
    importance: Mapping[ValueAxis, float] = field(default_factory=dict)
    version: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        for axis, value in self.importance.items():
            if not isinstance(axis, ValueAxis):
                raise ValueError(f"Unknown value axis: {axis!r}")
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Importance for {axis.value} must be between 0.0 and 1.0, got: {value}")
        if self.version < 1:
            raise ValueError("Version must be at least 1")
        object.__setattr__(self, "importance", dict(self.importance))

    def get(self, axis: ValueAxis) -> float:
        return self.importance.get(axis, DEFAULT_IMPORTANCE)

    def has_explicit(self, axis: ValueAxis) -> bool:
        return axis in self.importance

    def all(self) -> dict[ValueAxis, float]:
        return {axis: self.get(axis) for axis in ValueAxis}

    def update(self, changes: Mapping[ValueAxis, float], at: Optional[datetime] = None) -> "ValueImportance":
        """New version; axes not in `changes` keep their previous value."""
        merged = {**self.importance, **changes}
        return replace(
            self,
            importance=merged,
            version=self.version + 1,
            id=uuid.uuid4().hex,
            created_at=at or datetime.now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "importance": {axis.value: v for axis, v in self.all().items()},
            "explicit": sorted(a.value for a in self.importance),
        }


class ValueImportanceStore:
    """One row per version; the latest version wins."""

    def __init__(self, db_path: Path):
        self.db_path = ensure_parent(db_path)
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS value_importance (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    importance_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(user_id, version)
                )
            """)

    def latest(self, user_id: str) -> Optional[ValueImportance]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            return self._latest(conn, user_id)

    def _latest(self, conn, user_id: str) -> Optional[ValueImportance]:
        row = conn.execute(
            "SELECT * FROM value_importance WHERE user_id = ? ORDER BY version DESC LIMIT 1",
            (user_id,),
        ).fetchone()
        return self._row_to_importance(row) if row else None

    def history(self, user_id: str, limit: int = 20) -> list[ValueImportance]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                "SELECT * FROM value_importance WHERE user_id = ? ORDER BY version DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [self._row_to_importance(r) for r in rows]

    def read_importance(self, user_id: str) -> dict[ValueAxis, float]:
        """All 8 axes, 0.5 where never set."""
        current = self.latest(user_id)
        if current is None:
            return ValueImportance(user_id=user_id).all()
        return current.all()

    def set_importance(self, user_id: str, changes: Mapping[ValueAxis, float]) -> ValueImportance:
        """Append a new version merged over the latest one.

        The read of the latest version and the insert share one write lock, so
        concurrent writers get consecutive versions.
        """
        with write_transaction(self.db_path) as conn:
            current = self._latest(conn, user_id)
            if current is None:
                new = ValueImportance(user_id=user_id, importance=changes)
            else:
                new = current.update(changes)
            conn.execute(
                """INSERT INTO value_importance (id, user_id, version, importance_json, created_at)
                VALUES (?, ?, ?, ?, ?)""",
                (
                    new.id,
                    new.user_id,
                    new.version,
                    json.dumps({a.value: v for a, v in new.importance.items()}, sort_keys=True),
                    new.created_at.isoformat(),
                ),
            )
        logger.info("importance.updated", user_id=user_id, version=new.version, axes=sorted(a.value for a in changes))
        return new

    @staticmethod
    def _row_to_importance(row) -> ValueImportance:
        raw = json.loads(row["importance_json"])
        return ValueImportance(
            id=row["id"],
            user_id=row["user_id"],
            version=row["version"],
            importance={ValueAxis(k): v for k, v in raw.items()},
            created_at=datetime.fromisoformat(row["created_at"]),
        )
