"""Per-user engine settings with optimistic versioning."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

from db import ensure_parent, wal_connect
from engine.models import (
    DEFAULT_BASELINE_REGRET_RATE,
    DEFAULT_SENSITIVITY_WEIGHT,
    CalculationParameters,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class UserSettings:
    user_id: str
    sensitivity_weight: float = DEFAULT_SENSITIVITY_WEIGHT
    baseline_regret_rate: float = DEFAULT_BASELINE_REGRET_RATE
    version: int = 0

    def to_parameters(self, **overrides) -> CalculationParameters:
        return CalculationParameters.with_user_settings(
            self.sensitivity_weight, self.baseline_regret_rate, **overrides
        )


class UserSettingsStore:
    """One row per user, created lazily.

    Concurrent feedback for the same user races on this row, so writes go
    through compare_and_swap on the version column.
    """

    def __init__(
        self,
        db_path: Path,
        default_sensitivity: float = DEFAULT_SENSITIVITY_WEIGHT,
        default_baseline: float = DEFAULT_BASELINE_REGRET_RATE,
    ):
        self.db_path = ensure_parent(db_path)
        self.default_sensitivity = default_sensitivity
        self.default_baseline = default_baseline
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_settings (
                    user_id TEXT PRIMARY KEY,
                    sensitivity_weight REAL NOT NULL,
                    baseline_regret_rate REAL NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                )
            """)

    def get(self, user_id: str) -> UserSettings:
        """Current settings, inserting defaults on first access."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            conn.execute(
                """INSERT OR IGNORE INTO user_settings
                (user_id, sensitivity_weight, baseline_regret_rate, version, updated_at)
                VALUES (?, ?, ?, 0, ?)""",
                (user_id, self.default_sensitivity, self.default_baseline, datetime.now().isoformat()),
            )
            row = conn.execute("SELECT * FROM user_settings WHERE user_id = ?", (user_id,)).fetchone()
        return UserSettings(
            user_id=row["user_id"],
            sensitivity_weight=row["sensitivity_weight"],
            baseline_regret_rate=row["baseline_regret_rate"],
            version=row["version"],
        )

    def compare_and_swap(
        self,
        user_id: str,
        expected_version: int,
        sensitivity_weight: float,
        baseline_regret_rate: float,
    ) -> bool:
        """Write new values only if the row is still at `expected_version`."""
        # validates bounds before touching the row
        CalculationParameters.with_user_settings(sensitivity_weight, baseline_regret_rate)
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE user_settings
                SET sensitivity_weight = ?, baseline_regret_rate = ?,
                    version = version + 1, updated_at = ?
                WHERE user_id = ? AND version = ?""",
                (
                    sensitivity_weight,
                    baseline_regret_rate,
                    datetime.now().isoformat(),
                    user_id,
                    expected_version,
                ),
            )
            swapped = cur.rowcount == 1
        if not swapped:
            logger.info("settings.cas_miss", user_id=user_id, expected_version=expected_version)
        return swapped
