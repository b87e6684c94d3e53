"""SQLite persistence for decisions, feedback and parameter updates."""

import json
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import structlog

from db import ensure_parent, wal_connect, write_transaction
from engine.models import DecisionResult, FeedbackStats, ParameterUpdate
from shared_types import FeedbackType, ValueAxis

from .models import Decision, DecisionExplanation, DecisionFeedback

logger = structlog.get_logger()

FEEDBACK_WINDOW_MIN_HOURS = 24
FEEDBACK_WINDOW_MAX_HOURS = 72


class DecisionStore:
    """Decisions (result and breakdown as JSON), one feedback per decision, learner audit."""

    def __init__(self, db_path: Path):
        self.db_path = ensure_parent(db_path)
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS decisions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    option_a TEXT NOT NULL,
                    option_b TEXT NOT NULL,
                    priority_axis TEXT,
                    result_json TEXT NOT NULL,
                    breakdown_json TEXT,
                    explanation_json TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS decision_feedback (
                    id TEXT PRIMARY KEY,
                    decision_id TEXT NOT NULL UNIQUE REFERENCES decisions(id),
                    user_id TEXT NOT NULL,
                    feedback_type TEXT NOT NULL
                        CHECK(feedback_type IN ('satisfied','neutral','regret')),
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS parameter_updates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    decision_id TEXT NOT NULL,
                    update_json TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_decisions_user ON decisions(user_id, created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_feedback_user ON decision_feedback(user_id)")

    # --- decisions ---

    def save(self, decision: Decision) -> str:
        result = decision.result
        breakdown_json = result.breakdown.to_json() if result.breakdown else None
        # breakdown lives in its own column
        result_data = result.to_dict()
        result_data.pop("breakdown", None)
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO decisions
                (id, user_id, title, option_a, option_b, priority_axis,
                 result_json, breakdown_json, explanation_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    decision.id,
                    decision.user_id,
                    decision.title,
                    decision.option_a,
                    decision.option_b,
                    decision.priority_axis.value if decision.priority_axis else None,
                    json.dumps(result_data, sort_keys=True),
                    breakdown_json,
                    json.dumps(decision.explanation.to_dict()) if decision.explanation else None,
                    decision.created_at.isoformat(),
                ),
            )
        logger.debug("decision.saved", decision_id=decision.id, user_id=decision.user_id)
        return decision.id

    def get(self, decision_id: str) -> Optional[Decision]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM decisions WHERE id = ?", (decision_id,)).fetchone()
        return self._row_to_decision(row) if row else None

    def get_for_user(self, user_id: str, decision_id: str) -> Optional[Decision]:
        """Decision only if owned by `user_id`."""
        decision = self.get(decision_id)
        if decision is None or decision.user_id != user_id:
            return None
        return decision

    def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Decision]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT * FROM decisions WHERE user_id = ?
                ORDER BY created_at DESC LIMIT ? OFFSET ?""",
                (user_id, limit, offset),
            ).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def find_needing_feedback(self, user_id: str, now: Optional[datetime] = None) -> list[Decision]:
        """Decisions created 24-72 hours ago that have no feedback yet."""
        now = now or datetime.now()
        newest = (now - timedelta(hours=FEEDBACK_WINDOW_MIN_HOURS)).isoformat()
        oldest = (now - timedelta(hours=FEEDBACK_WINDOW_MAX_HOURS)).isoformat()
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT d.* FROM decisions d
                LEFT JOIN decision_feedback f ON f.decision_id = d.id
                WHERE d.user_id = ? AND f.id IS NULL
                  AND d.created_at >= ? AND d.created_at <= ?
                ORDER BY d.created_at ASC""",
                (user_id, oldest, newest),
            ).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def attach_explanation(self, decision_id: str, explanation: DecisionExplanation) -> bool:
        """Cache an explanation. The only write ever made to a stored decision."""
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE decisions SET explanation_json = ? WHERE id = ?",
                (json.dumps(explanation.to_dict()), decision_id),
            )
            return cur.rowcount > 0

    # --- feedback ---

    def get_feedback(self, decision_id: str) -> Optional[DecisionFeedback]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM decision_feedback WHERE decision_id = ?", (decision_id,)
            ).fetchone()
        return self._row_to_feedback(row) if row else None

    def feedback_without_update(self, user_id: str) -> list[DecisionFeedback]:
        """Feedback whose learner step never landed, oldest first."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT f.* FROM decision_feedback f
                LEFT JOIN parameter_updates u ON u.decision_id = f.decision_id
                WHERE f.user_id = ? AND u.id IS NULL
                ORDER BY f.created_at""",
                (user_id,),
            ).fetchall()
        return [self._row_to_feedback(r) for r in rows]

    def save_feedback(self, feedback: DecisionFeedback) -> bool:
        """Insert feedback once. Returns False if the decision already has feedback."""
        try:
            with write_transaction(self.db_path) as conn:
                existing = conn.execute(
                    "SELECT 1 FROM decision_feedback WHERE decision_id = ?", (feedback.decision_id,)
                ).fetchone()
                if existing:
                    return False
                conn.execute(
                    """INSERT INTO decision_feedback
                    (id, decision_id, user_id, feedback_type, created_at)
                    VALUES (?, ?, ?, ?, ?)""",
                    (
                        feedback.id,
                        feedback.decision_id,
                        feedback.user_id,
                        feedback.feedback_type.value,
                        feedback.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError:
            # lost the race to another writer on the UNIQUE constraint
            logger.info("feedback.unique_violation", decision_id=feedback.decision_id)
            return False
        return True

    def feedback_stats(self, user_id: str) -> FeedbackStats:
        with wal_connect(self.db_path, row_factory=True) as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM decisions WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
            rows = conn.execute(
                """SELECT feedback_type, COUNT(*) AS cnt FROM decision_feedback
                WHERE user_id = ? GROUP BY feedback_type""",
                (user_id,),
            ).fetchall()
        counts = {r["feedback_type"]: r["cnt"] for r in rows}
        with_feedback = sum(counts.values())
        return FeedbackStats(
            total_decisions=max(total, with_feedback),
            total_with_feedback=with_feedback,
            satisfied_count=counts.get(FeedbackType.SATISFIED.value, 0),
            neutral_count=counts.get(FeedbackType.NEUTRAL.value, 0),
            regret_count=counts.get(FeedbackType.REGRET.value, 0),
        )

    # --- learner audit ---

    def save_parameter_update(self, update: ParameterUpdate):
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO parameter_updates (user_id, decision_id, update_json, created_at)
                VALUES (?, ?, ?, ?)""",
                (
                    update.user_id,
                    update.decision_id,
                    json.dumps(update.to_dict(), sort_keys=True),
                    datetime.now().isoformat(),
                ),
            )

    def parameter_updates(self, user_id: str, limit: int = 20) -> list[dict]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT update_json, created_at FROM parameter_updates
                WHERE user_id = ? ORDER BY id DESC LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [{**json.loads(r["update_json"]), "created_at": r["created_at"]} for r in rows]

    # --- helpers ---

    @staticmethod
    def _row_to_feedback(row: sqlite3.Row) -> DecisionFeedback:
        return DecisionFeedback(
            id=row["id"],
            decision_id=row["decision_id"],
            user_id=row["user_id"],
            feedback_type=FeedbackType(row["feedback_type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_decision(row: sqlite3.Row) -> Decision:
        result_data = json.loads(row["result_json"])
        if row["breakdown_json"]:
            result_data["breakdown"] = json.loads(row["breakdown_json"])
        explanation = None
        if row["explanation_json"]:
            explanation = DecisionExplanation.from_dict(json.loads(row["explanation_json"]))
        return Decision(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            option_a=row["option_a"],
            option_b=row["option_b"],
            priority_axis=ValueAxis(row["priority_axis"]) if row["priority_axis"] else None,
            result=DecisionResult.from_dict(result_data),
            created_at=datetime.fromisoformat(row["created_at"]),
            explanation=explanation,
        )
