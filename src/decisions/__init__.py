"""Decision orchestration and persistence."""

from .models import (
    CreateDecisionCommand,
    Decision,
    DecisionError,
    DecisionExplanation,
    DecisionFeedback,
    DecisionNotFoundError,
    DecisionValidationError,
    EmbeddingFailedError,
    FeedbackResult,
    FeedbackStatus,
    SettingsConflictError,
)
from .service import DecisionService
from .settings import UserSettings, UserSettingsStore
from .store import DecisionStore

__all__ = [
    "CreateDecisionCommand",
    "Decision",
    "DecisionError",
    "DecisionExplanation",
    "DecisionFeedback",
    "DecisionNotFoundError",
    "DecisionValidationError",
    "DecisionService",
    "DecisionStore",
    "EmbeddingFailedError",
    "FeedbackResult",
    "FeedbackStatus",
    "SettingsConflictError",
    "UserSettings",
    "UserSettingsStore",
]
