"""Decision domain models and orchestration errors."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from engine.models import DecisionResult, FeedbackStats, ParameterUpdate
from shared_types import FeedbackType, ValueAxis

MAX_TITLE_LENGTH = 500
MAX_OPTION_LENGTH = 2000


class DecisionValidationError(ValueError):
    """Rejected input; raised before any computation runs."""


class DecisionError(Exception):
    """Base for decision orchestration failures."""


class EmbeddingFailedError(DecisionError):
    """An option could not be embedded; the decision cannot be scored."""


class DecisionNotFoundError(DecisionError):
    pass


class SettingsConflictError(DecisionError):
    """Optimistic settings update kept losing to concurrent writers."""


def _new_id() -> str:
    return uuid.uuid4().hex


def _check_text(name: str, value: str, limit: int) -> None:
    if not value or not value.strip():
        raise DecisionValidationError(f"{name} cannot be blank")
    if len(value) > limit:
        raise DecisionValidationError(f"{name} cannot exceed {limit} characters")


@dataclass(frozen=True)
class CreateDecisionCommand:
    user_id: str
    title: str
    option_a: str
    option_b: str
    priority_axis: Optional[ValueAxis] = None

    def __post_init__(self):
        if not self.user_id:
            raise DecisionValidationError("user_id cannot be blank")
        _check_text("title", self.title, MAX_TITLE_LENGTH)
        _check_text("option_a", self.option_a, MAX_OPTION_LENGTH)
        _check_text("option_b", self.option_b, MAX_OPTION_LENGTH)
        if self.priority_axis is not None and not isinstance(self.priority_axis, ValueAxis):
            try:
                object.__setattr__(self, "priority_axis", ValueAxis.parse(str(self.priority_axis)))
            except ValueError as e:
                raise DecisionValidationError(str(e)) from e

    def context_text(self) -> str:
        """Query text used for the similarity search."""
        lines = [
            f"Decision: {self.title}",
            f"Option A: {self.option_a}",
            f"Option B: {self.option_b}",
        ]
        if self.priority_axis is not None:
            lines.append(f"Priority: {self.priority_axis.display_name}")
        return "\n".join(lines)


@dataclass(frozen=True)
class DecisionExplanation:
    summary: str
    evidence_summary: str
    value_summary: str
    generated_at: datetime = field(default_factory=datetime.now)
    # template text built from the numbers when the model output was unusable
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "evidence_summary": self.evidence_summary,
            "value_summary": self.value_summary,
            "generated_at": self.generated_at.isoformat(),
            "is_fallback": self.is_fallback,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DecisionExplanation":
        return cls(
            summary=data["summary"],
            evidence_summary=data["evidence_summary"],
            value_summary=data["value_summary"],
            generated_at=datetime.fromisoformat(data["generated_at"]),
            is_fallback=data.get("is_fallback", False),
        )


@dataclass(frozen=True)
class Decision:
    """A scored two-option decision. Immutable apart from its cached explanation."""

    user_id: str
    title: str
    option_a: str
    option_b: str
    result: DecisionResult
    priority_axis: Optional[ValueAxis] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)
    explanation: Optional[DecisionExplanation] = None

    def __post_init__(self):
        _check_text("title", self.title, MAX_TITLE_LENGTH)
        _check_text("option_a", self.option_a, MAX_OPTION_LENGTH)
        _check_text("option_b", self.option_b, MAX_OPTION_LENGTH)

    @classmethod
    def from_command(cls, command: CreateDecisionCommand, result: DecisionResult) -> "Decision":
        return cls(
            user_id=command.user_id,
            title=command.title,
            option_a=command.option_a,
            option_b=command.option_b,
            priority_axis=command.priority_axis,
            result=result,
        )

    def with_explanation(self, explanation: DecisionExplanation) -> "Decision":
        return replace(self, explanation=explanation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "priority_axis": self.priority_axis.value if self.priority_axis else None,
            "created_at": self.created_at.isoformat(),
            "result": self.result.to_dict(),
            "explanation": self.explanation.to_dict() if self.explanation else None,
        }


@dataclass(frozen=True)
class DecisionFeedback:
    decision_id: str
    user_id: str
    feedback_type: FeedbackType
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)


class FeedbackStatus(StrEnum):
    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class FeedbackResult:
    status: FeedbackStatus
    feedback: Optional[DecisionFeedback] = None
    stats: Optional[FeedbackStats] = None
    update: Optional[ParameterUpdate] = None

    @property
    def accepted(self) -> bool:
        return self.status == FeedbackStatus.ACCEPTED
