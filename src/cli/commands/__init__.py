"""CLI command modules."""

from .decide import decide
from .decisions import decisions, explain, feedback
from .fragments import fragments
from .settings import settings
from .values import importance, values_group

__all__ = [
    "decide",
    "decisions",
    "explain",
    "feedback",
    "fragments",
    "importance",
    "settings",
    "values_group",
]
