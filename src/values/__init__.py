"""Explicit value importance and the implicit value graph."""

from .graph import ValueEdge, ValueGraphStore, ValueNode, compute_trend
from .importance import (
    ValueImportance,
    ValueImportanceStore,
    denormalize_to_scale,
    normalize_from_scale,
    parse_importance_input,
)

__all__ = [
    "ValueEdge",
    "ValueGraphStore",
    "ValueNode",
    "compute_trend",
    "ValueImportance",
    "ValueImportanceStore",
    "denormalize_to_scale",
    "normalize_from_scale",
    "parse_importance_input",
]
