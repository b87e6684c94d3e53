"""Boundaries to the collaborators the decision service depends on."""

from typing import TYPE_CHECKING, Protocol, Sequence

from engine.models import EvidenceRecord
from engine.vectors import Vector

if TYPE_CHECKING:
    from .models import Decision, DecisionExplanation


class Embedder(Protocol):
    async def embed(self, text: str) -> Vector: ...


class FragmentSearch(Protocol):
    async def search(self, user_id: str, query_embedding: Vector, k: int) -> list[EvidenceRecord]: ...

    async def get_texts(self, user_id: str, record_ids: Sequence[str]) -> dict[str, str]: ...


class Explainer(Protocol):
    """Read-only consumer of a finished decision. Must not touch its numbers."""

    async def explain(
        self, decision: "Decision", evidence_texts: Sequence[str]
    ) -> "DecisionExplanation": ...
