"""Fragment vector index and embedder backed by ChromaDB."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

import chromadb
import structlog
from chromadb.config import Settings
from chromadb.utils import embedding_functions

from engine.models import EvidenceRecord
from engine.vectors import Vector, as_vector, clamp

logger = structlog.get_logger()

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"

EmbedFn = Callable[[list[str]], Sequence[Sequence[float]]]


class ChromaEmbedder:
    """Text to vector using ChromaDB's default embedding function (MiniLM, local ONNX)."""

    def __init__(self, embedding_function: Optional[EmbedFn] = None):
        self._fn = embedding_function or embedding_functions.DefaultEmbeddingFunction()

    def embed_sync(self, text: str) -> Vector:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        return as_vector(self._fn([text])[0])

    async def embed(self, text: str) -> Vector:
        return await asyncio.to_thread(self.embed_sync, text)


@dataclass(frozen=True)
class Fragment:
    id: str
    text: str
    valence: float
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


def _live(user_id: Optional[str] = None) -> dict:
    """Chroma where-clause for fragments that are not soft-deleted."""
    if user_id is None:
        return {"deleted": False}
    return {"$and": [{"user_id": user_id}, {"deleted": False}]}


def _parse_time(raw) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


class FragmentIndex:
    """Per-user fragment collection; answers similarity queries with EvidenceRecords.

    Valence is supplied by the caller when a fragment is added. Deleting a
    fragment only marks it; marked fragments drop out of search, evidence text
    lookups and counts.
    """

    def __init__(
        self,
        chroma_dir: str | Path,
        embedder: ChromaEmbedder,
        collection_name: str = "fragments",
    ):
        self.chroma_dir = Path(chroma_dir).expanduser()
        self.chroma_dir.mkdir(parents=True, exist_ok=True)
        self.embedder = embedder
        self.client = chromadb.PersistentClient(
            path=str(self.chroma_dir),
            settings=Settings(anonymized_telemetry=False),
        )
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine", "embedding_model": DEFAULT_EMBEDDING_MODEL},
        )

    def add_fragment(self, user_id: str, fragment_id: str, text: str, valence: float) -> Vector:
        """Embed and store a fragment. Returns its embedding."""
        if not -1.0 <= valence <= 1.0:
            raise ValueError(f"valence must be between -1.0 and 1.0, got: {valence}")
        embedding = self.embedder.embed_sync(text)
        self.collection.upsert(
            ids=[fragment_id],
            embeddings=[embedding.tolist()],
            documents=[text],
            metadatas=[
                {
                    "user_id": user_id,
                    "valence": float(valence),
                    "created_at": datetime.now().isoformat(),
                    "deleted": False,
                }
            ],
        )
        logger.debug("fragment.indexed", user_id=user_id, fragment_id=fragment_id)
        return embedding

    def list_fragments(self, user_id: str, limit: int = 20, include_deleted: bool = False) -> list[Fragment]:
        """Newest first."""
        where = {"user_id": user_id} if include_deleted else _live(user_id)
        data = self.collection.get(where=where, include=["documents", "metadatas"])
        found = [
            Fragment(
                id=fragment_id,
                text=doc or "",
                valence=float((meta or {}).get("valence", 0.0)),
                created_at=_parse_time((meta or {}).get("created_at")),
                deleted_at=_parse_time((meta or {}).get("deleted_at")),
            )
            for fragment_id, doc, meta in zip(data["ids"], data["documents"], data["metadatas"])
        ]
        found.sort(key=lambda f: f.created_at or datetime.min, reverse=True)
        return found[:limit]

    def delete_fragment(self, user_id: str, fragment_id: str) -> bool:
        """Soft-delete. False if the fragment is missing, someone else's, or already deleted."""
        data = self.collection.get(ids=[fragment_id], include=["metadatas"])
        if not data["ids"]:
            return False
        meta = dict(data["metadatas"][0] or {})
        if meta.get("user_id") != user_id or meta.get("deleted"):
            return False
        meta.update(deleted=True, deleted_at=datetime.now().isoformat())
        self.collection.update(ids=[fragment_id], metadatas=[meta])
        logger.info("fragment.deleted", user_id=user_id, fragment_id=fragment_id)
        return True

    def count(self, user_id: Optional[str] = None) -> int:
        return len(self.collection.get(where=_live(user_id), include=[])["ids"])

    def search_sync(self, user_id: str, query_embedding: Vector, k: int = 20) -> list[EvidenceRecord]:
        available = self.count(user_id)
        if available == 0:
            return []
        results = self.collection.query(
            query_embeddings=[as_vector(query_embedding).tolist()],
            n_results=min(k, available),
            where=_live(user_id),
            include=["documents", "metadatas", "distances", "embeddings"],
        )
        records = []
        if results["ids"] and results["ids"][0]:
            for i, fragment_id in enumerate(results["ids"][0]):
                meta = results["metadatas"][0][i] or {}
                records.append(
                    EvidenceRecord(
                        record_id=fragment_id,
                        text=results["documents"][0][i] or "",
                        valence=float(meta.get("valence", 0.0)),
                        # cosine distance is 1 - cos
                        similarity=clamp(1.0 - float(results["distances"][0][i])),
                        embedding=results["embeddings"][0][i],
                    )
                )
        return records

    async def search(self, user_id: str, query_embedding: Vector, k: int = 20) -> list[EvidenceRecord]:
        return await asyncio.to_thread(self.search_sync, user_id, query_embedding, k)

    def get_texts_sync(self, user_id: str, record_ids: Sequence[str]) -> dict[str, str]:
        if not record_ids:
            return {}
        data = self.collection.get(ids=list(record_ids), include=["documents", "metadatas"])
        texts = {}
        for fragment_id, doc, meta in zip(data["ids"], data["documents"], data["metadatas"]):
            meta = meta or {}
            if meta.get("user_id") == user_id and not meta.get("deleted"):
                texts[fragment_id] = doc or ""
        return texts

    async def get_texts(self, user_id: str, record_ids: Sequence[str]) -> dict[str, str]:
        return await asyncio.to_thread(self.get_texts_sync, user_id, record_ids)
