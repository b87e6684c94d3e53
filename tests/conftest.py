"""Shared test fixtures for decision-mirror."""

import hashlib
import sys
from pathlib import Path
from typing import Optional

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from engine.models import EvidenceRecord  # noqa: E402
from observability import metrics  # noqa: E402

DIM = 16


def text_vector(text: str, dim: int = DIM) -> np.ndarray:
    """Deterministic pseudo-embedding derived from a hash of the text."""
    digest = hashlib.sha256(text.encode()).digest()
    raw = np.frombuffer(digest[:dim], dtype=np.uint8).astype(np.float64)
    return raw / 127.5 - 1.0


def make_record(
    record_id: str = "r1",
    embedding=None,
    valence: float = 0.0,
    similarity: float = 0.8,
    text: Optional[str] = None,
) -> EvidenceRecord:
    return EvidenceRecord(
        record_id=record_id,
        text=text if text is not None else f"record {record_id}",
        valence=valence,
        similarity=similarity,
        embedding=embedding if embedding is not None else text_vector(record_id),
    )


class FakeEmbedder:
    """Async embedder with hash vectors; texts in `fail_on` raise."""

    def __init__(self, fail_on: tuple[str, ...] = (), fail_all: bool = False):
        self.fail_on = fail_on
        self.fail_all = fail_all
        self.calls: list[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if self.fail_all or any(marker in text for marker in self.fail_on):
            raise RuntimeError(f"embedding backend down for {text[:20]!r}")
        return text_vector(text)


class FakeSearch:
    def __init__(self, records: Optional[list[EvidenceRecord]] = None, fail: bool = False):
        self.records = records or []
        self.fail = fail
        self.queries: list[tuple[str, int]] = []

    async def search(self, user_id, query_embedding, k):
        self.queries.append((user_id, k))
        if self.fail:
            raise ConnectionError("vector store unavailable")
        return self.records[:k]

    async def get_texts(self, user_id, record_ids):
        by_id = {r.record_id: r.text for r in self.records}
        return {i: by_id[i] for i in record_ids if i in by_id}


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "mirror.db"


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()
