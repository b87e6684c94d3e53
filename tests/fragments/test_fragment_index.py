"""Tests for the ChromaDB fragment index."""

import numpy as np
import pytest

from conftest import text_vector
from fragments import ChromaEmbedder, FragmentIndex


def _hash_embedding(texts):
    return [text_vector(t).tolist() for t in texts]


@pytest.fixture
def embedder():
    return ChromaEmbedder(embedding_function=_hash_embedding)


@pytest.fixture
def index(tmp_path, embedder):
    return FragmentIndex(tmp_path / "chroma", embedder, collection_name="test_fragments")


class TestChromaEmbedder:
    def test_embed_sync(self, embedder):
        vec = embedder.embed_sync("hello")
        assert isinstance(vec, np.ndarray)
        assert np.allclose(vec, text_vector("hello"))

    def test_empty_text_rejected(self, embedder):
        with pytest.raises(ValueError, match="empty"):
            embedder.embed_sync("  ")

    @pytest.mark.asyncio
    async def test_embed_async(self, embedder):
        vec = await embedder.embed("hello")
        assert vec.shape == (16,)


class TestFragmentIndex:
    def test_add_and_count(self, index):
        index.add_fragment("u1", "f1", "Quit my job for a startup", 0.7)
        index.add_fragment("u1", "f2", "Moved cities", -0.2)
        index.add_fragment("u2", "f3", "Someone else's record", 0.0)
        assert index.count() == 3
        assert index.count("u1") == 2

    def test_upsert_same_id(self, index):
        index.add_fragment("u1", "f1", "first", 0.1)
        index.add_fragment("u1", "f1", "second", 0.2)
        assert index.count("u1") == 1

    def test_invalid_valence(self, index):
        with pytest.raises(ValueError, match="valence"):
            index.add_fragment("u1", "f1", "text", 1.5)

    def test_search_returns_evidence(self, index):
        index.add_fragment("u1", "f1", "Quit my job for a startup", 0.7)
        index.add_fragment("u1", "f2", "Moved cities", -0.2)

        records = index.search_sync("u1", text_vector("Quit my job for a startup"), k=5)

        assert [r.record_id for r in records][0] == "f1"
        top = records[0]
        assert top.similarity == pytest.approx(1.0, abs=1e-4)
        assert top.valence == pytest.approx(0.7)
        assert top.text == "Quit my job for a startup"
        assert top.embedding.shape == (16,)
        assert all(0.0 <= r.similarity <= 1.0 for r in records)

    def test_search_scoped_to_user(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        index.add_fragment("u2", "f2", "theirs", 0.5)
        records = index.search_sync("u1", text_vector("theirs"), k=5)
        assert [r.record_id for r in records] == ["f1"]

    def test_search_k_limits(self, index):
        for i in range(6):
            index.add_fragment("u1", f"f{i}", f"record {i}", 0.0)
        assert len(index.search_sync("u1", text_vector("record 1"), k=3)) == 3

    def test_search_empty_user(self, index):
        assert index.search_sync("nobody", text_vector("x")) == []

    def test_get_texts_scoped_to_user(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        index.add_fragment("u2", "f2", "theirs", 0.5)
        assert index.get_texts_sync("u1", ["f1", "f2", "missing"]) == {"f1": "mine"}
        assert index.get_texts_sync("u1", []) == {}

    @pytest.mark.asyncio
    async def test_async_search_and_texts(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        records = await index.search("u1", text_vector("mine"), k=1)
        texts = await index.get_texts("u1", [r.record_id for r in records])
        assert texts == {"f1": "mine"}


class TestFragmentListing:
    def test_list_newest_first(self, index):
        index.add_fragment("u1", "f1", "older", 0.1)
        index.add_fragment("u1", "f2", "newer", -0.3)
        index.add_fragment("u2", "f3", "theirs", 0.0)

        listed = index.list_fragments("u1")

        assert [f.id for f in listed] == ["f2", "f1"]
        assert listed[0].text == "newer"
        assert listed[0].valence == pytest.approx(-0.3)
        assert listed[0].created_at is not None
        assert not listed[0].is_deleted

    def test_list_limit(self, index):
        for i in range(4):
            index.add_fragment("u1", f"f{i}", f"record {i}", 0.0)
        assert len(index.list_fragments("u1", limit=2)) == 2


class TestFragmentDeletion:
    def test_soft_delete_hides_fragment(self, index):
        index.add_fragment("u1", "f1", "Quit my job for a startup", 0.7)
        index.add_fragment("u1", "f2", "Moved cities", -0.2)

        assert index.delete_fragment("u1", "f1")

        assert index.count("u1") == 1
        assert index.count() == 1
        assert [r.record_id for r in index.search_sync("u1", text_vector("Quit my job for a startup"))] == ["f2"]
        assert index.get_texts_sync("u1", ["f1", "f2"]) == {"f2": "Moved cities"}
        assert [f.id for f in index.list_fragments("u1")] == ["f2"]

    def test_deleted_fragment_kept_in_store(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        index.delete_fragment("u1", "f1")
        listed = index.list_fragments("u1", include_deleted=True)
        assert [f.id for f in listed] == ["f1"]
        assert listed[0].is_deleted
        assert listed[0].text == "mine"

    def test_delete_twice(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        assert index.delete_fragment("u1", "f1")
        assert not index.delete_fragment("u1", "f1")

    def test_cannot_delete_other_users_fragment(self, index):
        index.add_fragment("u2", "f1", "theirs", 0.5)
        assert not index.delete_fragment("u1", "f1")
        assert index.count("u2") == 1

    def test_delete_missing(self, index):
        assert not index.delete_fragment("u1", "missing")

    def test_search_after_deleting_everything(self, index):
        index.add_fragment("u1", "f1", "mine", 0.5)
        index.delete_fragment("u1", "f1")
        assert index.search_sync("u1", text_vector("mine")) == []
