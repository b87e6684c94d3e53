"""Reference fragment index and embedder (ChromaDB)."""

from .index import ChromaEmbedder, Fragment, FragmentIndex

__all__ = ["ChromaEmbedder", "Fragment", "FragmentIndex"]
