"""SQL-backed stores — content and embeddings."""

from quorum.store.content import ContentStore
from quorum.store.dialect import get_dialect
from quorum.store.embeddings import EmbeddingStore, SimilarityMatch
from quorum.store.schema import ensure_schema

__all__ = [
    "ContentStore",
    "EmbeddingStore",
    "SimilarityMatch",
    "ensure_schema",
    "get_dialect",
]
