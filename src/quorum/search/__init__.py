"""Search layer — embedding providers and the retriever."""

from quorum.search.protocols import EmbeddingProvider
from quorum.search.retriever import Retriever, SearchScope
from quorum.search.types import ProviderHealth, SearchHit, SearchMode, SearchResponse

__all__ = [
    "EmbeddingProvider",
    "ProviderHealth",
    "Retriever",
    "SearchHit",
    "SearchMode",
    "SearchResponse",
    "SearchScope",
]
