"""Quorum: persistent semantic memory.

Documents, events, and tasks in SQL, embedded in the background and searchable by meaning.
"""

__version__ = "0.1.0"

from quorum._quorum import Quorum
from quorum._quorum_async import QuorumAsync
from quorum.config import QuorumSettings
from quorum.embedding.backlog import BacklogProcessor, BacklogWorker
from quorum.embedding.chunker import TextChunk, chunk_text
from quorum.embedding.hashing import content_hash
from quorum.embedding.pipeline import Embedder
from quorum.exceptions import (
    EmbeddingProviderError,
    EmptyProviderResponseError,
    ProviderUnavailableError,
    QuorumError,
    ReferenceNotFoundError,
    StorageError,
)
from quorum.models import (
    Document,
    EmbeddingRecord,
    Event,
    EventType,
    Task,
    TaskPriority,
    TaskStatus,
)
from quorum.ref import Ref
from quorum.search.protocols import EmbeddingProvider
from quorum.search.providers import OllamaEmbedding, OpenAIEmbedding
from quorum.search.retriever import Retriever, SearchScope
from quorum.search.types import ProviderHealth, SearchHit, SearchMode, SearchResponse
from quorum.store.content import ContentStore
from quorum.store.embeddings import EmbeddingStore, SimilarityMatch
from quorum.types import (
    BacklogResult,
    EmbeddingStatus,
    EmbedOutcome,
    EmbedResult,
    IntegrationStatus,
    MemoryStats,
    StoreResult,
    TaskResult,
)

__all__ = [
    "BacklogProcessor",
    "BacklogResult",
    "BacklogWorker",
    "ContentStore",
    "Document",
    "EmbedOutcome",
    "EmbedResult",
    "Embedder",
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "EmbeddingRecord",
    "EmbeddingStatus",
    "EmbeddingStore",
    "EmptyProviderResponseError",
    "Event",
    "EventType",
    "IntegrationStatus",
    "MemoryStats",
    "OllamaEmbedding",
    "OpenAIEmbedding",
    "ProviderHealth",
    "ProviderUnavailableError",
    "Quorum",
    "QuorumAsync",
    "QuorumError",
    "QuorumSettings",
    "ReferenceNotFoundError",
    "Ref",
    "Retriever",
    "SearchHit",
    "SearchMode",
    "SearchResponse",
    "SearchScope",
    "SimilarityMatch",
    "StorageError",
    "StoreResult",
    "Task",
    "TaskPriority",
    "TaskResult",
    "TaskStatus",
    "TextChunk",
    "__version__",
    "chunk_text",
    "content_hash",
]
