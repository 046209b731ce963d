"""Embedding pipeline — chunking, hashing, embedding, and backlog processing."""

from quorum.embedding.backlog import BacklogProcessor, BacklogWorker
from quorum.embedding.chunker import TextChunk, chunk_text
from quorum.embedding.hashing import content_hash
from quorum.embedding.pipeline import Embedder, KeyedLock

__all__ = [
    "BacklogProcessor",
    "BacklogWorker",
    "Embedder",
    "KeyedLock",
    "TextChunk",
    "chunk_text",
    "content_hash",
]
