"""Custom exception hierarchy for Quorum."""


class QuorumError(Exception):
    """Base exception for all Quorum errors."""


class EmbeddingProviderError(QuorumError):
    """Raised when the embedding provider cannot produce a vector."""


class ProviderUnavailableError(EmbeddingProviderError):
    """Raised on network failures, timeouts, or non-2xx provider responses."""


class EmptyProviderResponseError(EmbeddingProviderError):
    """Raised when the provider answers without a usable vector."""


class StorageError(QuorumError):
    """Raised on storage backend failures (DB connection, schema, etc.)."""


class ReferenceNotFoundError(QuorumError):
    """Raised when a referenced document, event, or task does not exist."""
