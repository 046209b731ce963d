"""Search layer data types — provider health, hits, and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PREVIEW_LENGTH = 120


class SearchMode(str, Enum):
    """Which path produced a :class:`SearchResponse`."""

    SEMANTIC = "semantic"
    TEXT_FALLBACK = "text_fallback"


@dataclass(frozen=True, slots=True)
class ProviderHealth:
    """Embedding provider health.

    Attributes:
        reachable: The provider answered its health endpoint.
        model_available: The configured model is installed/served.
        error: Failure description when not reachable.
    """

    reachable: bool
    model_available: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A single search result.

    Attributes:
        id: Id of the matched document or event.
        kind: Reference kind (``"document"`` or ``"event"``).
        type_label: ``doc_type`` for documents, ``event_type`` for events.
        title: Display title.
        preview: First characters of the body.
        score: Cosine similarity, or None for textual fallback hits.
        content: Full body text.
        metadata: Metadata stored with the content.
    """

    id: str
    kind: str
    type_label: str
    title: str
    preview: str
    score: float | None = None
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResponse:
    """Ranked hits plus which path produced them."""

    mode: SearchMode
    hits: list[SearchHit] = field(default_factory=list)
    fallback_reason: str | None = None

    @property
    def semantic(self) -> bool:
        return self.mode is SearchMode.SEMANTIC

    def __len__(self) -> int:
        return len(self.hits)


def make_preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Return the first *length* characters of *text*."""
    return text[:length]
