"""Retriever — ranked semantic search across documents and events."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from quorum.exceptions import EmbeddingProviderError
from quorum.ref import DOCUMENT, EVENT
from quorum.search.types import SearchHit, SearchMode, SearchResponse, make_preview

if TYPE_CHECKING:
    from quorum.models.documents import Document
    from quorum.models.events import Event
    from quorum.search.protocols import EmbeddingProvider
    from quorum.store.content import ContentStore
    from quorum.store.embeddings import EmbeddingStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


class SearchScope(str, Enum):
    """Which reference kinds a search covers."""

    DOCUMENT = DOCUMENT
    EVENT = EVENT
    ALL = "all"

    @property
    def kinds(self) -> tuple[str, ...]:
        if self is SearchScope.ALL:
            return (DOCUMENT, EVENT)
        return (self.value,)


class Retriever:
    """Semantic search with a textual fallback.

    The query is embedded once; each requested kind is searched
    separately, chunk matches are projected back to their parent, and the
    per-kind lists are merged by descending score.  If the provider cannot
    embed the query the whole semantic path is abandoned for a
    case-insensitive substring search ordered by recency.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        embeddings: EmbeddingStore,
        content: ContentStore,
    ) -> None:
        self._provider = provider
        self._embeddings = embeddings
        self._content = content

    async def search(
        self,
        query: str,
        *,
        ref_type: SearchScope | str = SearchScope.ALL,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResponse:
        """Return up to *limit* hits for *query*.

        Raises:
            ValueError: If *ref_type* is not ``document``, ``event``, or ``all``.
        """
        scope = SearchScope(ref_type)
        if limit <= 0:
            return SearchResponse(mode=SearchMode.SEMANTIC)

        try:
            vector = await self._provider.embed(query)
        except EmbeddingProviderError as e:
            logger.warning("Semantic search failed, falling back to text: %s", e)
            hits = await self._text_search(query, scope, limit)
            return SearchResponse(
                mode=SearchMode.TEXT_FALLBACK, hits=hits, fallback_reason=str(e)
            )

        hits = await self._semantic_search(vector, scope, limit)
        return SearchResponse(mode=SearchMode.SEMANTIC, hits=hits)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _semantic_search(
        self, vector: list[float], scope: SearchScope, limit: int
    ) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for kind in scope.kinds:
            matches = await self._embeddings.similarity_search(vector, kind, limit=limit)
            ids = [m.ref_id for m in matches]
            if kind == DOCUMENT:
                docs = await self._content.get_documents(ids)
                hits.extend(
                    _document_hit(docs[m.ref_id], m.score) for m in matches if m.ref_id in docs
                )
            else:
                events = await self._content.get_events(ids)
                hits.extend(
                    _event_hit(events[m.ref_id], m.score) for m in matches if m.ref_id in events
                )

        # sorted() is stable: equal scores keep kind order, then distance order.
        ranked = sorted(hits, key=lambda h: h.score or 0.0, reverse=True)
        return ranked[:limit]

    async def _text_search(self, query: str, scope: SearchScope, limit: int) -> list[SearchHit]:
        dated: list[tuple[object, SearchHit]] = []
        if DOCUMENT in scope.kinds:
            for doc in await self._content.search_documents_by_text(query, limit=limit):
                dated.append((doc.updated_at, _document_hit(doc, None)))
        if EVENT in scope.kinds:
            for event in await self._content.search_events_by_text(query, limit=limit):
                dated.append((event.created_at, _event_hit(event, None)))

        dated.sort(key=lambda pair: _sortable(pair[0]), reverse=True)
        return [hit for _, hit in dated[:limit]]


def _document_hit(doc: Document, score: float | None) -> SearchHit:
    return SearchHit(
        id=doc.id,
        kind=DOCUMENT,
        type_label=doc.doc_type,
        title=doc.title,
        preview=make_preview(doc.content),
        score=score,
        content=doc.content,
        metadata=dict(doc.metadata_ or {}),
    )


def _event_hit(event: Event, score: float | None) -> SearchHit:
    return SearchHit(
        id=event.id,
        kind=EVENT,
        type_label=event.event_type,
        title=event.title,
        preview=make_preview(event.description),
        score=score,
        content=event.description,
        metadata=dict(event.metadata_ or {}),
    )


def _sortable(value: object) -> float:
    """Timestamp for recency ordering; naive datetimes are treated as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.timestamp()
    return 0.0
