"""Tests for the Retriever — ranking, projection, scopes, and textual fallback."""

from __future__ import annotations

import pytest

from quorum.embedding.pipeline import Embedder
from quorum.search.retriever import Retriever, SearchScope
from quorum.search.types import PREVIEW_LENGTH, SearchMode
from quorum.store.content import ContentStore
from quorum.store.embeddings import EmbeddingStore


@pytest.fixture
def retriever(provider, embedding_store: EmbeddingStore, content_store: ContentStore) -> Retriever:
    return Retriever(provider, embedding_store, content_store)


async def _store_doc(content_store: ContentStore, embedder: Embedder, title: str, body: str):
    doc = await content_store.store_document("note", title, body)
    await embedder.embed_and_store_chunked("document", doc.id, doc.embedding_text())
    return doc


async def _store_event(content_store: ContentStore, embedder: Embedder, title: str, body: str):
    event = await content_store.store_event("decision", title, body)
    await embedder.embed_and_store_chunked("event", event.id, event.embedding_text())
    return event


class TestSemanticSearch:
    async def test_pinned_vectors_rank_by_score(
        self, retriever: Retriever, provider, content_store, embedding_store
    ):
        provider.vectors["query"] = [1.0, 0.0]
        a = await content_store.store_document("note", "A", "a")
        b = await content_store.store_document("note", "B", "b")
        e = await content_store.store_event("insight", "E", "e")
        await embedding_store.upsert("document", a.id, [0.6, 0.8], "h")
        await embedding_store.upsert("document", b.id, [1.0, 0.0], "h")
        await embedding_store.upsert("event", e.id, [0.8, 0.6], "h")

        response = await retriever.search("query")

        assert response.mode is SearchMode.SEMANTIC
        assert [h.id for h in response.hits] == [b.id, e.id, a.id]
        assert [h.score for h in response.hits] == pytest.approx([1.0, 0.8, 0.6])
        assert [h.kind for h in response.hits] == ["document", "event", "document"]

    async def test_scores_descending(self, retriever: Retriever, content_store, embedder):
        await _store_doc(content_store, embedder, "Postgres migration", "Move the database")
        await _store_doc(content_store, embedder, "Lunch menu", "Tacos on Tuesday")
        await _store_event(content_store, embedder, "Postgres chosen", "Database decision")

        response = await retriever.search("postgres database")

        scores = [h.score for h in response.hits]
        assert scores == sorted(scores, reverse=True)
        assert response.hits[-1].title == "Lunch menu"

    async def test_deterministic(self, retriever: Retriever, content_store, embedder):
        for i in range(4):
            await _store_doc(content_store, embedder, f"Note {i}", "identical body")

        first = await retriever.search("identical body")
        second = await retriever.search("identical body")

        assert [h.id for h in first.hits] == [h.id for h in second.hits]

    async def test_limit_applies_to_merged_list(
        self, retriever: Retriever, content_store, embedder
    ):
        for i in range(4):
            await _store_doc(content_store, embedder, f"Doc {i}", "shared words here")
            await _store_event(content_store, embedder, f"Event {i}", "shared words here")

        response = await retriever.search("shared words", limit=3)

        assert len(response) == 3

    async def test_chunked_document_found_once(
        self, retriever: Retriever, content_store, embedder
    ):
        body = " ".join(f"Filler sentence number {i} about nothing." for i in range(20))
        body += " The zeppelin budget was approved."
        doc = await _store_doc(content_store, embedder, "Long report", body)

        response = await retriever.search("zeppelin budget approved")

        assert [h.id for h in response.hits].count(doc.id) == 1
        assert response.hits[0].id == doc.id
        assert response.hits[0].content == body

    async def test_hit_fields(self, retriever: Retriever, content_store, embedder):
        body = "x" * 300
        doc = await content_store.store_document(
            "meeting", "Sync", body, metadata={"room": "4B"}
        )
        await embedder.embed_and_store("document", doc.id, doc.embedding_text())

        hit = (await retriever.search("Sync")).hits[0]

        assert hit.id == doc.id
        assert hit.type_label == "meeting"
        assert hit.preview == body[:PREVIEW_LENGTH]
        assert hit.metadata == {"room": "4B"}

    async def test_orphan_embeddings_skipped(
        self, retriever: Retriever, provider, content_store, embedding_store
    ):
        provider.vectors["q"] = [1.0, 0.0]
        kept = await content_store.store_document("note", "Kept", "k")
        await embedding_store.upsert("document", kept.id, [0.9, 0.1], "h")
        await embedding_store.upsert("document", "deleted-id", [1.0, 0.0], "h")

        response = await retriever.search("q")

        assert [h.id for h in response.hits] == [kept.id]

    async def test_empty_memory(self, retriever: Retriever):
        response = await retriever.search("anything")
        assert response.semantic
        assert response.hits == []


class TestScopes:
    async def test_document_scope(self, retriever: Retriever, content_store, embedder):
        await _store_doc(content_store, embedder, "Alpha", "shared")
        await _store_event(content_store, embedder, "Beta", "shared")

        response = await retriever.search("shared", ref_type="document")

        assert {h.kind for h in response.hits} == {"document"}

    async def test_event_scope(self, retriever: Retriever, content_store, embedder):
        await _store_doc(content_store, embedder, "Alpha", "shared")
        await _store_event(content_store, embedder, "Beta", "shared")

        response = await retriever.search("shared", ref_type=SearchScope.EVENT)

        assert {h.kind for h in response.hits} == {"event"}

    async def test_invalid_scope(self, retriever: Retriever):
        with pytest.raises(ValueError):
            await retriever.search("x", ref_type="task")

    def test_scope_kinds(self):
        assert SearchScope.ALL.kinds == ("document", "event")
        assert SearchScope("event").kinds == ("event",)


class TestTextFallback:
    async def test_falls_back_when_provider_down(
        self, retriever: Retriever, provider, content_store
    ):
        await content_store.store_document("note", "Postgres notes", "Tuning tips")
        await content_store.store_event("decision", "Adopt POSTGRES", "Replaces SQLite")
        await content_store.store_document("note", "Unrelated", "Nothing here")
        provider.available = False

        response = await retriever.search("postgres")

        assert response.mode is SearchMode.TEXT_FALLBACK
        assert not response.semantic
        assert response.fallback_reason == "Cannot connect to fake provider"
        assert {h.title for h in response.hits} == {"Postgres notes", "Adopt POSTGRES"}
        assert all(h.score is None for h in response.hits)

    async def test_fallback_newest_first(self, retriever: Retriever, provider, content_store):
        await content_store.store_document("note", "Older", "keyword")
        await content_store.store_event("milestone", "Middle", "keyword")
        await content_store.store_document("note", "Newest", "keyword")
        provider.available = False

        response = await retriever.search("keyword")

        assert [h.title for h in response.hits] == ["Newest", "Middle", "Older"]

    async def test_fallback_respects_scope_and_limit(
        self, retriever: Retriever, provider, content_store
    ):
        for i in range(3):
            await content_store.store_document("note", f"Doc {i}", "keyword")
            await content_store.store_event("observation", f"Event {i}", "keyword")
        provider.available = False

        events = await retriever.search("keyword", ref_type="event")
        limited = await retriever.search("keyword", limit=2)

        assert {h.kind for h in events.hits} == {"event"}
        assert len(limited) == 2

    async def test_fallback_matches_body(self, retriever: Retriever, provider, content_store):
        await content_store.store_document("note", "Title", "The body mentions kubernetes")
        provider.available = False

        response = await retriever.search("KUBERNETES")

        assert [h.title for h in response.hits] == ["Title"]

    async def test_fallback_escapes_wildcards(
        self, retriever: Retriever, provider, content_store
    ):
        await content_store.store_document("note", "Discount", "100% off")
        await content_store.store_document("note", "Other", "100 percent")
        provider.available = False

        response = await retriever.search("100%")

        assert [h.title for h in response.hits] == ["Discount"]
