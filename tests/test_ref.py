"""Tests for Ref and chunk ref_type helpers."""

from __future__ import annotations

import dataclasses

import pytest

from quorum.ref import DOCUMENT, EVENT, Ref, base_ref_type, chunk_index, chunk_ref_type


class TestRef:
    def test_fields(self):
        r = Ref(kind=DOCUMENT, id="abc")
        assert r.kind == "document"
        assert r.id == "abc"

    def test_repr(self):
        assert repr(Ref(EVENT, "e1")) == "Ref(kind='event', id='e1')"

    def test_frozen(self):
        r = Ref(DOCUMENT, "abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            r.id = "other"  # type: ignore[misc]

    def test_hashable_and_equal(self):
        assert {Ref(DOCUMENT, "a"), Ref(DOCUMENT, "a")} == {Ref(DOCUMENT, "a")}

    def test_chunk(self):
        assert Ref(DOCUMENT, "a").chunk(3) == "document_chunk_3"


class TestChunkRefType:
    def test_format(self):
        assert chunk_ref_type("event", 0) == "event_chunk_0"

    def test_negative_index(self):
        with pytest.raises(ValueError, match="index"):
            chunk_ref_type("document", -1)

    def test_base_of_chunk(self):
        assert base_ref_type("document_chunk_12") == "document"

    def test_base_of_base(self):
        assert base_ref_type("document") == "document"

    def test_index(self):
        assert chunk_index("document_chunk_12") == 12
        assert chunk_index("document") is None

    def test_non_numeric_suffix_is_not_a_chunk(self):
        assert chunk_index("document_chunk_x") is None
        assert base_ref_type("document_chunk_x") == "document_chunk_x"
