"""Ref — (kind, id) identity for content owned by the content store."""

from __future__ import annotations

import re
from dataclasses import dataclass

CHUNK_SEPARATOR = "_chunk_"

DOCUMENT = "document"
EVENT = "event"
KINDS = (DOCUMENT, EVENT)
"""Reference kinds that are embedded and searchable."""

_CHUNK_RE = re.compile(r"^(?P<base>.+)_chunk_(?P<index>\d+)$")


@dataclass(frozen=True, slots=True)
class Ref:
    """Immutable reference to a stored document or event.

    Attributes:
        kind: Namespace string (``"document"``, ``"event"``, ...).
        id: Stable unique identifier of the referenced row.
    """

    kind: str
    id: str

    def __repr__(self) -> str:
        return f"Ref(kind={self.kind!r}, id={self.id!r})"

    def chunk(self, index: int) -> str:
        """Return the ref_type used for chunk *index* of this reference."""
        return chunk_ref_type(self.kind, index)


def chunk_ref_type(base: str, index: int) -> str:
    """Return ``"{base}_chunk_{index}"``."""
    if index < 0:
        msg = f"Chunk index must be >= 0, got {index}"
        raise ValueError(msg)
    return f"{base}{CHUNK_SEPARATOR}{index}"


def base_ref_type(ref_type: str) -> str:
    """Strip a ``_chunk_N`` suffix, returning the base ref_type."""
    match = _CHUNK_RE.match(ref_type)
    if match is None:
        return ref_type
    return match.group("base")


def chunk_index(ref_type: str) -> int | None:
    """Return the chunk index encoded in *ref_type*, or None for a base form."""
    match = _CHUNK_RE.match(ref_type)
    if match is None:
        return None
    return int(match.group("index"))
