"""Boundary-aware text chunking with overlap."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE: int = 500
DEFAULT_OVERLAP: int = 50

# Break points are only accepted in the last 20% of a chunk.
_SEARCH_WINDOW_RATIO = 0.8
_SENTENCE_TERMINATORS = frozenset(".!?")
_WHITESPACE = frozenset(" \n\r\t")


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A slice of a longer text.

    Attributes:
        text: Trimmed chunk content.
        index: Position among the emitted chunks, starting at 0.
    """

    text: str
    index: int


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[TextChunk]:
    """Split *text* into overlapping chunks of roughly *chunk_size* characters.

    Cuts prefer, in order: a paragraph break, a sentence terminator followed
    by whitespace, a newline, a space.  Without any of those in the search
    window the text is cut at exactly *chunk_size* characters.

    Texts no longer than *chunk_size* come back as a single verbatim chunk.
    """
    if chunk_size <= 0:
        msg = f"chunk_size must be positive, got {chunk_size}"
        raise ValueError(msg)
    if overlap < 0:
        msg = f"overlap must be >= 0, got {overlap}"
        raise ValueError(msg)

    if not text:
        return []

    length = len(text)
    if length <= chunk_size:
        return [TextChunk(text=text, index=0)]

    chunks: list[TextChunk] = []
    start = 0
    index = 0

    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            search_start = start + int(chunk_size * _SEARCH_WINDOW_RATIO)
            end = _find_break(text, search_start, end)

        piece = text[start:end].strip()
        if piece:
            chunks.append(TextChunk(text=piece, index=index))
            index += 1

        if end >= length:
            break
        start = max(end - overlap, start + 1)

    return chunks


def _find_break(text: str, search_start: int, end: int) -> int:
    """Return the best break point in ``[search_start, end]``, or *end*."""
    paragraph = text.rfind("\n\n", search_start, end)
    if paragraph != -1:
        return paragraph + 2

    for i in range(end - 1, search_start - 1, -1):
        if (
            text[i] in _SENTENCE_TERMINATORS
            and i + 1 < len(text)
            and text[i + 1] in _WHITESPACE
        ):
            return i + 1

    newline = text.rfind("\n", search_start, end)
    if newline != -1:
        return newline + 1

    space = text.rfind(" ", search_start, end)
    if space != -1:
        return space + 1

    return end
