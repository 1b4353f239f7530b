"""
Per-document store for the server.

Each open document is kept as a :class:`Document` snapshot.  The server uses
full-text synchronisation, so every ``didChange`` simply replaces the
snapshot.
"""
from __future__ import annotations

from dataclasses import dataclass

from lsprotocol import types as lsp

from fplsp.positions import offset_to_position, position_to_offset


def _is_word_char(ch: str) -> bool:
    return ch == '_' or ch.isalnum()


@dataclass(frozen=True)
class Document:
    uri: str
    source: str
    version: int = 0

    def offset_at(self, position: lsp.Position) -> int:
        return min(position_to_offset(self.source, position), len(self.source))

    def position_at(self, offset: int) -> lsp.Position:
        return offset_to_position(self.source, offset)

    def word_at(self, offset: int) -> tuple[str, int, int] | None:
        """Return ``(word, start, end)`` for the word touching *offset*."""
        start = end = offset
        while start > 0 and _is_word_char(self.source[start - 1]):
            start -= 1
        while end < len(self.source) and _is_word_char(self.source[end]):
            end += 1
        if start == end:
            return None
        return self.source[start:end], start, end
