"""
Offset <-> (line, character) conversion.

Lines are split on ``\\n`` only and characters are counted per line, so
``position_to_offset`` adds one terminator character for every preceding
line.  Both the server (diagnostic ranges, hover lookup) and the client
(completion requests, published diagnostics) go through these two helpers.
"""
from __future__ import annotations

from lsprotocol import types as lsp


def offset_to_position(text: str, offset: int) -> lsp.Position:
    """Return the ``Position`` of *offset* in *text*.

    Offsets beyond the end of the document clamp to the final position;
    negative offsets clamp to the start.
    """
    lines = text.split('\n')
    current = 0
    for line, content in enumerate(lines):
        length = len(content) + 1  # +1 for the newline
        if current + length > offset:
            return lsp.Position(line=line, character=max(0, offset - current))
        current += length
    return lsp.Position(line=len(lines) - 1, character=len(lines[-1]))


def position_to_offset(text: str, position: lsp.Position) -> int:
    """Return the offset of *position* in *text*."""
    lines = text.split('\n')
    offset = 0
    for i in range(min(position.line, len(lines))):
        offset += len(lines[i]) + 1
    return offset + position.character


def range_to_offsets(text: str, rng: lsp.Range) -> tuple[int, int]:
    """Translate an LSP ``Range`` into a ``(start, end)`` offset pair."""
    return position_to_offset(text, rng.start), position_to_offset(text, rng.end)


def offsets_to_range(text: str, start: int, end: int) -> lsp.Range:
    return lsp.Range(
        start=offset_to_position(text, start),
        end=offset_to_position(text, end),
    )
