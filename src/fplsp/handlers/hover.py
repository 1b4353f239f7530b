"""Hover handler: Markdown documentation for the word under the cursor."""
from __future__ import annotations

import logging

from lsprotocol import types as lsp

from fplsp.document import Document
from fplsp.positions import offsets_to_range
from fplsp.provider import AnalysisProvider

logger = logging.getLogger(__name__)


def get_hover(provider: AnalysisProvider, doc: Document, position: lsp.Position) -> lsp.Hover | None:
    found = doc.word_at(doc.offset_at(position))
    if found is None:
        return None
    word, start, end = found
    try:
        text = provider.describe(word)
    except Exception as e:
        logger.warning('describe(%r) failed: %s', word, e)
        return None
    if not text:
        return None
    return lsp.Hover(
        contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=f'**{word}**\n\n{text}'),
        range=offsets_to_range(doc.source, start, end),
    )
