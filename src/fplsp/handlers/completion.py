"""Completion handler: provider suggestions to LSP ``CompletionItem``s."""
from __future__ import annotations

import logging

from lsprotocol import types as lsp

from fplsp.document import Document
from fplsp.provider import AnalysisProvider, Suggestion, lsp_kind

logger = logging.getLogger(__name__)


def _item(s: Suggestion) -> lsp.CompletionItem:
    return lsp.CompletionItem(
        label=s.label,
        kind=lsp_kind(s.kind),
        detail=s.detail,
        documentation=s.documentation,
        insert_text=s.insert_text or s.label,
        sort_text=s.sort_text,
    )


def get_completions(
    provider: AnalysisProvider,
    doc: Document,
    position: lsp.Position,
    limit: int = 100,
) -> list[lsp.CompletionItem]:
    """Return at most *limit* completion items for *position* in *doc*."""
    offset = doc.offset_at(position)
    try:
        suggestions = provider.complete(doc.source, offset, limit)
    except Exception as e:
        logger.warning('completion failed for %s at %d: %s', doc.uri, offset, e, exc_info=True)
        return []
    return [_item(s) for s in suggestions[:limit]]
