"""
The analysis service behind the server.

fplsp does not parse or type-check FHIRPath itself.  The server hands each
document to an *analysis provider* and only translates its answers into LSP
structures.  A provider is any object with these three methods::

    analyze(text)                  -> list[Finding]
    complete(text, offset, limit)  -> list[Suggestion]
    describe(word)                 -> str | None

Providers are loaded from a ``module:attribute`` reference (``--provider`` on
the command line); when none is configured :class:`NullProvider` answers
every question with nothing.
"""
from __future__ import annotations

import enum
import importlib
import logging
from dataclasses import dataclass
from typing import Protocol

from lsprotocol import types as lsp

logger = logging.getLogger(__name__)


class SuggestionKind(enum.Enum):
    PROPERTY = 'property'
    FUNCTION = 'function'
    VARIABLE = 'variable'
    OPERATOR = 'operator'
    TYPE = 'type'
    KEYWORD = 'keyword'
    CONSTANT = 'constant'
    TEXT = 'text'


_KIND_MAP = {
    SuggestionKind.PROPERTY: lsp.CompletionItemKind.Property,
    SuggestionKind.FUNCTION: lsp.CompletionItemKind.Function,
    SuggestionKind.VARIABLE: lsp.CompletionItemKind.Variable,
    SuggestionKind.OPERATOR: lsp.CompletionItemKind.Operator,
    SuggestionKind.TYPE: lsp.CompletionItemKind.Class,
    SuggestionKind.KEYWORD: lsp.CompletionItemKind.Keyword,
    SuggestionKind.CONSTANT: lsp.CompletionItemKind.Constant,
}


def lsp_kind(kind: SuggestionKind) -> lsp.CompletionItemKind:
    return _KIND_MAP.get(kind, lsp.CompletionItemKind.Text)


@dataclass(frozen=True)
class Suggestion:
    label: str
    kind: SuggestionKind = SuggestionKind.TEXT
    detail: str | None = None
    documentation: str | None = None
    insert_text: str | None = None
    sort_text: str | None = None


@dataclass(frozen=True)
class Finding:
    """A problem reported by the provider, located by character offsets."""
    message: str
    start: int
    end: int
    severity: lsp.DiagnosticSeverity = lsp.DiagnosticSeverity.Error
    code: str | None = None


class AnalysisProvider(Protocol):

    def analyze(self, text: str) -> list[Finding]:
        ...

    def complete(self, text: str, offset: int, limit: int) -> list[Suggestion]:
        ...

    def describe(self, word: str) -> str | None:
        ...


class NullProvider:
    """Provider used when none is configured."""

    def analyze(self, text: str) -> list[Finding]:
        return []

    def complete(self, text: str, offset: int, limit: int) -> list[Suggestion]:
        return []

    def describe(self, word: str) -> str | None:
        return None


class ProviderLoadError(RuntimeError):
    pass


def load_provider(reference: str | None) -> AnalysisProvider:
    """Import ``package.module:attribute``; classes and factories are called with no arguments."""
    if not reference:
        return NullProvider()
    module_name, sep, attr = reference.partition(':')
    if not sep or not module_name or not attr:
        raise ProviderLoadError(f'provider must look like "module:attribute", got {reference!r}')
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ProviderLoadError(f'cannot import provider module {module_name!r}: {e}') from e
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ProviderLoadError(f'{module_name!r} has no attribute {attr!r}') from None

    if isinstance(target, type) or (callable(target) and not hasattr(target, 'analyze')):
        provider = target()
    else:
        provider = target
    missing = [m for m in ('analyze', 'complete', 'describe') if not callable(getattr(provider, m, None))]
    if missing:
        raise ProviderLoadError(f'{reference} is missing {", ".join(missing)}')
    logger.info('using analysis provider %s', reference)
    return provider
