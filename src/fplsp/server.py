"""
fplsp Language Server.

Registers LSP capabilities and forwards document analysis, completion and
hover questions to the configured analysis provider.
"""
from __future__ import annotations

import asyncio
import logging
from urllib.parse import unquote, urlparse

from pygls.lsp.server import LanguageServer
from lsprotocol import types as lsp

from fplsp import __version__
from fplsp.document import Document
from fplsp.handlers import get_completions, get_diagnostics, get_hover
from fplsp.provider import AnalysisProvider, NullProvider
from fplsp.settings import Settings, SettingsResolver, settings_section

logger = logging.getLogger(__name__)

COMPLETION_TRIGGERS = ['.', '(', '[']


class FplspServer(LanguageServer):
    """Language server holding the per-session state for fplsp."""

    def __init__(self, *args, provider: AnalysisProvider | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.docs: dict[str, Document] = {}
        self.resolver = SettingsResolver()
        self.provider: AnalysisProvider = provider or NullProvider()
        self.pending_tasks: dict[str, asyncio.Task] = {}

    @property
    def settings(self) -> Settings:
        return self.resolver.resolve()


server = FplspServer(
    'fplsp', __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _workspace_root(root_uri: str | None) -> str | None:
    if not root_uri:
        return None
    parsed = urlparse(root_uri)
    if parsed.scheme == 'file':
        return unquote(parsed.path)
    return root_uri


def _apply_log_level(raw: str | None) -> None:
    """Set the root logger level from a string like 'debug', 'warning', etc."""
    if not raw:
        return
    level = getattr(logging, raw.upper(), None)
    if isinstance(level, int):
        logging.getLogger().setLevel(level)


def _publish_diagnostics(ls: FplspServer, uri: str) -> None:
    doc = ls.docs.get(uri)
    if doc is None:
        return
    diags = get_diagnostics(ls.provider, doc)
    logger.debug('publishing %d diagnostics for %s', len(diags), uri)
    ls.text_document_publish_diagnostics(
        lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diags, version=doc.version)
    )


async def _debounced_update(ls: FplspServer, uri: str, delay: float) -> None:
    """Wait *delay* seconds, then publish diagnostics for *uri*.

    Called via asyncio.ensure_future so it can be cancelled if the document
    changes again before the delay expires.
    """
    await asyncio.sleep(delay)
    _publish_diagnostics(ls, uri)


def _schedule_update(ls: FplspServer, uri: str, delay: float) -> None:
    """Cancel any pending update for *uri* and schedule a new debounced one."""
    existing = ls.pending_tasks.pop(uri, None)
    if existing is not None:
        existing.cancel()
    task = asyncio.ensure_future(_debounced_update(ls, uri, delay))
    ls.pending_tasks[uri] = task

    def _done(t: asyncio.Task) -> None:
        if ls.pending_tasks.get(uri) is t:
            del ls.pending_tasks[uri]

    task.add_done_callback(_done)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@server.feature(lsp.INITIALIZE)
def on_initialize(ls: FplspServer, params: lsp.InitializeParams):
    ls.resolver = SettingsResolver(workspace_root=_workspace_root(params.root_uri))
    ls.resolver.set_client_settings(settings_section(params.initialization_options))
    _apply_log_level(ls.settings.log_level)
    logger.info('initialize: workspace %s', params.root_uri)


@server.feature(lsp.INITIALIZED)
def on_initialized(ls: FplspServer, params: lsp.InitializedParams):
    logger.info('connection initialized (provider %s)', type(ls.provider).__name__)


@server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(ls: FplspServer, params: lsp.DidChangeConfigurationParams):
    """Handle live config changes sent under the ``fplsp`` section."""
    section = settings_section(params.settings)
    if section is None:
        return
    ls.resolver.set_client_settings(section)
    _apply_log_level(ls.settings.log_level)


# ---------------------------------------------------------------------------
# Document synchronisation
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: FplspServer, params: lsp.DidOpenTextDocumentParams):
    td = params.text_document
    ls.docs[td.uri] = Document(td.uri, td.text, td.version)
    # Publish immediately on open; only edits are debounced
    _publish_diagnostics(ls, td.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: FplspServer, params: lsp.DidChangeTextDocumentParams):
    td = params.text_document
    if not params.content_changes:
        return
    source = params.content_changes[-1].text
    ls.docs[td.uri] = Document(td.uri, source, td.version)
    _schedule_update(ls, td.uri, ls.settings.debounce)


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: FplspServer, params: lsp.DidCloseTextDocumentParams):
    uri = params.text_document.uri
    existing = ls.pending_tasks.pop(uri, None)
    if existing is not None:
        existing.cancel()
    ls.docs.pop(uri, None)
    ls.text_document_publish_diagnostics(
        lsp.PublishDiagnosticsParams(uri=uri, diagnostics=[])
    )


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(trigger_characters=COMPLETION_TRIGGERS, resolve_provider=True),
)
def completion(ls: FplspServer, params: lsp.CompletionParams) -> lsp.CompletionList | None:
    doc = ls.docs.get(params.text_document.uri)
    if doc is None:
        return None
    items = get_completions(ls.provider, doc, params.position, ls.settings.max_completions)
    return lsp.CompletionList(is_incomplete=False, items=items)


@server.feature(lsp.COMPLETION_ITEM_RESOLVE)
def completion_resolve(ls: FplspServer, item: lsp.CompletionItem) -> lsp.CompletionItem:
    return item


# ---------------------------------------------------------------------------
# Hover
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_HOVER)
def hover(ls: FplspServer, params: lsp.HoverParams) -> lsp.Hover | None:
    doc = ls.docs.get(params.text_document.uri)
    if doc is None:
        return None
    return get_hover(ls.provider, doc, params.position)
