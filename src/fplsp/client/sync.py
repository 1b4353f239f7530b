"""
Keeps the remote copy of one document in step with the editor.

Changes are sent as full-text ``textDocument/didChange`` notifications and
coalesced by a resettable debounce window.  An edit that ends in a
completion trigger (``.``, ``(``, ``( ``) is flushed at once, because the
completion request that follows must be answered against the new text.
"""
from __future__ import annotations

import asyncio
import logging

from lsprotocol import types as lsp
from lsprotocol.converters import get_converter

from fplsp.client.completion import detect_trigger
from fplsp.client.session import RpcSession

logger = logging.getLogger(__name__)

_converter = get_converter()

DEFAULT_DEBOUNCE = 0.5


class DocumentSynchronizer:

    def __init__(
        self,
        session: RpcSession,
        uri: str,
        *,
        language_id: str = 'fhirpath',
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self.session = session
        self.uri = uri
        self.language_id = language_id
        self.debounce = debounce
        self.version = 0
        self.text = ''
        self._sent_text: str | None = None
        self._pending: asyncio.Task | None = None

    @property
    def dirty(self) -> bool:
        return self._sent_text is not None and self._sent_text != self.text

    def open(self, text: str) -> None:
        self.text = text
        self.version += 1
        params = lsp.DidOpenTextDocumentParams(
            text_document=lsp.TextDocumentItem(
                uri=self.uri, language_id=self.language_id, version=self.version, text=text,
            )
        )
        self.session.send_notification(lsp.TEXT_DOCUMENT_DID_OPEN, _converter.unstructure(params))
        self._sent_text = text

    def change(self, text: str, caret: int) -> None:
        """Record an edit; flush now if it ends in a trigger, else debounce."""
        self.text = text
        trigger = detect_trigger(text, caret)
        if trigger is not None:
            logger.debug('trigger %r at %d, flushing document now', trigger, caret)
            self.flush()
        else:
            self._schedule()

    def _schedule(self) -> None:
        self._cancel_pending()
        self._pending = asyncio.ensure_future(self._debounced_flush())

    async def _debounced_flush(self) -> None:
        await asyncio.sleep(self.debounce)
        self._pending = None
        self.flush()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def flush(self) -> None:
        """Send the current text if the service has not seen it yet."""
        self._cancel_pending()
        if not self.dirty:
            return
        self.version += 1
        params = lsp.DidChangeTextDocumentParams(
            text_document=lsp.VersionedTextDocumentIdentifier(uri=self.uri, version=self.version),
            content_changes=[lsp.TextDocumentContentChangeWholeDocument(text=self.text)],
        )
        self.session.send_notification(lsp.TEXT_DOCUMENT_DID_CHANGE, _converter.unstructure(params))
        self._sent_text = self.text

    def close(self) -> None:
        self._cancel_pending()
        if self._sent_text is None:
            return
        params = lsp.DidCloseTextDocumentParams(text_document=lsp.TextDocumentIdentifier(uri=self.uri))
        self.session.send_notification(lsp.TEXT_DOCUMENT_DID_CLOSE, _converter.unstructure(params))
        self._sent_text = None
