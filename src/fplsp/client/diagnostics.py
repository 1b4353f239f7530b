"""Latest ``textDocument/publishDiagnostics`` for the open document, as offset spans."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from lsprotocol import types as lsp
from lsprotocol.converters import get_converter

from fplsp.client.events import EventChannel, Subscription
from fplsp.client.session import RpcSession
from fplsp.positions import range_to_offsets

logger = logging.getLogger(__name__)

_converter = get_converter()


@dataclass(frozen=True)
class DiagnosticSpan:
    start: int
    end: int
    severity: lsp.DiagnosticSeverity
    message: str
    source: str | None = None


class DiagnosticsTracker:
    """Holds the diagnostics last published for *uri*.

    A notification that cannot be structured is logged and ignored, leaving
    the previous set in place.  *text* returns the current document text and
    is used to translate ranges into offsets.
    """

    def __init__(self, uri: str, text: Callable[[], str]) -> None:
        self.uri = uri
        self._text = text
        self.diagnostics: list[lsp.Diagnostic] = []
        self.updated: EventChannel[list[DiagnosticSpan]] = EventChannel('diagnostics')
        self._subscription: Subscription | None = None

    def attach(self, session: RpcSession) -> Subscription:
        self._subscription = session.on_notification(
            lsp.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS, self.on_publish,
        )
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def on_publish(self, params: Any) -> None:
        try:
            published = _converter.structure(params, lsp.PublishDiagnosticsParams)
        except Exception as e:
            logger.warning('ignoring malformed diagnostics notification: %s', e)
            return
        if published.uri != self.uri:
            logger.debug('ignoring diagnostics for %s', published.uri)
            return
        self.diagnostics = list(published.diagnostics)
        logger.debug('%d diagnostics for %s', len(self.diagnostics), self.uri)
        self.updated.emit(self.spans())

    def spans(self) -> list[DiagnosticSpan]:
        text = self._text()
        spans = []
        for d in self.diagnostics:
            start, end = range_to_offsets(text, d.range)
            spans.append(DiagnosticSpan(
                start=start,
                end=end,
                severity=d.severity or lsp.DiagnosticSeverity.Error,
                message=d.message,
                source=d.source,
            ))
        return spans
