"""
Message-level channel over a :class:`~fplsp.client.transport.Transport`.

Inbound chunks are run through the channel's framer; the resulting messages
are delivered to listeners in arrival order.  Messages that arrive before
anyone listens (the bootstrap race between connecting and wiring up a
session) are held and replayed to the first listener when it attaches.

Outbound sends are best-effort: when the transport is not ready the message
is dropped with a debug log and ``send`` returns ``False``.  A caller that
needs a reply finds out through the request deadline, not an exception.
"""
from __future__ import annotations

import logging
from typing import Callable

from fplsp.client.events import EventChannel, Subscription
from fplsp.client.framing import MessageFramer
from fplsp.client.messages import Message, TransportError, describe
from fplsp.client.transport import Transport, TransportEvent, TransportEventKind

logger = logging.getLogger(__name__)


class TransportChannel:

    def __init__(self, transport: Transport, framer: MessageFramer) -> None:
        self.transport = transport
        self.framer = framer
        self.messages: EventChannel[Message] = EventChannel('messages')
        self.closed: EventChannel[None] = EventChannel('closed')
        self._backlog: list[Message] = []
        self._disposed = False
        self._transport_subscription = transport.events.subscribe(self._on_transport_event)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def backlog(self) -> int:
        """Number of inbound messages waiting for a listener."""
        return len(self._backlog)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _on_transport_event(self, event: TransportEvent) -> None:
        if event.kind is TransportEventKind.DATA:
            for message in self.framer.feed(event.data):
                self._deliver(message)
        elif event.kind is TransportEventKind.CLOSE:
            logger.debug('transport closed')
            self.closed.emit(None)

    def _deliver(self, message: Message) -> None:
        if self._disposed:
            return
        if not self.messages:
            self._backlog.append(message)
            logger.debug('buffered %s (no listener yet, %d waiting)', describe(message), len(self._backlog))
            return
        self.messages.emit(message)

    def listen(self, listener: Callable[[Message], None]) -> Subscription:
        """Attach *listener*; any buffered messages are flushed to it first, in order."""
        backlog, self._backlog = self._backlog, []
        for message in backlog:
            try:
                listener(message)
            except Exception:
                logger.exception('listener failed on buffered %s', describe(message))
        return self.messages.subscribe(listener)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, message: Message) -> bool:
        if self._disposed or not self.transport.ready:
            logger.debug('transport not ready, dropping %s', describe(message))
            return False
        try:
            self.transport.write(self.framer.encode(message))
        except TransportError as e:
            logger.debug('write failed, dropping %s: %s', describe(message), e)
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._transport_subscription.unsubscribe()
        self.messages.clear()
        self.closed.clear()
        self._backlog.clear()
        self.framer.reset()
