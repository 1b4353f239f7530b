"""
Request/response correlation over a :class:`TransportChannel`.

Every request gets the next id from a counter that starts at 1 and is never
reset, so an id is never seen twice in one session.  Each request has a
pending entry with a deadline timer; the entry is removed exactly once,
either when the matching response arrives or when the timer fires.  A
timed-out request resolves to ``Response.timeout(id)`` instead of raising,
and a response that turns up afterwards finds no entry and is dropped.

Responses are matched strictly by id, so several requests can be
outstanding and resolve in any order.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from fplsp.client.channel import TransportChannel
from fplsp.client.events import EventChannel, Subscription
from fplsp.client.messages import (
    CorrelationError,
    Message,
    Notification,
    Request,
    Response,
    describe,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_HISTORY_SIZE = 100


@dataclass
class PendingRequest:
    id: int
    method: str
    deadline: float
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


@dataclass(frozen=True)
class HistoryEntry:
    direction: str          # 'send' or 'receive'
    label: str
    message: Message
    timestamp: float = field(default_factory=time.time)


class MessageHistory:
    """Fixed-capacity record of recent traffic, newest last."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE) -> None:
        self._entries: deque[HistoryEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def record(self, direction: str, message: Message) -> None:
        self._entries.append(HistoryEntry(direction, describe(message), message))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)


class RpcSession:
    """One JSON-RPC conversation; create, use, then :meth:`dispose` (or ``async with``)."""

    def __init__(
        self,
        channel: TransportChannel,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        self.channel = channel
        self.request_timeout = request_timeout
        self.history = MessageHistory(history_size)
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._handlers: dict[str, EventChannel[Any]] = {}
        self._disposed = False
        self._subscription = channel.listen(self._dispatch)

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _send(self, message: Message) -> None:
        self.history.record('send', message)
        self.channel.send(message)

    def send_request(self, method: str, params: Any = None) -> asyncio.Future:
        """Send a request; the returned future resolves to a :class:`Response`."""
        loop = asyncio.get_running_loop()
        request_id = next(self._ids)
        entry = PendingRequest(
            id=request_id,
            method=method,
            deadline=loop.time() + self.request_timeout,
            future=loop.create_future(),
        )
        entry.timer = loop.call_at(entry.deadline, self._expire, request_id)
        self._pending[request_id] = entry
        logger.debug('-> request %d %s', request_id, method)
        self._send(Request(id=request_id, method=method, params=params))
        return entry.future

    def send_notification(self, method: str, params: Any = None) -> None:
        logger.debug('-> notification %s', method)
        self._send(Notification(method=method, params=params))

    def _expire(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        logger.warning('request %d (%s) timed out after %.1fs', request_id, entry.method, self.request_timeout)
        if not entry.future.done():
            entry.future.set_result(Response.timeout(request_id))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def on_notification(self, method: str, handler: Callable[[Any], None]) -> Subscription:
        """Call *handler* with the params of every *method* notification."""
        return self._handlers.setdefault(method, EventChannel(method)).subscribe(handler)

    def _dispatch(self, message: Message) -> None:
        self.history.record('receive', message)
        if isinstance(message, Response):
            try:
                self._resolve(message)
            except CorrelationError as e:
                logger.debug('dropping response: %s', e)
        elif isinstance(message, Notification):
            handlers = self._handlers.get(message.method)
            if handlers:
                handlers.emit(message.params)
            else:
                logger.debug('no handler for notification %s', message.method)
        else:
            # Server-to-client requests are not served by this client.
            logger.debug('ignoring inbound request %s (id=%r)', message.method, message.id)

    def _resolve(self, response: Response) -> None:
        entry = self._pending.pop(response.id, None) if isinstance(response.id, int) else None
        if entry is None:
            raise CorrelationError(f'no pending request with id {response.id!r}')
        if entry.timer is not None:
            entry.timer.cancel()
        logger.debug('<- response %d (%s)', entry.id, entry.method)
        if not entry.future.done():
            entry.future.set_result(response)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, params: Any) -> Response:
        """``initialize`` request followed by the ``initialized`` notification."""
        response = await self.send_request('initialize', params)
        if response.ok:
            self.send_notification('initialized', {})
        else:
            logger.warning('initialize failed: %s', response.error.message)
        return response

    async def shutdown(self) -> None:
        """``shutdown`` request, ``exit`` notification, then dispose."""
        if self._disposed:
            return
        await self.send_request('shutdown')
        self.send_notification('exit')
        self.dispose()

    def dispose(self) -> None:
        """Release the channel; outstanding requests resolve as timed out."""
        if self._disposed:
            return
        self._disposed = True
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if entry.timer is not None:
                entry.timer.cancel()
            logger.debug('request %d (%s) abandoned on dispose', entry.id, entry.method)
            if not entry.future.done():
                entry.future.set_result(Response.timeout(entry.id))
        self._subscription.unsubscribe()
        self._handlers.clear()
        self.channel.dispose()

    async def __aenter__(self) -> RpcSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.dispose()

