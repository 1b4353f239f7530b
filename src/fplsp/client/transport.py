"""
Duplex transports.

A transport moves raw chunks and knows nothing about messages.  It reports
what happens on the wire through a single :class:`EventChannel` of
:class:`TransportEvent` values (``OPEN``, ``DATA``, ``CLOSE``) so that the
layer above subscribes instead of being wired in through callbacks.

``write`` never blocks and chunks go out in call order.  Writing to a
transport that is not :attr:`Transport.ready` raises :class:`TransportError`.
"""
from __future__ import annotations

import abc
import asyncio
import enum
import logging
from dataclasses import dataclass

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from fplsp.client.events import EventChannel
from fplsp.client.messages import TransportError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536


class TransportEventKind(enum.Enum):
    OPEN = 'open'
    DATA = 'data'
    CLOSE = 'close'


@dataclass(frozen=True)
class TransportEvent:
    kind: TransportEventKind
    data: bytes | str | None = None


class Transport(abc.ABC):

    def __init__(self) -> None:
        self.events: EventChannel[TransportEvent] = EventChannel('transport')
        self._reader_task: asyncio.Task | None = None
        self._closed = False

    @property
    @abc.abstractmethod
    def ready(self) -> bool:
        ...

    @abc.abstractmethod
    def write(self, data: bytes) -> None:
        ...

    @abc.abstractmethod
    async def _read_loop(self) -> None:
        ...

    async def _close_underlying(self) -> None:
        pass

    def start(self) -> asyncio.Task:
        """Begin reading in the background; emits ``OPEN`` first."""
        if self._reader_task is None:
            self.events.emit(TransportEvent(TransportEventKind.OPEN))
            self._reader_task = asyncio.ensure_future(self._run())
        return self._reader_task

    async def _run(self) -> None:
        try:
            await self._read_loop()
        except (ConnectionError, ConnectionClosed, asyncio.IncompleteReadError) as e:
            logger.debug('transport read loop ended: %s', e)
        finally:
            self._mark_closed()

    def _mark_closed(self) -> None:
        if not self._closed:
            self._closed = True
            self.events.emit(TransportEvent(TransportEventKind.CLOSE))

    async def close(self) -> None:
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        await self._close_underlying()
        self._mark_closed()


class StreamTransport(Transport):
    """Transport over an asyncio ``StreamReader``/``StreamWriter`` pair (subprocess stdio, TCP)."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        super().__init__()
        self._reader = reader
        self._writer = writer

    @property
    def ready(self) -> bool:
        return not self._closed and not self._writer.is_closing()

    def write(self, data: bytes) -> None:
        if not self.ready:
            raise TransportError('stream is closed')
        self._writer.write(data)

    async def _read_loop(self) -> None:
        while True:
            chunk = await self._reader.read(READ_CHUNK_SIZE)
            if not chunk:
                return
            self.events.emit(TransportEvent(TransportEventKind.DATA, chunk))

    async def _close_underlying(self) -> None:
        if not self._writer.is_closing():
            self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, BrokenPipeError) as e:
            logger.debug('error while closing stream: %s', e)


class WebSocketTransport(Transport):
    """Transport over a ``websockets`` connection; one message per frame.

    Frames are sent as text from a single sender task so that they leave in
    the order ``write`` was called.
    """

    def __init__(self, connection) -> None:
        super().__init__()
        self._connection = connection
        self._outbox: asyncio.Queue[bytes] = asyncio.Queue()
        self._sender_task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return not self._closed and self._connection.state is State.OPEN

    def write(self, data: bytes) -> None:
        if not self.ready:
            raise TransportError('websocket is not open')
        if self._sender_task is None:
            self._sender_task = asyncio.ensure_future(self._send_loop())
        self._outbox.put_nowait(data)

    async def _send_loop(self) -> None:
        while True:
            data = await self._outbox.get()
            try:
                await self._connection.send(data.decode('utf-8'))
            except ConnectionClosed as e:
                logger.debug('dropping outbound frame, connection closed: %s', e)
                return

    async def _read_loop(self) -> None:
        async for frame in self._connection:
            self.events.emit(TransportEvent(TransportEventKind.DATA, frame))

    async def _close_underlying(self) -> None:
        if self._sender_task is not None:
            self._sender_task.cancel()
            try:
                await self._sender_task
            except asyncio.CancelledError:
                pass
        await self._connection.close()
