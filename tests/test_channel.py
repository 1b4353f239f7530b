"""Tests for fplsp.client.channel and fplsp.client.events."""
from __future__ import annotations

import asyncio
import json

from fplsp.client.channel import TransportChannel
from fplsp.client.framing import LengthPrefixedFramer
from fplsp.client.messages import Notification, TransportError
from fplsp.client.transport import Transport, TransportEvent, TransportEventKind


class FakeTransport(Transport):
    """In-memory transport: records writes, injects inbound chunks by hand."""

    def __init__(self, ready: bool = True) -> None:
        super().__init__()
        self.written: list[bytes] = []
        self.is_ready = ready
        self.fail_writes = False

    @property
    def ready(self) -> bool:
        return self.is_ready and not self._closed

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise TransportError('broken pipe')
        self.written.append(data)

    async def _read_loop(self) -> None:
        await asyncio.Event().wait()

    def receive(self, data: bytes) -> None:
        self.events.emit(TransportEvent(TransportEventKind.DATA, data))


def _frame(payload: dict) -> bytes:
    body = json.dumps(payload).encode('utf-8')
    return b'Content-Length: %d\r\n\r\n' % len(body) + body


def _note(n: int) -> bytes:
    return _frame({'jsonrpc': '2.0', 'method': 'window/logMessage', 'params': {'n': n}})


class TestInboundBuffering:
    def test_messages_before_listener_are_replayed_in_order(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        transport.receive(_note(1))
        transport.receive(_note(2) + _note(3))
        assert channel.backlog == 3

        seen = []
        channel.listen(lambda m: seen.append(m.params['n']))
        assert seen == [1, 2, 3]
        assert channel.backlog == 0

        transport.receive(_note(4))
        assert seen == [1, 2, 3, 4]

    def test_no_buffering_once_listening(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        seen = []
        channel.listen(seen.append)
        transport.receive(_note(1))
        assert len(seen) == 1
        assert channel.backlog == 0

    def test_unsubscribed_listener_stops_receiving(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        seen = []
        sub = channel.listen(seen.append)
        sub.unsubscribe()
        sub.unsubscribe()
        transport.receive(_note(1))
        assert seen == []
        assert channel.backlog == 1

    def test_close_event_is_forwarded(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        closed = []
        channel.closed.subscribe(lambda _: closed.append(True))
        transport._mark_closed()
        transport._mark_closed()
        assert closed == [True]


class TestSend:
    def test_send_writes_framed_bytes(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        assert channel.send(Notification('initialized', {}))
        [msg] = LengthPrefixedFramer().feed(b''.join(transport.written))
        assert msg.method == 'initialized'

    def test_send_dropped_when_not_ready(self):
        transport = FakeTransport(ready=False)
        channel = TransportChannel(transport, LengthPrefixedFramer())
        assert channel.send(Notification('exit')) is False
        assert transport.written == []

    def test_write_failure_is_a_drop(self):
        transport = FakeTransport()
        transport.fail_writes = True
        channel = TransportChannel(transport, LengthPrefixedFramer())
        assert channel.send(Notification('exit')) is False


class TestDispose:
    def test_dispose_is_idempotent(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        channel.dispose()
        channel.dispose()
        assert channel.disposed
        assert len(transport.events) == 0

    def test_disposed_channel_neither_sends_nor_delivers(self):
        transport = FakeTransport()
        channel = TransportChannel(transport, LengthPrefixedFramer())
        seen = []
        channel.listen(seen.append)
        channel.dispose()
        transport.receive(_note(1))
        assert seen == []
        assert channel.send(Notification('exit')) is False


class TestEventChannel:
    def test_failing_listener_does_not_block_others(self):
        from fplsp.client.events import EventChannel

        def boom(_):
            raise RuntimeError('listener bug')

        ch = EventChannel('test')
        seen = []
        ch.subscribe(boom)
        ch.subscribe(seen.append)
        ch.emit(1)
        assert seen == [1]

    def test_subscription_as_context_manager(self):
        from fplsp.client.events import EventChannel
        ch = EventChannel()
        seen = []
        with ch.subscribe(seen.append) as sub:
            ch.emit('a')
            assert sub.active
        ch.emit('b')
        assert seen == ['a']
        assert not sub.active
