"""
Message framing for the two wire encodings.

``LengthPrefixedFramer`` handles the stdio/TCP stream encoding::

    Content-Length: 52\\r\\n
    \\r\\n
    {"jsonrpc":"2.0","id":1,"method":"initialize",...}

``feed`` is incremental: header and body may arrive split across any number
of calls and the unconsumed bytes are kept between calls.  A header block
without a usable ``Content-Length`` is dropped up to its blank-line boundary
and decoding carries on with whatever follows.

``SocketFrameFramer`` handles WebSocket traffic, where each transport frame
already is one complete JSON document.
"""
from __future__ import annotations

import abc
import json
import logging
import re

from fplsp.client.messages import (
    FramingError,
    Message,
    MessageParseError,
    parse_message,
    to_payload,
)

logger = logging.getLogger(__name__)

HEADER_BOUNDARY = b'\r\n\r\n'

# Last match wins so that a header glued to the leftovers of a dropped body
# still resynchronises.
_CONTENT_LENGTH = re.compile(rb'content-length[ \t]*:[ \t]*([^\r\n]*)', re.IGNORECASE)


def _dumps(message: Message) -> bytes:
    return json.dumps(to_payload(message), separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def _decode(body: bytes) -> Message | None:
    """Decode one JSON document; log and return None when it is unusable."""
    try:
        return parse_message(json.loads(body.decode('utf-8')))
    except (UnicodeDecodeError, json.JSONDecodeError, MessageParseError) as e:
        logger.warning('discarding malformed message (%d bytes): %s', len(body), e)
        return None


class MessageFramer(abc.ABC):
    """Converts between :data:`Message` values and wire bytes."""

    @abc.abstractmethod
    def encode(self, message: Message) -> bytes:
        ...

    @abc.abstractmethod
    def feed(self, chunk: bytes | str) -> list[Message]:
        ...

    def reset(self) -> None:
        """Drop any partially received data."""


class LengthPrefixedFramer(MessageFramer):

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._expected_length: int | None = None

    def encode(self, message: Message) -> bytes:
        body = _dumps(message)
        header = f'Content-Length: {len(body)}\r\n\r\n'.encode('ascii')
        return header + body

    def reset(self) -> None:
        self._buffer.clear()
        self._expected_length = None

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes | str) -> list[Message]:
        if isinstance(chunk, str):
            chunk = chunk.encode('utf-8')
        if chunk:
            self._buffer.extend(chunk)

        messages: list[Message] = []
        while True:
            if self._expected_length is None:
                header_end = self._buffer.find(HEADER_BOUNDARY)
                if header_end < 0:
                    break
                header_blob = bytes(self._buffer[:header_end])
                del self._buffer[:header_end + len(HEADER_BOUNDARY)]
                try:
                    self._expected_length = self._parse_content_length(header_blob)
                except FramingError as e:
                    logger.warning('skipping header block: %s', e)
                    continue

            if len(self._buffer) < self._expected_length:
                break

            body = bytes(self._buffer[:self._expected_length])
            del self._buffer[:self._expected_length]
            self._expected_length = None

            message = _decode(body)
            if message is not None:
                messages.append(message)
        return messages

    @staticmethod
    def _parse_content_length(header_blob: bytes) -> int:
        matches = _CONTENT_LENGTH.findall(header_blob)
        if not matches:
            raise FramingError(f'no Content-Length in header {header_blob[:80]!r}')
        value = matches[-1].strip().decode('ascii', errors='replace')
        try:
            length = int(value)
        except ValueError:
            raise FramingError(f'invalid Content-Length {value!r}') from None
        if length < 0:
            raise FramingError(f'negative Content-Length {length}')
        return length


class SocketFrameFramer(MessageFramer):

    def encode(self, message: Message) -> bytes:
        return _dumps(message)

    def feed(self, chunk: bytes | str) -> list[Message]:
        if isinstance(chunk, str):
            chunk = chunk.encode('utf-8')
        message = _decode(chunk)
        return [message] if message is not None else []
