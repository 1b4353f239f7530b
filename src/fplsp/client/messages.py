"""
JSON-RPC 2.0 message model.

Inbound payloads are validated once, at the transport boundary, into one of
three variants (:class:`Request`, :class:`Response` or :class:`Notification`)
so that nothing past the framer handles open-ended dicts.  The variant is
decided by which keys are present:

- ``method`` and a non-null ``id``  → Request
- ``method`` without ``id``        → Notification
- ``id`` with ``result``/``error`` → Response
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Union

JSONRPC_VERSION = '2.0'


class ErrorCode(enum.IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Implementation-defined range; never sent on the wire.
    REQUEST_TIMEOUT = -32001


# ---------------------------------------------------------------------------
# Error taxonomy (all recovered locally; none terminates a session)
# ---------------------------------------------------------------------------

class ProtocolError(Exception):
    """Base class for faults in the message pipeline."""


class TransportError(ProtocolError):
    """The underlying transport cannot accept writes."""


class FramingError(ProtocolError):
    """A header block is malformed or declares no usable length."""


class MessageParseError(ProtocolError):
    """A payload is not valid JSON or not a JSON-RPC message."""


class CorrelationError(ProtocolError):
    """A response carries an id with no pending request."""


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Request:
    id: int | str
    method: str
    params: Any = None


@dataclass(frozen=True)
class Notification:
    method: str
    params: Any = None


@dataclass(frozen=True)
class ResponseError:
    code: int
    message: str
    data: Any = None


@dataclass(frozen=True)
class Response:
    id: int | str | None
    result: Any = None
    error: ResponseError | None = None

    @classmethod
    def timeout(cls, request_id: int | str) -> Response:
        return cls(
            id=request_id,
            error=ResponseError(code=ErrorCode.REQUEST_TIMEOUT, message='Request timeout'),
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def timed_out(self) -> bool:
        return self.error is not None and self.error.code == ErrorCode.REQUEST_TIMEOUT


Message = Union[Request, Response, Notification]


def describe(message: Message) -> str:
    """Short label for logs and the message history (``method`` or ``response:<id>``)."""
    if isinstance(message, Response):
        return f'response:{message.id}'
    return message.method


def _parse_error(raw: Any) -> ResponseError:
    if not isinstance(raw, dict):
        raise MessageParseError(f'error member must be an object, got {type(raw).__name__}')
    code = raw.get('code')
    if not isinstance(code, int) or isinstance(code, bool):
        raise MessageParseError(f'error code must be an integer, got {code!r}')
    return ResponseError(code=code, message=str(raw.get('message', '')), data=raw.get('data'))


def parse_message(obj: Any) -> Message:
    """Validate a decoded JSON document into a :data:`Message` variant.

    Raises :class:`MessageParseError` for anything that is not a JSON-RPC
    request, response or notification.
    """
    if not isinstance(obj, dict):
        raise MessageParseError(f'message must be a JSON object, got {type(obj).__name__}')

    request_id = obj.get('id')
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (int, str))
    ):
        raise MessageParseError(f'invalid message id {request_id!r}')

    if 'method' in obj:
        method = obj['method']
        if not isinstance(method, str):
            raise MessageParseError(f'method must be a string, got {method!r}')
        if request_id is None:
            return Notification(method=method, params=obj.get('params'))
        return Request(id=request_id, method=method, params=obj.get('params'))

    if 'id' in obj and ('result' in obj or 'error' in obj):
        error = obj.get('error')
        return Response(
            id=request_id,
            result=obj.get('result'),
            error=_parse_error(error) if error is not None else None,
        )

    raise MessageParseError('message has neither a method nor a result/error member')


def to_payload(message: Message) -> dict[str, Any]:
    """Return the wire representation of *message*."""
    payload: dict[str, Any] = {'jsonrpc': JSONRPC_VERSION}
    if isinstance(message, Request):
        payload['id'] = message.id
        payload['method'] = message.method
        if message.params is not None:
            payload['params'] = message.params
    elif isinstance(message, Notification):
        payload['method'] = message.method
        if message.params is not None:
            payload['params'] = message.params
    else:
        payload['id'] = message.id
        if message.error is not None:
            error: dict[str, Any] = {'code': int(message.error.code), 'message': message.error.message}
            if message.error.data is not None:
                error['data'] = message.error.data
            payload['error'] = error
        else:
            payload['result'] = message.result
    return payload
