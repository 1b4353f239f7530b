"""
Editor-side client: one document, one language server connection.

Typical use::

    async with await EditorClient.connect_stdio(['fplsp', '--stdio']) as client:
        await client.start('Patient')
        result = await client.edit('Patient.', caret=8)

``connect_*`` only wires the pieces together; nothing is sent until
:meth:`EditorClient.start` runs the ``initialize``/``initialized`` handshake
and opens the document.  :meth:`EditorClient.close` sends ``shutdown`` and
``exit`` and then tears the connection down.
"""
from __future__ import annotations

import asyncio
import logging
import os

from lsprotocol import types as lsp
from lsprotocol.converters import get_converter
from websockets.asyncio.client import connect as ws_connect

from fplsp import __version__
from fplsp.client.channel import TransportChannel
from fplsp.client.completion import CompletionController, CompletionResult
from fplsp.client.diagnostics import DiagnosticsTracker
from fplsp.client.framing import LengthPrefixedFramer, MessageFramer, SocketFrameFramer
from fplsp.client.session import RpcSession
from fplsp.client.sync import DocumentSynchronizer
from fplsp.client.transport import StreamTransport, Transport, WebSocketTransport
from fplsp.settings import ClientSettings

logger = logging.getLogger(__name__)

_converter = get_converter()

DEFAULT_URI = 'file:///untitled.fhirpath'
PROCESS_EXIT_TIMEOUT = 2.0


class EditorClient:

    def __init__(
        self,
        transport: Transport,
        framer: MessageFramer,
        *,
        uri: str = DEFAULT_URI,
        settings: ClientSettings | None = None,
        process: asyncio.subprocess.Process | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.transport = transport
        self.channel = TransportChannel(transport, framer)
        self.session = RpcSession(
            self.channel,
            request_timeout=self.settings.request_timeout,
            history_size=self.settings.history_size,
        )
        self.sync = DocumentSynchronizer(
            self.session, uri,
            language_id=self.settings.language_id,
            debounce=self.settings.debounce,
        )
        self.completions = CompletionController(self.session, self.sync)
        self.diagnostics = DiagnosticsTracker(uri, lambda: self.sync.text)
        self.diagnostics.attach(self.session)
        self.server_capabilities: lsp.ServerCapabilities | None = None
        self._process = process

    # ------------------------------------------------------------------
    # Connecting
    # ------------------------------------------------------------------

    @classmethod
    async def connect_stdio(cls, command: list[str], **kwargs) -> EditorClient:
        """Spawn *command* and speak length-prefixed JSON-RPC over its stdio."""
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
        )
        logger.info('started language server %s (pid %d)', command[0], process.pid)
        transport = StreamTransport(process.stdout, process.stdin)
        return cls(transport, LengthPrefixedFramer(), process=process, **kwargs)

    @classmethod
    async def connect_tcp(cls, host: str, port: int, **kwargs) -> EditorClient:
        reader, writer = await asyncio.open_connection(host, port)
        return cls(StreamTransport(reader, writer), LengthPrefixedFramer(), **kwargs)

    @classmethod
    async def connect_websocket(cls, url: str, **kwargs) -> EditorClient:
        """Connect to a WebSocket endpoint; one JSON message per frame."""
        connection = await ws_connect(url)
        return cls(WebSocketTransport(connection), SocketFrameFramer(), **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _initialize_params(self, root_uri: str | None) -> dict:
        return {
            'processId': os.getpid(),
            'clientInfo': {'name': 'fplsp-client', 'version': __version__},
            'rootUri': root_uri,
            'capabilities': {
                'textDocument': {
                    'synchronization': {'dynamicRegistration': False, 'didSave': False},
                    'completion': {
                        'dynamicRegistration': False,
                        'completionItem': {
                            'snippetSupport': False,
                            'documentationFormat': ['markdown', 'plaintext'],
                        },
                    },
                    'publishDiagnostics': {'relatedInformation': False},
                },
            },
        }

    async def start(self, text: str = '', *, root_uri: str | None = None) -> bool:
        """Handshake with the server and open the document; False if the server did not answer."""
        self.transport.start()
        response = await self.session.initialize(self._initialize_params(root_uri))
        if not response.ok:
            return False
        try:
            result = _converter.structure(response.result, lsp.InitializeResult)
            self.server_capabilities = result.capabilities
        except Exception as e:
            logger.warning('could not read server capabilities: %s', e)
        self.sync.open(text)
        return True

    async def edit(self, text: str, caret: int, *, explicit: bool = False) -> CompletionResult | None:
        """Report an edit; returns the completions to show, if any."""
        self.sync.change(text, caret)
        return await self.completions.complete(text, caret, explicit=explicit)

    async def close(self) -> None:
        if self.session.disposed:
            return
        self.sync.close()
        self.diagnostics.detach()
        await self.session.shutdown()
        await self.transport.close()
        if self._process is not None:
            try:
                await asyncio.wait_for(self._process.wait(), PROCESS_EXIT_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning('language server did not exit, terminating pid %d', self._process.pid)
                self._process.terminate()
                await self._process.wait()

    async def __aenter__(self) -> EditorClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
