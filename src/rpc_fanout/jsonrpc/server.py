"""Accept loops that hand every new session to a JsonRpcConnection.

One method table and one subscriber registry are shared by every
connection accepted by a server.
"""

import asyncio
import logging
import urllib.parse
from collections.abc import Callable, Mapping
from typing import Any

from websockets.asyncio.server import Server, ServerConnection, serve

from .connection import JsonRpcConnection
from .methods import MethodTable
from .options import RespondOptions
from .subscriptions import SubscriberRegistry
from .transport import JsonRpcStreamTransport, WebSocketTransport

logger = logging.getLogger(__name__)


class JsonRpcServer:
    """Creates connections for accepted sessions.

    Args:
        methods (MethodTable | Mapping): The method table
        options (RespondOptions | None): Options applied to every session
        registry (SubscriberRegistry | None): Shared registry, created from the
            table and options when omitted
    """

    def __init__(
        self,
        methods: MethodTable | Mapping[str, Callable[..., Any]],
        options: RespondOptions | None = None,
        registry: SubscriberRegistry | None = None,
    ):
        self.methods = MethodTable.of(methods)
        self.options = options or RespondOptions()
        self.registry = registry or SubscriberRegistry(self.methods, self.options)

    def connection(self, transport) -> JsonRpcConnection:
        return JsonRpcConnection(transport, self.methods, self.options, self.registry)

    async def handle_websocket(self, websocket: ServerConnection):
        connection = self.connection(WebSocketTransport(websocket))
        logger.info(
            "WebSocket client connected",
            extra={"connectionId": connection.id, "remote": str(websocket.remote_address)},
        )
        await connection.run()
        logger.info(
            "WebSocket client disconnected", extra={"connectionId": connection.id}
        )

    async def handle_stream(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        connection = self.connection(JsonRpcStreamTransport(reader, writer))
        peer = writer.get_extra_info("peername")
        logger.info(
            "Stream client connected",
            extra={"connectionId": connection.id, "remote": str(peer)},
        )
        await connection.run()
        logger.info("Stream client disconnected", extra={"connectionId": connection.id})

    def serve_websocket(self, host: str | None, port: int | None):
        """Returns the ``websockets`` server, awaitable or usable as a context manager."""
        return serve(self.handle_websocket, host, port)

    async def start(self, url: urllib.parse.ParseResult) -> Server | asyncio.Server:
        """Start listening on ``ws://``, ``tcp://`` or ``unix://`` URLs.

        Raises:
            ValueError: For any other scheme
        """
        match url.scheme:
            case "ws":
                return await self.serve_websocket(url.hostname, url.port)
            case "tcp":
                return await asyncio.start_server(
                    self.handle_stream, url.hostname, url.port
                )
            case "unix":
                return await asyncio.start_unix_server(self.handle_stream, url.path)
            case _:
                raise ValueError(f"Unsupported scheme {url.scheme}")
