"""JSON-RPC Connection Management

This module serves one duplex session over a transport:

1. Reading messages sequentially and answering each one
2. Serializing outgoing frames, so registry pushes never interleave with
   a response
3. Registering the session with the subscriber registry when internal
   methods are enabled, and detaching it on close

Example:
    ```python
    methods = MethodTable({"add": lambda p: p[0] + p[1]})
    registry = SubscriberRegistry(methods)

    async def handler(websocket):
        connection = JsonRpcConnection(
            WebSocketTransport(websocket),
            methods,
            RespondOptions(enable_internal_methods=True),
            registry,
        )
        await connection.run()
    ```

See Also:
    - transport.py: Transport layer implementations
    - subscriptions.py: The subscriber registry
"""

import asyncio
import enum
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from . import dispatch
from .methods import MethodTable
from .options import RespondOptions
from .subscriptions import SubscriberRegistry
from .transport import JsonRpcTransport, TransportClosed

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class JsonRpcConnection:
    """Serves JSON-RPC requests arriving on a transport.

    Messages are handled one at a time in arrival order; a message and every
    send it triggers complete before the next message is read. The options
    are the session configuration, including whether this connection may use
    the internal subscription methods.

    Args:
        transport (JsonRpcTransport): The transport layer to use.
        methods (MethodTable | Mapping): The method table.
        options (RespondOptions | None): Session configuration.
        registry (SubscriberRegistry | None): Shared subscriber registry.
        connection_id (str | None): Identity of the connection, generated when
            omitted.
    """

    def __init__(
        self,
        transport: JsonRpcTransport,
        methods: MethodTable | Mapping[str, Callable[..., Any]],
        options: RespondOptions | None = None,
        registry: SubscriberRegistry | None = None,
        connection_id: str | None = None,
    ):
        self._transport = transport
        self._registry = registry
        self._send_lock = asyncio.Lock()
        self.id = connection_id or uuid.uuid4().hex
        self.options = options or RespondOptions()
        self.state = ConnectionState.OPEN
        self._context = dispatch.DispatchContext(
            MethodTable.of(methods),
            self.options,
            registry=registry,
            connection_id=self.id,
        )

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def send(self, body: str):
        """Send one frame to the peer.

        Raises:
            TransportClosed: If the connection is no longer open
        """
        if not self.is_open:
            raise TransportClosed(f"Connection {self.id} is {self.state.value}")
        async with self._send_lock:
            logger.debug("Object sent", extra={"jsonRpcMsg": body})
            await self._transport.send_message(body)

    async def handle_message(self, message: str | bytes) -> str | None:
        """Answer one message without sending anything back."""
        response = await dispatch.process_message(message, self._context)
        if response is None:
            return None
        return dispatch.serialize(response)

    async def _receive_one_msg(self) -> str | bytes | None:
        try:
            return await self._transport.receive_message()
        except TransportClosed:
            logger.debug("Transport of connection %s closed", self.id)
            return None

    async def run(self):
        """Runs the connection until the peer goes away or it is closed.

        When internal methods are enabled the connection is attached to the
        registry for the duration of the loop. Closing always detaches it.

        Raises:
            asyncio.CancelledError: If the connection is cancelled.
        """
        if self._registry is not None and self.options.enable_internal_methods:
            self._registry.attach(self.id, self.send)

        try:
            while self.is_open:
                msg = await self._receive_one_msg()
                if msg is None:
                    break

                logger.debug("Received message", extra={"jsonRpcMsg": msg})
                response = await self.handle_message(msg)
                if response is None:
                    continue

                try:
                    await self.send(response)
                except TransportClosed:
                    logger.warning(
                        "Dropping response for closed connection %s", self.id
                    )
                    break
        except asyncio.CancelledError:
            await self.close()
            raise
        except Exception:
            logger.exception("Connection %s failed", self.id)
        await self.close()

    async def close(self):
        """Stop the connection, drop its memberships and close the transport."""
        if self.state is not ConnectionState.OPEN:
            return
        self.state = ConnectionState.CLOSING

        if self._registry is not None:
            await self._registry.detach(self.id)

        try:
            await self._transport.close()
        except Exception:
            logger.warning("Failed to close transport of %s", self.id, exc_info=True)

        self.state = ConnectionState.CLOSED
        logger.debug("Connection %s closed", self.id)
