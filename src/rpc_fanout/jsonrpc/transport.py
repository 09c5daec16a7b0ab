"""JSON-RPC Transport Layer

This module provides the transport layer abstraction for JSON-RPC communication.
The transport layer is responsible for sending and receiving raw JSON-RPC messages
over various protocols and channels.

The module defines:
1. A Protocol class that defines the transport interface
2. A stream-based transport (e.g. stdin/stdout, TCP, Unix sockets)
3. A WebSocket transport on top of the ``websockets`` library

Custom transports can be implemented by creating classes that implement the
JsonRpcTransport protocol.
"""

import asyncio
import logging
from typing import Protocol

from websockets.asyncio.connection import Connection
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)


class TransportClosed(Exception):
    """Raised when the peer went away or the transport was closed locally."""


class JsonRpcTransport(Protocol):
    """Protocol defining the transport layer interface.

    This protocol must be implemented by all transport classes. It defines
    the basic operations needed to send and receive JSON-RPC messages.

    Example:
        ```python
        class MyTransport(JsonRpcTransport):
            async def receive_message(self) -> str:
                # Implementation for receiving messages
                ...

            async def send_message(self, body: str):
                # Implementation for sending messages
                ...

            async def close(self):
                ...
        ```
    """

    async def receive_message(self) -> str | bytes:
        """Receive a complete JSON-RPC message.

        This method should block until a complete message is received.

        Returns:
            str | bytes: The complete JSON-RPC message

        Raises:
            TransportClosed: If the stream ended or the transport was closed
        """
        ...

    async def send_message(self, body: str):
        """Send a JSON-RPC message.

        Args:
            body (str): The JSON-RPC message to send

        Raises:
            TransportClosed: If the transport can no longer send
        """
        ...

    async def close(self):
        """Close the underlying channel. Closing twice is harmless."""
        ...


class JsonRpcStreamTransport:
    """Stream-based transport implementation.

    This transport implements the JSON-RPC transport protocol for stream-based
    communication channels like stdin/stdout, Unix sockets or TCP connections.
    It uses a length-prefixed protocol where each message is preceded by headers
    specifying its length.

    Message Format:
        Content-Length: <length>
        Content-Type: application/json; charset=utf-8

        <message>

    Args:
        reader (asyncio.StreamReader): The stream reader
        writer (asyncio.StreamWriter): The stream writer
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer

    async def _read_headers(self) -> dict[str, str]:
        """Read message headers from the stream.

        Headers are read until an empty line is encountered.

        Returns:
            dict[str, str]: Dictionary of header names to values

        Raises:
            asyncio.IncompleteReadError: If the stream ends before headers are complete
        """
        res: dict[str, str] = {}
        row = await self._reader.readuntil(b"\r\n")
        while row != b"\r\n":
            if b":" not in row:
                logger.warning("Ignoring malformed header line", extra={"row": row})
            else:
                [name, value] = row.split(b":", 1)
                res[name.strip().lower().decode()] = value.strip().decode()
            row = await self._reader.readuntil(b"\r\n")
        return res

    async def receive_message(self) -> bytes:
        """Receive a complete JSON-RPC message from the stream.

        Messages must be preceded by headers including Content-Length. The
        body is returned undecoded so that invalid UTF-8 surfaces as a parse
        error rather than a transport failure.

        Raises:
            TransportClosed: If the stream ends before a message is complete
        """
        try:
            while True:
                headers = await self._read_headers()
                if "content-length" not in headers:
                    logger.warning("Received message with no Content-Length header")
                    continue

                try:
                    length = int(headers["content-length"])
                except ValueError:
                    logger.warning(
                        "Received message with invalid Content-Length header",
                        extra={"headers": headers},
                    )
                    continue
                return await self._reader.readexactly(length)
        except (asyncio.IncompleteReadError, ConnectionError) as e:
            raise TransportClosed("Stream closed") from e

    def _write_headers(self, headers: dict[str, str]):
        for key, value in headers.items():
            self._writer.write(f"{key}: {value}\r\n".encode())
        self._writer.write(b"\r\n")

    async def send_message(self, body: str):
        """Send a JSON-RPC message over the stream.

        The message will be preceded by appropriate headers including
        Content-Length and Content-Type.

        Args:
            body (str): The JSON-RPC message to send

        Raises:
            TransportClosed: If there is an error writing to the stream
        """
        if self._writer.is_closing():
            raise TransportClosed("Stream closed")

        contents = body.encode()
        try:
            self._write_headers(
                {
                    "Content-Type": "application/json;charset=utf-8",
                    "Content-Length": str(len(contents)),
                }
            )
            self._writer.write(contents)
            await self._writer.drain()
        except ConnectionError as e:
            raise TransportClosed("Stream closed") from e

    async def close(self):
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError:
            logger.debug("Error while closing stream", exc_info=True)


class WebSocketTransport:
    """Transport over one WebSocket connection.

    Each WebSocket message carries exactly one JSON-RPC message (or batch),
    so no extra framing is needed.

    Args:
        websocket (Connection): A ``websockets`` asyncio connection, server
            or client side
    """

    def __init__(self, websocket: Connection):
        self._websocket = websocket

    @property
    def remote_address(self):
        return self._websocket.remote_address

    async def receive_message(self) -> str | bytes:
        try:
            return await self._websocket.recv()
        except ConnectionClosed as e:
            raise TransportClosed(str(e)) from e

    async def send_message(self, body: str):
        try:
            await self._websocket.send(body)
        except ConnectionClosed as e:
            raise TransportClosed(str(e)) from e

    async def close(self):
        await self._websocket.close()
