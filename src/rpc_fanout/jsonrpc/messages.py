"""JSON-RPC 2.0 Message Type Definitions

This module defines the message types exchanged on the wire, the reserved
error codes, and the outcome of validating one inbound request.

Wire messages are plain ``TypedDict``s so they serialize with ``json``
directly and can be checked by pydantic's ``TypeAdapter``.

The JSON-RPC 2.0 specification defines four types of messages:
1. Request - A call to a method that requires a response
2. Notification - A request without an id, which never gets a response
3. Success Response - A response containing the result of a method call
4. Error Response - A response indicating an error occurred

References:
    JSON-RPC 2.0 Specification: https://www.jsonrpc.org/specification
"""

from dataclasses import dataclass
from typing import Any, Literal

from typing_extensions import NotRequired, TypedDict

JsonRpcId = str | int | float | None
"""Request identifier. Booleans are not accepted even though they are ints."""


class JsonRpcRequest(TypedDict):
    """A JSON-RPC request or notification.

    A request without an ``id`` key is a notification. ``"id": null`` is
    still a request and gets a response with a null id.

    Fields:
        jsonrpc: Must be exactly "2.0"
        method: The name of the method to be invoked
        params: Optional positional or named parameters
        id: Optional request identifier echoed back in the response
    """

    jsonrpc: Literal["2.0"]
    method: str
    params: NotRequired[list | dict]
    id: NotRequired[JsonRpcId]


class JsonRpcResult(TypedDict):
    """A JSON-RPC success response message.

    Fields:
        jsonrpc: Must be exactly "2.0"
        result: The result of the method call
        id: The id from the original request
    """

    jsonrpc: Literal["2.0"]
    result: Any
    id: JsonRpcId


class JsonRpcError(TypedDict):
    """A JSON-RPC error object.

    Fields:
        code: The error code (see error code constants below)
        message: A short description of the error
        data: Optional additional error information, omitted when absent
    """

    code: int
    message: str
    data: NotRequired[Any]


class JsonRpcErrorResponse(TypedDict):
    """A JSON-RPC error response message.

    Fields:
        jsonrpc: Must be exactly "2.0"
        error: The error that occurred
        id: The id from the original request, or null if the id couldn't be determined
    """

    jsonrpc: Literal["2.0"]
    error: JsonRpcError
    id: JsonRpcId


JsonRpcResponse = JsonRpcResult | JsonRpcErrorResponse
"""Union type of the two reply shapes."""


@dataclass(frozen=True)
class Valid:
    """A request that passed structural validation."""

    request: JsonRpcRequest


@dataclass(frozen=True)
class Invalid:
    """A payload that could not be turned into a request.

    ``id`` is the id recovered from the payload when it was present and well
    typed, otherwise ``None``.
    """

    code: int
    message: str
    id: JsonRpcId = None


ValidationOutcome = Valid | Invalid


# Standard JSON-RPC 2.0 error codes
JSONRPC_PARSE_ERROR = -32700
"""Invalid JSON was received by the server."""

JSONRPC_INVALID_REQUEST = -32600
"""The JSON sent is not a valid Request object."""

JSONRPC_METHOD_NOT_FOUND = -32601
"""The method does not exist / is not available."""

JSONRPC_INVALID_PARAMS = -32602
"""Invalid method parameter(s)."""

JSONRPC_INTERNAL_ERROR = -32603
"""Internal JSON-RPC error."""

ERROR_MESSAGES = {
    JSONRPC_PARSE_ERROR: "Parse error",
    JSONRPC_INVALID_REQUEST: "Invalid Request",
    JSONRPC_METHOD_NOT_FOUND: "Method not found",
    JSONRPC_INVALID_PARAMS: "Invalid params",
    JSONRPC_INTERNAL_ERROR: "Internal error",
}
