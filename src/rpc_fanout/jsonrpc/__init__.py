from .connection import ConnectionState, JsonRpcConnection
from .dispatch import (
    DispatchContext,
    create_batch_response,
    create_response,
    process_message,
    respond,
)
from .errors import JsonRpcException
from .messages import (
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_INVALID_PARAMS,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_METHOD_NOT_FOUND,
    JSONRPC_PARSE_ERROR,
    Invalid,
    Valid,
)
from .methods import MethodTable, RpcMethod
from .options import AdditionalArgument, RespondOptions
from .server import JsonRpcServer
from .subscriptions import SubscriberRegistry
from .transport import (
    JsonRpcStreamTransport,
    JsonRpcTransport,
    TransportClosed,
    WebSocketTransport,
)
from .validation import validate_request

__all__ = (
    "ConnectionState",
    "JsonRpcConnection",
    "DispatchContext",
    "create_batch_response",
    "create_response",
    "process_message",
    "respond",
    "JsonRpcException",
    "JSONRPC_INTERNAL_ERROR",
    "JSONRPC_INVALID_PARAMS",
    "JSONRPC_INVALID_REQUEST",
    "JSONRPC_METHOD_NOT_FOUND",
    "JSONRPC_PARSE_ERROR",
    "Invalid",
    "Valid",
    "MethodTable",
    "RpcMethod",
    "AdditionalArgument",
    "RespondOptions",
    "JsonRpcServer",
    "SubscriberRegistry",
    "JsonRpcStreamTransport",
    "JsonRpcTransport",
    "TransportClosed",
    "WebSocketTransport",
    "validate_request",
)
