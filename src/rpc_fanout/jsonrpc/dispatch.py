"""Request dispatch and response construction

This module turns validation outcomes into response envelopes:

1. Method lookup, including the internal subscription methods
2. Merging of server-side additional arguments into the params
3. Invoking sync or async handlers and classifying their failures
4. Building and serializing success and error envelopes
5. Processing batches with per-element independence

Example:
    ```python
    methods = {"subtract": lambda p: p[0] - p[1]}
    await respond(methods, '{"jsonrpc": "2.0", "method": "subtract", "params": [42, 23], "id": 1}')
    # '{"jsonrpc": "2.0", "result": 19, "id": 1}'
    ```

Notifications never produce a response, neither on success nor on failure.
"""

import asyncio
import json
import logging
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

from .errors import JsonRpcException
from .messages import (
    ERROR_MESSAGES,
    Invalid,
    JsonRpcError,
    JsonRpcErrorResponse,
    JsonRpcId,
    JsonRpcResponse,
    JsonRpcResult,
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_METHOD_NOT_FOUND,
    ValidationOutcome,
)
from .methods import INTERNAL_METHOD_PREFIX, MethodTable
from .options import RespondOptions
from .validation import validate_request

if TYPE_CHECKING:
    from .subscriptions import SubscriberRegistry

logger = logging.getLogger(__name__)

_result_adapter = TypeAdapter[Any](Any)

_MISSING = object()


def _to_json_compatible(result: Any) -> Any:
    # NaN and infinities are written as null
    return json.loads(_result_adapter.dump_json(result))


@dataclass
class DispatchContext:
    """Everything a request is dispatched against.

    Fields:
        methods: The method table
        options: Options of the session the request arrived on
        registry: Subscriber registry used by observable and internal methods
        connection_id: Id of the connection the request arrived on, if any
        emit: Whether observable methods notify subscribers. Dispatches made
            by the registry itself turn this off.
    """

    methods: MethodTable
    options: RespondOptions = field(default_factory=RespondOptions)
    registry: "SubscriberRegistry | None" = None
    connection_id: str | None = None
    emit: bool = True

    @property
    def internal_methods_enabled(self) -> bool:
        return (
            self.options.enable_internal_methods
            and self.registry is not None
            and self.connection_id is not None
        )


def build_result(result: Any, id: JsonRpcId) -> JsonRpcResult:
    return JsonRpcResult(jsonrpc="2.0", result=result, id=id)


def build_error(
    code: int, message: str, id: JsonRpcId, data: Any = _MISSING
) -> JsonRpcErrorResponse:
    """Build an error envelope. ``data`` is left out unless given."""
    if data is _MISSING:
        error = JsonRpcError(code=code, message=message)
    else:
        error = JsonRpcError(code=code, message=message, data=data)
    return JsonRpcErrorResponse(jsonrpc="2.0", error=error, id=id)


def serialize(response: JsonRpcResponse | list[JsonRpcResponse]) -> str:
    return json.dumps(response, allow_nan=False)


def merge_arguments(
    method: str, params: list | dict | None, options: RespondOptions
) -> tuple[Any, ...]:
    """Build the handler's argument tuple from params and additional arguments.

    Positional params get each matching rule's value appended. Keyed params
    are shallow-merged with each rule's mapping, later rules winning.

    Returns:
        tuple: Empty when there is nothing to pass, otherwise the single
            merged argument
    """
    extras = options.arguments_for(method)
    if not extras:
        return () if params is None else (params,)

    if params is None:
        params = {} if all(isinstance(e, Mapping) for e in extras) else []

    if isinstance(params, list):
        return ([*params, *extras],)

    merged = dict(params)
    for extra in extras:
        if isinstance(extra, Mapping):
            merged.update(extra)
        else:
            logger.warning(
                "Skipping non-mapping additional argument for keyed params of %s",
                method,
                extra={"arg": extra},
            )
    return (merged,)


def _internal_error(e: Exception, id: JsonRpcId, options: RespondOptions):
    message = ERROR_MESSAGES[JSONRPC_INTERNAL_ERROR]
    if options.public_error_stack:
        return build_error(
            JSONRPC_INTERNAL_ERROR,
            message,
            id,
            "".join(traceback.format_exception(e)),
        )
    return build_error(JSONRPC_INTERNAL_ERROR, message, id)


async def create_response(
    outcome: ValidationOutcome, context: DispatchContext
) -> JsonRpcResponse | None:
    """Dispatch one validation outcome.

    Args:
        outcome (ValidationOutcome): Result of validating one request
        context (DispatchContext): Method table, options and registry

    Returns:
        JsonRpcResponse | None: The response, or None for notifications
    """
    if isinstance(outcome, Invalid):
        return build_error(outcome.code, outcome.message, outcome.id)

    req = outcome.request
    logger.debug("Handling request", extra={"jsonRpcMsg": req})

    method = req["method"]
    params = req.get("params")
    is_notification = "id" not in req
    id = req.get("id")

    try:
        if method.startswith(INTERNAL_METHOD_PREFIX) and context.internal_methods_enabled:
            assert context.registry is not None
            assert context.connection_id is not None
            res = await context.registry.call_internal(
                method, params, context.connection_id
            )
        else:
            if method not in context.methods:
                if is_notification:
                    logger.info(
                        "Unhandled notification %s", method, extra={"params": params}
                    )
                    return None
                return build_error(
                    JSONRPC_METHOD_NOT_FOUND,
                    ERROR_MESSAGES[JSONRPC_METHOD_NOT_FOUND],
                    id,
                )

            handler = context.methods[method]
            res = await handler.invoke(*merge_arguments(method, params, context.options))

            if handler.observable and context.emit and context.registry is not None:
                await context.registry.emit(method, params)

        res = _to_json_compatible(res)
    except JsonRpcException as e:
        logger.debug("Method %s raised %s", method, e.code, extra={"error": e.to_err()})
        if is_notification:
            return None
        return JsonRpcErrorResponse(jsonrpc="2.0", error=e.to_err(), id=id)
    except Exception as e:
        logger.warning("Method %s failed", method, exc_info=True)
        if is_notification:
            return None
        return _internal_error(e, id, context.options)

    if is_notification:
        return None
    return build_result(res, id)


async def create_batch_response(
    outcomes: list[ValidationOutcome], context: DispatchContext
) -> list[JsonRpcResponse] | None:
    """Dispatch every element of a batch concurrently.

    Returns:
        list[JsonRpcResponse] | None: Responses in input order without the
            notifications, or None when no element produced a response
    """
    responses = await asyncio.gather(
        *(create_response(outcome, context) for outcome in outcomes)
    )
    cleaned = [response for response in responses if response is not None]
    if len(cleaned) == 0:
        return None
    return cleaned


async def process_message(
    message: str | bytes, context: DispatchContext
) -> JsonRpcResponse | list[JsonRpcResponse] | None:
    """Validate and dispatch one inbound message, single or batch."""
    outcome = validate_request(message)
    if isinstance(outcome, list):
        return await create_batch_response(outcome, context)
    return await create_response(outcome, context)


async def respond(
    methods: MethodTable | Mapping[str, Callable[..., Any]],
    message: str | bytes,
    options: RespondOptions | Mapping[str, Any] | None = None,
    *,
    registry: "SubscriberRegistry | None" = None,
    connection_id: str | None = None,
) -> str | None:
    """Answer one raw JSON-RPC message.

    Args:
        methods: The method table, or a mapping of names to plain callables
        message: The raw message
        options: ``RespondOptions`` or a mapping that validates into them
        registry: Subscriber registry for observable and internal methods
        connection_id: Id of the connection the message arrived on

    Returns:
        str | None: The serialized response, or None when nothing should be
            sent back
    """
    if options is None:
        options = RespondOptions()
    elif not isinstance(options, RespondOptions):
        options = RespondOptions.model_validate(options)

    context = DispatchContext(
        MethodTable.of(methods),
        options,
        registry=registry,
        connection_id=connection_id,
    )
    response = await process_message(message, context)
    if response is None:
        return None
    return serialize(response)
