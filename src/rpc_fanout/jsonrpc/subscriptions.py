"""Subscriber registry for server-initiated notifications

Connections subscribe to a method name through the internal
``rpc.subscribe`` method. Whenever that method runs, either because a client
called an observable method, a client called ``rpc.emit``, or server code
called ``SubscriberRegistry.emit`` directly, the registry re-dispatches the
method once per subscriber with the subscriber's connection id as request id
and pushes the serialized response to that connection.

Delivery is best effort and at most once. A push that fails detaches the
connection from every method it subscribed to.

Example:
    ```python
    registry = SubscriberRegistry(methods)
    registry.attach(connection.id, connection.send)
    await registry.subscribe("news", connection.id)
    await registry.emit("news", {"headline": "..."})
    ```
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from . import dispatch
from .errors import JsonRpcException
from .messages import ERROR_MESSAGES, JSONRPC_INVALID_PARAMS, JSONRPC_METHOD_NOT_FOUND
from .methods import MethodTable
from .options import RespondOptions
from .validation import validate_request_object

logger = logging.getLogger(__name__)

Sender = Callable[[str], Awaitable[None]]

SUBSCRIBE = "rpc.subscribe"
UNSUBSCRIBE = "rpc.unsubscribe"
EMIT = "rpc.emit"


class SubscriptionParams(BaseModel):
    method: str


class UnsubscriptionParams(BaseModel):
    method: str | None = None


class EmitParams(BaseModel):
    method: str
    params: list | dict | None = None


T = TypeVar("T", bound=BaseModel)


def _parse_params(model: type[T], params: list | dict | None) -> T:
    if isinstance(params, list):
        params = dict(zip(model.model_fields, params))
    try:
        return model.model_validate(params or {})
    except ValidationError as e:
        raise JsonRpcException(
            ERROR_MESSAGES[JSONRPC_INVALID_PARAMS],
            JSONRPC_INVALID_PARAMS,
            e.errors(include_url=False, include_context=False),
        ) from e


class SubscriberRegistry:
    """Process-wide mapping of method names to subscribed connections.

    Membership changes and subscriber snapshots are serialized by a lock.
    Emits iterate over a snapshot, so connections detaching mid-emit do not
    disturb the iteration.

    Args:
        methods (MethodTable | Mapping): The method table notifications are
            dispatched against
        options (RespondOptions | None): Options used for those dispatches
    """

    def __init__(
        self,
        methods: MethodTable | Mapping[str, Callable[..., Any]],
        options: RespondOptions | None = None,
    ):
        self._methods = MethodTable.of(methods)
        self._options = options or RespondOptions()
        self._subscribers: dict[str, set[str]] = {}
        self._senders: dict[str, Sender] = {}
        self._lock = asyncio.Lock()

    def attach(self, connection_id: str, send: Sender):
        """Make a connection reachable for pushes."""
        self._senders[connection_id] = send

    async def detach(self, connection_id: str):
        """Forget a connection and all of its memberships."""
        async with self._lock:
            self._senders.pop(connection_id, None)
            self._remove_everywhere(connection_id)
        logger.debug("Detached connection %s", connection_id)

    def _remove_everywhere(self, connection_id: str) -> bool:
        removed = False
        for method in list(self._subscribers):
            ids = self._subscribers[method]
            if connection_id in ids:
                ids.discard(connection_id)
                removed = True
            if not ids:
                del self._subscribers[method]
        return removed

    async def subscribe(self, method: str, connection_id: str):
        async with self._lock:
            self._subscribers.setdefault(method, set()).add(connection_id)
        logger.debug("Connection %s subscribed to %s", connection_id, method)

    async def unsubscribe(self, connection_id: str, method: str | None = None) -> bool:
        """Remove one membership, or every membership when method is None.

        Returns:
            bool: Whether anything was removed
        """
        async with self._lock:
            if method is None:
                return self._remove_everywhere(connection_id)

            ids = self._subscribers.get(method)
            if ids is None or connection_id not in ids:
                return False
            ids.discard(connection_id)
            if not ids:
                del self._subscribers[method]
            return True

    def subscribers(self, method: str) -> frozenset[str]:
        return frozenset(self._subscribers.get(method, ()))

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._senders

    async def emit(self, method: str, params: list | dict | None = None) -> int:
        """Notify every subscriber of ``method``.

        Args:
            method (str): The method whose subscribers are notified
            params (list | dict | None): Params the method is re-dispatched with

        Returns:
            int: The number of subscribers targeted
        """
        async with self._lock:
            targets = [
                (connection_id, self._senders[connection_id])
                for connection_id in self._subscribers.get(method, ())
                if connection_id in self._senders
            ]

        if not targets:
            return 0

        logger.debug(
            "Emitting %s to %d subscribers", method, len(targets), extra={"params": params}
        )
        await asyncio.gather(
            *(self._push(method, params, connection_id, send) for connection_id, send in targets)
        )
        return len(targets)

    async def _push(
        self,
        method: str,
        params: list | dict | None,
        connection_id: str,
        send: Sender,
    ):
        obj: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": connection_id}
        if params is not None:
            obj["params"] = params

        context = dispatch.DispatchContext(
            self._methods,
            self._options,
            registry=self,
            connection_id=connection_id,
            emit=False,
        )
        response = await dispatch.create_response(validate_request_object(obj), context)
        if response is None:
            return

        try:
            await send(dispatch.serialize(response))
        except Exception:
            logger.warning(
                "Failed to push %s to connection %s, detaching it",
                method,
                connection_id,
                exc_info=True,
            )
            await self.detach(connection_id)

    async def call_internal(
        self, method: str, params: list | dict | None, connection_id: str
    ) -> Any:
        """Run one of the internal subscription methods for a connection.

        Raises:
            JsonRpcException: For unknown internal methods or bad params
        """
        if method == SUBSCRIBE:
            subscription = _parse_params(SubscriptionParams, params)
            if subscription.method not in self._methods:
                raise JsonRpcException(
                    f"Cannot subscribe to unknown method {subscription.method}",
                    JSONRPC_INVALID_PARAMS,
                )
            await self.subscribe(subscription.method, connection_id)
            return connection_id
        elif method == UNSUBSCRIBE:
            unsubscription = _parse_params(UnsubscriptionParams, params)
            return await self.unsubscribe(connection_id, unsubscription.method)
        elif method == EMIT:
            emission = _parse_params(EmitParams, params)
            return await self.emit(emission.method, emission.params)
        else:
            raise JsonRpcException(
                ERROR_MESSAGES[JSONRPC_METHOD_NOT_FOUND], JSONRPC_METHOD_NOT_FOUND
            )
