"""Method table

A ``MethodTable`` maps method names to ``RpcMethod`` handlers. Every handler
is invoked the same way, with a single argument holding the (merged) params,
so the dispatcher never has to inspect signatures.

Example:
    ```python
    methods = MethodTable()

    @methods.rpc_method("subtract")
    def subtract(params):
        if isinstance(params, list):
            return params[0] - params[1]
        return params["minuend"] - params["subtrahend"]

    class Greeting(BaseModel):
        name: str

    @methods.rpc_method("greet", params_type=Greeting, observable=True)
    async def greet(params: Greeting) -> str:
        return f"Hello {params.name}"
    ```
"""

import inspect
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .errors import JsonRpcException
from .messages import ERROR_MESSAGES, JSONRPC_INVALID_PARAMS

INTERNAL_METHOD_PREFIX = "rpc."
"""Method names starting with this prefix are reserved for internal methods."""

_NO_ARGUMENT = object()


@dataclass
class RpcMethod:
    """A handler registered under a method name.

    Args:
        name (str): The method name clients call
        func (Callable): Sync or async callable taking the params as its only
            argument, or nothing when the request carried no params
        observable (bool): Notify subscribers of this method after every
            successful call
        params_type (Any): Optional type the argument is validated and
            converted to before the call
    """

    name: str
    func: Callable[..., Any]
    observable: bool = False
    params_type: Any = None
    _adapter: TypeAdapter | None = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if self.params_type is not None:
            self._adapter = TypeAdapter(self.params_type)

    def _convert(self, argument: Any) -> Any:
        if self._adapter is None:
            return argument
        try:
            return self._adapter.validate_python(argument)
        except ValidationError as e:
            raise JsonRpcException(
                ERROR_MESSAGES[JSONRPC_INVALID_PARAMS],
                JSONRPC_INVALID_PARAMS,
                e.errors(include_url=False, include_context=False),
            ) from e

    async def invoke(self, argument: Any = _NO_ARGUMENT) -> Any:
        """Call the handler and await its result if it is awaitable.

        Raises:
            JsonRpcException: If the argument does not match ``params_type``,
                or if the handler raises one itself.
        """
        if argument is _NO_ARGUMENT:
            if self._adapter is not None:
                result = self.func(self._convert(None))
            else:
                result = self.func()
        else:
            result = self.func(self._convert(argument))

        if inspect.isawaitable(result):
            result = await result
        return result


class MethodTable(Mapping[str, RpcMethod]):
    """Read-only mapping of method names to handlers.

    Lookups are case-sensitive and names are unique. The table is built by
    the application at startup; the dispatcher only reads it.

    Args:
        methods (Mapping[str, Callable] | None): Plain callables to register
            under their keys
    """

    def __init__(self, methods: Mapping[str, Callable[..., Any]] | None = None):
        self._methods: dict[str, RpcMethod] = {}
        for name, func in (methods or {}).items():
            self.rpc_method(name, func)

    @classmethod
    def of(cls, methods: "MethodTable | Mapping[str, Callable[..., Any]]"):
        if isinstance(methods, MethodTable):
            return methods
        return cls(methods)

    def __getitem__(self, name: str) -> RpcMethod:
        return self._methods[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def add(self, method: RpcMethod):
        if method.name.startswith(INTERNAL_METHOD_PREFIX):
            raise ValueError(
                f"Method names starting with {INTERNAL_METHOD_PREFIX!r} are reserved"
            )
        if method.name in self._methods:
            raise ValueError(f"Method {method.name} is already registered")
        self._methods[method.name] = method

    def rpc_method(
        self,
        method_name: str,
        func: Callable | None = None,
        *,
        observable: bool = False,
        params_type: Any = None,
    ):
        """Registers a function as the handler of an RPC method.

        Args:
            method_name (str): The name of the RPC method to handle.
            func (Callable | None, optional): The handler function. If None,
                returns a decorator. Defaults to None.
            observable (bool): Push a notification to the method's
                subscribers after each successful call.
            params_type (Any): Validate and convert the params to this type
                before calling the handler.

        Returns:
            Callable: A decorator if func is None, otherwise None.

        Raises:
            ValueError: If the name is reserved or already registered.
        """

        def decorator(func):
            self.add(
                RpcMethod(
                    method_name, func, observable=observable, params_type=params_type
                )
            )
            return func

        if func is None:
            return decorator
        else:
            decorator(func)
