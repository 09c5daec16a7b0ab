from typing import Any

from .messages import JsonRpcError


class JsonRpcException(Exception):
    """Exception carrying a JSON-RPC error object.

    Handlers raise it to reply with an application-defined error. Its code,
    message and data are sent to the caller verbatim, regardless of the
    ``public_error_stack`` option. Codes in [-32099, -32000] and outside the
    reserved range are free for application use.

    Args:
        message (str): A human-readable error description
        code (int): The JSON-RPC error code (see messages.py for standard codes)
        data (Any): Optional additional error data

    Example:
        ```python
        async def withdraw(params):
            if params["amount"] > balance:
                raise JsonRpcException(
                    "Insufficient funds", -32000, {"balance": balance}
                )
        ```
    """

    def __init__(self, message: str, code: int, data: Any = None):
        super(JsonRpcException, self).__init__(message)
        self.code = code
        self.data = data

    def to_err(self) -> JsonRpcError:
        """Convert the exception to a JSON-RPC error object.

        Returns:
            JsonRpcError: The error object for the JSON-RPC response
        """
        if self.data is not None:
            return JsonRpcError(code=self.code, message=str(self), data=self.data)
        else:
            return JsonRpcError(code=self.code, message=str(self))
