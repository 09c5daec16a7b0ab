"""Turning raw text into validated JSON-RPC requests.

``validate_request`` is the entry point: it parses one inbound message and
returns one ``ValidationOutcome``, or a list of them when the message is a
batch. Elements of a batch are validated independently, so a malformed
element never invalidates its siblings.
"""

import json
import logging
import math
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .messages import (
    ERROR_MESSAGES,
    Invalid,
    JsonRpcId,
    JsonRpcRequest,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_PARSE_ERROR,
    Valid,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

_request_adapter = TypeAdapter[JsonRpcRequest](JsonRpcRequest)


def is_valid_id(value: Any) -> bool:
    """Whether ``value`` can be used as a request id (string, number or null)."""
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (str, int))


def recover_id(obj: Any) -> JsonRpcId:
    """Best-effort id of a payload that failed validation."""
    if isinstance(obj, dict) and is_valid_id(obj.get("id")):
        return obj.get("id")
    return None


def _invalid_request(id: JsonRpcId = None) -> Invalid:
    return Invalid(
        JSONRPC_INVALID_REQUEST, ERROR_MESSAGES[JSONRPC_INVALID_REQUEST], id
    )


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant {name}")


def validate_request_object(obj: Any) -> ValidationOutcome:
    """Check the structure of one decoded request.

    Args:
        obj (Any): The decoded JSON value, usually a dict

    Returns:
        ValidationOutcome: ``Valid`` with the normalized request, or
            ``Invalid`` with the recovered id
    """
    if not isinstance(obj, dict):
        return _invalid_request()

    if "id" in obj and not is_valid_id(obj["id"]):
        return _invalid_request()

    try:
        request = _request_adapter.validate_python(obj, strict=True)
    except ValidationError as e:
        logger.debug(
            "Invalid request object",
            extra={"jsonRpcMsg": obj, "errors": e.errors(include_url=False)},
        )
        return _invalid_request(recover_id(obj))
    except RecursionError:
        logger.debug("Request object nested too deeply")
        return _invalid_request(recover_id(obj))

    return Valid(request)


def validate_request(
    message: str | bytes,
) -> ValidationOutcome | list[ValidationOutcome]:
    """Parse and validate one inbound message.

    A parse failure always collapses to a single outcome, even when the
    payload looked like a batch. An empty batch is a single Invalid Request.

    Args:
        message (str | bytes): The raw message text

    Returns:
        ValidationOutcome | list[ValidationOutcome]: One outcome for a
            single request, or one outcome per element of a batch
    """
    try:
        obj = json.loads(message, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        logger.debug("Failed to parse message", exc_info=True)
        return Invalid(JSONRPC_PARSE_ERROR, ERROR_MESSAGES[JSONRPC_PARSE_ERROR])

    if isinstance(obj, list):
        if len(obj) == 0:
            return _invalid_request()
        return [validate_request_object(item) for item in obj]

    return validate_request_object(obj)
