from __future__ import annotations

import pytest

from rpc_fanout.jsonrpc import (
    JSONRPC_INVALID_REQUEST,
    JSONRPC_PARSE_ERROR,
    Invalid,
    Valid,
    validate_request,
)


def test_valid_request_keeps_known_fields() -> None:
    outcome = validate_request(
        '{"jsonrpc": "2.0", "method": "subtract", "params": [42, 23], "id": 1, "extra": true}'
    )
    assert outcome == Valid({"jsonrpc": "2.0", "method": "subtract", "params": [42, 23], "id": 1})


def test_notification_has_no_id() -> None:
    outcome = validate_request('{"jsonrpc": "2.0", "method": "update"}')
    assert isinstance(outcome, Valid)
    assert "id" not in outcome.request


def test_null_id_is_kept() -> None:
    outcome = validate_request('{"jsonrpc": "2.0", "method": "update", "id": null}')
    assert isinstance(outcome, Valid)
    assert outcome.request["id"] is None


def test_bytes_are_accepted() -> None:
    outcome = validate_request(b'{"jsonrpc": "2.0", "method": "ping", "id": "x"}')
    assert isinstance(outcome, Valid)


@pytest.mark.parametrize(
    "message",
    [
        '{"jsonrpc": "2.0", "method": "foobar, "params": "bar", "baz]',
        '[{"jsonrpc": "2.0", "method": "sum", "params": [1], "id": "1"}, {"jsonrpc": "2.0", "method" ]',
        b'{"jsonrpc": "\x80"}',
        "",
    ],
)
def test_parse_errors_collapse_to_one_outcome(message: str | bytes) -> None:
    assert validate_request(message) == Invalid(JSONRPC_PARSE_ERROR, "Parse error", None)


@pytest.mark.parametrize(
    "message, expected_id",
    [
        ('{"jsonrpc": "2.0", "method": 1, "params": "bar"}', None),
        ('{"jsonrpc": "1.0", "method": "subtract", "id": 7}', 7),
        ('{"method": "subtract", "id": "abc"}', "abc"),
        ('{"jsonrpc": "2.0", "method": "subtract", "params": "bar", "id": 2.5}', 2.5),
        ('{"jsonrpc": "2.0", "method": "subtract", "id": true}', None),
        ('{"jsonrpc": "2.0", "method": "subtract", "id": {"a": 1}}', None),
        ('{"jsonrpc": "2.0", "id": 4}', 4),
        ("42", None),
        ('"a string"', None),
        ("null", None),
    ],
)
def test_invalid_requests_recover_id(message: str, expected_id: object) -> None:
    assert validate_request(message) == Invalid(
        JSONRPC_INVALID_REQUEST, "Invalid Request", expected_id
    )


def test_empty_batch_is_single_invalid_request() -> None:
    assert validate_request("[]") == Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)


def test_batch_elements_are_checked_independently() -> None:
    outcomes = validate_request(
        '[1, {"jsonrpc": "2.0", "method": "sum", "params": [1, 2], "id": "1"}, "x", {"foo": "boo"}]'
    )
    assert isinstance(outcomes, list)
    assert len(outcomes) == 4
    assert outcomes[0] == Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)
    assert isinstance(outcomes[1], Valid)
    assert outcomes[2] == Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)
    assert outcomes[3] == Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)


def test_nested_batch_element_is_invalid() -> None:
    outcomes = validate_request("[[]]")
    assert outcomes == [Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)]


def test_deeply_nested_message_is_parse_error() -> None:
    message = "[" * 100000 + "]" * 100000
    assert validate_request(message) == Invalid(JSONRPC_PARSE_ERROR, "Parse error", None)


def test_deeply_nested_params_do_not_escape() -> None:
    params = "[" * 100000 + "]" * 100000
    outcome = validate_request(f'{{"jsonrpc": "2.0", "method": "sum", "params": {params}, "id": 1}}')
    assert isinstance(outcome, Invalid)
    assert outcome.code == JSONRPC_PARSE_ERROR


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_standard_constants_are_parse_errors(constant: str) -> None:
    message = f'{{"jsonrpc": "2.0", "method": "ping", "id": {constant}}}'
    assert validate_request(message) == Invalid(JSONRPC_PARSE_ERROR, "Parse error", None)


def test_overflowing_number_id_is_invalid_request() -> None:
    outcome = validate_request('{"jsonrpc": "2.0", "method": "ping", "id": 1e999}')
    assert outcome == Invalid(JSONRPC_INVALID_REQUEST, "Invalid Request", None)
