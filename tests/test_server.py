from __future__ import annotations

import json
import urllib.parse

import pytest
from websockets.asyncio.client import connect

from conftest import request
from rpc_fanout import demo_methods
from rpc_fanout.jsonrpc import JsonRpcServer, RespondOptions, respond


@pytest.mark.asyncio
async def test_demo_methods() -> None:
    methods = demo_methods()

    named = await respond(
        methods, request("callNamedParameters", {"a": 10, "b": 20, "c": "The result is:"}, 1)
    )
    assert json.loads(named)["result"] == "The result is: 200"

    hello = await respond(methods, request("sayHello", ["World"], 2))
    assert json.loads(hello)["result"] == "Hello World"

    bad = await respond(methods, request("callNamedParameters", {"a": 10}, 3))
    assert json.loads(bad)["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_websocket_subscription_round_trip() -> None:
    server = JsonRpcServer(demo_methods(), RespondOptions(enable_internal_methods=True))
    listener = await server.start(urllib.parse.urlparse("ws://127.0.0.1:0"))
    port = listener.sockets[0].getsockname()[1]

    try:
        async with connect(f"ws://127.0.0.1:{port}") as a, connect(f"ws://127.0.0.1:{port}") as b:
            await a.send(request("rpc.subscribe", ["animalsMakeNoise"], 1))
            subscriber_id = json.loads(await a.recv())["result"]

            await b.send(request("animalsMakeNoise", ["wuufff", "miau"], 2))
            assert json.loads(await b.recv()) == {"jsonrpc": "2.0", "result": "WUUFFF MIAU", "id": 2}
            assert json.loads(await a.recv()) == {
                "jsonrpc": "2.0",
                "result": "WUUFFF MIAU",
                "id": subscriber_id,
            }
    finally:
        listener.close()
        await listener.wait_closed()


@pytest.mark.asyncio
async def test_start_rejects_unknown_scheme() -> None:
    server = JsonRpcServer(demo_methods())
    with pytest.raises(ValueError):
        await server.start(urllib.parse.urlparse("http://127.0.0.1:0"))
