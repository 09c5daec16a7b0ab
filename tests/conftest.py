from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from rpc_fanout.jsonrpc import MethodTable, TransportClosed


class FakeTransport:
    """In-memory transport. Put ``None`` on ``incoming`` to simulate the peer leaving."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[Any] = []
        self.closed = False
        self.fail_sends = False

    async def receive_message(self) -> str:
        msg = await self.incoming.get()
        if msg is None:
            raise TransportClosed("peer left")
        return msg

    async def send_message(self, body: str) -> None:
        if self.closed or self.fail_sends:
            raise TransportClosed("gone")
        self.sent.append(json.loads(body))

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(None)


async def until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


def request(method: str, params: Any = None, id: Any = None, *, notification: bool = False) -> str:
    obj: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        obj["params"] = params
    if not notification:
        obj["id"] = id
    return json.dumps(obj)


@pytest.fixture
def methods() -> MethodTable:
    table = MethodTable()
    table.rpc_method("shout", lambda noise: " ".join(n.upper() for n in noise), observable=True)
    table.rpc_method("whisper", lambda noise: " ".join(n.lower() for n in noise))
    return table
