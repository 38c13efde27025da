"""Test doubles shared across unit tests."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from hostpool import Host, Response

type NodeHandler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Connection stand-in for pool-level tests; never touches the network."""

    def __init__(self, host: Host, settings: Any = None, client: Any = None) -> None:
        self.host = host
        self.settings = settings
        self.client = client

    def __repr__(self) -> str:
        return f"<FakeConnection {self.host}>"

    async def aexecute(self, method: str, path: str, **kwargs: Any) -> Response:
        return Response(status=200, host=self.host)

    async def aping(self) -> bool:
        return True


class MockCluster:
    """Routes requests to per-node handlers keyed by ``"host:port"``.

    Nodes without a handler refuse connections.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, NodeHandler] = {}
        self.calls: list[str] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def node(self, address: str, handler: NodeHandler) -> None:
        self.handlers[address] = handler

    def ok(self, address: str, payload: Any | None = None, status: int = 200) -> None:
        body = payload if payload is not None else {"node": address}
        self.node(address, lambda request: httpx.Response(status, json=body))

    def refuse(self, address: str) -> None:
        self.handlers.pop(address, None)

    def nodes_listing(self, address: str, addresses: list[str]) -> None:
        """Serve a node listing from ``address`` and plain OK for anything else."""
        listing = {"nodes": {f"node-{i}": {"http": {"publish_address": a}} for i, a in enumerate(addresses)}}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/_nodes"):
                return httpx.Response(200, json=listing)
            return httpx.Response(200, json={"node": address})

        self.node(address, handler)

    def calls_to(self, address: str) -> int:
        return self.calls.count(address)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        address = f"{request.url.host}:{request.url.port}"
        self.calls.append(address)
        handler = self.handlers.get(address)
        if handler is None:
            raise httpx.ConnectError("Connection refused", request=request)
        response = handler(request)
        if isinstance(response, httpx.Response):
            return response
        return await response


def body_of(response: Response) -> Any:
    return json.loads(response.content)
