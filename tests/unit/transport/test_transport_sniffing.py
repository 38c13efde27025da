"""Tests for topology refresh driven by the transport."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from hostpool import Host, Request

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.testing import CapturingLogger

    from hostpool import Transport
    from tests.support import MockCluster

A = Host(host="a", port=9200)
B = Host(host="b", port=9200)
C = Host(host="c", port=9300)


def sniff_calls(seen: list[str]) -> Callable[[httpx.Request], httpx.Response]:
    listing = {"nodes": {"n1": {"http": {"publish_address": "c:9300"}}}}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json=listing)

    return handler


class TestSniffHosts:
    """Tests for Transport.asniff_hosts."""

    @pytest.mark.asyncio
    async def test_rebuild_preserves_surviving_state(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Verify a sniff replaces the node set but keeps state for surviving hosts.

        Arrange
        -------
        - Pool over [a:9200, b:9200], a marked dead by a failed request
        - b reports the cluster as [a:9200, c:9300]

        Act
        ---
        - Sniff

        Assert
        ------
        - The pool holds exactly a and c
        - a keeps its Connection object and its dead-pool entry
        - b's Connection is gone
        """
        cluster.nodes_listing("b:9200", ["a:9200", "c:9300"])
        transport = make_transport(["a:9200", "b:9200"], max_retries=1)
        await transport.aperform_request(Request())
        pool = transport.pool
        old_a, old_b = pool.connections
        entry_before = pool.dead_pool.entry(A)
        assert entry_before is not None

        assert await transport.asniff_hosts() is True

        assert set(transport.hosts) == {A, C}
        assert any(connection is old_a for connection in pool.connections)
        assert all(connection is not old_b for connection in pool.connections)
        assert pool.dead_pool.entry(A) is entry_before

    @pytest.mark.asyncio
    async def test_failed_sniff_keeps_topology(
        self,
        cluster: MockCluster,
        capturing_logger: CapturingLogger,
        make_transport: Callable[..., Transport],
    ) -> None:
        """Test sniffing is advisory: every node failing leaves the pool unchanged."""
        cluster.ok("a:9200", {"cluster_name": "no nodes here"})
        transport = make_transport(["a:9200", "b:9200"])
        await transport.ainitialize()

        assert await transport.asniff_hosts() is False

        assert transport.hosts == (A, B)
        assert transport.pool.dead_pool.dead_hosts() == ()
        messages = [call.args[0] for call in capturing_logger.calls if call.method_name == "warning"]
        assert "Sniffing failed on every node, keeping current topology" in messages

    @pytest.mark.asyncio
    async def test_tries_next_node_when_first_cannot_answer(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Test a sniff moves on to the next connection after a failure."""
        cluster.nodes_listing("b:9200", ["b:9200", "c:9300"])
        transport = make_transport(["a:9200", "b:9200"])
        await transport.ainitialize()

        assert await transport.asniff_hosts() is True

        assert cluster.calls == ["a:9200", "b:9200"]
        assert transport.hosts == (B, C)

    @pytest.mark.asyncio
    async def test_concurrent_sniffs_run_once(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Test a sniff started while another is running waits for it instead."""
        seen: list[str] = []
        listing = {"nodes": {"n1": {"http": {"publish_address": "a:9200"}}}}

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            await asyncio.sleep(0)
            return httpx.Response(200, json=listing)

        cluster.node("a:9200", handler)
        transport = make_transport(["a:9200"])
        await transport.ainitialize()

        results = await asyncio.gather(transport.asniff_hosts(), transport.asniff_hosts())

        assert sorted(results) == [False, True]
        assert seen == ["/_nodes/_all/http"]


class TestSniffTriggers:
    """Tests for sniff_on_start, sniff_after_requests and sniff_on_connection_fail."""

    @pytest.mark.asyncio
    async def test_sniff_on_start_runs_before_first_request(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Test the first request already uses the sniffed topology."""
        cluster.nodes_listing("a:9200", ["10.0.0.1:9200", "10.0.0.2:9200"])
        cluster.ok("10.0.0.1:9200")
        transport = make_transport(["a:9200"], sniff_on_start=True)

        response = await transport.aperform_request(Request())

        assert cluster.calls == ["a:9200", "10.0.0.1:9200"]
        assert response.host == Host(host="10.0.0.1", port=9200)
        assert transport.hosts == (Host(host="10.0.0.1", port=9200), Host(host="10.0.0.2", port=9200))

    @pytest.mark.asyncio
    async def test_sniff_on_start_failure_keeps_seed_hosts(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Test a failed start-up sniff does not prevent initialization."""
        transport = make_transport(["a:9200"], sniff_on_start=True)

        await transport.ainitialize()

        assert transport.hosts == (A,)
        assert transport.pool.dead_pool.dead_hosts() == ()

    @pytest.mark.asyncio
    async def test_sniff_on_connection_fail(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Verify a connection failure refreshes the topology before the next attempt.

        Arrange
        -------
        - Hosts a:9200 (refuses) and b:9200, which reports [b:9200, c:9300]
        - c:9300 answers

        Act
        ---
        - Perform one request with max_retries=1

        Assert
        ------
        - The retry runs against the refreshed pool
        - a is gone from the pool and from the dead pool
        """
        cluster.nodes_listing("b:9200", ["b:9200", "c:9300"])
        cluster.ok("c:9300")
        transport = make_transport(["a:9200", "b:9200"], max_retries=1, sniff_on_connection_fail=True)

        response = await transport.aperform_request(Request())

        assert cluster.calls == ["a:9200", "b:9200", "c:9300"]
        assert response.host == C
        assert transport.hosts == (B, C)
        assert transport.pool.dead_pool.entry(A) is None

    @pytest.mark.asyncio
    async def test_sniff_after_requests(self, cluster: MockCluster, make_transport: Callable[..., Transport]) -> None:
        """Test every Nth request schedules a background sniff."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if request.url.path.startswith("/_nodes"):
                return httpx.Response(200, json={"nodes": {"n": {"http": {"publish_address": "a:9200"}}}})
            return httpx.Response(200, json={})

        cluster.node("a:9200", handler)
        transport = make_transport(["a:9200"], sniff_after_requests=2)

        for _ in range(5):
            await transport.aperform_request(Request(path="/doc"))
            await asyncio.gather(*list(transport._sniff_tasks))

        assert seen.count("/_nodes/_all/http") == 2
        assert seen.count("/doc") == 5

    @pytest.mark.asyncio
    async def test_sniff_path_is_configurable(
        self, cluster: MockCluster, make_transport: Callable[..., Transport]
    ) -> None:
        """Test the discovery endpoint comes from configuration."""
        seen: list[str] = []
        cluster.node("a:9200", sniff_calls(seen))
        cluster.ok("c:9300")
        transport = make_transport(["a:9200"], sniff_on_start=True, sniff_path="/_cat/http_nodes")

        await transport.ainitialize()

        assert seen == ["/_cat/http_nodes"]
        assert transport.hosts == (C,)
