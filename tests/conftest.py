"""Shared fixtures for unit tests.

Provides:
- clock: Controllable monotonic clock for dead-pool timing
- cluster: In-memory cluster served through ``httpx.MockTransport``
- make_transport: Builds transports wired to ``cluster`` and closes them on teardown
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from structlog.testing import CapturingLogger

from hostpool import Transport, TransportConfig
from tests.support import FakeClock, MockCluster

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cluster() -> MockCluster:
    return MockCluster()


@pytest.fixture
def capturing_logger() -> CapturingLogger:
    return CapturingLogger()


@pytest.fixture
async def make_transport(
    cluster: MockCluster,
    clock: FakeClock,
    capturing_logger: CapturingLogger,
) -> AsyncIterator[Callable[..., Transport]]:
    """Factory for transports served by ``cluster``.

    Host order is deterministic (``randomize_hosts=False``) unless overridden.
    """
    created: list[Transport] = []

    def _make(hosts: list[str] | None = None, **params: Any) -> Transport:
        params.setdefault("randomize_hosts", False)
        params.setdefault("logger", capturing_logger)
        params.setdefault("connection_params", {"transport": cluster.transport})
        transport = Transport(hosts, TransportConfig(**params), clock=clock)
        created.append(transport)
        return transport

    yield _make

    for transport in created:
        await transport.aclose()
