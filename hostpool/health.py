from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .hosts import Host


class HealthStatus(StrEnum):
    """Health of a node or of the whole pool.

    RECOVERING only applies to nodes: the node answered the ping but is still
    in the dead pool, so requests will not reach it until its revive window
    passes and a retry succeeds.
    """

    HEALTHY = "healthy"
    RECOVERING = "recovering"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    INITIALIZING = "initializing"

    @classmethod
    def for_node(cls, answered: bool, in_dead_pool: bool) -> HealthStatus:
        if not answered:
            return cls.UNHEALTHY
        return cls.RECOVERING if in_dead_pool else cls.HEALTHY


class NodeHealthInfo(BaseModel):
    """Health of a single node as seen by one ping."""

    model_config = ConfigDict(frozen=True)

    host: Host
    status: HealthStatus
    in_dead_pool: bool = False
    latency_s: float | None = None
    message: str | None = None

    @property
    def answered(self) -> bool:
        return self.status in (HealthStatus.HEALTHY, HealthStatus.RECOVERING)


class PoolHealthResult(BaseModel):
    """Aggregated health of every node in the pool."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    nodes: tuple[NodeHealthInfo, ...] = Field(default_factory=tuple)
    timestamp: datetime = Field(default_factory=datetime.now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def healthy_count(self) -> int:
        return sum(1 for node in self.nodes if node.status == HealthStatus.HEALTHY)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_count(self) -> int:
        return len(self.nodes)

    @property
    def is_healthy(self) -> bool:
        """Every node answered and is in rotation."""
        return self.status == HealthStatus.HEALTHY

    @property
    def is_operational(self) -> bool:
        """At least one node answered."""
        return self.status in (HealthStatus.HEALTHY, HealthStatus.DEGRADED)

    @classmethod
    def initializing(cls: type[Self]) -> Self:
        return cls(status=HealthStatus.INITIALIZING)

    @classmethod
    def from_nodes(cls: type[Self], nodes: tuple[NodeHealthInfo, ...]) -> Self:
        """Derive the overall status from per-node results.

        All nodes HEALTHY is HEALTHY and no node answering is UNHEALTHY.
        Anything in between, including nodes that answered while still in
        the dead pool, is DEGRADED.
        """
        healthy = sum(1 for node in nodes if node.status == HealthStatus.HEALTHY)
        if nodes and healthy == len(nodes):
            status = HealthStatus.HEALTHY
        elif not any(node.answered for node in nodes):
            status = HealthStatus.UNHEALTHY
        else:
            status = HealthStatus.DEGRADED
        return cls(status=status, nodes=nodes)
