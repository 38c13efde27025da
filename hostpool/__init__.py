"""Client-side transport for a cluster of interchangeable HTTP nodes.

Usage
-----
::

    async with create_transport(["es-1:9200", "es-2:9200"], max_retries=1) as transport:
        response = await transport.aperform_request(Request(method="GET", path="/"))
"""

from .config import ConnectionSettings, RetryBackoffSettings, TransportConfig
from .connections import Connection, HttpxConnection
from .exceptions import (
    HostPoolError,
    InvalidHostError,
    MaxRetriesExceededError,
    NoConnectionsAvailableError,
    NodeConnectionError,
    SerializationError,
    SniffError,
    TransportClosedError,
)
from .factory import create_transport
from .health import HealthStatus, NodeHealthInfo, PoolHealthResult
from .hosts import Host, parse_hosts
from .models import AttemptFailure, Request, Response
from .pool import ConnectionPool, DeadPool, RandomSelector, RoundRobinSelector, StickyRoundRobinSelector
from .serializers import JSONSerializer, Serializer, TextSerializer
from .sniffers import Sniffer
from .transport import Transport

__all__ = [
    "AttemptFailure",
    "Connection",
    "ConnectionPool",
    "ConnectionSettings",
    "DeadPool",
    "HealthStatus",
    "Host",
    "HostPoolError",
    "HttpxConnection",
    "InvalidHostError",
    "JSONSerializer",
    "MaxRetriesExceededError",
    "NoConnectionsAvailableError",
    "NodeConnectionError",
    "NodeHealthInfo",
    "PoolHealthResult",
    "RandomSelector",
    "Request",
    "Response",
    "RetryBackoffSettings",
    "RoundRobinSelector",
    "SerializationError",
    "Serializer",
    "SniffError",
    "Sniffer",
    "StickyRoundRobinSelector",
    "TextSerializer",
    "Transport",
    "TransportConfig",
    "create_transport",
    "parse_hosts",
]
