"""Error taxonomy for the transport layer.

Construction errors (`InvalidHostError`) are raised before any network
activity. `NodeConnectionError` is the only error the retry loop recovers
from; `NoConnectionsAvailableError` and `MaxRetriesExceededError` end the
current request but leave the transport usable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .hosts import Host
    from .models import AttemptFailure


class HostPoolError(Exception):
    """Base class for every error raised by hostpool."""


class InvalidHostError(HostPoolError, ValueError):
    """A host token could not be parsed into a `Host`."""


class NodeConnectionError(HostPoolError):
    """Network-level failure talking to a single node.

    Raised for refused connections, timeouts and resets. HTTP error
    statuses are not connection errors.
    """

    def __init__(self, host: Host, message: str) -> None:
        super().__init__(f"{host}: {message}")
        self.host = host
        self.message = message


class NoConnectionsAvailableError(HostPoolError):
    """Every known connection is dead and none is due for a retry."""

    def __init__(self, hosts: Iterable[Host] = (), failures: Sequence[AttemptFailure] = ()) -> None:
        self.hosts = tuple(hosts)
        self.failures = tuple(failures)
        if self.hosts:
            listed = ", ".join(str(host) for host in self.hosts)
            message = f"No alive connections available (known hosts: {listed})"
        else:
            message = "No connections available"
        if self.failures:
            details = "; ".join(f"{failure.host}: {failure.message}" for failure in self.failures)
            message = f"{message}; earlier attempts: {details}"
        super().__init__(message)


class MaxRetriesExceededError(HostPoolError):
    """Every attempt of a logical request failed with a connection error."""

    def __init__(self, failures: Sequence[AttemptFailure]) -> None:
        self.failures = tuple(failures)
        details = "; ".join(f"{failure.host}: {failure.message}" for failure in self.failures)
        super().__init__(f"Request failed after {len(self.failures)} attempt(s): {details}")

    @property
    def attempted_hosts(self) -> tuple[Host, ...]:
        return tuple(failure.host for failure in self.failures)


class SniffError(HostPoolError):
    """Topology discovery against one node failed."""


class SerializationError(HostPoolError):
    """A payload could not be encoded or decoded."""


class TransportClosedError(HostPoolError):
    """The transport was used after `aclose()`."""
