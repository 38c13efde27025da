"""Connection pool over a rebuildable node set.

Concurrency
-----------
All methods here are synchronous and never await, so on a single event loop
each call runs to completion before another task can observe the pool.
The connection set is an immutable tuple that `rebuild` replaces in one
assignment: a caller sees either the old set or the new one. Tasks that
already hold a connection from the old set keep using it; their reports
land in the dead pool by host and are discarded if the host was removed.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any

from ..exceptions import NoConnectionsAvailableError
from ..logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from structlog.stdlib import BoundLogger

    from ..config import ConnectionSettings
    from ..connections import Connection, ConnectionFactory
    from ..hosts import Host
    from .dead_pool import DeadPool
    from .selectors import Selector


class ConnectionPool:
    """Routes requests across alive connections.

    Parameters
    ----------
    hosts : Sequence[Host]
        Initial topology.
    connection_factory : ConnectionFactory
        Builds a connection for a host, e.g. ``HttpxConnection``.
    connection_settings : ConnectionSettings
        Passed to every connection the factory builds.
    client : Any
        Shared transport resource handed to every connection by reference.
    selector : Selector
        Routing policy.
    dead_pool : DeadPool
        Failure bookkeeping.
    randomize_hosts : bool
        Shuffle the connection order on construction and rebuild so that
        clients started together do not all hit the first host.
    rng : random.Random | None
        Source of randomness for the shuffle.
    logger : BoundLogger | None
        Structured logger; defaults to the module logger.
    """

    __slots__ = (
        "_client",
        "_connection_factory",
        "_connection_settings",
        "_connections",
        "_dead_pool",
        "_logger",
        "_randomize_hosts",
        "_random",
        "_selector",
    )

    def __init__(
        self,
        hosts: Sequence[Host],
        connection_factory: ConnectionFactory,
        connection_settings: ConnectionSettings,
        client: Any,
        selector: Selector,
        dead_pool: DeadPool,
        *,
        randomize_hosts: bool = True,
        rng: random.Random | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        if not hosts:
            raise NoConnectionsAvailableError()

        self._connection_factory = connection_factory
        self._connection_settings = connection_settings
        self._client = client
        self._selector = selector
        self._dead_pool = dead_pool
        self._randomize_hosts = randomize_hosts
        self._random = rng or random.Random()
        self._logger = logger or get_logger(__name__)
        self._connections: tuple[Connection, ...] = self._arrange(
            [self._connection_factory(host, connection_settings, client) for host in _unique(hosts)]
        )

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> tuple[Connection, ...]:
        return self._connections

    @property
    def hosts(self) -> tuple[Host, ...]:
        return tuple(connection.host for connection in self._connections)

    @property
    def dead_pool(self) -> DeadPool:
        return self._dead_pool

    @property
    def selector(self) -> Selector:
        return self._selector

    def alive_connections(self) -> list[Connection]:
        return [connection for connection in self._connections if self._dead_pool.is_alive(connection)]

    def next_connection(self, exclude: Collection[Host] = ()) -> Connection:
        """Pick the next connection for an attempt.

        Connections whose host is in ``exclude`` are skipped while any other
        alive connection exists; once every alive connection has been
        excluded they become eligible again.

        Raises
        ------
        NoConnectionsAvailableError
            If every connection is dead and none has reached its revive
            window.
        """
        connection, _ = self.claim_connection(exclude)
        return connection

    def claim_connection(self, exclude: Collection[Host] = ()) -> tuple[Connection, bool]:
        """Pick the next connection and report whether this pick owns its probation retry.

        Same selection rules as `next_connection`. The flag is True only when
        the chosen host was on probation and this call claimed it; the caller
        then owns the claim and must settle it with `report_success`,
        `report_failure` or `report_abandoned`.
        """
        connections = self._connections
        alive = [connection for connection in connections if self._dead_pool.is_alive(connection)]
        if not alive:
            raise NoConnectionsAvailableError(connection.host for connection in connections)

        candidates = [connection for connection in alive if connection.host not in exclude] or alive
        connection = self._selector.select(candidates)

        if not self._dead_pool.is_probationary(connection):
            return connection, False

        self._dead_pool.begin_probe(connection)
        self._logger.debug("Retrying connection on probation", host=str(connection.host))
        return connection, True

    def rebuild(self, hosts: Sequence[Host]) -> None:
        """Replace the topology, keeping connections for hosts that remain.

        Kept hosts retain their dead-pool state; removed hosts are dropped
        from it.

        Raises
        ------
        NoConnectionsAvailableError
            If ``hosts`` is empty. The current set is left unchanged.
        """
        if not hosts:
            raise NoConnectionsAvailableError()

        existing = {connection.host: connection for connection in self._connections}
        rebuilt: list[Connection] = []
        for host in _unique(hosts):
            connection = existing.get(host)
            if connection is None:
                connection = self._connection_factory(host, self._connection_settings, self._client)
            rebuilt.append(connection)

        arranged = self._arrange(rebuilt)
        new_hosts = {connection.host for connection in arranged}
        removed = [host for host in existing if host not in new_hosts]
        added = [str(connection.host) for connection in arranged if connection.host not in existing]

        self._connections = arranged
        self._dead_pool.prune(new_hosts)

        self._logger.info(
            "Connection pool rebuilt",
            hosts=[str(host) for host in self.hosts],
            added=added,
            removed=[str(host) for host in removed],
        )

    def report_success(self, connection: Connection) -> None:
        self._dead_pool.mark_alive(connection)

    def report_failure(self, connection: Connection) -> None:
        if connection.host not in self._current_hosts():
            self._logger.debug("Ignoring failure for host no longer in pool", host=str(connection.host))
            return
        self._dead_pool.mark_dead(connection)

    def report_abandoned(self, connection: Connection) -> None:
        """Release a probation claim that ended without a verdict (e.g. cancellation).

        Only the owner of the claim, as reported by `claim_connection`, may
        call this. Releasing from an attempt that did not claim would reopen
        the host while another attempt is still trying it.
        """
        self._dead_pool.release_probe(connection)

    def _current_hosts(self) -> set[Host]:
        return {connection.host for connection in self._connections}

    def _arrange(self, connections: list[Connection]) -> tuple[Connection, ...]:
        if self._randomize_hosts:
            self._random.shuffle(connections)
        return tuple(connections)


def _unique(hosts: Sequence[Host]) -> list[Host]:
    return list(dict.fromkeys(hosts))
