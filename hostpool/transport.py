"""Request orchestration across a pool of interchangeable nodes.

Request lifecycle
-----------------
1. The pool picks an alive connection, skipping hosts already tried for this
   request while untried alive hosts remain.
2. The connection executes the request.
3. A `NodeConnectionError` marks the host dead and the loop moves on to
   another node, up to ``max_retries + 1`` attempts in total.
4. Any answer from a node, error status included, ends the loop and marks
   the host alive.

When every attempt fails the caller gets `MaxRetriesExceededError` listing
each attempted host and its failure. When no host is alive, or due for a
retry, `NoConnectionsAvailableError` is raised without any network I/O.

Sniffing
--------
Topology refresh is advisory: a failed sniff is logged and the current node
set is kept. It runs

- once during `ainitialize` when ``sniff_on_start`` is set,
- in a background task every ``sniff_after_requests`` requests,
- after each connection failure when ``sniff_on_connection_fail`` is set.

Only one sniff runs at a time.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Self

import httpx
from tenacity import RetryError

from .config import TransportConfig
from .exceptions import (
    MaxRetriesExceededError,
    NoConnectionsAvailableError,
    NodeConnectionError,
    SerializationError,
    SniffError,
    TransportClosedError,
)
from .health import HealthStatus, NodeHealthInfo, PoolHealthResult
from .hosts import parse_hosts
from .logger import adapt_logger, child_logger_name, create_logger, release_logger
from .models import AttemptFailure, Request, Response
from .resilience.retry import build_request_retrying

if TYPE_CHECKING:
    import types
    from collections.abc import Callable, Sequence

    from structlog.stdlib import BoundLogger
    from tenacity import RetryCallState

    from .connections import Connection
    from .hosts import Host
    from .pool import ConnectionPool
    from .serializers import Serializer


class Transport:
    """Dispatches logical requests to a cluster of nodes.

    Parameters
    ----------
    hosts : Sequence[str] | None
        Seed nodes as ``"host"`` or ``"host:port"``. Defaults to
        ``["localhost"]``. Parsed eagerly; a malformed entry raises
        `InvalidHostError` before any network activity.
    config : TransportConfig | None
        Transport options. Defaults to `TransportConfig()`.
    clock : Callable[[], float]
        Monotonic time source for dead-pool timing.

    Examples
    --------
    >>> async with Transport(["es-1:9200", "es-2:9200"], TransportConfig(max_retries=1)) as transport:
    ...     response = await transport.aperform_request(Request(method="GET", path="/_cluster/health"))
    ...     response.data["status"]
    """

    __slots__ = (
        "_client",
        "_clock",
        "_closed",
        "_config",
        "_init_lock",
        "_logger",
        "_owned_logger_name",
        "_pool",
        "_request_count",
        "_seed_hosts",
        "_serializer",
        "_sniff_lock",
        "_sniff_tasks",
        "_sniffer",
    )

    def __init__(
        self,
        hosts: Sequence[str] | None = None,
        config: TransportConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or TransportConfig()
        self._seed_hosts = parse_hosts(hosts)
        self._clock = clock

        self._owned_logger_name: str | None = None
        if self._config.logger is not None:
            self._logger = adapt_logger(self._config.logger)
        else:
            self._owned_logger_name = child_logger_name()
            self._logger = create_logger(self._config.logging_config(self._owned_logger_name))

        serializer = self._config.serializer
        self._serializer: Serializer = serializer() if isinstance(serializer, type) else serializer
        self._sniffer = self._config.sniffer_class(
            serializer=self._serializer,
            path=self._config.sniff_path,
            logger=self._logger,
        )

        self._client: httpx.AsyncClient | None = None
        self._pool: ConnectionPool | None = None
        self._init_lock = asyncio.Lock()
        self._sniff_lock = asyncio.Lock()
        self._sniff_tasks: set[asyncio.Task[bool]] = set()
        self._request_count = 0
        self._closed = False

    async def __aenter__(self) -> Self:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if exc_type is not None and exc_val is not None:
            self._logger.error(
                "Transport context manager exiting with exception",
                exc_type=exc_type.__name__,
                exc_val=str(exc_val),
            )
        await self.aclose()

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def pool(self) -> ConnectionPool:
        """The live connection pool.

        Raises
        ------
        TransportClosedError
            If the transport is closed or has not been initialized.
        """
        if self._closed:
            raise TransportClosedError("Transport is closed")
        if self._pool is None:
            raise TransportClosedError("Transport not initialized. Call ainitialize() first.")
        return self._pool

    @property
    def hosts(self) -> tuple[Host, ...]:
        if self._pool is None:
            return tuple(self._seed_hosts)
        return self._pool.hosts

    async def ainitialize(self) -> None:
        """Create the shared HTTP client and the connection pool.

        Idempotent. Concurrent first requests wait on the same lock, so with
        ``sniff_on_start`` none of them is dispatched before the initial
        sniff has finished.
        """
        async with self._init_lock:
            if self._closed:
                raise TransportClosedError("Transport is closed")
            if self._pool is not None:
                return

            self._client = httpx.AsyncClient(**self._config.connection_params)
            self._pool = self._build_pool(self._client)

            self._logger.info(
                "Transport initialized",
                hosts=[str(host) for host in self._pool.hosts],
                max_retries=self._config.max_retries,
                dead_timeout=self._config.dead_timeout,
            )

            if self._config.sniff_on_start:
                await self.asniff_hosts()

    async def aclose(self) -> None:
        """Cancel background sniffs and release the shared HTTP client.

        A default logger built by this transport has its handlers closed as
        well; a caller-supplied logger is left untouched.
        """
        self._closed = True

        tasks = list(self._sniff_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._sniff_tasks.clear()

        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._pool = None
            self._logger.info("Transport closed")

        if self._owned_logger_name is not None:
            release_logger(self._owned_logger_name)

    async def aperform_request(self, request: Request) -> Response:
        """Execute ``request`` on the first node that answers.

        Raises
        ------
        MaxRetriesExceededError
            Every attempt failed with a connection error.
        NoConnectionsAvailableError
            No host is alive or due for a retry.
        SerializationError
            The request body could not be encoded, or a successful response
            body could not be decoded.
        TransportClosedError
            The transport has been closed.
        """
        pool = await self._apool()
        payload = self._serializer.serialize(request.body)
        headers = dict(request.headers)
        if payload is not None:
            headers.setdefault("content-type", self._serializer.content_type)

        self._count_request()

        tried: set[Host] = set()
        failures: list[AttemptFailure] = []
        retrying = build_request_retrying(
            self._config.max_retries,
            self._config.retry_backoff,
            before_sleep=self._log_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._aattempt(pool, request, payload, headers, tried, failures)
                    return self._decode(response)
        except RetryError as e:
            self._logger.error(
                "Request failed on every attempt",
                method=request.method,
                path=request.path,
                attempts=len(failures),
                hosts=[str(failure.host) for failure in failures],
            )
            raise MaxRetriesExceededError(failures) from e.last_attempt.exception()
        except NoConnectionsAvailableError as e:
            self._logger.error(
                "No connections available",
                method=request.method,
                path=request.path,
                attempts=len(failures),
                known_hosts=[str(host) for host in e.hosts],
            )
            if failures:
                raise NoConnectionsAvailableError(e.hosts, failures) from e
            raise

        raise AssertionError("unreachable")

    async def asniff_hosts(self) -> bool:
        """Refresh the topology from the cluster.

        Connections are asked in turn, alive ones first, until one answers.
        Failures never propagate.

        Returns
        -------
        bool
            True if this call rebuilt the pool. False if every node failed
            to answer, or if another sniff was already running (this call
            waits for it instead of sniffing again).
        """
        pool = await self._apool()

        if self._sniff_lock.locked():
            async with self._sniff_lock:
                return False

        async with self._sniff_lock:
            alive = pool.alive_connections()
            candidates = alive + [connection for connection in pool.connections if connection not in alive]

            for connection in candidates:
                try:
                    hosts = await self._sniffer.asniff(connection)
                except SniffError as e:
                    self._logger.warning("Sniff failed", host=str(connection.host), error=str(e))
                    continue

                pool.rebuild(hosts)
                return True

            self._logger.warning(
                "Sniffing failed on every node, keeping current topology",
                hosts=[str(host) for host in pool.hosts],
            )
            return False

    async def ahealth_check(self) -> PoolHealthResult:
        """Ping every node concurrently.

        Dead-pool state is reported but not changed.
        """
        if self._pool is None or self._closed:
            return PoolHealthResult.initializing()

        pool = self._pool
        nodes = await asyncio.gather(*(self._aping(pool, connection) for connection in pool.connections))
        return PoolHealthResult.from_nodes(tuple(nodes))

    async def _apool(self) -> ConnectionPool:
        if self._closed:
            raise TransportClosedError("Transport is closed")
        if self._pool is None:
            await self.ainitialize()
        return self.pool

    def _build_pool(self, client: httpx.AsyncClient) -> ConnectionPool:
        config = self._config
        dead_pool = config.dead_pool_class(
            dead_timeout=config.dead_timeout,
            max_backoff_multiplier=config.max_backoff_multiplier,
            clock=self._clock,
            logger=self._logger,
        )
        return config.connection_pool_class(
            self._seed_hosts,
            config.connection_class,
            config.connection,
            client,
            config.selector_class(),
            dead_pool,
            randomize_hosts=config.randomize_hosts,
            logger=self._logger,
        )

    async def _aattempt(
        self,
        pool: ConnectionPool,
        request: Request,
        payload: bytes | None,
        headers: dict[str, str],
        tried: set[Host],
        failures: list[AttemptFailure],
    ) -> Response:
        connection, claimed = pool.claim_connection(exclude=tried)
        tried.add(connection.host)

        try:
            response = await connection.aexecute(
                request.method,
                request.path,
                params=request.params,
                body=payload,
                headers=headers,
            )
        except NodeConnectionError as e:
            pool.report_failure(connection)
            cause = e.__cause__ or e
            failures.append(AttemptFailure(host=connection.host, error_type=type(cause).__name__, message=e.message))
            self._logger.warning(
                "Connection failed",
                host=str(connection.host),
                attempt=len(failures),
                error=e.message,
            )
            if self._config.sniff_on_connection_fail:
                await self.asniff_hosts()
            raise
        except BaseException:
            if claimed:
                pool.report_abandoned(connection)
            raise

        pool.report_success(connection)
        return response

    def _decode(self, response: Response) -> Response:
        try:
            data = self._serializer.deserialize(response.content, response.content_type)
        except SerializationError:
            if not response.is_error:
                raise
            self._logger.debug("Error response body not decodable", host=str(response.host), status=response.status)
            return response
        return response.model_copy(update={"data": data})

    def _count_request(self) -> None:
        self._request_count += 1
        every = self._config.sniff_after_requests
        if every and self._request_count % every == 0:
            self._schedule_sniff()

    def _schedule_sniff(self) -> None:
        if self._sniff_lock.locked():
            return
        task = asyncio.create_task(self.asniff_hosts(), name="hostpool-sniff")
        self._sniff_tasks.add(task)
        task.add_done_callback(self._sniff_tasks.discard)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error: Any = retry_state.outcome.exception() if retry_state.outcome else None
        self._logger.info(
            "Retrying request on another node",
            attempt=retry_state.attempt_number,
            max_attempts=self._config.max_retries + 1,
            error=str(error),
        )

    async def _aping(self, pool: ConnectionPool, connection: Connection) -> NodeHealthInfo:
        in_dead_pool = connection in pool.dead_pool
        started = time.perf_counter()
        try:
            ok = await connection.aping()
        except Exception as e:
            return NodeHealthInfo(
                host=connection.host,
                status=HealthStatus.UNHEALTHY,
                in_dead_pool=in_dead_pool,
                message=str(e),
            )
        latency_s = time.perf_counter() - started

        return NodeHealthInfo(
            host=connection.host,
            status=HealthStatus.for_node(ok, in_dead_pool),
            in_dead_pool=in_dead_pool,
            latency_s=latency_s,
            message=None if ok else "Node did not answer",
        )
