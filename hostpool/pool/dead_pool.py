"""Failure bookkeeping with timed revival.

A host enters the dead pool on its first connection error and stays out of
rotation until its revive window elapses. After that it is on probation:
`is_alive` reports it eligible, and the connection pool claims the single
probe with `begin_probe` when it hands the connection out. Until that probe
reports back (`mark_alive`, `mark_dead` or `release_probe`) the host is
reported dead again, so one revive window yields exactly one retry.

The revive delay is ``dead_timeout * min(2 ** (failures - 1), max_backoff_multiplier)``.
With the default multiplier cap of 1.0 the timeout is flat.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from structlog.stdlib import BoundLogger

    from ..connections import Connection
    from ..hosts import Host


@dataclass(slots=True)
class DeadEntry:
    failed_at: float
    revive_after: float
    consecutive_failures: int
    probing: bool = False


class DeadPool:
    """Tracks failed hosts and when each one may be retried.

    Parameters
    ----------
    dead_timeout : float
        Base quarantine period in seconds.
    max_backoff_multiplier : float
        Upper bound on the factor applied to ``dead_timeout`` for repeated
        failures. ``1.0`` keeps the timeout flat.
    clock : Callable[[], float]
        Monotonic time source, injectable for tests.
    logger : BoundLogger | None
        Structured logger; defaults to the module logger.
    """

    __slots__ = ("_clock", "_dead_timeout", "_entries", "_logger", "_max_backoff_multiplier")

    def __init__(
        self,
        dead_timeout: float = 60.0,
        max_backoff_multiplier: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        logger: BoundLogger | None = None,
    ) -> None:
        if dead_timeout <= 0:
            raise ValueError("dead_timeout must be positive")
        if max_backoff_multiplier < 1.0:
            raise ValueError("max_backoff_multiplier must be >= 1.0")

        self._dead_timeout = dead_timeout
        self._max_backoff_multiplier = max_backoff_multiplier
        self._clock = clock
        self._entries: dict[Host, DeadEntry] = {}
        self._logger = logger or get_logger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection: Connection) -> bool:
        return connection.host in self._entries

    @property
    def dead_timeout(self) -> float:
        return self._dead_timeout

    def backoff_multiplier(self, consecutive_failures: int) -> float:
        return min(2.0 ** max(consecutive_failures - 1, 0), self._max_backoff_multiplier)

    def mark_dead(self, connection: Connection) -> DeadEntry:
        now = self._clock()
        previous = self._entries.get(connection.host)
        failures = previous.consecutive_failures + 1 if previous else 1
        entry = DeadEntry(
            failed_at=now,
            revive_after=now + self._dead_timeout * self.backoff_multiplier(failures),
            consecutive_failures=failures,
        )
        self._entries[connection.host] = entry

        self._logger.debug(
            "Connection marked dead",
            host=str(connection.host),
            consecutive_failures=failures,
            revive_in_s=entry.revive_after - now,
        )
        return entry

    def mark_alive(self, connection: Connection) -> None:
        entry = self._entries.pop(connection.host, None)
        if entry is not None:
            self._logger.debug(
                "Connection revived",
                host=str(connection.host),
                consecutive_failures=entry.consecutive_failures,
            )

    def is_alive(self, connection: Connection) -> bool:
        entry = self._entries.get(connection.host)
        if entry is None:
            return True
        return not entry.probing and self._clock() >= entry.revive_after

    def is_probationary(self, connection: Connection) -> bool:
        return connection.host in self._entries and self.is_alive(connection)

    def begin_probe(self, connection: Connection) -> None:
        entry = self._entries.get(connection.host)
        if entry is not None:
            entry.probing = True

    def release_probe(self, connection: Connection) -> None:
        entry = self._entries.get(connection.host)
        if entry is not None:
            entry.probing = False

    def prune(self, hosts: Iterable[Host]) -> None:
        """Forget every host not in ``hosts``."""
        keep = set(hosts)
        for host in [host for host in self._entries if host not in keep]:
            del self._entries[host]

    def entry(self, host: Host) -> DeadEntry | None:
        return self._entries.get(host)

    def dead_hosts(self) -> tuple[Host, ...]:
        return tuple(self._entries)
