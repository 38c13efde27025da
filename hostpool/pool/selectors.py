from __future__ import annotations

import random
from typing import TYPE_CHECKING, Protocol

from ..exceptions import NoConnectionsAvailableError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..connections import Connection


class Selector(Protocol):
    def select(self, connections: Sequence[Connection]) -> Connection: ...


class RoundRobinSelector:
    """Cycle through the offered connections.

    The counter only ever advances; the position is derived from the length
    of the sequence offered on each call, so a shrinking or growing alive
    set never indexes past the end.
    """

    __slots__ = ("_counter",)

    def __init__(self) -> None:
        self._counter = 0

    def select(self, connections: Sequence[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailableError()

        connection = connections[self._counter % len(connections)]
        self._counter += 1
        return connection


class RandomSelector:
    __slots__ = ("_random",)

    def __init__(self, rng: random.Random | None = None) -> None:
        self._random = rng or random.Random()

    def select(self, connections: Sequence[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailableError()
        return self._random.choice(connections)


class StickyRoundRobinSelector:
    """Stay on one connection until it drops out of the offered set.

    Keeps keep-alive sockets warm on a single node; falls back to round
    robin once the current node is dead or excluded.
    """

    __slots__ = ("_current", "_fallback")

    def __init__(self) -> None:
        self._current: Connection | None = None
        self._fallback = RoundRobinSelector()

    def select(self, connections: Sequence[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailableError()

        current = self._current
        if current is not None and any(connection is current for connection in connections):
            return current

        self._current = self._fallback.select(connections)
        return self._current
