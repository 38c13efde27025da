"""Connection routing: selection policies, failure bookkeeping and the pool.

- `ConnectionPool`: owns the node set and hands out connections
- `DeadPool`: quarantines failed hosts with a timed revival
- `RoundRobinSelector`, `RandomSelector`, `StickyRoundRobinSelector`: routing policies
"""

from .connection_pool import ConnectionPool
from .dead_pool import DeadEntry, DeadPool
from .selectors import RandomSelector, RoundRobinSelector, Selector, StickyRoundRobinSelector

__all__ = [
    "ConnectionPool",
    "DeadEntry",
    "DeadPool",
    "RandomSelector",
    "RoundRobinSelector",
    "Selector",
    "StickyRoundRobinSelector",
]
