from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .config import TransportConfig
from .transport import Transport

if TYPE_CHECKING:
    from collections.abc import Sequence


def create_transport(hosts: Sequence[str] | None = None, **params: Any) -> Transport:
    """Create a transport from host strings and keyword options.

    Parameters
    ----------
    hosts : Sequence[str] | None
        Seed nodes as ``"host"`` or ``"host:port"``. Defaults to
        ``["localhost"]``.
    **params
        Any `TransportConfig` field. Unknown names are rejected.

    Returns
    -------
    Transport
        A transport that has not been initialized yet.

    Raises
    ------
    InvalidHostError
        If a host has an empty or non-numeric port.
    pydantic.ValidationError
        If an option is unknown or has an invalid value.

    Examples
    --------
    >>> transport = create_transport(
    ...     ["es-1:9200", "es-2:9200"],
    ...     max_retries=1,
    ...     sniff_on_connection_fail=True,
    ...     selector_class="hostpool.pool.RandomSelector",
    ... )
    """
    return Transport(hosts, TransportConfig.model_validate(params))
