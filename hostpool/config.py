"""Configuration models for the transport.

- `ConnectionSettings`: how a single node is addressed
- `RetryBackoffSettings`: optional pause between retry attempts
- `TransportConfig`: the whole recognized option surface

Every model forbids unknown keys, so a misspelled option fails at
construction instead of being silently ignored.

Strategy options (``connection_class``, ``selector_class`` and so on)
accept either the object itself or a dotted import path::

    TransportConfig(selector_class="hostpool.pool.RandomSelector")
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ImportString

from .connections import HttpxConnection
from .logger import LOGGER_NAME, LoggingConfig, LogLevel
from .pool import ConnectionPool, DeadPool, RoundRobinSelector
from .serializers import JSONSerializer
from .sniffers import DEFAULT_SNIFF_PATH, Sniffer


class ConnectionSettings(BaseModel):
    """Per-node addressing settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    scheme: Literal["http", "https"] = Field(default="http", description="URL scheme for every node")
    default_port: int = Field(default=9200, ge=1, le=65535, description="Port used when a host has none")
    timeout: float | None = Field(default=10.0, gt=0, description="Per-attempt timeout in seconds (None = no timeout)")
    url_prefix: str = Field(default="", description="Path prefix prepended to every request path")


class RetryBackoffSettings(BaseModel):
    """Pause between attempts on different nodes.

    Disabled by default: a failed attempt moves straight on to the next
    node. When enabled, waits follow full-jitter exponential backoff.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = Field(default=False, description="Wait between retry attempts")
    wait_min: float = Field(default=0.0, ge=0, description="Minimum wait time in seconds")
    wait_max: float = Field(default=2.0, ge=0, description="Maximum wait time in seconds")
    multiplier: float = Field(default=0.1, ge=0, description="Wait multiplier")
    exp_base: float = Field(default=2.0, ge=1, description="Exponential base")


class TransportConfig(BaseModel):
    """Complete transport configuration.

    Examples
    --------
    >>> config = TransportConfig(
    ...     max_retries=2,
    ...     sniff_on_start=True,
    ...     sniff_after_requests=1000,
    ...     connection=ConnectionSettings(scheme="https", default_port=443),
    ... )
    >>> transport = Transport(["es-1:9200", "es-2:9200"], config)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    connection_class: ImportString = Field(default=HttpxConnection)
    connection_pool_class: ImportString = Field(default=ConnectionPool)
    selector_class: ImportString = Field(default=RoundRobinSelector)
    dead_pool_class: ImportString = Field(default=DeadPool)
    sniffer_class: ImportString = Field(default=Sniffer)
    serializer: ImportString = Field(default=JSONSerializer)

    sniff_on_start: bool = Field(default=False, description="Sniff once before the first request")
    sniff_after_requests: int | None = Field(
        default=None, ge=1, description="Refresh topology in the background every N requests (None = disabled)"
    )
    sniff_on_connection_fail: bool = Field(default=False, description="Sniff after every connection failure")
    sniff_path: str = Field(default=DEFAULT_SNIFF_PATH, description="Topology discovery endpoint")
    randomize_hosts: bool = Field(default=True, description="Shuffle host order on pool (re)build")

    max_retries: int = Field(default=3, ge=0, description="Extra attempts after the first one fails")
    retry_backoff: RetryBackoffSettings = Field(default_factory=RetryBackoffSettings)
    dead_timeout: float = Field(default=60.0, gt=0, description="Seconds a failed host stays out of rotation")
    max_backoff_multiplier: float = Field(
        default=1.0, ge=1.0, description="Cap on dead_timeout growth for repeated failures (1.0 = flat)"
    )

    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    connection_params: dict[str, Any] = Field(
        default_factory=dict, description="Passed through to httpx.AsyncClient (auth, verify, transport, ...)"
    )

    logger: Any | None = Field(default=None, description="Externally owned logger; overrides log_path/log_level")
    log_path: str | None = Field(default=None, description="Log file for the default logger (None = stdout)")
    log_level: LogLevel = Field(default="WARNING")

    def logging_config(self, logger_name: str = LOGGER_NAME) -> LoggingConfig:
        return LoggingConfig(level=self.log_level, file_path=self.log_path, logger_name=logger_name)
