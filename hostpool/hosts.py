from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidHostError

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_HOST = "localhost"


class Host(BaseModel):
    """Immutable node descriptor.

    Two descriptors with the same host and port are the same node; the
    connection pool and dead pool both key their state on it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field(min_length=1)
    port: int | None = Field(default=None, ge=1, le=65535)

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return host if self.port is None else f"{host}:{self.port}"

    @classmethod
    def parse(cls, token: str) -> Self:
        """Parse ``"host"`` or ``"host:port"``.

        Bracketed IPv6 literals (``"[::1]:9200"``) are accepted. An empty host
        part means ``localhost``, so ``":9200"`` is ``localhost:9200``.

        Raises
        ------
        InvalidHostError
            If the port is empty, non-numeric or out of range, or an IPv6
            literal is malformed.
        """
        if not isinstance(token, str):
            raise InvalidHostError(f"Host must be a string, got {type(token).__name__}")

        token = token.strip()
        if token.startswith("["):
            host, sep, rest = token[1:].partition("]")
            if not sep:
                raise InvalidHostError(f"Unterminated IPv6 literal in host {token!r}")
            if rest and not rest.startswith(":"):
                raise InvalidHostError(f"Unexpected characters after IPv6 literal in host {token!r}")
            port_token: str | None = rest[1:] if rest else None
        elif ":" in token:
            host, _, port_token = token.partition(":")
        else:
            host, port_token = token, None

        if not host:
            host = DEFAULT_HOST

        if port_token is None:
            return cls(host=host)

        if not (port_token.isascii() and port_token.isdigit()):
            raise InvalidHostError(f"Port must be a valid integer in host {token!r}")

        port = int(port_token)
        if not 1 <= port <= 65535:
            raise InvalidHostError(f"Port must be between 1 and 65535 in host {token!r}")

        return cls(host=host, port=port)


def parse_hosts(tokens: Iterable[str] | None) -> list[Host]:
    """Parse a sequence of host strings, defaulting to ``localhost``."""
    if tokens is None:
        return [Host(host=DEFAULT_HOST)]

    if isinstance(tokens, str):
        raise InvalidHostError("Hosts parameter must be a sequence of strings, not a single string")

    hosts = [Host.parse(token) for token in tokens]
    if not hosts:
        raise InvalidHostError("At least one host is required")
    return hosts
