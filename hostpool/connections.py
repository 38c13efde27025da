"""Single-node connections.

Every connection of a transport shares one ``httpx.AsyncClient``. The client
owns the keep-alive sockets and is created and closed by the transport; a
connection only borrows it, so dropping a connection after a topology change
never tears down sockets another in-flight request is still using.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx

from .exceptions import NodeConnectionError
from .models import Response

if TYPE_CHECKING:
    from .config import ConnectionSettings
    from .hosts import Host


class Connection(Protocol):
    host: Host

    async def aexecute(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Response: ...

    async def aping(self) -> bool: ...


class ConnectionFactory(Protocol):
    def __call__(self, host: Host, settings: ConnectionSettings, client: Any) -> Connection: ...


class HttpxConnection:
    """Connection to one node over a shared ``httpx.AsyncClient``.

    Parameters
    ----------
    host : Host
        Node this connection talks to.
    settings : ConnectionSettings
        Scheme, default port, per-attempt timeout and URL prefix.
    client : httpx.AsyncClient
        Shared client owned by the transport.
    """

    __slots__ = ("_base_url", "_client", "_settings", "host")

    def __init__(self, host: Host, settings: ConnectionSettings, client: httpx.AsyncClient) -> None:
        self.host = host
        self._settings = settings
        self._client = client
        port = host.port if host.port is not None else settings.default_port
        hostname = f"[{host.host}]" if ":" in host.host else host.host
        self._base_url = f"{settings.scheme}://{hostname}:{port}{settings.url_prefix.rstrip('/')}"

    def __repr__(self) -> str:
        return f"<HttpxConnection {self._base_url}>"

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aexecute(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Response:
        """Send one request to this node.

        Raises
        ------
        NodeConnectionError
            On any ``httpx.TransportError`` (connect, timeout, read/write,
            protocol). HTTP error statuses are returned, not raised.
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            raw = await self._client.request(
                method,
                url,
                params=params or None,
                content=body,
                headers=headers or None,
                timeout=self._settings.timeout,
            )
        except httpx.TransportError as e:
            raise NodeConnectionError(self.host, f"{type(e).__name__}: {e}") from e

        return Response(
            status=raw.status_code,
            headers={key.lower(): value for key, value in raw.headers.items()},
            content=raw.content,
            host=self.host,
        )

    async def aping(self) -> bool:
        try:
            response = await self.aexecute("HEAD", "/")
        except NodeConnectionError:
            return False
        return response.status < 500
