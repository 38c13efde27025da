"""Cluster topology discovery.

The sniffer asks one node for the cluster's node list and returns the HTTP
endpoints it reports. Two address shapes are understood::

    {"nodes": {"id": {"http": {"publish_address": "10.0.0.1:9200"}}}}
    {"nodes": {"id": {"http_address": "inet[/10.0.0.1:9200]"}}}

Nodes without an HTTP endpoint (e.g. dedicated internal nodes) are skipped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .exceptions import InvalidHostError, NodeConnectionError, SerializationError, SniffError
from .hosts import Host
from .logger import get_logger
from .serializers import JSONSerializer

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from .connections import Connection
    from .serializers import Serializer

DEFAULT_SNIFF_PATH = "/_nodes/_all/http"


class Sniffer:
    """Queries a node for current cluster membership.

    Parameters
    ----------
    serializer : Serializer | None
        Codec used to decode the node listing. Defaults to JSON.
    path : str
        Discovery endpoint.
    logger : BoundLogger | None
        Structured logger; defaults to the module logger.
    """

    __slots__ = ("_logger", "_path", "_serializer")

    def __init__(
        self,
        serializer: Serializer | None = None,
        path: str = DEFAULT_SNIFF_PATH,
        logger: BoundLogger | None = None,
    ) -> None:
        self._serializer = serializer or JSONSerializer()
        self._path = path
        self._logger = logger or get_logger(__name__)

    async def asniff(self, connection: Connection) -> list[Host]:
        """Return the hosts reported by ``connection``, in response order.

        Raises
        ------
        SniffError
            If the node is unreachable, answers with an error status, or
            returns a listing with no usable HTTP addresses.
        """
        try:
            response = await connection.aexecute("GET", self._path, headers={"accept": "application/json"})
        except NodeConnectionError as e:
            raise SniffError(f"Sniff request to {connection.host} failed: {e.message}") from e

        if response.is_error:
            raise SniffError(f"Sniff request to {connection.host} returned HTTP {response.status}")

        try:
            payload = self._serializer.deserialize(response.content, response.content_type)
        except SerializationError as e:
            raise SniffError(f"Sniff response from {connection.host} is not decodable: {e}") from e

        hosts = self.parse_nodes(payload)
        if not hosts:
            raise SniffError(f"Sniff response from {connection.host} listed no HTTP-enabled nodes")

        self._logger.debug("Sniffed cluster topology", source=str(connection.host), hosts=[str(host) for host in hosts])
        return hosts

    def parse_nodes(self, payload: Any) -> list[Host]:
        if not isinstance(payload, dict) or not isinstance(payload.get("nodes"), dict):
            raise SniffError("Sniff response has no 'nodes' object")

        hosts: list[Host] = []
        for node_id, node in payload["nodes"].items():
            address = self._http_address(node)
            if address is None:
                continue
            try:
                host = parse_publish_address(address)
            except InvalidHostError as e:
                self._logger.warning(
                    "Skipping node with unparseable address",
                    node_id=node_id,
                    address=address,
                    error=str(e),
                )
                continue
            if host not in hosts:
                hosts.append(host)
        return hosts

    @staticmethod
    def _http_address(node: Any) -> str | None:
        if not isinstance(node, dict):
            return None
        http = node.get("http")
        if isinstance(http, dict) and isinstance(http.get("publish_address"), str):
            return http["publish_address"]
        if isinstance(node.get("http_address"), str):
            return node["http_address"]
        return None


def parse_publish_address(address: str) -> Host:
    """Parse a node's advertised HTTP address.

    Accepts ``"10.0.0.1:9200"``, ``"name/10.0.0.1:9200"``,
    ``"inet[/10.0.0.1:9200]"`` and ``"inet[name/10.0.0.1:9200]"``; the IP
    part after the slash is used when present.
    """
    value = address.strip()
    if value.startswith("inet[") and value.endswith("]"):
        value = value[len("inet[") : -1]
    _, _, value = value.rpartition("/")
    return Host.parse(value)
