"""Payload codecs.

Serializers are stateless. The transport encodes `Request.body` before the
first attempt and decodes the winning response after the node has been
reported alive, so a decode failure never marks a node dead.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

from .exceptions import SerializationError


@runtime_checkable
class Serializer(Protocol):
    content_type: str

    def serialize(self, data: Any) -> bytes | None: ...

    def deserialize(self, content: bytes, content_type: str | None = None) -> Any: ...


class JSONSerializer:
    """JSON codec.

    Strings and bytes are sent as-is so pre-encoded bodies (for example
    newline-delimited bulk payloads) pass through untouched.
    """

    content_type = "application/json"

    def serialize(self, data: Any) -> bytes | None:
        if data is None:
            return None
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            return data.encode("utf-8")
        try:
            return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Unable to encode payload as JSON: {e}") from e

    def deserialize(self, content: bytes, content_type: str | None = None) -> Any:
        if not content:
            return None
        if content_type and "json" not in content_type:
            return content.decode("utf-8", errors="replace")
        try:
            return json.loads(content)
        except ValueError as e:
            raise SerializationError(f"Unable to decode response body as JSON: {e}") from e


class TextSerializer:
    """Plain UTF-8 text codec."""

    content_type = "text/plain; charset=utf-8"

    def serialize(self, data: Any) -> bytes | None:
        if data is None:
            return None
        if isinstance(data, bytes):
            return data
        return str(data).encode("utf-8")

    def deserialize(self, content: bytes, content_type: str | None = None) -> Any:
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Response body is not valid UTF-8: {e}") from e
