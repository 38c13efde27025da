from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .hosts import Host


class Request(BaseModel):
    """A logical request, independent of the node that ends up serving it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: str = Field(default="GET", min_length=1)
    path: str = Field(default="/")
    params: dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default=None, description="Application payload, encoded by the serializer")
    headers: dict[str, str] = Field(default_factory=dict)


class Response(BaseModel):
    """A response received from one node.

    Error statuses are still responses: the transport's job ends once a
    node has answered.
    """

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    content: bytes = b""
    data: Any = None
    host: Host

    @property
    def is_error(self) -> bool:
        return self.status >= 400

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")


class AttemptFailure(BaseModel):
    """One failed execute attempt within a logical request."""

    model_config = ConfigDict(frozen=True)

    host: Host
    error_type: str
    message: str
