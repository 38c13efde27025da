from __future__ import annotations

from .retry import build_request_retrying, build_wait

__all__ = [
    "build_request_retrying",
    "build_wait",
]
