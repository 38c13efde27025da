from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
    wait_random_exponential,
)

from ..exceptions import NodeConnectionError

if TYPE_CHECKING:
    from tenacity.wait import wait_base

    from ..config import RetryBackoffSettings

type BeforeSleepCallback = Callable[[RetryCallState], Awaitable[None] | None]


def build_wait(backoff: RetryBackoffSettings) -> wait_base:
    if not backoff.enabled:
        return wait_none()

    # NOTE: full jitter, see https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
    return wait_random_exponential(
        multiplier=backoff.multiplier,
        min=backoff.wait_min,
        max=backoff.wait_max,
        exp_base=backoff.exp_base,
    )


def build_request_retrying(
    max_retries: int,
    backoff: RetryBackoffSettings,
    before_sleep: BeforeSleepCallback | None = None,
) -> AsyncRetrying:
    """Build the retry loop for one logical request.

    Only `NodeConnectionError` is retried; every other exception, including
    `NoConnectionsAvailableError`, propagates from the first attempt that
    raises it. ``reraise`` is off so that exhaustion surfaces as
    ``tenacity.RetryError``, which the transport turns into an aggregate
    error listing every attempt.

    Parameters
    ----------
    max_retries
        Attempts after the first; the loop stops after ``max_retries + 1``.
    backoff
        Wait policy between attempts.
    before_sleep
        Called before each retry.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=build_wait(backoff),
        retry=retry_if_exception_type(NodeConnectionError),
        before_sleep=before_sleep,
        reraise=False,
    )
