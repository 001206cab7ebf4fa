"""Bounded retries for steps that cross into the browser tab."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from youread.tab import is_transient

logger = logging.getLogger(__name__)


async def with_retries(
    action: Callable[[], Awaitable[Any]],
    *,
    delay: float,
    attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    retry_on: Callable[[BaseException], bool] = is_transient,
    until: Optional[Callable[[Any], bool]] = None,
    default: Any = None,
    label: str = "step",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Await ``action`` until it succeeds, giving up after ``attempts`` tries or
    ``timeout`` seconds, with a fixed ``delay`` between tries.

    Exceptions matching ``retry_on`` are retried; any other exception
    propagates immediately. With ``until``, a result it rejects is retried too
    (polling). When the budget runs out ``default`` is returned instead of
    raising.
    """
    if (attempts is None) == (timeout is None):
        raise ValueError("pass exactly one of attempts or timeout")

    stop = stop_after_attempt(attempts) if attempts is not None else stop_after_delay(timeout)
    retry = retry_if_exception(retry_on)
    if until is not None:
        retry = retry | retry_if_result(lambda value: not until(value))

    retrying = AsyncRetrying(
        stop=stop,
        wait=wait_fixed(delay),
        retry=retry,
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )

    try:
        return await retrying(action)
    except RetryError:
        logger.warning("%s: condition not met within budget, giving up", label)
    except Exception as exc:
        if not retry_on(exc):
            raise
        logger.warning("%s: retries exhausted: %s", label, exc)
    return default
