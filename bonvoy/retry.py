"""Bounded exponential backoff for provider API calls."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
DEFAULT_RETRIES = 3
BASE_DELAY_SECONDS = 1.0

_TRANSIENT_MESSAGE = re.compile(
    r"throttl|rate.?limit|timed? ?out|ETIMEDOUT|ECONNRESET|ECONNREFUSED"
    r"|connection reset|connection refused|HTTP (?:429|50[0234])",
    re.IGNORECASE,
)


def is_transient(error: BaseException) -> bool:
    """True for errors worth retrying: 429/5xx statuses, throttling, timeouts, resets."""
    status = getattr(error, "status", None)
    if isinstance(status, int) and status in TRANSIENT_STATUS_CODES:
        return True
    return bool(_TRANSIENT_MESSAGE.search(str(error)))


def with_retry(
    fn: Callable[[], T],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = BASE_DELAY_SECONDS,
    logger: logging.Logger | None = None,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Call ``fn``, retrying transient failures with doubling delays.

    Waits ``base_delay * 2**attempt`` seconds between attempts, for at most
    ``retries`` retries. Non-transient errors and the last failure are
    re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            if attempt >= retries or not is_transient(exc):
                raise
            delay = base_delay * 2**attempt
            if logger is not None:
                logger.warning(
                    f"  ⏳ Transient error, retrying in {delay:g}s "
                    f"(attempt {attempt + 1}/{retries})..."
                )
            (sleep or time.sleep)(delay)
            attempt += 1
