"""
Sleep-and-poll helpers for waiting on external systems.

Every wait is a linear loop: evaluate the condition, log progress, sleep a
fixed interval, and give up once the overall timeout has elapsed.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from .http_client import RetryableHTTPClient

logger = logging.getLogger(__name__)


def wait_until(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float = 3.0,
    message: Optional[str] = None,
    timeout_message: Optional[str] = None,
    raise_on_timeout: bool = True,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> bool:
    """Poll *predicate* until it returns truthy or *timeout* seconds elapse.

    Args:
        predicate: Zero-argument callable checked before every sleep
        timeout: Overall time budget in seconds
        interval: Fixed sleep between checks
        message: Logged on every unsatisfied check
        timeout_message: Error text used when the budget runs out
        raise_on_timeout: Raise ``TimeoutError`` (default) or log and return False
        clock: Monotonic clock, injectable for tests
        sleep: Sleep function, injectable for tests

    Returns:
        True once the predicate is satisfied, False on a tolerated timeout
    """
    clock = clock or time.monotonic
    sleep = sleep or time.sleep
    start = clock()
    while True:
        if predicate():
            return True
        if message:
            logger.info(message)
        if clock() - start > timeout:
            text = timeout_message or f"Condition not met within {timeout:g} seconds"
            if raise_on_timeout:
                raise TimeoutError(text)
            logger.warning(text)
            return False
        sleep(interval)


def url_content_matches(
    client: RetryableHTTPClient,
    url: str,
    *patterns: str,
    ignore_case: bool = True,
) -> bool:
    """Return True if the page body at *url* matches any of *patterns*.

    Patterns are matched line by line, like grep. An unreachable URL or an
    empty body counts as no match.
    """
    body = client.get_text(url)
    if not body:
        return False
    flags = re.MULTILINE | (re.IGNORECASE if ignore_case else 0)
    return any(re.search(p, body, flags) for p in patterns)


def when_url_content(
    client: RetryableHTTPClient,
    url: str,
    pattern: str,
    *,
    timeout: float = 60,
    interval: float = 1.0,
    sleep: Optional[Callable[[float], None]] = None,
) -> bool:
    """Wait until *url* serves a body matching *pattern* (regex, case-insensitive)."""
    logger.info("waiting up to %g seconds for %s to return content matching '%s'", timeout, url, pattern)
    return wait_until(
        lambda: url_content_matches(client, url, pattern),
        timeout=timeout,
        interval=interval,
        message=f"still waiting for {url}",
        timeout_message=f"URL {url} did not return content matching '{pattern}' within {timeout:g} seconds",
        sleep=sleep,
    )


__all__ = ["wait_until", "url_content_matches", "when_url_content"]
