"""Shared HTTP client with retry logic and rate limiting."""

import logging
import time
from typing import Optional, Dict, Any, Iterable

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class RetryableHTTPClient:
    """HTTP client with exponential backoff retry logic and rate limiting.

    Handles common failure scenarios (429, 500, 502, 503, 504) with exponential
    backoff, respects Retry-After headers, and enforces rate limiting. Each
    client owns its own ``requests.Session`` so cookies never leak between runs.

    Args:
        rps: Maximum requests per second (default: 5.0)
        max_retries: Maximum number of attempts (default: 3)
        timeout: Request timeout in seconds (default: 30)
        session: Optional pre-built session (tests inject fakes here)
    """

    def __init__(
        self,
        rps: float = 5.0,
        max_retries: int = 3,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.session = session if session is not None else requests.Session()
        self.rps = rps
        self.max_retries = max(1, int(max_retries))
        self.timeout = timeout
        self.min_interval = 1.0 / max(rps, 0.01)
        self.last_request_time = 0.0

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        now = time.time()
        elapsed = now - self.last_request_time
        if elapsed < self.min_interval:
            time.sleep(self.min_interval - elapsed)
        self.last_request_time = time.time()

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Any = None,
        json: Any = None,
        auth: Any = None,
        timeout: Optional[int] = None,
        allowed_statuses: Iterable[int] = (),
    ) -> requests.Response:
        """Make an HTTP request with exponential backoff retry logic.

        Args:
            method: HTTP verb
            url: Absolute URL
            headers: Optional request headers
            params: Optional query parameters
            data: Optional raw request body
            json: Optional JSON request body
            auth: Optional requests auth object or (user, password) tuple
            timeout: Optional timeout override (uses instance default if None)
            allowed_statuses: Error statuses returned to the caller instead of raised

        Returns:
            Response object on success

        Raises:
            requests.HTTPError: On non-retryable HTTP errors, or when retries run out
            requests.RequestException: On network errors after retries exhausted
        """
        timeout = timeout or self.timeout
        allowed = set(allowed_statuses)
        method = method.upper()

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                self._rate_limit()
                logger.debug("%s %s", method, url)
                r = self.session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    data=data,
                    json=json,
                    auth=auth,
                    timeout=timeout,
                )
            except requests.RequestException as e:
                if last_attempt:
                    raise
                wait = min(8.0, 2.0 ** attempt)
                logger.debug("%s %s failed (%s), retrying in %.1fs", method, url, e, wait)
                time.sleep(wait)
                continue

            if r.status_code in allowed:
                return r

            # Retry on throttling/server errors with exponential backoff
            if r.status_code in RETRYABLE_STATUSES and not last_attempt:
                wait = self._calculate_backoff_time(r, attempt)
                logger.debug("%s %s returned %s, retrying in %.1fs", method, url, r.status_code, wait)
                time.sleep(wait)
                continue

            r.raise_for_status()
            return r

        raise requests.RequestException(f"{method} {url} failed after {self.max_retries} attempts")

    def get_with_retry(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[int] = None,
        return_none_on_404: bool = True,
        auth: Any = None,
    ) -> Optional[requests.Response]:
        """Make a GET request, returning None on 404 when asked to."""
        allowed = (404,) if return_none_on_404 else ()
        r = self.request(
            "GET", url, headers=headers, params=params, timeout=timeout, auth=auth,
            allowed_statuses=allowed,
        )
        if r.status_code == 404:
            return None
        return r

    def get_text(self, url: str, timeout: Optional[int] = None) -> str:
        """Fetch a page body without retries, returning '' on any request failure.

        Redirects are followed and HTTP error statuses still return their body,
        which is what page-content polling needs.
        """
        try:
            self._rate_limit()
            r = self.session.get(url, timeout=timeout or self.timeout, allow_redirects=True)
            return r.text or ""
        except requests.RequestException as e:
            logger.debug("GET %s failed: %s", url, e)
            return ""

    def _calculate_backoff_time(self, response: requests.Response, attempt: int) -> float:
        """Calculate backoff time, respecting Retry-After header if present."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                wait = float(retry_after)
                return max(wait, 1.0)  # At least 1 second
            except (ValueError, TypeError):
                pass
        # Exponential backoff: 1s, 2s, 4s, max 8s
        return min(8.0, 2.0 ** attempt)

    def close(self):
        """Close the underlying session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
