"""HTTP client with bounded exponential-backoff retry on transport failure."""

import logging
import time as time_module
from collections.abc import Callable

import httpx

logger = logging.getLogger(__name__)

# Retries beyond the first attempt
_MAX_RETRIES = 3
_BASE_DELAY_SECONDS = 1.0


class RetryingHttpClient:
    """Wraps an ``httpx.Client`` and retries requests that fail in transport.

    Only ``httpx.TransportError`` (connection refused, DNS, timeouts, ...)
    is retried. Any HTTP response, 2xx or not, is returned to the caller on
    the attempt that produced it. After ``max_retries`` retries the last
    transport error propagates. Worst-case time spent sleeping is
    ``base_delay * (2 ** max_retries - 1)``.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        max_retries: int = _MAX_RETRIES,
        base_delay: float = _BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time_module.sleep,
        timeout: float = 30.0,
    ):
        self._client = client or httpx.Client(timeout=timeout)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transport failures with doubling delays."""
        delay = self.base_delay
        retries_left = self.max_retries
        while True:
            try:
                return self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if retries_left <= 0:
                    logger.warning(
                        "%s %s failed after %d attempts: %s",
                        method, url, self.max_retries + 1, e,
                    )
                    raise
                logger.warning(
                    "%s %s failed, retrying in %.1fs (%d retries left): %s",
                    method, url, delay, retries_left, e,
                )
                self._sleep(delay)
                retries_left -= 1
                delay *= 2

    def get(self, url: str, **kwargs) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> httpx.Response:
        return self.request("POST", url, **kwargs)
