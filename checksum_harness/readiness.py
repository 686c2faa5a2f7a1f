"""Readiness probe for a freshly started storage server.

A server counts as ready only once it answers an unauthenticated
``GET /`` with HTTP 403 Forbidden: the process is listening *and*
enforcing authentication. Anything else means "not yet":

Not ready (keep polling):
- Connection refused / reset while the process boots
- Connect and read timeouts
- Any HTTP status other than 403 (e.g. 503 while initialising)

The probe is bounded; running out of time raises ReadinessTimeout,
which callers treat as a fatal setup error.
"""

import logging
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

# Status a listening, auth-enforcing S3 server returns for anonymous GET /
READY_STATUS_CODE = 403


class ReadinessTimeout(Exception):
    """Raised when the server does not become ready before the deadline."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_status: Optional[int] = None,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_status = last_status
        self.last_error = last_error


def is_ready_response(response: httpx.Response) -> bool:
    """Return True if the response signals a ready server."""
    return response.status_code == READY_STATUS_CODE


def wait_until_forbidden(
    url: str,
    timeout: float = 60.0,
    interval: float = 0.5,
    http_client: Optional[httpx.Client] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Poll ``url`` until it answers HTTP 403 or the timeout expires.

    Args:
        url: URL to probe, normally the server root.
        timeout: Overall deadline in seconds.
        interval: Delay between attempts in seconds.
        http_client: Optional httpx client (one is created if omitted).
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.

    Returns:
        Number of attempts it took.

    Raises:
        ReadinessTimeout: If no 403 was observed before the deadline.
    """
    owns_client = http_client is None
    if owns_client:
        # Per-attempt timeout never exceeds the polling interval by much
        http_client = httpx.Client(timeout=max(interval, 1.0), follow_redirects=False)

    deadline = clock() + timeout
    attempts = 0
    last_status: Optional[int] = None
    last_error: Optional[Exception] = None

    try:
        while True:
            attempts += 1
            try:
                response = http_client.get(url)
            except httpx.TransportError as e:
                # Connection refused, reset or timed out: still booting
                last_error = e
                last_status = None
                logger.debug("Probe %d of %s: %s", attempts, url, e)
            else:
                last_status = response.status_code
                if is_ready_response(response):
                    logger.info("Server at %s ready after %d probe(s)", url, attempts)
                    return attempts
                logger.debug("Probe %d of %s: HTTP %d", attempts, url, last_status)

            if clock() + interval > deadline:
                break
            sleep(interval)
    finally:
        if owns_client:
            http_client.close()

    detail = f"last status {last_status}" if last_status is not None else f"last error: {last_error}"
    raise ReadinessTimeout(
        f"Server at {url} not ready after {timeout:.0f}s ({attempts} probes, {detail})",
        attempts=attempts,
        last_status=last_status,
        last_error=last_error,
    )
