"""Readiness probes for the database server and the launched HTTP server."""

import asyncio
import logging
import time
from typing import Iterable, List, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from upms_bootstrap.exceptions import DependencyTimeoutError

logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL = 1  # seconds
HEALTH_CHECK_REQUEST_TIMEOUT = 5  # seconds per HTTP request


async def _probe_port(host: str, port: int, connect_timeout: float) -> None:
    """Open and close one TCP connection; raises OSError when refused."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=connect_timeout
        )
    except asyncio.TimeoutError as e:
        raise ConnectionError(f"connect to {host}:{port} timed out") from e
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


async def wait_for_port(
    host: str,
    port: int,
    timeout: float = 60.0,
    max_interval: float = 5.0,
    connect_timeout: float = 3.0,
) -> None:
    """Block until host:port accepts TCP connections.

    Retries with exponential back-off capped at *max_interval* and gives up
    after *timeout* seconds with DependencyTimeoutError.
    """
    name = f"{host}:{port}"
    logger.info("Waiting for %s to accept connections (timeout %gs)...", name, timeout)
    retrying = AsyncRetrying(
        stop=stop_after_delay(timeout),
        wait=wait_exponential(multiplier=0.5, max=max_interval),
        retry=retry_if_exception_type(OSError),
    )
    try:
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug("Attempt %d for %s", attempt.retry_state.attempt_number, name)
                await _probe_port(host, port, connect_timeout)
    except RetryError as e:
        raise DependencyTimeoutError(name, timeout) from e
    logger.info("✓ %s is accepting connections", name)


async def wait_for_databases(
    endpoints: Iterable[Tuple[str, int]],
    timeout: float = 60.0,
    max_interval: float = 5.0,
    connect_timeout: float = 3.0,
) -> List[str]:
    """Run wait_for_port for each endpoint, in order.

    An endpoint that times out is logged and skipped so the remaining ones
    are still waited for. Returns the endpoints that never answered.
    """
    unreachable = []
    for host, port in endpoints:
        try:
            await wait_for_port(
                host, port, timeout=timeout, max_interval=max_interval, connect_timeout=connect_timeout
            )
        except DependencyTimeoutError as e:
            logger.error("%s", e)
            unreachable.append(e.dependency)
    return unreachable


class HealthMonitor:
    """Waits for the launched HTTP server to answer."""

    async def wait_for_service(self, name: str, url: str, timeout: float) -> bool:
        """
        Wait for a service to answer with a non-5xx response.
        Returns True if healthy, False if timeout.
        """
        logger.info("Waiting for %s to be ready...", name)

        start_time = time.monotonic()
        async with httpx.AsyncClient(timeout=HEALTH_CHECK_REQUEST_TIMEOUT) as client:
            while time.monotonic() - start_time < timeout:
                if await self.check_http_endpoint(client, url):
                    logger.info("✓ %s is ready", name)
                    return True
                await asyncio.sleep(HEALTH_CHECK_INTERVAL)

        logger.error("%s failed to start within %gs", name, timeout)
        return False

    async def check_http_endpoint(self, client: httpx.AsyncClient, url: str) -> bool:
        """Check if an HTTP endpoint is responding."""
        try:
            response = await client.get(url)
        except httpx.HTTPError:
            return False
        return response.status_code < 500
