"""
Shared HTTP Client Pool Service

Provides one reusable ``httpx.AsyncClient`` for every upstream statistics
API, with connection pooling, keep-alive and timeout configuration, so each
tool call does not pay for a fresh TCP/TLS handshake.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .. import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"statsmcp/{__version__} (statistics-aggregator)"


class HTTPClientPool:
    """
    Singleton HTTP client pool for all external API calls.

    Features:
    - Reuses TCP connections across requests
    - Connection pooling with configurable limits
    - Keep-alive configuration
    - Proper timeout handling
    """

    _instance: Optional[HTTPClientPool] = None
    _client: Optional[httpx.AsyncClient] = None
    _timeout_seconds: float = 30.0

    def __new__(cls) -> HTTPClientPool:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the HTTP client pool if not already done."""
        if self._client is None:
            self._initialize_client()

    @staticmethod
    def _initialize_client() -> None:
        """Create a shared AsyncClient with connection pooling."""
        limits = httpx.Limits(
            max_connections=50,
            max_keepalive_connections=20,
            keepalive_expiry=5.0,
        )

        total = HTTPClientPool._timeout_seconds
        timeout = httpx.Timeout(
            timeout=total,
            connect=min(10.0, total),
            pool=5.0,
        )

        HTTPClientPool._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            verify=True,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

        logger.info(
            "HTTP Client Pool initialized: "
            f"max_connections=50, max_keepalive=20, timeout={total}s"
        )

    @classmethod
    def configure(cls, timeout_seconds: float) -> None:
        """Set the total request timeout used when the client is (re)created."""
        cls._timeout_seconds = timeout_seconds

    @classmethod
    def get_client(cls) -> httpx.AsyncClient:
        """Get the shared HTTP client instance."""
        if HTTPClientPool._client is None or HTTPClientPool._client.is_closed:
            HTTPClientPool._initialize_client()
        return HTTPClientPool._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client pool."""
        if HTTPClientPool._client:
            await HTTPClientPool._client.aclose()
            HTTPClientPool._client = None
            logger.info("HTTP Client Pool closed")


def get_http_client() -> httpx.AsyncClient:
    """
    Get the shared HTTP client pool.

    This function should be used instead of creating new AsyncClient instances.

    Returns:
        Shared httpx.AsyncClient instance
    """
    return HTTPClientPool.get_client()


async def close_http_pool() -> None:
    """Close the HTTP client pool (called on application shutdown)."""
    await HTTPClientPool.close()
