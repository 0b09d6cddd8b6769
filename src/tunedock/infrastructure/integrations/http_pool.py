"""Shared HTTP client pool for connection reuse.

Hey future me - ONE httpx.AsyncClient serves both the registry (install-from-URL) and
every provider's `http` capability. Providers never create their own clients, so
keep-alive and connection limits apply across all of them.

Usage:
    client = await HttpClientPool.get_client()
    response = await client.get("https://example.com/provider.py")

Call HttpClientPool.close() at shutdown (see lifecycle.py)!
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Singleton HTTP client pool for connection reuse."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    DEFAULT_MAX_KEEPALIVE: ClassVar[int] = 20
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 50
    USER_AGENT: ClassVar[str] = "tunedock/1.0"

    @classmethod
    def _ensure_lock(cls) -> asyncio.Lock:
        # Lazy: asyncio.Lock() must be created inside the running loop
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(
        cls,
        timeout: float | None = None,
        max_keepalive: int | None = None,
        max_connections: int | None = None,
    ) -> httpx.AsyncClient:
        """Get the shared HTTP client instance.

        Config params only apply on the FIRST call.

        Args:
            timeout: Request timeout in seconds (default: 30.0)
            max_keepalive: Max idle connections to keep open (default: 20)
            max_connections: Max total concurrent connections (default: 50)

        Returns:
            Shared httpx.AsyncClient instance
        """
        async with cls._ensure_lock():
            if cls._client is None:
                effective_timeout = timeout or cls.DEFAULT_TIMEOUT
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(effective_timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=max_keepalive
                        or cls.DEFAULT_MAX_KEEPALIVE,
                        max_connections=max_connections or cls.DEFAULT_MAX_CONNECTIONS,
                    ),
                    http2=True,
                    follow_redirects=True,
                    headers={"User-Agent": cls.USER_AGENT},
                )
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs)", effective_timeout
                )
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client and release all connections."""
        async with cls._ensure_lock():
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("HTTP client pool closed")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None
