"""Shared HTTP client for outbound calls (LLM, image provider, PDF renderer,
blob storage).

A single pooled httpx.AsyncClient avoids a TCP/TLS handshake per upstream
call. Its lifecycle is tied to the FastAPI lifespan.
"""

from __future__ import annotations

import httpx
import structlog

logger = structlog.get_logger()


class HTTPClientManager:
    """Manages a shared httpx.AsyncClient with connection pooling.

    Usage:
        await http_client_manager.startup()
        client = http_client_manager.client
        ...
        await http_client_manager.shutdown()
    """

    def __init__(
        self,
        *,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        keepalive_expiry: float = 30.0,
        connect_timeout: float = 10.0,
        read_timeout: float = 120.0,
        write_timeout: float = 30.0,
        pool_timeout: float = 10.0,
    ) -> None:
        """Initialize HTTP client manager.

        Args:
            max_connections: Maximum number of concurrent connections.
            max_keepalive_connections: Maximum idle connections kept open.
            keepalive_expiry: Seconds before idle connections are closed.
            connect_timeout: Connection timeout in seconds.
            read_timeout: Read timeout in seconds. Generation calls are slow.
            write_timeout: Write timeout in seconds.
            pool_timeout: Pool acquisition timeout in seconds.
        """
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
            pool=pool_timeout,
        )
        self._client: httpx.AsyncClient | None = None
        self._log = logger.bind(component="http_client")

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client.

        Raises:
            RuntimeError: If client is not initialized (call startup first)
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialized. Call startup() first.")
        return self._client

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def startup(self) -> None:
        if self._client is not None:
            self._log.warning("http_client.already_started")
            return

        self._client = httpx.AsyncClient(limits=self._limits, timeout=self._timeout)
        self._log.info(
            "http_client.started",
            max_connections=self._limits.max_connections,
        )

    async def shutdown(self) -> None:
        if self._client is None:
            return

        await self._client.aclose()
        self._client = None
        self._log.info("http_client.shutdown")


# Global singleton instance
http_client_manager = HTTPClientManager()
