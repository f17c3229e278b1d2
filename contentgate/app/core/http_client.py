"""Process-wide httpx client for outbound calls (Turnstile verification).

Opened and closed by the application lifespan so connections are pooled
across requests.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from contentgate.app.core.config import Settings, settings

_client: Optional[httpx.AsyncClient] = None


def client_options(config: Settings) -> dict:
    """httpx keyword arguments derived from the HTTPX_* settings."""
    return {
        "timeout": httpx.Timeout(
            connect=config.httpx_connect_timeout,
            read=config.httpx_read_timeout,
            write=config.httpx_write_timeout,
            pool=config.httpx_pool_timeout,
        ),
        "limits": httpx.Limits(
            max_connections=config.httpx_max_connections,
            max_keepalive_connections=config.httpx_max_keepalive_connections,
            keepalive_expiry=config.httpx_keepalive_expiry,
        ),
    }


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("HTTP client is not open; it lives inside the app lifespan")
    return _client


@asynccontextmanager
async def init_http_client() -> AsyncIterator[httpx.AsyncClient]:
    global _client

    async with httpx.AsyncClient(**client_options(settings)) as client:
        _client = client
        try:
            yield client
        finally:
            _client = None
