"""Shared HTTP client management for connection pooling.

One pooled client is created on application startup and shared by every
upstream attempt.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from relay.app.core.config import settings


def _build_timeout(total: float) -> httpx.Timeout:
    # The upstream call is bounded by request_timeout end to end; connect and
    # pool acquisition get their own, tighter, limits.
    return httpx.Timeout(
        total,
        connect=min(total, settings.httpx_connect_timeout),
        pool=min(total, settings.httpx_pool_timeout),
    )


def _build_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client() as client:
                yield
    """
    client = httpx.AsyncClient(
        timeout=_build_timeout(settings.request_timeout),
        limits=_build_limits(),
    )

    try:
        yield client
    finally:
        await client.aclose()

