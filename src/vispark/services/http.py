from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

import httpx

from vispark.config import settings
from vispark.errors import UpstreamError


@asynccontextmanager
async def client_session(http: httpx.AsyncClient | None = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``http`` when one was injected, otherwise a short-lived client."""
    if http is not None:
        yield http
        return
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        yield client


@contextmanager
def upstream_payload(source: str) -> Iterator[None]:
    """Raise ``UpstreamError`` when a provider's body is not the shape we read."""
    try:
        yield
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
        raise UpstreamError(f"Unexpected response from {source}: {exc}") from exc
