"""
Shared HTTP client management.

One ``httpx.AsyncClient`` is created in the application lifespan and stored on
``app.state``; every provider adapter borrows it so connection pools are reused
across requests. Per-adapter timeouts are passed on each call.
"""
import logging
import httpx
from fastapi import HTTPException, Request

from .config import API_TIMEOUT, READ_TIMEOUT, MAX_CONNECTIONS

logger = logging.getLogger("Gawin.Core.HTTPClient")


def build_http_client(transport: httpx.AsyncBaseTransport = None) -> httpx.AsyncClient:
    """
    Build the process-wide client.

    - limits: total connections and keep-alive pool size
    - timeout: defaults only; adapters override with their own fixed timeout
    - http2: multiplexing toward vendors that support it
    """
    logger.info(
        f"Initializing HTTP client. Connect timeout: {API_TIMEOUT}s, "
        f"read timeout: {READ_TIMEOUT}s, max connections: {MAX_CONNECTIONS}"
    )
    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(
        timeout=httpx.Timeout(API_TIMEOUT, read=READ_TIMEOUT),
        limits=httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=50,
            keepalive_expiry=120.0
        ),
        http2=transport is None,
        follow_redirects=True,
        trust_env=True,
        **kwargs
    )


async def close_http_client(client: httpx.AsyncClient) -> None:
    if client is None:
        logger.warning("HTTP client not found; nothing to close.")
        return
    if client.is_closed:
        logger.info("HTTP client was already closed.")
        return
    await client.aclose()
    logger.info("HTTP client closed.")


async def get_http_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None or client.is_closed:
        logger.error("HTTP client not available or closed in app.state.")
        raise HTTPException(status_code=503, detail="Service unavailable: HTTP client not initialized or closed.")
    return client
