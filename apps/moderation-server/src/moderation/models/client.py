"""HTTP client pool for external classifier services.

Handles:
- Connection pooling with httpx
- Timeout configuration
"""

import httpx


# Shared client pool - one client per classifier base URL
_client_pool: dict[str, httpx.AsyncClient] = {}


def build_timeout(timeout_seconds: float, connect_timeout: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_timeout,
        read=timeout_seconds,
        write=timeout_seconds,
        pool=timeout_seconds,
    )


async def get_shared_client(base_url: str, timeout: httpx.Timeout) -> httpx.AsyncClient:
    """Get or create a shared async client for a classifier.

    The first caller for a URL decides its timeout.
    """
    if not base_url:
        raise ValueError("Classifier base URL is not configured")

    if base_url not in _client_pool:
        _client_pool[base_url] = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            limits=httpx.Limits(
                max_connections=100,
                max_keepalive_connections=20,
            ),
        )
    return _client_pool[base_url]


async def close_all_clients() -> None:
    """Close all shared clients (call on shutdown)."""
    for client in _client_pool.values():
        await client.aclose()
    _client_pool.clear()
