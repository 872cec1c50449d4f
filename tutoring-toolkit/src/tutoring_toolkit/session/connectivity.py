"""
Connectivity probe run before every request.

A probe is any coroutine function returning True when the network is usable.
The default one issues a HEAD request to the generation API host; any
transport failure means offline.
"""

from collections.abc import Awaitable, Callable

import httpx
from loguru import logger

ConnectivityProbe = Callable[[], Awaitable[bool]]

PROBE_URL = "https://generativelanguage.googleapis.com/"


async def http_probe(url: str = PROBE_URL, timeout: float = 3.0) -> bool:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            await client.head(url)
    except httpx.TransportError as e:
        logger.warning(f"Connectivity probe to {url} failed: {e!r}")
        return False
    return True


async def always_online() -> bool:
    return True
