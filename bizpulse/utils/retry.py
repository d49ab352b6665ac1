"""Retry helpers for async network calls."""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable

import httpx

RETRY_EXCEPTIONS = (OSError, asyncio.TimeoutError, httpx.TransportError)


def retry_async(func: Callable[..., Awaitable] | None = None, *, attempts: int = 3, base_delay: float = 1.0):
    """Retry transient transport failures with jittered exponential backoff."""

    def decorate(inner: Callable[..., Awaitable]):
        @functools.wraps(inner)
        async def wrapper(*args, **kwargs):
            delay = base_delay
            for attempt in range(attempts):
                try:
                    return await inner(*args, **kwargs)
                except RETRY_EXCEPTIONS:
                    if attempt == attempts - 1:
                        raise
                    await asyncio.sleep(delay + random.random() * base_delay)
                    delay *= 2

        return wrapper

    if func is not None:
        return decorate(func)
    return decorate
