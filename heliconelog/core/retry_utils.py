"""
Async retry decorator with rate limiting and exponential backoff for
provider calls.

- In-memory rate limiting using sliding window (calls per minute)
- Exponential backoff with jitter on failures
- Detailed logging per provider

Helicone log submissions do not go through here; they are single-shot.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import defaultdict, deque
from functools import wraps
from typing import Any, Callable, TypeVar, ParamSpec

import httpx

log = logging.getLogger("heliconelog.retry")

P = ParamSpec('P')
T = TypeVar('T')

# Global rate limiter state (per provider)
_rate_limiters: dict[str, deque[float]] = defaultdict(deque)
_rate_limiter_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


class RetryExhausted(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


async def _wait_for_rate_limit(
    provider: str,
    max_per_minute: int,
    window_seconds: int = 60
) -> None:
    """
    Enforce rate limiting using sliding window algorithm.

    Args:
        provider: Provider name for tracking
        max_per_minute: Maximum calls allowed per minute
        window_seconds: Time window in seconds (default: 60)
    """
    while True:
        async with _rate_limiter_locks[provider]:
            now = time.time()
            window_start = now - window_seconds

            queue = _rate_limiters[provider]
            while queue and queue[0] < window_start:
                queue.popleft()

            if len(queue) < max_per_minute:
                queue.append(now)
                return
            sleep_time = max(0.0, queue[0] - window_start)

        log.warning(
            "Rate limit reached for %s: %d/%d calls. Sleeping %.2fs",
            provider, len(queue), max_per_minute, sleep_time,
        )
        await asyncio.sleep(sleep_time)


def rate_limited_retry(
    provider: str = "unknown",
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    max_per_minute: int = 15,
    jitter: float = 0.5,
    retry_on: tuple[type[Exception], ...] = (
        httpx.RequestError,
        httpx.TimeoutException,
        TimeoutError,
        ConnectionError,
    )
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for async functions with rate limiting and exponential backoff.

    Args:
        provider: Provider name for logging and rate limiting
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Base delay in seconds for exponential backoff (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 60)
        max_per_minute: Maximum calls per minute (default: 15)
        jitter: Random jitter to add/subtract in seconds (default: ±0.5)
        retry_on: Tuple of exception types to retry on

    Example:
        @rate_limited_retry(provider="openai", max_retries=3)
        async def create_thread(http: httpx.AsyncClient) -> ProviderResult[dict]:
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_retries + 1):
                await _wait_for_rate_limit(provider, max_per_minute)
                try:
                    result = await func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_retries:
                        log.error(
                            "%s: %s failed after %d attempts. Final error: %s: %s",
                            provider, func.__name__, max_retries + 1, type(e).__name__, e,
                        )
                        raise RetryExhausted(
                            f"{provider}: All {max_retries + 1} attempts failed"
                        ) from e

                    delay = min(base_delay * (2 ** attempt), max_delay)
                    actual_delay = max(0.0, delay + random.uniform(-jitter, jitter))
                    log.warning(
                        "%s: %s failed on attempt %d/%d. Error: %s: %s. Retrying in %.2fs...",
                        provider, func.__name__, attempt + 1, max_retries + 1,
                        type(e).__name__, e, actual_delay,
                    )
                    await asyncio.sleep(actual_delay)
                    continue
                except Exception as e:
                    log.error(
                        "%s: %s failed with non-retryable error: %s: %s",
                        provider, func.__name__, type(e).__name__, e,
                    )
                    raise

                if attempt > 0:
                    log.info("%s: %s succeeded on attempt %d", provider, func.__name__, attempt + 1)
                return result

            raise RuntimeError(f"{provider}: Unexpected retry loop exit")

        return wrapper
    return decorator


def openai_retry(**kwargs: Any) -> Callable:
    """Retry decorator configured for OpenAI API."""
    return rate_limited_retry(
        provider="openai",
        max_retries=kwargs.get("max_retries", 3),
        base_delay=kwargs.get("base_delay", 1.0),
        max_per_minute=kwargs.get("max_per_minute", 60),
        **{k: v for k, v in kwargs.items() if k not in ["max_retries", "base_delay", "max_per_minute"]}
    )
