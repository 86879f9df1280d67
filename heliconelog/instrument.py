"""
Call-site helper that brackets one provider call with timing and ships the
resulting record through a HeliconeLogger.

Order per call: start timing, await the operation, finalize timing, log.
A record that cannot be built (non-JSON payload, failing `response_json`)
is reported on "heliconelog.instrument" and skipped; the result still returns.
If the operation raises, the exception reaches the caller and nothing is
logged for it.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from heliconelog.core.logger import HeliconeLogger
from heliconelog.core.records import LogRecord, RequestDescriptor, ResponseDescriptor
from heliconelog.core.session import HeliconeSession
from heliconelog.core.timing import finalize_timing, start_timing

log = logging.getLogger("heliconelog.instrument")

T = TypeVar("T")


@dataclass
class ProviderResult(Generic[T]):
    """What a wrapped provider call exposes once it completes."""
    result: T
    status: int
    json: Dict[str, Any] = field(default_factory=dict)


async def instrument(
    logger: HeliconeLogger,
    operation: Callable[[], Awaitable[ProviderResult[T]]],
    *,
    url: str,
    request_json: Optional[Dict[str, Any]] = None,
    session: Optional[HeliconeSession] = None,
    response_json: Optional[Callable[[ProviderResult[T]], Dict[str, Any]]] = None,
    session_headers_on_response: bool = True,
) -> ProviderResult[T]:
    timing = start_timing()
    outcome = await operation()
    timing = finalize_timing(timing)

    meta = session.headers() if session else {}
    try:
        record = LogRecord(
            providerRequest=RequestDescriptor(url=url, json=request_json or {}, meta=meta),
            providerResponse=ResponseDescriptor(
                json=response_json(outcome) if response_json else outcome.json,
                status=outcome.status,
                headers=dict(meta) if session_headers_on_response else {},
            ),
            timing=timing,
        )
    except Exception as e:
        log.warning("instrument: could not build log record url=%s: %s: %s", url, type(e).__name__, e)
        return outcome
    log.debug("instrument: url=%s status=%s elapsed_ms=%s", url, outcome.status, timing.elapsed_ms)
    await logger.log(record)
    return outcome


__all__ = ["ProviderResult", "instrument"]
