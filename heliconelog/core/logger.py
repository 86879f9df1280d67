from __future__ import annotations
import logging
import time
from typing import Any, NamedTuple, Optional

import httpx

from heliconelog.core.metrics import record_vendor_event
from heliconelog.core.records import LogRecord
from heliconelog.core.settings import DEFAULT_HELICONE_LOG_URL

log = logging.getLogger("heliconelog.logger")

DEFAULT_TIMEOUT_S = 10.0


class SubmitResult(NamedTuple):
    ok: bool
    diagnostic: Optional[str] = None
    status: Optional[int] = None


class HeliconeLogger:
    """
    Best-effort async forwarder of LogRecords to the Helicone custom-log endpoint.

    `log()` never raises: transport failures and non-2xx replies are reported
    on the "heliconelog.logger" channel and the call still resolves. Each call
    is exactly one POST; nothing is retried or buffered. Instances only hold
    configuration and can be shared across concurrent tasks.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_HELICONE_LOG_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._base_url = base_url
        self._timeout_s = float(timeout_s)
        self._client = client
        if not self._api_key:
            log.warning("helicone: HELICONE_API_KEY not configured, telemetry disabled")

    @classmethod
    def from_settings(cls, settings: Any, *, client: Optional[httpx.AsyncClient] = None) -> "HeliconeLogger":
        return cls(
            getattr(settings, "HELICONE_API_KEY", ""),
            base_url=getattr(settings, "HELICONE_LOG_URL", "") or DEFAULT_HELICONE_LOG_URL,
            timeout_s=getattr(settings, "HELICONE_TIMEOUT_S", DEFAULT_TIMEOUT_S),
            client=client,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, body: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self._base_url, json=body, headers=self._headers(), timeout=self._timeout_s
            )
        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            return await client.post(self._base_url, json=body, headers=self._headers())

    async def _submit(self, record: LogRecord) -> SubmitResult:
        if not record.timing.is_finalized:
            return SubmitResult(False, "timing envelope not finalized; record dropped")

        try:
            r = await self._post(record.to_wire())
        except httpx.HTTPError as e:
            return SubmitResult(False, f"transport error: {type(e).__name__}: {e}")
        except Exception as e:
            return SubmitResult(False, f"unexpected error: {type(e).__name__}: {e}")

        if not r.is_success:
            return SubmitResult(False, f"HTTP error! status: {r.status_code}", r.status_code)
        return SubmitResult(True, None, r.status_code)

    async def log(self, record: LogRecord) -> None:
        """Submit one record. Always resolves to None."""
        if not self.enabled:
            log.debug("helicone.log: disabled, skipping url=%s", record.provider_request.url)
            return

        start = time.perf_counter()
        res = await self._submit(record)
        latency_ms = int((time.perf_counter() - start) * 1000)

        if res.ok:
            log.debug(
                "helicone.log: ok status=%s url=%s latency_ms=%d",
                res.status, record.provider_request.url, latency_ms,
            )
        else:
            log.warning(
                "Error logging to Helicone: %s url=%s",
                res.diagnostic, record.provider_request.url,
            )
        record_vendor_event(provider="helicone", event="log", ok=res.ok, latency_ms=latency_ms)


def new_logger(api_key: str) -> HeliconeLogger:
    return HeliconeLogger(api_key)


__all__ = ["HeliconeLogger", "SubmitResult", "new_logger"]
