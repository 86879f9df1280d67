from __future__ import annotations
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from heliconelog.core.metrics import record_vendor_event
from heliconelog.core.retry_utils import openai_retry
from heliconelog.core.settings import Settings, settings as default_settings
from heliconelog.instrument import ProviderResult

log = logging.getLogger("heliconelog.openai")

TERMINAL_RUN_STATUSES = {"completed", "failed", "cancelled", "expired", "incomplete", "requires_action"}


class OpenAIConfigError(RuntimeError):
    pass


class RunPollTimeout(TimeoutError):
    def __init__(self, run_id: str, status: str, waited_s: float):
        super().__init__(f"run {run_id} still {status!r} after {waited_s:.1f}s")
        self.run_id = run_id
        self.status = status


def make_client(cfg: Optional[Settings] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """AsyncClient preconfigured for the Assistants API (base url, bearer auth, beta header)."""
    cfg = cfg or default_settings
    if not cfg.OPENAI_API_KEY:
        log.error("openai: OPENAI_API_KEY not configured")
        raise OpenAIConfigError("OPENAI_API_KEY not configured")
    return httpx.AsyncClient(
        base_url=cfg.OPENAI_API_BASE.rstrip("/"),
        headers={
            "Authorization": f"Bearer {cfg.OPENAI_API_KEY}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        },
        timeout=30.0,
        transport=transport,
    )


def endpoint_url(http: httpx.AsyncClient, path: str) -> str:
    return str(http.base_url).rstrip("/") + path


async def _request(http: httpx.AsyncClient, method: str, path: str, event: str, body: Optional[Dict[str, Any]] = None) -> ProviderResult[Dict[str, Any]]:
    start_time = time.perf_counter()
    ok = False
    try:
        r = await http.request(method, path, json=body)
        r.raise_for_status()
        j = r.json()
        ok = True
        return ProviderResult(result=j, status=r.status_code, json=j)
    finally:
        latency_ms = int((time.perf_counter() - start_time) * 1000)
        record_vendor_event(provider="openai", event=event, ok=ok, latency_ms=latency_ms)


@openai_retry()
async def create_assistant(
    http: httpx.AsyncClient,
    *,
    name: str,
    instructions: str,
    model: str,
    tools: Optional[List[Dict[str, Any]]] = None,
) -> ProviderResult[Dict[str, Any]]:
    body = {
        "name": name,
        "instructions": instructions,
        "model": model,
        "tools": tools or [],
    }
    return await _request(http, "POST", "/v1/assistants", "create_assistant", body)


@openai_retry()
async def create_thread(http: httpx.AsyncClient) -> ProviderResult[Dict[str, Any]]:
    return await _request(http, "POST", "/v1/threads", "create_thread", {})


@openai_retry()
async def create_message(http: httpx.AsyncClient, thread_id: str, *, content: str, role: str = "user") -> ProviderResult[Dict[str, Any]]:
    body = {"role": role, "content": content}
    return await _request(http, "POST", f"/v1/threads/{thread_id}/messages", "create_message", body)


@openai_retry()
async def create_run(http: httpx.AsyncClient, thread_id: str, *, assistant_id: str, instructions: Optional[str] = None) -> ProviderResult[Dict[str, Any]]:
    body: Dict[str, Any] = {"assistant_id": assistant_id}
    if instructions:
        body["instructions"] = instructions
    return await _request(http, "POST", f"/v1/threads/{thread_id}/runs", "create_run", body)


@openai_retry()
async def retrieve_run(http: httpx.AsyncClient, thread_id: str, run_id: str) -> ProviderResult[Dict[str, Any]]:
    return await _request(http, "GET", f"/v1/threads/{thread_id}/runs/{run_id}", "retrieve_run")


async def create_and_poll_run(
    http: httpx.AsyncClient,
    thread_id: str,
    *,
    assistant_id: str,
    instructions: Optional[str] = None,
    poll_interval_s: float = 1.0,
    timeout_s: float = 120.0,
) -> ProviderResult[Dict[str, Any]]:
    """
    Create a run and poll it until it reaches a terminal status.
    Raises RunPollTimeout when `timeout_s` elapses first.
    """
    res = await create_run(http, thread_id, assistant_id=assistant_id, instructions=instructions)
    run = res.result
    run_id = run.get("id", "")
    started = time.monotonic()

    while run.get("status") not in TERMINAL_RUN_STATUSES:
        waited = time.monotonic() - started
        if waited >= timeout_s:
            raise RunPollTimeout(run_id, str(run.get("status")), waited)
        await asyncio.sleep(poll_interval_s)
        res = await retrieve_run(http, thread_id, run_id)
        run = res.result
        log.debug("openai.run: id=%s status=%s", run_id, run.get("status"))

    log.info("openai.run: id=%s finished status=%s", run_id, run.get("status"))
    return res
