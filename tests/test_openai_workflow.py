import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from heliconelog.core import retry_utils
from heliconelog.core.logger import HeliconeLogger
from heliconelog.core.settings import Settings
from heliconelog.providers import openai
from heliconelog.workflows.visa_calculator import run_visa_calculator


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    monkeypatch.setenv("METRICS_DB_PATH", "")
    retry_utils._rate_limiters.clear()
    retry_utils._rate_limiter_locks.clear()
    # no real backoff sleeps
    monkeypatch.setattr(retry_utils.random, "uniform", lambda a, b: 0.0)


def _cfg(**kw):
    base = dict(
        OPENAI_API_KEY="sk-test",
        HELICONE_API_KEY="hk-test",
        OPENAI_POLL_INTERVAL_S=0.0,
        OPENAI_POLL_TIMEOUT_S=5.0,
    )
    base.update(kw)
    return Settings(**base)


class FakeOpenAI:
    def __init__(self, run_statuses=("queued", "in_progress", "completed")):
        self.run_statuses = list(run_statuses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/assistants":
            return httpx.Response(200, json={"id": "asst_1", "object": "assistant"})
        if path == "/v1/threads":
            return httpx.Response(200, json={"id": "thread_1"})
        if path == "/v1/threads/thread_1/messages":
            return httpx.Response(200, json={"id": "msg_1"})
        if path == "/v1/threads/thread_1/runs" or path == "/v1/threads/thread_1/runs/run_1":
            status = self.run_statuses.pop(0)
            body = {"id": "run_1", "status": status}
            if status == "completed":
                body["usage"] = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
            return httpx.Response(200, json=body)
        return httpx.Response(404, json={"error": "not found"})


def test_make_client_requires_key():
    with pytest.raises(openai.OpenAIConfigError):
        openai.make_client(_cfg(OPENAI_API_KEY=""))


@pytest.mark.asyncio
async def test_create_assistant_sends_auth_and_beta_header():
    fake = FakeOpenAI()
    async with openai.make_client(_cfg(), transport=httpx.MockTransport(fake)) as http:
        res = await openai.create_assistant(http, name="n", instructions="i", model="gpt-4o-mini")

    assert res.status == 200
    assert res.result["id"] == "asst_1"
    req = fake.requests[0]
    assert req.headers["Authorization"] == "Bearer sk-test"
    assert req.headers["OpenAI-Beta"] == "assistants=v2"
    assert json.loads(req.content)["model"] == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_create_and_poll_run_until_terminal():
    fake = FakeOpenAI()
    async with openai.make_client(_cfg(), transport=httpx.MockTransport(fake)) as http:
        res = await openai.create_and_poll_run(http, "thread_1", assistant_id="asst_1", poll_interval_s=0)

    assert res.result["status"] == "completed"
    paths = [r.url.path for r in fake.requests]
    assert paths == [
        "/v1/threads/thread_1/runs",
        "/v1/threads/thread_1/runs/run_1",
        "/v1/threads/thread_1/runs/run_1",
    ]


@pytest.mark.asyncio
async def test_create_and_poll_run_times_out():
    fake = FakeOpenAI(run_statuses=["queued"])
    async with openai.make_client(_cfg(), transport=httpx.MockTransport(fake)) as http:
        with pytest.raises(openai.RunPollTimeout):
            await openai.create_and_poll_run(http, "thread_1", assistant_id="asst_1", timeout_s=0)


@pytest.mark.asyncio
async def test_provider_http_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": "bad"})

    async with openai.make_client(_cfg(), transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(httpx.HTTPStatusError):
            await openai.create_thread(http)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_exhausted(monkeypatch):
    async def no_sleep(_):
        return None

    monkeypatch.setattr(retry_utils.asyncio, "sleep", no_sleep)
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    async with openai.make_client(_cfg(), transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(retry_utils.RetryExhausted):
            await openai.create_thread(http)
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_visa_calculator_logs_two_records_in_one_session():
    fake = FakeOpenAI()
    submitted = []

    def helicone(request):
        submitted.append(json.loads(request.content))
        return httpx.Response(200)

    cfg = _cfg()
    logger = HeliconeLogger.from_settings(cfg, client=httpx.AsyncClient(transport=httpx.MockTransport(helicone)))
    async with openai.make_client(cfg, transport=httpx.MockTransport(fake)) as http:
        run = await run_visa_calculator(cfg, logger=logger, http=http)

    assert run["status"] == "completed"
    assert len(submitted) == 2
    first, second = submitted

    assert first["providerRequest"]["url"] == "https://api.openai.com/v1/assistants"
    assert first["providerResponse"]["json"]["data"][0]["assistant_id"] == "asst_1"
    assert first["providerResponse"]["headers"] == first["providerRequest"]["meta"]
    assert first["providerRequest"]["meta"]["Helicone-Session-Path"] == "/visa-calculator"

    meta = second["providerRequest"]["meta"]
    assert meta["Helicone-Session-Id"] == first["providerRequest"]["meta"]["Helicone-Session-Id"]
    assert meta["Helicone-Session-Path"] == "/visa-calculator/cost-calculation/result"
    assert second["providerResponse"]["headers"] == {}
    assert second["providerResponse"]["json"]["usage"]["total_tokens"] == 15
    for rec in submitted:
        assert rec["timing"]["endTime"]["seconds"] >= rec["timing"]["startTime"]["seconds"]


@pytest.mark.asyncio
async def test_visa_calculator_survives_helicone_outage():
    fake = FakeOpenAI()

    def helicone(request):
        raise httpx.ReadTimeout("hung", request=request)

    cfg = _cfg()
    logger = HeliconeLogger.from_settings(cfg, client=httpx.AsyncClient(transport=httpx.MockTransport(helicone)))
    async with openai.make_client(cfg, transport=httpx.MockTransport(fake)) as http:
        run = await run_visa_calculator(cfg, logger=logger, http=http)

    assert run["status"] == "completed"
