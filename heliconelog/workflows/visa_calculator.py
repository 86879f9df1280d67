from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import httpx

from heliconelog.core.logger import HeliconeLogger
from heliconelog.core.session import HeliconeSession
from heliconelog.core.settings import Settings, settings as default_settings
from heliconelog.instrument import ProviderResult, instrument
from heliconelog.providers import openai

log = logging.getLogger("heliconelog.workflows.visa_calculator")

SESSION_NAME = "VisaCalculation"
ROOT_PATH = "/visa-calculator"

ASSISTANT_NAME = "VisaCalculator1"
ASSISTANT_INSTRUCTIONS = (
    "You are a visa application advisor with calculation capabilities. Provide information on visa "
    "processes and perform calculations related to visa fees, stay duration, and application "
    "processing times."
)
USER_QUESTION = (
    "If a Schengen visa costs €80 and I'm staying for 15 days, what's my daily visa cost? "
    "Round to 2 decimal places."
)
RUN_INSTRUCTIONS = (
    "Use the code interpreter to perform calculations. Provide a detailed explanation of the "
    "calculation process. Address the user as Valued Applicant."
)


def _usage(obj: Dict[str, Any]) -> Dict[str, int]:
    u = obj.get("usage") or {}
    return {
        "prompt_tokens": int(u.get("prompt_tokens") or 0),
        "completion_tokens": int(u.get("completion_tokens") or 0),
        "total_tokens": int(u.get("total_tokens") or 0),
    }


async def run_visa_calculator(
    cfg: Optional[Settings] = None,
    *,
    logger: Optional[HeliconeLogger] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Create an assistant, ask it one fee question and wait for the run.
    The assistant creation and the run are each reported to Helicone under
    one session. Returns the final run object.
    """
    cfg = cfg or default_settings
    logger = logger or HeliconeLogger.from_settings(cfg)
    session = HeliconeSession.new(SESSION_NAME, ROOT_PATH)
    model = cfg.OPENAI_MODEL

    owns_client = http is None
    http = http or openai.make_client(cfg)
    try:
        def _assistant_json(res: ProviderResult[Dict[str, Any]]) -> Dict[str, Any]:
            return {
                "call": "CreateAssistant",
                "data": [
                    {
                        "assistant_id": res.result.get("id"),
                        "model": model,
                        "usage": _usage(res.result),
                    }
                ],
            }

        assistant_res = await instrument(
            logger,
            lambda: openai.create_assistant(
                http,
                name=ASSISTANT_NAME,
                instructions=ASSISTANT_INSTRUCTIONS,
                tools=[{"type": "code_interpreter"}],
                model=model,
            ),
            url=openai.endpoint_url(http, "/v1/assistants"),
            request_json={"model": model, "data": [{"model": model}]},
            session=session,
            response_json=_assistant_json,
        )
        assistant_id = assistant_res.result.get("id", "")
        log.info("visa_calculator: assistant created id=%s session=%s", assistant_id, session.session_id)

        thread = (await openai.create_thread(http)).result
        thread_id = thread.get("id", "")
        await openai.create_message(http, thread_id, content=USER_QUESTION)

        def _run_json(res: ProviderResult[Dict[str, Any]]) -> Dict[str, Any]:
            return {
                "model": model,
                "call": "CreateAndPollRun",
                "assistant_id": assistant_id,
                "status": res.result.get("status"),
                "usage": _usage(res.result),
            }

        run_res = await instrument(
            logger,
            lambda: openai.create_and_poll_run(
                http,
                thread_id,
                assistant_id=assistant_id,
                instructions=RUN_INSTRUCTIONS,
                poll_interval_s=cfg.OPENAI_POLL_INTERVAL_S,
                timeout_s=cfg.OPENAI_POLL_TIMEOUT_S,
            ),
            url=openai.endpoint_url(http, "/v1/threads/runs"),
            request_json={},
            session=session.child("cost-calculation/result"),
            response_json=_run_json,
            session_headers_on_response=False,
        )
        run = run_res.result
        log.info("visa_calculator: run.status=%s usage=%s", run.get("status"), _usage(run))
        return run
    finally:
        if owns_client:
            await http.aclose()
