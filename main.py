from __future__ import annotations
import sys
import asyncio
import logging

from heliconelog.core.settings import settings

# Configure logging early
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    stream=sys.stdout,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    force=True,
)
log = logging.getLogger("heliconelog")

from heliconelog.core.metrics import get_vendor_summary
from heliconelog.workflows.visa_calculator import run_visa_calculator


async def main() -> int:
    log.info("settings: %s", settings.as_dict())
    run = await run_visa_calculator(settings)
    log.info("run: id=%s status=%s", run.get("id"), run.get("status"))
    for row in get_vendor_summary():
        log.info("vendor_metrics: %s", row)
    return 0 if run.get("status") == "completed" else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
