import os
import sqlite3
from datetime import datetime, timezone
import logging
from typing import List, Dict, Any, Optional

log = logging.getLogger("heliconelog.metrics")

_CREATE_VENDOR_METRICS = """
    CREATE TABLE IF NOT EXISTS vendor_metrics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        provider TEXT NOT NULL,
        event TEXT NOT NULL,
        ok INTEGER NOT NULL,
        latency_ms INTEGER,
        created_at TEXT NOT NULL
    )
"""


def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def _resolve_db_path(db_path: Optional[str] = None) -> str:
    if db_path is not None:
        return db_path
    # env wins over settings loaded at import; an empty value disables
    if "METRICS_DB_PATH" in os.environ:
        return os.environ["METRICS_DB_PATH"].strip()
    from heliconelog.core.settings import settings
    return settings.METRICS_DB_PATH


def record_vendor_event(
    provider: str,
    event: str,
    ok: bool,
    latency_ms: int,
    db_path: Optional[str] = None,
) -> None:
    """
    Record a vendor API call to the vendor_metrics table.

    Args:
        provider: Vendor name (e.g., "openai", "helicone")
        event: Event type (e.g., "create_assistant", "log")
        ok: Whether the call succeeded
        latency_ms: Latency in milliseconds
        db_path: Override for METRICS_DB_PATH; empty disables recording
    """
    path = _resolve_db_path(db_path)
    if not path:
        return

    ok_int = 1 if ok else 0
    try:
        conn = sqlite3.connect(path, timeout=5)
        try:
            cur = conn.cursor()
            cur.execute(_CREATE_VENDOR_METRICS)
            cur.execute(
                """
                INSERT INTO vendor_metrics (provider, event, ok, latency_ms, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (provider, event, ok_int, int(latency_ms or 0), _utc_now_iso()),
            )
            conn.commit()
            log.debug(
                "metrics: recorded vendor_metrics provider=%s event=%s ok=%s latency_ms=%s",
                provider, event, ok, latency_ms,
            )
        finally:
            conn.close()
    except Exception as e:
        log.exception("metrics: vendor_metrics record failed for provider=%s event=%s: %s", provider, event, e)


def get_vendor_summary(db_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Return totals per provider/event.
    Returns list of dicts: { "provider": .., "event": .., "count": N, "avg_latency_ms": X, "successes": Y }
    """
    path = _resolve_db_path(db_path)
    if not path or not os.path.exists(path):
        return []

    results: List[Dict[str, Any]] = []
    try:
        conn = sqlite3.connect(path, timeout=5)
        try:
            cur = conn.cursor()
            cur.execute(_CREATE_VENDOR_METRICS)
            cur.execute(
                """
                SELECT provider, event, COUNT(*) AS cnt, AVG(latency_ms) AS avg_latency, SUM(ok) AS successes
                FROM vendor_metrics
                GROUP BY provider, event
                ORDER BY provider, event
                """
            )
            for row in cur.fetchall():
                results.append(
                    {
                        "provider": row[0],
                        "event": row[1],
                        "count": int(row[2] or 0),
                        "avg_latency_ms": float(row[3]) if row[3] is not None else 0.0,
                        "successes": int(row[4] or 0),
                    }
                )
        finally:
            conn.close()
    except Exception:
        log.exception("metrics: vendor summary failed")
        return []
    return results
