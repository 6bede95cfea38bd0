"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Never log raw user or model content (callers pass counts, not bodies)
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def now_ms() -> int:
    """Wall-clock milliseconds for event timestamps."""
    return time.time_ns() // 1_000_000


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for:
    - Supplying event_type and any correlation fields (session_id, ...)

    This function:
    - Fills in ts_ms when the caller did not
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    payload = dict(event)
    payload.setdefault("ts_ms", now_ms())

    try:
        line = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback, logging must never crash a request
        fallback: dict[str, Any] = {
            "ts_ms": payload.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "original_event_type": str(payload.get("event_type")),
            "error": str(e),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def log_exception(
    event_type: str,
    exc: BaseException,
    **fields: Any,
) -> None:
    """Log an exception by type name and message alongside correlation fields."""
    log_event({
        "event_type": event_type,
        "exception": type(exc).__name__,
        "message": str(exc),
        **fields,
    })
