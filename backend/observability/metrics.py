"""
Timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as JSONL events via observability.logger
- Never aggregate: one metric = one log event

Design notes:
- Durations use monotonic time for correctness
- Event timestamps (ts_ms) use wall-clock time for human readability
- The `timed()` context manager is the only public timing API; it
  cannot leak a started timer
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once
    - Exceptions inside the block do NOT suppress timing; the exception
      type is recorded under details["error"]

    The yielded dict is merged into details, so the block can attach
    outcome fields:

        with timed("llm_completion", session_id=sid) as extra:
            result = await call()
            extra["tool_calls"] = len(result.tool_calls)
    """
    extra: dict[str, Any] = {}
    start_ns = time.monotonic_ns()
    try:
        yield extra
    except BaseException as exc:
        extra["error"] = type(exc).__name__
        raise
    finally:
        duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        log_event({
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": duration_ms,
            "session_id": session_id,
            "details": {**(details or {}), **extra},
        })
