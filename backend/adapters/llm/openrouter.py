"""
OpenAI-compatible chat-completion transport (OpenRouter by default).

Design notes:
- One AsyncOpenAI client per process, created by the app factory.
- SDK retries are disabled; a retry would silently eat the deadline.
- Each call gets its own httpx.Timeout so connect and total wait are
  both bounded by the caller's budget.
- Request logs carry a part-count placeholder instead of message bodies.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from adapters.llm.base import ChatTransport, Completion
from adapters.llm.errors import (
    ConnectionFailure,
    HttpStatusFailure,
    TransportTimeout,
)
from constants import MAX_CONNECT_TIMEOUT_S
from observability.logger import log_event
from observability.metrics import timed

if TYPE_CHECKING:
    from config import AppConfig


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build the process-wide client for the configured endpoint."""
    headers: dict[str, str] = {}
    if config.site_url:
        headers["HTTP-Referer"] = config.site_url
    if config.app_name:
        headers["X-Title"] = config.app_name

    return AsyncOpenAI(
        api_key=config.llm_api_key,
        base_url=config.llm_base_url,
        default_headers=headers or None,
        max_retries=0,
    )


def redact_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Copy of a request payload safe for logging.

    Every message body becomes "[omitted N parts]"; tool call arguments
    are reduced to a count.
    """
    clone = dict(payload)
    messages = clone.get("messages")
    if isinstance(messages, list):
        redacted: list[Any] = []
        for message in messages:
            if not isinstance(message, dict):
                redacted.append(message)
                continue
            entry = dict(message)
            if entry.get("tool_calls"):
                entry["tool_calls"] = f"[omitted {len(entry['tool_calls'])} calls]"
            content = entry.get("content")
            if content:
                count = len(content) if isinstance(content, list) else 1
                entry["content"] = f"[omitted {count} parts]"
            redacted.append(entry)
        clone["messages"] = redacted
    if "tools" in clone:
        clone["tools"] = [
            t.get("function", {}).get("name") for t in clone["tools"] or []
        ]
    return clone


class OpenRouterTransport(ChatTransport):
    """
    Concrete transport over the OpenAI SDK.

    Adapter is responsible ONLY for:
    - Issuing the request with the given timeout
    - Mapping SDK failures into the transport taxonomy
    - Normalizing the response body
    """

    def __init__(self, *, client: AsyncOpenAI) -> None:
        self._client = client

    async def complete(
        self,
        *,
        model_id: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        timeout: float,
        session_id: str | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        payload: dict[str, Any] = {"model": model_id, "messages": messages}
        if tools:
            payload["tools"] = tools
        if max_tokens:
            payload["max_tokens"] = max_tokens

        log_event({
            "event_type": "LLM_REQUEST",
            "session_id": session_id,
            "timeout_s": round(timeout, 3),
            "payload": redact_payload(payload),
        })

        request_timeout = httpx.Timeout(
            timeout,
            connect=min(MAX_CONNECT_TIMEOUT_S, timeout),
        )

        with timed(
            "llm_completion",
            session_id=session_id,
            details={"model": model_id, "timeout_s": round(timeout, 3)},
        ) as extra:
            try:
                # httpx bounds each phase; wait_for bounds the total
                response = await asyncio.wait_for(
                    self._client.chat.completions.create(
                        **payload,
                        timeout=request_timeout,
                    ),
                    timeout,
                )
            except (APITimeoutError, asyncio.TimeoutError) as exc:
                raise TransportTimeout(f"no completion within {timeout:.1f}s") from exc
            except APIStatusError as exc:
                body = _response_text(exc)
                log_event({
                    "event_type": "LLM_HTTP_ERROR",
                    "session_id": session_id,
                    "status_code": exc.status_code,
                    "body_len": len(body),
                })
                raise HttpStatusFailure(exc.status_code, body) from exc
            except APIConnectionError as exc:
                log_event({
                    "event_type": "LLM_CONNECTION_ERROR",
                    "session_id": session_id,
                    "exception": type(exc.__cause__ or exc).__name__,
                })
                raise ConnectionFailure(_connection_details(exc)) from exc

            body = response.model_dump()
            completion = Completion.from_response(body)
            extra["tool_calls"] = len(completion.tool_calls)
            extra["usable"] = completion.message is not None

        return completion


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _response_text(exc: APIStatusError) -> str:
    try:
        return exc.response.text.strip()
    except (AttributeError, httpx.ResponseNotRead):
        return str(exc.body or "").strip()


def _connection_details(exc: APIConnectionError) -> str:
    cause = exc.__cause__
    if cause is not None and str(cause).strip():
        return str(cause).strip()
    return str(exc).strip()
