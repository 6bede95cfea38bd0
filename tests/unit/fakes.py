# pylint: disable=missing-module-docstring,missing-function-docstring

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Union

from adapters.llm.base import ChatTransport, Completion
from adapters.llm.errors import TransportTimeout
from orchestrator.runtime import TurnOrchestrator
from services.model_catalog import ModelCatalog
from session.continuation import ContinuationEngine
from storage.session_store import FileSessionStore, SessionRepository


# ---------------------------------------------------------------------
# Completion builders (go through the real response decoder)
# ---------------------------------------------------------------------

def text_completion(text: str) -> Completion:
    return Completion.from_response({
        "choices": [{"message": {"role": "assistant", "content": text}}],
    })


def tool_completion(
    call_id: str,
    query: str = "weather in Paris",
    name: str = "search_internet",
) -> Completion:
    return Completion.from_response({
        "choices": [{
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": call_id,
                    "type": "function",
                    "function": {
                        "name": name,
                        "arguments": json.dumps({"query": query}),
                    },
                }],
            },
        }],
    })


Step = Union[Completion, BaseException]


class ScriptedTransport(ChatTransport):
    """
    Replays steps in order; the last step repeats once the script runs out.

    delay_s emulates a slow endpoint: when it exceeds the call timeout the
    call sleeps for the timeout and raises TransportTimeout.
    """

    def __init__(self, *steps: Step, delay_s: float = 0.0) -> None:
        self._steps = list(steps)
        self._delay_s = delay_s
        self.calls: list[dict[str, Any]] = []

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
        self.calls.append({
            "model_id": model_id,
            "messages": messages,
            "tools": tools,
            "timeout": timeout,
            "max_tokens": max_tokens,
        })

        if self._delay_s:
            await asyncio.sleep(min(self._delay_s, timeout))
            if self._delay_s > timeout:
                raise TransportTimeout("fake timeout")

        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, BaseException):
            raise step
        return step


class FakeSearch:
    def __init__(self, result: dict[str, Any] | None = None) -> None:
        self.queries: list[str] = []
        self._result = result or {
            "results": [{
                "title": "Paris weather",
                "link": "https://example.com/paris",
                "snippet": "Sunny, 21 degrees",
            }],
            "total_results": 1,
        }

    async def search(self, query: str, *, session_id: str | None = None) -> dict[str, Any]:
        self.queries.append(query)
        return self._result


def make_engine(
    tmp_path: Path,
    transport: ChatTransport,
    *,
    sla_s: float = 1.0,
    max_wait_s: float = 5.0,
    max_call_timeout_s: float | None = None,
    write_margin_s: float = 0.0,
    search: FakeSearch | None = None,
) -> tuple[ContinuationEngine, SessionRepository]:
    repository = SessionRepository(
        conversations=FileSessionStore(tmp_path / "conversations"),
        pending=FileSessionStore(tmp_path / "pending"),
    )
    orchestrator = TurnOrchestrator(
        transport=transport,
        search=search or FakeSearch(),
        min_call_timeout_s=0.01,
        max_call_timeout_s=max_call_timeout_s or max_wait_s,
    )
    catalog = ModelCatalog(
        list_path=tmp_path / "models.txt",
        state_path=tmp_path / "model_state.json",
        default_model_id="openai/gpt-oss-20b:free",
    )
    engine = ContinuationEngine(
        orchestrator=orchestrator,
        repository=repository,
        catalog=catalog,
        sla_s=sla_s,
        max_wait_s=max_wait_s,
        grace_s=0.05,
        write_margin_s=write_margin_s,
    )
    return engine, repository
