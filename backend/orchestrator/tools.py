"""
Tool execution for model-issued function calls.

Rules:
- Exactly one tool turn per call, appended in call order, echoing the call id
- Bad arguments or an unknown name become an error payload in that turn
- Never raises; one bad call never aborts the round
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Protocol

from adapters.llm.errors import ToolFailure
from constants import SEARCH_TOOL_NAME
from context.conversation import ConversationTurn, ToolCallRequest
from observability.logger import log_event


class SearchBackend(Protocol):
    async def search(
        self,
        query: str,
        *,
        session_id: str | None = None,
    ) -> dict[str, Any]: ...


def build_tools_definition() -> list[dict[str, Any]]:
    """Function schema advertised to the model."""
    return [
        {
            "type": "function",
            "function": {
                "name": SEARCH_TOOL_NAME,
                "description": (
                    "Use this function when the user explicitly asks to "
                    "look something up on the internet."
                ),
                "parameters": {
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": (
                                "Google search query. Make it as precise "
                                "and informative as possible."
                            ),
                        },
                    },
                    "required": ["query"],
                },
            },
        },
    ]


def _search_query(call: ToolCallRequest) -> str:
    try:
        arguments = json.loads(call.arguments_json or "{}")
    except ValueError as exc:
        raise ToolFailure("Invalid search request format") from exc

    if not isinstance(arguments, dict):
        raise ToolFailure("Invalid search request format")

    query = arguments.get("query")
    if not isinstance(query, str) or not query.strip():
        raise ToolFailure("Invalid search request format")
    return query.strip()


async def _execute(
    call: ToolCallRequest,
    search: SearchBackend,
    session_id: str | None,
) -> dict[str, Any]:
    if call.name != SEARCH_TOOL_NAME:
        raise ToolFailure(f"Unknown function: {call.name}")
    return await search.search(_search_query(call), session_id=session_id)


async def run_tools(
    tool_calls: Iterable[ToolCallRequest],
    history: list[ConversationTurn],
    search: SearchBackend,
    *,
    session_id: str | None = None,
) -> list[ConversationTurn]:
    """Execute calls in order, appending one tool turn each to history."""
    for call in tool_calls:
        try:
            result = await _execute(call, search, session_id)
        except ToolFailure as exc:
            log_event({
                "event_type": "TOOL_FAILURE",
                "session_id": session_id,
                "tool": call.name,
                "message": str(exc),
            })
            result = {"error": str(exc), "results": []}

        log_event({
            "event_type": "TOOL_RESULT",
            "session_id": session_id,
            "tool": call.name,
            "tool_call_id": call.id,
            "ok": "error" not in result,
        })
        history.append(ConversationTurn.tool(call.id, result))

    return history
