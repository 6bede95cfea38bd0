"""
Chat-completion transport contract.

Purpose:
- Define the interface for one (non-streaming) chat completion.
- Keep iteration, deadlines, tool execution and persistence
  OUT of the adapter.

Rules:
- No retries.
- No knowledge of sessions, pending state or the voice platform.
- Failures surface as adapters.llm.errors exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from context.conversation import ConversationTurn, ToolCallRequest
from context.parts import normalize, render


@dataclass(frozen=True)
class Completion:
    """
    Normalized completion result.

    message is None when the payload carried no usable message; the
    caller treats that as MalformedResponse.
    """
    text: str
    message: ConversationTurn | None
    tool_calls: tuple[ToolCallRequest, ...] = ()

    @staticmethod
    def from_response(body: Mapping[str, Any]) -> Completion:
        """Decode a {choices: [{message: {...}}]} response body."""
        message: Any = None
        choices = body.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
            message = choices[0].get("message")

        if not isinstance(message, Mapping) or not message:
            return Completion(text="", message=None)

        parts = tuple(normalize(message.get("content")))
        raw_calls = message.get("tool_calls")
        tool_calls = tuple(
            ToolCallRequest.from_wire(c)
            for c in raw_calls
            if isinstance(c, Mapping)
        ) if isinstance(raw_calls, list) else ()

        role = message.get("role") or "assistant"
        if role not in ("assistant", "user", "system", "tool"):
            role = "assistant"

        turn = ConversationTurn(role=role, parts=parts, tool_calls=tool_calls)
        return Completion(text=render(list(parts)), message=turn, tool_calls=tool_calls)


class ChatTransport(ABC):
    """
    Abstract base class for chat-completion transports.

    The adapter is a *dumb pipe*:
    messages -> vendor -> Completion.

    Orchestrator responsibilities (NOT here):
    - Deadlines and per-call timeout selection
    - Tool execution
    - Iteration bounds
    - What to do with failures
    """

    @abstractmethod
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
        """
        Issue one chat completion.

        Contract:
        - timeout bounds both connection and total wait.
        - max_tokens, when set, caps the completion length.
        - Exceeding timeout raises TransportTimeout.
        - Network failures raise ConnectionFailure.
        - Non-2xx responses raise HttpStatusFailure.
        - A 2xx payload without a message returns Completion(message=None).
        - Must NOT retry internally.
        """
        raise NotImplementedError
