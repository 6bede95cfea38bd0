"""
Conversation turns.

Responsibilities:
- Define the ConversationTurn / ToolCallRequest value types
- Decode stored or provider-returned message dicts into turns
- Encode turns back into their stored (JSON) representation

Non-responsibilities:
- No persistence (see storage.session_store)
- No LLM formatting (see context.serialization)
- No orchestration decisions
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from context.parts import ContentPart, TextPart, normalize, render, to_wire


Role = Literal["system", "user", "assistant", "tool"]

_ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class ToolCallRequest:
    """
    One model-issued function call.

    raw keeps the provider's entry verbatim so it can be echoed back in
    later requests unchanged.
    """
    id: str
    name: str
    arguments_json: str
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @staticmethod
    def from_wire(entry: Mapping[str, Any]) -> ToolCallRequest:
        """Decode an OpenAI-style tool_calls entry."""
        function = entry.get("function") or {}
        if not isinstance(function, Mapping):
            function = {}

        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            # Some providers return already-decoded arguments
            arguments = json.dumps(arguments, ensure_ascii=False)

        return ToolCallRequest(
            id=str(entry.get("id") or ""),
            name=str(function.get("name") or ""),
            arguments_json=arguments,
            raw=dict(entry),
        )

    def to_wire(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


@dataclass(frozen=True)
class ConversationTurn:
    """
    Single conversation turn.

    Invariants:
    - parts is never empty
    - tool_call_id is set only on tool turns
    """
    role: Role
    parts: tuple[ContentPart, ...]
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None

    @property
    def text(self) -> str:
        """Flat display text (never empty)."""
        return render(list(self.parts))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @staticmethod
    def user(text: str) -> ConversationTurn:
        return ConversationTurn(role="user", parts=(TextPart(text=text),))

    @staticmethod
    def assistant(text: str) -> ConversationTurn:
        return ConversationTurn(role="assistant", parts=(TextPart(text=text),))

    @staticmethod
    def tool(tool_call_id: str, result: Mapping[str, Any]) -> ConversationTurn:
        return ConversationTurn(
            role="tool",
            parts=(TextPart(text=json.dumps(result, ensure_ascii=False)),),
            tool_call_id=tool_call_id,
        )

    # ------------------------------------------------------------------
    # Stored representation
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(entry: Any) -> ConversationTurn | None:
        """
        Decode a stored or provider message.

        Returns None for entries without a usable role. A bare string is
        treated as a user turn (oldest stored format).
        """
        if isinstance(entry, str):
            return ConversationTurn.user(entry)

        if not isinstance(entry, Mapping):
            return None

        role = entry.get("role")
        if role not in _ROLES:
            return None

        raw_calls = entry.get("tool_calls") or []
        tool_calls = tuple(
            ToolCallRequest.from_wire(c)
            for c in raw_calls
            if isinstance(c, Mapping)
        ) if isinstance(raw_calls, list) else ()

        tool_call_id = entry.get("tool_call_id")

        return ConversationTurn(
            role=role,
            parts=tuple(normalize(entry.get("content"))),
            tool_calls=tool_calls,
            tool_call_id=str(tool_call_id) if tool_call_id is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role,
            "content": to_wire(list(self.parts)),
        }
        if self.tool_calls:
            data["tool_calls"] = [c.to_wire() for c in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


def history_from_dicts(entries: Any) -> list[ConversationTurn]:
    """Decode a stored history list, skipping unusable entries."""
    if not isinstance(entries, list):
        return []

    history: list[ConversationTurn] = []
    for entry in entries:
        turn = ConversationTurn.from_dict(entry)
        if turn is not None:
            history.append(turn)
    return history


def history_to_dicts(history: list[ConversationTurn]) -> list[dict[str, Any]]:
    return [t.to_dict() for t in history]
