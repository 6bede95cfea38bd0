"""
Conversation serialization for LLM consumption.

Responsibilities:
- Convert system prompt + stored history into the outbound
  chat-completion message list

Non-responsibilities:
- No storage
- No logging
- No orchestration decisions
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

from context.conversation import ConversationTurn
from context.parts import TextPart, to_wire


def build_outbound_messages(
    history: Iterable[ConversationTurn | Mapping[str, Any]],
    system_prompt: str,
) -> list[dict[str, Any]]:
    """
    Serialize history into LLM message format.

    Output format:
    [
        {"role": "system", "content": [{"type": "text", "text": "..."}]},
        {"role": "user", "content": [...]},
        {"role": "assistant", "content": [...], "tool_calls": [...]},
        {"role": "tool", "tool_call_id": "...", "content": "<json string>"},
        ...
    ]

    Rules:
    - System prompt is always first
    - Tool turns keep their tool_call_id; content is sent as one string
    - Other turns carry their parts, plus tool_calls verbatim when present
    - Entries without a role are skipped
    """
    messages: list[dict[str, Any]] = [{
        "role": "system",
        "content": [{"type": "text", "text": system_prompt}],
    }]

    for entry in history:
        turn = entry if isinstance(entry, ConversationTurn) else ConversationTurn.from_dict(entry)
        if turn is None:
            continue

        if turn.role == "tool":
            messages.append({
                "role": "tool",
                "tool_call_id": turn.tool_call_id or "",
                "content": _tool_content(turn),
            })
            continue

        message: dict[str, Any] = {
            "role": turn.role,
            "content": to_wire(list(turn.parts)),
        }
        if turn.tool_calls:
            message["tool_calls"] = [c.to_wire() for c in turn.tool_calls]
        messages.append(message)

    return messages


def _tool_content(turn: ConversationTurn) -> str:
    """A tool result is a single string; structured content is JSON-encoded."""
    if len(turn.parts) == 1 and isinstance(turn.parts[0], TextPart):
        return turn.parts[0].text
    return json.dumps(to_wire(list(turn.parts)), ensure_ascii=False)
