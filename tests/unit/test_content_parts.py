# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from constants import TECH_ERROR_MESSAGE
from context.conversation import ConversationTurn, history_from_dicts
from context.parts import OpaquePart, TextPart, normalize, render
from context.serialization import build_outbound_messages


@pytest.mark.parametrize("content", [
    None,
    "",
    [],
    [None, 3, 4.5],
    {"type": "text", "text": "not a list"},
    42,
])
def test_normalize_never_returns_empty(content: Any) -> None:
    parts = normalize(content)

    assert parts
    assert render(parts)


@pytest.mark.parametrize("content", [None, [], [None], [{"type": "text", "text": "   "}], ""])
def test_render_falls_back_to_tech_error(content: Any) -> None:
    assert render(normalize(content)) == TECH_ERROR_MESSAGE


def test_normalize_decodes_mixed_list() -> None:
    image = {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}}

    parts = normalize(["hello", {"type": "text", "text": 42}, {"text": "no type"}, image, 7])

    assert parts == [
        TextPart(text="hello"),
        TextPart(text="42"),
        TextPart(text="no type"),
        OpaquePart(type="image_url", raw=image),
    ]


def test_render_joins_stripped_text_and_ignores_opaque() -> None:
    parts = normalize([" first ", {"type": "image_url", "image_url": {}}, "", "second\n"])

    assert render(parts) == "first\nsecond"


def test_stored_bare_string_is_a_user_turn() -> None:
    history = history_from_dicts(["hi there", {"content": "no role"}, 5])

    assert history == [ConversationTurn.user("hi there")]


def test_outbound_messages_shape() -> None:
    tool_call = {
        "id": "call_1",
        "type": "function",
        "function": {"name": "search_internet", "arguments": "{\"query\": \"x\"}"},
    }
    history: list[Any] = [
        {"role": "user", "content": "find x"},
        {"role": "assistant", "content": None, "tool_calls": [tool_call]},
        {"role": "tool", "tool_call_id": "call_1", "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]},
        {"content": "missing role"},
        ConversationTurn.assistant("x is y"),
    ]

    messages = build_outbound_messages(history, "SYSTEM")

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool", "assistant"]
    assert messages[0]["content"] == [{"type": "text", "text": "SYSTEM"}]
    assert messages[1]["content"] == [{"type": "text", "text": "find x"}]
    assert messages[2]["tool_calls"] == [tool_call]
    assert messages[3]["tool_call_id"] == "call_1"
    assert isinstance(messages[3]["content"], str)
    assert json.loads(messages[3]["content"]) == [
        {"type": "text", "text": "a"},
        {"type": "text", "text": "b"},
    ]
    assert messages[4]["content"] == [{"type": "text", "text": "x is y"}]


def test_tool_turn_with_single_text_is_sent_verbatim() -> None:
    turn = ConversationTurn.tool("call_9", {"results": [], "total_results": 0})

    (_, message) = build_outbound_messages([turn], "S")

    assert message == {
        "role": "tool",
        "tool_call_id": "call_9",
        "content": "{\"results\": [], \"total_results\": 0}",
    }


def test_turn_dict_round_trip_keeps_tool_calls() -> None:
    raw = {
        "role": "assistant",
        "content": [{"type": "text", "text": "checking"}],
        "tool_calls": [{
            "id": "c1",
            "type": "function",
            "function": {"name": "search_internet", "arguments": {"query": "q"}},
        }],
    }

    turn = ConversationTurn.from_dict(raw)

    assert turn is not None
    assert turn.tool_calls[0].arguments_json == "{\"query\": \"q\"}"
    assert ConversationTurn.from_dict(turn.to_dict()) == turn
