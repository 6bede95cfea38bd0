# pylint: disable=missing-module-docstring,missing-function-docstring

import time
from typing import Any

import pytest

from adapters.llm.base import Completion
from adapters.llm.errors import ConnectionFailure, HttpStatusFailure, TransportTimeout
from constants import TECH_ERROR_MESSAGE
from context.conversation import ConversationTurn
from orchestrator.enums.state import LoopState
from orchestrator.runtime import TurnOrchestrator, call_timeout

from fakes import FakeSearch, ScriptedTransport, text_completion, tool_completion


def _orchestrator(transport: ScriptedTransport, **kwargs: Any) -> TurnOrchestrator:
    return TurnOrchestrator(transport=transport, search=FakeSearch(), **kwargs)


def test_call_timeout_is_clamped() -> None:
    assert call_timeout(100.0, min_s=1.0, max_s=25.0) == 25.0
    assert call_timeout(3.5, min_s=1.0, max_s=25.0) == 3.5
    assert call_timeout(0.2, min_s=1.0, max_s=25.0) == 1.0


@pytest.mark.asyncio
async def test_final_text_in_one_call() -> None:
    transport = ScriptedTransport(text_completion("Paris"))
    history = [ConversationTurn.user("capital of France?")]

    outcome = await _orchestrator(transport).run(
        history, model_id="m", deadline=time.time() + 30, max_tokens=512,
    )

    assert outcome.state is LoopState.DONE
    assert outcome.iterations == 1
    assert outcome.result is not None
    assert outcome.result.text == "Paris"
    assert history[-1] == ConversationTurn.assistant("Paris")
    assert transport.calls[0]["model_id"] == "m"
    assert transport.calls[0]["max_tokens"] == 512
    assert transport.calls[0]["tools"][0]["function"]["name"] == "search_internet"
    assert transport.calls[0]["messages"][0]["role"] == "system"


@pytest.mark.asyncio
async def test_per_call_timeout_capped_by_max() -> None:
    transport = ScriptedTransport(text_completion("ok"))

    await _orchestrator(transport, max_call_timeout_s=25.0).run(
        [ConversationTurn.user("q")], model_id="m", deadline=time.time() + 300,
    )

    assert transport.calls[0]["timeout"] == 25.0


@pytest.mark.asyncio
async def test_tool_round_history_shape() -> None:
    transport = ScriptedTransport(tool_completion("call_1"), text_completion("Sunny in Paris"))
    history = [ConversationTurn.user("weather in Paris?")]
    saved: list[list[str]] = []

    async def save_history(turns: list[ConversationTurn]) -> None:
        saved.append([t.role for t in turns])

    outcome = await _orchestrator(transport).run(
        history, model_id="m", deadline=time.time() + 30, save_history=save_history,
    )

    assert [t.role for t in history] == ["user", "assistant", "tool", "assistant"]
    assert history[1].tool_calls[0].id == "call_1"
    assert history[2].tool_call_id == "call_1"
    assert outcome.result is not None
    assert outcome.result.text == "Sunny in Paris"
    assert outcome.iterations == 2
    assert saved == [["user", "assistant", "tool"]]

    # Second request carries the tool result back to the model
    second = transport.calls[1]["messages"]
    assert [m["role"] for m in second] == ["system", "user", "assistant", "tool"]


@pytest.mark.asyncio
async def test_adversarial_model_is_cut_off_at_max_iterations() -> None:
    transport = ScriptedTransport(tool_completion("again"))
    history = [ConversationTurn.user("loop forever")]

    outcome = await _orchestrator(transport, max_iterations=3).run(
        history, model_id="m", deadline=time.time() + 30,
    )

    assert len(transport.calls) == 3
    assert outcome.iterations == 3
    # Best effort is the last tool-call-bearing assistant turn
    assert outcome.result is not None
    assert outcome.result.message.tool_calls
    assert outcome.result.message is history[-2]
    assert [t.role for t in history] == ["user"] + ["assistant", "tool"] * 3


@pytest.mark.asyncio
async def test_past_deadline_makes_no_call_and_returns_trailing_assistant() -> None:
    transport = ScriptedTransport(text_completion("never"))
    history = [
        ConversationTurn.user("hi"),
        ConversationTurn.assistant("hello there"),
    ]

    outcome = await _orchestrator(transport).run(
        history, model_id="m", deadline=time.time() - 1,
    )

    assert transport.calls == []
    assert outcome.state is LoopState.DEADLINE_EXCEEDED
    assert outcome.result is not None
    assert outcome.result.text == "hello there"
    assert len(history) == 2


@pytest.mark.asyncio
async def test_answer_to_an_earlier_question_is_not_reused() -> None:
    transport = ScriptedTransport(text_completion("never"))
    history = [
        ConversationTurn.user("hi"),
        ConversationTurn.assistant("hello there"),
        ConversationTurn.user("and now?"),
    ]

    outcome = await _orchestrator(transport).run(
        history, model_id="m", deadline=time.time() - 1,
    )

    assert transport.calls == []
    assert outcome.state is LoopState.DEADLINE_EXCEEDED
    assert outcome.result is None


@pytest.mark.asyncio
async def test_timed_out_call_on_new_question_has_no_result() -> None:
    transport = ScriptedTransport(text_completion("late"), delay_s=1.0)
    history = [
        ConversationTurn.user("q1"),
        ConversationTurn.assistant("OLD ANSWER"),
        ConversationTurn.user("q2"),
    ]

    outcome = await _orchestrator(
        transport, min_call_timeout_s=0.01, max_call_timeout_s=0.05
    ).run(history, model_id="m", deadline=time.time() + 30)

    assert len(transport.calls) == 1
    assert outcome.state is LoopState.DEADLINE_EXCEEDED
    assert outcome.result is None
    assert [t.text for t in history] == ["q1", "OLD ANSWER", "q2"]


@pytest.mark.asyncio
async def test_past_deadline_without_assistant_is_no_answer() -> None:
    outcome = await _orchestrator(ScriptedTransport(text_completion("x"))).run(
        [ConversationTurn.user("hi")], model_id="m", deadline=time.time() - 1,
    )

    assert outcome.result is None


@pytest.mark.asyncio
async def test_deadline_after_tools_keeps_tool_call_turn() -> None:
    now = [1000.0]

    def clock() -> float:
        return now[0]

    class AdvancingSearch(FakeSearch):
        async def search(self, query: str, *, session_id: str | None = None) -> dict[str, Any]:
            now[0] += 60
            return await super().search(query, session_id=session_id)

    transport = ScriptedTransport(tool_completion("c1"), text_completion("too late"))
    orchestrator = TurnOrchestrator(transport=transport, search=AdvancingSearch(), clock=clock)
    history = [ConversationTurn.user("search it")]

    outcome = await orchestrator.run(history, model_id="m", deadline=1030.0)

    assert len(transport.calls) == 1
    assert outcome.state is LoopState.DEADLINE_EXCEEDED
    assert outcome.result is not None
    assert outcome.result.message.tool_calls[0].id == "c1"
    assert outcome.result.text == TECH_ERROR_MESSAGE
    assert [t.role for t in history] == ["user", "assistant", "tool"]


@pytest.mark.asyncio
@pytest.mark.parametrize("error, text", [
    (HttpStatusFailure(502, "Bad gateway"), "Model API error code=502 Bad gateway"),
    (ConnectionFailure("refused", errno=111), "Connection error to model API code=111 refused"),
    (ConnectionFailure(""), TECH_ERROR_MESSAGE),
])
async def test_transport_error_becomes_final_assistant_turn(error: Exception, text: str) -> None:
    transport = ScriptedTransport(error)
    history = [ConversationTurn.user("q")]

    outcome = await _orchestrator(transport).run(history, model_id="m", deadline=time.time() + 30)

    assert len(transport.calls) == 1
    assert outcome.result is not None
    assert outcome.result.text == text
    assert history[-1] == ConversationTurn.assistant(text)


@pytest.mark.asyncio
async def test_malformed_response_becomes_tech_error_turn(events: list[dict[str, Any]]) -> None:
    transport = ScriptedTransport(Completion(text="", message=None))
    history = [ConversationTurn.user("q")]

    outcome = await _orchestrator(transport).run(history, model_id="m", deadline=time.time() + 30)

    assert outcome.result is not None
    assert outcome.result.text == TECH_ERROR_MESSAGE
    assert history[-1] == ConversationTurn.assistant(TECH_ERROR_MESSAGE)
    assert any(e["event_type"] == "LLM_MALFORMED_RESPONSE" for e in events)


@pytest.mark.asyncio
async def test_timeout_is_not_a_user_visible_error() -> None:
    transport = ScriptedTransport(TransportTimeout("slow"))
    history = [ConversationTurn.user("q")]

    outcome = await _orchestrator(transport).run(history, model_id="m", deadline=time.time() + 30)

    assert outcome.state is LoopState.DEADLINE_EXCEEDED
    assert outcome.result is None
    assert [t.role for t in history] == ["user"]


@pytest.mark.asyncio
async def test_loop_states_are_logged(events: list[dict[str, Any]]) -> None:
    transport = ScriptedTransport(tool_completion("c1"), text_completion("done"))

    await _orchestrator(transport).run(
        [ConversationTurn.user("q")], model_id="m", deadline=time.time() + 30,
    )

    decisions = [e["decision"] for e in events if e["event_type"] == "LOOP_STATE"]
    assert decisions == ["ask_model", "run_tools", "next_round", "ask_model", "final_text", "done"]
