"""
Deadline-bounded model loop for a single user turn.

Responsibilities:
- Run the bounded ask -> tool -> ask loop against an absolute deadline
- Pick the per-call timeout from the remaining budget
- Turn transport failures into synthetic assistant turns
- Produce a best-effort result when the loop is cut short

Non-responsibilities:
- Pending records and delivery (see session.continuation)
- Persistence (the caller passes a save_history callback)
- Envelope shaping

Guarantees:
- At most max_iterations model calls per run
- Every returned model message is appended to history before anything else
- TransportTimeout never becomes a user-visible error turn
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from adapters.llm.base import ChatTransport, Completion
from adapters.llm.errors import (
    MalformedResponse,
    TransportError,
    TransportTimeout,
    describe_error,
)
from adapters.llm.prompts import SYSTEM_PROMPT_V1
from constants import (
    DEFAULT_MAX_CALL_TIMEOUT_S,
    DEFAULT_MAX_TOOL_ITERATIONS,
    DEFAULT_MIN_CALL_TIMEOUT_S,
    TECH_ERROR_MESSAGE,
)
from context.conversation import ConversationTurn
from context.serialization import build_outbound_messages
from observability.logger import log_event
from orchestrator.enums.state import LoopState
from orchestrator.tools import SearchBackend, build_tools_definition, run_tools


SaveHistory = Callable[[list[ConversationTurn]], Awaitable[None]]


@dataclass(frozen=True)
class LoopResult:
    """Text to speak plus the assistant turn it came from."""
    text: str
    message: ConversationTurn

    @staticmethod
    def from_turn(turn: ConversationTurn) -> LoopResult:
        return LoopResult(text=turn.text, message=turn)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "message": self.message.to_dict()}

    @staticmethod
    def from_dict(data: Any) -> LoopResult | None:
        if not isinstance(data, Mapping):
            return None
        message = ConversationTurn.from_dict(data.get("message"))
        text = data.get("text")
        if message is None:
            if not isinstance(text, str) or not text:
                return None
            message = ConversationTurn.assistant(text)
        if not isinstance(text, str) or not text:
            text = message.text
        return LoopResult(text=text, message=message)


@dataclass(frozen=True)
class LoopOutcome:
    """
    How a run ended.

    result is None only when nothing answerable was produced (deadline or
    iteration cap hit before any assistant turn existed).
    """
    result: LoopResult | None
    state: LoopState
    iterations: int


def call_timeout(remaining: float, *, min_s: float, max_s: float) -> float:
    """max(MIN, min(remaining, MAX))"""
    return max(min_s, min(remaining, max_s))


def best_effort(
    history: list[ConversationTurn],
    last_assistant: ConversationTurn | None,
) -> LoopResult | None:
    """
    Result for a run that stopped early.

    Prefers the last assistant turn produced in this run, then an
    assistant turn already in history after the latest user turn. Answers
    to earlier questions never count.
    """
    if last_assistant is not None:
        return LoopResult.from_turn(last_assistant)
    for turn in reversed(history):
        if turn.role == "user":
            break
        if turn.role == "assistant":
            return LoopResult.from_turn(turn)
    return None


class TurnOrchestrator:
    """
    Bounded model loop for one user turn.

    Architectural role:
    Sits between the continuation engine (which owns deadlines across
    invocations) and the transport/tool adapters (which know nothing of
    deadlines). One instance is shared across requests; run() keeps all
    per-turn state in locals.
    """

    def __init__(
        self,
        *,
        transport: ChatTransport,
        search: SearchBackend,
        system_prompt: str = SYSTEM_PROMPT_V1,
        max_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        min_call_timeout_s: float = DEFAULT_MIN_CALL_TIMEOUT_S,
        max_call_timeout_s: float = DEFAULT_MAX_CALL_TIMEOUT_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._search = search
        self._system_prompt = system_prompt
        self._max_iterations = max_iterations
        self._min_call_timeout_s = min_call_timeout_s
        self._max_call_timeout_s = max_call_timeout_s
        self._clock = clock
        self._tools = build_tools_definition()

    async def run(
        self,
        history: list[ConversationTurn],
        *,
        model_id: str,
        deadline: float,
        save_history: SaveHistory | None = None,
        session_id: str | None = None,
        max_tokens: int | None = None,
    ) -> LoopOutcome:
        """
        Run the loop until a final answer, an error turn, the deadline or
        the iteration cap.

        history is mutated in place: model turns, tool turns and
        synthetic error turns are appended as they happen.
        """
        iterations = 0
        last_assistant: ConversationTurn | None = None
        state = LoopState.ITERATING

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return self._stop_early(
                    history, last_assistant, iterations, session_id,
                    state=state, decision="deadline_before_call",
                )

            if iterations >= self._max_iterations:
                self._log(session_id, state, LoopState.DONE, "iteration_cap", iterations)
                return LoopOutcome(
                    result=best_effort(history, last_assistant),
                    state=LoopState.DONE,
                    iterations=iterations,
                )

            timeout = call_timeout(
                remaining,
                min_s=self._min_call_timeout_s,
                max_s=self._max_call_timeout_s,
            )
            self._log(
                session_id, state, LoopState.AWAITING_MODEL, "ask_model", iterations,
                {"timeout_s": round(timeout, 3)},
            )
            state = LoopState.AWAITING_MODEL
            iterations += 1

            try:
                completion = await self._ask(
                    history, model_id, timeout, session_id, max_tokens
                )
            except TransportTimeout:
                return self._stop_early(
                    history, last_assistant, iterations, session_id,
                    state=state, decision="call_timed_out",
                )
            except MalformedResponse as exc:
                log_event({
                    "event_type": "LLM_MALFORMED_RESPONSE",
                    "session_id": session_id,
                    "message": str(exc),
                })
                return self._error_turn(
                    history, TECH_ERROR_MESSAGE, iterations, session_id, state
                )
            except TransportError as exc:
                return self._error_turn(
                    history, describe_error(exc) or TECH_ERROR_MESSAGE,
                    iterations, session_id, state,
                )

            assert completion.message is not None
            history.append(completion.message)
            if completion.message.role == "assistant":
                last_assistant = completion.message

            if not completion.tool_calls:
                self._log(session_id, state, LoopState.GOT_FINAL_TEXT, "final_text", iterations)
                self._log(session_id, LoopState.GOT_FINAL_TEXT, LoopState.DONE, "done", iterations)
                return LoopOutcome(
                    result=LoopResult(text=completion.text, message=completion.message),
                    state=LoopState.DONE,
                    iterations=iterations,
                )

            self._log(
                session_id, state, LoopState.GOT_TOOL_CALLS, "run_tools", iterations,
                {"tool_calls": len(completion.tool_calls)},
            )
            state = LoopState.GOT_TOOL_CALLS
            await run_tools(
                completion.tool_calls, history, self._search, session_id=session_id
            )
            if save_history is not None:
                await save_history(history)

            if self._clock() >= deadline:
                return self._stop_early(
                    history, last_assistant, iterations, session_id,
                    state=state, decision="deadline_after_tools",
                )

            self._log(session_id, state, LoopState.ITERATING, "next_round", iterations)
            state = LoopState.ITERATING

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ask(
        self,
        history: list[ConversationTurn],
        model_id: str,
        timeout: float,
        session_id: str | None,
        max_tokens: int | None,
    ) -> Completion:
        completion = await self._transport.complete(
            model_id=model_id,
            messages=build_outbound_messages(history, self._system_prompt),
            tools=self._tools,
            timeout=timeout,
            session_id=session_id,
            max_tokens=max_tokens,
        )
        if completion.message is None:
            raise MalformedResponse("completion payload carried no message")
        return completion

    def _stop_early(
        self,
        history: list[ConversationTurn],
        last_assistant: ConversationTurn | None,
        iterations: int,
        session_id: str | None,
        *,
        state: LoopState,
        decision: str,
    ) -> LoopOutcome:
        result = best_effort(history, last_assistant)
        self._log(
            session_id, state, LoopState.DEADLINE_EXCEEDED, decision, iterations,
            {"has_result": result is not None},
        )
        return LoopOutcome(
            result=result,
            state=LoopState.DEADLINE_EXCEEDED,
            iterations=iterations,
        )

    def _error_turn(
        self,
        history: list[ConversationTurn],
        text: str,
        iterations: int,
        session_id: str | None,
        state: LoopState,
    ) -> LoopOutcome:
        turn = ConversationTurn.assistant(text)
        history.append(turn)
        self._log(session_id, state, LoopState.DONE, "error_turn", iterations)
        return LoopOutcome(
            result=LoopResult.from_turn(turn),
            state=LoopState.DONE,
            iterations=iterations,
        )

    @staticmethod
    def _log(
        session_id: str | None,
        state: LoopState,
        next_state: LoopState,
        decision: str,
        iteration: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        log_event({
            "event_type": "LOOP_STATE",
            "session_id": session_id,
            "state": state.value,
            "next_state": next_state.value,
            "decision": decision,
            "iteration": iteration,
            "details": details or {},
        })
