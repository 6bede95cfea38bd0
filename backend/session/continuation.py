"""
Continuation engine: one user turn across the platform's reply budget.

Responsibilities:
- Resolve a stored PendingRecord before anything else
- Handle built-in commands (greeting, help, reset, model switch)
- Run the model loop with the absolute deadline, waiting only up to the SLA
- When the SLA is missed, write a pending record and hand back a
  continuation that finishes the work after the reply is flushed

Non-responsibilities:
- HTTP, envelope shaping, truncation
- Model calls and tool execution (see orchestrator.runtime)

Rules:
- Only this module creates, rewrites or deletes PendingRecords
- New input while a record is pending is ignored; the caller gets the
  filler until the record resolves
- A continuation never overwrites a record it no longer owns
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from adapters.llm.errors import describe_error
from constants import (
    DEFAULT_MAX_WAIT_S,
    DEFAULT_MIN_CALL_TIMEOUT_S,
    DEFAULT_SLA_S,
    GREETING_TEMPLATE,
    HELP_MESSAGE,
    MODEL_SWITCH_TEMPLATE,
    NO_ANSWER_MESSAGE,
    PENDING_WRITE_MARGIN_S,
    RESET_CONFIRMATION_MESSAGE,
    SESSION_RESET_MESSAGE,
    STILL_WAITING_TEMPLATE,
    TECH_ERROR_MESSAGE,
    WAITING_MESSAGE,
)
from context.conversation import ConversationTurn
from observability.logger import log_event, log_exception
from orchestrator.runtime import LoopOutcome, LoopResult, TurnOrchestrator
from services.model_catalog import ModelCatalog, display_name
from session.commands import clean_input, is_help, is_model_switch, is_reset
from session.pending import PendingRecord, PendingStatus, UnreadableRecord
from storage.session_store import SessionRepository


Continuation = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class TurnReply:
    """
    Text for the current reply.

    continuation, when set, must be awaited after the reply has been
    delivered to the client.
    """
    text: str
    continuation: Continuation | None = None


class ContinuationEngine:
    """
    Per-process engine; all per-session state lives in the repository.
    """

    def __init__(
        self,
        *,
        orchestrator: TurnOrchestrator,
        repository: SessionRepository,
        catalog: ModelCatalog,
        sla_s: float = DEFAULT_SLA_S,
        max_wait_s: float = DEFAULT_MAX_WAIT_S,
        grace_s: float = DEFAULT_MIN_CALL_TIMEOUT_S,
        write_margin_s: float = PENDING_WRITE_MARGIN_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._orchestrator = orchestrator
        self._repo = repository
        self._catalog = catalog
        self._sla_s = sla_s
        self._max_wait_s = max_wait_s
        self._grace_s = grace_s
        self._write_margin_s = write_margin_s
        self._clock = clock

    @property
    def current_model_id(self) -> str:
        return self._catalog.current.model_id

    async def handle_turn(self, session_id: str, utterance: str) -> TurnReply:
        start = self._clock()

        raw = self._repo.load_pending(session_id)
        if raw is not None:
            reply = self._resolve_pending(session_id, raw, start)
            if reply is not None:
                return reply

        text = clean_input(utterance or "")
        if not text:
            return TurnReply(
                GREETING_TEMPLATE.format(model=display_name(self._catalog.current.model_id))
            )

        if is_reset(text):
            self._repo.clear_pending(session_id)
            self._repo.clear_history(session_id)
            log_event({"event_type": "SESSION_RESET", "session_id": session_id, "reason": "command"})
            return TurnReply(RESET_CONFIRMATION_MESSAGE)

        history = self._repo.load_history(session_id)
        history.append(ConversationTurn.user(text))
        self._repo.save_history(session_id, history)

        if is_help(text):
            return self._reply_and_record(session_id, history, HELP_MESSAGE)

        if is_model_switch(text):
            choice = self._catalog.switch_next()
            return self._reply_and_record(
                session_id, history,
                MODEL_SWITCH_TEMPLATE.format(model=display_name(choice.model_id)),
            )

        return await self._answer(session_id, history, start)

    # ------------------------------------------------------------------
    # Pending records
    # ------------------------------------------------------------------

    def _resolve_pending(self, session_id: str, raw: object, now: float) -> TurnReply | None:
        """
        Reply for a stored record, or None when the turn should proceed
        as if no record existed.
        """
        try:
            record = PendingRecord.from_dict(raw)
        except UnreadableRecord as exc:
            log_exception("PENDING_UNREADABLE", exc, session_id=session_id)
            self._repo.clear_pending(session_id)
            return None

        if record.is_expired(now, self._max_wait_s):
            self._repo.clear_pending(session_id)
            self._repo.clear_history(session_id)
            log_event({
                "event_type": "PENDING_EXPIRED",
                "session_id": session_id,
                "status": record.status.value,
                "elapsed_s": record.elapsed(now),
            })
            return TurnReply(SESSION_RESET_MESSAGE)

        if record.status is PendingStatus.READY:
            assert record.response is not None
            self._deliver_ready(session_id, record, record.response)
            return TurnReply(record.response.text)

        log_event({
            "event_type": "PENDING_STILL_RUNNING",
            "session_id": session_id,
            "elapsed_s": record.elapsed(now),
        })
        return TurnReply(STILL_WAITING_TEMPLATE.format(elapsed=record.elapsed(now)))

    def _deliver_ready(self, session_id: str, record: PendingRecord, response: LoopResult) -> None:
        appended = False
        if not record.conversation_updated:
            history = self._repo.load_history(session_id)
            if not history or history[-1] != response.message:
                history.append(response.message)
                self._repo.save_history(session_id, history)
                appended = True

        self._repo.clear_pending(session_id)
        log_event({
            "event_type": "PENDING_DELIVERED",
            "session_id": session_id,
            "appended": appended,
        })

    def _owns_record(self, session_id: str, started_at: float) -> bool:
        raw = self._repo.load_pending(session_id)
        try:
            current = PendingRecord.from_dict(raw)
        except UnreadableRecord:
            return False
        return current.status is PendingStatus.PENDING and current.started_at == started_at

    # ------------------------------------------------------------------
    # Model turns
    # ------------------------------------------------------------------

    def _reply_and_record(
        self,
        session_id: str,
        history: list[ConversationTurn],
        text: str,
    ) -> TurnReply:
        history.append(ConversationTurn.assistant(text))
        self._repo.save_history(session_id, history)
        return TurnReply(text)

    async def _answer(
        self,
        session_id: str,
        history: list[ConversationTurn],
        start: float,
    ) -> TurnReply:
        model = self._catalog.current

        async def save_history(turns: list[ConversationTurn]) -> None:
            self._repo.save_history(session_id, turns)

        task = asyncio.create_task(
            self._orchestrator.run(
                history,
                model_id=model.model_id,
                deadline=start + self._max_wait_s,
                save_history=save_history,
                session_id=session_id,
                max_tokens=model.max_tokens,
            )
        )

        # The record must be on disk before the SLA runs out
        soft_budget = max(
            0.0, start + self._sla_s - self._write_margin_s - self._clock()
        )
        done, _ = await asyncio.wait({task}, timeout=soft_budget)
        if task in done:
            return self._deliver_now(session_id, history, task)

        record = PendingRecord(
            status=PendingStatus.PENDING,
            started_at=start,
            history=tuple(history),
        )
        self._repo.save_pending(session_id, record.to_dict())
        log_event({
            "event_type": "SLA_EXCEEDED",
            "session_id": session_id,
            "sla_s": self._sla_s,
        })

        async def continue_work() -> None:
            await self._finish(session_id, history, record, task)

        return TurnReply(WAITING_MESSAGE, continuation=continue_work)

    def _deliver_now(
        self,
        session_id: str,
        history: list[ConversationTurn],
        task: asyncio.Task[LoopOutcome],
    ) -> TurnReply:
        try:
            outcome = task.result()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception("TURN_FAILED", exc, session_id=session_id)
            return self._reply_and_record(
                session_id, history, describe_error(exc) or TECH_ERROR_MESSAGE
            )

        self._repo.save_history(session_id, history)
        if outcome.result is None:
            return TurnReply(NO_ANSWER_MESSAGE)
        return TurnReply(outcome.result.text)

    async def _finish(
        self,
        session_id: str,
        history: list[ConversationTurn],
        record: PendingRecord,
        task: asyncio.Task[LoopOutcome],
    ) -> None:
        """Await the detached run and publish its result through the record."""
        budget = record.started_at + self._max_wait_s - self._clock()
        try:
            outcome = await asyncio.wait_for(task, timeout=max(0.0, budget) + self._grace_s)
            result = outcome.result
        except asyncio.TimeoutError:
            result = None
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception("CONTINUATION_FAILED", exc, session_id=session_id)
            turn = ConversationTurn.assistant(describe_error(exc) or TECH_ERROR_MESSAGE)
            history.append(turn)
            result = LoopResult.from_turn(turn)

        if not self._owns_record(session_id, record.started_at):
            log_event({
                "event_type": "CONTINUATION_DISCARDED",
                "session_id": session_id,
                "has_result": result is not None,
            })
            return

        if result is None:
            self._repo.save_pending(session_id, record.to_expired().to_dict())
            log_event({"event_type": "CONTINUATION_EXPIRED", "session_id": session_id})
            return

        self._repo.save_history(session_id, history)
        ready = record.to_ready(result, history=history, conversation_updated=True)
        self._repo.save_pending(session_id, ready.to_dict())
        log_event({"event_type": "CONTINUATION_READY", "session_id": session_id})
