"""
Pending record for answers still being produced after the reply went out.

At most one record exists per session. Only the continuation engine
creates, rewrites and deletes records.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping

from context.conversation import ConversationTurn, history_from_dicts, history_to_dicts
from orchestrator.runtime import LoopResult


class PendingStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    EXPIRED = "expired"


class UnreadableRecord(ValueError):
    """Stored record has an unknown status or a broken shape."""


@dataclass(frozen=True)
class PendingRecord:
    """
    Invariants:
    - response is set iff status is READY
    - started_at is the epoch second the originating turn began
    """
    status: PendingStatus
    started_at: float
    history: tuple[ConversationTurn, ...] = ()
    response: LoopResult | None = None
    conversation_updated: bool = False

    def is_expired(self, now: float, max_wait_s: float) -> bool:
        return self.status is PendingStatus.EXPIRED or now >= self.started_at + max_wait_s

    def elapsed(self, now: float) -> int:
        return max(0, int(now - self.started_at))

    def to_ready(
        self,
        response: LoopResult,
        *,
        history: list[ConversationTurn],
        conversation_updated: bool,
    ) -> PendingRecord:
        return replace(
            self,
            history=tuple(history),
            status=PendingStatus.READY,
            response=response,
            conversation_updated=conversation_updated,
        )

    def to_expired(self) -> PendingRecord:
        return replace(self, status=PendingStatus.EXPIRED, response=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status.value,
            "started_at": self.started_at,
            "history": history_to_dicts(list(self.history)),
        }
        if self.response is not None:
            data["response"] = self.response.to_dict()
            data["conversation_updated"] = self.conversation_updated
        return data

    @staticmethod
    def from_dict(data: Any) -> PendingRecord:
        """
        Raises:
            UnreadableRecord for unknown status, missing start time, or a
            ready record without a usable response.
        """
        if not isinstance(data, Mapping):
            raise UnreadableRecord("record is not an object")

        try:
            status = PendingStatus(data.get("status"))
        except ValueError as exc:
            raise UnreadableRecord(f"unknown status {data.get('status')!r}") from exc

        started_at = data.get("started_at")
        if isinstance(started_at, bool) or not isinstance(started_at, (int, float)):
            raise UnreadableRecord("started_at missing")

        response = LoopResult.from_dict(data.get("response"))
        if status is PendingStatus.READY and response is None:
            raise UnreadableRecord("ready record without response")

        return PendingRecord(
            status=status,
            started_at=float(started_at),
            history=tuple(history_from_dicts(data.get("history"))),
            response=response if status is PendingStatus.READY else None,
            conversation_updated=bool(data.get("conversation_updated", False)),
        )
