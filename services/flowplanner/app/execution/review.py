"""Review decisions delivered to review-gated nodes."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from ..domain.errors import ReviewNotPendingError


class ReviewAction(str, Enum):
    approve = "approve"
    request_changes = "request-changes"
    reject = "reject"


@dataclass(frozen=True)
class ReviewDecision:
    node_id: str
    action: ReviewAction
    feedback: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReviewDecision":
        return cls(
            node_id=str(payload["nodeId"]),
            action=ReviewAction(payload["action"]),
            feedback=str(payload.get("feedback") or ""),
        )


class ReviewChannel:
    """One queue per review-gated node. Decisions sent early wait for the node to ask."""

    def __init__(self, node_ids: Iterable[str]) -> None:
        self._queues: dict[str, asyncio.Queue[ReviewDecision]] = {node_id: asyncio.Queue() for node_id in node_ids}
        self._awaiting: set[str] = set()

    def accepts(self, node_id: str) -> bool:
        return node_id in self._queues

    def submit(self, decision: ReviewDecision) -> None:
        queue = self._queues.get(decision.node_id)
        if queue is None:
            raise ReviewNotPendingError(decision.node_id)
        queue.put_nowait(decision)

    async def wait(self, node_id: str, timeout: float | None = None) -> ReviewDecision:
        queue = self._queues[node_id]
        self._awaiting.add(node_id)
        try:
            if timeout is None:
                return await queue.get()
            return await asyncio.wait_for(queue.get(), timeout=timeout)
        finally:
            self._awaiting.discard(node_id)

    def awaiting(self) -> list[str]:
        return sorted(self._awaiting)


__all__ = ["ReviewAction", "ReviewChannel", "ReviewDecision"]
