"""Per-node run-state owned by a single execution."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..domain.errors import InvalidTransitionError
from .runner import NodeRunResult


class RunPhase(str, Enum):
    pending = "pending"
    running = "running"
    reviewing = "reviewing"
    completed = "completed"
    failed = "failed"
    rolling_back = "rolling_back"
    rolled_back = "rolled_back"
    skipped = "skipped"
    cancelled = "cancelled"


_TRANSITIONS: dict[RunPhase, frozenset[RunPhase]] = {
    RunPhase.pending: frozenset({RunPhase.running, RunPhase.failed, RunPhase.skipped, RunPhase.cancelled}),
    RunPhase.running: frozenset({RunPhase.completed, RunPhase.reviewing, RunPhase.failed, RunPhase.cancelled}),
    RunPhase.reviewing: frozenset({RunPhase.running, RunPhase.completed, RunPhase.failed, RunPhase.cancelled}),
    # failed -> running is a retry
    RunPhase.failed: frozenset({RunPhase.running, RunPhase.rolling_back, RunPhase.cancelled}),
    RunPhase.rolling_back: frozenset({RunPhase.rolled_back, RunPhase.failed, RunPhase.cancelled}),
    RunPhase.completed: frozenset(),
    RunPhase.rolled_back: frozenset(),
    RunPhase.skipped: frozenset(),
    RunPhase.cancelled: frozenset(),
}


@dataclass
class NodeRunState:
    node_id: str
    agent_id: str
    instructions: str
    phase: RunPhase = RunPhase.pending
    attempt: int = 0
    started_at: float | None = None
    finished_at: float | None = None
    result: NodeRunResult | None = None
    error: str | None = None
    feedback: list[str] = field(default_factory=list)
    rolled_back: bool = False

    def can_transition(self, target: RunPhase) -> bool:
        return target in _TRANSITIONS[self.phase]

    def transition(self, target: RunPhase) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.node_id, self.phase.value, target.value)
        self.phase = target

    def start_attempt(self, now: float) -> None:
        self.transition(RunPhase.running)
        self.attempt += 1
        self.error = None
        if self.started_at is None:
            self.started_at = now

    def succeed(self, result: NodeRunResult, now: float, review: bool = False) -> None:
        self.result = result
        if review:
            self.transition(RunPhase.reviewing)
            return
        self.transition(RunPhase.completed)
        self.finished_at = now

    def approve(self, now: float) -> None:
        self.transition(RunPhase.completed)
        self.finished_at = now

    def request_changes(self, feedback: str) -> None:
        """Record reviewer feedback; the next attempt runs with the amended instructions."""
        if self.phase is not RunPhase.reviewing:
            raise InvalidTransitionError(self.node_id, self.phase.value, RunPhase.running.value)
        self.feedback.append(feedback)
        self.instructions = f"{self.instructions}\n\nReview feedback:\n{feedback}"

    def fail(self, error: str, now: float) -> None:
        self.transition(RunPhase.failed)
        self.error = error
        self.finished_at = now

    def begin_rollback(self) -> None:
        self.transition(RunPhase.rolling_back)

    def finish_rollback(self, now: float) -> None:
        self.transition(RunPhase.rolled_back)
        self.rolled_back = True
        self.finished_at = now

    def rollback_failed(self, error: str, now: float) -> None:
        self.transition(RunPhase.failed)
        self.error = f"{self.error}; {error}" if self.error else error
        self.finished_at = now

    def skip(self, reason: str, now: float) -> None:
        self.transition(RunPhase.skipped)
        self.error = reason
        self.finished_at = now

    def cancel(self, now: float) -> None:
        self.transition(RunPhase.cancelled)
        self.finished_at = now

    @property
    def duration(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at

    def as_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "agentId": self.agent_id,
            "status": self.phase.value,
            "attempts": self.attempt,
            "duration": self.duration,
            "error": self.error,
            "feedback": list(self.feedback),
            "rolledBack": self.rolled_back,
            "result": self.result.as_dict() if self.result else None,
        }


__all__ = ["NodeRunState", "RunPhase"]
