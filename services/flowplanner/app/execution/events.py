"""Status events pushed to the caller's sink while a flow runs."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class EventStatus(str, Enum):
    pending = "pending"
    running = "running"
    retrying = "retrying"
    reviewing = "reviewing"
    completed = "completed"
    failed = "failed"
    rolling_back = "rolling_back"
    rolled_back = "rolled_back"
    skipped = "skipped"
    cancelled = "cancelled"


PROGRESS_REVIEWING = 90
PROGRESS_ROLLING_BACK = 95
PROGRESS_DONE = 100


def running_progress(attempt: int) -> int:
    return min(80, 10 * attempt)


@dataclass(frozen=True)
class NodeStatusEvent:
    node_id: str
    status: EventStatus
    progress: int
    timestamp: datetime
    attempt: int = 0
    output: dict[str, Any] | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "status": self.status.value,
            "progress": self.progress,
            "timestamp": self.timestamp.isoformat(),
            "attempt": self.attempt,
            "output": self.output,
            "error": self.error,
        }


__all__ = [
    "EventStatus",
    "NodeStatusEvent",
    "PROGRESS_DONE",
    "PROGRESS_REVIEWING",
    "PROGRESS_ROLLING_BACK",
    "running_progress",
]
