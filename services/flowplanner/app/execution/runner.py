"""Seams between the scheduler and the outside world."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from ..domain.documents import FlowNode

if TYPE_CHECKING:
    from .run_state import NodeRunState


@dataclass
class NodeRunRequest:
    flow_id: str
    node: FlowNode
    instructions: str
    inputs: dict[str, Any]
    attempt: int


@dataclass
class NodeRunResult:
    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0
    logs: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def coerce(cls, value: "NodeRunResult | Mapping[str, Any]") -> "NodeRunResult":
        if isinstance(value, NodeRunResult):
            return value
        if isinstance(value, Mapping):
            return cls(
                success=bool(value.get("success", False)),
                output=dict(value.get("output") or {}),
                duration=float(value.get("duration") or 0.0),
                logs=list(value.get("logs") or []),
                error=value.get("error"),
            )
        raise TypeError(f"Runner returned unsupported result type {type(value).__name__}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "duration": self.duration,
            "logs": self.logs,
            "error": self.error,
        }


class NodeRunner(Protocol):
    async def run(self, request: NodeRunRequest) -> NodeRunResult | Mapping[str, Any]:
        ...


class RollbackHandler(Protocol):
    async def rollback(self, node: FlowNode, state: "NodeRunState") -> None:
        ...


class Clock(Protocol):
    def now(self) -> float:
        ...

    def utcnow(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    def now(self) -> float:
        return time.monotonic()

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


__all__ = ["Clock", "NodeRunRequest", "NodeRunResult", "NodeRunner", "RollbackHandler", "SystemClock"]
