"""Exceptions raised by the planning and execution engine."""
from __future__ import annotations


class FlowPlannerError(Exception):
    """Base exception for the flow planner."""


class CatalogError(FlowPlannerError):
    """Agent catalog could not be loaded."""


class FlowDefinitionError(FlowPlannerError):
    """Flow document or dependency map is malformed."""

    def __init__(self, message: str, node_id: str | None = None, edge_id: str | None = None) -> None:
        self.message = message
        self.node_id = node_id
        self.edge_id = edge_id
        super().__init__(message)


class NodeExecutionError(FlowPlannerError):
    """Node operation failed."""

    def __init__(self, node_id: str, agent_id: str, message: str, context: dict | None = None) -> None:
        self.node_id = node_id
        self.agent_id = agent_id
        self.context = context or {}
        super().__init__(f"Node '{node_id}' (agent '{agent_id}') failed: {message}")


class NodeTimeoutError(NodeExecutionError):
    """Node operation exceeded its timeout."""

    def __init__(self, node_id: str, agent_id: str, timeout: float) -> None:
        super().__init__(node_id, agent_id, f"Execution exceeded timeout ({timeout}s)")
        self.timeout = timeout


class RollbackError(FlowPlannerError):
    def __init__(self, node_id: str, message: str) -> None:
        self.node_id = node_id
        super().__init__(f"Rollback of node '{node_id}' failed: {message}")


class InvalidTransitionError(FlowPlannerError):
    def __init__(self, node_id: str, from_phase: str, to_phase: str) -> None:
        self.node_id = node_id
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(f"Node '{node_id}' cannot move from {from_phase} to {to_phase}")


class ReviewNotPendingError(FlowPlannerError):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' is not awaiting review in this run")


class ExecutionInProgressError(FlowPlannerError):
    """Executor is already running a flow."""


__all__ = [
    "CatalogError",
    "ExecutionInProgressError",
    "FlowDefinitionError",
    "FlowPlannerError",
    "InvalidTransitionError",
    "NodeExecutionError",
    "NodeTimeoutError",
    "ReviewNotPendingError",
    "RollbackError",
]
