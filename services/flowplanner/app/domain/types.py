"""Domain-level enums and dataclasses for planning flows."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .documents import FlowNode


class AgentCategory(str, enum.Enum):
    setup = "setup"
    execution = "execution"
    testing = "testing"
    integration = "integration"
    review = "review"
    utility = "utility"


CATEGORY_ORDER: tuple[AgentCategory, ...] = (
    AgentCategory.setup,
    AgentCategory.execution,
    AgentCategory.testing,
    AgentCategory.integration,
    AgentCategory.review,
    AgentCategory.utility,
)

# Categories whose layer never becomes the connection source for later layers.
TERMINAL_CATEGORIES = frozenset({AgentCategory.review, AgentCategory.utility})


class NodeStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    reviewing = "reviewing"


class EdgeConditionType(str, enum.Enum):
    success = "success"
    failure = "failure"
    custom = "custom"


@dataclass(frozen=True)
class AgentDescriptor:
    """Catalog entry for one agent. Immutable for the life of a planning session."""

    id: str
    category: AgentCategory
    name: str = ""
    description: str = ""
    estimated_time: int = 15
    estimated_tokens: int = 50_000
    timeout: int = 300
    requires_review: bool = False
    tags: tuple[str, ...] = ()


@dataclass
class AgentSelection:
    agent_id: str
    reason: str
    confidence: float


@dataclass
class DependencyGraph:
    """Layered dependency graph between flow nodes.

    ``edges`` is source-keyed; each target list behaves as an insertion-ordered set.
    """

    nodes: dict[str, "FlowNode"] = field(default_factory=dict)
    edges: dict[str, list[str]] = field(default_factory=dict)
    layers: list[list[str]] = field(default_factory=list)
    critical_path: list[str] = field(default_factory=list)

    def add_edge(self, source_id: str, target_id: str) -> None:
        targets = self.edges.setdefault(source_id, [])
        if target_id not in targets:
            targets.append(target_id)

    def dependency_map(self) -> dict[str, list[str]]:
        """Return target -> source ids, the form the executor consumes."""
        dependencies: dict[str, list[str]] = {node_id: [] for node_id in self.nodes}
        for source_id, targets in self.edges.items():
            for target_id in targets:
                dependencies[target_id].append(source_id)
        return dependencies

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.edges.values())


__all__ = [
    "AgentCategory",
    "AgentDescriptor",
    "AgentSelection",
    "CATEGORY_ORDER",
    "DependencyGraph",
    "EdgeConditionType",
    "NodeStatus",
    "TERMINAL_CATEGORIES",
]
