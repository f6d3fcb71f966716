"""Layered dependency graph construction and critical-path estimation."""
from __future__ import annotations

from typing import List, Sequence

from .documents import EdgeCondition, FlowEdge, FlowNode, ProjectRequirements
from .types import CATEGORY_ORDER, TERMINAL_CATEGORIES, AgentCategory, DependencyGraph, EdgeConditionType

# (execution agent prefix, testing agent prefix) pairs that test each other's output.
MATCHING_TEST_PREFIXES = frozenset(
    {
        ("react", "jest"),
        ("python", "pytest"),
        ("nodejs", "jest"),
        ("go", "go"),
    }
)


def should_connect(source: FlowNode, target: FlowNode, requirements: ProjectRequirements | None = None) -> bool:
    src, dst = source.category, target.category

    if src is AgentCategory.setup and dst is AgentCategory.execution:
        return True

    if src is AgentCategory.execution and dst is AgentCategory.testing:
        pair = (source.agent_id.split("-")[0], target.agent_id.split("-")[0])
        if pair in MATCHING_TEST_PREFIXES:
            return True
        return "e2e" in target.agent_id or "playwright" in target.agent_id

    if src is AgentCategory.testing and dst is AgentCategory.integration:
        return True

    if src is AgentCategory.integration and dst is AgentCategory.review:
        return True

    if src in (AgentCategory.review, AgentCategory.integration) and dst is AgentCategory.utility:
        return True

    return False


def find_critical_path(graph: DependencyGraph) -> list[str]:
    """Per layer, the unvisited node with the largest estimate (first wins ties).

    This is a layer-wise heuristic, not a longest path through the actual edges.
    """
    path: list[str] = []
    visited: set[str] = set()
    for layer in graph.layers:
        best_id: str | None = None
        best_time: int | None = None
        for node_id in layer:
            if node_id in visited:
                continue
            estimate = graph.nodes[node_id].estimated_time or 0
            if best_time is None or estimate > best_time:
                best_id, best_time = node_id, estimate
        if best_id is not None:
            path.append(best_id)
            visited.add(best_id)
    return path


def build_dependency_graph(nodes: Sequence[FlowNode], requirements: ProjectRequirements | None = None) -> DependencyGraph:
    graph = DependencyGraph()
    for node in nodes:
        graph.nodes[node.id] = node
        graph.edges[node.id] = []

    previous_layer: List[str] = []
    for category in CATEGORY_ORDER:
        current_layer = [node.id for node in nodes if node.category is category]
        if not current_layer:
            continue

        for source_id in previous_layer:
            for target_id in current_layer:
                if should_connect(graph.nodes[source_id], graph.nodes[target_id], requirements):
                    graph.add_edge(source_id, target_id)

        graph.layers.append(current_layer)
        # Review and utility layers never feed later layers; the last other layer stays the source.
        if category not in TERMINAL_CATEGORIES:
            previous_layer = current_layer

    graph.critical_path = find_critical_path(graph)
    return graph


def create_edges(graph: DependencyGraph) -> list[FlowEdge]:
    edges: list[FlowEdge] = []
    for source_id, targets in graph.edges.items():
        for target_id in targets:
            edges.append(
                FlowEdge(
                    id=f"edge-{len(edges) + 1}",
                    source=source_id,
                    target=target_id,
                    condition=EdgeCondition(type=EdgeConditionType.success),
                )
            )
    return edges


def layer_maxima(graph: DependencyGraph) -> list[int]:
    return [max((graph.nodes[node_id].estimated_time or 0) for node_id in layer) for layer in graph.layers]


def estimated_total_time(graph: DependencyGraph) -> int:
    """Sum of the per-layer maximum estimates."""
    return sum(layer_maxima(graph))


__all__ = [
    "build_dependency_graph",
    "create_edges",
    "estimated_total_time",
    "find_critical_path",
    "layer_maxima",
    "should_connect",
]
