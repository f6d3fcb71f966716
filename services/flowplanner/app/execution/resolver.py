"""Dependency resolution over a flow document."""
from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from ..domain.documents import Flow, FlowNode
from ..domain.errors import FlowDefinitionError
from ..domain.types import EdgeConditionType


class DependencyResolver:
    """Validated, read-only view of who depends on whom.

    Predecessors come from ``dependency_map`` (target -> sources) when given,
    otherwise from the flow's edges. Edge conditions always come from the edges.
    """

    def __init__(self, flow: Flow, dependency_map: Mapping[str, Sequence[str]] | None = None) -> None:
        self._nodes: Dict[str, FlowNode] = {}
        for node in flow.nodes:
            if node.id in self._nodes:
                raise FlowDefinitionError(f"Duplicate node id '{node.id}'", node_id=node.id)
            self._nodes[node.id] = node

        self._conditions: Dict[tuple[str, str], EdgeConditionType] = {}
        derived: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        for edge in flow.edges:
            for role, endpoint in (("source", edge.source), ("target", edge.target)):
                if endpoint not in self._nodes:
                    raise FlowDefinitionError(
                        f"Edge '{edge.id}' references unknown {role} node '{endpoint}'",
                        node_id=endpoint,
                        edge_id=edge.id,
                    )
            self._conditions.setdefault((edge.source, edge.target), edge.condition.type)
            if edge.source not in derived[edge.target]:
                derived[edge.target].append(edge.source)

        if dependency_map is None:
            self._predecessors = derived
        else:
            self._predecessors = self._from_dependency_map(dependency_map)

        self._successors: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        for target, sources in self._predecessors.items():
            for source in sources:
                self._successors[source].append(target)

        self._order = self._topological_order()

    def _from_dependency_map(self, dependency_map: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
        predecessors: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        for target, sources in dependency_map.items():
            if target not in self._nodes:
                raise FlowDefinitionError(f"Dependency map references unknown node '{target}'", node_id=target)
            for source in sources:
                if source not in self._nodes:
                    raise FlowDefinitionError(
                        f"Dependency of '{target}' references unknown node '{source}'",
                        node_id=source,
                    )
                if source == target:
                    raise FlowDefinitionError(f"Node '{target}' depends on itself", node_id=target)
                if source not in predecessors[target]:
                    predecessors[target].append(source)
        return predecessors

    def _topological_order(self) -> list[str]:
        order: list[str] = []
        for layer in self.execution_layers():
            order.extend(layer)
        return order

    def execution_layers(self) -> list[list[str]]:
        """Kahn layering; nodes within a layer keep flow order."""
        in_degree = {node_id: len(sources) for node_id, sources in self._predecessors.items()}
        layers: list[list[str]] = []
        placed: set[str] = set()
        while len(placed) < len(self._nodes):
            layer = [node_id for node_id in self._nodes if node_id not in placed and in_degree[node_id] == 0]
            if not layer:
                remaining = [node_id for node_id in self._nodes if node_id not in placed]
                raise FlowDefinitionError(
                    f"Circular dependency detected among nodes: {', '.join(remaining)}",
                    node_id=remaining[0],
                )
            layers.append(layer)
            placed.update(layer)
            for node_id in layer:
                for successor in self._successors[node_id]:
                    in_degree[successor] -= 1
        return layers

    @property
    def nodes(self) -> Mapping[str, FlowNode]:
        return self._nodes

    def topological_order(self) -> list[str]:
        return list(self._order)

    def predecessors(self, node_id: str) -> list[str]:
        return list(self._predecessors[node_id])

    def successors(self, node_id: str) -> list[str]:
        return list(self._successors[node_id])

    def condition(self, source_id: str, target_id: str) -> EdgeConditionType:
        return self._conditions.get((source_id, target_id), EdgeConditionType.success)

    def dependency_map(self) -> dict[str, list[str]]:
        return {node_id: list(sources) for node_id, sources in self._predecessors.items()}


__all__ = ["DependencyResolver"]
