"""Structural and advisory checks over a flow document."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from ..config import FlowPlannerSettings, get_settings
from .catalog import AgentCatalog
from .documents import Flow
from .types import CATEGORY_ORDER, AgentCategory, EdgeConditionType

INCOMPATIBLE_AGENTS: tuple[tuple[str, str, str], ...] = (
    ("python", "jest", "Python agent output may not be testable with Jest (JavaScript test framework)"),
    ("flutter", "playwright", "Flutter mobile apps cannot be tested with Playwright (web browser automation)"),
    ("rust", "pytest", "Rust code should be tested with Rust testing tools, not Python pytest"),
)

MAX_TOTAL_MINUTES = 300
MAX_TOTAL_TOKENS = 1_000_000
MAX_LAYER_WIDTH = 10


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


def find_cycles(flow: Flow) -> list[list[str]]:
    adjacency: Dict[str, List[str]] = {}
    for edge in flow.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    def visit(node_id: str) -> bool:
        visited.add(node_id)
        on_stack.add(node_id)
        path.append(node_id)
        for neighbor in adjacency.get(node_id, []):
            if neighbor not in visited:
                if visit(neighbor):
                    return True
            elif neighbor in on_stack:
                cycles.append(path[path.index(neighbor):] + [neighbor])
                return True
        path.pop()
        on_stack.discard(node_id)
        return False

    for node in flow.nodes:
        if node.id not in visited:
            visit(node.id)
    return cycles


def dependency_layers(flow: Flow) -> list[list[str]]:
    """Kahn layering over the flow's edges; stops early on a cycle."""
    in_degree = {node.id: 0 for node in flow.nodes}
    for edge in flow.edges:
        if edge.target in in_degree:
            in_degree[edge.target] += 1

    layers: list[list[str]] = []
    placed: set[str] = set()
    while len(placed) < len(in_degree):
        layer = [node_id for node_id, degree in in_degree.items() if degree == 0 and node_id not in placed]
        if not layer:
            break
        layers.append(layer)
        placed.update(layer)
        for edge in flow.edges:
            if edge.source in layer and edge.target in in_degree:
                in_degree[edge.target] -= 1
    return layers


class FlowValidator:
    def __init__(self, catalog: AgentCatalog, settings: FlowPlannerSettings | None = None) -> None:
        self._catalog = catalog
        self._planning = (settings or get_settings()).planning

    def validate(self, flow: Flow) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        suggestions: list[str] = []

        self._check_structure(flow, errors)
        self._check_nodes(flow, errors, warnings)
        self._check_edges(flow, errors, warnings)
        self._check_dependencies(flow, warnings)
        for cycle in find_cycles(flow):
            errors.append(f"Circular dependency detected: {' -> '.join(cycle)}")
        self._check_compatibility(flow, warnings)
        self._check_resources(flow, warnings)
        self._suggest(flow, suggestions)

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings, suggestions=suggestions)

    def _check_structure(self, flow: Flow, errors: list[str]) -> None:
        if not flow.id:
            errors.append("Flow must have a unique ID")
        if not flow.name:
            errors.append("Flow must have a name")
        if not flow.nodes:
            errors.append("Flow must contain at least one node")
        if flow.version < 1:
            errors.append("Flow must have a valid version number")

    def _check_nodes(self, flow: Flow, errors: list[str], warnings: list[str]) -> None:
        seen: set[str] = set()
        for node in flow.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID found: {node.id}")
            seen.add(node.id)
            if node.agent_id not in self._catalog:
                errors.append(f"Node {node.id} references invalid agent: {node.agent_id}")
            if node.config.max_retries > 10:
                warnings.append(f"Node {node.id} has high retry count ({node.config.max_retries})")
            if node.config.timeout > 3600:
                warnings.append(f"Node {node.id} has very long timeout ({node.config.timeout}s)")

        categories = {node.category for node in flow.nodes}
        if AgentCategory.setup not in categories:
            warnings.append("Flow has no setup agent - project initialization may be incomplete")
        if AgentCategory.testing not in categories:
            warnings.append("Flow has no testing agents - consider adding tests for quality assurance")

    def _check_edges(self, flow: Flow, errors: list[str], warnings: list[str]) -> None:
        node_ids = {node.id for node in flow.nodes}
        edge_ids: set[str] = set()
        for edge in flow.edges:
            if edge.id in edge_ids:
                errors.append(f"Duplicate edge ID found: {edge.id}")
            edge_ids.add(edge.id)
            if edge.source not in node_ids:
                errors.append(f"Edge {edge.id} has invalid source node: {edge.source}")
            if edge.target not in node_ids:
                errors.append(f"Edge {edge.id} has invalid target node: {edge.target}")
            if edge.source == edge.target:
                errors.append(f"Edge {edge.id} creates a self-loop on node {edge.source}")
            if edge.condition.type is EdgeConditionType.custom and not edge.condition.expression:
                warnings.append(f"Edge {edge.id} has custom condition without expression")

        pairs = Counter((edge.source, edge.target) for edge in flow.edges)
        for (source, target), count in pairs.items():
            if count > 1:
                warnings.append(f"Duplicate edge from {source} to {target}")

    def _check_dependencies(self, flow: Flow, warnings: list[str]) -> None:
        has_incoming = {edge.target for edge in flow.edges}
        has_outgoing = {edge.source for edge in flow.edges}
        order = {category: index for index, category in enumerate(CATEGORY_ORDER)}
        nodes = {node.id: node for node in flow.nodes}

        for node in flow.nodes:
            if node.id not in has_incoming and node.category is not AgentCategory.setup:
                warnings.append(f"Node {node.id} ({node.agent_id}) has no incoming connections")
            if node.id not in has_outgoing and node.category not in (AgentCategory.review, AgentCategory.utility):
                warnings.append(f"Node {node.id} ({node.agent_id}) has no outgoing connections")

        for edge in flow.edges:
            source, target = nodes.get(edge.source), nodes.get(edge.target)
            if source and target and order[target.category] < order[source.category] - 1:
                warnings.append(
                    f"Unusual flow: {source.category.value} ({source.agent_id}) -> "
                    f"{target.category.value} ({target.agent_id})"
                )

    def _check_compatibility(self, flow: Flow, warnings: list[str]) -> None:
        nodes = {node.id: node for node in flow.nodes}
        for edge in flow.edges:
            source, target = nodes.get(edge.source), nodes.get(edge.target)
            if not source or not target:
                continue
            for source_hint, target_hint, reason in INCOMPATIBLE_AGENTS:
                if source_hint in source.agent_id and target_hint in target.agent_id:
                    warnings.append(
                        f"Potential incompatibility between {source.agent_id} and {target.agent_id}: {reason}"
                    )

    def _check_resources(self, flow: Flow, warnings: list[str]) -> None:
        nodes = {node.id: node for node in flow.nodes}
        layers = dependency_layers(flow)
        fallback = self._planning.default_estimated_minutes
        total_minutes = sum(max(nodes[node_id].estimated_time or fallback for node_id in layer) for layer in layers)
        total_tokens = len(flow.nodes) * self._planning.tokens_per_agent
        widest = max((len(layer) for layer in layers), default=0)

        if total_minutes > MAX_TOTAL_MINUTES:
            warnings.append(f"Flow estimated to take {total_minutes} minutes - consider breaking into smaller flows")
        if total_tokens > MAX_TOTAL_TOKENS:
            warnings.append(f"Flow estimated to use {total_tokens} tokens - high resource usage")
        if widest > MAX_LAYER_WIDTH:
            warnings.append(f"Flow requires {widest} parallel agents - may exceed system capacity")

    def _suggest(self, flow: Flow, suggestions: list[str]) -> None:
        categories = Counter(node.category for node in flow.nodes)
        agent_ids = {node.agent_id for node in flow.nodes}
        if not categories[AgentCategory.testing]:
            suggestions.append("Consider adding testing agents to ensure code quality")
        if not categories[AgentCategory.review]:
            suggestions.append("Consider adding review agents for quality gates")
        if categories[AgentCategory.execution] > 5:
            suggestions.append("Consider grouping related execution tasks to reduce complexity")
        if "documentation" not in agent_ids:
            suggestions.append("Consider adding documentation agent to generate project docs")
        if not agent_ids & {"deployment", "docker-builder"}:
            suggestions.append("Consider adding deployment automation for production readiness")


__all__ = ["FlowValidator", "ValidationResult", "dependency_layers", "find_cycles"]
