"""Planning orchestration: prompt or requirements in, validated flow out."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog
from opentelemetry import trace

from ..config import FlowPlannerSettings, get_settings
from .analyzer import RequirementAnalyzer
from .catalog import AgentCatalog
from .documents import Flow, Position, ProjectRequirements
from .flow_assembler import FlowGenerator
from .types import DependencyGraph
from .validation import FlowValidator, ValidationResult

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class PlanningMetrics:
    total_nodes: int
    total_edges: int
    max_parallelism: int
    estimated_time: int
    estimated_tokens: int
    critical_path_length: int

    def as_dict(self) -> dict[str, int]:
        return {
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
            "maxParallelism": self.max_parallelism,
            "estimatedTime": self.estimated_time,
            "estimatedTokens": self.estimated_tokens,
            "criticalPathLength": self.critical_path_length,
        }


@dataclass
class PlanningResult:
    flow: Flow
    graph: DependencyGraph
    validation: ValidationResult
    metrics: PlanningMetrics
    requirements: ProjectRequirements

    def as_dict(self) -> dict[str, Any]:
        return {
            "flow": self.flow.to_document(),
            "layers": [list(layer) for layer in self.graph.layers],
            "criticalPath": list(self.graph.critical_path),
            "dependencies": self.graph.dependency_map(),
            "validation": self.validation.as_dict(),
            "metrics": self.metrics.as_dict(),
            "requirements": self.requirements.model_dump(mode="json", by_alias=True, exclude_none=True),
        }


class FlowPlanningService:
    """One instance per planning session; owns the session's catalog."""

    def __init__(self, catalog: AgentCatalog, settings: FlowPlannerSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._catalog = catalog
        self._analyzer = RequirementAnalyzer()
        self._generator = FlowGenerator(catalog, self._settings)
        self._validator = FlowValidator(catalog, self._settings)

    @property
    def catalog(self) -> AgentCatalog:
        return self._catalog

    def plan_flow(self, description: str) -> PlanningResult:
        requirements = self._analyzer.analyze(description)
        logger.info(
            "planner.requirements.analyzed",
            project_type=requirements.project_type,
            features=requirements.features,
        )
        return self.plan_flow_from_requirements(requirements)

    def plan_flow_from_requirements(self, requirements: ProjectRequirements) -> PlanningResult:
        start = time.perf_counter()
        with tracer.start_as_current_span("flowplanner.plan") as span:
            generated = self._generator.generate(requirements)
            flow = self.apply_layout(generated.flow, generated.graph)
            validation = self._validator.validate(flow)
            metrics = self._metrics(flow, generated.graph)
            span.set_attribute("flow.id", flow.id)
            span.set_attribute("flow.nodes", metrics.total_nodes)
            span.set_attribute("flow.valid", validation.valid)

        logger.info(
            "planner.flow.planned",
            flow_id=flow.id,
            valid=validation.valid,
            warnings=len(validation.warnings),
            wall_time_ms=int((time.perf_counter() - start) * 1000),
        )
        return PlanningResult(
            flow=flow,
            graph=generated.graph,
            validation=validation,
            metrics=metrics,
            requirements=requirements,
        )

    def validate(self, flow: Flow) -> ValidationResult:
        return self._validator.validate(flow)

    def apply_layout(self, flow: Flow, graph: DependencyGraph) -> Flow:
        """Place nodes column-per-layer; positions never influence scheduling."""
        spacing_x = self._settings.planning.layer_spacing_x
        spacing_y = self._settings.planning.node_spacing_y
        positions: dict[str, Position] = {}
        for layer_index, layer in enumerate(graph.layers):
            for row, node_id in enumerate(layer):
                positions[node_id] = Position(x=100 + layer_index * spacing_x, y=100 + row * spacing_y)

        nodes = [node.model_copy(update={"position": positions.get(node.id, node.position)}) for node in flow.nodes]
        for node in nodes:
            graph.nodes[node.id] = node
        return flow.model_copy(update={"nodes": nodes})

    def _metrics(self, flow: Flow, graph: DependencyGraph) -> PlanningMetrics:
        return PlanningMetrics(
            total_nodes=len(flow.nodes),
            total_edges=len(flow.edges),
            max_parallelism=max((len(layer) for layer in graph.layers), default=0),
            estimated_time=flow.metadata.estimated_total_time,
            estimated_tokens=flow.metadata.estimated_total_tokens,
            critical_path_length=len(graph.critical_path),
        )


__all__ = ["FlowPlanningService", "PlanningMetrics", "PlanningResult"]
