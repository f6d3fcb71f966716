"""Turn agent selections into flow nodes."""
from __future__ import annotations

import json
from typing import Any, Sequence

from .catalog import AgentCatalog
from .documents import FlowNode, NodeConfig, Position, ProjectRequirements
from .types import AgentSelection


def node_label(agent_id: str) -> str:
    return " ".join(segment[:1].upper() + segment[1:] for segment in agent_id.split("-"))


def build_instructions(agent_id: str, requirements: ProjectRequirements) -> str:
    base = f"Execute {agent_id} for project: {requirements.description}"
    context: list[str] = []
    if requirements.technology is not None:
        context.append(f"Technology stack: {json.dumps(requirements.technology.model_dump(mode='json'))}")
    if requirements.features is not None:
        context.append(f"Required features: {', '.join(requirements.features)}")
    if requirements.preferences is not None:
        preferences = requirements.preferences.model_dump(mode="json", exclude_none=True)
        context.append(f"Preferences: {json.dumps(preferences)}")
    if not context:
        return base
    return base + "\n\n" + "\n".join(context)


def build_inputs(agent_id: str, requirements: ProjectRequirements) -> dict[str, Any]:
    inputs: dict[str, Any] = {}
    features = list(requirements.features or [])

    if "setup" in agent_id:
        inputs["projectName"] = "-".join(requirements.description.split(" ")[:3]).lower()
        inputs["features"] = features
        databases = requirements.technologies("database")
        if databases:
            inputs["database"] = databases[0]
        if requirements.has_feature("authentication"):
            inputs["authentication"] = "nextauth"
        inputs["testing"] = requirements.testing_level != "none"

    if "developer" in agent_id:
        inputs["features"] = features
        inputs["technology"] = requirements.technology.model_dump(mode="json") if requirements.technology else {}

    if "tester" in agent_id or "runner" in agent_id:
        inputs["testingLevel"] = requirements.testing_level or "basic"
        inputs["coverage"] = 80 if requirements.testing_level == "comprehensive" else 60

    return inputs


def requires_review(agent_id: str, requirements: ProjectRequirements) -> bool:
    if requirements.review_mode == "manual" and ("developer" in agent_id or "integration" in agent_id):
        return True
    if requirements.has_feature("security") and ("auth" in agent_id or "payment" in agent_id):
        return True
    return False


def create_nodes(
    selections: Sequence[AgentSelection],
    requirements: ProjectRequirements,
    catalog: AgentCatalog,
    max_retries: int = 3,
) -> list[FlowNode]:
    """Map selections 1:1 onto nodes; ids are sequential in selection order."""
    nodes: list[FlowNode] = []
    for index, selection in enumerate(selections, start=1):
        agent_id = selection.agent_id
        nodes.append(
            FlowNode(
                id=f"node-{index}",
                agent_id=agent_id,
                label=node_label(agent_id),
                category=catalog.category_of(agent_id),
                instructions=build_instructions(agent_id, requirements),
                inputs=build_inputs(agent_id, requirements),
                position=Position(x=0, y=0),
                config=NodeConfig(
                    retry_on_failure=True,
                    max_retries=max_retries,
                    timeout=catalog.timeouts.match(agent_id),
                    requires_review=requires_review(agent_id, requirements),
                ),
                estimated_time=catalog.estimated_minutes.match(agent_id),
            )
        )
    return nodes


__all__ = ["build_inputs", "build_instructions", "create_nodes", "node_label", "requires_review"]
