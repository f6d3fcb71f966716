"""JSON-shaped documents exchanged with callers: requirements in, flows out."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .types import AgentCategory, EdgeConditionType, NodeStatus

ProjectType = Literal["web", "api", "mobile", "fullstack", "microservice", "cli"]
TestingLevel = Literal["none", "basic", "comprehensive"]
ReviewMode = Literal["none", "manual", "automated", "both"]


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Technology(_Document):
    frontend: list[str] = Field(default_factory=list)
    backend: list[str] = Field(default_factory=list)
    database: list[str] = Field(default_factory=list)
    testing: list[str] = Field(default_factory=list)


class Preferences(_Document):
    framework: str | None = None
    testing: TestingLevel | None = None
    review: ReviewMode | None = None
    deployment: bool | None = None
    documentation: bool | None = None


class Constraints(_Document):
    max_parallel: int | None = None
    time_limit: int | None = Field(default=None, description="Minutes")
    budget: int | None = None


class ProjectRequirements(_Document):
    """Normalized planning request. Absent sections stay ``None`` and read as empty."""

    description: str = ""
    project_type: ProjectType | None = None
    features: list[str] | None = None
    technology: Technology | None = None
    preferences: Preferences | None = None
    constraints: Constraints | None = None

    def has_feature(self, name: str) -> bool:
        return name in (self.features or [])

    def technologies(self, category: str) -> list[str]:
        if self.technology is None:
            return []
        return list(getattr(self.technology, category, []) or [])

    def uses(self, category: str, tech: str) -> bool:
        return tech in self.technologies(category)

    def mentions(self, keyword: str) -> bool:
        return keyword.lower() in self.description.lower()

    @property
    def testing_level(self) -> TestingLevel | None:
        return self.preferences.testing if self.preferences else None

    @property
    def review_mode(self) -> ReviewMode | None:
        return self.preferences.review if self.preferences else None

    @property
    def wants_deployment(self) -> bool:
        return bool(self.preferences and self.preferences.deployment) or self.has_feature("deployment")

    @property
    def wants_documentation(self) -> bool:
        return bool(self.preferences and self.preferences.documentation) or self.has_feature("documentation")


class Position(_Document):
    x: float = 0
    y: float = 0


class NodeConfig(_Document):
    retry_on_failure: bool = True
    max_retries: int = 3
    timeout: int = 300
    requires_review: bool = False
    critical: bool = False
    rollback_on_failure: bool = False


class FlowNode(_Document):
    id: str
    agent_id: str
    label: str
    category: AgentCategory
    instructions: str = ""
    inputs: dict[str, Any] = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)
    config: NodeConfig = Field(default_factory=NodeConfig)
    status: NodeStatus = NodeStatus.pending
    estimated_time: int = 15


class EdgeCondition(_Document):
    type: EdgeConditionType = EdgeConditionType.success
    expression: str | None = None


class FlowEdge(_Document):
    id: str
    source: str
    target: str
    condition: EdgeCondition = Field(default_factory=EdgeCondition)
    label: str | None = None


class FlowMetadata(_Document):
    project_type: str | None = None
    estimated_total_time: int = 0
    estimated_total_tokens: int = 0
    environment: dict[str, str] = Field(default_factory=dict)
    secrets: list[str] = Field(default_factory=list)
    git_repo: str | None = None
    branch: str | None = None


class Flow(_Document):
    id: str
    version: int = 1
    name: str
    description: str = ""
    created: str
    modified: str
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)
    metadata: FlowMetadata = Field(default_factory=FlowMetadata)

    def node(self, node_id: str) -> FlowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "Constraints",
    "EdgeCondition",
    "Flow",
    "FlowEdge",
    "FlowMetadata",
    "FlowNode",
    "NodeConfig",
    "Position",
    "Preferences",
    "ProjectRequirements",
    "Technology",
]
