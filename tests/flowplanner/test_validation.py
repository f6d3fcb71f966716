from services.flowplanner.app.config import FlowPlannerSettings, PlanningSettings
from services.flowplanner.app.domain.catalog import AgentCatalog
from services.flowplanner.app.domain.documents import EdgeCondition, Flow, FlowEdge, FlowNode, NodeConfig
from services.flowplanner.app.domain.types import AgentCategory, EdgeConditionType
from services.flowplanner.app.domain.validation import FlowValidator, dependency_layers, find_cycles


def _flow(nodes: list[FlowNode], edges: list[FlowEdge]) -> Flow:
    return Flow(
        id="flow-1",
        name="Validation flow",
        created="2024-01-01T00:00:00+00:00",
        modified="2024-01-01T00:00:00+00:00",
        nodes=nodes,
        edges=edges,
    )


def _node(node_id: str, agent_id: str, category: AgentCategory, **config) -> FlowNode:
    return FlowNode(
        id=node_id,
        agent_id=agent_id,
        label=agent_id,
        category=category,
        config=NodeConfig(**config),
    )


def _edge(edge_id: str, source: str, target: str, **condition) -> FlowEdge:
    return FlowEdge(id=edge_id, source=source, target=target, condition=EdgeCondition(**condition))


def test_well_formed_flow_is_valid():
    flow = _flow(
        [
            _node("node-1", "nextjs-setup", AgentCategory.setup),
            _node("node-2", "react-developer", AgentCategory.execution),
            _node("node-3", "jest-tester", AgentCategory.testing),
            _node("node-4", "summarizer", AgentCategory.utility),
        ],
        [
            _edge("edge-1", "node-1", "node-2"),
            _edge("edge-2", "node-2", "node-3"),
            _edge("edge-3", "node-3", "node-4"),
        ],
    )

    result = FlowValidator(AgentCatalog.default()).validate(flow)

    assert result.valid
    assert result.errors == []
    assert "Consider adding review agents for quality gates" in result.suggestions


def test_structural_errors_are_reported():
    flow = _flow(
        [
            _node("node-1", "made-up-agent", AgentCategory.execution, max_retries=11, timeout=7200),
            _node("node-1", "react-developer", AgentCategory.execution),
        ],
        [
            _edge("edge-1", "node-1", "node-9"),
            _edge("edge-1", "node-1", "node-1"),
            _edge("edge-2", "node-1", "node-1", type=EdgeConditionType.custom),
        ],
    )

    result = FlowValidator(AgentCatalog.default()).validate(flow)

    assert not result.valid
    assert "Duplicate node ID found: node-1" in result.errors
    assert "Node node-1 references invalid agent: made-up-agent" in result.errors
    assert "Edge edge-1 has invalid target node: node-9" in result.errors
    assert "Duplicate edge ID found: edge-1" in result.errors
    assert "Edge edge-1 creates a self-loop on node node-1" in result.errors
    assert "Node node-1 has high retry count (11)" in result.warnings
    assert "Node node-1 has very long timeout (7200s)" in result.warnings
    assert "Edge edge-2 has custom condition without expression" in result.warnings
    assert "Duplicate edge from node-1 to node-1" in result.warnings


def test_cycles_are_reported_as_paths():
    flow = _flow(
        [
            _node("a", "react-developer", AgentCategory.execution),
            _node("b", "jest-tester", AgentCategory.testing),
        ],
        [_edge("edge-1", "a", "b"), _edge("edge-2", "b", "a")],
    )

    assert find_cycles(flow) == [["a", "b", "a"]]
    result = FlowValidator(AgentCatalog.default()).validate(flow)
    assert "Circular dependency detected: a -> b -> a" in result.errors
    assert dependency_layers(flow) == []


def test_incompatible_agents_warn():
    flow = _flow(
        [
            _node("node-1", "python-developer", AgentCategory.execution),
            _node("node-2", "jest-tester", AgentCategory.testing),
        ],
        [_edge("edge-1", "node-1", "node-2")],
    )

    result = FlowValidator(AgentCatalog.default()).validate(flow)

    assert result.valid
    assert any("python-developer and jest-tester" in warning for warning in result.warnings)
    assert "Flow has no setup agent - project initialization may be incomplete" in result.warnings


def test_resource_warnings_follow_planning_settings():
    flow = _flow(
        [
            _node("node-1", "nextjs-setup", AgentCategory.setup),
            _node("node-2", "react-developer", AgentCategory.execution),
        ],
        [_edge("edge-1", "node-1", "node-2")],
    )
    for node in flow.nodes:
        node.estimated_time = 0
    settings = FlowPlannerSettings(
        planning=PlanningSettings(tokens_per_agent=600_000, default_estimated_minutes=200)
    )

    default = FlowValidator(AgentCatalog.default(), FlowPlannerSettings()).validate(flow)
    tuned = FlowValidator(AgentCatalog.default(), settings).validate(flow)

    assert not any("tokens" in warning or "minutes" in warning for warning in default.warnings)
    assert "Flow estimated to use 1200000 tokens - high resource usage" in tuned.warnings
    assert "Flow estimated to take 400 minutes - consider breaking into smaller flows" in tuned.warnings
