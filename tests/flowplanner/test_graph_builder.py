from services.flowplanner.app.domain.catalog import AgentCatalog
from services.flowplanner.app.domain.documents import FlowNode, ProjectRequirements
from services.flowplanner.app.domain.graph_builder import (
    build_dependency_graph,
    create_edges,
    estimated_total_time,
    find_critical_path,
    should_connect,
)
from services.flowplanner.app.domain.node_builder import create_nodes
from services.flowplanner.app.domain.selector import select_agents
from services.flowplanner.app.domain.types import AgentCategory, DependencyGraph


def _node(node_id: str, agent_id: str, category: AgentCategory, estimate: int = 15) -> FlowNode:
    return FlowNode(id=node_id, agent_id=agent_id, label=agent_id, category=category, estimated_time=estimate)


def test_layer_maxima_sum_and_critical_path():
    nodes = [
        _node("node-1", "nextjs-setup", AgentCategory.setup, 10),
        _node("node-2", "react-developer", AgentCategory.execution, 30),
        _node("node-3", "nodejs-backend", AgentCategory.execution, 20),
        _node("node-4", "jest-tester", AgentCategory.testing, 15),
    ]

    graph = build_dependency_graph(nodes)

    assert graph.layers == [["node-1"], ["node-2", "node-3"], ["node-4"]]
    assert estimated_total_time(graph) == 55
    assert graph.critical_path == ["node-1", "node-2", "node-4"]
    assert graph.edges["node-1"] == ["node-2", "node-3"]
    assert graph.edges["node-2"] == ["node-4"]
    assert graph.edges["node-3"] == ["node-4"]


def test_critical_path_ties_keep_first_node():
    graph = DependencyGraph(
        nodes={
            "a": _node("a", "x-developer", AgentCategory.execution, 20),
            "b": _node("b", "y-developer", AgentCategory.execution, 20),
            "c": _node("c", "summarizer", AgentCategory.utility, 0),
        },
        layers=[["a", "b"], ["c"]],
    )

    assert find_critical_path(graph) == ["a", "c"]


def test_review_and_utility_layers_do_not_feed_later_layers():
    nodes = [
        _node("node-1", "git-merger", AgentCategory.integration),
        _node("node-2", "manual-review", AgentCategory.review),
        _node("node-3", "summarizer", AgentCategory.utility),
    ]

    graph = build_dependency_graph(nodes)

    assert graph.edges["node-1"] == ["node-2", "node-3"]
    assert graph.edges["node-2"] == []


def test_empty_category_is_skipped_without_bridging():
    # setup -> testing has no connection rule, so the testing node starts unconnected
    nodes = [
        _node("node-1", "nextjs-setup", AgentCategory.setup),
        _node("node-2", "jest-tester", AgentCategory.testing),
        _node("node-3", "git-merger", AgentCategory.integration),
    ]

    graph = build_dependency_graph(nodes)

    assert len(graph.layers) == 3
    assert graph.edges["node-1"] == []
    assert graph.edges["node-2"] == ["node-3"]


def test_execution_to_testing_uses_prefix_pairs_and_e2e():
    react = _node("a", "react-developer", AgentCategory.execution)
    python = _node("b", "python-developer", AgentCategory.execution)

    assert should_connect(react, _node("t1", "jest-tester", AgentCategory.testing))
    assert not should_connect(python, _node("t1", "jest-tester", AgentCategory.testing))
    assert should_connect(python, _node("t2", "pytest-runner", AgentCategory.testing))
    assert should_connect(python, _node("t3", "cypress-e2e", AgentCategory.testing))
    assert not should_connect(react, _node("t4", "k6-performance", AgentCategory.testing))


def test_generated_graph_is_acyclic_with_valid_references():
    requirements = ProjectRequirements.model_validate(
        {
            "description": "Marketplace",
            "projectType": "fullstack",
            "technology": {"frontend": ["react"], "backend": ["nodejs", "python"], "database": ["postgres"]},
            "features": ["api", "database", "authentication", "deployment", "documentation"],
            "preferences": {"testing": "comprehensive", "review": "both"},
        }
    )

    nodes = create_nodes(select_agents(requirements), requirements, AgentCatalog.default())
    graph = build_dependency_graph(nodes, requirements)
    edges = create_edges(graph)

    order = {node_id: index for index, layer in enumerate(graph.layers) for node_id in layer}
    assert all(order[edge.source] < order[edge.target] for edge in edges)
    assert {edge.source for edge in edges} | {edge.target for edge in edges} <= set(graph.nodes)
    assert [edge.id for edge in edges] == [f"edge-{index}" for index in range(1, len(edges) + 1)]
    assert len(graph.critical_path) == len(graph.layers)
    assert sorted(node_id for layer in graph.layers for node_id in layer) == sorted(graph.nodes)
