import pytest

from services.flowplanner.app.domain.documents import EdgeCondition, Flow, FlowEdge, FlowNode
from services.flowplanner.app.domain.errors import FlowDefinitionError
from services.flowplanner.app.domain.types import AgentCategory, EdgeConditionType
from services.flowplanner.app.execution.resolver import DependencyResolver


def _flow(node_ids: list[str], edges: list[tuple[str, str]]) -> Flow:
    return Flow(
        id="flow-1",
        name="Resolver flow",
        created="2024-01-01T00:00:00+00:00",
        modified="2024-01-01T00:00:00+00:00",
        nodes=[
            FlowNode(id=node_id, agent_id=f"{node_id}-agent", label=node_id, category=AgentCategory.execution)
            for node_id in node_ids
        ],
        edges=[
            FlowEdge(id=f"edge-{index}", source=source, target=target)
            for index, (source, target) in enumerate(edges, start=1)
        ],
    )


def test_layers_and_order_follow_edges():
    resolver = DependencyResolver(_flow(["a", "b", "c", "d"], [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")]))

    assert resolver.execution_layers() == [["a"], ["b", "c"], ["d"]]
    assert resolver.topological_order() == ["a", "b", "c", "d"]
    assert resolver.predecessors("d") == ["b", "c"]
    assert resolver.successors("a") == ["b", "c"]
    assert resolver.dependency_map() == {"a": [], "b": ["a"], "c": ["a"], "d": ["b", "c"]}
    assert resolver.condition("a", "b") is EdgeConditionType.success


def test_dependency_map_overrides_edges():
    flow = _flow(["a", "b"], [])

    resolver = DependencyResolver(flow, {"a": ["b"]})

    assert resolver.topological_order() == ["b", "a"]


def test_failure_edge_condition_is_exposed():
    flow = _flow(["a", "b"], [])
    flow.edges.append(
        FlowEdge(id="edge-9", source="a", target="b", condition=EdgeCondition(type=EdgeConditionType.failure))
    )

    assert DependencyResolver(flow).condition("a", "b") is EdgeConditionType.failure


def test_dangling_edge_names_the_edge():
    with pytest.raises(FlowDefinitionError) as excinfo:
        DependencyResolver(_flow(["a"], [("a", "ghost")]))

    assert excinfo.value.edge_id == "edge-1"
    assert excinfo.value.node_id == "ghost"


def test_unknown_dependency_and_cycles_raise():
    with pytest.raises(FlowDefinitionError):
        DependencyResolver(_flow(["a"], []), {"a": ["ghost"]})
    with pytest.raises(FlowDefinitionError):
        DependencyResolver(_flow(["a"], []), {"a": ["a"]})
    with pytest.raises(FlowDefinitionError, match="Circular dependency"):
        DependencyResolver(_flow(["a", "b"], [("a", "b"), ("b", "a")]))


def test_duplicate_node_ids_raise():
    with pytest.raises(FlowDefinitionError, match="Duplicate node id"):
        DependencyResolver(_flow(["a", "a"], []))
