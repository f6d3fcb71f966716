import pytest

from services.flowplanner.app.config import FlowPlannerSettings, PlanningSettings
from services.flowplanner.app.domain.catalog import AgentCatalog
from services.flowplanner.app.domain.documents import ProjectRequirements
from services.flowplanner.app.domain.planner_service import FlowPlanningService


@pytest.fixture
def service() -> FlowPlanningService:
    settings = FlowPlannerSettings(planning=PlanningSettings(layer_spacing_x=200, node_spacing_y=50))
    return FlowPlanningService(AgentCatalog.default(), settings)


def test_plan_from_requirements_lays_out_and_validates(service):
    requirements = ProjectRequirements.model_validate(
        {
            "description": "Inventory tracker",
            "projectType": "web",
            "technology": {"frontend": ["react"]},
            "features": ["database"],
            "preferences": {"testing": "basic"},
        }
    )

    result = service.plan_flow_from_requirements(requirements)

    assert result.validation.valid, result.validation.errors
    positions = {node.id: (node.position.x, node.position.y) for node in result.flow.nodes}
    for layer_index, layer in enumerate(result.graph.layers):
        for row, node_id in enumerate(layer):
            assert positions[node_id] == (100 + layer_index * 200, 100 + row * 50)
    assert result.metrics.total_nodes == len(result.flow.nodes)
    assert result.metrics.total_edges == len(result.flow.edges)
    assert result.metrics.max_parallelism == max(len(layer) for layer in result.graph.layers)
    assert result.metrics.critical_path_length == len(result.graph.layers)


def test_plan_from_prompt_serializes(service):
    payload = service.plan_flow("Build a React dashboard with an API and a postgres database").as_dict()

    assert payload["flow"]["nodes"]
    assert payload["criticalPath"][0] in payload["layers"][0]
    assert set(payload["metrics"]) == {
        "totalNodes",
        "totalEdges",
        "maxParallelism",
        "estimatedTime",
        "estimatedTokens",
        "criticalPathLength",
    }
    assert payload["requirements"]["technology"]["frontend"] == ["react"]
    dependencies = payload["dependencies"]
    for edge in payload["flow"]["edges"]:
        assert edge["source"] in dependencies[edge["target"]]
