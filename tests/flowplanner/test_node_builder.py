from services.flowplanner.app.domain.catalog import AgentCatalog
from services.flowplanner.app.domain.documents import ProjectRequirements
from services.flowplanner.app.domain.lookup import ESTIMATED_MINUTES, TIMEOUT_SECONDS, SubstringTable
from services.flowplanner.app.domain.node_builder import (
    build_inputs,
    build_instructions,
    create_nodes,
    node_label,
    requires_review,
)
from services.flowplanner.app.domain.types import AgentCategory, AgentSelection


def _selections(*agent_ids: str) -> list[AgentSelection]:
    return [AgentSelection(agent_id, "test", 0.9) for agent_id in agent_ids]


def test_manual_review_gates_developer_nodes():
    requirements = ProjectRequirements.model_validate(
        {"description": "Shop", "preferences": {"review": "manual"}}
    )

    nodes = create_nodes(_selections("react-developer", "jest-tester"), requirements, AgentCatalog.default())

    assert nodes[0].config.requires_review is True
    assert nodes[1].config.requires_review is False


def test_security_feature_gates_auth_and_payment_agents():
    requirements = ProjectRequirements(features=["security"])

    assert requires_review("auth-developer", requirements) is True
    assert requires_review("payment-integrator", requirements) is True
    assert requires_review("react-developer", requirements) is False


def test_nodes_are_numbered_in_selection_order():
    nodes = create_nodes(
        _selections("nextjs-setup", "react-developer", "playwright-e2e", "summarizer"),
        ProjectRequirements(description="Landing page"),
        AgentCatalog.default(),
        max_retries=5,
    )

    assert [node.id for node in nodes] == ["node-1", "node-2", "node-3", "node-4"]
    assert [node.category for node in nodes] == [
        AgentCategory.setup,
        AgentCategory.execution,
        AgentCategory.testing,
        AgentCategory.utility,
    ]
    assert [node.estimated_time for node in nodes] == [10, 30, 20, 5]
    assert [node.config.timeout for node in nodes] == [600, 300, 900, 300]
    assert all(node.config.max_retries == 5 and node.config.retry_on_failure for node in nodes)
    assert all(node.position.x == 0 and node.position.y == 0 for node in nodes)


def test_unknown_agent_defaults_to_execution_category():
    nodes = create_nodes(_selections("mystery-agent"), ProjectRequirements(), AgentCatalog.default())

    assert nodes[0].category is AgentCategory.execution
    assert nodes[0].estimated_time == 15
    assert nodes[0].config.timeout == 300


def test_labels_title_case_hyphen_segments():
    assert node_label("react-developer") == "React Developer"
    assert node_label("ci-cd-runner") == "Ci Cd Runner"
    assert node_label("summarizer") == "Summarizer"


def test_instructions_include_context_only_when_present():
    bare = ProjectRequirements(description="Blog")
    detailed = ProjectRequirements.model_validate(
        {
            "description": "Blog",
            "technology": {"frontend": ["react"]},
            "features": ["database", "api"],
        }
    )

    assert build_instructions("react-developer", bare) == "Execute react-developer for project: Blog"
    text = build_instructions("react-developer", detailed)
    assert text.startswith("Execute react-developer for project: Blog\n\n")
    assert '"frontend": ["react"]' in text
    assert "Required features: database, api" in text


def test_setup_inputs_carry_project_flags():
    requirements = ProjectRequirements.model_validate(
        {
            "description": "My Great Shop For Pets",
            "technology": {"database": ["postgres"]},
            "features": ["authentication"],
            "preferences": {"testing": "none"},
        }
    )

    inputs = build_inputs("nextjs-setup", requirements)

    assert inputs == {
        "projectName": "my-great-shop",
        "features": ["authentication"],
        "database": "postgres",
        "authentication": "nextauth",
        "testing": False,
    }
    assert build_inputs("pytest-runner", requirements)["coverage"] == 60
    assert build_inputs("summarizer", requirements) == {}


def test_lookup_tables_are_first_match_with_default():
    table = SubstringTable.of([("alpha", 1), ("al", 2)], default=9)

    assert table.match("alphabet") == 1
    assert table.match("also") == 2
    assert table.match("zzz") == 9
    assert ESTIMATED_MINUTES.match("docker-builder") == 15
    assert TIMEOUT_SECONDS.match("docker-builder") == 600
    assert TIMEOUT_SECONDS.match("k6-performance") == 1200
