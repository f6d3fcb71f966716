"""Agent selection: map normalized requirements onto catalog agents."""
from __future__ import annotations

from typing import List

import structlog

from .documents import ProjectRequirements
from .types import AgentSelection

logger = structlog.get_logger(__name__)

SETUP_PRIORITY: tuple[tuple[str, str], ...] = (
    ("nextjs", "nextjs-setup"),
    ("react", "vite-react-setup"),
    ("vue", "vue-setup"),
    ("angular", "angular-setup"),
    ("django", "django-setup"),
    ("fastapi", "fastapi-setup"),
    ("express", "express-setup"),
    ("nestjs", "nestjs-setup"),
    ("rails", "rails-setup"),
    ("spring", "spring-boot-setup"),
    ("laravel", "laravel-setup"),
    ("flutter", "flutter-setup"),
)

DEFAULT_SETUP_BY_PROJECT_TYPE = {
    "web": ("nextjs-setup", "Default setup for web/fullstack projects"),
    "fullstack": ("nextjs-setup", "Default setup for web/fullstack projects"),
    "api": ("express-setup", "Default setup for API/microservice projects"),
    "microservice": ("express-setup", "Default setup for API/microservice projects"),
    "mobile": ("flutter-setup", "Default setup for mobile projects"),
}


class AgentSelector:
    """Runs one independent sub-selector per category and concatenates the results."""

    def select(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections: List[AgentSelection] = []
        setup = self.select_setup(requirements)
        if setup:
            selections.append(setup)
        selections.extend(self.select_execution(requirements))
        selections.extend(self.select_testing(requirements))
        selections.extend(self.select_integration(requirements))
        selections.extend(self.select_review(requirements))
        selections.extend(self.select_utility(requirements))
        logger.debug("selector.selected", agents=[s.agent_id for s in selections])
        return selections

    def select_setup(self, requirements: ProjectRequirements) -> AgentSelection | None:
        for tech, agent_id in SETUP_PRIORITY:
            if (
                requirements.uses("frontend", tech)
                or requirements.uses("backend", tech)
                or requirements.mentions(tech)
            ):
                return AgentSelection(agent_id, f"Selected {agent_id} based on {tech} technology requirement", 0.9)

        fallback = DEFAULT_SETUP_BY_PROJECT_TYPE.get(requirements.project_type or "")
        if fallback:
            agent_id, reason = fallback
            return AgentSelection(agent_id, reason, 0.7)
        return None

    def select_execution(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections: list[AgentSelection] = []
        project_type = requirements.project_type

        if requirements.uses("frontend", "react") or project_type == "web":
            selections.append(AgentSelection("react-developer", "Frontend development with React", 0.9))
        if requirements.uses("frontend", "vue"):
            selections.append(AgentSelection("vue-developer", "Frontend development with Vue", 0.9))
        if requirements.uses("frontend", "angular"):
            selections.append(AgentSelection("angular-developer", "Frontend development with Angular", 0.9))
        if requirements.uses("backend", "nodejs") or requirements.has_feature("api"):
            selections.append(AgentSelection("nodejs-backend", "Backend development with Node.js", 0.9))
        if requirements.uses("backend", "python"):
            selections.append(AgentSelection("python-developer", "Backend development with Python", 0.9))
        if requirements.uses("backend", "go"):
            selections.append(AgentSelection("go-developer", "Backend development with Go", 0.9))
        if requirements.has_feature("database") or requirements.technologies("database"):
            selections.append(AgentSelection("database-developer", "Database setup and integration", 0.8))
        if requirements.has_feature("api"):
            selections.append(AgentSelection("api-developer", "API development and integration", 0.8))
        if requirements.uses("backend", "graphql") or requirements.mentions("graphql"):
            selections.append(AgentSelection("graphql-developer", "GraphQL API development", 0.9))
        if project_type == "mobile":
            selections.append(AgentSelection("mobile-developer", "Mobile application development", 0.9))
        return selections

    def select_testing(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections: list[AgentSelection] = []
        if requirements.testing_level == "none":
            return selections

        if (
            requirements.uses("testing", "jest")
            or requirements.uses("frontend", "react")
            or requirements.uses("backend", "nodejs")
        ):
            selections.append(AgentSelection("jest-tester", "Unit testing with Jest", 0.9))

        if requirements.testing_level == "comprehensive" or requirements.uses("testing", "playwright"):
            selections.append(AgentSelection("playwright-e2e", "End-to-end testing with Playwright", 0.8))
        else:
            selections.append(AgentSelection("cypress-e2e", "End-to-end smoke testing with Cypress", 0.7))

        if requirements.uses("testing", "pytest") or requirements.uses("backend", "python"):
            selections.append(AgentSelection("pytest-runner", "Python testing with Pytest", 0.9))
        if requirements.uses("backend", "go"):
            selections.append(AgentSelection("go-test-runner", "Go testing framework", 0.9))
        if requirements.has_feature("performance"):
            selections.append(AgentSelection("k6-performance", "Performance testing with K6", 0.7))
        return selections

    def select_integration(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections = [AgentSelection("git-merger", "Git integration and version control", 0.9)]
        if requirements.has_feature("api"):
            selections.append(AgentSelection("api-integrator", "API integration and connection", 0.8))
        if requirements.has_feature("database"):
            selections.append(AgentSelection("db-migrator", "Database migration management", 0.8))
        if requirements.wants_deployment:
            selections.append(AgentSelection("docker-builder", "Docker containerization", 0.8))
            selections.append(AgentSelection("ci-cd-runner", "CI/CD pipeline setup", 0.7))
        return selections

    def select_review(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections: list[AgentSelection] = []
        review = requirements.review_mode
        if review in ("manual", "both"):
            selections.append(AgentSelection("manual-review", "Manual code review checkpoint", 0.9))
        if review in ("automated", "both"):
            selections.append(AgentSelection("code-review", "Automated code review", 0.8))
        if requirements.has_feature("security") or requirements.has_feature("authentication"):
            selections.append(AgentSelection("security-review", "Security analysis and review", 0.8))
        return selections

    def select_utility(self, requirements: ProjectRequirements) -> list[AgentSelection]:
        selections: list[AgentSelection] = []
        if requirements.wants_documentation:
            selections.append(AgentSelection("documentation", "Documentation generation", 0.8))
        if requirements.wants_deployment:
            selections.append(AgentSelection("deployment", "Deployment automation", 0.8))
        selections.append(AgentSelection("summarizer", "Project summary and reporting", 0.7))
        return selections


def select_agents(requirements: ProjectRequirements) -> list[AgentSelection]:
    return AgentSelector().select(requirements)


__all__ = ["AgentSelector", "SETUP_PRIORITY", "select_agents"]
