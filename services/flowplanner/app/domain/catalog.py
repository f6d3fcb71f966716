"""Agent catalog: the read-only library of agents a planning session can pick from."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog

from ..config import FlowPlannerSettings
from .errors import CatalogError
from .lookup import ESTIMATED_MINUTES, TIMEOUT_SECONDS, SubstringTable
from .types import CATEGORY_ORDER, AgentCategory, AgentDescriptor

logger = structlog.get_logger(__name__)

_CATEGORY_TITLES = {
    AgentCategory.setup: "Setup Agents",
    AgentCategory.execution: "Execution Agents",
    AgentCategory.testing: "Testing Agents",
    AgentCategory.integration: "Integration Agents",
    AgentCategory.review: "Review Agents",
    AgentCategory.utility: "Utility Agents",
}

DEFAULT_LIBRARY: dict[AgentCategory, dict[str, str]] = {
    AgentCategory.setup: {
        "nextjs-setup": "Scaffold a Next.js application",
        "vite-react-setup": "Scaffold a React application with Vite",
        "vue-setup": "Scaffold a Vue application",
        "angular-setup": "Scaffold an Angular workspace",
        "django-setup": "Scaffold a Django project",
        "fastapi-setup": "Scaffold a FastAPI service",
        "express-setup": "Scaffold an Express API",
        "nestjs-setup": "Scaffold a NestJS service",
        "rails-setup": "Scaffold a Rails application",
        "spring-boot-setup": "Scaffold a Spring Boot service",
        "laravel-setup": "Scaffold a Laravel application",
        "flutter-setup": "Scaffold a Flutter mobile app",
    },
    AgentCategory.execution: {
        "react-developer": "Build React components and pages",
        "vue-developer": "Build Vue components and views",
        "angular-developer": "Build Angular modules and components",
        "nodejs-backend": "Implement Node.js backend services",
        "python-developer": "Implement Python backend code",
        "go-developer": "Implement Go services",
        "database-developer": "Design schemas and data access",
        "api-developer": "Implement API endpoints",
        "graphql-developer": "Implement a GraphQL schema and resolvers",
        "mobile-developer": "Build mobile application screens",
    },
    AgentCategory.testing: {
        "jest-tester": "Write and run Jest unit tests",
        "pytest-runner": "Write and run pytest suites",
        "playwright-e2e": "End-to-end browser tests with Playwright",
        "cypress-e2e": "Smoke-level end-to-end tests with Cypress",
        "go-test-runner": "Run go test suites",
        "k6-performance": "Load and performance tests with k6",
    },
    AgentCategory.integration: {
        "git-merger": "Merge agent branches and resolve conflicts",
        "api-integrator": "Wire frontend and backend through the API",
        "db-migrator": "Generate and apply database migrations",
        "docker-builder": "Containerize the application",
        "ci-cd-runner": "Set up the CI/CD pipeline",
    },
    AgentCategory.review: {
        "manual-review": "Human review checkpoint",
        "code-review": "Automated code review",
        "security-review": "Security analysis and review",
    },
    AgentCategory.utility: {
        "documentation": "Generate project documentation",
        "deployment": "Deploy the application",
        "summarizer": "Summarize the run and report results",
    },
}


class AgentCatalog:
    """Mapping agent id -> descriptor, loaded once per planning session."""

    def __init__(
        self,
        agents: Iterable[AgentDescriptor],
        estimated_minutes: SubstringTable[int] = ESTIMATED_MINUTES,
        timeouts: SubstringTable[int] = TIMEOUT_SECONDS,
    ) -> None:
        self._agents: dict[str, AgentDescriptor] = {}
        for agent in agents:
            self._agents[agent.id] = agent
        self.estimated_minutes = estimated_minutes
        self.timeouts = timeouts

    @staticmethod
    def describe_agent(
        agent_id: str,
        category: AgentCategory,
        name: str = "",
        description: str = "",
        raw: Mapping[str, Any] | None = None,
    ) -> AgentDescriptor:
        raw = raw or {}
        return AgentDescriptor(
            id=agent_id,
            category=category,
            name=name or agent_id,
            description=description,
            estimated_time=int(raw.get("estimatedTime", ESTIMATED_MINUTES.match(agent_id))),
            estimated_tokens=int(raw.get("estimatedTokens", 50_000)),
            timeout=int(raw.get("timeout", TIMEOUT_SECONDS.match(agent_id))),
            requires_review=bool(raw.get("requiresReview", False)),
            tags=tuple(raw.get("dependencies", raw.get("tags", ())) or ()),
        )

    @classmethod
    def default(cls) -> "AgentCatalog":
        agents = [
            cls.describe_agent(agent_id, category, description=description)
            for category, entries in DEFAULT_LIBRARY.items()
            for agent_id, description in entries.items()
        ]
        return cls(agents)

    @classmethod
    def from_directory_document(cls, document: Mapping[str, Any]) -> "AgentCatalog":
        """Build from ``{"categories": {"setup": {"agents": [...]}, ...}}``."""
        categories = document.get("categories")
        if not isinstance(categories, Mapping):
            raise CatalogError("Agent directory document has no 'categories' mapping")
        agents: list[AgentDescriptor] = []
        for category_name, category_data in categories.items():
            try:
                category = AgentCategory(category_name)
            except ValueError:
                logger.warning("catalog.category.unknown", category=category_name)
                continue
            for entry in (category_data or {}).get("agents", []):
                if isinstance(entry, str):
                    agents.append(cls.describe_agent(entry, category))
                else:
                    agents.append(
                        cls.describe_agent(
                            entry["id"], category, entry.get("name", ""), entry.get("description", ""), entry
                        )
                    )
        return cls(agents)

    @classmethod
    def from_library(cls, library_path: str | Path) -> "AgentCatalog":
        """Scan ``<library>/<category>/<agent-id>.json``; the file stem is the agent id."""
        root = Path(library_path)
        if not root.is_dir():
            raise CatalogError(f"Agent library {root} is not a directory")
        agents: list[AgentDescriptor] = []
        for category in CATEGORY_ORDER:
            category_path = root / category.value
            if not category_path.is_dir():
                logger.warning("catalog.category.missing", category=category.value, path=str(category_path))
                continue
            for agent_file in sorted(category_path.glob("*.json")):
                try:
                    raw = json.loads(agent_file.read_text(encoding="utf-8"))
                except (OSError, json.JSONDecodeError) as exc:
                    raise CatalogError(f"Unreadable agent definition {agent_file}: {exc}") from exc
                agents.append(
                    cls.describe_agent(agent_file.stem, category, raw.get("name", ""), raw.get("description", ""), raw)
                )
        logger.info("catalog.scanned", path=str(root), agents=len(agents))
        return cls(agents)

    @classmethod
    def load(cls, settings: FlowPlannerSettings) -> "AgentCatalog":
        path = settings.planning.catalog_path
        if not path:
            return cls.default()
        target = Path(path)
        if target.is_dir():
            return cls.from_library(target)
        try:
            document = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogError(f"Unreadable agent directory {target}: {exc}") from exc
        return cls.from_directory_document(document)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def with_defaults(self, timeout: int, estimated_minutes: int) -> "AgentCatalog":
        """Same agents; ids no lookup entry matches fall back to the given values."""
        return AgentCatalog(
            self._agents.values(),
            estimated_minutes=self.estimated_minutes.with_default(estimated_minutes),
            timeouts=self.timeouts.with_default(timeout),
        )

    def get(self, agent_id: str) -> AgentDescriptor | None:
        return self._agents.get(agent_id)

    def category_of(self, agent_id: str) -> AgentCategory:
        agent = self._agents.get(agent_id)
        return agent.category if agent else AgentCategory.execution

    def agents_in(self, category: AgentCategory) -> list[AgentDescriptor]:
        return [agent for agent in self._agents.values() if agent.category is category]

    def describe(self) -> str:
        """Markdown listing of available agents, grouped by category."""
        formatted = "## Available Agents\n\n"
        for category in CATEGORY_ORDER:
            agents = self.agents_in(category)
            if not agents:
                continue
            formatted += f"### {_CATEGORY_TITLES[category]}\n"
            for agent in agents:
                formatted += f"- `{agent.id}` - {agent.description}\n"
            formatted += "\n"
        return formatted


__all__ = ["AgentCatalog", "DEFAULT_LIBRARY"]
