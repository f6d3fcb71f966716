"""FastAPI dependency helpers."""
from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from ..domain.catalog import AgentCatalog
from ..domain.planner_service import FlowPlanningService


@lru_cache(maxsize=1)
def get_catalog() -> AgentCatalog:
    return AgentCatalog.load(get_settings())


def get_planning_service() -> FlowPlanningService:
    return FlowPlanningService(get_catalog(), get_settings())


__all__ = ["get_catalog", "get_planning_service"]
