"""Flow planning API."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ..domain.catalog import AgentCatalog
from ..domain.documents import Flow, ProjectRequirements
from ..domain.planner_service import FlowPlanningService
from ..domain.types import CATEGORY_ORDER
from .deps import get_catalog, get_planning_service

router = APIRouter(tags=["flows"])


class PlanRequest(BaseModel):
    description: str | None = Field(default=None, description="Free-text project prompt")
    requirements: ProjectRequirements | None = None

    model_config = ConfigDict(populate_by_name=True)


@router.post("/flows/plan")
async def plan_flow(
    payload: PlanRequest,
    service: FlowPlanningService = Depends(get_planning_service),
) -> dict[str, Any]:
    if payload.requirements is not None:
        requirements = payload.requirements
        if payload.description and not requirements.description:
            requirements = requirements.model_copy(update={"description": payload.description})
        return service.plan_flow_from_requirements(requirements).as_dict()
    if payload.description and payload.description.strip():
        return service.plan_flow(payload.description).as_dict()
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="description or requirements required")


@router.post("/flows/validate")
async def validate_flow(
    flow: Flow,
    service: FlowPlanningService = Depends(get_planning_service),
) -> dict[str, Any]:
    return service.validate(flow).as_dict()


@router.get("/agents")
async def list_agents(catalog: AgentCatalog = Depends(get_catalog)) -> dict[str, Any]:
    return {
        "total": len(catalog),
        "categories": {
            category.value: [
                {
                    "id": agent.id,
                    "name": agent.name,
                    "description": agent.description,
                    "estimatedTime": agent.estimated_time,
                    "timeout": agent.timeout,
                }
                for agent in catalog.agents_in(category)
            ]
            for category in CATEGORY_ORDER
        },
    }


__all__ = ["router"]
