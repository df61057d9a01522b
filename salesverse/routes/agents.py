"""
Routes Agents
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from salesverse.container import Services
from salesverse.models.agent import AgentCreate, AgentStatus, AgentStatusUpdate
from salesverse.routes.responses import check_id, get_services, ok, paginated

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.post("", status_code=201)
async def create_agent(data: AgentCreate, services: Services = Depends(get_services)):
    if data.project_id:
        check_id(data.project_id, "project")
    agent = await services.agents.create_agent(data)
    return ok(agent, "Agent created successfully")


@router.get("")
async def list_agents(
    search: Optional[str] = None,
    agent_status: Optional[AgentStatus] = None,
    project_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    if project_id:
        check_id(project_id, "project")
    result = await services.agents.list_agents(search, agent_status, project_id, page, limit)
    return paginated(result, "Agents retrieved successfully")


@router.get("/{agent_id}")
async def get_agent(agent_id: str, services: Services = Depends(get_services)):
    check_id(agent_id, "agent")
    agent = await services.agents.get_agent(agent_id)
    return ok(agent, "Agent retrieved successfully")


@router.patch("/{agent_id}/status")
async def update_agent_status(
    agent_id: str,
    data: AgentStatusUpdate,
    services: Services = Depends(get_services)
):
    check_id(agent_id, "agent")
    agent = await services.agents.update_status(agent_id, data.agent_status)
    return ok(agent, "Agent status updated successfully")


@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, services: Services = Depends(get_services)):
    """Soft delete"""
    check_id(agent_id, "agent")
    agent = await services.agents.delete_agent(agent_id)
    return ok({"id": agent["id"], "deleted_at": agent["deleted_at"]}, "Agent deleted successfully")
