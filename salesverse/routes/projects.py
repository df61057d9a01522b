"""
Routes Projets
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from salesverse.container import Services
from salesverse.models.agent import ProjectCreate
from salesverse.routes.responses import check_id, get_services, ok, paginated

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post("", status_code=201)
async def create_project(data: ProjectCreate, services: Services = Depends(get_services)):
    project = await services.projects.create_project(data)
    return ok(project, "Project created successfully")


@router.get("")
async def list_projects(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    result = await services.projects.list_projects(search, page, limit)
    return paginated(result, "Projects retrieved successfully")


@router.get("/{project_id}")
async def get_project(project_id: str, services: Services = Depends(get_services)):
    check_id(project_id, "project")
    project = await services.projects.get_project(project_id)
    return ok(project, "Project retrieved successfully")
