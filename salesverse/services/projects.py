"""
Projets (source du préfixe des codes agent)
"""

import logging
from typing import Optional

from salesverse.config import new_id, now_iso
from salesverse.errors import ConflictError, NotFoundError
from salesverse.models.agent import ProjectCreate
from salesverse.services.filters import text_search
from salesverse.services.pagination import paginate

logger = logging.getLogger("projects")


class ProjectService:

    def __init__(self, db):
        self.projects = db.projects

    async def create_project(self, data: ProjectCreate) -> dict:
        payload = data.model_dump()
        payload["project_code"] = payload["project_code"].strip().upper()

        existing = await self.projects.find_one(
            {"project_code": payload["project_code"], "is_deleted": {"$ne": True}}, {"_id": 0, "id": 1}
        )
        if existing:
            raise ConflictError("Project code already exists")

        now = now_iso()
        project_doc = {
            "id": new_id(),
            **payload,
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        await self.projects.insert_one(dict(project_doc))

        logger.info(f"[PROJECTS] Project created {project_doc['id']} ({project_doc['project_code']})")
        return project_doc

    async def get_project(self, project_id: str) -> dict:
        project = await self.projects.find_one({"id": project_id, "is_deleted": {"$ne": True}}, {"_id": 0})
        if not project:
            raise NotFoundError("Project not found")
        return project

    async def list_projects(self, search: Optional[str] = None, page: int = 1, limit: int = 10) -> dict:
        query = {"is_deleted": {"$ne": True}}
        if search:
            query["$or"] = text_search(search, ["project_name", "project_code"])
        return await paginate(self.projects, query, page, limit, sort=[("project_name", 1)])
