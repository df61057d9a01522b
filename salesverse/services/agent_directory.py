"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Annuaire des agents                                        ║
║                                                                              ║
║  - Validation des acteurs référencés par un lead (actifs, non supprimés)     ║
║  - "Introuvable" et "inactif" sont traités de la même façon                  ║
║  - Le message d'erreur liste TOUS les ids invalides                          ║
║  - Résolution des références pour l'affichage                                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import re
from typing import Dict, Iterable, List, Optional

from salesverse.config import new_id, now_iso, strip_mongo_id
from salesverse.errors import ConflictError, NotFoundError, ValidationError
from salesverse.models.agent import AgentCreate, AgentStatus, AgentSummary
from salesverse.services.filters import text_search
from salesverse.services.pagination import paginate

logger = logging.getLogger("agent_directory")

AGENT_CODE_DIGITS = 5

SUMMARY_PROJECTION = {"_id": 0, "id": 1, "first_name": 1, "last_name": 1, "email": 1, "agent_code": 1}


def agent_code_prefix(project_name: str) -> str:
    """
    Préfixe du code agent:
    - nom en un mot  -> 2 premières lettres ("Insurance" -> "IN")
    - plusieurs mots -> initiales des 2 premiers ("Insurance Company" -> "IC")
    """
    words = project_name.strip().split()
    if len(words) == 1:
        return words[0][:2].upper()
    return (words[0][0] + words[1][0]).upper()


class AgentDirectory:
    """Lecture / écriture de la collection agents"""

    def __init__(self, db):
        self.agents = db.agents
        self.projects = db.projects

    # ==================== VALIDATION DES ACTEURS ====================

    async def find_active(self, ids: Iterable[str]) -> List[dict]:
        """Agents actifs et non supprimés parmi ids"""
        ids = [i for i in dict.fromkeys(ids) if i]
        if not ids:
            return []
        return await self.agents.find(
            {"id": {"$in": ids}, "agent_status": AgentStatus.ACTIVE.value, "is_deleted": {"$ne": True}},
            {"_id": 0}
        ).to_list(len(ids))

    async def validate_actors(self, ids: Iterable[str]) -> None:
        """
        Tout ou rien : lève ValidationError listant chaque id absent ou inactif.
        """
        requested = [i for i in dict.fromkeys(ids) if i is not None]
        if not requested:
            return

        found = {a["id"] for a in await self.find_active(requested)}
        invalid = [i for i in requested if i not in found]

        if invalid:
            logger.warning(f"[AGENTS] Invalid actor references: {invalid}")
            raise ValidationError(
                f"Agents not found or inactive: {', '.join(invalid)}",
                details=invalid
            )

    async def summaries(self, ids: Iterable[str]) -> Dict[str, AgentSummary]:
        """Champs d'affichage, indexés par id (agents supprimés inclus)"""
        ids = [i for i in dict.fromkeys(ids) if i]
        if not ids:
            return {}
        agents = await self.agents.find({"id": {"$in": ids}}, SUMMARY_PROJECTION).to_list(len(ids))
        return {a["id"]: AgentSummary(**a) for a in agents}

    # ==================== CODE AGENT ====================

    async def generate_agent_code(self, project_id: str) -> str:
        """Format: [préfixe projet][séquence sur 5 chiffres], ex: IC00001"""
        project = await self.projects.find_one({"id": project_id, "is_deleted": {"$ne": True}}, {"_id": 0})
        if not project:
            raise NotFoundError("Project not found")

        prefix = agent_code_prefix(project["project_name"])

        # Les codes des agents supprimés restent réservés
        latest = await self.agents.find(
            {"agent_code": {"$regex": f"^{re.escape(prefix)}\\d+$"}},
            {"_id": 0, "agent_code": 1}
        ).sort("agent_code", -1).limit(1).to_list(1)

        sequence = 1
        if latest:
            sequence = int(latest[0]["agent_code"][len(prefix):]) + 1

        code = f"{prefix}{str(sequence).zfill(AGENT_CODE_DIGITS)}"
        logger.debug(f"[AGENTS] Generated agent code {code} for project {project_id}")
        return code

    # ==================== CRUD ====================

    async def create_agent(self, data: AgentCreate) -> dict:
        payload = data.model_dump()

        if not payload.get("agent_code"):
            if not payload.get("project_id"):
                raise ValidationError("project_id is required to generate an agent code")
            payload["agent_code"] = await self.generate_agent_code(payload["project_id"])

        existing = await self.agents.find_one(
            {"$or": [{"email": payload["email"]}, {"agent_code": payload["agent_code"]}]},
            {"_id": 0, "email": 1, "agent_code": 1}
        )
        if existing:
            errors = []
            if existing.get("email") == payload["email"]:
                errors.append("Email already exists")
            if existing.get("agent_code") == payload["agent_code"]:
                errors.append("Agent code already exists")
            raise ConflictError(", ".join(errors), details=errors)

        now = now_iso()
        agent_doc = {
            "id": new_id(),
            **payload,
            "agent_status": data.agent_status.value,
            "is_deleted": False,
            "deleted_at": None,
            "created_at": now,
            "updated_at": now,
        }
        await self.agents.insert_one(dict(agent_doc))

        logger.info(f"[AGENTS] Agent created {agent_doc['id']} code={agent_doc['agent_code']}")
        return agent_doc

    async def get_agent(self, agent_id: str) -> dict:
        agent = await self.agents.find_one({"id": agent_id, "is_deleted": {"$ne": True}}, {"_id": 0})
        if not agent:
            raise NotFoundError("Agent not found")
        return agent

    async def list_agents(
        self,
        search: Optional[str] = None,
        agent_status: Optional[AgentStatus] = None,
        project_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> dict:
        query = {"is_deleted": {"$ne": True}}
        if agent_status:
            query["agent_status"] = AgentStatus(agent_status).value
        if project_id:
            query["project_id"] = project_id
        if search:
            query["$or"] = text_search(search, ["first_name", "last_name", "email", "agent_code"])
        return await paginate(self.agents, query, page, limit)

    async def update_status(self, agent_id: str, agent_status: AgentStatus) -> dict:
        agent = strip_mongo_id(await self.agents.find_one_and_update(
            {"id": agent_id, "is_deleted": {"$ne": True}},
            {"$set": {"agent_status": AgentStatus(agent_status).value, "updated_at": now_iso()}},
            return_document=True,
        ))
        if not agent:
            raise NotFoundError("Agent not found")
        logger.info(f"[AGENTS] Agent {agent_id} -> {agent['agent_status']}")
        return agent

    async def delete_agent(self, agent_id: str) -> dict:
        """Soft delete. Les leads déjà affectés ne sont pas invalidés."""
        now = now_iso()
        agent = strip_mongo_id(await self.agents.find_one_and_update(
            {"id": agent_id, "is_deleted": {"$ne": True}},
            {"$set": {"is_deleted": True, "deleted_at": now, "updated_at": now}},
            return_document=True,
        ))
        if not agent:
            raise NotFoundError("Agent not found")
        logger.info(f"[AGENTS] Agent {agent_id} soft-deleted")
        return agent
