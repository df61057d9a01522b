"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Approbation AOB -> création de l'agent                     ║
║                                                                              ║
║  ORDRE:                                                                      ║
║  1. contrôles (application, projet, utilisateur role=user du projet)         ║
║  2. création de l'agent (code généré depuis le projet)                       ║
║  3. bascule CONDITIONNELLE de l'application en "approved"                    ║
║     -> perdue (déjà approuvée entre-temps) : l'agent créé est supprimé       ║
║  4. notification d'onboarding (best-effort)                                  ║
║                                                                              ║
║  Une application "approved" par ce chemin a TOUJOURS un agent.               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional

from salesverse.config import now_iso, strip_mongo_id
from salesverse.errors import ConflictError, NotFoundError, ValidationError
from salesverse.models.agent import AgentCreate, AgentStatus
from salesverse.models.application import ApplicationStatus, DocumentStatus
from salesverse.models.history import ChangeType, HistoryChange
from salesverse.services.agent_directory import AgentDirectory
from salesverse.services.application_status import make_application_status_record
from salesverse.services.audit_trail import AuditTrailRecorder
from salesverse.services.notifications import NotificationDispatcher
from salesverse.services.projects import ProjectService

logger = logging.getLogger("application_approval")


async def outstanding_discrepancies(documents, application: dict) -> list:
    """
    Entrées de qc_discrepancy_list encore justifiées à l'approbation :
    uniquement les types dont le document est toujours en "reject".
    """
    rejected = await documents.find(
        {"application_id": application["application_id"], "document_status": DocumentStatus.REJECT.value},
        {"_id": 0, "document_type": 1}
    ).to_list(None)
    types = {d["document_type"] for d in rejected}
    return [e for e in application.get("qc_discrepancy_list") or [] if e["document_type"] in types]


class ApplicationApprovalService:

    def __init__(
        self,
        db,
        agents: AgentDirectory,
        projects: ProjectService,
        notifier: NotificationDispatcher,
        audit: AuditTrailRecorder
    ):
        self.applications = db.aob_applications
        self.documents = db.aob_documents
        self.users = db.users
        self.agents = agents
        self.projects = projects
        self.notifier = notifier
        self.audit = audit

    async def process_approved_application(
        self,
        application_id: str,
        project_id: str,
        remarks: Optional[str] = None,
        approved_by: Optional[str] = None
    ) -> dict:
        """
        Returns:
            {"application": ..., "agent": ...}
        Raises:
            NotFoundError: application ou projet absent
            ValidationError: aucun utilisateur role=user pour le projet, identité incomplète
            ConflictError: application déjà approuvée (avant ou pendant le traitement)
        """
        logger.debug(f"[APPROVAL] Processing {application_id} for project {project_id}")

        application = await self.applications.find_one({"application_id": application_id}, {"_id": 0})
        if not application:
            raise NotFoundError("Application not found")

        if application.get("application_status") == ApplicationStatus.APPROVED.value:
            raise ConflictError("Application already approved")

        await self.projects.get_project(project_id)

        user = await self.users.find_one({"project_id": project_id, "role": "user"}, {"_id": 0})
        if not user:
            logger.error(f"[APPROVAL] No user with role=user for project {project_id}")
            raise ValidationError("No user found associated with the project")

        if not application.get("first_name") or not application.get("last_name"):
            raise ValidationError("Application is missing first or last name")

        # Une erreur ici laisse l'application intacte
        agent = await self.agents.create_agent(AgentCreate(
            first_name=application["first_name"],
            last_name=application["last_name"],
            middle_name=application.get("middle_name"),
            email=application["email_address"],
            phone_number=application["mobile_number"],
            project_id=project_id,
            user_id=user["id"],
            agent_status=AgentStatus.ACTIVE,
        ))

        discrepancies = await outstanding_discrepancies(self.documents, application)
        record = make_application_status_record(ApplicationStatus.APPROVED, remarks)
        fields = {
            "application_status": ApplicationStatus.APPROVED.value,
            "project_id": project_id,
            "qc_discrepancy_list": discrepancies,
            "agent_id": agent["id"],
            "updated_at": now_iso(),
        }
        if remarks:
            fields["reject_remark"] = remarks

        approved = strip_mongo_id(await self.applications.find_one_and_update(
            {"application_id": application_id, "application_status": {"$ne": ApplicationStatus.APPROVED.value}},
            {"$set": fields, "$push": {"status_history": record}, "$inc": {"version": 1}},
            return_document=True,
        ))

        if not approved:
            # Approuvée par une autre requête entre-temps : on ne garde pas un second agent
            await self.agents.delete_agent(agent["id"])
            logger.warning(f"[APPROVAL] {application_id} approved concurrently, agent {agent['id']} removed")
            raise ConflictError("Application already approved")

        changes = [
            HistoryChange(
                field="application_status",
                old_value=application.get("application_status"),
                new_value=ApplicationStatus.APPROVED.value,
            ),
            HistoryChange(field="agent_id", old_value=application.get("agent_id"), new_value=agent["id"]),
        ]
        if application.get("project_id") != project_id:
            changes.append(HistoryChange(field="project_id", old_value=application.get("project_id"), new_value=project_id))
        if (application.get("qc_discrepancy_list") or []) != discrepancies:
            changes.append(HistoryChange(
                field="qc_discrepancy_list", old_value=application.get("qc_discrepancy_list"), new_value=discrepancies
            ))
        await self.audit.record(application_id, approved_by, changes, ChangeType.UPDATE)

        logger.info(f"[APPROVAL] {application_id} approved, agent {agent['id']} code={agent['agent_code']}")

        self.notifier.application_approved(approved, agent)
        return {"application": approved, "agent": agent}
