"""
Composition root : chaque service est construit une fois, avec ses collaborateurs.
"""

from dataclasses import dataclass

from salesverse.services.agent_directory import AgentDirectory
from salesverse.services.application_approval import ApplicationApprovalService
from salesverse.services.application_service import ApplicationService
from salesverse.services.audit_trail import AuditTrailRecorder
from salesverse.services.lead_service import LeadService
from salesverse.services.notifications import NotificationDispatcher, NotificationService
from salesverse.services.projects import ProjectService


@dataclass
class Services:
    agents: AgentDirectory
    projects: ProjectService
    notifications: NotificationService
    notifier: NotificationDispatcher
    leads: LeadService
    approval: ApplicationApprovalService
    applications: ApplicationService


def build_services(db) -> Services:
    agents = AgentDirectory(db)
    projects = ProjectService(db)
    notifications = NotificationService(db)
    notifier = NotificationDispatcher(notifications)

    application_audit = AuditTrailRecorder(db.application_history, "application_id")
    approval = ApplicationApprovalService(db, agents, projects, notifier, application_audit)

    return Services(
        agents=agents,
        projects=projects,
        notifications=notifications,
        notifier=notifier,
        leads=LeadService(db, agents, notifier),
        approval=approval,
        applications=ApplicationService(db, approval, application_audit),
    )


async def ensure_indexes(db) -> None:
    """Index MongoDB (idempotent)"""
    await db.agents.create_index("id", unique=True)
    await db.agents.create_index("agent_code", unique=True)
    await db.agents.create_index("email")
    await db.projects.create_index("id", unique=True)
    await db.leads.create_index("id", unique=True)
    await db.leads.create_index("email_address")
    await db.leads.create_index("primary_number")
    await db.leads.create_index("created_at")
    await db.leads.create_index("current_lead_status.name")
    await db.lead_history.create_index([("lead_id", 1), ("created_at", -1)])
    await db.aob_applications.create_index("application_id", unique=True)
    await db.aob_applications.create_index("email_address", unique=True)
    await db.aob_applications.create_index("mobile_number", unique=True)
    await db.application_history.create_index([("application_id", 1), ("created_at", -1)])
    await db.aob_documents.create_index([("application_id", 1), ("document_type", 1)], unique=True)
    await db.aob_documents.create_index("document_id", unique=True)
    await db.aob_document_history.create_index("document_id")
    await db.notifications.create_index("recipients.recipient_id")
