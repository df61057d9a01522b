"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Notifications                                              ║
║                                                                              ║
║  Effet de bord BEST-EFFORT :                                                 ║
║  - envoyé APRÈS l'écriture principale, jamais avant                          ║
║  - une erreur est loguée puis ignorée, elle ne remonte jamais à l'appelant   ║
║  - aucune attente : l'envoi tourne dans une tâche asyncio                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
from typing import List, Optional, Set

from salesverse.config import APP_LOGIN_URL, new_id, now_iso, strip_mongo_id
from salesverse.errors import NotFoundError
from salesverse.models.notification import (
    NotificationCreate,
    NotificationRecipient,
    NotificationType,
)
from salesverse.services.pagination import paginate

logger = logging.getLogger("notifications")


class NotificationService:
    """Stockage des notifications (collection notifications)"""

    def __init__(self, db):
        self.notifications = db.notifications

    async def create(self, data: NotificationCreate) -> dict:
        notification_doc = {
            "id": new_id(),
            **data.model_dump(mode="json"),
            "created_at": now_iso(),
        }
        await self.notifications.insert_one(dict(notification_doc))
        logger.info(
            f"[NOTIF] {notification_doc['type']} -> "
            f"{[r['recipient_id'] for r in notification_doc['recipients']]}"
        )
        return notification_doc

    async def list_for_recipient(
        self,
        recipient_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> dict:
        match = {"recipient_id": recipient_id}
        if status:
            match["status"] = status
        return await paginate(self.notifications, {"recipients": {"$elemMatch": match}}, page, limit)

    async def mark_as_read(self, notification_id: str, recipient_id: str) -> dict:
        notification = strip_mongo_id(await self.notifications.find_one_and_update(
            {"id": notification_id, "recipients.recipient_id": recipient_id},
            {"$set": {"recipients.$.status": "read", "recipients.$.read_at": now_iso()}},
            return_document=True,
        ))
        if not notification:
            raise NotFoundError("Notification not found")
        return notification


class NotificationDispatcher:
    """
    Lance les notifications en tâche de fond.

    drain() attend les tâches en cours (arrêt de l'app, tests).
    """

    def __init__(self, service: NotificationService):
        self.service = service
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, data: NotificationCreate) -> asyncio.Task:
        task = asyncio.create_task(self._send(data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _send(self, data: NotificationCreate) -> None:
        try:
            await self.service.create(data)
        except Exception as e:
            logger.error(f"[NOTIF] Failed to send {data.type.value}: {e}")

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ==================== LEADS ====================

    @staticmethod
    def _recipients(*agent_ids, exclude: Optional[str] = None) -> List[NotificationRecipient]:
        """Destinataires dédoublonnés, l'auteur de l'action exclu"""
        ids = [i for i in dict.fromkeys(agent_ids) if i and i != exclude]
        return [NotificationRecipient(recipient_id=i) for i in ids]

    def _dispatch_to(self, recipients: List[NotificationRecipient], **fields) -> None:
        if not recipients:
            return
        self.dispatch(NotificationCreate(recipients=recipients, **fields))

    def lead_created(self, lead: dict) -> None:
        name = f"{lead.get('first_name', '')} {lead.get('last_name', '')}".strip()
        self._dispatch_to(
            self._recipients(lead.get("allocated_to"), lead.get("created_by")),
            type=NotificationType.LEAD_CREATED,
            title="New lead created",
            message=f"Lead {name} has been created",
            triggered_by=lead.get("created_by"),
            data={"lead_id": lead["id"]},
        )

    def lead_allocated(self, lead: dict, previous_owner: Optional[str], allocated_by: Optional[str]) -> None:
        name = f"{lead.get('first_name', '')} {lead.get('last_name', '')}".strip()
        self._dispatch_to(
            self._recipients(lead.get("allocated_to"), previous_owner, exclude=allocated_by),
            type=NotificationType.LEAD_ALLOCATED,
            title="Lead reallocated",
            message=f"Lead {name} has been allocated to a new owner",
            triggered_by=allocated_by,
            priority="high",
            data={"lead_id": lead["id"], "previous_owner": previous_owner, "new_owner": lead.get("allocated_to")},
        )

    def lead_status_updated(self, lead: dict, old_status: Optional[str], new_status: str,
                            updated_by: Optional[str]) -> None:
        self._dispatch_to(
            self._recipients(
                lead.get("allocated_to"), lead.get("created_by"), lead.get("allocated_by"),
                exclude=updated_by,
            ),
            type=NotificationType.LEAD_STATUS_UPDATED,
            title="Lead status updated",
            message=f"Lead status changed from {old_status} to {new_status}",
            triggered_by=updated_by,
            data={"lead_id": lead["id"], "old_status": old_status, "new_status": new_status},
        )

    # ==================== AOB ====================

    def application_approved(self, application: dict, agent: dict) -> None:
        """Message d'onboarding : code agent + lien de connexion"""
        name = " ".join(p for p in (application.get("first_name"), application.get("last_name")) if p)
        self.dispatch(NotificationCreate(
            type=NotificationType.APPLICATION_APPROVED,
            title="Welcome to Salesverse",
            message=(
                f"Congratulations {name or application.get('email_address')}! "
                f"Your agent code is {agent['agent_code']}. Sign in at {APP_LOGIN_URL}"
            ),
            recipients=[NotificationRecipient(recipient_id=agent["id"])],
            priority="high",
            data={
                "application_id": application["application_id"],
                "agent_id": agent["id"],
                "agent_code": agent["agent_code"],
                "email_address": application.get("email_address"),
            },
            action_url=APP_LOGIN_URL,
        ))
