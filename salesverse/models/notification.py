"""
Modèle Notification (best-effort, jamais bloquant)
"""

from enum import Enum
from typing import Optional, List, Literal

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    LEAD_CREATED = "lead_created"
    LEAD_ALLOCATED = "lead_allocated"
    LEAD_STATUS_UPDATED = "lead_status_updated"
    APPLICATION_APPROVED = "application_approved"


class NotificationRecipient(BaseModel):
    recipient_id: str
    recipient_type: Literal["user", "agent", "admin"] = "agent"
    status: Literal["unread", "read"] = "unread"
    read_at: Optional[str] = None


class NotificationCreate(BaseModel):
    type: NotificationType
    title: str
    message: str
    recipients: List[NotificationRecipient] = Field(min_length=1)
    triggered_by: Optional[str] = None
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    data: dict = Field(default_factory=dict)
    action_url: Optional[str] = None


class MarkAsRead(BaseModel):
    recipient_id: str
