"""
Routes Notifications
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from salesverse.container import Services
from salesverse.models.notification import MarkAsRead
from salesverse.routes.responses import check_id, get_services, ok, paginated

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/{recipient_id}")
async def list_notifications(
    recipient_id: str,
    status: Optional[Literal["unread", "read"]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    check_id(recipient_id, "recipient")
    result = await services.notifications.list_for_recipient(recipient_id, status, page, limit)
    return paginated(result, "Notifications retrieved successfully")


@router.patch("/{notification_id}/read")
async def mark_notification_as_read(
    notification_id: str,
    data: MarkAsRead,
    services: Services = Depends(get_services)
):
    check_id(notification_id, "notification")
    notification = await services.notifications.mark_as_read(notification_id, data.recipient_id)
    return ok(notification, "Notification marked as read")
