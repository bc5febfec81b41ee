"""
Notification Endpoints.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import get_current_user
from omnigo.database import get_db
from omnigo.models.user import User
from omnigo.services.notification_service import NotificationService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notifications = await NotificationService(db).list_for_user(user.id)
    if unread_only:
        notifications = [n for n in notifications if not n.is_read]
    return {
        "notifications": [
            {
                "id": str(n.id),
                "message": n.message,
                "type": n.type,
                "is_read": n.is_read,
                "order_id": str(n.order_id) if n.order_id else None,
                "store_id": str(n.store_id) if n.store_id else None,
                "created_at": n.created_at.isoformat() if n.created_at else None,
            }
            for n in notifications
        ]
    }


@router.post("/read-all")
async def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService(db).mark_all_as_read(user.id)
    return {"success": True, "updated": count}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService(db).mark_as_read(user.id, notification_id)
    return {"success": True}
