"""
Notification Service - in-app notifications for customers and store owners.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError, NotFoundError
from omnigo.fsm.states import NotificationType
from omnigo.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for in-app notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        message: str,
        type: NotificationType,
        order_id: Optional[uuid.UUID] = None,
        store_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            message=message,
            type=type.value,
            order_id=order_id,
            store_id=store_id,
        )
        self.db.add(notification)
        await self.db.flush()

        logger.info(f"Notification ({type.value}) created for user {user_id}")
        return notification

    async def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> List[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_as_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification not found.")
        if notification.user_id != user_id:
            raise AuthorizationError("Not authorized to update this notification.")

        notification.is_read = True
        await self.db.flush()

    async def mark_all_as_read(self, user_id: uuid.UUID) -> int:
        """Mark every unread notification for a user as read. Returns the count."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
