"""
Chat Service - order conversations between store staff and customers.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError
from omnigo.models.conversation import Conversation, Message
from omnigo.models.order import Order
from omnigo.models.store import Store
from omnigo.models.user import User

logger = logging.getLogger(__name__)


class ChatService:
    """Service for order conversations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order_conversation(self, order_id: uuid.UUID) -> Optional[Conversation]:
        result = await self.db.execute(
            select(Conversation).where(Conversation.order_id == order_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_or_create_conversation_for_order(self, user: User, order_id: uuid.UUID) -> Conversation:
        """
        Open (or reuse) the chat for an order.
        Only the store owner or the assigned driver may start it; the customer
        is added as the other participant.
        """
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found.")

        result = await self.db.execute(select(Store).where(Store.id == order.store_id))
        store = result.scalar_one_or_none()
        is_owner = store is not None and store.owner_id == user.id
        is_assigned_driver = order.driver_id == user.id
        if not is_owner and not is_assigned_driver:
            raise AuthorizationError("You are not authorized to start a chat for this order.")

        conversation = await self.get_order_conversation(order_id)
        if conversation:
            return conversation

        initiator_id, customer_id = str(user.id), str(order.user_id)
        conversation = Conversation(
            participants=sorted({initiator_id, customer_id}),
            order_id=order_id,
            unread_counts={initiator_id: 0, customer_id: 0},
            updated_at=datetime.now(timezone.utc),
        )
        self.db.add(conversation)
        await self.db.flush()

        logger.info(f"Conversation {conversation.id} opened for order {order_id}")
        return conversation

    async def send_message(self, user: User, conversation_id: uuid.UUID, text: str) -> Message:
        result = await self.db.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        conversation = result.scalar_one_or_none()
        if not conversation or not conversation.has_participant(user.id):
            raise NotFoundError("Conversation not found or access denied.")

        if conversation.is_archived:
            raise BusinessRuleError("This conversation is archived and cannot receive new messages.")

        text = text.strip()
        if not text:
            raise BusinessRuleError("Message text cannot be empty.")

        message = Message(
            conversation_id=conversation.id,
            sender_id=user.id,
            text=text,
            status="sent",
        )
        self.db.add(message)

        sender_id = str(user.id)
        unread = dict(conversation.unread_counts or {})
        for participant in conversation.participants:
            if participant != sender_id:
                unread[participant] = unread.get(participant, 0) + 1

        conversation.unread_counts = unread
        conversation.last_message = text
        conversation.last_message_sender_id = user.id
        conversation.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        return message

    async def archive_order_conversation(self, order_id: uuid.UUID) -> bool:
        """Archive the order's chat. Returns False when there is none."""
        conversation = await self.get_order_conversation(order_id)
        if not conversation:
            return False

        conversation.is_archived = True
        await self.db.flush()

        logger.info(f"Conversation {conversation.id} archived (order {order_id} delivered)")
        return True
