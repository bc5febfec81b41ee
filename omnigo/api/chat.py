"""
Chat Endpoints.
Order conversations between the store, its driver and the customer.
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import get_current_user
from omnigo.database import get_db
from omnigo.models.user import User
from omnigo.services.chat_service import ChatService

router = APIRouter()
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4000)


@router.post("/orders/{order_id}/conversation")
async def open_order_conversation(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open the chat for an order (store owner or assigned driver)."""
    conversation = await ChatService(db).find_or_create_conversation_for_order(user, order_id)
    return {
        "conversation_id": str(conversation.id),
        "participants": conversation.participants,
        "is_archived": conversation.is_archived,
    }


@router.post("/conversations/{conversation_id}/messages")
async def send_message(
    conversation_id: uuid.UUID,
    request: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await ChatService(db).send_message(user, conversation_id, request.text)
    return {"success": True, "message_id": str(message.id)}
