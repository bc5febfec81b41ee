"""Conversation models - order chat between store/driver and customer."""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict

from sqlalchemy import String, DateTime, ForeignKey, Boolean, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base


class Conversation(Base):
    """
    Chat thread. Order conversations are archived once the order is
    delivered; archived conversations accept no new messages.
    """
    
    __tablename__ = "conversations"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    # User ids as strings
    participants: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    last_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    last_message_sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    
    # {user_id: unread count}
    unread_counts: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def has_participant(self, user_id: uuid.UUID) -> bool:
        return str(user_id) in (self.participants or [])


class Message(Base):
    """Chat message."""
    
    __tablename__ = "messages"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    
    text: Mapped[str] = mapped_column(Text, nullable=False)
    
    # sent | delivered | read
    status: Mapped[str] = mapped_column(String(20), default="sent", nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
