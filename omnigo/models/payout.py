"""Payout model - one row per attempted transfer to a store owner."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import PayoutStatus


class Payout(Base):
    """
    Payout attempt record.
    
    Rows are append-only: a retry inserts a new row with the next
    `attempt` number instead of updating a failed one.
    """
    
    __tablename__ = "payouts"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 7), nullable=False)
    
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutStatus.PENDING.value,
        nullable=False,
    )
    
    txid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # 1-based attempt number for this order
    attempt: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    
    def __repr__(self) -> str:
        return f"<Payout {self.id} order={self.order_id} status={self.status}>"
