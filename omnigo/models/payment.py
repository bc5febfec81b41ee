"""Payment model - internal ledger row for one external Pi payment."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import PaymentStatus


class PiPayment(Base):
    """
    PaymentRecord for a Pi Network payment.
    payment_id is unique so each external payment has exactly one row.
    Rows are never deleted.
    """
    
    __tablename__ = "pi_payments"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    # Identifier issued by the Pi SDK on the client
    payment_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 7),
        nullable=False,
    )
    
    memo: Mapped[str] = mapped_column(Text, default="", nullable=False)
    
    # Validated cart / single-product metadata (see omnigo.schemas.payment_metadata)
    payment_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        default=dict,
        nullable=False,
    )
    
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.APPROVED.value,
        nullable=False,
        index=True,
    )
    
    # Blockchain transaction id
    txid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Linked order (plain column; orders.payment_record_id points back here)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<PiPayment {self.payment_id} status={self.status}>"
    
    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value
