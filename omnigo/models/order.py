"""Order model - created once per completed Pi payment."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import OrderStatus


class Order(Base):
    """
    Customer order with a snapshot of purchased items.
    pi_payment_id is unique: one order per external payment.
    """
    
    __tablename__ = "orders"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # [{product_id, name, description, quantity, price, options, image_url, special_instructions}]
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 7), nullable=False)
    
    discount_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("discounts.id", ondelete="SET NULL"),
        nullable=True,
    )
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 7), nullable=True)
    
    delivery_fee: Mapped[Decimal] = mapped_column(
        Numeric(18, 7),
        default=Decimal("0"),
        nullable=False,
    )
    
    status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    
    driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_address: Mapped[str] = mapped_column(Text, default="", nullable=False)
    customer_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    estimated_delivery_time: Mapped[str] = mapped_column(String(50), default="30-45 min", nullable=False)
    actual_delivery_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    payment_method: Mapped[str] = mapped_column(String(20), default="pi_coin", nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    
    # External Pi payment id (unique -> one order per payment)
    pi_payment_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
    )
    
    txid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    payment_record_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pi_payments.id", ondelete="SET NULL"),
        nullable=True,
    )
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<Order {self.id} status={self.status}>"
    
    @property
    def short_id(self) -> str:
        return str(self.id)[-6:]
