"""Discount models - codes and their usage ledger."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Integer, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import DiscountType, DiscountTarget


class Discount(Base):
    """Store discount code. Codes are stored upper-case."""
    
    __tablename__ = "discounts"
    __table_args__ = (UniqueConstraint("store_id", "code", name="uq_discounts_store_code"),)
    
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
    
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    
    type: Mapped[str] = mapped_column(
        String(20),
        default=DiscountType.PERCENTAGE.value,
        nullable=False,
    )
    
    value: Mapped[Decimal] = mapped_column(Numeric(18, 7), nullable=False)
    
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    min_order_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 7), nullable=True)
    
    # Total usage limit / per-user limit (None or 0 = unlimited)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_limit_per_user: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    times_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    target_users: Mapped[str] = mapped_column(
        String(20),
        default=DiscountTarget.ALL.value,
        nullable=False,
    )
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<Discount {self.code}>"


class DiscountUsage(Base):
    """One row per order that used a discount."""
    
    __tablename__ = "discount_usages"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    discount_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("discounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
    )
    
    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
