"""Store and product models."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Boolean, Integer, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import StoreType


class Store(Base):
    """
    A merchant storefront.
    pi_uid / pi_wallet_address mirror the owner's linked Pi account and are
    the payout destination.
    """
    
    __tablename__ = "stores"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    store_type: Mapped[str] = mapped_column(
        String(30),
        default=StoreType.OTHER.value,
        nullable=False,
    )
    
    # Payout destination (kept in sync with the owner's profile)
    pi_uid: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pi_wallet_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    delivery_fee: Mapped[Decimal] = mapped_column(
        Numeric(18, 7),
        default=Decimal("0"),
        nullable=False,
    )
    
    # e.g. "20-30 min"
    delivery_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    
    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<Store {self.name}>"
    
    @property
    def tracks_stock(self) -> bool:
        return StoreType(self.store_type).tracks_stock
    
    @property
    def has_payout_destination(self) -> bool:
        return bool(self.pi_uid and self.pi_uid.strip())


class Product(Base):
    """
    Product offered by a store.
    
    `options` is a list of option groups:
    [{"title": "Size", "type": "single",
      "choices": [{"name": "L", "price_increment": 1, "quantity": 4}]}]
    Choice-level `quantity` is stock for that choice.
    """
    
    __tablename__ = "products"
    
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
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    
    price: Mapped[Decimal] = mapped_column(Numeric(18, 7), nullable=False)
    
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Top-level stock; None means untracked
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    options: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<Product {self.name}>"
