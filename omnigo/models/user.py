"""User models - identity and Pi account linkage."""

import uuid
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from omnigo.database import Base
from omnigo.fsm.states import UserRole


class User(Base):
    """
    Application user.
    Bearer tokens resolve to `token_identifier`.
    """
    
    __tablename__ = "users"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    token_identifier: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<User {self.id}>"


class UserProfile(Base):
    """Profile with the linked Pi account (payout destination source)."""
    
    __tablename__ = "user_profiles"
    
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    # Pi Network user id (A2U payout target)
    pi_uid: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        index=True,
    )
    
    pi_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    wallet_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    # e.g. ["store_owner", "driver"]
    roles: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    
    @property
    def is_driver(self) -> bool:
        return UserRole.DRIVER.value in (self.roles or [])
    
    @property
    def display_name(self) -> Optional[str]:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.pi_username
