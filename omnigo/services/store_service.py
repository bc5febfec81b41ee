"""
Store Service - Pi account linking and store payout destinations.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import BusinessRuleError
from omnigo.models.store import Store
from omnigo.models.user import User, UserProfile

logger = logging.getLogger(__name__)


class StoreService:
    """Keeps each store's payout destination in sync with its owner's Pi account."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def link_pi_account(
        self,
        user: User,
        pi_uid: str,
        pi_username: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> UserProfile:
        """
        Store the caller's Pi identity on their profile and propagate it to
        every store they own.
        """
        pi_uid = (pi_uid or "").strip()
        if not pi_uid:
            raise BusinessRuleError("A Pi UID is required to link a Pi account.")

        result = await self.db.execute(
            select(UserProfile).where(UserProfile.user_id == user.id)
        )
        profile = result.scalar_one_or_none()

        if not profile:
            profile = UserProfile(user_id=user.id, roles=[])
            self.db.add(profile)

        profile.pi_uid = pi_uid
        if pi_username is not None:
            profile.pi_username = pi_username
        if wallet_address is not None:
            profile.wallet_address = wallet_address
        await self.db.flush()

        logger.info(f"Linked Pi account {pi_uid[:8]}... to user {user.id}")

        await self.sync_store_payout_destinations(user.id, pi_uid, profile.wallet_address)
        return profile

    async def sync_store_payout_destinations(
        self,
        owner_id: uuid.UUID,
        pi_uid: Optional[str],
        wallet_address: Optional[str],
    ) -> int:
        """Write the payout destination to all of the owner's stores. Returns the count."""
        result = await self.db.execute(
            update(Store)
            .where(Store.owner_id == owner_id)
            .values(pi_uid=pi_uid, pi_wallet_address=wallet_address)
            .execution_options(synchronize_session="fetch")
        )
        count = result.rowcount or 0
        if count:
            logger.info(f"Updated wallet and UID for {count} store(s) owned by {owner_id}")
        return count
