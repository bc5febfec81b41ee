"""
Auth Service - resolves bearer tokens to users.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError
from omnigo.models.user import User

logger = logging.getLogger(__name__)


class AuthService:
    """Token validation. The bearer token is the user's token identifier."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_token(self, token_identifier: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.token_identifier == token_identifier)
        )
        return result.scalar_one_or_none()

    async def validate_token(self, token_identifier: Optional[str]) -> User:
        """Return the user for a token or raise AuthorizationError."""
        user = await self.get_user_by_token(token_identifier) if token_identifier else None
        if not user:
            logger.info("Rejected request with unknown token")
            raise AuthorizationError("Invalid or expired token. Please sign in again.")
        return user
