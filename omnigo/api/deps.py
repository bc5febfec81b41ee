from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.database import get_db
from omnigo.errors import AuthorizationError
from omnigo.models.user import User
from omnigo.services.auth_service import AuthService
from omnigo.services.payout_scheduler import DeferredPayoutScheduler, PayoutScheduler
from omnigo.services.pi_network_service import PiNetworkService
from omnigo.services.stellar_service import StellarPayoutSigner


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve `Authorization: Bearer <token identifier>` to a user.
    Raises 401 if the header is missing or the token is unknown.
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    token = authorization[len("bearer "):].strip()
    try:
        return await AuthService(db).validate_token(token)
    except AuthorizationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


def get_pi_service() -> PiNetworkService:
    return PiNetworkService()


def get_payout_signer() -> StellarPayoutSigner:
    return StellarPayoutSigner()


def get_task_scheduler() -> PayoutScheduler:
    """Scheduler that actually enqueues work (Celery in production)."""
    from omnigo.workers.payouts import CeleryPayoutScheduler
    return CeleryPayoutScheduler()


async def get_payout_scheduler(
    target: PayoutScheduler = Depends(get_task_scheduler),
) -> AsyncGenerator[DeferredPayoutScheduler, None]:
    """
    Per-request scheduler. Handlers commit and then call flush(); anything
    still buffered when the request fails is dropped.
    """
    scheduler = DeferredPayoutScheduler(target)
    try:
        yield scheduler
    finally:
        scheduler.discard()
