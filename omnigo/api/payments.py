"""
Client payment endpoints.
Called by the Pi SDK callbacks in the app (approve, complete, cancel, incomplete).
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import get_current_user, get_payout_scheduler, get_pi_service
from omnigo.database import get_db
from omnigo.models.payment import PiPayment
from omnigo.models.user import User
from omnigo.redis import completion_claim, get_redis
from omnigo.services.payout_scheduler import DeferredPayoutScheduler
from omnigo.services.pi_network_service import PiNetworkService
from omnigo.services.pi_payment_service import PiPaymentService

router = APIRouter()
logger = logging.getLogger(__name__)


class ApprovePaymentRequest(BaseModel):
    """Request body for approving a payment."""
    payment_id: str
    access_token: str
    amount: Optional[Decimal] = None
    memo: Optional[str] = None
    metadata: Any = None


class CompletePaymentRequest(BaseModel):
    """Request body for completing a payment."""
    payment_id: str
    txid: Optional[str] = None


class PaymentIdRequest(BaseModel):
    payment_id: str


def serialize_payment(record: PiPayment) -> dict:
    return {
        "id": str(record.id),
        "payment_id": record.payment_id,
        "amount": str(record.amount),
        "memo": record.memo,
        "status": record.status,
        "txid": record.txid,
        "failure_reason": record.failure_reason,
        "order_id": str(record.order_id) if record.order_id else None,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


@router.post("/approve")
async def approve_payment(
    request: ApprovePaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
):
    """Verify the Pi user, record the payment and approve it with Pi."""
    service = PiPaymentService(db, pi_service, scheduler)
    result = await service.approve_payment(
        user=user,
        payment_id=request.payment_id,
        access_token=request.access_token,
        amount=request.amount,
        memo=request.memo,
        metadata=request.metadata,
    )
    await db.commit()
    return result


def completion_in_progress(payment_id: str) -> JSONResponse:
    """Another caller (webhook or client) is completing this payment."""
    logger.info(f"Completion for {payment_id} already in progress")
    return JSONResponse(
        {"success": False, "message": "Payment completion already in progress."},
        status_code=409,
    )


@router.post("/complete")
async def complete_payment(
    request: CompletePaymentRequest,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
    redis: Redis = Depends(get_redis),
):
    """Complete a signed payment and create its order."""
    async with completion_claim(redis, request.payment_id) as acquired:
        if not acquired:
            return completion_in_progress(request.payment_id)
        service = PiPaymentService(db, pi_service, scheduler)
        result = await service.complete_payment(request.payment_id, request.txid)
        await db.commit()
    scheduler.flush()
    return result


@router.post("/cancel")
async def cancel_payment(
    request: PaymentIdRequest,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
):
    """Record a payment the user cancelled or abandoned."""
    service = PiPaymentService(db, pi_service, scheduler)
    result = await service.report_cancelled_payment(request.payment_id)
    await db.commit()
    return result


@router.post("/incomplete")
async def handle_incomplete_payment(
    request: PaymentIdRequest,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
    redis: Redis = Depends(get_redis),
):
    """Resolve an incomplete payment found by the Pi SDK on sign-in."""
    async with completion_claim(redis, request.payment_id) as acquired:
        if not acquired:
            return completion_in_progress(request.payment_id)
        service = PiPaymentService(db, pi_service, scheduler)
        result = await service.handle_incomplete_payment(request.payment_id)
        await db.commit()
    scheduler.flush()
    return result


@router.get("")
async def list_payments(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
):
    """The caller's most recent payments."""
    service = PiPaymentService(db, pi_service, scheduler)
    records = await service.get_payments_by_user(user, limit=limit)
    return {"payments": [serialize_payment(r) for r in records]}
