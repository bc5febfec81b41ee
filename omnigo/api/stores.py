"""
Store Owner Endpoints.
Store orders, payout history, payout retry, inventory controls and Pi account linking.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import (
    get_current_user,
    get_payout_scheduler,
    get_payout_signer,
    get_pi_service,
)
from omnigo.api.orders import serialize_order
from omnigo.database import get_db
from omnigo.models.payout import Payout
from omnigo.models.user import User
from omnigo.services.inventory_service import InventoryService
from omnigo.services.order_service import OrderService
from omnigo.services.payout_scheduler import DeferredPayoutScheduler
from omnigo.services.payout_service import PayoutExecutor, PayoutService
from omnigo.services.pi_network_service import PiNetworkService
from omnigo.services.stellar_service import StellarPayoutSigner
from omnigo.services.store_service import StoreService

router = APIRouter()
logger = logging.getLogger(__name__)


class LinkPiAccountRequest(BaseModel):
    """Request body for linking the caller's Pi account."""
    pi_uid: str
    pi_username: Optional[str] = None
    wallet_address: Optional[str] = None


class ProductQuantityRequest(BaseModel):
    quantity: int


class ProductAvailabilityRequest(BaseModel):
    is_available: bool


def serialize_payout(payout: Payout) -> dict:
    return {
        "id": str(payout.id),
        "store_id": str(payout.store_id),
        "order_id": str(payout.order_id),
        "amount": str(payout.amount),
        "status": payout.status,
        "txid": payout.txid,
        "failure_reason": payout.failure_reason,
        "attempt": payout.attempt,
        "created_at": payout.created_at.isoformat() if payout.created_at else None,
    }


@router.get("/stores/{store_id}/orders")
async def list_store_orders(
    store_id: uuid.UUID,
    search: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recent orders for a store (owner only)."""
    rows = await OrderService(db).get_recent_orders_by_store(user, store_id, search_term=search)
    return {
        "orders": [
            {**serialize_order(row["order"]), "customer_name": row["customer_name"]}
            for row in rows
        ]
    }


@router.get("/stores/{store_id}/payouts")
async def list_store_payouts(
    store_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Payout history for a store (owner only), newest first."""
    payouts = await PayoutService(db).get_payouts_by_store(user, store_id)
    return {"payouts": [serialize_payout(p) for p in payouts]}


@router.post("/payouts/{payout_id}/retry")
async def retry_payout(
    payout_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    signer: StellarPayoutSigner = Depends(get_payout_signer),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
):
    """Retry a failed payout with its recorded amount."""
    executor = PayoutExecutor(db, pi_service, signer, scheduler)
    result = await PayoutService(db).retry_failed_payout(user, payout_id, executor)
    await db.commit()
    scheduler.flush()
    return {
        "success": result.success,
        "reason": result.reason,
        "txid": result.txid,
        "will_retry": result.will_retry,
    }


@router.post("/account/pi-link")
async def link_pi_account(
    request: LinkPiAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Link the caller's Pi account; their stores' payout destination follows it."""
    profile = await StoreService(db).link_pi_account(
        user,
        pi_uid=request.pi_uid,
        pi_username=request.pi_username,
        wallet_address=request.wallet_address,
    )
    return {
        "success": True,
        "pi_uid": profile.pi_uid,
        "pi_username": profile.pi_username,
        "wallet_address": profile.wallet_address,
    }


@router.patch("/products/{product_id}/quantity")
async def set_product_quantity(
    product_id: uuid.UUID,
    request: ProductQuantityRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    new_quantity = await InventoryService(db).set_product_quantity(user, product_id, request.quantity)
    return {"success": True, "new_quantity": new_quantity}


@router.patch("/products/{product_id}/availability")
async def update_product_availability(
    product_id: uuid.UUID,
    request: ProductAvailabilityRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await InventoryService(db).update_product_availability(user, product_id, request.is_available)
    return {"success": True}
