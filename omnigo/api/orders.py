"""
Order Endpoints.
Customer order history and status updates by store owners and drivers.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import get_current_user
from omnigo.database import get_db
from omnigo.fsm.states import OrderStatus
from omnigo.models.order import Order
from omnigo.models.user import User
from omnigo.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


class UpdateOrderStatusRequest(BaseModel):
    """Request body for an order status change."""
    status: OrderStatus
    driver_id: Optional[uuid.UUID] = None


def serialize_order(order: Order) -> dict:
    return {
        "id": str(order.id),
        "short_id": order.short_id,
        "store_id": str(order.store_id),
        "store_name": order.store_name,
        "items": order.items,
        "total_amount": str(order.total_amount),
        "discount_amount": str(order.discount_amount) if order.discount_amount is not None else None,
        "delivery_fee": str(order.delivery_fee),
        "status": order.status,
        "driver_id": str(order.driver_id) if order.driver_id else None,
        "customer_name": order.customer_name,
        "delivery_address": order.delivery_address,
        "customer_notes": order.customer_notes,
        "estimated_delivery_time": order.estimated_delivery_time,
        "actual_delivery_time": order.actual_delivery_time.isoformat() if order.actual_delivery_time else None,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "pi_payment_id": order.pi_payment_id,
        "txid": order.txid,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: uuid.UUID,
    request: UpdateOrderStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change an order's status.

    Store owners confirm, prepare, dispatch (driver_id required) or cancel;
    only the assigned driver can mark an order delivered.
    """
    service = OrderService(db)
    order = await service.update_order_status(
        user=user,
        order_id=order_id,
        status=request.status,
        driver_id=request.driver_id,
    )
    return {"success": True, "order": serialize_order(order)}


@router.get("")
async def list_my_orders(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's orders, newest first, with totals."""
    service = OrderService(db)
    orders = await service.get_orders_by_user(user)
    stats = await service.get_user_order_stats(user)
    return {
        "orders": [serialize_order(o) for o in orders],
        "total_orders": stats["total_orders"],
        "total_spent": str(stats["total_spent"]),
    }
