"""
Order Service - order status updates and order queries.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError
from omnigo.fsm.machine import OrderStateMachine
from omnigo.fsm.states import NotificationType, OrderStatus
from omnigo.models.order import Order
from omnigo.models.store import Store
from omnigo.models.user import User, UserProfile
from omnigo.services.chat_service import ChatService
from omnigo.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    OrderStatus.PENDING: "pending",
    OrderStatus.CONFIRMED: "confirmed",
    OrderStatus.PREPARING: "being prepared",
    OrderStatus.OUT_FOR_DELIVERY: "out for delivery",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.CANCELLED: "cancelled",
}


class OrderService:
    """Service for order lifecycle and queries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def get_profile(self, user_id: uuid.UUID) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def update_order_status(
        self,
        user: User,
        order_id: uuid.UUID,
        status: OrderStatus,
        driver_id: Optional[uuid.UUID] = None,
    ) -> Order:
        """
        Move an order along its lifecycle.

        The store owner confirms, prepares, dispatches (with a driver) or
        cancels; only the assigned driver marks it delivered. Delivery
        archives the order chat. The customer is notified of every change.
        """
        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        profile = await self.get_profile(user.id)
        is_driver = bool(profile and profile.is_driver)

        result = await self.db.execute(select(Store).where(Store.id == order.store_id))
        store = result.scalar_one_or_none()

        machine = OrderStateMachine(
            current=OrderStatus(order.status),
            store_owner_id=store.owner_id if store else None,
            assigned_driver_id=order.driver_id,
        )
        machine.authorize(user.id, status, is_driver=is_driver, driver_id=driver_id)

        if status == OrderStatus.OUT_FOR_DELIVERY and driver_id:
            driver_profile = await self.get_profile(driver_id)
            if not driver_profile or not driver_profile.is_driver:
                raise BusinessRuleError("The selected user is not a driver.")
            order.driver_id = driver_id

        logger.info(f"Order {order.id}: {order.status} -> {status.value} by user {user.id}")
        order.status = status.value

        if status == OrderStatus.DELIVERED:
            order.actual_delivery_time = datetime.now(timezone.utc)
            await ChatService(self.db).archive_order_conversation(order.id)

        await NotificationService(self.db).create(
            user_id=order.user_id,
            message=f"Your order #{order.short_id} from {order.store_name} is {STATUS_LABELS[status]}.",
            type=NotificationType.STATUS_UPDATE,
            order_id=order.id,
            store_id=order.store_id,
        )

        await self.db.flush()
        return order

    async def get_orders_by_user(self, user: User) -> List[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user.id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_user_order_stats(self, user: User) -> Dict[str, Any]:
        orders = await self.get_orders_by_user(user)
        return {
            "total_orders": len(orders),
            "total_spent": sum((o.total_amount for o in orders), Decimal("0")),
        }

    async def get_recent_orders_by_store(
        self,
        user: User,
        store_id: uuid.UUID,
        search_term: Optional[str] = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        """Latest orders for a store (owner only), with a display name per customer."""
        result = await self.db.execute(select(Store).where(Store.id == store_id))
        store = result.scalar_one_or_none()
        if not store or store.owner_id != user.id:
            raise AuthorizationError("Not authorized to view orders for this store")

        query = select(Order).where(Order.store_id == store_id)
        if search_term:
            query = query.where(Order.customer_name.ilike(f"%{search_term}%"))
        result = await self.db.execute(query.order_by(Order.created_at.desc()).limit(limit))
        orders = list(result.scalars().all())

        customer_ids = {o.user_id for o in orders}
        profiles: Dict[uuid.UUID, UserProfile] = {}
        if customer_ids:
            result = await self.db.execute(
                select(UserProfile).where(UserProfile.user_id.in_(customer_ids))
            )
            profiles = {p.user_id: p for p in result.scalars().all()}

        rows = []
        for order in orders:
            profile = profiles.get(order.user_id)
            rows.append({
                "order": order,
                "customer_name": (profile.display_name if profile else None) or "Anonymous User",
            })
        return rows
