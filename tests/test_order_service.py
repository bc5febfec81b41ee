"""
Tests for OrderService.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError
from omnigo.fsm.states import NotificationType, OrderStatus
from omnigo.models.notification import Notification
from omnigo.services.chat_service import ChatService
from omnigo.services.order_service import OrderService


@pytest.mark.asyncio
async def test_full_delivery_flow(db, make_user, make_store, make_order):
    """Owner prepares and dispatches, the assigned driver delivers."""
    owner = await make_user(roles=["store_owner"])
    driver = await make_user(roles=["driver"])
    customer = await make_user()
    store = await make_store(owner)
    order = await make_order(customer, store)
    conversation = await ChatService(db).find_or_create_conversation_for_order(owner, order.id)
    service = OrderService(db)

    await service.update_order_status(owner, order.id, OrderStatus.PREPARING)
    await service.update_order_status(owner, order.id, OrderStatus.OUT_FOR_DELIVERY, driver_id=driver.id)
    assert order.driver_id == driver.id

    with pytest.raises(AuthorizationError, match="Only the assigned driver can mark the order as delivered."):
        await service.update_order_status(owner, order.id, OrderStatus.DELIVERED)

    delivered = await service.update_order_status(driver, order.id, OrderStatus.DELIVERED)

    assert delivered.status == OrderStatus.DELIVERED.value
    assert delivered.actual_delivery_time is not None
    await db.refresh(conversation)
    assert conversation.is_archived is True

    result = await db.execute(
        select(Notification).where(Notification.user_id == customer.id)
    )
    notifications = list(result.scalars().all())
    messages = [n.message for n in notifications]
    assert len(messages) == 3
    assert f"Your order #{order.short_id} from Corner Shop is out for delivery." in messages
    assert all(n.type == NotificationType.STATUS_UPDATE.value for n in notifications)


@pytest.mark.asyncio
async def test_dispatch_to_non_driver_rejected(db, make_user, make_store, make_order):
    owner = await make_user()
    not_a_driver = await make_user()
    store = await make_store(owner)
    order = await make_order(await make_user(), store, status=OrderStatus.PREPARING)

    with pytest.raises(BusinessRuleError, match="not a driver"):
        await OrderService(db).update_order_status(
            owner, order.id, OrderStatus.OUT_FOR_DELIVERY, driver_id=not_a_driver.id
        )


@pytest.mark.asyncio
async def test_unassigned_driver_cannot_deliver(db, make_user, make_store, make_order):
    assigned = await make_user(roles=["driver"])
    other = await make_user(roles=["driver"])
    store = await make_store(await make_user())
    order = await make_order(await make_user(), store, status=OrderStatus.OUT_FOR_DELIVERY, driver_id=assigned.id)

    with pytest.raises(AuthorizationError, match="You are not assigned to this order."):
        await OrderService(db).update_order_status(other, order.id, OrderStatus.DELIVERED)


@pytest.mark.asyncio
async def test_unknown_order(db, make_user):
    with pytest.raises(NotFoundError):
        await OrderService(db).update_order_status(await make_user(), uuid.uuid4(), OrderStatus.PREPARING)


@pytest.mark.asyncio
async def test_recent_store_orders(db, make_user, make_store, make_order):
    owner = await make_user()
    store = await make_store(owner)
    named = await make_user(first_name="Ravi")
    await make_order(named, store)
    await make_order(await make_user(), store)

    rows = await OrderService(db).get_recent_orders_by_store(owner, store.id)

    assert sorted(r["customer_name"] for r in rows) == ["Anonymous User", "Ravi"]

    with pytest.raises(AuthorizationError, match="Not authorized to view orders for this store"):
        await OrderService(db).get_recent_orders_by_store(named, store.id)


@pytest.mark.asyncio
async def test_user_order_stats(db, make_user, make_store, make_order):
    customer = await make_user()
    store = await make_store(await make_user())
    await make_order(customer, store, total="10")
    await make_order(customer, store, total="2.5")

    stats = await OrderService(db).get_user_order_stats(customer)

    assert stats["total_orders"] == 2
    assert stats["total_spent"] == Decimal("12.5")
