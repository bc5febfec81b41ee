"""
Completion Processor - turns a completed Pi payment into exactly one order.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.config import settings
from omnigo.errors import DuplicateOrderError, NotFoundError
from omnigo.fsm.states import NotificationType, OrderStatus, PaymentStatus
from omnigo.models.order import Order
from omnigo.models.payment import PiPayment
from omnigo.models.store import Product, Store
from omnigo.schemas.payment_metadata import (
    CartItem,
    CartOrderMetadata,
    SingleProductMetadata,
    parse_payment_metadata,
)
from omnigo.services.discount_service import DiscountService
from omnigo.services.inventory_service import InventoryService
from omnigo.services.notification_service import NotificationService
from omnigo.services.payment_record_service import PaymentRecordService
from omnigo.services.payout_scheduler import PayoutScheduler

logger = logging.getLogger(__name__)


def payout_amount(amount: Decimal) -> Decimal:
    """Store owner's share: payment amount minus the platform commission."""
    return Decimal(amount) * (Decimal("1") - settings.commission_rate)


class CompletionProcessor:
    """
    Create the order for a completed payment.

    Everything here runs in the caller's transaction: stock decrements, the
    order insert, discount usage and the owner notification commit or roll
    back together. The payout is handed to the scheduler, which the caller
    flushes after commit.
    """

    def __init__(self, db: AsyncSession, scheduler: PayoutScheduler):
        self.db = db
        self.scheduler = scheduler
        self.records = PaymentRecordService(db)

    async def get_order_by_payment_id(self, payment_id: str) -> Optional[Order]:
        result = await self.db.execute(
            select(Order).where(Order.pi_payment_id == payment_id)
        )
        return result.scalar_one_or_none()

    async def process_completed_payment(self, payment_id: str) -> Optional[Order]:
        """
        Create the order for `payment_id`.

        Returns the order (new or already existing), or None when the payment
        is not in a state that produces an order.

        Raises:
            DuplicateOrderError: a concurrent caller inserted the order first;
                the session must be rolled back
            BusinessRuleError: invalid metadata, stock or discount
            NotFoundError: the store or a purchased product no longer exists
        """
        record = await self.records.get_by_payment_id(payment_id)
        if not record:
            logger.warning(f"No payment record for {payment_id}; skipping order creation")
            return None
        if not record.user_id:
            logger.warning(f"Payment {payment_id} has no user; skipping order creation")
            return None
        if record.status != PaymentStatus.COMPLETED.value:
            logger.warning(f"Payment {payment_id} is {record.status}, not completed; skipping")
            return None

        existing = await self.get_order_by_payment_id(payment_id)
        if existing:
            logger.info(f"Order {existing.id} already exists for payment {payment_id}")
            return existing

        metadata = parse_payment_metadata(record.payment_metadata)

        result = await self.db.execute(
            select(Store).where(Store.id == metadata.store_id)
        )
        store = result.scalar_one_or_none()
        if not store:
            raise NotFoundError(f"Store {metadata.store_id} not found for payment {payment_id}.")

        order = Order(
            user_id=record.user_id,
            store_id=store.id,
            store_name=store.name,
            items=await self._snapshot_items(metadata, record),
            total_amount=record.amount,
            discount_amount=metadata.discount.amount if metadata.discount else None,
            delivery_fee=metadata.delivery_fee,
            status=OrderStatus.CONFIRMED.value,
            customer_name=metadata.customer_name,
            delivery_address=metadata.delivery_address,
            customer_notes=metadata.customer_notes,
            estimated_delivery_time=store.delivery_time or "30-45 min",
            payment_method="pi_coin",
            payment_status="paid",
            pi_payment_id=payment_id,
            txid=record.txid,
            payment_record_id=record.id,
        )
        self.db.add(order)

        # Unique pi_payment_id: the insert is the authoritative duplicate guard
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateOrderError(f"An order already exists for payment {payment_id}") from e

        logger.info(
            f"Order {order.id} created for payment {payment_id}",
            extra={"payment_id": payment_id, "order_id": str(order.id)},
        )

        await InventoryService(self.db).decrement_stock(store, self._purchased_lines(metadata, record))

        if metadata.discount and metadata.discount.code:
            applied = await DiscountService(self.db).apply_discount_to_order(
                code=metadata.discount.code,
                user_id=record.user_id,
                order_total=record.amount,
                store_id=store.id,
                order_id=order.id,
            )
            order.discount_id = applied["discount"]["id"]
            if order.discount_amount is None:
                order.discount_amount = applied["discount_amount"]

        await self.records.link_order(record, order.id)

        share = payout_amount(record.amount)
        self.scheduler.schedule_payout(store.id, order.id, share)
        logger.info(
            f"Payout of {share} scheduled for store {store.id} (order {order.short_id})",
            extra={"store_id": str(store.id), "order_id": str(order.id)},
        )

        await NotificationService(self.db).create(
            user_id=store.owner_id,
            message=f"New order #{order.short_id} received for {store.name}.",
            type=NotificationType.NEW_ORDER,
            order_id=order.id,
            store_id=store.id,
        )

        await self.db.flush()
        return order

    def _purchased_lines(
        self,
        metadata: Union[CartOrderMetadata, SingleProductMetadata],
        record: PiPayment,
    ) -> List[CartItem]:
        if isinstance(metadata, CartOrderMetadata):
            return metadata.items
        return [CartItem(id=metadata.product_id, quantity=1, price=record.amount)]

    async def _snapshot_items(
        self,
        metadata: Union[CartOrderMetadata, SingleProductMetadata],
        record: PiPayment,
    ) -> List[Dict[str, Any]]:
        """Freeze product details into the order so later edits don't change it."""
        if isinstance(metadata, SingleProductMetadata):
            product = await self._get_product(metadata.product_id)
            return [{
                "product_id": str(metadata.product_id),
                "name": metadata.product_name or (product.name if product else "Unknown Product"),
                "description": product.description if product else "",
                "quantity": 1,
                "price": str(record.amount),
                "options": {},
                "image_url": product.image if product else "",
                "special_instructions": "",
            }]

        items = []
        for item in metadata.items:
            product = await self._get_product(item.id)
            items.append({
                "product_id": str(item.id),
                "name": product.name if product else "Unknown Item",
                "description": product.description if product else "",
                "quantity": item.quantity,
                "price": str(item.price),
                "options": item.options,
                "image_url": item.image_url or (product.image if product else "") or "",
                "special_instructions": item.special_instructions or "",
            })
        return items

    async def _get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        result = await self.db.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()


