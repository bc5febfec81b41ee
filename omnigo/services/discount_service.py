"""
Discount Service - discount code validation and usage recording.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import BusinessRuleError
from omnigo.fsm.states import DiscountTarget, DiscountType
from omnigo.models.marketing import Discount, DiscountUsage
from omnigo.models.order import Order

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_discount_amount(discount: Discount, order_total: Decimal) -> Decimal:
    """Percentage or fixed amount, never more than the order total."""
    if discount.type == DiscountType.PERCENTAGE.value:
        amount = order_total * Decimal(discount.value) / Decimal("100")
    else:
        amount = Decimal(discount.value)
    return min(amount, order_total)


class DiscountService:
    """Service for store discount codes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, store_id: uuid.UUID, code: str) -> Optional[Discount]:
        result = await self.db.execute(
            select(Discount).where(
                Discount.store_id == store_id,
                Discount.code == code.strip().upper(),
            )
        )
        return result.scalar_one_or_none()

    def _window_error(self, discount: Discount, now: datetime) -> Optional[str]:
        start = _as_utc(discount.start_date)
        end = _as_utc(discount.end_date)
        if start and now < start:
            return "This discount is not active yet."
        if end and now > end:
            return "This discount has expired."
        return None

    async def validate_discount_code(
        self,
        code: str,
        store_id: uuid.UUID,
        order_total: Decimal,
    ) -> Dict[str, Any]:
        """
        Preliminary check shown at checkout.

        Per-user limits need the buyer and are enforced when the discount is
        applied to the order.
        """
        if not code or not code.strip():
            return {"is_valid": False, "message": "Please enter a discount code."}

        discount = await self.get_by_code(store_id, code)
        if not discount:
            return {"is_valid": False, "message": "This discount code does not exist."}
        if not discount.is_active:
            return {"is_valid": False, "message": "This discount is no longer active."}
        if discount.min_order_value and order_total < discount.min_order_value:
            return {
                "is_valid": False,
                "message": f"A minimum order of π{discount.min_order_value} is required.",
            }

        window_error = self._window_error(discount, datetime.now(timezone.utc))
        if window_error:
            return {"is_valid": False, "message": window_error}

        if discount.usage_limit and discount.times_used >= discount.usage_limit:
            return {"is_valid": False, "message": "This discount has reached its total usage limit."}

        return {
            "is_valid": True,
            "message": "Discount applied!",
            "discount": {
                "id": str(discount.id),
                "type": discount.type,
                "value": str(discount.value),
                "amount": str(compute_discount_amount(discount, order_total)),
            },
        }

    async def apply_discount_to_order(
        self,
        code: str,
        user_id: uuid.UUID,
        order_total: Decimal,
        store_id: uuid.UUID,
        order_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """
        Enforce every discount rule and record one usage.

        Raises BusinessRuleError on any violation. Returns the computed
        discount amount and the discount reference.
        """
        discount = await self.get_by_code(store_id, code)
        if not discount:
            raise BusinessRuleError("Invalid discount code")
        if not discount.is_active:
            raise BusinessRuleError("Discount is inactive")
        if discount.min_order_value and order_total < discount.min_order_value:
            raise BusinessRuleError(
                f"Minimum order value of {discount.min_order_value} is required."
            )

        now = datetime.now(timezone.utc)
        window_error = self._window_error(discount, now)
        if window_error:
            raise BusinessRuleError(window_error)

        if discount.usage_limit and discount.times_used >= discount.usage_limit:
            raise BusinessRuleError(
                f"Discount usage limit ({discount.usage_limit}) has been reached."
            )

        if discount.usage_limit_per_user and discount.usage_limit_per_user > 0:
            result = await self.db.execute(
                select(func.count(DiscountUsage.id)).where(
                    DiscountUsage.discount_id == discount.id,
                    DiscountUsage.user_id == user_id,
                )
            )
            if result.scalar_one() >= discount.usage_limit_per_user:
                raise BusinessRuleError(
                    "You have already used this discount code the maximum number of times."
                )

        if discount.target_users == DiscountTarget.NEW_USERS_ONLY.value:
            query = select(Order.id).where(Order.user_id == user_id)
            if order_id is not None:
                # The order being paid for does not count as history
                query = query.where(Order.id != order_id)
            result = await self.db.execute(query.limit(1))
            if result.first() is not None:
                raise BusinessRuleError("This discount is for new customers only.")

        amount = compute_discount_amount(discount, order_total)

        self.db.add(DiscountUsage(
            discount_id=discount.id,
            user_id=user_id,
            order_id=order_id,
            used_at=now,
        ))
        discount.times_used = (discount.times_used or 0) + 1
        await self.db.flush()

        logger.info(f"Discount {discount.code} applied for user {user_id}: {amount}")

        return {
            "success": True,
            "discount_amount": amount,
            "discount": {
                "id": discount.id,
                "type": discount.type,
                "value": discount.value,
            },
        }
