"""
Tests for DiscountService.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from omnigo.errors import BusinessRuleError
from omnigo.fsm.states import DiscountTarget, DiscountType
from omnigo.models.marketing import Discount
from omnigo.services.discount_service import DiscountService


@pytest.fixture
def make_discount(db):
    async def _make(store, code="SAVE10", **fields) -> Discount:
        fields.setdefault("type", DiscountType.PERCENTAGE.value)
        fields.setdefault("value", Decimal("10"))
        discount = Discount(store_id=store.id, code=code, **fields)
        db.add(discount)
        await db.flush()
        return discount
    return _make


class TestValidateDiscountCode:
    """Checkout-time validation."""

    @pytest.mark.asyncio
    async def test_valid_percentage(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        await make_discount(store)

        result = await DiscountService(db).validate_discount_code(" save10 ", store.id, Decimal("40"))

        assert result["is_valid"] is True
        assert Decimal(result["discount"]["amount"]) == Decimal("4")

    @pytest.mark.asyncio
    async def test_fixed_amount_capped_at_total(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        await make_discount(store, code="FIVE", type=DiscountType.FIXED.value, value=Decimal("5"))

        result = await DiscountService(db).validate_discount_code("FIVE", store.id, Decimal("3"))

        assert Decimal(result["discount"]["amount"]) == Decimal("3")

    @pytest.mark.asyncio
    async def test_rejections(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        now = datetime.now(timezone.utc)
        await make_discount(store, code="OFF", is_active=False)
        await make_discount(store, code="BIG", min_order_value=Decimal("50"))
        await make_discount(store, code="OLD", end_date=now - timedelta(days=1))
        await make_discount(store, code="SOON", start_date=now + timedelta(days=1))
        await make_discount(store, code="USED", usage_limit=2, times_used=2)
        service = DiscountService(db)

        async def message(code):
            result = await service.validate_discount_code(code, store.id, Decimal("20"))
            assert result["is_valid"] is False
            return result["message"]

        assert await message("") == "Please enter a discount code."
        assert await message("NOPE") == "This discount code does not exist."
        assert await message("OFF") == "This discount is no longer active."
        assert (await message("BIG")).startswith("A minimum order of π50")
        assert await message("OLD") == "This discount has expired."
        assert await message("SOON") == "This discount is not active yet."
        assert await message("USED") == "This discount has reached its total usage limit."


class TestApplyDiscount:
    """Rules enforced when an order is paid."""

    @pytest.mark.asyncio
    async def test_records_usage(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        discount = await make_discount(store)
        customer = await make_user()

        result = await DiscountService(db).apply_discount_to_order("SAVE10", customer.id, Decimal("10"), store.id)

        assert result["success"] is True
        assert result["discount_amount"] == Decimal("1")
        assert discount.times_used == 1

    @pytest.mark.asyncio
    async def test_per_user_limit(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        await make_discount(store, usage_limit_per_user=1)
        customer = await make_user()
        service = DiscountService(db)

        await service.apply_discount_to_order("SAVE10", customer.id, Decimal("10"), store.id)

        with pytest.raises(BusinessRuleError, match="maximum number of times"):
            await service.apply_discount_to_order("SAVE10", customer.id, Decimal("10"), store.id)

        # Another customer is unaffected
        await service.apply_discount_to_order("SAVE10", (await make_user()).id, Decimal("10"), store.id)

    @pytest.mark.asyncio
    async def test_total_limit(self, db, make_user, make_store, make_discount):
        store = await make_store(await make_user())
        await make_discount(store, usage_limit=1)
        service = DiscountService(db)

        await service.apply_discount_to_order("SAVE10", (await make_user()).id, Decimal("10"), store.id)

        with pytest.raises(BusinessRuleError, match="usage limit"):
            await service.apply_discount_to_order("SAVE10", (await make_user()).id, Decimal("10"), store.id)

    @pytest.mark.asyncio
    async def test_new_users_only_ignores_current_order(self, db, make_user, make_store, make_order, make_discount):
        store = await make_store(await make_user())
        await make_discount(store, target_users=DiscountTarget.NEW_USERS_ONLY.value)
        customer = await make_user()
        first_order = await make_order(customer, store)
        service = DiscountService(db)

        result = await service.apply_discount_to_order(
            "SAVE10", customer.id, Decimal("10"), store.id, order_id=first_order.id
        )
        assert result["success"] is True

        second_order = await make_order(customer, store)
        with pytest.raises(BusinessRuleError, match="new customers only"):
            await service.apply_discount_to_order(
                "SAVE10", customer.id, Decimal("10"), store.id, order_id=second_order.id
            )

    @pytest.mark.asyncio
    async def test_invalid_code(self, db, make_user, make_store):
        store = await make_store(await make_user())

        with pytest.raises(BusinessRuleError, match="Invalid discount code"):
            await DiscountService(db).apply_discount_to_order("NOPE", (await make_user()).id, Decimal("10"), store.id)
