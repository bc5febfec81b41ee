"""
Tests for the client payment endpoints.
"""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from omnigo.fsm.states import PaymentStatus
from omnigo.models.order import Order
from omnigo.redis import COMPLETION_CLAIM_PREFIX
from omnigo.services.payment_record_service import PaymentRecordService

TOKEN = "customer-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest_asyncio.fixture
async def approved_payment(make_user, make_store, make_product, make_payment):
    customer = await make_user(token=TOKEN)
    store = await make_store(await make_user())
    product = await make_product(store, quantity=5)
    return await make_payment(customer, {
        "storeId": str(store.id),
        "items": [{"id": str(product.id), "quantity": 1, "price": "10"}],
    })


async def count_orders(db) -> int:
    result = await db.execute(select(func.count(Order.id)))
    return result.scalar_one()


class TestCompletePayment:
    """Tests for POST /payments/complete and /payments/incomplete."""

    @pytest.mark.asyncio
    async def test_complete_creates_order_and_releases_claim(
        self, api_client, db, scheduler, fake_redis, approved_payment
    ):
        payment_id = approved_payment.payment_id

        response = await api_client.post(
            "/payments/complete",
            json={"payment_id": payment_id, "txid": "tx-1"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        record = await PaymentRecordService(db).get_by_payment_id(payment_id)
        assert record.status == PaymentStatus.COMPLETED.value
        assert await count_orders(db) == 1
        assert len(scheduler.scheduled) == 1
        assert fake_redis.store == {}

    @pytest.mark.asyncio
    async def test_complete_waits_for_webhook_claim(self, api_client, db, scheduler, fake_redis, approved_payment):
        """The webhook holds the claim: the client call changes nothing."""
        payment_id = approved_payment.payment_id
        claim_key = f"{COMPLETION_CLAIM_PREFIX}{payment_id}"
        fake_redis.store[claim_key] = "1"

        response = await api_client.post(
            "/payments/complete",
            json={"payment_id": payment_id, "txid": "tx-1"},
            headers=AUTH,
        )

        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Payment completion already in progress."}
        record = await PaymentRecordService(db).get_by_payment_id(payment_id)
        assert record.status == PaymentStatus.APPROVED.value
        assert await count_orders(db) == 0
        assert scheduler.scheduled == []
        assert fake_redis.store[claim_key] == "1"

    @pytest.mark.asyncio
    async def test_incomplete_waits_for_claim(self, api_client, db, fake_redis, approved_payment):
        payment_id = approved_payment.payment_id
        fake_redis.store[f"{COMPLETION_CLAIM_PREFIX}{payment_id}"] = "1"

        response = await api_client.post(
            "/payments/incomplete",
            json={"payment_id": payment_id},
            headers=AUTH,
        )

        assert response.status_code == 409
        assert await count_orders(db) == 0

    @pytest.mark.asyncio
    async def test_incomplete_completes_in_mock_mode(self, api_client, db, fake_redis, approved_payment):
        response = await api_client.post(
            "/payments/incomplete",
            json={"payment_id": approved_payment.payment_id},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["action"] == "completed"
        assert await count_orders(db) == 1
        assert fake_redis.store == {}

    @pytest.mark.asyncio
    async def test_requires_bearer_token(self, api_client, approved_payment):
        response = await api_client.post(
            "/payments/complete",
            json={"payment_id": approved_payment.payment_id},
        )

        assert response.status_code == 401
