"""
Payout Worker.
Runs the Payout Executor for an order, now or after a delay.
"""

import asyncio
import logging
import uuid
from dataclasses import asdict
from decimal import Decimal

from omnigo.workers.celery_app import celery_app
from omnigo.database import get_db_context

logger = logging.getLogger(__name__)


class CeleryPayoutScheduler:
    """PayoutScheduler that enqueues execute_payout on Celery."""

    def schedule_payout(
        self,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
        delay_seconds: int = 0,
    ) -> None:
        execute_payout.apply_async(
            args=[str(store_id), str(order_id), str(amount)],
            countdown=delay_seconds or None,
        )
        logger.info(f"Payout task queued for order {str(order_id)[-6:]} (delay {delay_seconds}s)")


@celery_app.task(bind=True, max_retries=3)
def execute_payout(self, store_id: str, order_id: str, amount: str):
    """
    Pay a store owner for one order.

    Payout failures are recorded by the executor and not retried here; only
    unexpected errors (database, broker) trigger a Celery retry.
    """
    from omnigo.services.payout_scheduler import DeferredPayoutScheduler
    from omnigo.services.payout_service import PayoutExecutor
    from omnigo.services.pi_network_service import PiNetworkService
    from omnigo.services.stellar_service import StellarPayoutSigner

    async def run():
        scheduler = DeferredPayoutScheduler(CeleryPayoutScheduler())
        async with get_db_context() as db:
            executor = PayoutExecutor(db, PiNetworkService(), StellarPayoutSigner(), scheduler)
            result = await executor.execute(
                uuid.UUID(store_id),
                uuid.UUID(order_id),
                Decimal(amount),
            )
        # Session committed; a linkage retry can be queued now
        scheduler.flush()
        return result

    try:
        result = asyncio.run(run())
        logger.info(f"Payout for order {order_id[-6:]}: success={result.success} will_retry={result.will_retry}")
        return asdict(result)
    except Exception as e:
        logger.error(f"Payout task failed for order {order_id}: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
