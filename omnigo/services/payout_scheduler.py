"""
Payout scheduling.

Services never enqueue payout tasks directly. They receive a scheduler and
ask it to run the Payout Executor now or after a delay. DeferredPayoutScheduler
holds requests until the surrounding transaction has committed, so a worker
never picks up a payout for an order that was rolled back.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledPayout:
    store_id: uuid.UUID
    order_id: uuid.UUID
    amount: Decimal
    delay_seconds: int = 0


class PayoutScheduler(Protocol):
    def schedule_payout(
        self,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
        delay_seconds: int = 0,
    ) -> None:
        ...


class DeferredPayoutScheduler:
    """Buffer payout requests and forward them on flush()."""

    def __init__(self, target: PayoutScheduler):
        self.target = target
        self.pending: List[ScheduledPayout] = []

    def schedule_payout(
        self,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
        delay_seconds: int = 0,
    ) -> None:
        self.pending.append(ScheduledPayout(store_id, order_id, amount, delay_seconds))

    def flush(self) -> int:
        """Forward buffered requests. Call only after the commit succeeded."""
        pending, self.pending = self.pending, []
        for item in pending:
            self.target.schedule_payout(
                item.store_id,
                item.order_id,
                item.amount,
                delay_seconds=item.delay_seconds,
            )
        if pending:
            logger.info(f"Enqueued {len(pending)} payout task(s)")
        return len(pending)

    def discard(self) -> None:
        if self.pending:
            logger.warning(f"Dropping {len(self.pending)} payout request(s) after rollback")
        self.pending = []
