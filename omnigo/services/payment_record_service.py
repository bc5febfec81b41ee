"""
Payment Record Service - the internal ledger of Pi payments.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.fsm.machine import PaymentStateMachine
from omnigo.fsm.states import PaymentStatus
from omnigo.models.payment import PiPayment

logger = logging.getLogger(__name__)


class PaymentRecordService:
    """Create, look up and transition PaymentRecords."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_record(
        self,
        payment_id: str,
        user_id: uuid.UUID,
        amount: Decimal,
        memo: str,
        metadata: Dict[str, Any],
    ) -> PiPayment:
        """
        Create the APPROVED record for a payment, or return the existing one.

        Approval can be retried by the client, so an existing row for the
        same external id is reused rather than duplicated.
        """
        existing = await self.get_by_payment_id(payment_id)
        if existing:
            logger.info(f"Payment record {payment_id} already exists (status={existing.status})")
            return existing

        record = PiPayment(
            payment_id=payment_id,
            user_id=user_id,
            amount=amount,
            memo=memo,
            payment_metadata=metadata,
            status=PaymentStatus.APPROVED.value,
        )
        self.db.add(record)
        await self.db.flush()

        logger.info(f"Created payment record {payment_id} for user {user_id}: {amount}")
        return record

    async def get_by_payment_id(self, payment_id: str) -> Optional[PiPayment]:
        result = await self.db.execute(
            select(PiPayment).where(PiPayment.payment_id == payment_id)
        )
        return result.scalar_one_or_none()

    async def is_completed(self, payment_id: str) -> bool:
        record = await self.get_by_payment_id(payment_id)
        return bool(record and record.is_completed)

    async def update_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        txid: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Optional[PiPayment]:
        """
        Move a record to `status`.

        The update is a conditional UPDATE guarded on the allowed source
        statuses, so concurrent callers cannot both apply a transition.
        Re-applying the current status is a no-op. Returns the (refreshed)
        record, or None when no record exists.
        """
        sources = [s.value for s in PaymentStateMachine.sources_for(status)]
        values: Dict[str, Any] = {"status": status.value, "failure_reason": failure_reason}
        if txid:
            values["txid"] = txid

        result = await self.db.execute(
            update(PiPayment)
            .where(PiPayment.payment_id == payment_id)
            .where(PiPayment.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        record = await self.get_by_payment_id(payment_id)
        if record is None:
            logger.warning(f"Payment {payment_id} not found; ignoring status {status.value}")
            return None

        await self.db.refresh(record)

        if result.rowcount:
            logger.info(f"Payment {payment_id} -> {status.value}")
        elif record.status == status.value:
            logger.info(f"Payment {payment_id} already {status.value}; no-op")
        else:
            logger.warning(
                f"Payment {payment_id} cannot move from {record.status} to {status.value}; ignored"
            )
        return record

    async def link_order(self, record: PiPayment, order_id: uuid.UUID) -> None:
        if record.order_id is None:
            record.order_id = order_id
            await self.db.flush()

    async def list_by_user(self, user_id: uuid.UUID, limit: int = 10) -> List[PiPayment]:
        result = await self.db.execute(
            select(PiPayment)
            .where(PiPayment.user_id == user_id)
            .order_by(PiPayment.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
