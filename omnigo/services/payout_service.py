"""
Payout Service - pays store owners their share of an order.

A payout is an app-to-user (A2U) Pi payment: the Pi API opens the payment,
the app wallet signs and submits the ledger transfer, and the Pi API is told
the transaction id. Every attempt is recorded as its own Payout row.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.config import settings
from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError, OngoingPaymentError, PiNetworkError
from omnigo.fsm.states import PayoutStatus
from omnigo.models.payout import Payout
from omnigo.models.store import Store
from omnigo.models.user import User
from omnigo.services.payout_scheduler import PayoutScheduler
from omnigo.services.pi_network_service import PiNetworkService, is_stuck_app_to_user_payment
from omnigo.services.stellar_service import StellarPayoutSigner

logger = logging.getLogger(__name__)

PAYOUT_PRECISION = Decimal("0.0000001")
AWAITING_LINKAGE_REASON = "Awaiting Pi UID linkage. Retrying soon."


@dataclass
class PayoutResult:
    """Outcome of one payout attempt."""
    success: bool
    reason: Optional[str] = None
    txid: Optional[str] = None
    will_retry: bool = False


class PayoutExecutor:
    """
    Run a single payout attempt for an order.

    Failures are recorded, not raised: the result says what happened and the
    Payout row keeps the reason. A store without a payout destination is not
    a failure; the attempt is recorded as pending and retried later.
    """

    def __init__(
        self,
        db: AsyncSession,
        pi_service: PiNetworkService,
        signer: StellarPayoutSigner,
        scheduler: PayoutScheduler,
    ):
        self.db = db
        self.pi = pi_service
        self.signer = signer
        self.scheduler = scheduler

    async def execute(self, store_id: uuid.UUID, order_id: uuid.UUID, amount: Decimal) -> PayoutResult:
        amount = Decimal(amount).quantize(PAYOUT_PRECISION)
        order_ref = str(order_id)[-6:]

        completed = await self.get_completed_payout(order_id)
        if completed:
            logger.info(f"Order {order_ref} already paid out (txid {completed.txid}); skipping")
            return PayoutResult(success=True, txid=completed.txid, reason="Order already paid out.")

        result = await self.db.execute(select(Store).where(Store.id == store_id))
        store = result.scalar_one_or_none()
        if not store:
            reason = "Store or owner not found."
            logger.error(f"Payout for order {order_ref}: {reason}")
            await self._record(store_id, order_id, amount, PayoutStatus.FAILED, failure_reason=reason)
            return PayoutResult(success=False, reason=reason)

        if not store.has_payout_destination:
            reason = (
                f"No valid Pi UID found for store {store_id}. "
                "Ensure the owner has linked their Pi account via 'Link Pi Wallet'."
            )
            logger.warning(f"Payout for order {order_ref}: {reason}")
            self.scheduler.schedule_payout(
                store_id,
                order_id,
                amount,
                delay_seconds=settings.payout_linkage_retry_seconds,
            )
            await self._record(store_id, order_id, amount, PayoutStatus.PENDING, failure_reason=AWAITING_LINKAGE_REASON)
            return PayoutResult(success=False, reason=reason, will_retry=True)

        uid = store.pi_uid.strip()
        logger.info(f"Paying out {amount} to Pi UID {uid[:8]}... for store {store_id}, order {order_ref}")

        if not self.pi.is_configured or not self.signer.is_configured:
            reason = "Missing or invalid Pi configuration (PI_API_KEY or PI_WALLET_PRIVATE_SEED)."
            logger.error(f"Payout for order {order_ref}: {reason}")
            await self._record(store_id, order_id, amount, PayoutStatus.FAILED, failure_reason=reason)
            return PayoutResult(success=False, reason=reason)

        # Set once the ledger transfer is submitted; kept on a failed row so a
        # manual retry cannot pay the same order twice.
        txid: Optional[str] = None
        try:
            await self._cancel_stuck_payments(uid)

            payment_identifier, to_address = await self._create_payment(uid, store_id, order_id, amount)

            txid = await self.signer.submit_payment(to_address, amount, memo=payment_identifier)
            logger.info(f"Submitted tx {txid} for payout payment {payment_identifier}")

            await self.pi.complete_payment(payment_identifier, txid)
            logger.info(
                f"Payout for order {order_ref} completed with txid {txid}",
                extra={"store_id": str(store_id), "order_id": str(order_id)},
            )

        except PiNetworkError as e:
            logger.error(f"Payout failed for order {order_ref}: {e}")
            await self._record(store_id, order_id, amount, PayoutStatus.FAILED, txid=txid, failure_reason=str(e))
            return PayoutResult(success=False, reason=str(e), txid=txid)
        except Exception as e:
            logger.error(f"Unexpected payout error for order {order_ref}: {e}", exc_info=True)
            reason = str(e) or type(e).__name__
            await self._record(store_id, order_id, amount, PayoutStatus.FAILED, txid=txid, failure_reason=reason)
            return PayoutResult(success=False, reason=reason, txid=txid)

        await self._record(store_id, order_id, amount, PayoutStatus.COMPLETED, txid=txid)
        return PayoutResult(success=True, txid=txid)

    async def get_completed_payout(self, order_id: uuid.UUID) -> Optional[Payout]:
        result = await self.db.execute(
            select(Payout).where(
                Payout.order_id == order_id,
                Payout.status == PayoutStatus.COMPLETED.value,
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def _cancel_stuck_payments(self, uid: str) -> None:
        """Cancel A2U payments we approved but never completed; Pi allows only one open."""
        try:
            payments = await self.pi.list_app_to_user_payments(uid)
            for payment in payments:
                if is_stuck_app_to_user_payment(payment):
                    identifier = payment.get("identifier")
                    logger.info(f"Cancelling stuck A2U payment {identifier} for UID {uid[:8]}...")
                    await self.pi.cancel_payment(identifier)
        except PiNetworkError as e:
            raise PiNetworkError(f"Error while checking for ongoing payments: {e}") from e

    async def _create_payment(
        self,
        uid: str,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
    ) -> tuple:
        """Open the A2U payment, clearing a reported ongoing payment between attempts."""
        max_attempts = settings.payout_create_max_attempts
        metadata = {"orderId": str(order_id), "storeId": str(store_id)}
        memo = f"Payout for order {str(order_id)[-6:]}"

        for attempt in range(1, max_attempts + 1):
            try:
                created = await self.pi.create_app_to_user_payment(amount, memo, metadata, uid)
            except OngoingPaymentError as e:
                if attempt >= max_attempts:
                    raise
                logger.info(f"Ongoing payment {e.payment_identifier} found; cancelling and retrying create")
                await self.pi.cancel_payment(e.payment_identifier)
                continue

            identifier = created.get("identifier")
            to_address = created.get("to_address")
            if not identifier or not to_address:
                raise PiNetworkError("No recipient address returned from create payment.")

            logger.info(f"Created A2U payment {identifier} for order {str(order_id)[-6:]}")
            return identifier, to_address

        raise PiNetworkError("No recipient address returned from create payment after retries.")

    async def _record(
        self,
        store_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
        status: PayoutStatus,
        txid: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Payout:
        result = await self.db.execute(
            select(func.count(Payout.id)).where(Payout.order_id == order_id)
        )
        attempt = result.scalar_one() + 1

        payout = Payout(
            store_id=store_id,
            order_id=order_id,
            amount=amount,
            status=status.value,
            txid=txid,
            failure_reason=failure_reason,
            attempt=attempt,
        )
        self.db.add(payout)
        await self.db.flush()
        return payout


class PayoutService:
    """Owner-facing payout history and manual retry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_owned_store(self, user: User, store_id: uuid.UUID, action: str) -> Store:
        result = await self.db.execute(select(Store).where(Store.id == store_id))
        store = result.scalar_one_or_none()
        if not store or store.owner_id != user.id:
            raise AuthorizationError(f"You are not authorized to {action}.")
        return store

    async def get_payouts_by_store(self, user: User, store_id: uuid.UUID) -> List[Payout]:
        await self._get_owned_store(user, store_id, "view payouts for this store")
        result = await self.db.execute(
            select(Payout)
            .where(Payout.store_id == store_id)
            .order_by(Payout.created_at.desc(), Payout.attempt.desc())
        )
        return list(result.scalars().all())

    async def retry_failed_payout(
        self,
        user: User,
        payout_id: uuid.UUID,
        executor: PayoutExecutor,
    ) -> PayoutResult:
        """Re-run a failed payout with its recorded amount (store owner only)."""
        result = await self.db.execute(select(Payout).where(Payout.id == payout_id))
        payout = result.scalar_one_or_none()
        if not payout:
            raise NotFoundError("Payout not found.")

        await self._get_owned_store(user, payout.store_id, "retry this payout")

        if payout.status != PayoutStatus.FAILED.value:
            raise BusinessRuleError("Only failed payouts can be retried.")

        if payout.txid:
            raise BusinessRuleError(
                f"The transfer for this payout was already submitted (txid {payout.txid}). "
                "Reconcile it with Pi before retrying."
            )

        if await executor.get_completed_payout(payout.order_id):
            raise BusinessRuleError("This order has already been paid out.")

        logger.info(f"Retrying payout {payout_id} for order {payout.order_id} by owner {user.id}")
        return await executor.execute(payout.store_id, payout.order_id, payout.amount)
