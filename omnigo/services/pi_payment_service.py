"""
Pi Payment Service - client-driven payment flows.

The Pi SDK on the client asks the backend to approve a payment, then to
complete it once the user has signed the transaction. Cancelled and
incomplete payments found by the SDK are reported here too. The webhook
receiver shares finalize_completed_payment() with these flows.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError, BusinessRuleError, DuplicateOrderError, NotFoundError, PiNetworkError
from omnigo.fsm.states import PaymentDirection, PaymentStatus
from omnigo.models.order import Order
from omnigo.models.payment import PiPayment
from omnigo.models.user import User, UserProfile
from omnigo.schemas.payment_metadata import dump_payment_metadata, parse_payment_metadata
from omnigo.services.completion_service import CompletionProcessor
from omnigo.services.payment_record_service import PaymentRecordService
from omnigo.services.payout_scheduler import PayoutScheduler
from omnigo.services.pi_network_service import PiNetworkService

logger = logging.getLogger(__name__)

MOCK_TXID = "mock-txid"


def payment_txid(payment: Optional[Dict[str, Any]]) -> Optional[str]:
    """Transaction id from a Pi payment DTO, if the user has submitted one."""
    if not payment:
        return None
    return (payment.get("transaction") or {}).get("txid")


class PiPaymentService:
    """Approve / complete / cancel / recover user-to-app payments."""

    def __init__(
        self,
        db: AsyncSession,
        pi_service: PiNetworkService,
        scheduler: PayoutScheduler,
    ):
        self.db = db
        self.pi = pi_service
        self.scheduler = scheduler
        self.records = PaymentRecordService(db)

    async def approve_payment(
        self,
        user: User,
        payment_id: str,
        access_token: str,
        amount: Optional[Decimal],
        memo: Optional[str],
        metadata: Any,
    ) -> Dict[str, Any]:
        """
        Approve a user-to-app payment.

        1. Verify the access token belongs to the caller's linked Pi account
        2. Validate the metadata
        3. Record the payment as approved
        4. Approve it with Pi (skipped in mock mode)
        """
        pi_user = await self.pi.get_me(access_token)

        result = await self.db.execute(
            select(UserProfile).where(UserProfile.user_id == user.id)
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError("User profile not found for payment approval.")
        if pi_user.get("uid") != profile.pi_uid:
            raise AuthorizationError("Pi user ID mismatch during payment approval.")

        validated = parse_payment_metadata(metadata)

        await self.records.create_record(
            payment_id=payment_id,
            user_id=user.id,
            amount=amount if amount is not None else Decimal("0"),
            memo=memo or "",
            metadata=dump_payment_metadata(validated),
        )

        if not self.pi.is_configured:
            logger.warning("PI_API_KEY not set. Using mock approval for development.")
            return {"success": True, "mock": True}

        approved = await self.pi.approve_payment(payment_id)
        logger.info(f"Approved Pi payment {payment_id} for user {user.id}", extra={"payment_id": payment_id})
        return approved

    async def finalize_completed_payment(self, payment_id: str, txid: Optional[str]) -> Optional[Order]:
        """
        Mark the record completed and create its order.

        A lost order-insert race is not an error: the winning caller already
        committed the order. A business-rule failure (stock, discount,
        metadata) rolls the attempt back and leaves the record failed with
        the reason; the error is re-raised for the caller to report.
        """
        await self.records.update_status(payment_id, PaymentStatus.COMPLETED, txid=txid)

        processor = CompletionProcessor(self.db, self.scheduler)
        try:
            return await processor.process_completed_payment(payment_id)
        except DuplicateOrderError:
            await self.db.rollback()
            logger.info(f"Order for payment {payment_id} was created concurrently")
            return await processor.get_order_by_payment_id(payment_id)
        except (BusinessRuleError, NotFoundError) as e:
            await self.db.rollback()
            logger.error(f"Order creation failed for payment {payment_id}: {e}", extra={"payment_id": payment_id})
            await self.records.update_status(payment_id, PaymentStatus.FAILED, failure_reason=str(e))
            raise

    async def complete_payment(self, payment_id: str, txid: Optional[str]) -> Dict[str, Any]:
        """
        Complete a payment the user has signed.

        A failed /complete call marks the record failed but is not raised;
        the webhook may still rescue the payment.
        """
        existing = await self.records.get_by_payment_id(payment_id)
        if existing and existing.is_completed:
            logger.info(f"Payment {payment_id} is already completed. Skipping.")
            return {
                "success": True,
                "message": "Payment was already completed.",
                "txid": existing.txid,
            }

        if not self.pi.is_configured:
            logger.warning("PI_API_KEY not set. Mocking completion.")
            try:
                order = await self.finalize_completed_payment(payment_id, txid or MOCK_TXID)
            except (BusinessRuleError, NotFoundError) as e:
                return {"success": False, "message": str(e)}
            return {
                "success": True,
                "message": "Mock completion successful",
                "order_id": str(order.id) if order else None,
            }

        try:
            await self.pi.complete_payment(payment_id, txid)
        except PiNetworkError as e:
            logger.error(f"/complete API error for {payment_id}: {e}")
            await self.records.update_status(
                payment_id,
                PaymentStatus.FAILED,
                failure_reason=f"Complete API: {e}",
            )
            return {"success": False, "message": str(e)}

        try:
            payment = await self.pi.get_payment(payment_id)
        except PiNetworkError as e:
            logger.error(f"Failed to fetch payment details for {payment_id}: {e}")
            await self.records.update_status(payment_id, PaymentStatus.FAILED, failure_reason=str(e))
            return {"success": False, "message": str(e)}

        final_txid = txid or payment_txid(payment)
        try:
            order = await self.finalize_completed_payment(payment_id, final_txid)
        except (BusinessRuleError, NotFoundError) as e:
            return {"success": False, "message": str(e)}

        return {
            "success": True,
            "message": "Payment completed successfully",
            "txid": final_txid,
            "order_id": str(order.id) if order else None,
        }

    async def report_cancelled_payment(self, payment_id: str) -> Dict[str, Any]:
        """Client reports a cancelled or abandoned payment."""
        await self.records.update_status(payment_id, PaymentStatus.CANCELLED)
        return {"success": True}

    async def handle_incomplete_payment(self, payment_id: str) -> Dict[str, Any]:
        """
        Resolve a payment the Pi SDK reports as incomplete.

        - user_to_app, transaction verified, not yet completed by us: complete
          it and create the order
        - app_to_user, not cancelled: cancel it
        Anything else, and any failure, leaves the record failed.
        """
        if not self.pi.is_configured:
            logger.warning("PI_API_KEY not set. Mocking incomplete payment handling.")
            try:
                await self.finalize_completed_payment(payment_id, MOCK_TXID)
            except (BusinessRuleError, NotFoundError) as e:
                return {"success": False, "reason": str(e)}
            return {"success": True, "mock": True, "action": "completed"}

        try:
            payment = await self.pi.get_payment(payment_id)
            status = payment.get("status") or {}
            direction = payment.get("direction")
            txid = payment_txid(payment)
            logger.info(f"Incomplete payment {payment_id}: direction={direction}, status={status}")

            if (
                direction == PaymentDirection.USER_TO_APP.value
                and status.get("transaction_verified")
                and not status.get("developer_completed")
            ):
                if not txid:
                    raise BusinessRuleError("No transaction ID found for U2A payment. Cannot complete.")
                await self.pi.complete_payment(payment_id, txid)
                await self.finalize_completed_payment(payment_id, txid)
                return {"success": True, "action": "completed", "txid": txid}

            if direction == PaymentDirection.APP_TO_USER.value and not status.get("cancelled"):
                await self.pi.cancel_payment(payment_id)
                await self.records.update_status(
                    payment_id,
                    PaymentStatus.CANCELLED,
                    failure_reason="Handled as incomplete",
                )
                return {"success": True, "action": "cancelled"}

            raise BusinessRuleError(f"Cannot handle payment: direction={direction}, status={status}")

        except (PiNetworkError, BusinessRuleError, NotFoundError) as e:
            logger.error(f"Failed to resolve incomplete payment {payment_id}: {e}")
            await self.records.update_status(payment_id, PaymentStatus.FAILED, failure_reason=str(e))
            return {"success": False, "reason": str(e)}

    async def get_payments_by_user(self, user: User, limit: int = 10) -> List[PiPayment]:
        return await self.records.list_by_user(user.id, limit=limit)
