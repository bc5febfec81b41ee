"""
Pi Network Webhook Handler.
Verifies signatures and turns completed payments into orders.
"""

import hashlib
import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from redis.asyncio.client import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.api.deps import get_payout_scheduler, get_pi_service
from omnigo.config import settings
from omnigo.database import get_db
from omnigo.errors import BusinessRuleError, NotFoundError, PiNetworkError
from omnigo.redis import completion_claim, get_redis
from omnigo.services.payment_record_service import PaymentRecordService
from omnigo.services.payout_scheduler import DeferredPayoutScheduler
from omnigo.services.pi_network_service import PiNetworkService
from omnigo.services.pi_payment_service import PiPaymentService, payment_txid

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-pi-signature"


@router.post("/pi/payments")
async def pi_payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pi_service: PiNetworkService = Depends(get_pi_service),
    scheduler: DeferredPayoutScheduler = Depends(get_payout_scheduler),
    redis: Redis = Depends(get_redis),
):
    """
    Handle Pi payment completion callbacks.

    Responses:
    - 401 invalid signature (nothing is touched)
    - 400 malformed body or missing paymentId
    - 200 "OK (Already Processed)" for a payment already completed
    - 200 {"success": true} once the payment and its order are recorded
    - 500 {"error": "Internal server error"} on anything unexpected
    """
    payment_id: Optional[str] = None
    txid: Optional[str] = None
    try:
        # Raw body: the signature covers the exact bytes sent
        body = await request.body()

        if not verify_pi_signature(body, request.headers.get(SIGNATURE_HEADER)):
            logger.error("Pi webhook: invalid signature")
            return PlainTextResponse("Unauthorized: Invalid signature", status_code=401)

        try:
            payload = json.loads(body)
        except ValueError:
            logger.error("Pi webhook: body is not valid JSON")
            return PlainTextResponse("Bad Request: invalid JSON body.", status_code=400)

        if isinstance(payload, dict):
            payment_id = payload.get("paymentId")
            txid = payload.get("txid")
        if not payment_id or not isinstance(payment_id, str):
            logger.error("Pi webhook: paymentId is missing in the webhook body")
            return PlainTextResponse("Bad Request: paymentId is missing.", status_code=400)

        logger.info(f"Pi webhook received for payment {payment_id}", extra={"payment_id": payment_id})

        # Idempotency: a completed payment has already produced its order
        if await PaymentRecordService(db).is_completed(payment_id):
            logger.info(f"Pi webhook: payment {payment_id} already completed. Ignoring duplicate.")
            return PlainTextResponse("OK (Already Processed)", status_code=200)

        async with completion_claim(redis, payment_id) as acquired:
            if not acquired:
                logger.info(f"Pi webhook: completion for {payment_id} already in progress")
                return PlainTextResponse("Conflict: completion in progress.", status_code=409)

            if pi_service.is_configured:
                try:
                    payment = await pi_service.get_payment(payment_id)
                    txid = txid or payment_txid(payment)
                except PiNetworkError as e:
                    logger.error(f"Pi webhook: failed to fetch payment details for {payment_id}: {e}")
            else:
                logger.warning("PI_API_KEY not set. Completing webhook payment from the stored record.")

            service = PiPaymentService(db, pi_service, scheduler)
            try:
                order = await service.finalize_completed_payment(payment_id, txid)
            except (BusinessRuleError, NotFoundError) as e:
                # Record is left failed with the reason
                await db.commit()
                return JSONResponse({"success": False, "error": str(e)}, status_code=200)

            await db.commit()
        scheduler.flush()

        if order:
            logger.info(f"Pi webhook: payment {payment_id} processed, order {order.id}")
        return JSONResponse({"success": True}, status_code=200)

    except Exception as e:
        logger.error(f"Pi webhook: failed to process payment {payment_id}: {e}", exc_info=True)
        await db.rollback()
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def verify_pi_signature(body: bytes, signature: Optional[str]) -> bool:
    """
    Verify the webhook HMAC-SHA256 signature.
    The header may carry a `sha256=` prefix.
    """
    if not settings.pi_webhook_secret:
        logger.warning("PI_WEBHOOK_SECRET not configured. Allowing webhook for development.")
        return True

    if not signature:
        return False

    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]

    expected = hmac.new(
        settings.pi_webhook_secret.encode(),
        body,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected.encode(), provided.lower().encode())
