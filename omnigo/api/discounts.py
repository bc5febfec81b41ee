"""
Discount Endpoints.
Preliminary discount code check shown at checkout.
"""

import logging
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.database import get_db
from omnigo.services.discount_service import DiscountService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/validate")
async def validate_discount_code(
    code: str = Query(...),
    store_id: uuid.UUID = Query(...),
    order_total: Decimal = Query(..., ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Check a code against a store and cart total. Per-user limits apply at payment."""
    return await DiscountService(db).validate_discount_code(code, store_id, order_total)
