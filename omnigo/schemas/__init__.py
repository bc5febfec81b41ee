"""Request / metadata schemas."""

from omnigo.schemas.payment_metadata import (
    CartItem,
    CartOrderMetadata,
    SingleProductMetadata,
    PaymentMetadata,
    DiscountSelection,
    parse_payment_metadata,
)

__all__ = [
    "CartItem",
    "CartOrderMetadata",
    "SingleProductMetadata",
    "PaymentMetadata",
    "DiscountSelection",
    "parse_payment_metadata",
]
