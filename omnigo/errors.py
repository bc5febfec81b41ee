"""
Domain errors.

Raised by services and mapped to HTTP responses in omnigo.main.
"""

from typing import Optional


class OmniGoError(Exception):
    """Base class for domain errors."""


class AuthorizationError(OmniGoError):
    """Caller does not own / is not assigned to the resource."""


class NotFoundError(OmniGoError):
    """Referenced record does not exist."""


class BusinessRuleError(OmniGoError):
    """Malformed input or a violated business rule."""


class InsufficientStockError(BusinessRuleError):
    """A product or option choice does not have enough stock."""


class DuplicateOrderError(BusinessRuleError):
    """An order already exists for the external payment id."""


class PiNetworkError(OmniGoError):
    """The Pi Network API rejected a call or could not be reached."""
    
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class OngoingPaymentError(PiNetworkError):
    """Pi refused to open a second concurrent A2U payment for a user."""
    
    def __init__(self, payment_identifier: str):
        super().__init__(f"Ongoing payment found: {payment_identifier}", status_code=400)
        self.payment_identifier = payment_identifier
