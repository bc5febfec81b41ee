"""FSM package for payment, payout and order state management."""

from omnigo.fsm.states import (
    PaymentStatus,
    OrderStatus,
    PayoutStatus,
    PaymentDirection,
)
from omnigo.fsm.machine import OrderStateMachine, PaymentStateMachine

__all__ = [
    "PaymentStatus",
    "OrderStatus",
    "PayoutStatus",
    "PaymentDirection",
    "OrderStateMachine",
    "PaymentStateMachine",
]
