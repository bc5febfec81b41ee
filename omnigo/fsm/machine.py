"""
FSM Machines - payment record and order state machines with strict transitions.
"""

import logging
import uuid
from typing import Optional

from omnigo.errors import AuthorizationError, BusinessRuleError
from omnigo.fsm.states import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentStateMachine:
    """
    Allowed PaymentRecord transitions.

    A record starts APPROVED. FAILED may still be rescued to COMPLETED by a
    later webhook; COMPLETED and CANCELLED are final.
    """

    ALLOWED_SOURCES = {
        PaymentStatus.COMPLETED: (PaymentStatus.APPROVED, PaymentStatus.FAILED),
        PaymentStatus.CANCELLED: (PaymentStatus.APPROVED, PaymentStatus.FAILED),
        PaymentStatus.FAILED: (PaymentStatus.APPROVED,),
        PaymentStatus.APPROVED: (),
    }

    @classmethod
    def sources_for(cls, target: PaymentStatus) -> tuple:
        """Statuses a record may be in to move to `target`."""
        return cls.ALLOWED_SOURCES[target]

    @classmethod
    def can_transition(cls, current: PaymentStatus, target: PaymentStatus) -> bool:
        return current in cls.ALLOWED_SOURCES[target]


class OrderStateMachine:
    """
    Authorization-gated order status transitions.

    - The store owner may confirm, prepare, dispatch (with a driver) or cancel.
    - Only the assigned driver may mark an order delivered.
    - Status only moves forward; delivered and cancelled are terminal.
    """

    def __init__(
        self,
        current: OrderStatus,
        store_owner_id: Optional[uuid.UUID],
        assigned_driver_id: Optional[uuid.UUID],
    ):
        self.current = current
        self.store_owner_id = store_owner_id
        self.assigned_driver_id = assigned_driver_id

    @staticmethod
    def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
        """Check the transition table, ignoring who is asking."""
        if current.is_terminal:
            return False
        if target == OrderStatus.CANCELLED:
            return True
        return target.rank > current.rank

    def authorize(
        self,
        actor_id: uuid.UUID,
        target: OrderStatus,
        is_driver: bool,
        driver_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Raise AuthorizationError / BusinessRuleError unless `actor_id` may move
        the order to `target`.

        Args:
            actor_id: User performing the update
            target: Requested status
            is_driver: Whether the actor holds the driver role
            driver_id: Driver being assigned (dispatch only)
        """
        is_owner = self.store_owner_id is not None and self.store_owner_id == actor_id

        if not is_owner and not is_driver and self.assigned_driver_id != actor_id:
            raise AuthorizationError("Not authorized to update this order")

        if target == OrderStatus.DELIVERED:
            if self.assigned_driver_id != actor_id:
                if is_owner:
                    raise AuthorizationError(
                        "Only the assigned driver can mark the order as delivered."
                    )
                raise AuthorizationError("You are not assigned to this order.")
        elif is_owner:
            if target == OrderStatus.OUT_FOR_DELIVERY and not (driver_id or self.assigned_driver_id):
                raise BusinessRuleError("A driver must be assigned to dispatch the order.")
        else:
            raise AuthorizationError("As a driver, you can only mark an order as delivered.")

        if not self.can_transition(self.current, target):
            raise BusinessRuleError(
                f"Cannot change order status from {self.current.value} to {target.value}."
            )

        logger.debug(f"Order transition {self.current.value} -> {target.value} authorized for {actor_id}")
