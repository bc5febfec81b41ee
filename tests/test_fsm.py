"""
Tests for FSM state machines.
"""

import uuid

import pytest

from omnigo.errors import AuthorizationError, BusinessRuleError
from omnigo.fsm.machine import OrderStateMachine, PaymentStateMachine
from omnigo.fsm.states import OrderStatus, PaymentStatus, StoreType


class TestPaymentStateMachine:
    """Tests for PaymentRecord transitions."""

    def test_approved_moves_to_any_outcome(self):
        for target in (PaymentStatus.COMPLETED, PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            assert PaymentStateMachine.can_transition(PaymentStatus.APPROVED, target)

    def test_failed_can_be_rescued(self):
        """A webhook may still complete a payment the client flow failed."""
        assert PaymentStateMachine.can_transition(PaymentStatus.FAILED, PaymentStatus.COMPLETED)

    def test_final_states_are_final(self):
        for current in (PaymentStatus.COMPLETED, PaymentStatus.CANCELLED):
            assert current.is_final
            for target in PaymentStatus:
                assert not PaymentStateMachine.can_transition(current, target)

    def test_nothing_returns_to_approved(self):
        assert PaymentStateMachine.sources_for(PaymentStatus.APPROVED) == ()


class TestOrderStateMachine:
    """Tests for authorization-gated order transitions."""

    def setup_method(self):
        self.owner = uuid.uuid4()
        self.driver = uuid.uuid4()

    def test_forward_only(self):
        assert OrderStateMachine.can_transition(OrderStatus.CONFIRMED, OrderStatus.PREPARING)
        assert not OrderStateMachine.can_transition(OrderStatus.PREPARING, OrderStatus.CONFIRMED)
        assert OrderStateMachine.can_transition(OrderStatus.PREPARING, OrderStatus.CANCELLED)
        assert not OrderStateMachine.can_transition(OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def test_owner_cannot_mark_delivered(self):
        machine = OrderStateMachine(OrderStatus.OUT_FOR_DELIVERY, self.owner, self.driver)

        with pytest.raises(AuthorizationError, match="Only the assigned driver"):
            machine.authorize(self.owner, OrderStatus.DELIVERED, is_driver=False)

    def test_assigned_driver_marks_delivered(self):
        machine = OrderStateMachine(OrderStatus.OUT_FOR_DELIVERY, self.owner, self.driver)
        machine.authorize(self.driver, OrderStatus.DELIVERED, is_driver=True)

    def test_other_driver_rejected(self):
        machine = OrderStateMachine(OrderStatus.OUT_FOR_DELIVERY, self.owner, self.driver)

        with pytest.raises(AuthorizationError, match="not assigned"):
            machine.authorize(uuid.uuid4(), OrderStatus.DELIVERED, is_driver=True)

    def test_driver_limited_to_delivery(self):
        machine = OrderStateMachine(OrderStatus.CONFIRMED, self.owner, self.driver)

        with pytest.raises(AuthorizationError, match="only mark an order as delivered"):
            machine.authorize(self.driver, OrderStatus.PREPARING, is_driver=True)

    def test_stranger_rejected(self):
        machine = OrderStateMachine(OrderStatus.CONFIRMED, self.owner, None)

        with pytest.raises(AuthorizationError, match="Not authorized"):
            machine.authorize(uuid.uuid4(), OrderStatus.PREPARING, is_driver=False)

    def test_dispatch_requires_driver(self):
        machine = OrderStateMachine(OrderStatus.PREPARING, self.owner, None)

        with pytest.raises(BusinessRuleError):
            machine.authorize(self.owner, OrderStatus.OUT_FOR_DELIVERY, is_driver=False)

        machine.authorize(self.owner, OrderStatus.OUT_FOR_DELIVERY, is_driver=False, driver_id=self.driver)

    def test_backwards_move_rejected(self):
        machine = OrderStateMachine(OrderStatus.PREPARING, self.owner, None)

        with pytest.raises(BusinessRuleError, match="Cannot change order status"):
            machine.authorize(self.owner, OrderStatus.CONFIRMED, is_driver=False)


class TestStoreType:

    def test_restaurants_do_not_track_stock(self):
        assert not StoreType.RESTAURANT.tracks_stock
        assert StoreType.GROCERY.tracks_stock
