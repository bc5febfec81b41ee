"""
Tests for deferred payout scheduling and the Celery hand-off.
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

from omnigo.services.payout_scheduler import DeferredPayoutScheduler
from omnigo.workers.payouts import CeleryPayoutScheduler


class TestDeferredPayoutScheduler:

    def test_nothing_forwarded_before_flush(self, scheduler):
        deferred = DeferredPayoutScheduler(scheduler)
        deferred.schedule_payout(uuid.uuid4(), uuid.uuid4(), Decimal("9.5"))

        assert scheduler.scheduled == []
        assert deferred.flush() == 1
        assert len(scheduler.scheduled) == 1
        assert deferred.flush() == 0

    def test_discard_drops_buffer(self, scheduler):
        deferred = DeferredPayoutScheduler(scheduler)
        deferred.schedule_payout(uuid.uuid4(), uuid.uuid4(), Decimal("1"), delay_seconds=300)

        deferred.discard()

        assert deferred.flush() == 0
        assert scheduler.scheduled == []


class TestCeleryPayoutScheduler:

    def test_enqueues_with_countdown(self):
        store_id, order_id = uuid.uuid4(), uuid.uuid4()

        with patch("omnigo.workers.payouts.execute_payout") as task:
            CeleryPayoutScheduler().schedule_payout(store_id, order_id, Decimal("9.5"), delay_seconds=300)
            CeleryPayoutScheduler().schedule_payout(store_id, order_id, Decimal("9.5"))

        first, second = task.apply_async.call_args_list
        assert first.kwargs == {"args": [str(store_id), str(order_id), "9.5"], "countdown": 300}
        assert second.kwargs["countdown"] is None
