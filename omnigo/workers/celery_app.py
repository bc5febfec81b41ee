"""
Celery application.

Redis is both broker and result backend. Payout tasks are acked late so a
worker crash mid-payout redelivers the task; the executor skips orders that
already have a completed payout.
"""

from celery import Celery

from omnigo.config import settings

celery_app = Celery(
    "omnigo",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["omnigo.workers.payouts"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 3600,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # Below the 180s Pi transaction timeout
    task_time_limit=170,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
)
