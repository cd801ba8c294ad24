"""
Celery application for the stuck message sweep.

The sweep runs on its own ``messages`` queue so a backlog of retries never
delays anything else routed to ``default``. Beat enqueues one sweep every
``message_processor_interval_seconds``; the dashboard can enqueue more
through ``/api/messages/process-background``.
"""

from celery import Celery
from kombu import Exchange, Queue

from ..core.config import settings


PROCESS_STUCK_MESSAGES = "crm.tasks.message_tasks.process_stuck_messages"
MESSAGES_QUEUE = "messages"

celery_app = Celery(
    "crm",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["crm.tasks.message_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=max(settings.celery_task_time_limit - 30, 10),

    worker_concurrency=settings.celery_worker_concurrency,
    worker_prefetch_multiplier=1,

    # Outcome stays readable by the status endpoint for an hour
    result_expires=3600,
    task_track_started=True,

    broker_connection_retry_on_startup=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_queues=(
        Queue("default", Exchange("default", type="direct"), routing_key="default"),
        Queue(MESSAGES_QUEUE, Exchange(MESSAGES_QUEUE, type="direct"), routing_key=MESSAGES_QUEUE),
    ),
    task_default_queue="default",
    task_routes={
        PROCESS_STUCK_MESSAGES: {"queue": MESSAGES_QUEUE, "routing_key": MESSAGES_QUEUE},
    },

    beat_schedule={
        "process-stuck-messages": {
            "task": PROCESS_STUCK_MESSAGES,
            "schedule": settings.message_processor_interval_seconds,
            # A sweep nobody picked up before the next one is due is dropped
            "options": {"expires": settings.message_processor_interval_seconds},
        },
    },
)
