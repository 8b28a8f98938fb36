"""Celery application configuration."""
from celery import Celery

from importer.config import get_settings

settings = get_settings()

celery_app = Celery(
    "bulk_importer",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["importer.tasks.import_tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=settings.queue_name,
    # Ack after the job is finalized; an unacked message is redelivered once
    # the broker visibility timeout (the job lease) runs out.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_transport_options={"visibility_timeout": settings.lease_timeout_seconds},
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
)
