"""Celery tasks for bulk import processing."""
import logging

from importer.config import get_settings
from importer.database import SessionLocal
from importer.services.import_processor import ImportProcessor
from importer.services.progress import RedisProgressPublisher
from importer.tasks.celery_app import celery_app
from importer.tasks.queue import JobMessage, JobPublisher, backoff_delay

settings = get_settings()
logger = logging.getLogger(__name__)


def build_processor() -> ImportProcessor:
    return ImportProcessor.from_settings(
        settings, SessionLocal, publisher=RedisProgressPublisher(settings.redis_url)
    )


@celery_app.task(bind=True, max_retries=settings.max_attempts - 1)
def process_import_job(self, payload: dict) -> dict:
    """
    Process a bulk import job in the Celery worker, not in the request.

    Job-level failures are retried with exponential backoff. When retries run
    out the job record is marked Failed before the error is re-raised.

    Args:
        self: Celery task instance
        payload: JobMessage serialized with model_dump(mode="json")

    Returns:
        Dict with job id and terminal status
    """
    message = JobMessage.model_validate(payload)
    attempt = self.request.retries + 1
    logger.info(f"🚀 Celery task received job {message.job_id} (attempt {attempt})")

    processor = build_processor()
    try:
        status = processor.process(message)
    except Exception as e:
        logger.error(f"💥 Task failed for job {message.job_id}: {e}", exc_info=True)
        if self.request.retries >= self.max_retries:
            processor.fail_job(message.job_id, f"Job failed after {attempt} attempts: {e}")
            raise
        raise self.retry(exc=e, countdown=backoff_delay(attempt, settings.backoff_base_seconds))

    result = {"job_id": message.job_id, "status": status.value if status else None}
    logger.info(f"🎉 Task completed: {result}")
    return result


class CeleryJobPublisher(JobPublisher):
    """Publishes job messages as Celery tasks; Celery workers consume them."""

    def enqueue(self, message: JobMessage) -> None:
        process_import_job.apply_async(
            args=[message.model_dump(mode="json")], task_id=message.job_id
        )
        logger.info(f"📨 Celery task queued for job {message.job_id}")
