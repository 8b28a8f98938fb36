"""Job progress fan-out over Redis pub/sub for the SSE status stream."""
import json
import logging

import redis

from importer.models.import_job import ImportJob

logger = logging.getLogger(__name__)


def progress_channel(job_id: str) -> str:
    return f"import:{job_id}"


def progress_message(job: ImportJob) -> dict:
    return {
        "job_id": job.id,
        "status": job.status.value,
        "processed": job.processed_records,
        "total": job.total_records,
        "success": job.success_count,
        "failed": job.failure_count,
        "progress": job.progress_percentage,
    }


class NullProgressPublisher:
    """Publisher that drops every update."""

    def publish(self, job: ImportJob) -> None:
        return None


class RedisProgressPublisher:
    """Publishes job snapshots to the job's Redis channel."""

    def __init__(self, redis_url: str):
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    def publish(self, job: ImportJob) -> None:
        try:
            self._client.publish(progress_channel(job.id), json.dumps(progress_message(job)))
        except redis.RedisError as e:
            # Progress streaming is best effort
            logger.warning(f"⚠️ Failed to publish progress for job {job.id}: {e}")
