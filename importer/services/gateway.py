"""Submission gateway: record a job and hand it to the queue."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from importer.exceptions import SubmissionError
from importer.models.import_job import JobKind
from importer.models.payout import PayoutCycle
from importer.services.job_store import JobRecordStore
from importer.tasks.queue import JobMessage, JobPublisher

logger = logging.getLogger(__name__)


class SubmissionGateway:
    """Creates Queued job records and enqueues their messages."""

    def __init__(self, db: Session, publisher: JobPublisher):
        self.db = db
        self.publisher = publisher
        self.store = JobRecordStore(db)

    def submit_job(
        self,
        kind: JobKind,
        filename: str,
        raw_bytes: bytes,
        submitted_by: int,
        cycle_id: Optional[int] = None,
    ) -> str:
        """
        Accept an uploaded file for background processing.

        Args:
            kind: Dealer or payout import
            filename: Original upload filename
            raw_bytes: File content
            submitted_by: Submitting user id
            cycle_id: Payout cycle, required for payout imports

        Returns:
            The new job id
        """
        if kind == JobKind.PAYOUT_IMPORT:
            if cycle_id is None:
                raise SubmissionError("Payout imports require a payout cycle")
            if self.db.get(PayoutCycle, cycle_id) is None:
                raise SubmissionError(f"Payout cycle {cycle_id} not found")
        else:
            cycle_id = None

        job_id = self.store.create(kind, filename, submitted_by, cycle_id=cycle_id)
        message = JobMessage.build(
            job_id=job_id,
            kind=kind,
            filename=filename,
            raw_bytes=raw_bytes,
            submitted_by=submitted_by,
            cycle_id=cycle_id,
        )
        try:
            self.publisher.enqueue(message)
        except Exception:
            logger.error(f"💥 Enqueue failed for job {job_id}, removing job record", exc_info=True)
            self.store.delete(job_id)
            raise

        logger.info(f"🎉 Job {job_id} queued: kind={kind.value}, filename={filename}")
        return job_id
