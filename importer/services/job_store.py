"""Durable job record bookkeeping: status, counts, progress and row errors.

All mutations for a job come from the single worker that holds its queue
lease, so records are updated with plain read-modify-write and committed
immediately so that status pollers see progress as it happens.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from importer.exceptions import JobNotFoundError, JobStateError
from importer.models.import_job import ImportJob, JobKind, JobStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_ERROR_ENTRIES = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def terminal_status(failure_count: int, total_records: int) -> JobStatus:
    """Derive the terminal status from the final counts."""
    if failure_count == 0:
        return JobStatus.COMPLETED
    if failure_count == total_records:
        return JobStatus.FAILED
    return JobStatus.PARTIALLY_COMPLETED


class JobRecordStore:
    """Persistence operations on ImportJob records."""

    def __init__(self, db: Session, max_error_entries: int = DEFAULT_MAX_ERROR_ENTRIES):
        self.db = db
        self.max_error_entries = max_error_entries

    def create(
        self,
        kind: JobKind,
        filename: str,
        submitted_by: int,
        cycle_id: Optional[int] = None,
    ) -> str:
        """Create a job record in Queued state and return its id."""
        job = ImportJob(
            kind=kind,
            filename=filename,
            submitted_by=submitted_by,
            cycle_id=cycle_id,
            status=JobStatus.QUEUED,
            total_records=0,
            processed_records=0,
            success_count=0,
            failure_count=0,
            progress_percentage=0.0,
            errors=[],
            attempts=0,
        )
        self.db.add(job)
        self.db.commit()
        logger.info(f"💾 Job record created: id={job.id}, kind={kind.value}, filename={filename}")
        return job.id

    def get(self, job_id: str) -> ImportJob:
        job = self.db.query(ImportJob).filter(ImportJob.id == job_id).first()
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, kind: Optional[JobKind] = None, limit: int = 50) -> list[ImportJob]:
        """Most recent jobs first, optionally filtered by kind."""
        query = self.db.query(ImportJob)
        if kind is not None:
            query = query.filter(ImportJob.kind == kind)
        return query.order_by(ImportJob.created_at.desc()).limit(limit).all()

    def delete(self, job_id: str) -> None:
        job = self.get(job_id)
        self.db.delete(job)
        self.db.commit()

    def _get_mutable(self, job_id: str) -> ImportJob:
        job = self.get(job_id)
        if job.status.is_terminal:
            raise JobStateError(f"Job {job_id} is {job.status.value} and can no longer change")
        return job

    def mark_processing(self, job_id: str) -> ImportJob:
        """
        Start a delivery attempt.

        A redelivered job starts over from zero counts, so previously
        successful rows will be counted again (as duplicates) on this attempt.
        """
        job = self._get_mutable(job_id)
        if job.status == JobStatus.PROCESSING:
            logger.warning(
                f"🔁 Job {job_id} redelivered after attempt {job.attempts}, restarting counts"
            )
        job.status = JobStatus.PROCESSING
        job.attempts += 1
        job.total_records = 0
        job.processed_records = 0
        job.success_count = 0
        job.failure_count = 0
        job.progress_percentage = 0.0
        job.errors = []
        job.started_at = utc_now()
        self.db.commit()
        return job

    def set_total(self, job_id: str, total: int) -> None:
        job = self._get_mutable(job_id)
        if job.status != JobStatus.PROCESSING:
            raise JobStateError(f"Job {job_id} is not processing")
        if job.processed_records:
            raise JobStateError(f"Job {job_id} total cannot change after rows are recorded")
        job.total_records = total
        self.db.commit()

    def record_outcome(self, job_id: str, success: bool) -> ImportJob:
        """Count one row and recompute progress."""
        job = self._get_mutable(job_id)
        if job.success_count + job.failure_count >= job.total_records:
            raise JobStateError(f"Job {job_id} already has {job.total_records} outcomes")
        if success:
            job.success_count += 1
        else:
            job.failure_count += 1
        job.processed_records = job.success_count + job.failure_count
        progress = round(job.processed_records / job.total_records * 100, 2)
        job.progress_percentage = max(job.progress_percentage, progress)
        self.db.commit()
        return job

    def append_error(self, job_id: str, row: Optional[int], reasons: list[str]) -> bool:
        """
        Capture a row's rejection reasons while the error list has room.

        Returns:
            True if the entry was stored, False if it was dropped at the cap
        """
        job = self._get_mutable(job_id)
        errors = list(job.errors or [])
        if len(errors) >= self.max_error_entries:
            return False
        errors.append({"row": row, "errors": list(reasons)})
        job.errors = errors
        self.db.commit()
        return True

    def finalize(self, job_id: str) -> ImportJob:
        """Stamp the terminal status derived from the counts."""
        job = self._get_mutable(job_id)
        if job.status != JobStatus.PROCESSING:
            raise JobStateError(f"Job {job_id} is not processing")
        if job.success_count + job.failure_count != job.total_records:
            raise JobStateError(
                f"Job {job_id} has {job.success_count + job.failure_count} outcomes "
                f"for {job.total_records} records"
            )
        job.status = terminal_status(job.failure_count, job.total_records)
        job.progress_percentage = 100.0
        job.completed_at = utc_now()
        self.db.commit()
        logger.info(
            f"🏁 Job {job_id} finalized as {job.status.value}: total={job.total_records}, "
            f"success={job.success_count}, failed={job.failure_count}"
        )
        return job

    def fail(self, job_id: str, message: str) -> ImportJob:
        """Fail the whole job with a single synthetic error entry."""
        job = self._get_mutable(job_id)
        job.status = JobStatus.FAILED
        job.errors = [{"row": None, "errors": [message]}]
        job.completed_at = utc_now()
        self.db.commit()
        logger.error(f"❌ Job {job_id} failed: {message}")
        return job
