"""Runs one import job end to end inside a worker."""
import logging
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from importer.exceptions import MalformedFileError
from importer.models.import_job import JobKind, JobStatus
from importer.models.payout import PayoutCase, PayoutCycle, PayoutCycleStatus
from importer.services.csv_reader import read_rows
from importer.services.job_store import DEFAULT_MAX_ERROR_ENTRIES, JobRecordStore
from importer.services.progress import NullProgressPublisher
from importer.services.row_handlers import build_row_handler

logger = logging.getLogger(__name__)


class ImportProcessor:
    """
    Processes a leased job message against the database.

    Row-level problems are captured on the job record and never stop the
    job. A malformed file fails the job without processing any row. Errors
    while updating the job record itself propagate to the caller so the queue
    can re-deliver the message.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        publisher=None,
        max_error_entries: int = DEFAULT_MAX_ERROR_ENTRIES,
        strict_optional_amounts: bool = False,
    ):
        self.session_factory = session_factory
        self.publisher = publisher or NullProgressPublisher()
        self.max_error_entries = max_error_entries
        self.strict_optional_amounts = strict_optional_amounts

    @classmethod
    def from_settings(cls, settings, session_factory, publisher=None) -> "ImportProcessor":
        return cls(
            session_factory,
            publisher=publisher,
            max_error_entries=settings.max_error_entries,
            strict_optional_amounts=settings.strict_optional_amounts,
        )

    def process(self, message) -> Optional[JobStatus]:
        """
        Process one job message.

        Args:
            message: JobMessage leased from the queue

        Returns:
            The job's terminal status
        """
        job_id = message.job_id
        logger.info(f"🚀 Starting import job: job_id={job_id}, kind={message.kind.value}")

        db = self.session_factory()
        try:
            store = JobRecordStore(db, max_error_entries=self.max_error_entries)
            job = store.get(job_id)
            if job.status.is_terminal:
                # Finalized on an earlier delivery whose ack was lost
                logger.info(f"⏭️ Job {job_id} already {job.status.value}, skipping redelivery")
                return job.status

            job = store.mark_processing(job_id)
            self.publisher.publish(job)
            logger.info(f"📊 Job {job_id} processing (attempt {job.attempts})")

            handler = build_row_handler(
                message.kind,
                db,
                submitted_by=message.submitted_by,
                cycle_id=message.cycle_id,
                strict_optional_amounts=self.strict_optional_amounts,
            )

            try:
                rows = read_rows(message.raw_bytes)
            except MalformedFileError as e:
                job = store.fail(job_id, f"Malformed file: {e}")
                self.publisher.publish(job)
                return job.status

            store.set_total(job_id, len(rows))
            logger.info(f"✅ Total rows counted: {len(rows)} for job {job_id}")

            for raw in rows:
                outcome = handler.handle(raw)
                if not outcome.success:
                    logger.debug(f"Row {raw.row} rejected: {outcome.reasons}")
                    store.append_error(job_id, outcome.row, outcome.reasons)
                job = store.record_outcome(job_id, outcome.success)
                self.publisher.publish(job)

            job = store.finalize(job_id)
            if message.kind == JobKind.PAYOUT_IMPORT:
                try:
                    refresh_cycle_totals(db, message.cycle_id)
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.warning(f"⚠️ Failed to refresh totals for cycle {message.cycle_id}: {e}")
            self.publisher.publish(job)
            return job.status
        finally:
            db.close()

    def fail_job(self, job_id: str, reason: str) -> None:
        """Best-effort terminal failure for a job whose deliveries are exhausted."""
        db = self.session_factory()
        try:
            store = JobRecordStore(db, max_error_entries=self.max_error_entries)
            job = store.get(job_id)
            if not job.status.is_terminal:
                job = store.fail(job_id, reason)
                self.publisher.publish(job)
        except Exception:
            logger.exception(f"💥 Could not mark job {job_id} as failed")
        finally:
            db.close()


def refresh_cycle_totals(db: Session, cycle_id: int) -> None:
    """Recompute a payout cycle's case count and total net amount."""
    total_cases, total_amount = (
        db.query(func.count(PayoutCase.id), func.coalesce(func.sum(PayoutCase.net_amount), 0))
        .filter(PayoutCase.cycle_id == cycle_id)
        .one()
    )
    cycle = db.query(PayoutCycle).filter(PayoutCycle.id == cycle_id).first()
    if cycle is None:
        logger.warning(f"⚠️ Payout cycle {cycle_id} not found while refreshing totals")
        return
    cycle.total_cases = total_cases
    cycle.total_amount = total_amount
    cycle.status = PayoutCycleStatus.ACTIVE
    db.commit()
    logger.info(f"📊 Cycle {cycle_id} totals: cases={total_cases}, amount={total_amount}")
