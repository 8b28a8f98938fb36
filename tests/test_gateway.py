"""Tests for job submission."""
from unittest.mock import MagicMock

import pytest

from helpers import dealer_row, to_csv
from importer.exceptions import JobNotFoundError, SubmissionError
from importer.models import ImportJob, JobKind, JobStatus
from importer.services.gateway import SubmissionGateway
from importer.services.job_store import JobRecordStore


def test_submit_creates_a_queued_job_and_enqueues_it(db_session, memory_queue):
    """Test submitting creates a queued job and enqueues it."""
    content = to_csv([dealer_row(1)])
    job_id = SubmissionGateway(db_session, memory_queue).submit_job(
        JobKind.DEALER_IMPORT, "dealers.csv", content, submitted_by=3
    )

    job = JobRecordStore(db_session).get(job_id)
    assert job.status == JobStatus.QUEUED
    assert job.filename == "dealers.csv"
    assert job.submitted_by == 3

    lease = memory_queue.lease()
    assert lease.message.job_id == job_id
    assert lease.message.raw_bytes == content
    assert lease.message.cycle_id is None


def test_dealer_submission_ignores_cycle(db_session, memory_queue):
    """Test dealer submissions drop any cycle id."""
    job_id = SubmissionGateway(db_session, memory_queue).submit_job(
        JobKind.DEALER_IMPORT, "dealers.csv", b"", submitted_by=1, cycle_id=42
    )
    assert JobRecordStore(db_session).get(job_id).cycle_id is None


def test_payout_submission_carries_cycle(db_session, memory_queue, payout_cycle):
    """Test payout submissions carry their cycle id."""
    job_id = SubmissionGateway(db_session, memory_queue).submit_job(
        JobKind.PAYOUT_IMPORT, "payouts.csv", b"", submitted_by=1, cycle_id=payout_cycle.id
    )
    assert JobRecordStore(db_session).get(job_id).cycle_id == payout_cycle.id
    assert memory_queue.lease().message.cycle_id == payout_cycle.id


@pytest.mark.parametrize("cycle_id", [None, 999])
def test_payout_submission_requires_existing_cycle(db_session, memory_queue, cycle_id):
    """Test payout submissions need an existing cycle."""
    gateway = SubmissionGateway(db_session, memory_queue)
    with pytest.raises(SubmissionError):
        gateway.submit_job(
            JobKind.PAYOUT_IMPORT, "payouts.csv", b"", submitted_by=1, cycle_id=cycle_id
        )
    assert db_session.query(ImportJob).count() == 0
    assert memory_queue.depth() == 0


def test_enqueue_failure_removes_the_job(db_session):
    """Test a failed enqueue removes the job record."""
    publisher = MagicMock()
    publisher.enqueue.side_effect = ConnectionError("broker down")
    gateway = SubmissionGateway(db_session, publisher)

    with pytest.raises(ConnectionError):
        gateway.submit_job(JobKind.DEALER_IMPORT, "dealers.csv", b"", submitted_by=1)

    job_id = publisher.enqueue.call_args.args[0].job_id
    with pytest.raises(JobNotFoundError):
        JobRecordStore(db_session).get(job_id)
    assert db_session.query(ImportJob).count() == 0
