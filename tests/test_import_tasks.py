"""Tests for the Celery task wrapper and publisher."""
from unittest.mock import MagicMock, patch

import pytest

from importer.config import Settings
from importer.models.import_job import JobKind, JobStatus
from importer.tasks import import_tasks
from importer.tasks.import_tasks import CeleryJobPublisher, process_import_job
from importer.tasks.queue import JobMessage, create_queue


@pytest.fixture
def message():
    return JobMessage.build("job-9", JobKind.DEALER_IMPORT, "dealers.csv", b"a\n", submitted_by=1)


def test_publisher_sends_task_keyed_by_job_id(message):
    """Test the Celery publisher sends a task keyed by job id."""
    with patch.object(import_tasks, "process_import_job") as task:
        CeleryJobPublisher().enqueue(message)

    task.apply_async.assert_called_once_with(
        args=[message.model_dump(mode="json")], task_id="job-9"
    )


def test_task_processes_the_message(message):
    """Test the Celery task processes its message."""
    processor = MagicMock()
    processor.process.return_value = JobStatus.COMPLETED

    with patch.object(import_tasks, "build_processor", return_value=processor):
        result = process_import_job(message.model_dump(mode="json"))

    assert result == {"job_id": "job-9", "status": "Completed"}
    processed = processor.process.call_args.args[0]
    assert processed.job_id == "job-9"
    assert processed.raw_bytes == b"a\n"


def test_task_fails_the_job_when_retries_are_exhausted(message):
    """Test the Celery task fails the job after its last retry."""
    processor = MagicMock()
    processor.process.side_effect = RuntimeError("database is locked")

    process_import_job.push_request(retries=process_import_job.max_retries)
    try:
        with patch.object(import_tasks, "build_processor", return_value=processor):
            with pytest.raises(RuntimeError):
                process_import_job.run(message.model_dump(mode="json"))
    finally:
        process_import_job.pop_request()

    processor.fail_job.assert_called_once()
    job_id, reason = processor.fail_job.call_args.args
    assert job_id == "job-9"
    assert reason.endswith("database is locked")


def test_create_queue_builds_celery_publisher():
    """Test the celery backend builds a Celery publisher."""
    assert isinstance(create_queue(Settings(queue_backend="celery")), CeleryJobPublisher)
